"""
URL configuration for fiscal_backend project.

Everything under `/api/` is tenant-scoped (`X-Tenant-ID`) except token
issuance and the fiscal gateway callback.
"""
from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path
from rest_framework.authtoken.views import obtain_auth_token


def healthz(_request):
    return JsonResponse({"status": "ok"})


urlpatterns = [
    path("admin/", admin.site.urls),
    path("healthz/", healthz, name="healthz"),
    path("api/auth/token/", obtain_auth_token, name="api-token"),
    path("api/finance/", include("finance.urls")),
]
