from django.urls import include, path

urlpatterns = [
    path("", include("finance.fiscal.api.urls")),
]
