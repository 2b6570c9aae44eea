from django.urls import include, path
from rest_framework.routers import DefaultRouter

from finance.fiscal.api.views import FiscalDocumentViewSet
from finance.fiscal.api.views import FiscalWebhookAPIView
from finance.fiscal.api.views import MerchantFiscalCompanySyncAPIView
from finance.fiscal.api.views import MerchantFiscalProfileAPIView

router = DefaultRouter()
router.register(r"fiscal", FiscalDocumentViewSet, basename="fiscal-document")

urlpatterns = [
    path("fiscal/profile/", MerchantFiscalProfileAPIView.as_view(), name="fiscal-profile"),
    path(
        "fiscal/profile/sync/",
        MerchantFiscalCompanySyncAPIView.as_view(),
        name="fiscal-profile-sync",
    ),
    path("fiscal/webhook/", FiscalWebhookAPIView.as_view(), name="fiscal-webhook"),
    path("", include(router.urls)),
]
