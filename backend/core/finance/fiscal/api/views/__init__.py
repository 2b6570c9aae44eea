from .fiscal_document import FiscalDocumentViewSet
from .fiscal_profile import MerchantFiscalCompanySyncAPIView, MerchantFiscalProfileAPIView
from .webhook import FiscalWebhookAPIView

__all__ = [
    "FiscalDocumentViewSet",
    "FiscalWebhookAPIView",
    "MerchantFiscalCompanySyncAPIView",
    "MerchantFiscalProfileAPIView",
]
