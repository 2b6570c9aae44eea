from .fiscal_document import (
    CancelFiscalDocumentSerializer,
    FiscalDocumentDetailSerializer,
    FiscalDocumentItemSerializer,
    FiscalDocumentSerializer,
    FiscalEventSerializer,
)
from .fiscal_profile import (
    MerchantFiscalProfileReadSerializer,
    MerchantFiscalProfileUpsertSerializer,
)

__all__ = [
    "CancelFiscalDocumentSerializer",
    "FiscalDocumentDetailSerializer",
    "FiscalDocumentItemSerializer",
    "FiscalDocumentSerializer",
    "FiscalEventSerializer",
    "MerchantFiscalProfileReadSerializer",
    "MerchantFiscalProfileUpsertSerializer",
]
