"""Fiscal gateway clients (provider-agnostic interface + implementations).

Gateways only talk HTTP to the external NF-e provider. They know nothing
about models or persistence besides the payloads built by
`finance.fiscal.builder`.
"""

from .base import (
    CompanyRegistration,
    DocumentResult,
    FiscalGatewayAuthenticationError,
    FiscalGatewayBase,
    FiscalGatewayError,
    FiscalGatewayRejectionError,
    FiscalGatewayTimeoutError,
    FiscalGatewayTransportError,
    FiscalGatewayValidationError,
    GatewayConfig,
    validate_cancel_justification,
)
from .factory import (
    FiscalGatewayNotConfigured,
    FiscalGatewayNotSupported,
    build_gateway_config,
    get_fiscal_gateway,
)
from .focusnfe import FocusNFeGateway
from .mock import MockFiscalGateway

__all__ = [
    "CompanyRegistration",
    "DocumentResult",
    "FiscalGatewayAuthenticationError",
    "FiscalGatewayBase",
    "FiscalGatewayError",
    "FiscalGatewayNotConfigured",
    "FiscalGatewayNotSupported",
    "FiscalGatewayRejectionError",
    "FiscalGatewayTimeoutError",
    "FiscalGatewayTransportError",
    "FiscalGatewayValidationError",
    "FocusNFeGateway",
    "GatewayConfig",
    "MockFiscalGateway",
    "build_gateway_config",
    "get_fiscal_gateway",
    "validate_cancel_justification",
]
