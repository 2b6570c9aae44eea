from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings

from finance.fiscal.crypto import SecretCryptoError, decrypt_secret

from .base import FiscalGatewayBase, FiscalGatewayError, GatewayConfig
from .focusnfe import FocusNFeGateway
from .mock import MockFiscalGateway

if TYPE_CHECKING:
    from finance.fiscal.models import MerchantFiscalProfile


class FiscalGatewayNotConfigured(FiscalGatewayError):
    """Raised when the merchant profile lacks what the gateway needs."""

    retryable = False


class FiscalGatewayNotSupported(FiscalGatewayError):
    """Raised when provider_type has no registered gateway implementation."""

    retryable = False


GATEWAYS: dict[str, type[FiscalGatewayBase]] = {
    "focusnfe": FocusNFeGateway,
    "mock": MockFiscalGateway,
}


def build_gateway_config(profile: "MerchantFiscalProfile") -> GatewayConfig:
    """Resolve token, environment and base URL for one unit of work."""

    try:
        token = decrypt_secret(profile.api_token)
    except SecretCryptoError as exc:
        raise FiscalGatewayNotConfigured(str(exc)) from exc
    token = token or (getattr(settings, "FISCAL_GATEWAY_TOKEN", "") or "")

    environment = (profile.environment or "").strip().upper()
    base_urls = getattr(settings, "FISCAL_GATEWAY_BASE_URLS", {}) or {}
    base_url = (base_urls.get(environment) or "").strip()
    if not base_url:
        raise FiscalGatewayNotConfigured(
            f"No fiscal gateway URL configured for environment={environment!r}."
        )

    return GatewayConfig(
        token=token,
        environment=environment,
        base_url=base_url,
        timeout_seconds=float(getattr(settings, "FISCAL_GATEWAY_TIMEOUT_SECONDS", 30)),
    )


def get_fiscal_gateway(profile: "MerchantFiscalProfile") -> FiscalGatewayBase:
    """Return the gateway client configured for a merchant profile."""

    provider_type = (profile.provider_type or "").strip().lower()
    gateway_class = GATEWAYS.get(provider_type)
    if gateway_class is None:
        raise FiscalGatewayNotSupported(
            f"Unsupported provider_type={profile.provider_type!r} for company={profile.company_id}."
        )

    # Local-only gateway (for dev/tests).
    if gateway_class is MockFiscalGateway:
        return MockFiscalGateway()

    config = build_gateway_config(profile)
    if not config.token:
        raise FiscalGatewayNotConfigured(
            f"Company {profile.company_id} has no fiscal gateway token configured."
        )
    return gateway_class(config)
