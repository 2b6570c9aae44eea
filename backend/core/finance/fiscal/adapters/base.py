from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

CANCEL_JUSTIFICATION_MIN_LENGTH = 15
CANCEL_JUSTIFICATION_MAX_LENGTH = 255


class FiscalGatewayError(RuntimeError):
    """Base exception for fiscal gateway failures."""

    retryable: bool = True

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        payload: Mapping[str, Any] | None = None,
    ):
        super().__init__(message)
        self.http_status = http_status
        self.payload = dict(payload) if payload else {}


class FiscalGatewayTransportError(FiscalGatewayError):
    """Network failure, gateway outage or malformed response."""

    retryable = True


class FiscalGatewayTimeoutError(FiscalGatewayTransportError):
    """The request may or may not have reached the gateway."""

    retryable = True


class FiscalGatewayAuthenticationError(FiscalGatewayError):
    """Gateway refused the credentials (configuration problem)."""

    retryable = False


class FiscalGatewayRejectionError(FiscalGatewayError):
    """Gateway or tax authority refused the request content (not retryable)."""

    retryable = False

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: Any = None,
        http_status: int | None = None,
        payload: Mapping[str, Any] | None = None,
    ):
        super().__init__(message, http_status=http_status, payload=payload)
        self.code = code
        self.details = details


class FiscalGatewayValidationError(FiscalGatewayError):
    """Input refused locally, before any network call."""

    retryable = False


@dataclass(frozen=True)
class GatewayConfig:
    """Connection settings injected into a gateway client.

    Built once per unit of work by `get_fiscal_gateway`; clients never read
    settings or the environment themselves.
    """

    token: str
    environment: str
    base_url: str
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class CompanyRegistration:
    ref: str
    certificate_expires_at: datetime | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DocumentResult:
    """Gateway view of a document after submit, poll or cancel.

    `status` keeps the gateway vocabulary (e.g. `processando_autorizacao`,
    `autorizado`); mapping to local statuses is done by the services.
    """

    status: str
    authority_status_code: str = ""
    authority_message: str = ""
    access_key: str = ""
    number: int | None = None
    series: int | None = None
    protocol_number: str = ""
    danfe_url: str = ""
    xml_url: str = ""
    http_status: int | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    def as_event_payload(self) -> dict[str, Any]:
        return {"http_status": self.http_status, "response": dict(self.raw)}


def validate_cancel_justification(justification: str | None) -> str:
    text = (justification or "").strip()
    if not CANCEL_JUSTIFICATION_MIN_LENGTH <= len(text) <= CANCEL_JUSTIFICATION_MAX_LENGTH:
        raise FiscalGatewayValidationError(
            "Cancellation justification must have between "
            f"{CANCEL_JUSTIFICATION_MIN_LENGTH} and {CANCEL_JUSTIFICATION_MAX_LENGTH} characters."
        )
    return text


class FiscalGatewayBase(ABC):
    """Transport to an NF-e gateway.

    Implementations only shape requests/responses and authenticate.
    Persistence, state transitions and audit events belong to
    `finance.fiscal.services`.
    """

    def __init__(self, config: GatewayConfig) -> None:
        self.config = config

    @abstractmethod
    def register_company(
        self,
        payload: Mapping[str, Any],
        *,
        existing_ref: str | None = None,
    ) -> CompanyRegistration:
        """Create (no `existing_ref`) or update the merchant at the gateway."""

    @abstractmethod
    def submit_document(self, ref: str, payload: Mapping[str, Any]) -> DocumentResult:
        """Send a document for authorization under the caller's reference.

        Submitting again with the same `ref` must never produce a second
        filing at the authority.
        """

    @abstractmethod
    def poll_status(self, ref: str) -> DocumentResult:
        """Current gateway status for `ref`. Safe to call repeatedly."""

    @abstractmethod
    def cancel_document(self, ref: str, justification: str) -> DocumentResult:
        """Cancel an authorized document. Justification must be 15-255 chars."""
