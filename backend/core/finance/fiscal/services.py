from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from django.conf import settings
from django.db import connection, transaction
from django.utils import timezone

from tenancy.context import get_current_company, tenant_context
from tenancy.logging import mask_cpf_cnpj

from finance.fiscal.adapters import (
    DocumentResult,
    FiscalGatewayAuthenticationError,
    FiscalGatewayError,
    FiscalGatewayNotConfigured,
    FiscalGatewayNotSupported,
    FiscalGatewayRejectionError,
    FiscalGatewayTimeoutError,
    FiscalGatewayValidationError,
    get_fiscal_gateway,
    validate_cancel_justification,
)
from finance.fiscal.builder import build_company_payload, build_document_payload, compute_totals
from finance.fiscal.crypto import SecretCryptoError, decrypt_secret
from finance.fiscal.events import record_fiscal_event
from finance.fiscal.models import (
    FiscalDocument,
    FiscalDocumentItem,
    FiscalEvent,
    MerchantFiscalProfile,
)
from finance.fiscal.order_gateway import OrderResolverNotConfigured, resolve_order_for_fiscal
from finance.fiscal.refs import correlation_ref
from finance.fiscal.signals import fiscal_document_authorized

logger = logging.getLogger(__name__)

Status = FiscalDocument.Status
EventType = FiscalEvent.EventType

GATEWAY_STATUS_MAP = {
    "processando_autorizacao": Status.SUBMITTED,
    "autorizado": Status.AUTHORIZED,
    "erro_autorizacao": Status.REJECTED,
    "denegado": Status.REJECTED,
    "rejeitado": Status.REJECTED,
    "nao_encontrado": Status.REJECTED,
    "cancelado": Status.CANCELLED,
}

EVENT_FOR_STATUS = {
    Status.SUBMITTED: EventType.SUBMITTED,
    Status.AUTHORIZED: EventType.AUTHORIZED,
    Status.REJECTED: EventType.REJECTED,
    Status.CANCELLED: EventType.CANCELLED,
}

REQUIRED_DESTINATION_FIELDS = (
    ("recipient_name", "name"),
    ("recipient_street", "street"),
    ("recipient_district", "district"),
    ("recipient_city", "city"),
    ("recipient_state", "state"),
    ("recipient_postal_code", "postal code"),
)

NOT_FOUND_MESSAGE = "Document not found at the fiscal gateway. It can be submitted again."


class FiscalServiceError(RuntimeError):
    """Base error for fiscal lifecycle service failures."""


class FiscalTenantMissing(FiscalServiceError):
    """Raised when called without an active tenant context."""


class FiscalDocumentNotFound(FiscalServiceError):
    """Raised when the document does not exist for the current tenant."""


class FiscalValidationError(FiscalServiceError):
    """Missing precondition. Not retried; the caller must fix the input."""


class FiscalStateConflictError(FiscalServiceError):
    """Operation attempted from a status that forbids it."""


class FiscalNotConfigured(FiscalServiceError):
    """Merchant profile or gateway settings are incomplete."""


class FiscalGatewayFailure(FiscalServiceError):
    """Gateway call failed. `kind` is authentication, rejection, transport or timeout."""

    def __init__(self, message: str, *, kind: str):
        super().__init__(message)
        self.kind = kind


@dataclass(frozen=True)
class CompanySyncResult:
    company_ref: str
    certificate_expires_at: datetime | None
    created: bool


@dataclass(frozen=True)
class ReconcileSummary:
    scanned: int = 0
    changed: int = 0
    failed: int = 0


def map_gateway_status(value: Any) -> str | None:
    """Map the gateway vocabulary to a local status (None when unknown)."""

    return GATEWAY_STATUS_MAP.get(str(value or "").strip().lower())


def _require_company():
    company = get_current_company()
    if company is None:
        raise FiscalTenantMissing(
            "Tenant context is required. Call within a tenant-scoped request."
        )
    return company


def _lockable(queryset):
    if connection.features.has_select_for_update:
        return queryset.select_for_update()
    return queryset


def _get_document(company, document_id: int, *, lock: bool = False) -> FiscalDocument:
    queryset = FiscalDocument.all_objects.filter(company=company, pk=document_id)
    if lock:
        queryset = _lockable(queryset)
    doc = queryset.first()
    if doc is None:
        raise FiscalDocumentNotFound(f"Fiscal document {document_id} not found.")
    return doc


def _get_profile(company) -> MerchantFiscalProfile:
    profile = MerchantFiscalProfile.all_objects.filter(company=company).first()
    if profile is None:
        raise FiscalNotConfigured("Merchant has no fiscal profile configured.")
    return profile


def _get_gateway(profile: MerchantFiscalProfile):
    try:
        return get_fiscal_gateway(profile)
    except (FiscalGatewayNotConfigured, FiscalGatewayNotSupported) as exc:
        raise FiscalNotConfigured(str(exc)) from exc


def _failure_kind(exc: FiscalGatewayError) -> str:
    if isinstance(exc, FiscalGatewayAuthenticationError):
        return "authentication"
    if isinstance(exc, FiscalGatewayTimeoutError):
        return "timeout"
    if isinstance(exc, FiscalGatewayRejectionError):
        return "rejection"
    return "transport"


def _error_payload(exc: FiscalGatewayError) -> dict[str, Any]:
    return {
        "error": str(exc),
        "kind": _failure_kind(exc),
        "retryable": exc.retryable,
        "http_status": exc.http_status,
        "response": exc.payload,
    }


def _apply_order_overlay(doc: FiscalDocument) -> list[str]:
    """Fill blank destination fields from the linked order. Returns changed fields."""

    if not doc.order_id:
        return []
    try:
        order = resolve_order_for_fiscal(order_id=doc.order_id, company_id=doc.company_id)
    except OrderResolverNotConfigured:
        logger.info(
            "fiscal.submit.order_overlay_skipped company_id=%s document_id=%s reason=no_resolver",
            doc.company_id,
            doc.id,
        )
        return []

    customer: Mapping[str, Any] = order.get("customer") or {}
    address: Mapping[str, Any] = order.get("shipping_address") or {}
    candidates = {
        "recipient_name": customer.get("name"),
        "recipient_tax_id": customer.get("tax_id"),
        "recipient_state_registration": customer.get("state_registration"),
        "recipient_email": customer.get("email"),
        "recipient_phone": customer.get("phone"),
        "recipient_street": address.get("street"),
        "recipient_number": address.get("number"),
        "recipient_complement": address.get("complement"),
        "recipient_district": address.get("district"),
        "recipient_city": address.get("city"),
        "recipient_city_code": address.get("city_code"),
        "recipient_state": address.get("state"),
        "recipient_postal_code": address.get("postal_code"),
        "payment_method": order.get("payment_method"),
    }

    changed: list[str] = []
    for field_name, value in candidates.items():
        value = str(value or "").strip()
        if not value or (getattr(doc, field_name) or "").strip():
            continue
        max_length = FiscalDocument._meta.get_field(field_name).max_length
        setattr(doc, field_name, value[:max_length] if max_length else value)
        changed.append(field_name)
    return changed


def _missing_destination_fields(doc: FiscalDocument) -> list[str]:
    return [
        label
        for field_name, label in REQUIRED_DESTINATION_FIELDS
        if not str(getattr(doc, field_name) or "").strip()
    ]


def _set_if_present(doc: FiscalDocument, field_name: str, value: Any, changed: list[str]) -> None:
    if value in (None, ""):
        return
    if getattr(doc, field_name) != value:
        setattr(doc, field_name, value)
        changed.append(field_name)


def _apply_authority_fields(doc: FiscalDocument, result: DocumentResult, changed: list[str]) -> None:
    _set_if_present(doc, "authority_status_code", result.authority_status_code, changed)
    _set_if_present(doc, "authority_message", result.authority_message, changed)
    _set_if_present(doc, "access_key", result.access_key, changed)
    _set_if_present(doc, "protocol_number", result.protocol_number, changed)
    _set_if_present(doc, "number", result.number, changed)
    _set_if_present(doc, "series", result.series, changed)
    _set_if_present(doc, "danfe_url", result.danfe_url, changed)
    _set_if_present(doc, "xml_url", result.xml_url, changed)


def _assign_numbering(doc: FiscalDocument, profile: MerchantFiscalProfile) -> list[str]:
    """Fill a blank series/number from the profile. Returns changed fields.

    A number taken from the profile is reserved right away, so two drafts
    submitted before either is authorized never share it. The caller holds
    the profile row lock.
    """

    changed: list[str] = []
    if not doc.series:
        doc.series = profile.default_series or 1
        changed.append("series")
    if not doc.number:
        doc.number = profile.next_document_number or 1
        changed.append("number")
        profile.next_document_number = doc.number + 1
        profile.save(update_fields=["next_document_number", "updated_at"])
    return changed


def _advance_next_number(doc: FiscalDocument) -> None:
    if not doc.number:
        return
    MerchantFiscalProfile.all_objects.filter(
        company_id=doc.company_id,
        next_document_number__lt=doc.number + 1,
    ).update(next_document_number=doc.number + 1, updated_at=timezone.now())


def _transition(
    doc: FiscalDocument,
    new_status: str,
    result: DocumentResult,
    *,
    from_status: str,
    actor=None,
    correlation_id: str = "",
) -> bool:
    """Persist `new_status` with the result fields and one audit event.

    Returns True when this call moved the document into AUTHORIZED for the
    first time, which is the only moment the authorization hook may run.
    """

    changed: list[str] = ["updated_at"]
    authorized_edge = False

    if doc.status != new_status:
        doc.status = new_status
        changed.append("status")

    _apply_authority_fields(doc, result, changed)
    if new_status == Status.REJECTED and result.status == "nao_encontrado":
        doc.authority_message = NOT_FOUND_MESSAGE
        changed.append("authority_message")

    if new_status == Status.AUTHORIZED and doc.authorized_at is None:
        doc.authorized_at = timezone.now()
        changed.append("authorized_at")
        authorized_edge = True

    doc.save(update_fields=sorted(set(changed)))

    if authorized_edge:
        _advance_next_number(doc)

    record_fiscal_event(
        doc,
        EVENT_FOR_STATUS[new_status],
        from_status=from_status,
        to_status=new_status,
        message=doc.authority_message,
        payload=result.as_event_payload(),
        actor=actor,
        correlation_id=correlation_id,
    )
    return authorized_edge


def _dispatch_authorized(doc: FiscalDocument) -> None:
    auto_create_shipment = (
        MerchantFiscalProfile.all_objects.filter(company_id=doc.company_id)
        .values_list("auto_create_shipment", flat=True)
        .first()
    )
    fiscal_document_authorized.send(
        sender=FiscalDocument,
        document=doc,
        auto_create_shipment=bool(auto_create_shipment),
    )


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


def submit_document(document_id: int, *, actor=None, correlation_id: str = "") -> FiscalDocument:
    """Send a DRAFT or REJECTED document to the gateway for authorization.

    Steps:
    1) Lock the document, check preconditions, build the payload, persist
       totals and the correlation reference, mark SUBMITTED.
    2) Call the gateway (outside any transaction).
    3) Persist the outcome plus exactly one audit event.

    Raises:
        FiscalStateConflictError: document is not DRAFT/REJECTED.
        FiscalValidationError: no items, merchant not synced, or destination
            incomplete. Nothing is persisted.
        FiscalGatewayFailure: gateway call failed. The document is REJECTED,
            except on timeout, where it stays SUBMITTED so it can be re-polled.
    """

    company = _require_company()
    logger.info(
        "fiscal.submit.started company_id=%s document_id=%s",
        company.id,
        document_id,
    )

    with transaction.atomic():
        doc = _get_document(company, document_id, lock=True)
        if doc.status not in (Status.DRAFT, Status.REJECTED):
            raise FiscalStateConflictError(
                f"Only draft or rejected documents can be submitted (current status: {doc.status})."
            )

        profile = _lockable(MerchantFiscalProfile.all_objects.filter(company=company)).first()
        if profile is None or not profile.is_synced:
            raise FiscalValidationError(
                "Merchant is not registered with the fiscal gateway. Sync the company first."
            )

        items = list(FiscalDocumentItem.all_objects.filter(document=doc).order_by("item_number"))
        if not items:
            raise FiscalValidationError("Fiscal document has no items.")

        overlay_fields = _apply_order_overlay(doc)
        missing = _missing_destination_fields(doc)
        if missing:
            raise FiscalValidationError(
                "Missing required destination fields: " + ", ".join(missing) + "."
            )

        gateway = _get_gateway(profile)
        numbering_fields = _assign_numbering(doc, profile)

        submitted_at = timezone.now()
        payload = build_document_payload(profile, doc, items, issued_at=submitted_at)
        totals = compute_totals(doc, items)

        from_status = doc.status
        doc.products_amount = totals.products
        doc.total_amount = totals.total
        doc.gateway_ref = doc.gateway_ref or correlation_ref(doc.id)
        doc.status = Status.SUBMITTED
        doc.submitted_at = submitted_at
        doc.authority_message = ""
        doc.authority_status_code = ""
        doc.save(
            update_fields=sorted(
                {
                    "products_amount",
                    "total_amount",
                    "gateway_ref",
                    "status",
                    "submitted_at",
                    "authority_message",
                    "authority_status_code",
                    "updated_at",
                    *overlay_fields,
                    *numbering_fields,
                }
            )
        )

    ref = doc.gateway_ref
    try:
        result = gateway.submit_document(ref, payload)
    except FiscalGatewayError as exc:
        error_msg = mask_cpf_cnpj(str(exc))
        kind = _failure_kind(exc)
        logger.warning(
            "fiscal.submit.failed company_id=%s document_id=%s ref=%s kind=%s error=%s",
            company.id,
            doc.id,
            ref,
            kind,
            error_msg,
        )
        with transaction.atomic():
            doc = _get_document(company, doc.id, lock=True)
            if kind != "timeout" and doc.status == Status.SUBMITTED:
                doc.status = Status.REJECTED
                doc.authority_message = str(exc)
                doc.save(update_fields=["status", "authority_message", "updated_at"])
            record_fiscal_event(
                doc,
                EventType.SUBMISSION_ERROR,
                from_status=from_status,
                to_status=doc.status,
                message=str(exc),
                payload=_error_payload(exc),
                actor=actor,
                correlation_id=correlation_id,
            )
        raise FiscalGatewayFailure(str(exc), kind=kind) from exc

    new_status = map_gateway_status(result.status)
    if new_status not in (Status.AUTHORIZED, Status.REJECTED):
        if new_status is None:
            logger.warning(
                "fiscal.submit.unknown_status company_id=%s document_id=%s status=%s",
                company.id,
                doc.id,
                result.status,
            )
        new_status = Status.SUBMITTED

    with transaction.atomic():
        doc = _get_document(company, doc.id, lock=True)
        authorized_edge = False
        if doc.status == Status.SUBMITTED:
            authorized_edge = _transition(
                doc,
                new_status,
                result,
                from_status=from_status,
                actor=actor,
                correlation_id=correlation_id,
            )

    if authorized_edge:
        _dispatch_authorized(doc)

    logger.info(
        "fiscal.submit.completed company_id=%s document_id=%s ref=%s status=%s gateway_status=%s",
        company.id,
        doc.id,
        ref,
        doc.status,
        result.status,
    )
    return doc


# ---------------------------------------------------------------------------
# Status reconciliation
# ---------------------------------------------------------------------------


def _record_refused_transition(doc: FiscalDocument, result: DocumentResult, mapped: str, *, actor, correlation_id):
    last = FiscalEvent.all_objects.filter(document=doc).order_by("-occurred_at", "-id").first()
    if (
        last is not None
        and last.event_type == EventType.STATUS_CHECK
        and (last.payload.get("response") or {}).get("status") == result.raw.get("status")
    ):
        return
    record_fiscal_event(
        doc,
        EventType.STATUS_CHECK,
        from_status=doc.status,
        to_status=doc.status,
        message=f"Gateway reports {result.status!r}, which cannot follow {doc.status}.",
        payload=result.as_event_payload(),
        actor=actor,
        correlation_id=correlation_id,
    )


def check_document_status(document_id: int, *, actor=None, correlation_id: str = "") -> FiscalDocument:
    """Refresh a SUBMITTED document from the gateway.

    Documents in any other status (or without a reference) are returned as
    stored, without calling the gateway. A poll whose mapped status equals
    the stored one writes nothing.
    """

    company = _require_company()
    doc = _get_document(company, document_id)
    if doc.status != Status.SUBMITTED or not doc.gateway_ref:
        return doc

    profile = _get_profile(company)
    gateway = _get_gateway(profile)

    try:
        result = gateway.poll_status(doc.gateway_ref)
    except FiscalGatewayError as exc:
        logger.warning(
            "fiscal.status.poll_failed company_id=%s document_id=%s ref=%s error=%s",
            company.id,
            doc.id,
            doc.gateway_ref,
            mask_cpf_cnpj(str(exc)),
        )
        raise FiscalGatewayFailure(str(exc), kind=_failure_kind(exc)) from exc

    mapped = map_gateway_status(result.status)
    authorized_edge = False
    with transaction.atomic():
        doc = _get_document(company, doc.id, lock=True)
        if mapped is None:
            logger.warning(
                "fiscal.status.unknown company_id=%s document_id=%s status=%s",
                company.id,
                doc.id,
                result.status,
            )
        elif mapped == doc.status:
            logger.debug("fiscal.status.unchanged company_id=%s document_id=%s", company.id, doc.id)
        elif not doc.can_transition_to(mapped):
            logger.warning(
                "fiscal.status.transition_refused company_id=%s document_id=%s from=%s to=%s",
                company.id,
                doc.id,
                doc.status,
                mapped,
            )
            _record_refused_transition(doc, result, mapped, actor=actor, correlation_id=correlation_id)
        else:
            from_status = doc.status
            authorized_edge = _transition(
                doc,
                mapped,
                result,
                from_status=from_status,
                actor=actor,
                correlation_id=correlation_id,
            )
            logger.info(
                "fiscal.status.changed company_id=%s document_id=%s from=%s to=%s",
                company.id,
                doc.id,
                from_status,
                mapped,
            )

    if authorized_edge:
        _dispatch_authorized(doc)
    return doc


def reconcile_pending_documents(*, batch_size: int | None = None, company=None) -> ReconcileSummary:
    """Poll SUBMITTED documents (oldest first), each within its own tenant context."""

    if batch_size is None:
        batch_size = int(getattr(settings, "FISCAL_RECONCILE_BATCH_SIZE", 100))

    queryset = (
        FiscalDocument.all_objects.select_related("company")
        .filter(status=Status.SUBMITTED)
        .exclude(gateway_ref="")
        .order_by("submitted_at", "id")
    )
    if company is not None:
        queryset = queryset.filter(company=company)

    scanned = changed = failed = 0
    for pending in queryset[:batch_size]:
        scanned += 1
        with tenant_context(pending.company):
            try:
                refreshed = check_document_status(pending.id)
            except FiscalServiceError as exc:
                failed += 1
                logger.warning(
                    "fiscal.reconcile.failed company_id=%s document_id=%s error=%s",
                    pending.company_id,
                    pending.id,
                    mask_cpf_cnpj(str(exc)),
                )
                continue
        if refreshed.status != pending.status:
            changed += 1

    logger.info(
        "fiscal.reconcile.completed scanned=%s changed=%s failed=%s",
        scanned,
        changed,
        failed,
    )
    return ReconcileSummary(scanned=scanned, changed=changed, failed=failed)


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


def _cancel_preconditions(doc: FiscalDocument) -> None:
    if doc.status != Status.AUTHORIZED or not doc.gateway_ref:
        raise FiscalStateConflictError(
            "Only authorized documents with a gateway reference can be cancelled "
            f"(current status: {doc.status})."
        )


def cancel_document(
    document_id: int,
    justification: str,
    *,
    actor=None,
    correlation_id: str = "",
) -> FiscalDocument:
    """Cancel an AUTHORIZED document at the authority.

    Steps:
    1) Lock the document and check status and justification.
    2) Call the gateway (outside any transaction).
    3) Re-lock and persist CANCELLED plus one audit event, or a
       `cancel_error` event.

    On gateway failure the document stays AUTHORIZED and
    FiscalGatewayFailure is raised.
    """

    company = _require_company()
    logger.info(
        "fiscal.cancel.started company_id=%s document_id=%s",
        company.id,
        document_id,
    )

    with transaction.atomic():
        doc = _get_document(company, document_id, lock=True)
        _cancel_preconditions(doc)
        try:
            text = validate_cancel_justification(justification)
        except FiscalGatewayValidationError as exc:
            raise FiscalValidationError(str(exc)) from exc
        gateway = _get_gateway(_get_profile(company))

    ref = doc.gateway_ref
    failure: FiscalGatewayFailure | None = None
    failure_cause: Exception | None = None
    result: DocumentResult | None = None
    try:
        result = gateway.cancel_document(ref, text)
    except FiscalGatewayError as exc:
        failure_cause = exc
        failure = FiscalGatewayFailure(str(exc), kind=_failure_kind(exc))
    else:
        if map_gateway_status(result.status) != Status.CANCELLED:
            message = result.authority_message or "Cancellation refused by the tax authority."
            failure = FiscalGatewayFailure(message, kind="rejection")

    with transaction.atomic():
        doc = _get_document(company, doc.id, lock=True)
        if failure is not None:
            record_fiscal_event(
                doc,
                EventType.CANCEL_ERROR,
                from_status=doc.status,
                to_status=doc.status,
                message=str(failure),
                payload=(
                    _error_payload(failure_cause)
                    if failure_cause is not None
                    else result.as_event_payload()
                ),
                actor=actor,
                correlation_id=correlation_id,
            )
        elif doc.status == Status.AUTHORIZED:
            doc.status = Status.CANCELLED
            doc.cancelled_at = timezone.now()
            doc.cancel_justification = text
            changed = ["status", "cancelled_at", "cancel_justification", "updated_at"]
            _set_if_present(doc, "authority_status_code", result.authority_status_code, changed)
            _set_if_present(doc, "authority_message", result.authority_message, changed)
            _set_if_present(doc, "xml_url", result.xml_url, changed)
            doc.save(update_fields=sorted(set(changed)))
            record_fiscal_event(
                doc,
                EventType.CANCELLED,
                from_status=Status.AUTHORIZED,
                to_status=Status.CANCELLED,
                message=text,
                payload=result.as_event_payload(),
                actor=actor,
                correlation_id=correlation_id,
            )
        else:
            logger.info(
                "fiscal.cancel.already_applied company_id=%s document_id=%s status=%s",
                company.id,
                doc.id,
                doc.status,
            )

    if failure is not None:
        logger.warning(
            "fiscal.cancel.failed company_id=%s document_id=%s kind=%s error=%s",
            company.id,
            document_id,
            failure.kind,
            mask_cpf_cnpj(str(failure)),
        )
        raise failure from failure_cause

    logger.info(
        "fiscal.cancel.completed company_id=%s document_id=%s",
        company.id,
        doc.id,
    )
    return doc


# ---------------------------------------------------------------------------
# Company registration
# ---------------------------------------------------------------------------


def sync_company(*, actor=None) -> CompanySyncResult:
    """Register (first call) or update the merchant at the gateway."""

    company = _require_company()
    profile = _get_profile(company)
    gateway = _get_gateway(profile)

    try:
        certificate = decrypt_secret(profile.certificate_file)
        certificate_password = decrypt_secret(profile.certificate_password)
    except SecretCryptoError as exc:
        raise FiscalNotConfigured(str(exc)) from exc

    existing_ref = (profile.gateway_company_ref or "").strip()
    payload = build_company_payload(
        profile,
        certificate_base64=certificate,
        certificate_password=certificate_password,
    )
    logger.info(
        "fiscal.company_sync.started company_id=%s mode=%s has_certificate=%s",
        company.id,
        "update" if existing_ref else "create",
        bool(certificate),
    )

    try:
        registration = gateway.register_company(payload, existing_ref=existing_ref or None)
    except FiscalGatewayError as exc:
        logger.warning(
            "fiscal.company_sync.failed company_id=%s error=%s",
            company.id,
            mask_cpf_cnpj(str(exc)),
        )
        raise FiscalGatewayFailure(str(exc), kind=_failure_kind(exc)) from exc

    with transaction.atomic():
        profile = _lockable(MerchantFiscalProfile.all_objects.filter(pk=profile.pk)).get()
        profile.gateway_company_ref = registration.ref
        if registration.certificate_expires_at is not None:
            profile.certificate_expires_at = registration.certificate_expires_at
        profile.gateway_synced_at = timezone.now()
        profile.save(
            update_fields=[
                "gateway_company_ref",
                "certificate_expires_at",
                "gateway_synced_at",
                "updated_at",
            ]
        )

    logger.info(
        "fiscal.company_sync.completed company_id=%s company_ref=%s actor_id=%s",
        company.id,
        registration.ref,
        getattr(actor, "id", None),
    )
    return CompanySyncResult(
        company_ref=registration.ref,
        certificate_expires_at=profile.certificate_expires_at,
        created=not existing_ref,
    )
