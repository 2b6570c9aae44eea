from __future__ import annotations

import logging
from typing import Any, Mapping

from finance.fiscal.models import FiscalDocument, FiscalEvent

logger = logging.getLogger(__name__)


def record_fiscal_event(
    document: FiscalDocument,
    event_type: str,
    *,
    from_status: str = "",
    to_status: str = "",
    message: str = "",
    payload: Mapping[str, Any] | None = None,
    actor=None,
    correlation_id: str = "",
) -> FiscalEvent:
    """Append one row to the fiscal audit trail of `document`."""

    if actor is not None and not getattr(actor, "is_authenticated", False):
        actor = None

    event = FiscalEvent.all_objects.create(
        company_id=document.company_id,
        document=document,
        event_type=event_type,
        from_status=from_status or "",
        to_status=to_status or "",
        message=message or "",
        payload=dict(payload or {}),
        actor=actor,
        correlation_id=(correlation_id or "")[:64],
    )
    logger.info(
        "fiscal.event.recorded company_id=%s document_id=%s event_type=%s from_status=%s to_status=%s",
        document.company_id,
        document.id,
        event_type,
        from_status or "-",
        to_status or "-",
    )
    return event
