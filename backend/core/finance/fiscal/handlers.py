from __future__ import annotations

import logging

from django.dispatch import receiver

from finance.fiscal.order_gateway import (
    ORDER_STATUS_DISPATCHED,
    ORDER_STATUS_SHIPPED,
    ShipmentOutcome,
    create_shipment,
    update_order_status,
)
from finance.fiscal.signals import fiscal_document_authorized

logger = logging.getLogger(__name__)


@receiver(fiscal_document_authorized, dispatch_uid="finance.fiscal.dispatch_shipment_on_authorization")
def dispatch_shipment_on_authorization(sender, document, auto_create_shipment=True, **kwargs):
    """Create the shipment of an authorized order and advance the order.

    A shipment failure never fails the fiscal flow: the order moves to the
    `dispatched` placeholder instead of `shipped`.
    """

    if not document.order_id:
        return

    outcome = ShipmentOutcome(success=False, error="Automatic shipment creation disabled.")
    if auto_create_shipment:
        try:
            outcome = create_shipment(order_id=document.order_id, company_id=document.company_id)
        except Exception as exc:
            logger.exception(
                "fiscal.shipment.create_failed company_id=%s document_id=%s order_id=%s",
                document.company_id,
                document.id,
                document.order_id,
            )
            outcome = ShipmentOutcome(success=False, error=str(exc))

    if outcome.success:
        status, tracking_code = ORDER_STATUS_SHIPPED, outcome.tracking_code
    else:
        status, tracking_code = ORDER_STATUS_DISPATCHED, ""

    try:
        updated = update_order_status(
            order_id=document.order_id,
            company_id=document.company_id,
            status=status,
            tracking_code=tracking_code,
        )
    except Exception:
        logger.exception(
            "fiscal.order_status.update_failed company_id=%s document_id=%s order_id=%s status=%s",
            document.company_id,
            document.id,
            document.order_id,
            status,
        )
        return

    logger.info(
        "fiscal.order_status.advanced company_id=%s document_id=%s order_id=%s status=%s updated=%s shipment_error=%s",
        document.company_id,
        document.id,
        document.order_id,
        status,
        updated,
        outcome.error or "-",
    )
