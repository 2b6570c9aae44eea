from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping

from django.conf import settings
from django.utils.module_loading import import_string

ORDER_STATUS_SHIPPED = "shipped"
ORDER_STATUS_DISPATCHED = "dispatched"


class OrderGatewayError(RuntimeError):
    """Base error for order/shipment collaborator failures."""


class OrderResolverNotConfigured(OrderGatewayError):
    """Raised when a document references an order but no resolver is configured."""


@dataclass(frozen=True)
class ShipmentOutcome:
    success: bool
    tracking_code: str = ""
    error: str = ""


def _load(setting_name: str) -> Callable[..., Any] | None:
    path = (getattr(settings, setting_name, "") or "").strip()
    if not path:
        return None
    return import_string(path)


def resolve_order_for_fiscal(*, order_id: int, company_id: int) -> Mapping[str, Any]:
    """Fetch shipping/customer data of an order to fill the NF-e destination.

    The fiscal bounded context never imports the order model. The concrete
    implementation lives with the order subsystem and is configured via
    Django settings.

    Expected returned mapping (all keys optional):
    - customer: {"name", "tax_id", "state_registration", "email", "phone"}
    - shipping_address: {"street", "number", "complement", "district",
      "city", "city_code", "state", "postal_code"}
    - payment_method: str

    Settings:
    - FISCAL_ORDER_RESOLVER: dotted path to a callable with signature:
        resolver(order_id: int, company_id: int) -> Mapping[str, Any]
    """

    resolver = _load("FISCAL_ORDER_RESOLVER")
    if resolver is None:
        raise OrderResolverNotConfigured(
            "FISCAL_ORDER_RESOLVER is not configured. "
            "Provide a resolver callable to fetch order shipping data."
        )
    return resolver(order_id=order_id, company_id=company_id) or {}


def update_order_status(*, order_id: int, company_id: int, status: str, tracking_code: str = "") -> bool:
    """Advance the order to `shipped` or `dispatched`.

    Returns False when FISCAL_ORDER_STATUS_UPDATER is not configured.
    """

    updater = _load("FISCAL_ORDER_STATUS_UPDATER")
    if updater is None:
        return False
    updater(order_id=order_id, company_id=company_id, status=status, tracking_code=tracking_code)
    return True


def create_shipment(*, order_id: int, company_id: int) -> ShipmentOutcome:
    """Ask the shipment subsystem to create a shipment for an order.

    Settings:
    - FISCAL_SHIPMENT_CREATOR: dotted path to a callable returning a mapping
      {"success": bool, "tracking_code": str, "error": str}.
    """

    creator = _load("FISCAL_SHIPMENT_CREATOR")
    if creator is None:
        return ShipmentOutcome(success=False, error="FISCAL_SHIPMENT_CREATOR is not configured.")

    result = creator(order_id=order_id, company_id=company_id) or {}
    return ShipmentOutcome(
        success=bool(result.get("success")),
        tracking_code=str(result.get("tracking_code") or ""),
        error=str(result.get("error") or ""),
    )
