"""Order and shipment collaborators wired through settings in tests.

Every call is recorded in module-level lists; tests call `reset()` in setUp.
"""

from __future__ import annotations

from typing import Any, Mapping

ORDER_LOOKUPS: list[tuple[int, int]] = []
ORDER_STATUS_UPDATES: list[tuple[int, int, str, str]] = []
SHIPMENT_REQUESTS: list[tuple[int, int]] = []


def reset() -> None:
    ORDER_LOOKUPS.clear()
    ORDER_STATUS_UPDATES.clear()
    SHIPMENT_REQUESTS.clear()


def order_resolver(*, order_id: int, company_id: int) -> Mapping[str, Any]:
    ORDER_LOOKUPS.append((order_id, company_id))
    return {
        "customer": {
            "name": f"Cliente Pedido {order_id}",
            "tax_id": "123.456.789-09",
            "email": "cliente@example.com",
            "phone": "(11) 98888-7777",
        },
        "shipping_address": {
            "street": "Rua das Flores",
            "number": "100",
            "district": "Centro",
            "city": "Campinas",
            "city_code": "3509502",
            "state": "SP",
            "postal_code": "13010-000",
        },
        "payment_method": "pix",
    }


def order_status_updater(*, order_id: int, company_id: int, status: str, tracking_code: str = "") -> None:
    ORDER_STATUS_UPDATES.append((order_id, company_id, status, tracking_code))


def shipment_creator(*, order_id: int, company_id: int) -> Mapping[str, Any]:
    SHIPMENT_REQUESTS.append((order_id, company_id))
    return {"success": True, "tracking_code": f"TRK{order_id}BR"}


def failing_shipment_creator(*, order_id: int, company_id: int) -> Mapping[str, Any]:
    SHIPMENT_REQUESTS.append((order_id, company_id))
    return {"success": False, "error": "Carrier unavailable."}


def exploding_shipment_creator(*, order_id: int, company_id: int) -> Mapping[str, Any]:
    SHIPMENT_REQUESTS.append((order_id, company_id))
    raise ConnectionError("carrier down")
