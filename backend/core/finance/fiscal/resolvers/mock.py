from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def mock_order_resolver(*, order_id: int, company_id: int):
    """Local/dev order resolver for NF-e destination data.

    Use in development only by setting:
      FISCAL_ORDER_RESOLVER=finance.fiscal.resolvers.mock.mock_order_resolver
    """

    order_id_int = int(order_id)
    return {
        "customer": {
            "name": f"Cliente Pedido {order_id_int}",
            "tax_id": "123.456.789-09",
            "email": f"cliente{order_id_int}@example.com",
            "phone": "(11) 99999-0000",
        },
        "shipping_address": {
            "street": "Rua Fiscal",
            "number": str(order_id_int % 999),
            "district": "Centro",
            "city": "Sao Paulo",
            "city_code": "3550308",
            "state": "SP",
            "postal_code": "01001-000",
        },
        "payment_method": "pix",
    }


def mock_order_status_updater(*, order_id: int, company_id: int, status: str, tracking_code: str = ""):
    logger.info(
        "fiscal.mock.order_status company_id=%s order_id=%s status=%s tracking_code=%s",
        company_id,
        order_id,
        status,
        tracking_code,
    )


def mock_shipment_creator(*, order_id: int, company_id: int):
    return {"success": True, "tracking_code": f"MOCK{int(order_id):09d}BR", "error": ""}
