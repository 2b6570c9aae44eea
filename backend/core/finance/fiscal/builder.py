"""NF-e request construction for the fiscal gateway.

Everything here is a pure transformation of already-loaded model instances
(or any objects exposing the same attributes) into the JSON body the gateway
expects. Nothing in this module performs I/O or raises on bad data: values
are sanitized, truncated and mapped to safe fallback codes instead.
Precondition checks (items present, destination complete) belong to
`finance.fiscal.services`.

Amounts are rounded exactly once, here, with ROUND_HALF_UP: money to 2
decimal places, quantities and unit prices to 4. They are emitted as
fixed-point strings so the precision the authority receives is explicit.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Sequence

logger = logging.getLogger(__name__)

MONEY_PLACES = Decimal("0.01")
UNIT_PLACES = Decimal("0.0001")
ZERO = Decimal("0")

# Field limits from the NF-e layout (Manual de Orientação do Contribuinte).
MAX_LENGTHS = {
    "name": 60,
    "trade_name": 60,
    "street": 60,
    "number": 60,
    "complement": 60,
    "district": 60,
    "city": 60,
    "email": 60,
    "phone": 14,
    "operation_nature": 60,
    "product_code": 60,
    "description": 120,
    "unit": 6,
    "additional_info": 5000,
}

TAX_REGIME_CODES = {
    "simples_nacional": "1",
    "simples_nacional_excesso": "2",
    "lucro_presumido": "3",
    "lucro_real": "3",
    "regime_normal": "3",
}
DEFAULT_TAX_REGIME_CODE = "1"

PAYMENT_METHOD_CODES = {
    "cash": "01",
    "dinheiro": "01",
    "check": "02",
    "credit_card": "03",
    "credito": "03",
    "debit_card": "04",
    "debito": "04",
    "store_credit": "05",
    "boleto": "15",
    "pix": "17",
    "other": "99",
}
DEFAULT_PAYMENT_METHOD_CODE = "99"

PURPOSE_CODES = {
    "normal": "1",
    "complementary": "2",
    "adjustment": "3",
    "return": "4",
}
DEFAULT_PURPOSE_CODE = "1"

# indicador_inscricao_estadual_destinatario
IE_CONTRIBUTOR = "1"
IE_EXEMPT = "2"
IE_NON_CONTRIBUTOR = "9"

DEFAULT_ICMS_SITUATION = {"1": "102", "2": "102", "3": "41"}
DEFAULT_PIS_COFINS_SITUATION = "07"
DEFAULT_UNIT = "UN"
CFOP_INTRASTATE = "5102"
CFOP_INTERSTATE = "6102"
# Internet sale.
BUYER_PRESENCE = "2"

_NON_DIGITS_RE = re.compile(r"\D+")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class DocumentTotals:
    products: Decimal
    freight: Decimal
    insurance: Decimal
    other_charges: Decimal
    discount: Decimal
    total: Decimal


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------


def only_digits(value: Any) -> str:
    if value is None:
        return ""
    return _NON_DIGITS_RE.sub("", str(value))


def truncate(value: Any, max_length: int) -> str:
    text = "" if value is None else str(value).strip()
    return text[:max_length].rstrip()


def normalize_text(value: Any, field: str, *, upper: bool = True) -> str:
    """Collapse whitespace, uppercase and cut to the layout limit of `field`."""

    text = _WHITESPACE_RE.sub(" ", "" if value is None else str(value)).strip()
    if upper:
        text = text.upper()
    return truncate(text, MAX_LENGTHS[field])


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None or value == "":
        return ZERO
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        logger.warning("fiscal.builder.invalid_decimal value=%r", value)
        return ZERO


def round_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def round_unit(value: Any) -> Decimal:
    return to_decimal(value).quantize(UNIT_PLACES, rounding=ROUND_HALF_UP)


def line_total(quantity: Any, unit_price: Any) -> Decimal:
    """Gross line value from the unrounded quantity and unit price."""

    return round_money(to_decimal(quantity) * to_decimal(unit_price))


def _fmt(value: Decimal) -> str:
    return format(value, "f")


def _compact(data: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value not in (None, "")}


def allocate(amount: Decimal, weights: Sequence[Decimal]) -> list[Decimal]:
    """Split `amount` across `weights` in cents, remainder on the last share.

    The shares always add up to `amount` exactly, so item-level values
    reproduce the document-level totals.
    """

    amount = round_money(amount)
    if not weights:
        return []
    if amount == ZERO:
        return [ZERO.quantize(MONEY_PLACES)] * len(weights)

    total_weight = sum(weights, ZERO)
    shares: list[Decimal] = []
    allocated = ZERO
    for index, weight in enumerate(weights):
        if index == len(weights) - 1:
            share = amount - allocated
        elif total_weight > ZERO:
            share = min(round_money(amount * weight / total_weight), amount - allocated)
        else:
            share = min(round_money(amount / len(weights)), amount - allocated)
        shares.append(share)
        allocated += share
    return shares


# ---------------------------------------------------------------------------
# Code mappings
# ---------------------------------------------------------------------------


def _map_code(value: Any, mapping: Mapping[str, str], fallback: str, kind: str) -> str:
    key = str(value or "").strip().lower()
    code = mapping.get(key)
    if code is None:
        logger.warning("fiscal.builder.unmapped kind=%s value=%r fallback=%s", kind, key, fallback)
        return fallback
    return code


def map_tax_regime(value: Any) -> str:
    return _map_code(value, TAX_REGIME_CODES, DEFAULT_TAX_REGIME_CODE, "tax_regime")


def map_payment_method(value: Any) -> str:
    return _map_code(value, PAYMENT_METHOD_CODES, DEFAULT_PAYMENT_METHOD_CODE, "payment_method")


def map_purpose(value: Any) -> str:
    return _map_code(value, PURPOSE_CODES, DEFAULT_PURPOSE_CODE, "purpose")


def recipient_ie_indicator(tax_id: Any, state_registration: Any) -> str:
    """Contributor indicator for the destination party.

    CNPJ with a state registration: contributor. CNPJ without one (or marked
    ISENTO): exempt. CPF or no tax id: non-contributor.
    """

    if len(only_digits(tax_id)) != 14:
        return IE_NON_CONTRIBUTOR
    registration = str(state_registration or "").strip().upper()
    if registration and registration != "ISENTO" and only_digits(registration):
        return IE_CONTRIBUTOR
    return IE_EXEMPT


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


def compute_totals(document: Any, items: Iterable[Any]) -> DocumentTotals:
    items = list(items)
    products = sum((line_total(item.quantity, item.unit_price) for item in items), ZERO)
    item_discounts = sum((round_money(getattr(item, "discount_amount", 0)) for item in items), ZERO)

    freight = round_money(document.freight_amount)
    insurance = round_money(document.insurance_amount)
    other_charges = round_money(document.other_charges_amount)
    discount = round_money(document.discount_amount) + item_discounts
    total = products + freight + insurance + other_charges - discount
    return DocumentTotals(
        products=products,
        freight=freight,
        insurance=insurance,
        other_charges=other_charges,
        discount=discount,
        total=total,
    )


def build_company_payload(
    profile: Any,
    *,
    certificate_base64: str = "",
    certificate_password: str = "",
) -> dict[str, Any]:
    """Body of the gateway company registration (create or update)."""

    payload = {
        "cnpj": only_digits(profile.cnpj),
        "razao_social": normalize_text(profile.legal_name, "name"),
        "nome_fantasia": normalize_text(profile.trade_name, "trade_name"),
        "inscricao_estadual": only_digits(profile.state_registration),
        "inscricao_municipal": only_digits(profile.municipal_registration),
        "regime_tributario": map_tax_regime(profile.tax_regime),
        "logradouro": normalize_text(profile.street, "street"),
        "numero": normalize_text(profile.number, "number") or "S/N",
        "complemento": normalize_text(profile.complement, "complement"),
        "bairro": normalize_text(profile.district, "district"),
        "municipio": normalize_text(profile.city, "city"),
        "uf": str(profile.state or "").strip().upper()[:2],
        "cep": only_digits(profile.postal_code),
        "telefone": truncate(only_digits(profile.phone), MAX_LENGTHS["phone"]),
        "email": normalize_text(profile.email, "email", upper=False),
        "habilita_nfe": True,
        "arquivo_certificado_base64": certificate_base64,
        "senha_certificado": certificate_password,
    }
    return _compact(payload)


def _cfop_for(item: Any, document: Any, profile: Any) -> str:
    explicit = only_digits(getattr(item, "cfop", "")) or only_digits(document.operation_code)
    if explicit:
        return explicit[:4]
    emitter_state = str(profile.state or "").strip().upper()
    recipient_state = str(document.recipient_state or "").strip().upper()
    if emitter_state and recipient_state and emitter_state != recipient_state:
        return CFOP_INTERSTATE
    return CFOP_INTRASTATE


def build_item_payloads(
    profile: Any,
    document: Any,
    items: Sequence[Any],
    totals: DocumentTotals,
) -> list[dict[str, Any]]:
    regime_code = map_tax_regime(profile.tax_regime)
    gross_values = [line_total(item.quantity, item.unit_price) for item in items]

    # Document-level charges are spread over the items so item sums match totals.
    freight_shares = allocate(totals.freight, gross_values)
    insurance_shares = allocate(totals.insurance, gross_values)
    other_shares = allocate(totals.other_charges, gross_values)
    discount_shares = allocate(round_money(document.discount_amount), gross_values)

    payloads = []
    for index, item in enumerate(items):
        quantity = round_unit(item.quantity)
        unit_price = round_unit(item.unit_price)
        unit = normalize_text(item.unit, "unit") or DEFAULT_UNIT
        item_discount = round_money(getattr(item, "discount_amount", 0)) + discount_shares[index]
        pis_cofins = (
            only_digits(getattr(item, "pis_situation", "")) or DEFAULT_PIS_COFINS_SITUATION
        )

        payloads.append(
            _compact(
                {
                    "numero_item": item.item_number or index + 1,
                    "codigo_produto": normalize_text(item.product_code, "product_code", upper=False),
                    "descricao": normalize_text(item.description, "description"),
                    "cfop": _cfop_for(item, document, profile),
                    "codigo_ncm": only_digits(item.ncm)[:8],
                    "unidade_comercial": unit,
                    "quantidade_comercial": _fmt(quantity),
                    "valor_unitario_comercial": _fmt(unit_price),
                    "unidade_tributavel": unit,
                    "quantidade_tributavel": _fmt(quantity),
                    "valor_unitario_tributavel": _fmt(unit_price),
                    "valor_bruto": _fmt(gross_values[index]),
                    "valor_frete": _fmt(freight_shares[index]) if freight_shares[index] else None,
                    "valor_seguro": _fmt(insurance_shares[index]) if insurance_shares[index] else None,
                    "valor_outras_despesas": _fmt(other_shares[index]) if other_shares[index] else None,
                    "valor_desconto": _fmt(item_discount) if item_discount else None,
                    "icms_origem": str(item.origin if item.origin is not None else 0),
                    "icms_situacao_tributaria": (
                        only_digits(item.icms_situation)
                        or DEFAULT_ICMS_SITUATION.get(regime_code, "102")
                    ),
                    "pis_situacao_tributaria": pis_cofins,
                    "cofins_situacao_tributaria": (
                        only_digits(getattr(item, "cofins_situation", "")) or pis_cofins
                    ),
                }
            )
        )
    return payloads


def build_document_payload(
    profile: Any,
    document: Any,
    items: Sequence[Any],
    *,
    issued_at: datetime | None = None,
) -> dict[str, Any]:
    """Authorization request body for `document`.

    `items` must be ordered by item number. Missing optional data is simply
    omitted from the body.
    """

    items = list(items)
    totals = compute_totals(document, items)

    recipient_tax_id = only_digits(document.recipient_tax_id)
    ie_indicator = recipient_ie_indicator(recipient_tax_id, document.recipient_state_registration)
    emitter_state = str(profile.state or "").strip().upper()
    recipient_state = str(document.recipient_state or "").strip().upper()[:2]

    payload: dict[str, Any] = {
        "natureza_operacao": normalize_text(document.operation_nature, "operation_nature"),
        "data_emissao": issued_at.isoformat() if issued_at else None,
        "serie": str(document.series) if document.series else None,
        "numero": str(document.number) if document.number else None,
        "tipo_documento": "0" if document.operation_type == "INCOMING" else "1",
        "local_destino": "2" if emitter_state and recipient_state and emitter_state != recipient_state else "1",
        "finalidade_emissao": map_purpose(document.purpose),
        "consumidor_final": "1" if document.final_consumer else "0",
        "presenca_comprador": BUYER_PRESENCE,
        "cnpj_emitente": only_digits(profile.cnpj),
        "inscricao_estadual_emitente": only_digits(profile.state_registration),
        "nome_destinatario": normalize_text(document.recipient_name, "name"),
        "indicador_inscricao_estadual_destinatario": ie_indicator,
        "inscricao_estadual_destinatario": (
            only_digits(document.recipient_state_registration)
            if ie_indicator == IE_CONTRIBUTOR
            else None
        ),
        "logradouro_destinatario": normalize_text(document.recipient_street, "street"),
        "numero_destinatario": normalize_text(document.recipient_number, "number") or "S/N",
        "complemento_destinatario": normalize_text(document.recipient_complement, "complement"),
        "bairro_destinatario": normalize_text(document.recipient_district, "district"),
        "municipio_destinatario": normalize_text(document.recipient_city, "city"),
        "codigo_municipio_destinatario": only_digits(document.recipient_city_code)[:7],
        "uf_destinatario": recipient_state,
        "cep_destinatario": only_digits(document.recipient_postal_code)[:8],
        "pais_destinatario": "BRASIL",
        "telefone_destinatario": truncate(only_digits(document.recipient_phone), MAX_LENGTHS["phone"]),
        "email_destinatario": normalize_text(document.recipient_email, "email", upper=False),
        "valor_produtos": _fmt(totals.products),
        "valor_frete": _fmt(totals.freight),
        "valor_seguro": _fmt(totals.insurance),
        "valor_outras_despesas": _fmt(totals.other_charges),
        "valor_desconto": _fmt(totals.discount),
        "valor_total": _fmt(totals.total),
        "modalidade_frete": str(document.freight_modality or "9"),
        "informacoes_adicionais_contribuinte": normalize_text(
            document.additional_info, "additional_info", upper=False
        ),
    }

    if len(recipient_tax_id) == 14:
        payload["cnpj_destinatario"] = recipient_tax_id
    elif recipient_tax_id:
        payload["cpf_destinatario"] = recipient_tax_id[:11]

    payload = _compact(payload)
    payload["items"] = build_item_payloads(profile, document, items, totals)
    payload["formas_pagamento"] = [
        {
            "forma_pagamento": map_payment_method(document.payment_method or "other"),
            "valor_pagamento": _fmt(totals.total),
        }
    ]
    return payload
