from __future__ import annotations

from rest_framework import serializers

from finance.fiscal.adapters.base import (
    CANCEL_JUSTIFICATION_MAX_LENGTH,
    CANCEL_JUSTIFICATION_MIN_LENGTH,
)
from finance.fiscal.models import FiscalDocument, FiscalDocumentItem, FiscalEvent


class FiscalDocumentItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = FiscalDocumentItem
        fields = (
            "item_number",
            "product_code",
            "description",
            "ncm",
            "cfop",
            "unit",
            "quantity",
            "unit_price",
            "line_total",
            "discount_amount",
            "origin",
            "icms_situation",
        )
        read_only_fields = fields


class FiscalEventSerializer(serializers.ModelSerializer):
    actor_username = serializers.CharField(source="actor.username", read_only=True, default=None)

    class Meta:
        model = FiscalEvent
        fields = (
            "id",
            "event_type",
            "from_status",
            "to_status",
            "message",
            "actor_username",
            "correlation_id",
            "occurred_at",
        )
        read_only_fields = fields


class FiscalDocumentSerializer(serializers.ModelSerializer):
    items = FiscalDocumentItemSerializer(many=True, read_only=True)

    class Meta:
        model = FiscalDocument
        fields = (
            "id",
            "order_id",
            "series",
            "number",
            "operation_nature",
            "status",
            "recipient_name",
            "recipient_tax_id",
            "recipient_city",
            "recipient_state",
            "products_amount",
            "freight_amount",
            "insurance_amount",
            "other_charges_amount",
            "discount_amount",
            "total_amount",
            "gateway_ref",
            "access_key",
            "protocol_number",
            "authority_status_code",
            "authority_message",
            "danfe_url",
            "xml_url",
            "submitted_at",
            "authorized_at",
            "cancelled_at",
            "cancel_justification",
            "items",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class FiscalDocumentDetailSerializer(FiscalDocumentSerializer):
    events = FiscalEventSerializer(many=True, read_only=True)

    class Meta(FiscalDocumentSerializer.Meta):
        fields = FiscalDocumentSerializer.Meta.fields + ("events",)
        read_only_fields = fields


class CancelFiscalDocumentSerializer(serializers.Serializer):
    justification = serializers.CharField(
        allow_blank=True,
        help_text=(
            f"Between {CANCEL_JUSTIFICATION_MIN_LENGTH} and "
            f"{CANCEL_JUSTIFICATION_MAX_LENGTH} characters."
        ),
    )
