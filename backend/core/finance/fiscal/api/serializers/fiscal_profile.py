from __future__ import annotations

import base64
import binascii

from rest_framework import serializers

from finance.fiscal.adapters.factory import GATEWAYS
from finance.fiscal.models import MerchantFiscalProfile


class MerchantFiscalProfileUpsertSerializer(serializers.ModelSerializer):
    """Write side of the merchant profile.

    Secrets are accepted in plain text and encrypted by the view; a blank
    secret keeps the stored one.
    """

    api_token = serializers.CharField(write_only=True, required=False, allow_blank=True, default="")
    certificate_file = serializers.CharField(
        write_only=True,
        required=False,
        allow_blank=True,
        default="",
        help_text="Base64-encoded A1 certificate (PFX).",
    )
    certificate_password = serializers.CharField(
        write_only=True,
        required=False,
        allow_blank=True,
        default="",
    )

    class Meta:
        model = MerchantFiscalProfile
        fields = (
            "provider_type",
            "environment",
            "api_token",
            "cnpj",
            "legal_name",
            "trade_name",
            "state_registration",
            "municipal_registration",
            "tax_regime",
            "street",
            "number",
            "complement",
            "district",
            "city",
            "city_code",
            "state",
            "postal_code",
            "phone",
            "email",
            "certificate_file",
            "certificate_password",
            "default_series",
            "next_document_number",
            "auto_create_shipment",
        )

    def validate_provider_type(self, value: str) -> str:
        value = (value or "").strip().lower()
        if value not in GATEWAYS:
            raise serializers.ValidationError(
                f"Unsupported provider. Choose one of: {', '.join(sorted(GATEWAYS))}."
            )
        return value

    def validate_cnpj(self, value: str) -> str:
        digits = "".join(ch for ch in value or "" if ch.isdigit())
        if len(digits) != 14:
            raise serializers.ValidationError("CNPJ must have 14 digits.")
        return digits

    def validate_state(self, value: str) -> str:
        return (value or "").strip().upper()

    def validate_certificate_file(self, value: str) -> str:
        value = (value or "").strip()
        if not value:
            return ""
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise serializers.ValidationError("Certificate must be base64-encoded.") from exc
        return value


class MerchantFiscalProfileReadSerializer(serializers.ModelSerializer):
    has_token = serializers.SerializerMethodField()
    has_certificate = serializers.SerializerMethodField()
    is_synced = serializers.BooleanField(read_only=True)

    class Meta:
        model = MerchantFiscalProfile
        fields = (
            "id",
            "provider_type",
            "environment",
            "cnpj",
            "legal_name",
            "trade_name",
            "state_registration",
            "municipal_registration",
            "tax_regime",
            "street",
            "number",
            "complement",
            "district",
            "city",
            "city_code",
            "state",
            "postal_code",
            "phone",
            "email",
            "has_token",
            "has_certificate",
            "certificate_expires_at",
            "gateway_company_ref",
            "gateway_synced_at",
            "is_synced",
            "default_series",
            "next_document_number",
            "auto_create_shipment",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields

    def get_has_token(self, obj: MerchantFiscalProfile) -> bool:
        return bool((obj.api_token or "").strip())

    def get_has_certificate(self, obj: MerchantFiscalProfile) -> bool:
        return bool((obj.certificate_file or "").strip())
