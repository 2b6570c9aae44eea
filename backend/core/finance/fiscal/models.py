from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import models

from finance.fiscal.builder import line_total
from tenancy.models import BaseTenantModel


class MerchantFiscalProfile(BaseTenantModel):
    """Merchant registration data used as the NF-e emitter.

    `gateway_company_ref` is the id the gateway assigned on the first company
    sync. Its absence means the next sync creates the company; its presence
    means the sync updates it.

    Secrets (`api_token`, `certificate_file`, `certificate_password`) are
    stored Fernet-encrypted (see `finance.fiscal.crypto`).
    """

    class Environment(models.TextChoices):
        HOMOLOGATION = "HOMOLOGATION", "Homologation"
        PRODUCTION = "PRODUCTION", "Production"

    class TaxRegime(models.TextChoices):
        SIMPLES_NACIONAL = "simples_nacional", "Simples Nacional"
        SIMPLES_NACIONAL_EXCESSO = "simples_nacional_excesso", "Simples Nacional (excesso de sublimite)"
        LUCRO_PRESUMIDO = "lucro_presumido", "Lucro Presumido"
        LUCRO_REAL = "lucro_real", "Lucro Real"

    provider_type = models.CharField(
        max_length=60,
        default="focusnfe",
        help_text="Gateway identifier (focusnfe, mock).",
    )
    environment = models.CharField(
        max_length=20,
        choices=Environment.choices,
        default=Environment.HOMOLOGATION,
    )
    api_token = models.TextField(blank=True)

    cnpj = models.CharField(max_length=18)
    legal_name = models.CharField(max_length=200)
    trade_name = models.CharField(max_length=200, blank=True)
    state_registration = models.CharField(max_length=20, blank=True)
    municipal_registration = models.CharField(max_length=20, blank=True)
    tax_regime = models.CharField(
        max_length=40,
        choices=TaxRegime.choices,
        default=TaxRegime.SIMPLES_NACIONAL,
    )

    street = models.CharField(max_length=120, blank=True)
    number = models.CharField(max_length=20, blank=True)
    complement = models.CharField(max_length=120, blank=True)
    district = models.CharField(max_length=120, blank=True)
    city = models.CharField(max_length=120, blank=True)
    city_code = models.CharField(max_length=7, blank=True, help_text="IBGE municipality code.")
    state = models.CharField(max_length=2, blank=True)
    postal_code = models.CharField(max_length=9, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)

    certificate_file = models.TextField(blank=True, help_text="Encrypted base64 A1 certificate (PFX).")
    certificate_password = models.TextField(blank=True)
    certificate_expires_at = models.DateTimeField(null=True, blank=True)

    gateway_company_ref = models.CharField(max_length=100, blank=True)
    gateway_synced_at = models.DateTimeField(null=True, blank=True)

    default_series = models.PositiveIntegerField(default=1)
    next_document_number = models.PositiveIntegerField(default=1)
    auto_create_shipment = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Merchant Fiscal Profile"
        verbose_name_plural = "Merchant Fiscal Profiles"
        constraints = [
            models.UniqueConstraint(
                fields=("company",),
                name="uq_merchant_fiscal_profile_company",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.legal_name} ({self.environment})"

    @property
    def is_synced(self) -> bool:
        return bool((self.gateway_company_ref or "").strip())


class FiscalDocument(BaseTenantModel):
    """NF-e lifecycle record.

    Created as DRAFT by the back office, then driven exclusively by
    `finance.fiscal.services`:

        DRAFT -> SUBMITTED -> AUTHORIZED | REJECTED
        REJECTED -> SUBMITTED
        AUTHORIZED -> CANCELLED

    `order_id` is a numeric reference to the order subsystem (no FK, the
    order lives in another bounded context).
    """

    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        SUBMITTED = "SUBMITTED", "Submitted"
        AUTHORIZED = "AUTHORIZED", "Authorized"
        REJECTED = "REJECTED", "Rejected"
        CANCELLED = "CANCELLED", "Cancelled"

    ALLOWED_TRANSITIONS = {
        Status.DRAFT: frozenset({Status.SUBMITTED}),
        Status.SUBMITTED: frozenset({Status.AUTHORIZED, Status.REJECTED}),
        Status.REJECTED: frozenset({Status.SUBMITTED}),
        Status.AUTHORIZED: frozenset({Status.CANCELLED}),
        Status.CANCELLED: frozenset(),
    }

    class OperationType(models.TextChoices):
        INCOMING = "INCOMING", "Entrada"
        OUTGOING = "OUTGOING", "Saída"

    class Purpose(models.TextChoices):
        NORMAL = "normal", "Normal"
        COMPLEMENTARY = "complementary", "Complementar"
        ADJUSTMENT = "adjustment", "Ajuste"
        RETURN = "return", "Devolução"

    class PaymentMethod(models.TextChoices):
        CASH = "cash", "Dinheiro"
        CREDIT_CARD = "credit_card", "Cartão de crédito"
        DEBIT_CARD = "debit_card", "Cartão de débito"
        STORE_CREDIT = "store_credit", "Crédito loja"
        BOLETO = "boleto", "Boleto"
        PIX = "pix", "PIX"
        OTHER = "other", "Outros"

    class FreightModality(models.TextChoices):
        EMITTER = "0", "Por conta do emitente"
        RECIPIENT = "1", "Por conta do destinatário"
        NONE = "9", "Sem frete"

    order_id = models.PositiveBigIntegerField(null=True, blank=True, db_index=True)

    series = models.PositiveIntegerField(null=True, blank=True)
    number = models.PositiveIntegerField(null=True, blank=True)
    operation_nature = models.CharField(max_length=60, default="Venda de mercadoria")
    operation_code = models.CharField(max_length=4, blank=True, help_text="Default CFOP for items.")
    operation_type = models.CharField(
        max_length=10,
        choices=OperationType.choices,
        default=OperationType.OUTGOING,
    )
    purpose = models.CharField(max_length=20, choices=Purpose.choices, default=Purpose.NORMAL)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, blank=True)
    final_consumer = models.BooleanField(default=True)
    freight_modality = models.CharField(
        max_length=1,
        choices=FreightModality.choices,
        default=FreightModality.NONE,
    )

    recipient_name = models.CharField(max_length=200, blank=True)
    recipient_tax_id = models.CharField(max_length=18, blank=True, help_text="CPF or CNPJ.")
    recipient_state_registration = models.CharField(max_length=20, blank=True)
    recipient_street = models.CharField(max_length=120, blank=True)
    recipient_number = models.CharField(max_length=20, blank=True)
    recipient_complement = models.CharField(max_length=120, blank=True)
    recipient_district = models.CharField(max_length=120, blank=True)
    recipient_city = models.CharField(max_length=120, blank=True)
    recipient_city_code = models.CharField(max_length=7, blank=True)
    recipient_state = models.CharField(max_length=2, blank=True)
    recipient_postal_code = models.CharField(max_length=9, blank=True)
    recipient_phone = models.CharField(max_length=20, blank=True)
    recipient_email = models.EmailField(blank=True)

    products_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    freight_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    insurance_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    other_charges_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    discount_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    additional_info = models.TextField(blank=True)

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
        db_index=True,
    )
    gateway_ref = models.CharField(
        max_length=100,
        blank=True,
        help_text="Correlation reference sent to the gateway (see finance.fiscal.refs).",
    )
    access_key = models.CharField(max_length=44, blank=True)
    protocol_number = models.CharField(max_length=30, blank=True)
    authority_status_code = models.CharField(max_length=10, blank=True)
    authority_message = models.TextField(blank=True)
    danfe_url = models.URLField(max_length=500, blank=True)
    xml_url = models.URLField(max_length=500, blank=True)

    submitted_at = models.DateTimeField(null=True, blank=True)
    authorized_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancel_justification = models.TextField(blank=True)

    class Meta:
        ordering = ("-created_at", "-id")
        verbose_name = "Fiscal Document"
        verbose_name_plural = "Fiscal Documents"
        indexes = [
            models.Index(fields=("company", "order_id"), name="idx_fiscal_doc_order"),
            models.Index(fields=("company", "status"), name="idx_fiscal_doc_status"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=("company", "gateway_ref"),
                condition=~models.Q(gateway_ref=""),
                name="uq_fiscal_doc_gateway_ref",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"NF-e {self.series or '-'}/{self.number or '-'} ({self.status})"

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in self.ALLOWED_TRANSITIONS.get(self.status, frozenset())

    def delete(self, *args, **kwargs):
        if self.status != self.Status.DRAFT:
            raise ValidationError("Only draft fiscal documents can be deleted.")
        return super().delete(*args, **kwargs)


class FiscalDocumentItem(BaseTenantModel):
    """Line item. Editable only while the parent document is a draft."""

    document = models.ForeignKey(
        FiscalDocument,
        on_delete=models.CASCADE,
        related_name="items",
    )
    item_number = models.PositiveIntegerField()
    product_code = models.CharField(max_length=60)
    description = models.CharField(max_length=255)
    ncm = models.CharField(max_length=10, blank=True, help_text="8-digit tariff code.")
    cfop = models.CharField(max_length=4, blank=True)
    unit = models.CharField(max_length=6, default="UN")
    quantity = models.DecimalField(
        max_digits=15,
        decimal_places=4,
        validators=[MinValueValidator(0)],
    )
    unit_price = models.DecimalField(
        max_digits=21,
        decimal_places=10,
        validators=[MinValueValidator(0)],
    )
    line_total = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    discount_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    origin = models.PositiveSmallIntegerField(default=0, help_text="ICMS goods origin (0-8).")
    icms_situation = models.CharField(max_length=3, blank=True, help_text="CST or CSOSN.")
    pis_situation = models.CharField(max_length=2, blank=True)
    cofins_situation = models.CharField(max_length=2, blank=True)

    class Meta:
        ordering = ("document_id", "item_number")
        verbose_name = "Fiscal Document Item"
        verbose_name_plural = "Fiscal Document Items"
        constraints = [
            models.UniqueConstraint(
                fields=("document", "item_number"),
                name="uq_fiscal_doc_item_number",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.item_number} - {self.description}"

    def _ensure_document_is_draft(self):
        status = (
            FiscalDocument.all_objects.filter(pk=self.document_id)
            .values_list("status", flat=True)
            .first()
        )
        if status != FiscalDocument.Status.DRAFT:
            raise ValidationError("Items are immutable once the document leaves draft.")

    def save(self, *args, **kwargs):
        self._ensure_document_is_draft()
        if self.document_id and not self.company_id:
            self.company_id = self.document.company_id
        self.line_total = line_total(self.quantity, self.unit_price)
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        self._ensure_document_is_draft()
        return super().delete(*args, **kwargs)


class FiscalEvent(BaseTenantModel):
    """Append-only audit trail of fiscal transitions and gateway outcomes."""

    class EventType(models.TextChoices):
        SUBMITTED = "submitted", "Submitted"
        AUTHORIZED = "authorized", "Authorized"
        REJECTED = "rejected", "Rejected"
        CANCELLED = "cancelled", "Cancelled"
        STATUS_CHECK = "status_check", "Status check"
        SUBMISSION_ERROR = "submission_error", "Submission error"
        CANCEL_ERROR = "cancel_error", "Cancel error"

    document = models.ForeignKey(
        FiscalDocument,
        on_delete=models.PROTECT,
        related_name="events",
    )
    event_type = models.CharField(max_length=30, choices=EventType.choices, db_index=True)
    from_status = models.CharField(max_length=20, blank=True)
    to_status = models.CharField(max_length=20, blank=True)
    message = models.TextField(blank=True)
    payload = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="fiscal_events",
    )
    correlation_id = models.CharField(max_length=64, blank=True)
    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ("occurred_at", "id")
        verbose_name = "Fiscal Event"
        verbose_name_plural = "Fiscal Events"
        indexes = [
            models.Index(fields=("company", "document", "occurred_at"), name="idx_fiscal_event_doc"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.document_id}:{self.event_type}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Fiscal events are immutable.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Fiscal events cannot be deleted.")
