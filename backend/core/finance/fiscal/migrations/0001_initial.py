import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("customers", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="MerchantFiscalProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "provider_type",
                    models.CharField(default="focusnfe", help_text="Gateway identifier (focusnfe, mock).", max_length=60),
                ),
                (
                    "environment",
                    models.CharField(
                        choices=[("HOMOLOGATION", "Homologation"), ("PRODUCTION", "Production")],
                        default="HOMOLOGATION",
                        max_length=20,
                    ),
                ),
                ("api_token", models.TextField(blank=True)),
                ("cnpj", models.CharField(max_length=18)),
                ("legal_name", models.CharField(max_length=200)),
                ("trade_name", models.CharField(blank=True, max_length=200)),
                ("state_registration", models.CharField(blank=True, max_length=20)),
                ("municipal_registration", models.CharField(blank=True, max_length=20)),
                (
                    "tax_regime",
                    models.CharField(
                        choices=[
                            ("simples_nacional", "Simples Nacional"),
                            ("simples_nacional_excesso", "Simples Nacional (excesso de sublimite)"),
                            ("lucro_presumido", "Lucro Presumido"),
                            ("lucro_real", "Lucro Real"),
                        ],
                        default="simples_nacional",
                        max_length=40,
                    ),
                ),
                ("street", models.CharField(blank=True, max_length=120)),
                ("number", models.CharField(blank=True, max_length=20)),
                ("complement", models.CharField(blank=True, max_length=120)),
                ("district", models.CharField(blank=True, max_length=120)),
                ("city", models.CharField(blank=True, max_length=120)),
                ("city_code", models.CharField(blank=True, help_text="IBGE municipality code.", max_length=7)),
                ("state", models.CharField(blank=True, max_length=2)),
                ("postal_code", models.CharField(blank=True, max_length=9)),
                ("phone", models.CharField(blank=True, max_length=20)),
                ("email", models.EmailField(blank=True, max_length=254)),
                (
                    "certificate_file",
                    models.TextField(blank=True, help_text="Encrypted base64 A1 certificate (PFX)."),
                ),
                ("certificate_password", models.TextField(blank=True)),
                ("certificate_expires_at", models.DateTimeField(blank=True, null=True)),
                ("gateway_company_ref", models.CharField(blank=True, max_length=100)),
                ("gateway_synced_at", models.DateTimeField(blank=True, null=True)),
                ("default_series", models.PositiveIntegerField(default=1)),
                ("next_document_number", models.PositiveIntegerField(default=1)),
                ("auto_create_shipment", models.BooleanField(default=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="finance_fiscal_merchantfiscalprofile_set",
                        to="customers.company",
                    ),
                ),
            ],
            options={
                "verbose_name": "Merchant Fiscal Profile",
                "verbose_name_plural": "Merchant Fiscal Profiles",
                "constraints": [
                    models.UniqueConstraint(fields=("company",), name="uq_merchant_fiscal_profile_company")
                ],
            },
        ),
        migrations.CreateModel(
            name="FiscalDocument",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("order_id", models.PositiveBigIntegerField(blank=True, db_index=True, null=True)),
                ("series", models.PositiveIntegerField(blank=True, null=True)),
                ("number", models.PositiveIntegerField(blank=True, null=True)),
                ("operation_nature", models.CharField(default="Venda de mercadoria", max_length=60)),
                (
                    "operation_code",
                    models.CharField(blank=True, help_text="Default CFOP for items.", max_length=4),
                ),
                (
                    "operation_type",
                    models.CharField(
                        choices=[("INCOMING", "Entrada"), ("OUTGOING", "Saída")],
                        default="OUTGOING",
                        max_length=10,
                    ),
                ),
                (
                    "purpose",
                    models.CharField(
                        choices=[
                            ("normal", "Normal"),
                            ("complementary", "Complementar"),
                            ("adjustment", "Ajuste"),
                            ("return", "Devolução"),
                        ],
                        default="normal",
                        max_length=20,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("cash", "Dinheiro"),
                            ("credit_card", "Cartão de crédito"),
                            ("debit_card", "Cartão de débito"),
                            ("store_credit", "Crédito loja"),
                            ("boleto", "Boleto"),
                            ("pix", "PIX"),
                            ("other", "Outros"),
                        ],
                        max_length=20,
                    ),
                ),
                ("final_consumer", models.BooleanField(default=True)),
                (
                    "freight_modality",
                    models.CharField(
                        choices=[
                            ("0", "Por conta do emitente"),
                            ("1", "Por conta do destinatário"),
                            ("9", "Sem frete"),
                        ],
                        default="9",
                        max_length=1,
                    ),
                ),
                ("recipient_name", models.CharField(blank=True, max_length=200)),
                ("recipient_tax_id", models.CharField(blank=True, help_text="CPF or CNPJ.", max_length=18)),
                ("recipient_state_registration", models.CharField(blank=True, max_length=20)),
                ("recipient_street", models.CharField(blank=True, max_length=120)),
                ("recipient_number", models.CharField(blank=True, max_length=20)),
                ("recipient_complement", models.CharField(blank=True, max_length=120)),
                ("recipient_district", models.CharField(blank=True, max_length=120)),
                ("recipient_city", models.CharField(blank=True, max_length=120)),
                ("recipient_city_code", models.CharField(blank=True, max_length=7)),
                ("recipient_state", models.CharField(blank=True, max_length=2)),
                ("recipient_postal_code", models.CharField(blank=True, max_length=9)),
                ("recipient_phone", models.CharField(blank=True, max_length=20)),
                ("recipient_email", models.EmailField(blank=True, max_length=254)),
                ("products_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                (
                    "freight_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        max_digits=14,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "insurance_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        max_digits=14,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "other_charges_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        max_digits=14,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "discount_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        max_digits=14,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("total_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("additional_info", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("DRAFT", "Draft"),
                            ("SUBMITTED", "Submitted"),
                            ("AUTHORIZED", "Authorized"),
                            ("REJECTED", "Rejected"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        db_index=True,
                        default="DRAFT",
                        max_length=20,
                    ),
                ),
                (
                    "gateway_ref",
                    models.CharField(
                        blank=True,
                        help_text="Correlation reference sent to the gateway (see finance.fiscal.refs).",
                        max_length=100,
                    ),
                ),
                ("access_key", models.CharField(blank=True, max_length=44)),
                ("protocol_number", models.CharField(blank=True, max_length=30)),
                ("authority_status_code", models.CharField(blank=True, max_length=10)),
                ("authority_message", models.TextField(blank=True)),
                ("danfe_url", models.URLField(blank=True, max_length=500)),
                ("xml_url", models.URLField(blank=True, max_length=500)),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("authorized_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancel_justification", models.TextField(blank=True)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="finance_fiscal_fiscaldocument_set",
                        to="customers.company",
                    ),
                ),
            ],
            options={
                "verbose_name": "Fiscal Document",
                "verbose_name_plural": "Fiscal Documents",
                "ordering": ("-created_at", "-id"),
                "indexes": [
                    models.Index(fields=["company", "order_id"], name="idx_fiscal_doc_order"),
                    models.Index(fields=["company", "status"], name="idx_fiscal_doc_status"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("gateway_ref", ""), _negated=True),
                        fields=("company", "gateway_ref"),
                        name="uq_fiscal_doc_gateway_ref",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="FiscalDocumentItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("item_number", models.PositiveIntegerField()),
                ("product_code", models.CharField(max_length=60)),
                ("description", models.CharField(max_length=255)),
                ("ncm", models.CharField(blank=True, help_text="8-digit tariff code.", max_length=10)),
                ("cfop", models.CharField(blank=True, max_length=4)),
                ("unit", models.CharField(default="UN", max_length=6)),
                (
                    "quantity",
                    models.DecimalField(
                        decimal_places=4,
                        max_digits=15,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "unit_price",
                    models.DecimalField(
                        decimal_places=10,
                        max_digits=21,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("line_total", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("discount_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                (
                    "origin",
                    models.PositiveSmallIntegerField(default=0, help_text="ICMS goods origin (0-8)."),
                ),
                ("icms_situation", models.CharField(blank=True, help_text="CST or CSOSN.", max_length=3)),
                ("pis_situation", models.CharField(blank=True, max_length=2)),
                ("cofins_situation", models.CharField(blank=True, max_length=2)),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="finance_fiscal_fiscaldocumentitem_set",
                        to="customers.company",
                    ),
                ),
                (
                    "document",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="finance_fiscal.fiscaldocument",
                    ),
                ),
            ],
            options={
                "verbose_name": "Fiscal Document Item",
                "verbose_name_plural": "Fiscal Document Items",
                "ordering": ("document_id", "item_number"),
                "constraints": [
                    models.UniqueConstraint(fields=("document", "item_number"), name="uq_fiscal_doc_item_number")
                ],
            },
        ),
        migrations.CreateModel(
            name="FiscalEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("submitted", "Submitted"),
                            ("authorized", "Authorized"),
                            ("rejected", "Rejected"),
                            ("cancelled", "Cancelled"),
                            ("status_check", "Status check"),
                            ("submission_error", "Submission error"),
                            ("cancel_error", "Cancel error"),
                        ],
                        db_index=True,
                        max_length=30,
                    ),
                ),
                ("from_status", models.CharField(blank=True, max_length=20)),
                ("to_status", models.CharField(blank=True, max_length=20)),
                ("message", models.TextField(blank=True)),
                (
                    "payload",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                    ),
                ),
                ("correlation_id", models.CharField(blank=True, max_length=64)),
                ("occurred_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="fiscal_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "company",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="finance_fiscal_fiscalevent_set",
                        to="customers.company",
                    ),
                ),
                (
                    "document",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="events",
                        to="finance_fiscal.fiscaldocument",
                    ),
                ),
            ],
            options={
                "verbose_name": "Fiscal Event",
                "verbose_name_plural": "Fiscal Events",
                "ordering": ("occurred_at", "id"),
                "indexes": [
                    models.Index(fields=["company", "document", "occurred_at"], name="idx_fiscal_event_doc")
                ],
            },
        ),
    ]
