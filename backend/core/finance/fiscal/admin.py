from django.contrib import admin

from finance.fiscal.models import (
    FiscalDocument,
    FiscalDocumentItem,
    FiscalEvent,
    MerchantFiscalProfile,
)


@admin.register(MerchantFiscalProfile)
class MerchantFiscalProfileAdmin(admin.ModelAdmin):
    list_display = ("company", "legal_name", "cnpj", "provider_type", "environment", "gateway_company_ref")
    list_filter = ("provider_type", "environment", "tax_regime")
    search_fields = ("legal_name", "cnpj", "company__tenant_code")
    exclude = ("api_token", "certificate_file", "certificate_password")
    readonly_fields = ("gateway_company_ref", "gateway_synced_at", "certificate_expires_at")

    def get_queryset(self, request):
        # Default manager is tenant-scoped; admin must see all profiles.
        return MerchantFiscalProfile.all_objects.select_related("company")


class FiscalDocumentItemInline(admin.TabularInline):
    model = FiscalDocumentItem
    extra = 0
    readonly_fields = ("line_total",)


@admin.register(FiscalDocument)
class FiscalDocumentAdmin(admin.ModelAdmin):
    list_display = ("id", "company", "order_id", "series", "number", "status", "total_amount", "authorized_at")
    list_filter = ("status", "purpose")
    search_fields = ("gateway_ref", "access_key", "recipient_name", "company__tenant_code")
    ordering = ("-created_at", "-id")
    readonly_fields = (
        "status",
        "gateway_ref",
        "access_key",
        "protocol_number",
        "authority_status_code",
        "authority_message",
        "products_amount",
        "total_amount",
        "submitted_at",
        "authorized_at",
        "cancelled_at",
        "cancel_justification",
    )
    inlines = (FiscalDocumentItemInline,)

    def get_queryset(self, request):
        return FiscalDocument.all_objects.select_related("company")


@admin.register(FiscalEvent)
class FiscalEventAdmin(admin.ModelAdmin):
    list_display = ("id", "company", "document", "event_type", "from_status", "to_status", "occurred_at")
    list_filter = ("event_type",)
    search_fields = ("document__gateway_ref", "correlation_id")
    ordering = ("-occurred_at", "-id")
    readonly_fields = [field.name for field in FiscalEvent._meta.fields]

    def get_queryset(self, request):
        return FiscalEvent.all_objects.select_related("company", "document")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
