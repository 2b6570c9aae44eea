from django.contrib import admin

from customers.models import Company, CompanyMembership


class CompanyMembershipInline(admin.TabularInline):
    model = CompanyMembership
    extra = 0
    autocomplete_fields = ("user",)


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ("name", "tenant_code", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name", "tenant_code")
    readonly_fields = ("created_at", "updated_at")
    inlines = (CompanyMembershipInline,)


@admin.register(CompanyMembership)
class CompanyMembershipAdmin(admin.ModelAdmin):
    list_display = ("company", "user", "role", "is_active")
    list_filter = ("role", "is_active")
    search_fields = ("company__name", "company__tenant_code", "user__username")
