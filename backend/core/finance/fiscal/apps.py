from django.apps import AppConfig


class FinanceFiscalConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "finance.fiscal"
    label = "finance_fiscal"
    verbose_name = "Finance - Fiscal"

    def ready(self):
        from finance.fiscal import handlers  # noqa: F401
