from django.conf import settings
from django.core.management.base import BaseCommand

from customers.models import Company
from finance.fiscal.models import FiscalDocument
from finance.fiscal.services import reconcile_pending_documents


class Command(BaseCommand):
    help = (
        "Poll the fiscal gateway for documents still awaiting authorization. "
        "Default is dry-run."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--batch-size",
            type=int,
            default=None,
            help="Maximum number of documents polled in this run.",
        )
        parser.add_argument(
            "--tenant",
            dest="tenant_code",
            default="",
            help="Optional tenant_code to run a single tenant.",
        )
        parser.add_argument(
            "--apply",
            action="store_true",
            help="Apply changes. Without this flag, command runs in dry-run mode.",
        )

    def handle(self, *args, **options):
        tenant_code = (options.get("tenant_code") or "").strip().lower()
        batch_size = options.get("batch_size")
        if batch_size is None:
            batch_size = int(getattr(settings, "FISCAL_RECONCILE_BATCH_SIZE", 100))

        company = None
        if tenant_code:
            company = Company.objects.filter(tenant_code=tenant_code, is_active=True).first()
            if company is None:
                self.stdout.write(self.style.WARNING("No active tenant found for the selected filter."))
                return

        if not options.get("apply"):
            pending = FiscalDocument.all_objects.filter(
                status=FiscalDocument.Status.SUBMITTED,
            ).exclude(gateway_ref="")
            if company is not None:
                pending = pending.filter(company=company)
            scanned = min(pending.count(), batch_size)
            self.stdout.write(
                self.style.SUCCESS(f"[DRY-RUN] scanned={scanned} changed=0 failed=0")
            )
            return

        result = reconcile_pending_documents(batch_size=batch_size, company=company)
        self.stdout.write(
            self.style.SUCCESS(
                f"[APPLY] scanned={result.scanned} changed={result.changed} failed={result.failed}"
            )
        )
