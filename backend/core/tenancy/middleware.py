import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.http import JsonResponse

from customers.models import Company
from tenancy.context import reset_current_company, set_current_company


@dataclass(frozen=True)
class TenantResolutionResult:
    company: Optional[Company]
    error_response: Optional[JsonResponse] = None


class TenantContextMiddleware:
    """Binds the merchant named by the tenant header to the request.

    Requests under a tenant-required prefix must carry `X-Tenant-ID` with the
    `tenant_code` of an active company. Exempt prefixes (token issuance, the
    gateway callback) run without a tenant; the callback resolves the
    merchant from the document it refers to.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        self.logger = logging.getLogger(__name__)
        self.tenant_id_header = getattr(settings, "TENANT_ID_HEADER", "X-Tenant-ID")
        self.required_path_prefixes = tuple(
            getattr(settings, "TENANT_REQUIRED_PATH_PREFIXES", ["/api/"])
        )
        self.exempt_path_prefixes = tuple(
            getattr(
                settings,
                "TENANT_EXEMPT_PATH_PREFIXES",
                ["/api/auth/token/", "/api/finance/fiscal/webhook/"],
            )
        )

    def __call__(self, request):
        request.correlation_id = self._resolve_correlation_id(request)
        tenant_resolution = self._resolve_company(request)

        if tenant_resolution.error_response is not None:
            tenant_resolution.error_response["X-Correlation-ID"] = request.correlation_id
            return tenant_resolution.error_response

        token = set_current_company(tenant_resolution.company)
        request.company = tenant_resolution.company
        try:
            response = self.get_response(request)
            response["X-Correlation-ID"] = request.correlation_id
            return response
        finally:
            reset_current_company(token)

    @staticmethod
    def _resolve_correlation_id(request) -> str:
        header_value = (request.headers.get("X-Correlation-ID", "") or "").strip()
        return header_value or str(uuid.uuid4())

    def _path_requires_tenant(self, path: str) -> bool:
        if path.startswith(self.exempt_path_prefixes):
            return False
        return path.startswith(self.required_path_prefixes)

    def _resolve_company(self, request) -> TenantResolutionResult:
        if not self._path_requires_tenant(request.path):
            return TenantResolutionResult(company=None)

        header_value = (request.headers.get(self.tenant_id_header) or "").strip().lower()
        if not header_value:
            return TenantResolutionResult(
                company=None,
                error_response=JsonResponse(
                    {"success": False, "error": f"Tenant not provided. Send {self.tenant_id_header}."},
                    status=400,
                ),
            )

        company = (
            Company.objects.filter(tenant_code=header_value, is_active=True)
            .only("id", "tenant_code", "name")
            .first()
        )
        if company is None:
            self.logger.warning(
                "tenant.resolve.unknown tenant_code=%s path=%s correlation_id=%s",
                header_value,
                request.path,
                request.correlation_id,
            )
            return TenantResolutionResult(
                company=None,
                error_response=JsonResponse(
                    {"success": False, "error": "Invalid tenant identifier."},
                    status=404,
                ),
            )

        return TenantResolutionResult(company=company)
