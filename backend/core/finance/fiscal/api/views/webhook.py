from __future__ import annotations

import hashlib
import hmac
import json
import logging

from django.conf import settings
from rest_framework import status as drf_status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from finance.fiscal.api.views.errors import error_response, service_error_response
from finance.fiscal.models import FiscalDocument
from finance.fiscal.services import FiscalServiceError, check_document_status
from tenancy.context import tenant_context

logger = logging.getLogger(__name__)


def _parse_signature(value: str) -> str:
    raw = (value or "").strip()
    if raw.lower().startswith("sha256="):
        raw = raw.split("=", 1)[1].strip()
    return raw


class FiscalWebhookAPIView(APIView):
    """Gateway callback announcing that a document changed.

    Authenticated by an HMAC-SHA256 signature of the raw body
    (`X-Fiscal-Signature`). The pushed status is never applied as is: the
    callback only triggers a status check against the gateway for the
    document whose correlation reference it carries.
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]

    def post(self, request):
        correlation_id = getattr(request, "correlation_id", "")
        raw_body: bytes = request.body or b""

        secret = getattr(settings, "FISCAL_WEBHOOK_SECRET", "") or ""
        if not secret:
            logger.error("fiscal.webhook.secret_missing correlation_id=%s", correlation_id)
            return error_response(
                "Webhook secret is not configured.",
                drf_status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        provided = _parse_signature(request.headers.get("X-Fiscal-Signature", ""))
        expected = hmac.new(
            secret.encode("utf-8"),
            msg=raw_body,
            digestmod=hashlib.sha256,
        ).hexdigest()
        if not provided or not hmac.compare_digest(provided, expected):
            logger.warning("fiscal.webhook.signature_invalid correlation_id=%s", correlation_id)
            return error_response("Invalid signature.", drf_status.HTTP_401_UNAUTHORIZED)

        try:
            payload = json.loads(raw_body.decode("utf-8") or "{}")
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("fiscal.webhook.json_invalid correlation_id=%s", correlation_id)
            return error_response("Invalid JSON.", drf_status.HTTP_400_BAD_REQUEST)
        if not isinstance(payload, dict):
            return error_response("Invalid JSON.", drf_status.HTTP_400_BAD_REQUEST)

        ref = str(payload.get("ref") or "").strip()
        if not ref:
            return error_response("ref is required.", drf_status.HTTP_400_BAD_REQUEST)

        doc = (
            FiscalDocument.all_objects.select_related("company")
            .filter(gateway_ref=ref, company__is_active=True)
            .first()
        )
        if doc is None:
            logger.info("fiscal.webhook.unknown_ref ref=%s correlation_id=%s", ref, correlation_id)
            return error_response("Fiscal document not found.", drf_status.HTTP_404_NOT_FOUND)

        logger.info(
            "fiscal.webhook.received company_id=%s document_id=%s ref=%s pushed_status=%s correlation_id=%s",
            doc.company_id,
            doc.id,
            ref,
            str(payload.get("status") or "").strip() or "-",
            correlation_id,
        )

        with tenant_context(doc.company):
            try:
                doc = check_document_status(doc.id, correlation_id=correlation_id)
            except FiscalServiceError as exc:
                return service_error_response(exc, operation="webhook")

        return Response(
            {"success": True, "document_id": doc.id, "status": doc.status},
            status=drf_status.HTTP_200_OK,
        )
