from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.response import Response

from finance.fiscal.services import (
    FiscalDocumentNotFound,
    FiscalGatewayFailure,
    FiscalNotConfigured,
    FiscalServiceError,
    FiscalStateConflictError,
    FiscalTenantMissing,
    FiscalValidationError,
)
from tenancy.logging import mask_cpf_cnpj

logger = logging.getLogger(__name__)

SERVICE_ERROR_STATUS = (
    (FiscalValidationError, status.HTTP_400_BAD_REQUEST),
    (FiscalTenantMissing, status.HTTP_400_BAD_REQUEST),
    (FiscalStateConflictError, status.HTTP_409_CONFLICT),
    (FiscalDocumentNotFound, status.HTTP_404_NOT_FOUND),
    (FiscalGatewayFailure, status.HTTP_502_BAD_GATEWAY),
    (FiscalNotConfigured, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def error_response(message: str, http_status: int) -> Response:
    return Response({"success": False, "error": message}, status=http_status)


def service_error_response(exc: FiscalServiceError, *, operation: str) -> Response:
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_class, mapped_status in SERVICE_ERROR_STATUS:
        if isinstance(exc, error_class):
            http_status = mapped_status
            break

    logger.info(
        "fiscal.api.%s.failed error_type=%s http_status=%s error=%s",
        operation,
        exc.__class__.__name__,
        http_status,
        mask_cpf_cnpj(str(exc)),
    )
    payload = {"success": False, "error": str(exc)}
    if isinstance(exc, FiscalGatewayFailure):
        payload["error_kind"] = exc.kind
    return Response(payload, status=http_status)


def first_serializer_error(errors) -> str:
    """Flatten DRF serializer errors into one human-readable message."""

    if isinstance(errors, dict):
        for field_name, messages in errors.items():
            message = first_serializer_error(messages)
            if field_name == "non_field_errors":
                return message
            return f"{field_name}: {message}"
    if isinstance(errors, (list, tuple)) and errors:
        return first_serializer_error(errors[0])
    return str(errors)
