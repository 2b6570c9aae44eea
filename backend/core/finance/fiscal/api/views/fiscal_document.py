from __future__ import annotations

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from finance.fiscal.api.serializers.fiscal_document import (
    CancelFiscalDocumentSerializer,
    FiscalDocumentDetailSerializer,
    FiscalDocumentSerializer,
)
from finance.fiscal.api.views.errors import (
    error_response,
    first_serializer_error,
    service_error_response,
)
from finance.fiscal.models import FiscalDocument
from finance.fiscal.services import (
    FiscalServiceError,
    cancel_document,
    check_document_status,
    submit_document,
)
from tenancy.permissions import IsTenantRoleAllowed


class FiscalDocumentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Read access to fiscal documents plus the lifecycle actions.

    Every action answers `{"success": true, ...}` or
    `{"success": false, "error": "..."}`.
    """

    serializer_class = FiscalDocumentSerializer
    permission_classes = [IsTenantRoleAllowed]
    tenant_resource_key = "fiscal_documents"

    def get_serializer_class(self):
        if self.action == "retrieve":
            return FiscalDocumentDetailSerializer
        return FiscalDocumentSerializer

    def get_queryset(self):
        company = getattr(self.request, "company", None)
        if company is None:
            return FiscalDocument.objects.none()

        qs = FiscalDocument.all_objects.filter(company=company).prefetch_related("items")
        if self.action == "retrieve":
            qs = qs.prefetch_related("events__actor")

        status_filter = (self.request.query_params.get("status") or "").strip().upper()
        if status_filter:
            qs = qs.filter(status=status_filter)

        order_id = (self.request.query_params.get("order_id") or "").strip()
        if order_id:
            try:
                qs = qs.filter(order_id=int(order_id))
            except ValueError:
                return FiscalDocument.objects.none()

        return qs.order_by("-created_at", "-id")

    def _document_payload(self, doc: FiscalDocument) -> dict:
        return {
            "success": True,
            "status": doc.status,
            "authority_message": doc.authority_message,
            "access_key": doc.access_key,
            "document_urls": {"danfe": doc.danfe_url, "xml": doc.xml_url},
            "document": FiscalDocumentSerializer(doc, context=self.get_serializer_context()).data,
        }

    @action(detail=True, methods=["post"], url_path="submit")
    def submit(self, request, pk=None):
        doc = self.get_object()
        try:
            doc = submit_document(
                doc.id,
                actor=request.user,
                correlation_id=getattr(request, "correlation_id", ""),
            )
        except FiscalServiceError as exc:
            return service_error_response(exc, operation="submit")
        return Response(self._document_payload(doc), status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="status")
    def check_status(self, request, pk=None):
        doc = self.get_object()
        try:
            doc = check_document_status(
                doc.id,
                actor=request.user,
                correlation_id=getattr(request, "correlation_id", ""),
            )
        except FiscalServiceError as exc:
            return service_error_response(exc, operation="status")
        return Response(self._document_payload(doc), status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        doc = self.get_object()
        serializer = CancelFiscalDocumentSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response(
                first_serializer_error(serializer.errors),
                status.HTTP_400_BAD_REQUEST,
            )

        try:
            doc = cancel_document(
                doc.id,
                serializer.validated_data["justification"],
                actor=request.user,
                correlation_id=getattr(request, "correlation_id", ""),
            )
        except FiscalServiceError as exc:
            return service_error_response(exc, operation="cancel")
        return Response(self._document_payload(doc), status=status.HTTP_200_OK)
