from __future__ import annotations

import logging

from django.db import transaction
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from finance.fiscal.api.serializers.fiscal_profile import (
    MerchantFiscalProfileReadSerializer,
    MerchantFiscalProfileUpsertSerializer,
)
from finance.fiscal.api.views.errors import (
    error_response,
    first_serializer_error,
    service_error_response,
)
from finance.fiscal.crypto import encrypt_secret
from finance.fiscal.models import MerchantFiscalProfile
from finance.fiscal.services import FiscalServiceError, sync_company
from tenancy.permissions import IsTenantRoleAllowed

logger = logging.getLogger(__name__)

SECRET_FIELDS = ("api_token", "certificate_file", "certificate_password")


class MerchantFiscalProfileAPIView(APIView):
    """Read (managers) and upsert (owners) the merchant emitter profile."""

    permission_classes = [IsTenantRoleAllowed]
    tenant_resource_key = "fiscal_profile"

    def get(self, request):
        company = getattr(request, "company", None)
        if company is None:
            return error_response("Tenant context is required.", status.HTTP_400_BAD_REQUEST)

        profile = MerchantFiscalProfile.all_objects.filter(company=company).first()
        if profile is None:
            return error_response("Fiscal profile not found.", status.HTTP_404_NOT_FOUND)

        return Response(
            {"success": True, "profile": MerchantFiscalProfileReadSerializer(profile).data},
            status=status.HTTP_200_OK,
        )

    def put(self, request):
        company = getattr(request, "company", None)
        if company is None:
            return error_response("Tenant context is required.", status.HTTP_400_BAD_REQUEST)

        existing = MerchantFiscalProfile.all_objects.filter(company=company).first()
        serializer = MerchantFiscalProfileUpsertSerializer(
            existing,
            data=request.data,
            partial=existing is not None,
        )
        if not serializer.is_valid():
            return error_response(
                first_serializer_error(serializer.errors),
                status.HTTP_400_BAD_REQUEST,
            )

        values = dict(serializer.validated_data)
        secrets = {name: values.pop(name, "") or "" for name in SECRET_FIELDS}

        logger.info(
            "fiscal.profile.upsert.started company_id=%s provider_type=%s environment=%s",
            company.id,
            values.get("provider_type", getattr(existing, "provider_type", "")),
            values.get("environment", getattr(existing, "environment", "")),
        )

        with transaction.atomic():
            profile = existing or MerchantFiscalProfile(company=company)
            for field_name, value in values.items():
                setattr(profile, field_name, value)
            for field_name, plain in secrets.items():
                if plain:
                    setattr(profile, field_name, encrypt_secret(plain))
            profile.save()

        logger.info(
            "fiscal.profile.upsert.completed company_id=%s profile_id=%s created=%s",
            company.id,
            profile.id,
            existing is None,
        )

        return Response(
            {"success": True, "profile": MerchantFiscalProfileReadSerializer(profile).data},
            status=status.HTTP_201_CREATED if existing is None else status.HTTP_200_OK,
        )

    post = put


class MerchantFiscalCompanySyncAPIView(APIView):
    """Register or update the merchant at the fiscal gateway."""

    permission_classes = [IsTenantRoleAllowed]
    tenant_resource_key = "fiscal_profile"

    def post(self, request):
        try:
            result = sync_company(actor=request.user)
        except FiscalServiceError as exc:
            return service_error_response(exc, operation="company_sync")

        return Response(
            {
                "success": True,
                "company_ref": result.company_ref,
                "certificate_expires_at": (
                    result.certificate_expires_at.isoformat()
                    if result.certificate_expires_at
                    else None
                ),
                "created": result.created,
            },
            status=status.HTTP_200_OK,
        )
