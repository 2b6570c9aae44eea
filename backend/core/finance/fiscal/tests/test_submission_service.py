from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings

from customers.models import Company
from finance.fiscal.adapters import (
    DocumentResult,
    FiscalGatewayRejectionError,
    FiscalGatewayTimeoutError,
)
from finance.fiscal.models import FiscalDocument, FiscalEvent, MerchantFiscalProfile
from finance.fiscal.services import (
    FiscalDocumentNotFound,
    FiscalGatewayFailure,
    FiscalStateConflictError,
    FiscalTenantMissing,
    FiscalValidationError,
    submit_document,
)
from finance.fiscal.tests import collaborators
from finance.fiscal.tests.factories import (
    FakeGateway,
    authorized_result,
    create_document,
    create_profile,
    move_to,
    processing_result,
)
from tenancy.context import reset_current_company, set_current_company, tenant_context

COLLABORATORS = {
    "FISCAL_ORDER_RESOLVER": "finance.fiscal.tests.collaborators.order_resolver",
    "FISCAL_ORDER_STATUS_UPDATER": "finance.fiscal.tests.collaborators.order_status_updater",
    "FISCAL_SHIPMENT_CREATOR": "finance.fiscal.tests.collaborators.shipment_creator",
}


@override_settings(FISCAL_REF_PREFIX="nfe", **COLLABORATORS)
class SubmitDocumentTests(TestCase):
    def setUp(self):
        collaborators.reset()
        self.company = Company.objects.create(name="Empresa A", tenant_code="acme")
        self.other_company = Company.objects.create(name="Empresa B", tenant_code="beta")
        self.profile = create_profile(self.company)

        self.gateway = FakeGateway(submit=authorized_result())
        patcher = patch("finance.fiscal.services.get_fiscal_gateway", return_value=self.gateway)
        patcher.start()
        self.addCleanup(patcher.stop)

        token = set_current_company(self.company)
        self.addCleanup(reset_current_company, token)

    def _events(self, doc):
        return list(
            FiscalEvent.all_objects.filter(document=doc).values_list("event_type", flat=True)
        )

    def test_authorizes_order_document_and_ships_the_order(self):
        doc = create_document(
            self.company,
            order_id=77,
            freight_amount=Decimal("5.00"),
            items=[{"quantity": Decimal("3"), "unit_price": Decimal("10.00")}],
        )

        result = submit_document(doc.id, correlation_id="corr-1")

        self.assertEqual(result.status, FiscalDocument.Status.AUTHORIZED)
        doc.refresh_from_db()
        self.assertEqual(doc.status, FiscalDocument.Status.AUTHORIZED)
        self.assertEqual(doc.products_amount, Decimal("30.00"))
        self.assertEqual(doc.total_amount, Decimal("35.00"))
        self.assertEqual(doc.access_key, "AK123")
        self.assertEqual(doc.number, 15)
        self.assertEqual(doc.gateway_ref, f"nfe-{doc.id}")
        self.assertIsNotNone(doc.submitted_at)
        self.assertIsNotNone(doc.authorized_at)
        self.assertEqual(self._events(doc), [FiscalEvent.EventType.AUTHORIZED])

        event = FiscalEvent.all_objects.get(document=doc)
        self.assertEqual(event.from_status, FiscalDocument.Status.DRAFT)
        self.assertEqual(event.to_status, FiscalDocument.Status.AUTHORIZED)
        self.assertEqual(event.correlation_id, "corr-1")

        ref, payload = self.gateway.submitted[0]
        self.assertEqual(ref, f"nfe-{doc.id}")
        self.assertEqual(payload["valor_total"], "35.00")
        self.assertEqual(len(payload["items"]), 1)

        self.assertEqual(collaborators.SHIPMENT_REQUESTS, [(77, self.company.id)])
        self.assertEqual(
            collaborators.ORDER_STATUS_UPDATES,
            [(77, self.company.id, "shipped", "TRK77BR")],
        )

    def test_processing_answer_keeps_document_submitted(self):
        self.gateway.submit_result = processing_result()
        doc = create_document(self.company)

        submit_document(doc.id)

        doc.refresh_from_db()
        self.assertEqual(doc.status, FiscalDocument.Status.SUBMITTED)
        self.assertEqual(self._events(doc), [FiscalEvent.EventType.SUBMITTED])
        self.assertEqual(collaborators.ORDER_STATUS_UPDATES, [])

    def test_timeout_keeps_document_submitted_for_polling(self):
        self.gateway.submit_result = FiscalGatewayTimeoutError("Fiscal gateway timed out.")
        doc = create_document(self.company)

        with self.assertRaises(FiscalGatewayFailure) as ctx:
            submit_document(doc.id)

        self.assertEqual(ctx.exception.kind, "timeout")
        doc.refresh_from_db()
        self.assertEqual(doc.status, FiscalDocument.Status.SUBMITTED)
        self.assertEqual(doc.gateway_ref, f"nfe-{doc.id}")
        self.assertEqual(self._events(doc), [FiscalEvent.EventType.SUBMISSION_ERROR])

    def test_rejection_then_resubmission_reuses_reference(self):
        self.gateway.submit_result = FiscalGatewayRejectionError(
            "CNPJ do destinatario invalido", code="requisicao_invalida", http_status=422
        )
        doc = create_document(self.company)

        with self.assertRaises(FiscalGatewayFailure) as ctx:
            submit_document(doc.id)

        self.assertEqual(ctx.exception.kind, "rejection")
        doc.refresh_from_db()
        self.assertEqual(doc.status, FiscalDocument.Status.REJECTED)
        self.assertEqual(doc.authority_message, "CNPJ do destinatario invalido")

        self.gateway.submit_result = authorized_result()
        submit_document(doc.id)

        doc.refresh_from_db()
        self.assertEqual(doc.status, FiscalDocument.Status.AUTHORIZED)
        refs = [ref for ref, _payload in self.gateway.submitted]
        self.assertEqual(refs, [f"nfe-{doc.id}", f"nfe-{doc.id}"])
        self.assertEqual(
            self._events(doc),
            [FiscalEvent.EventType.SUBMISSION_ERROR, FiscalEvent.EventType.AUTHORIZED],
        )

    def test_authority_rejection_in_response(self):
        self.gateway.submit_result = DocumentResult(
            status="erro_autorizacao",
            authority_status_code="539",
            authority_message="Duplicidade de NF-e",
            http_status=200,
            raw={"status": "erro_autorizacao"},
        )
        doc = create_document(self.company)

        submit_document(doc.id)

        doc.refresh_from_db()
        self.assertEqual(doc.status, FiscalDocument.Status.REJECTED)
        self.assertEqual(doc.authority_status_code, "539")
        self.assertEqual(self._events(doc), [FiscalEvent.EventType.REJECTED])

    def test_document_without_items_is_not_submitted(self):
        doc = create_document(self.company, items=[])

        with self.assertRaises(FiscalValidationError):
            submit_document(doc.id)

        self._assert_untouched(doc)

    def test_unsynced_merchant_is_not_submitted(self):
        MerchantFiscalProfile.all_objects.filter(pk=self.profile.pk).update(gateway_company_ref="")
        doc = create_document(self.company)

        with self.assertRaises(FiscalValidationError):
            submit_document(doc.id)

        self._assert_untouched(doc)

    def test_missing_profile_is_a_validation_error(self):
        MerchantFiscalProfile.all_objects.filter(pk=self.profile.pk).delete()
        doc = create_document(self.company)

        with self.assertRaises(FiscalValidationError):
            submit_document(doc.id)

        self._assert_untouched(doc)

    def test_incomplete_destination_is_reported(self):
        doc = create_document(self.company, recipient_city="", recipient_postal_code="")

        with self.assertRaises(FiscalValidationError) as ctx:
            submit_document(doc.id)

        self.assertIn("city", str(ctx.exception))
        self.assertIn("postal code", str(ctx.exception))
        self._assert_untouched(doc)

    def _assert_untouched(self, doc):
        doc.refresh_from_db()
        self.assertEqual(doc.status, FiscalDocument.Status.DRAFT)
        self.assertEqual(doc.gateway_ref, "")
        self.assertEqual(self._events(doc), [])
        self.assertEqual(self.gateway.submitted, [])

    def test_long_recipient_name_is_truncated_not_refused(self):
        doc = create_document(self.company, recipient_name="N" * 80)

        submit_document(doc.id)

        doc.refresh_from_db()
        self.assertEqual(doc.status, FiscalDocument.Status.AUTHORIZED)
        _ref, payload = self.gateway.submitted[0]
        self.assertEqual(len(payload["nome_destinatario"]), 60)

    def test_blank_destination_is_filled_from_order(self):
        doc = create_document(
            self.company,
            order_id=42,
            recipient_name="",
            recipient_street="",
            recipient_number="",
            recipient_district="",
            recipient_city="",
            recipient_city_code="",
            recipient_state="",
            recipient_postal_code="",
        )

        submit_document(doc.id)

        doc.refresh_from_db()
        self.assertEqual(collaborators.ORDER_LOOKUPS, [(42, self.company.id)])
        self.assertEqual(doc.recipient_name, "Cliente Pedido 42")
        self.assertEqual(doc.recipient_city, "Campinas")
        self.assertEqual(doc.recipient_postal_code, "13010-000")
        _ref, payload = self.gateway.submitted[0]
        self.assertEqual(payload["municipio_destinatario"], "CAMPINAS")
        self.assertEqual(payload["cep_destinatario"], "13010000")

    def test_order_data_never_overrides_stored_destination(self):
        doc = create_document(self.company, order_id=42)

        submit_document(doc.id)

        doc.refresh_from_db()
        self.assertEqual(doc.recipient_name, "Maria da Silva")
        self.assertEqual(doc.recipient_city, "Sao Paulo")

    @override_settings(FISCAL_ORDER_RESOLVER="")
    def test_order_without_resolver_uses_stored_destination(self):
        doc = create_document(self.company, order_id=42)

        submit_document(doc.id)

        doc.refresh_from_db()
        self.assertEqual(doc.status, FiscalDocument.Status.AUTHORIZED)
        self.assertEqual(collaborators.ORDER_LOOKUPS, [])

    def test_authorization_advances_next_document_number(self):
        doc = create_document(self.company)

        submit_document(doc.id)

        self.profile.refresh_from_db()
        self.assertEqual(self.profile.next_document_number, 16)

    def test_next_document_number_never_moves_backwards(self):
        MerchantFiscalProfile.all_objects.filter(pk=self.profile.pk).update(next_document_number=50)
        doc = create_document(self.company, number=5)

        submit_document(doc.id)

        self.profile.refresh_from_db()
        self.assertEqual(self.profile.next_document_number, 50)

    def test_blank_series_and_number_come_from_the_profile(self):
        MerchantFiscalProfile.all_objects.filter(pk=self.profile.pk).update(
            default_series=3, next_document_number=7
        )
        self.gateway.submit_result = processing_result()
        doc = create_document(self.company)

        submit_document(doc.id)

        _, payload = self.gateway.submitted[0]
        self.assertEqual(payload["serie"], "3")
        self.assertEqual(payload["numero"], "7")
        doc.refresh_from_db()
        self.assertEqual((doc.series, doc.number), (3, 7))
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.next_document_number, 8)

    def test_pending_drafts_never_share_a_number(self):
        self.gateway.submit_result = processing_result()
        first = create_document(self.company)
        second = create_document(self.company)

        submit_document(first.id)
        submit_document(second.id)

        numbers = [payload["numero"] for _, payload in self.gateway.submitted]
        self.assertEqual(numbers, ["1", "2"])

    def test_explicit_series_and_number_are_kept(self):
        self.gateway.submit_result = processing_result()
        doc = create_document(self.company, series=2, number=40)

        submit_document(doc.id)

        _, payload = self.gateway.submitted[0]
        self.assertEqual((payload["serie"], payload["numero"]), ("2", "40"))
        self.profile.refresh_from_db()
        self.assertEqual(self.profile.next_document_number, 1)

    def test_authorized_document_cannot_be_submitted_again(self):
        doc = create_document(self.company)
        submit_document(doc.id)

        with self.assertRaises(FiscalStateConflictError):
            submit_document(doc.id)

        self.assertEqual(len(self.gateway.submitted), 1)

    def test_submitted_document_cannot_be_submitted_again(self):
        doc = move_to(create_document(self.company), FiscalDocument.Status.SUBMITTED)

        with self.assertRaises(FiscalStateConflictError):
            submit_document(doc.id)

        self.assertEqual(self.gateway.submitted, [])
        doc.refresh_from_db()
        self.assertEqual(doc.status, FiscalDocument.Status.SUBMITTED)
        self.assertEqual(self._events(doc), [])

    def test_document_of_another_company_is_not_found(self):
        with tenant_context(self.other_company):
            doc = create_document(self.other_company)

        with self.assertRaises(FiscalDocumentNotFound):
            submit_document(doc.id)

    def test_requires_tenant_context(self):
        doc = create_document(self.company)
        token = set_current_company(None)
        try:
            with self.assertRaises(FiscalTenantMissing):
                submit_document(doc.id)
        finally:
            reset_current_company(token)
