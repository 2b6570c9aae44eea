from django.test import SimpleTestCase, TestCase, override_settings

from customers.models import Company
from finance.fiscal.adapters import (
    FiscalGatewayNotConfigured,
    FiscalGatewayNotSupported,
    FocusNFeGateway,
    MockFiscalGateway,
    get_fiscal_gateway,
)
from finance.fiscal.crypto import SecretCryptoError, decrypt_secret, encrypt_secret
from finance.fiscal.models import FiscalDocument, MerchantFiscalProfile
from finance.fiscal.services import cancel_document, submit_document
from finance.fiscal.tests.factories import create_document, create_profile
from tenancy.context import tenant_context

BASE_URLS = {
    "HOMOLOGATION": "https://homologacao.gateway.test",
    "PRODUCTION": "https://api.gateway.test",
}


@override_settings(FISCAL_GATEWAY_BASE_URLS=BASE_URLS, FISCAL_GATEWAY_TOKEN="", FISCAL_GATEWAY_TIMEOUT_SECONDS=7)
class GatewayFactoryTests(SimpleTestCase):
    def _profile(self, **overrides):
        values = {"company_id": 1, "provider_type": "focusnfe", "environment": "PRODUCTION"}
        values.update(overrides)
        return MerchantFiscalProfile(**values)

    def test_builds_client_from_profile(self):
        gateway = get_fiscal_gateway(self._profile(api_token=encrypt_secret("tok-1")))

        self.assertIsInstance(gateway, FocusNFeGateway)
        self.assertEqual(gateway.config.token, "tok-1")
        self.assertEqual(gateway.config.base_url, "https://api.gateway.test")
        self.assertEqual(gateway.config.timeout_seconds, 7.0)

    @override_settings(FISCAL_GATEWAY_TOKEN="platform-token")
    def test_platform_token_is_the_fallback(self):
        gateway = get_fiscal_gateway(self._profile(environment="HOMOLOGATION"))

        self.assertEqual(gateway.config.token, "platform-token")
        self.assertEqual(gateway.config.environment, "HOMOLOGATION")

    def test_missing_token_is_not_configured(self):
        with self.assertRaises(FiscalGatewayNotConfigured):
            get_fiscal_gateway(self._profile())

    @override_settings(FISCAL_GATEWAY_BASE_URLS={"PRODUCTION": ""})
    def test_missing_url_is_not_configured(self):
        with self.assertRaises(FiscalGatewayNotConfigured):
            get_fiscal_gateway(self._profile(api_token=encrypt_secret("tok-1")))

    def test_unknown_provider(self):
        with self.assertRaises(FiscalGatewayNotSupported):
            get_fiscal_gateway(self._profile(provider_type="acme-nfe"))

    def test_mock_provider_needs_no_credentials(self):
        self.assertIsInstance(get_fiscal_gateway(self._profile(provider_type="mock")), MockFiscalGateway)

    def test_secrets_round_trip_and_tampering(self):
        encrypted = encrypt_secret("senha-pfx")

        self.assertNotEqual(encrypted, "senha-pfx")
        self.assertEqual(decrypt_secret(encrypted), "senha-pfx")
        self.assertEqual(encrypt_secret(""), "")
        self.assertEqual(decrypt_secret(""), "")
        with self.assertRaises(SecretCryptoError):
            decrypt_secret("not-a-fernet-token")


@override_settings(
    FISCAL_ORDER_RESOLVER="finance.fiscal.resolvers.mock.mock_order_resolver",
    FISCAL_ORDER_STATUS_UPDATER="finance.fiscal.resolvers.mock.mock_order_status_updater",
    FISCAL_SHIPMENT_CREATOR="finance.fiscal.resolvers.mock.mock_shipment_creator",
)
class MockGatewayLifecycleTests(TestCase):
    def setUp(self):
        MockFiscalGateway._documents.clear()
        self.addCleanup(MockFiscalGateway._documents.clear)
        self.company = Company.objects.create(name="Empresa A", tenant_code="acme")
        create_profile(self.company, provider_type="mock")

    def test_submit_and_cancel_through_mock_gateway(self):
        with tenant_context(self.company):
            doc = create_document(
                self.company,
                order_id=321,
                recipient_name="",
                recipient_street="",
                recipient_district="",
                recipient_city="",
                recipient_state="",
                recipient_postal_code="",
            )

            with self.assertLogs("finance.fiscal.resolvers.mock", level="INFO") as logs:
                doc = submit_document(doc.id)
            self.assertEqual(doc.status, FiscalDocument.Status.AUTHORIZED)
            self.assertEqual(doc.recipient_street, "Rua Fiscal")
            self.assertIn("status=shipped", "\n".join(logs.output))
            self.assertIn("tracking_code=MOCK000000321BR", "\n".join(logs.output))
            self.assertEqual(len(doc.access_key), 44)

            doc = cancel_document(doc.id, "Pedido cancelado pelo cliente")
            self.assertEqual(doc.status, FiscalDocument.Status.CANCELLED)

    def test_resubmission_returns_the_first_filing(self):
        gateway = MockFiscalGateway()

        first = gateway.submit_document("nfe-1", {"cnpj_emitente": "12345678000195"})
        second = gateway.submit_document("nfe-1", {"cnpj_emitente": "12345678000195"})

        self.assertEqual(first.access_key, second.access_key)
        self.assertEqual(gateway.poll_status("nfe-2").status, "nao_encontrado")
