import hashlib
import hmac
import json
from unittest.mock import patch

from django.test import TestCase, override_settings

from customers.models import Company
from finance.fiscal.adapters import FiscalGatewayTransportError
from finance.fiscal.models import FiscalDocument, FiscalEvent
from finance.fiscal.tests.factories import (
    FakeGateway,
    authorized_result,
    create_document,
    create_profile,
    move_to,
    processing_result,
)

Status = FiscalDocument.Status
WEBHOOK_URL = "/api/finance/fiscal/webhook/"


def _sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), msg=body, digestmod=hashlib.sha256).hexdigest()


def _body(payload) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


@override_settings(
    FISCAL_WEBHOOK_SECRET="test-secret",
    FISCAL_ORDER_STATUS_UPDATER="",
    FISCAL_SHIPMENT_CREATOR="",
)
class FiscalWebhookTests(TestCase):
    def setUp(self):
        self.company = Company.objects.create(name="Empresa A", tenant_code="acme")
        create_profile(self.company)
        self.doc = move_to(create_document(self.company), Status.SUBMITTED)

        self.gateway = FakeGateway(poll=authorized_result())
        patcher = patch("finance.fiscal.services.get_fiscal_gateway", return_value=self.gateway)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _post(self, body: bytes, signature: str | None = None):
        return self.client.post(
            WEBHOOK_URL,
            data=body,
            content_type="application/json",
            HTTP_X_FISCAL_SIGNATURE=_sign("test-secret", body) if signature is None else signature,
        )

    def test_webhook_rejects_invalid_signature(self):
        body = _body({"ref": self.doc.gateway_ref, "status": "autorizado"})

        response = self._post(body, signature="bad")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.gateway.polled, [])

    def test_webhook_accepts_prefixed_signature(self):
        body = _body({"ref": self.doc.gateway_ref})

        response = self._post(body, signature="sha256=" + _sign("test-secret", body))

        self.assertEqual(response.status_code, 200)

    def test_webhook_triggers_status_check(self):
        body = _body({"ref": self.doc.gateway_ref, "status": "autorizado"})

        response = self._post(body)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {"success": True, "document_id": self.doc.id, "status": Status.AUTHORIZED},
        )
        self.assertEqual(self.gateway.polled, [self.doc.gateway_ref])
        self.doc.refresh_from_db()
        self.assertEqual(self.doc.status, Status.AUTHORIZED)
        self.assertEqual(self.doc.access_key, "AK123")

    def test_pushed_status_is_not_trusted(self):
        self.gateway.poll_result = processing_result()
        body = _body({"ref": self.doc.gateway_ref, "status": "autorizado"})

        response = self._post(body)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], Status.SUBMITTED)
        self.doc.refresh_from_db()
        self.assertEqual(self.doc.status, Status.SUBMITTED)
        self.assertFalse(FiscalEvent.all_objects.filter(document=self.doc).exists())

    def test_repeated_callbacks_apply_once(self):
        body = _body({"ref": self.doc.gateway_ref})

        self._post(body)
        self._post(body)

        self.assertEqual(len(self.gateway.polled), 1)
        self.assertEqual(FiscalEvent.all_objects.filter(document=self.doc).count(), 1)

    def test_unknown_ref_is_not_found(self):
        response = self._post(_body({"ref": "nfe-999999"}))
        self.assertEqual(response.status_code, 404)

    def test_missing_ref_is_bad_request(self):
        response = self._post(_body({"status": "autorizado"}))
        self.assertEqual(response.status_code, 400)

    def test_invalid_json_is_bad_request(self):
        response = self._post(b"{not-json")
        self.assertEqual(response.status_code, 400)

    def test_gateway_failure_during_check(self):
        self.gateway.poll_result = FiscalGatewayTransportError("Fiscal gateway is unreachable.")

        response = self._post(_body({"ref": self.doc.gateway_ref}))

        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["error_kind"], "transport")

    @override_settings(FISCAL_WEBHOOK_SECRET="")
    def test_missing_secret_is_unavailable(self):
        response = self._post(_body({"ref": self.doc.gateway_ref}))
        self.assertEqual(response.status_code, 503)
