import base64
import io
import json
from unittest.mock import patch
from urllib.error import HTTPError, URLError

from django.test import SimpleTestCase

from finance.fiscal.adapters import (
    FiscalGatewayAuthenticationError,
    FiscalGatewayRejectionError,
    FiscalGatewayTimeoutError,
    FiscalGatewayTransportError,
    FiscalGatewayValidationError,
    FocusNFeGateway,
    GatewayConfig,
)

BASE_URL = "https://homologacao.focusnfe.example"
ACCESS_KEY = "35260212345678000195550010000000151000000151"


class FakeResponse:
    def __init__(self, status, body):
        self.status = status
        self._body = body if isinstance(body, bytes) else body.encode("utf-8")

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


def _json(status, data):
    return FakeResponse(status, json.dumps(data))


def _http_error(status, body):
    raw = body if isinstance(body, str) else json.dumps(body)
    return HTTPError(BASE_URL, status, "error", hdrs=None, fp=io.BytesIO(raw.encode("utf-8")))


class FocusNFeGatewayTests(SimpleTestCase):
    def setUp(self):
        self.gateway = FocusNFeGateway(
            GatewayConfig(token="tok-123", environment="HOMOLOGATION", base_url=BASE_URL, timeout_seconds=5)
        )
        patcher = patch("finance.fiscal.adapters.focusnfe.urlopen")
        self.urlopen = patcher.start()
        self.addCleanup(patcher.stop)

    def _request(self, index=-1):
        return self.urlopen.call_args_list[index][0][0]

    def test_submit_sends_basic_auth_and_ref(self):
        self.urlopen.return_value = _json(202, {"status": "processando_autorizacao", "ref": "nfe-1"})

        result = self.gateway.submit_document("nfe-1", {"natureza_operacao": "VENDA"})

        self.assertEqual(result.status, "processando_autorizacao")
        self.assertEqual(result.http_status, 202)
        request = self._request()
        self.assertEqual(request.get_method(), "POST")
        self.assertEqual(request.full_url, f"{BASE_URL}/v2/nfe?ref=nfe-1")
        expected_auth = "Basic " + base64.b64encode(b"tok-123:").decode("ascii")
        self.assertEqual(request.get_header("Authorization"), expected_auth)
        self.assertEqual(json.loads(request.data), {"natureza_operacao": "VENDA"})
        self.assertEqual(self.urlopen.call_args.kwargs["timeout"], 5)

    def test_accepted_without_body_is_processing(self):
        self.urlopen.return_value = FakeResponse(202, "")

        result = self.gateway.submit_document("nfe-1", {})

        self.assertEqual(result.status, "processando_autorizacao")

    def test_synchronous_authorization_is_parsed(self):
        self.urlopen.return_value = _json(
            200,
            {
                "status": "autorizado",
                "status_sefaz": "100",
                "mensagem_sefaz": "Autorizado o uso da NF-e",
                "chave_nfe": f"NFe{ACCESS_KEY}",
                "numero": "15",
                "serie": "1",
                "protocolo": "135260000000001",
                "caminho_danfe": "/arquivos/danfe.pdf",
                "caminho_xml_nota_fiscal": "https://cdn.example/nfe.xml",
            },
        )

        result = self.gateway.submit_document("nfe-1", {})

        self.assertEqual(result.status, "autorizado")
        self.assertEqual(result.access_key, ACCESS_KEY)
        self.assertEqual(result.number, 15)
        self.assertEqual(result.series, 1)
        self.assertEqual(result.authority_status_code, "100")
        self.assertEqual(result.danfe_url, f"{BASE_URL}/arquivos/danfe.pdf")
        self.assertEqual(result.xml_url, "https://cdn.example/nfe.xml")

    def test_plain_text_authentication_failure(self):
        self.urlopen.side_effect = _http_error(401, "HTTP Basic: Access denied.\n")

        with self.assertRaises(FiscalGatewayAuthenticationError) as ctx:
            self.gateway.submit_document("nfe-1", {})

        self.assertFalse(ctx.exception.retryable)
        self.assertEqual(ctx.exception.http_status, 401)

    def test_authentication_text_detected_regardless_of_status(self):
        self.urlopen.side_effect = _http_error(403, "HTTP Basic: Access denied.")

        with self.assertRaises(FiscalGatewayAuthenticationError):
            self.gateway.poll_status("nfe-1")

    def test_rejection_carries_gateway_messages(self):
        self.urlopen.side_effect = _http_error(
            422,
            {
                "codigo": "requisicao_invalida",
                "mensagem": "Parametros invalidos",
                "erros": [
                    {"codigo": "campo_invalido", "mensagem": "CNPJ do emitente invalido"},
                    {"codigo": "campo_invalido", "mensagem": "CEP invalido"},
                ],
            },
        )

        with self.assertRaises(FiscalGatewayRejectionError) as ctx:
            self.gateway.submit_document("nfe-1", {})

        self.assertEqual(str(ctx.exception), "CNPJ do emitente invalido, CEP invalido")
        self.assertEqual(ctx.exception.code, "requisicao_invalida")
        self.assertEqual(len(ctx.exception.details), 2)

    def test_duplicate_reference_is_resolved_by_polling(self):
        self.urlopen.side_effect = [
            _http_error(422, {"codigo": "already_processed", "mensagem": "Nota fiscal ja autorizada"}),
            _json(200, {"status": "autorizado", "chave_nfe": f"NFe{ACCESS_KEY}"}),
        ]

        result = self.gateway.submit_document("nfe-9", {})

        self.assertEqual(result.status, "autorizado")
        self.assertEqual(self._request().get_method(), "GET")
        self.assertEqual(self._request().full_url, f"{BASE_URL}/v2/nfe/nfe-9?completa=0")

    def test_server_error_is_transport_error(self):
        self.urlopen.side_effect = _http_error(503, {"mensagem": "Servico indisponivel"})

        with self.assertRaises(FiscalGatewayTransportError) as ctx:
            self.gateway.submit_document("nfe-1", {})

        self.assertTrue(ctx.exception.retryable)
        self.assertNotIsInstance(ctx.exception, FiscalGatewayTimeoutError)

    def test_malformed_body_is_transport_error(self):
        self.urlopen.return_value = FakeResponse(200, "<html>gateway</html>")

        with self.assertRaises(FiscalGatewayTransportError):
            self.gateway.poll_status("nfe-1")

    def test_timeout_is_reported_distinctly(self):
        self.urlopen.side_effect = URLError(TimeoutError("timed out"))
        with self.assertRaises(FiscalGatewayTimeoutError):
            self.gateway.submit_document("nfe-1", {})

        self.urlopen.side_effect = TimeoutError("read timed out")
        with self.assertRaises(FiscalGatewayTimeoutError):
            self.gateway.poll_status("nfe-1")

    def test_unreachable_gateway(self):
        self.urlopen.side_effect = URLError(ConnectionRefusedError("refused"))

        with self.assertRaises(FiscalGatewayTransportError) as ctx:
            self.gateway.submit_document("nfe-1", {})

        self.assertNotIsInstance(ctx.exception, FiscalGatewayTimeoutError)

    def test_poll_not_found_is_not_an_error(self):
        self.urlopen.side_effect = _http_error(404, {"codigo": "nao_encontrado", "mensagem": "Nota fiscal nao encontrada"})

        result = self.gateway.poll_status("nfe-404")

        self.assertEqual(result.status, "nao_encontrado")
        self.assertEqual(result.authority_message, "Nota fiscal nao encontrada")

    def test_poll_processing(self):
        self.urlopen.return_value = _json(200, {"status": "processando_autorizacao"})

        result = self.gateway.poll_status("nfe-1")

        self.assertEqual(result.status, "processando_autorizacao")
        self.assertEqual(self._request().get_method(), "GET")

    def test_poll_denied_document_keeps_authority_status(self):
        self.urlopen.side_effect = _http_error(
            422,
            {"status": "erro_autorizacao", "status_sefaz": "539", "mensagem_sefaz": "Duplicidade de NF-e"},
        )

        result = self.gateway.poll_status("nfe-1")

        self.assertEqual(result.status, "erro_autorizacao")
        self.assertEqual(result.authority_status_code, "539")
        self.assertEqual(result.authority_message, "Duplicidade de NF-e")

    def test_cancel_rejects_short_justification_without_network_call(self):
        with self.assertRaises(FiscalGatewayValidationError):
            self.gateway.cancel_document("nfe-1", "x" * 14)

        self.urlopen.assert_not_called()

    def test_cancel_rejects_long_justification_without_network_call(self):
        with self.assertRaises(FiscalGatewayValidationError):
            self.gateway.cancel_document("nfe-1", "x" * 256)

        self.urlopen.assert_not_called()

    def test_cancel_sends_delete_with_justification(self):
        self.urlopen.return_value = _json(200, {"status": "cancelado", "status_sefaz": "135"})

        result = self.gateway.cancel_document("nfe-1", "  Pedido cancelado pelo cliente  ")

        self.assertEqual(result.status, "cancelado")
        request = self._request()
        self.assertEqual(request.get_method(), "DELETE")
        self.assertEqual(request.full_url, f"{BASE_URL}/v2/nfe/nfe-1")
        self.assertEqual(json.loads(request.data), {"justificativa": "Pedido cancelado pelo cliente"})

    def test_register_company_creates_then_updates(self):
        self.urlopen.side_effect = [
            _json(200, {"id": 321, "certificado_valido_ate": "2027-05-01T00:00:00-03:00"}),
            _json(200, {"id": 321}),
        ]

        created = self.gateway.register_company({"cnpj": "12345678000195"})
        updated = self.gateway.register_company({"cnpj": "12345678000195"}, existing_ref=created.ref)

        self.assertEqual(created.ref, "321")
        self.assertIsNotNone(created.certificate_expires_at)
        self.assertEqual(created.certificate_expires_at.year, 2027)
        self.assertEqual(updated.ref, "321")
        self.assertEqual(self._request(0).get_method(), "POST")
        self.assertEqual(self._request(0).full_url, f"{BASE_URL}/v2/empresas")
        self.assertEqual(self._request(1).get_method(), "PUT")
        self.assertEqual(self._request(1).full_url, f"{BASE_URL}/v2/empresas/321")

    def test_register_company_without_id_is_transport_error(self):
        self.urlopen.return_value = _json(200, {})

        with self.assertRaises(FiscalGatewayTransportError):
            self.gateway.register_company({"cnpj": "12345678000195"})

    def test_response_body_is_logged_masked(self):
        self.urlopen.return_value = _json(200, {"status": "autorizado", "cnpj_emitente": "12.345.678/0001-95"})

        with self.assertLogs("finance.fiscal.adapters.focusnfe", level="INFO") as logs:
            self.gateway.poll_status("nfe-1")

        joined = "\n".join(logs.output)
        self.assertIn("fiscal.gateway.response", joined)
        self.assertNotIn("12.345.678/0001-95", joined)
        self.assertNotIn("tok-123", joined)
