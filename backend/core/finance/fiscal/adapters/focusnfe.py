from __future__ import annotations

import base64
import json
import logging
from datetime import datetime, time
from typing import Any, Mapping
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from tenancy.logging import mask_cpf_cnpj

from .base import (
    CompanyRegistration,
    DocumentResult,
    FiscalGatewayAuthenticationError,
    FiscalGatewayBase,
    FiscalGatewayRejectionError,
    FiscalGatewayTimeoutError,
    FiscalGatewayTransportError,
    validate_cancel_justification,
)

logger = logging.getLogger(__name__)

LOG_BODY_LIMIT = 500
STATUS_NOT_FOUND = "nao_encontrado"
STATUS_PROCESSING = "processando_autorizacao"
# Answers to a POST whose reference the gateway already knows.
DUPLICATE_REFERENCE_CODES = frozenset({"already_processed", "em_processamento"})


def _to_int(value: Any) -> int | None:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _parse_expiry(value: Any) -> datetime | None:
    text = str(value or "").strip()
    if not text:
        return None
    parsed = parse_datetime(text)
    if parsed is None:
        day = parse_date(text[:10])
        if day is None:
            return None
        parsed = datetime.combine(day, time.min)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


class FocusNFeGateway(FiscalGatewayBase):
    """Focus NFe v2 REST API client.

    Authentication is HTTP Basic with the API token as user and an empty
    password. Bodies are JSON, except authentication failures, which the
    gateway answers with a plain-text "HTTP Basic: Access denied." body.
    """

    provider_type = "focusnfe"

    def _auth_header(self) -> str:
        credentials = f"{self.config.token}:".encode("utf-8")
        return "Basic " + base64.b64encode(credentials).decode("ascii")

    def _url(self, path: str, query: Mapping[str, Any] | None = None) -> str:
        url = self.config.base_url.rstrip("/") + path
        if query:
            url = f"{url}?{urlencode(query)}"
        return url

    def _absolute_url(self, path: Any) -> str:
        value = str(path or "").strip()
        if not value or value.startswith(("http://", "https://")):
            return value
        return self.config.base_url.rstrip("/") + "/" + value.lstrip("/")

    def _request(
        self,
        method: str,
        path: str,
        *,
        query: Mapping[str, Any] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> tuple[int, str]:
        data = json.dumps(body).encode("utf-8") if body is not None else None
        headers = {
            "Authorization": self._auth_header(),
            "Accept": "application/json",
        }
        if data is not None:
            headers["Content-Type"] = "application/json"

        request = Request(self._url(path, query), data=data, headers=headers, method=method)
        try:
            with urlopen(request, timeout=self.config.timeout_seconds) as response:  # nosec B310
                http_status = response.status
                text = response.read().decode("utf-8", errors="replace")
        except HTTPError as exc:
            http_status = exc.code
            text = exc.read().decode("utf-8", errors="replace") if exc.fp is not None else ""
        except URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                logger.warning("fiscal.gateway.timeout method=%s path=%s", method, path)
                raise FiscalGatewayTimeoutError("Fiscal gateway timed out.") from exc
            logger.warning(
                "fiscal.gateway.unreachable method=%s path=%s error=%s",
                method,
                path,
                exc.__class__.__name__,
            )
            raise FiscalGatewayTransportError("Fiscal gateway is unreachable.") from exc
        except TimeoutError as exc:
            logger.warning("fiscal.gateway.timeout method=%s path=%s", method, path)
            raise FiscalGatewayTimeoutError("Fiscal gateway timed out.") from exc
        except OSError as exc:
            logger.warning(
                "fiscal.gateway.io_error method=%s path=%s error=%s",
                method,
                path,
                exc.__class__.__name__,
            )
            raise FiscalGatewayTransportError("Fiscal gateway connection failed.") from exc

        logger.info(
            "fiscal.gateway.response method=%s path=%s http_status=%s body=%s",
            method,
            path,
            http_status,
            mask_cpf_cnpj(text[:LOG_BODY_LIMIT]),
        )

        # Checked before any JSON parsing: this answer is plain text.
        if http_status == 401 or text.lstrip().startswith("HTTP Basic"):
            raise FiscalGatewayAuthenticationError(
                "Fiscal gateway rejected the API token. Check the configured credentials.",
                http_status=http_status,
            )
        return http_status, text

    @staticmethod
    def _parse_json(http_status: int, text: str) -> dict[str, Any]:
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise FiscalGatewayTransportError(
                f"Unexpected fiscal gateway response (HTTP {http_status}).",
                http_status=http_status,
            ) from exc
        if not isinstance(data, dict):
            raise FiscalGatewayTransportError(
                f"Unexpected fiscal gateway response (HTTP {http_status}).",
                http_status=http_status,
            )
        return data

    @staticmethod
    def _error_message(http_status: int, data: Mapping[str, Any]) -> str:
        errors = data.get("erros")
        if isinstance(errors, list):
            messages = [
                str(error.get("mensagem") or "").strip()
                for error in errors
                if isinstance(error, Mapping)
            ]
            joined = ", ".join(message for message in messages if message)
            if joined:
                return joined
        return str(data.get("mensagem") or f"HTTP {http_status}")

    def _raise_for_status(self, http_status: int, data: Mapping[str, Any]) -> None:
        if http_status < 400:
            return
        message = self._error_message(http_status, data)
        if http_status >= 500:
            raise FiscalGatewayTransportError(message, http_status=http_status, payload=data)
        raise FiscalGatewayRejectionError(
            message,
            code=str(data.get("codigo") or "") or None,
            details=data.get("erros"),
            http_status=http_status,
            payload=data,
        )

    def _document_result(self, http_status: int, data: Mapping[str, Any]) -> DocumentResult:
        access_key = str(data.get("chave_nfe") or "").strip()
        if access_key.startswith("NFe") and len(access_key) == 47:
            access_key = access_key[3:]
        return DocumentResult(
            status=str(data.get("status") or "").strip().lower(),
            authority_status_code=str(data.get("status_sefaz") or "").strip(),
            authority_message=str(data.get("mensagem_sefaz") or data.get("mensagem") or "").strip(),
            access_key=access_key,
            number=_to_int(data.get("numero")),
            series=_to_int(data.get("serie")),
            protocol_number=str(data.get("protocolo") or "").strip(),
            danfe_url=self._absolute_url(data.get("caminho_danfe")),
            xml_url=self._absolute_url(data.get("caminho_xml_nota_fiscal")),
            http_status=http_status,
            raw=data,
        )

    def register_company(
        self,
        payload: Mapping[str, Any],
        *,
        existing_ref: str | None = None,
    ) -> CompanyRegistration:
        existing_ref = (existing_ref or "").strip()
        if existing_ref:
            http_status, text = self._request(
                "PUT", f"/v2/empresas/{quote(existing_ref, safe='')}", body=payload
            )
        else:
            http_status, text = self._request("POST", "/v2/empresas", body=payload)

        data = self._parse_json(http_status, text)
        self._raise_for_status(http_status, data)

        ref = str(data.get("id") or existing_ref or "").strip()
        if not ref:
            raise FiscalGatewayTransportError(
                "Fiscal gateway did not return a company id.",
                http_status=http_status,
                payload=data,
            )
        return CompanyRegistration(
            ref=ref,
            certificate_expires_at=_parse_expiry(
                data.get("certificado_valido_ate") or data.get("certificado_validade")
            ),
            raw=data,
        )

    def submit_document(self, ref: str, payload: Mapping[str, Any]) -> DocumentResult:
        http_status, text = self._request("POST", "/v2/nfe", query={"ref": ref}, body=payload)
        data = self._parse_json(http_status, text)

        if http_status in (200, 201, 202):
            result = self._document_result(http_status, data)
            if not result.status:
                # 202 without body: accepted for asynchronous authorization.
                return DocumentResult(status=STATUS_PROCESSING, http_status=http_status, raw=data)
            return result

        if str(data.get("codigo") or "") in DUPLICATE_REFERENCE_CODES:
            logger.info("fiscal.gateway.duplicate_ref ref=%s code=%s", ref, data.get("codigo"))
            return self.poll_status(ref)

        self._raise_for_status(http_status, data)
        raise FiscalGatewayTransportError(
            f"Unexpected fiscal gateway response (HTTP {http_status}).",
            http_status=http_status,
            payload=data,
        )

    def poll_status(self, ref: str) -> DocumentResult:
        http_status, text = self._request(
            "GET", f"/v2/nfe/{quote(ref, safe='')}", query={"completa": 0}
        )
        data = self._parse_json(http_status, text)

        if http_status == 404:
            return DocumentResult(
                status=STATUS_NOT_FOUND,
                authority_message=self._error_message(http_status, data),
                http_status=http_status,
                raw=data,
            )
        if http_status == 422 and data.get("status"):
            return self._document_result(http_status, data)

        self._raise_for_status(http_status, data)
        return self._document_result(http_status, data)

    def cancel_document(self, ref: str, justification: str) -> DocumentResult:
        justification = validate_cancel_justification(justification)
        http_status, text = self._request(
            "DELETE",
            f"/v2/nfe/{quote(ref, safe='')}",
            body={"justificativa": justification},
        )
        data = self._parse_json(http_status, text)
        self._raise_for_status(http_status, data)
        return self._document_result(http_status, data)
