from __future__ import annotations

import itertools
from typing import Any, Mapping

from .base import (
    CompanyRegistration,
    DocumentResult,
    FiscalGatewayBase,
    GatewayConfig,
    validate_cancel_justification,
)


class MockFiscalGateway(FiscalGatewayBase):
    """In-memory gateway for local development.

    Behavior:
    - `submit_document(...)` authorizes immediately with a fake access key;
      a known reference returns the stored result instead of a new filing.
    - `cancel_document(...)` flips the stored status to `cancelado`.
    - `poll_status(...)` returns the stored result, or `nao_encontrado`.
    """

    provider_type = "mock"

    _sequence = itertools.count(1)
    _documents: dict[str, dict[str, Any]] = {}
    _companies: dict[str, dict[str, Any]] = {}

    def __init__(self, config: GatewayConfig | None = None) -> None:
        super().__init__(
            config or GatewayConfig(token="", environment="HOMOLOGATION", base_url="mock://fiscal")
        )

    @staticmethod
    def _result(data: Mapping[str, Any]) -> DocumentResult:
        return DocumentResult(
            status=data["status"],
            authority_status_code=data.get("status_sefaz", ""),
            authority_message=data.get("mensagem_sefaz", ""),
            access_key=data.get("chave_nfe", ""),
            number=data.get("numero"),
            series=data.get("serie"),
            protocol_number=data.get("protocolo", ""),
            http_status=200,
            raw=dict(data),
        )

    def register_company(
        self,
        payload: Mapping[str, Any],
        *,
        existing_ref: str | None = None,
    ) -> CompanyRegistration:
        ref = existing_ref or f"mock-{payload.get('cnpj') or next(self._sequence)}"
        self._companies[ref] = dict(payload)
        return CompanyRegistration(ref=ref, raw={"id": ref, "mock": True})

    def submit_document(self, ref: str, payload: Mapping[str, Any]) -> DocumentResult:
        if ref in self._documents:
            return self._result(self._documents[ref])

        number = next(self._sequence)
        series = int(payload.get("serie") or 1)
        cnpj = str(payload.get("cnpj_emitente") or "").rjust(14, "0")[:14]
        data = {
            "status": "autorizado",
            "status_sefaz": "100",
            "mensagem_sefaz": "Autorizado o uso da NF-e",
            "chave_nfe": f"35{cnpj}55{series:03d}{number:09d}".ljust(44, "0"),
            "numero": number,
            "serie": series,
            "protocolo": f"135{number:012d}",
            "mock": True,
        }
        self._documents[ref] = data
        return self._result(data)

    def poll_status(self, ref: str) -> DocumentResult:
        data = self._documents.get(ref)
        if data is None:
            return DocumentResult(status="nao_encontrado", http_status=404)
        return self._result(data)

    def cancel_document(self, ref: str, justification: str) -> DocumentResult:
        validate_cancel_justification(justification)
        data = self._documents.get(ref)
        if data is None:
            return DocumentResult(status="nao_encontrado", http_status=404)
        data["status"] = "cancelado"
        data["status_sefaz"] = "135"
        data["mensagem_sefaz"] = "Evento registrado e vinculado a NF-e"
        return self._result(data)
