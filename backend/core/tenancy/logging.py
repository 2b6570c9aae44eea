from __future__ import annotations

import logging
import re
from typing import Any


_CNPJ_RE = re.compile(
    r"(?<!\d)(?:\d{14}|\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2})(?!\d)"
)
_CPF_RE = re.compile(r"(?<!\d)(?:\d{11}|\d{3}\.\d{3}\.\d{3}-\d{2})(?!\d)")
_BASIC_AUTH_RE = re.compile(r"(Basic\s+)[A-Za-z0-9+/=]{8,}")


def mask_cpf_cnpj(text: str) -> str:
    """Mask CPF/CNPJ patterns in a string.

    No digits are kept. NF-e access keys (44 digits) are left alone because
    the lookarounds only match isolated 11/14 digit runs.
    """

    if not text:
        return text

    text = _CNPJ_RE.sub("***CNPJ***", text)
    text = _CPF_RE.sub("***CPF***", text)
    return text


def mask_credentials(text: str) -> str:
    if not text:
        return text
    return _BASIC_AUTH_RE.sub(r"\1***", text)


class MaskCPFCNPJFilter(logging.Filter):
    """Logging filter masking CPF/CNPJ and Basic auth credentials."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:  # pragma: no cover
            message = str(getattr(record, "msg", ""))

        masked = mask_credentials(mask_cpf_cnpj(str(message)))

        # Replace the formatted message and clear args to avoid double formatting.
        record.msg = masked
        record.args = ()

        for key in ("cpf", "cnpj", "cpf_cnpj", "tax_id"):
            if hasattr(record, key):
                value: Any = getattr(record, key)
                if isinstance(value, str):
                    setattr(record, key, mask_cpf_cnpj(value))

        return True
