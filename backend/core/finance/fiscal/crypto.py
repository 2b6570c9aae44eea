from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings


class SecretCryptoError(RuntimeError):
    """Raised when a stored gateway credential cannot be decrypted."""


_fernet: Fernet | None = None


def _get_fernet_key() -> bytes:
    configured = (getattr(settings, "FISCAL_TOKEN_ENCRYPTION_KEY", "") or "").strip()
    if configured:
        return configured.encode("utf-8")

    # Local/dev only: rotating SECRET_KEY makes stored credentials unreadable.
    digest = hashlib.sha256(settings.SECRET_KEY.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


def _get_fernet() -> Fernet:
    global _fernet
    if _fernet is None:
        _fernet = Fernet(_get_fernet_key())
    return _fernet


def encrypt_secret(value: str) -> str:
    """Encrypt a gateway token, certificate blob or certificate password."""

    if not value:
        return ""
    return _get_fernet().encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_secret(encrypted_value: str) -> str:
    if not encrypted_value:
        return ""
    try:
        return _get_fernet().decrypt(encrypted_value.encode("utf-8")).decode("utf-8")
    except InvalidToken as exc:
        raise SecretCryptoError("Stored fiscal credential cannot be decrypted.") from exc
