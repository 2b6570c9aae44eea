"""Correlation references sent to the fiscal gateway.

The gateway deduplicates submissions by reference, so the reference of a
document must never change between attempts: it is derived only from the
document's primary key and the deployment prefix.
"""

from __future__ import annotations

import re

from django.conf import settings

DEFAULT_PREFIX = "nfe"
_PREFIX_RE = re.compile(r"[^a-z0-9]+")


def _normalize_prefix(prefix: str | None) -> str:
    normalized = _PREFIX_RE.sub("", (prefix or "").strip().lower())
    return normalized or DEFAULT_PREFIX


def correlation_ref(document_id: int, *, prefix: str | None = None) -> str:
    """Return the gateway reference for `document_id`.

    Pure and deterministic: the same id (and prefix) always produce the same
    reference, and distinct ids never collide because the id is embedded
    verbatim after the prefix and a separator.

    >>> correlation_ref(42, prefix="nfe")
    'nfe-42'
    """

    document_id = int(document_id)
    if document_id <= 0:
        raise ValueError("document_id must be a positive integer.")
    if prefix is None:
        prefix = getattr(settings, "FISCAL_REF_PREFIX", DEFAULT_PREFIX)
    return f"{_normalize_prefix(prefix)}-{document_id}"
