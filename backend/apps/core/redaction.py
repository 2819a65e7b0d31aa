"""
Recursive redaction of sensitive fields.

Applied to audit payloads before they leave the core and to every structlog
event dict, so secrets never reach log storage.
"""

import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

REDACTED = "[REDACTED]"
MAX_DEPTH_MARKER = "[MAX_DEPTH]"
CIRCULAR_MARKER = "[CIRCULAR]"
MAX_DEPTH = 10

SENSITIVE_KEYS = frozenset(
    {
        "password",
        "passwordhash",
        "token",
        "tokenhash",
        "secret",
        "apikey",
        "authorization",
        "auth",
        "credential",
        "credentials",
        "bearer",
        "cookie",
        "creditcard",
        "ssn",
        "cvv",
        "privatekey",
    }
)

SENSITIVE_SUBSTRINGS = ("password", "token", "secret", "credential", "auth")

_SEPARATORS = re.compile(r"[-_\s.]")


def is_sensitive_key(key: str) -> bool:
    """Case-insensitive exact or substring match against known-sensitive names."""
    normalized = _SEPARATORS.sub("", key.lower())
    if normalized in SENSITIVE_KEYS:
        return True
    return any(part in normalized for part in SENSITIVE_SUBSTRINGS)


def redact(value: Any, *, _depth: int = 0, _seen: set[int] | None = None) -> Any:
    """
    Return a JSON-safe copy of value with sensitive keys replaced.

    Nested mappings and sequences are walked up to MAX_DEPTH levels.
    Containers already on the current path are replaced by CIRCULAR_MARKER.
    """
    if _depth > MAX_DEPTH:
        return MAX_DEPTH_MARKER

    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, UUID | Decimal):
        return str(value)

    if isinstance(value, Mapping | list | tuple | set | frozenset):
        seen = _seen if _seen is not None else set()
        marker = id(value)
        if marker in seen:
            return CIRCULAR_MARKER
        seen.add(marker)
        try:
            if isinstance(value, Mapping):
                return {
                    str(key): REDACTED
                    if is_sensitive_key(str(key))
                    else redact(item, _depth=_depth + 1, _seen=seen)
                    for key, item in value.items()
                }
            return [redact(item, _depth=_depth + 1, _seen=seen) for item in value]
        finally:
            seen.discard(marker)

    return str(value)
