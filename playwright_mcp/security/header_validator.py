"""HTTP header sanitizing (header and CRLF injection defense)."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Dict

from ..errors import BlockedHeader, CRLFInjection, InvalidHeader

# Hop-by-hop and connection-management headers the HTTP stack owns.
BLOCKED_HEADERS = frozenset(
    {
        "host",
        "connection",
        "upgrade",
        "keep-alive",
        "proxy-connection",
        "transfer-encoding",
        "content-length",
        "expect",
        "te",
        "trailer",
    }
)

HEADER_NAME_RE = re.compile(r"[A-Za-z0-9!#$%&'*+.^_`|~-]+")
MAX_HEADER_NAME_LENGTH = 100
MAX_HEADER_VALUE_LENGTH = 8192


def _label(name: Any) -> str:
    return "".join(ch if ch.isprintable() else "?" for ch in str(name)[:MAX_HEADER_NAME_LENGTH])


def validate_header_name(name: Any) -> str:
    if not isinstance(name, str):
        raise InvalidHeader("Header name must be a string", field="header")

    normalized = name.strip().lower()
    if not normalized:
        raise InvalidHeader("Header name cannot be empty", field="header")
    if len(normalized) > MAX_HEADER_NAME_LENGTH:
        raise InvalidHeader(
            f"Header name is too long (max {MAX_HEADER_NAME_LENGTH} characters)",
            field="header",
        )
    if normalized in BLOCKED_HEADERS:
        raise BlockedHeader(f'Header "{_label(name.strip())}" is not allowed for security reasons', field="header")
    if not HEADER_NAME_RE.fullmatch(name):
        raise InvalidHeader("Invalid header name", field="header")
    return name


def validate_header_value(value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidHeader("Header value must be a string", field="header")
    if "\r" in value or "\n" in value:
        raise CRLFInjection(
            "Header value contains invalid characters (CRLF injection attempt)",
            field="header",
        )

    trimmed = value.strip()
    if not trimmed:
        raise InvalidHeader("Header value cannot be empty", field="header")
    if len(trimmed) > MAX_HEADER_VALUE_LENGTH:
        raise InvalidHeader(
            f"Header value is too long (max {MAX_HEADER_VALUE_LENGTH} characters)",
            field="header",
        )
    if "\x00" in trimmed:
        raise InvalidHeader("Header value contains a null byte", field="header")
    return trimmed


def validate_headers(headers: Any) -> Dict[str, str]:
    """Validate a whole header mapping; the first bad entry fails the batch.

    Anything that is not a mapping yields an empty dict so callers can merge
    onto their own defaults.
    """
    if not isinstance(headers, Mapping):
        return {}

    validated: Dict[str, str] = {}
    for name, value in headers.items():
        try:
            valid_name = validate_header_name(name)
            valid_value = validate_header_value("" if value is None else str(value))
        except InvalidHeader as e:
            raise type(e)(f'Invalid header "{_label(name)}": {e.message}', field="header") from None
        validated[valid_name] = valid_value
    return validated
