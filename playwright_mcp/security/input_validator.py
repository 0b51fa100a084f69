"""Bounds and pattern checks for caller-supplied action arguments."""

from __future__ import annotations

import math
import re
from typing import Any, Union

from ..errors import DangerousPattern, InvalidInput, InvalidSelector, InvalidTimeout

MAX_TIMEOUT_MS = 300000
MAX_SELECTOR_LENGTH = 1000
MAX_TEXT_LENGTH = 10000
MAX_URL_PATTERN_LENGTH = 2048

DANGEROUS_SELECTOR_PATTERNS = (
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\bon[a-z]+\s*=", re.IGNORECASE),
    re.compile(r"<\s*script", re.IGNORECASE),
    re.compile(r"\beval\s*\(", re.IGNORECASE),
)

UNSAFE_URL_PATTERN_CHARS = frozenset("<>\"'")
UNSAFE_URL_SCHEMES = ("javascript:", "data:", "file:", "ftp:")

Number = Union[int, float]


def validate_timeout(ms: Any) -> Number:
    if isinstance(ms, bool) or not isinstance(ms, (int, float)):
        raise InvalidTimeout("Timeout must be a number", field="timeout")
    if isinstance(ms, float) and math.isnan(ms):
        raise InvalidTimeout("Timeout must be a number", field="timeout")
    if ms < 0 or ms > MAX_TIMEOUT_MS:
        raise InvalidTimeout(
            f"Timeout must be between 0 and {MAX_TIMEOUT_MS}ms (5 minutes)",
            field="timeout",
        )
    return ms


def validate_selector(selector: Any) -> str:
    if not isinstance(selector, str):
        raise InvalidSelector("Selector must be a string", field="selector")
    if not selector:
        raise InvalidSelector("Selector cannot be empty", field="selector")
    if len(selector) > MAX_SELECTOR_LENGTH:
        raise InvalidSelector(
            f"Selector is too long (max {MAX_SELECTOR_LENGTH} characters)",
            field="selector",
        )
    for pattern in DANGEROUS_SELECTOR_PATTERNS:
        if pattern.search(selector):
            raise DangerousPattern("Potentially dangerous selector pattern detected", field="selector")
    return selector


def validate_text_input(value: Any, field: str = "text", max_length: int = MAX_TEXT_LENGTH) -> str:
    if not isinstance(value, str):
        raise InvalidInput(f"{field} must be a string", field=field)
    if len(value) > max_length:
        raise InvalidInput(f"{field} is too long (max {max_length} characters)", field=field)
    return value


def validate_fill_value(value: Any, max_length: int = MAX_TEXT_LENGTH) -> str:
    return validate_text_input(value, field="value", max_length=max_length)


def validate_url_pattern(pattern: Any, max_length: int = MAX_URL_PATTERN_LENGTH) -> str:
    value = validate_text_input(pattern, field="url_pattern", max_length=max_length)
    if not value.strip():
        raise InvalidInput("url_pattern cannot be empty", field="url_pattern")
    return value


def validate_wait_url_pattern(pattern: Any) -> str:
    """URL-wait patterns may be globs or substrings but never markup or pseudo-schemes."""
    value = validate_url_pattern(pattern)
    if any(ch in UNSAFE_URL_PATTERN_CHARS for ch in value):
        raise DangerousPattern("URL pattern contains invalid characters", field="url_pattern")
    lowered = value.strip().lower()
    if any(scheme in lowered for scheme in UNSAFE_URL_SCHEMES):
        raise DangerousPattern("URL pattern uses a disallowed scheme", field="url_pattern")
    return value
