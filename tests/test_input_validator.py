from __future__ import annotations

import pytest

from playwright_mcp.errors import DangerousPattern, InvalidInput, InvalidSelector, InvalidTimeout
from playwright_mcp.security.input_validator import (
    validate_fill_value,
    validate_selector,
    validate_text_input,
    validate_timeout,
    validate_url_pattern,
    validate_wait_url_pattern,
)


@pytest.mark.parametrize("ms", [0, 1, 5000, 300000, 2.5])
def test_timeouts_in_range(ms: float) -> None:
    assert validate_timeout(ms) == ms


@pytest.mark.parametrize("ms", [-1, 300001, float("nan"), "1000", None, True])
def test_timeouts_out_of_range_or_wrong_type(ms: object) -> None:
    with pytest.raises(InvalidTimeout):
        validate_timeout(ms)


@pytest.mark.parametrize("selector", ["button.primary", "#login", "text=Sign in", "data-testid=submit", "li:nth-child(2)"])
def test_ordinary_selectors_pass(selector: str) -> None:
    assert validate_selector(selector) == selector


@pytest.mark.parametrize(
    "selector",
    ["javascript:alert(1)", "img[onerror=alert(1)]", "div[onclick = x]", "<script>alert(1)</script>", "eval(document.cookie)"],
)
def test_dangerous_selectors_are_rejected(selector: str) -> None:
    with pytest.raises(DangerousPattern) as exc_info:
        validate_selector(selector)
    assert isinstance(exc_info.value, InvalidSelector)


@pytest.mark.parametrize("selector", ["", "a" * 1001, None, 7])
def test_empty_long_or_non_string_selectors_are_rejected(selector: object) -> None:
    with pytest.raises(InvalidSelector):
        validate_selector(selector)


def test_fill_value_limits() -> None:
    assert validate_fill_value("") == ""
    assert validate_fill_value("x" * 10000) == "x" * 10000
    with pytest.raises(InvalidInput):
        validate_fill_value("x" * 10001)
    with pytest.raises(InvalidInput):
        validate_fill_value(123)


def test_text_input_uses_field_specific_limit() -> None:
    assert validate_text_input("abc", field="note", max_length=3) == "abc"
    with pytest.raises(InvalidInput) as exc_info:
        validate_text_input("abcd", field="note", max_length=3)
    assert exc_info.value.field == "note"


def test_url_pattern_limits() -> None:
    assert validate_url_pattern("**/checkout") == "**/checkout"
    with pytest.raises(InvalidInput):
        validate_url_pattern("")
    with pytest.raises(InvalidInput):
        validate_url_pattern("a" * 2049)


@pytest.mark.parametrize("pattern", ["**/dashboard", "/orders/*", "https://app.example.com/done"])
def test_wait_url_patterns_pass(pattern: str) -> None:
    assert validate_wait_url_pattern(pattern) == pattern


@pytest.mark.parametrize("pattern", ["<img>", '**/a"b', "javascript:alert(1)", "DATA:text/html,x", "file:///etc", "ftp://host/x"])
def test_wait_url_patterns_reject_markup_and_schemes(pattern: str) -> None:
    with pytest.raises(DangerousPattern):
        validate_wait_url_pattern(pattern)
