from __future__ import annotations

import pytest

from playwright_mcp.errors import (
    DisallowedScheme,
    HostNotAllowed,
    InvalidFormat,
    PrivateAddressBlocked,
    ValidationError,
)
from playwright_mcp.security.url_validator import (
    host_matches,
    is_private_host,
    validate_navigation_url,
    validate_url,
)


def test_public_https_url_is_normalized() -> None:
    result = validate_url("https://API.Example.com/v1/items?page=2")
    assert result.scheme == "https"
    assert result.hostname == "api.example.com"
    assert result.url == "https://api.example.com/v1/items?page=2"
    assert result.is_private is False
    assert str(result) == result.url


@pytest.mark.parametrize("raw", ["", "   ", "not a url", "http://", "http://exa mple.com/", "http://example.com:99999/"])
def test_malformed_urls_are_rejected(raw: str) -> None:
    with pytest.raises(InvalidFormat):
        validate_url(raw)


@pytest.mark.parametrize("raw", ["ftp://example.com/file", "file:///etc/passwd", "javascript:alert(1)", "data:text/html,hi"])
def test_non_http_schemes_are_rejected(raw: str) -> None:
    with pytest.raises(DisallowedScheme) as exc_info:
        validate_url(raw)
    assert exc_info.value.rule == "disallowed_scheme"


@pytest.mark.parametrize(
    "raw",
    [
        "http://127.0.0.1/",
        "http://localhost:8080/",
        "http://10.0.0.5/",
        "http://172.16.3.4/",
        "http://192.168.1.1/admin",
        "http://169.254.169.254/latest/meta-data/",
        "http://metadata.google.internal/computeMetadata/v1/",
        "http://printer.local/",
        "http://service.internal/",
        "http://[::1]/",
        "http://127.1/",
        "http://2130706433/",
        "http://0.0.0.0/",
    ],
)
def test_private_and_internal_hosts_are_blocked(raw: str) -> None:
    with pytest.raises(PrivateAddressBlocked) as exc_info:
        validate_url(raw)
    assert "internal/private" in exc_info.value.message


def test_allow_localhost_only_admits_the_localhost_name() -> None:
    assert validate_url("http://localhost:3000/api", allow_localhost=True).hostname == "localhost"
    with pytest.raises(PrivateAddressBlocked):
        validate_url("http://127.0.0.1:3000/api", allow_localhost=True)


def test_allow_list_accepts_exact_host_and_subdomains() -> None:
    allowed = ["example.com"]
    assert validate_url("https://example.com/", allowed_hosts=allowed).hostname == "example.com"
    assert validate_url("https://api.example.com/", allowed_hosts=allowed).hostname == "api.example.com"


@pytest.mark.parametrize("raw", ["https://evil-example.com/", "https://example.com.evil.org/", "https://other.org/"])
def test_allow_list_rejects_lookalike_hosts(raw: str) -> None:
    with pytest.raises(HostNotAllowed) as exc_info:
        validate_url(raw, allowed_hosts=["example.com"])
    assert "not in the allowed hosts list" in exc_info.value.message


def test_empty_allow_list_entries_are_ignored() -> None:
    assert validate_url("https://anything.org/", allowed_hosts=["", "  "]).hostname == "anything.org"


def test_navigation_allows_local_targets_but_honors_domains() -> None:
    assert validate_navigation_url("http://localhost:5173/login").hostname == "localhost"
    with pytest.raises(HostNotAllowed):
        validate_navigation_url("https://elsewhere.net/", allowed_domains=["app.example.com"])
    with pytest.raises(DisallowedScheme):
        validate_navigation_url("file:///tmp/index.html")


def test_validation_errors_are_value_errors() -> None:
    with pytest.raises(ValueError):
        validate_url("gopher://example.com")
    try:
        validate_url("gopher://example.com")
    except ValidationError as exc:
        assert exc.to_dict() == {
            "rule": "disallowed_scheme",
            "message": "Only HTTP and HTTPS URLs are allowed",
            "field": "url",
        }


def test_helpers() -> None:
    assert is_private_host("LOCALHOST.") is True
    assert is_private_host("::ffff:10.1.2.3") is True
    assert is_private_host("example.com") is False
    assert is_private_host("8.8.8.8") is False
    assert host_matches("a.b.example.com", [".example.com"]) is True
    assert host_matches("example.community", ["example.com"]) is False
