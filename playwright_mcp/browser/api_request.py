"""Outbound HTTP tool with host allow-listing and re-validated redirects."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from ..config import AppConfig
from ..errors import InvalidInput
from ..security.header_validator import validate_headers
from ..security.input_validator import validate_timeout
from ..security.url_validator import ValidatedURL, validate_url
from .error_capture import ErrorCapture, now_ms
from .models import NetworkLogEntry
from .page_actions import build_tool, iter_mcp_methods, mcp_tool
from .session import BrowserSessionManager

ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")
BODY_METHODS = {"POST", "PUT", "PATCH"}
REDIRECT_STATUSES = {301, 302, 303, 307, 308}
MAX_REDIRECTS = 5
DEFAULT_HEADERS = {"Content-Type": "application/json"}


class TooManyRedirects(RuntimeError):
    pass


def _parse_payload(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return text


class ApiRequestFeature:
    """Make API calls through Playwright's request context."""

    def __init__(
        self,
        session_manager: BrowserSessionManager,
        config: AppConfig,
        capture: Optional[ErrorCapture] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.session_manager = session_manager
        self.config = config
        self.capture = capture
        self.logger = logger or logging.getLogger(__name__)
        self._tools: List[Any] = []

    def get_tools(self) -> List[Any]:
        if not self._tools:
            self._tools = [build_tool(method) for method in iter_mcp_methods(self)]
        return self._tools

    def _validate_target(self, raw: str) -> ValidatedURL:
        security = self.config.security
        return validate_url(
            raw,
            allowed_hosts=list(security.allowed_api_hosts) or None,
            allow_localhost=security.allow_localhost,
        )

    @mcp_tool(
        name="playwright_api_request",
        examples=[
            '{"method": "GET", "url": "https://api.example.com/users"}',
            '{"method": "POST", "url": "https://api.example.com/users", "body": {"name": "Ada"}}',
        ],
    )
    async def api_request(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, Any]] = None,
        body: Optional[Any] = None,
        timeout: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Make an HTTP request and return status, headers and the parsed response body."""
        verb = str(method or "GET").upper()
        if verb not in ALLOWED_METHODS:
            raise InvalidInput(f"Method must be one of: {', '.join(ALLOWED_METHODS)}", field="method")
        target = self._validate_target(url)
        caller_headers = validate_headers(headers)
        overridden = {name.lower() for name in caller_headers}
        merged_headers = {k: v for k, v in DEFAULT_HEADERS.items() if k.lower() not in overridden}
        merged_headers.update(caller_headers)
        timeout_ms = validate_timeout(timeout if timeout is not None else self.config.security.api_request_timeout)
        payload = json.dumps(body) if body is not None and verb in BODY_METHODS else None

        entry = NetworkLogEntry(
            url=target.url,
            method=verb,
            request_headers=dict(merged_headers),
            request_body=body if payload is not None else None,
            timestamp=now_ms(),
        )
        if self.capture is not None:
            self.capture.record_exchange(entry)

        started = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self._fetch(target, verb, merged_headers, payload, timeout_ms),
                # 0 disables the timeout, as it does for Playwright.
                timeout=float(timeout_ms) / 1000.0 if timeout_ms else None,
            )
        except asyncio.TimeoutError:
            entry.status, entry.status_text = 0, "Failed"
            entry.error_text = f"Timed out after {timeout_ms}ms"
            entry.duration = int((time.monotonic() - started) * 1000)
            raise TimeoutError(f"API request timed out after {timeout_ms}ms") from None
        except Exception as exc:
            entry.status, entry.status_text = 0, "Failed"
            entry.error_text = str(exc)
            entry.duration = int((time.monotonic() - started) * 1000)
            raise

        entry.url = result["url"]
        entry.status = result["status"]
        entry.status_text = result["status_text"]
        entry.response_headers = result["headers"]
        entry.response_body = result["data"]
        entry.duration = int((time.monotonic() - started) * 1000)
        return {"ok": True, **result}

    async def _fetch(
        self,
        target: ValidatedURL,
        method: str,
        headers: Dict[str, str],
        payload: Optional[str],
        timeout_ms: float,
    ) -> Dict[str, Any]:
        request_context = await self.session_manager.get_request_context()
        current = target
        redirects = 0
        while True:
            options: Dict[str, Any] = {
                "method": method,
                "headers": headers,
                "timeout": float(timeout_ms),
                "max_redirects": 0,
                "fail_on_status_code": False,
            }
            if payload is not None:
                options["data"] = payload
            response = await request_context.fetch(current.url, **options)
            location = (response.headers or {}).get("location")
            if response.status not in REDIRECT_STATUSES or not location:
                break

            status = response.status
            await response.dispose()
            redirects += 1
            if redirects > MAX_REDIRECTS:
                raise TooManyRedirects(f"Too many redirects (max {MAX_REDIRECTS})")
            # Every hop must pass the same checks as the original target.
            next_target = self._validate_target(urljoin(current.url, location))
            self.logger.debug("Following redirect %s -> %s", status, next_target.hostname)
            if status == 303 or (status in (301, 302) and method not in ("GET", "HEAD")):
                method, payload = "GET", None
            current = next_target

        try:
            text = await response.text()
        finally:
            await response.dispose()
        return {
            "url": current.url,
            "status": response.status,
            "status_text": response.status_text,
            "headers": dict(response.headers or {}),
            "data": _parse_payload(text),
            "redirects": redirects,
        }
