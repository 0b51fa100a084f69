"""Network, console and DOM capture for failure diagnostics."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Deque, Dict, List, Optional, Tuple

from ..errors import CaptureError
from ..security.error_sanitizer import sanitize_error
from .models import (
    CaseInfo,
    ConsoleLocation,
    ConsoleLogEntry,
    DomState,
    EnvironmentInfo,
    ErrorDetails,
    ExecutionStep,
    FailureRecord,
    MediaRefs,
    NetworkLogEntry,
    VisibleElement,
)

MAX_TEXT_BODY_CHARS = 10000
MAX_HTML_CHARS = 100000
MAX_SCANNED_ELEMENTS = 50
MAX_ELEMENT_TEXT_CHARS = 100
DEFAULT_MAX_ENTRIES = 500

PAGE_EVENTS = ("request", "response", "requestfailed", "console", "pageerror")

_CONSOLE_TYPES = {
    "log": "log",
    "info": "info",
    "warn": "warning",
    "warning": "warning",
    "error": "error",
    "debug": "debug",
}


def now_ms() -> int:
    return int(time.time() * 1000)


def _parse_body(raw: Any) -> Any:
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8", errors="replace")
    text = str(raw)
    try:
        return json.loads(text)
    except ValueError:
        return text


def _failure_text(request: Any) -> Optional[str]:
    # Playwright exposes this as a property; older bindings used a method.
    failure = getattr(request, "failure", None)
    if callable(failure):
        try:
            failure = failure()
        except Exception:
            failure = None
    if isinstance(failure, dict):
        failure = failure.get("errorText")
    return str(failure) if failure else None


class ErrorCapture:
    """Observe one page and keep bounded buffers of what happened on it.

    Buffers hold at most ``max_entries`` items each; the oldest entries are
    dropped first. Listener callbacks never raise into the page's event loop.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._network: Deque[NetworkLogEntry] = deque(maxlen=max_entries)
        self._console: Deque[ConsoleLogEntry] = deque(maxlen=max_entries)
        self._steps: List[ExecutionStep] = []
        # id(request) -> (request, entry, started_ms); the request reference keeps the id stable.
        self._pending: Dict[int, Tuple[Any, NetworkLogEntry, int]] = {}
        self._page: Any = None
        self._handlers: Dict[str, Any] = {}
        self._tasks: set = set()

    @property
    def page(self) -> Any:
        return self._page

    @property
    def attached(self) -> bool:
        return bool(self._handlers)

    async def attach_listeners(self, page: Any) -> None:
        if page is None:
            raise CaptureError("No page to observe")
        if self._handlers:
            if page is self._page:
                return
            await self.detach_listeners()

        def _on_request(request: Any) -> None:
            self._handle_request(request)

        def _on_response(response: Any) -> None:
            self._spawn(self._handle_response(response))

        def _on_request_failed(request: Any) -> None:
            self._handle_request_failed(request)

        def _on_console(msg: Any) -> None:
            self._handle_console(msg)

        def _on_page_error(err: Any) -> None:
            self._handle_page_error(err)

        handlers = {
            "request": _on_request,
            "response": _on_response,
            "requestfailed": _on_request_failed,
            "console": _on_console,
            "pageerror": _on_page_error,
        }
        for evt, handler in handlers.items():
            page.on(evt, handler)
        self._handlers = handlers
        self._page = page

    async def detach_listeners(self) -> None:
        page = self._page
        if page is not None:
            for evt in PAGE_EVENTS:
                handler = self._handlers.get(evt)
                if handler is None:
                    continue
                try:
                    page.remove_listener(evt, handler)
                except Exception:
                    pass
        self._handlers = {}
        tasks = list(self._tasks)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    @asynccontextmanager
    async def observe(self, page: Any) -> AsyncIterator["ErrorCapture"]:
        """Attach listeners for the duration of the block, detaching on any exit."""
        await self.attach_listeners(page)
        try:
            yield self
        finally:
            await self.detach_listeners()

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _entry_for_request(self, request: Any) -> NetworkLogEntry:
        pending = self._pending.get(id(request))
        if pending is not None and pending[0] is request:
            return pending[1]
        # Response or failure arrived without a matching request event.
        self._handle_request(request)
        return self._pending[id(request)][1]

    def _handle_request(self, request: Any) -> None:
        try:
            headers = dict(getattr(request, "headers", {}) or {})
        except Exception:
            headers = {}
        started = now_ms()
        entry = NetworkLogEntry(
            url=str(getattr(request, "url", "") or ""),
            method=str(getattr(request, "method", "") or ""),
            request_headers=headers,
            request_body=_parse_body(getattr(request, "post_data", None)),
            timestamp=started,
        )
        self._network.append(entry)
        self._pending[id(request)] = (request, entry, started)

    async def _handle_response(self, response: Any) -> None:
        request = getattr(response, "request", None)
        entry = self._entry_for_request(request)
        started = self._pending.get(id(request), (None, None, entry.timestamp))[2]
        try:
            headers = dict(getattr(response, "headers", {}) or {})
        except Exception:
            headers = {}
        entry.status = int(getattr(response, "status", 0) or 0)
        entry.status_text = str(getattr(response, "status_text", "") or "")
        entry.response_headers = headers
        entry.duration = max(0, now_ms() - started)

        content_type = str(headers.get("content-type") or "").lower()
        try:
            if "application/json" in content_type:
                entry.response_body = await response.json()
            else:
                entry.response_body = (await response.text())[:MAX_TEXT_BODY_CHARS]
        except Exception as exc:
            self.logger.debug("Response body unavailable for %s: %s", entry.url, exc)
        self._pending.pop(id(request), None)

    def _handle_request_failed(self, request: Any) -> None:
        entry = self._entry_for_request(request)
        started = self._pending.pop(id(request))[2]
        entry.status = 0
        entry.status_text = "Failed"
        entry.error_text = _failure_text(request)
        entry.duration = max(0, now_ms() - started)

    def _handle_console(self, msg: Any) -> None:
        kind = getattr(msg, "type", "log")
        if callable(kind):
            kind = kind()
        location = None
        raw_location = getattr(msg, "location", None)
        if isinstance(raw_location, dict) and raw_location:
            location = ConsoleLocation(
                url=str(raw_location.get("url") or ""),
                line=int(raw_location.get("lineNumber") or 0),
                column=int(raw_location.get("columnNumber") or 0),
            )
        text = getattr(msg, "text", "")
        if callable(text):
            text = text()
        self._console.append(
            ConsoleLogEntry(
                type=_CONSOLE_TYPES.get(str(kind or "log").lower(), "log"),
                message=str(text or ""),
                timestamp=now_ms(),
                location=location,
            )
        )

    def _handle_page_error(self, err: Any) -> None:
        message = getattr(err, "message", None) or str(err)
        stack = getattr(err, "stack", None)
        self._console.append(
            ConsoleLogEntry(
                type="error",
                message=str(message),
                timestamp=now_ms(),
                args=[str(stack)] if stack else None,
            )
        )

    async def capture_dom_state(self, page: Any = None) -> Optional[DomState]:
        page = page if page is not None else self._page
        if page is None:
            return None
        try:
            url = str(page.url or "")
            title = await page.title()
            html = (await page.content())[:MAX_HTML_CHARS]
        except Exception as exc:
            self.logger.warning("DOM snapshot failed: %s", exc)
            return None

        try:
            candidates = (await page.locator("body *").all())[:MAX_SCANNED_ELEMENTS]
        except Exception as exc:
            self.logger.debug("Element scan failed: %s", exc)
            candidates = []

        visible: List[VisibleElement] = []
        for element in candidates:
            try:
                if not await element.is_visible():
                    continue
                selector = await self._guess_selector(element)
                text = ((await element.text_content()) or "").strip()[:MAX_ELEMENT_TEXT_CHARS]
            except Exception as exc:
                self.logger.debug("Skipping unreadable element: %s", exc)
                continue
            visible.append(VisibleElement(selector=selector, text=text or None, visible=True))
        return DomState(url=url, title=title, html=html, visible_elements=visible)

    async def _guess_selector(self, element: Any) -> str:
        element_id = await element.get_attribute("id")
        if element_id:
            return f"#{element_id}"
        classes = (await element.get_attribute("class") or "").split()
        if classes:
            return f".{classes[0]}"
        return str(await element.evaluate("el => el.tagName.toLowerCase()"))

    def add_step(self, description: str, tool: Optional[str] = None) -> ExecutionStep:
        step = ExecutionStep(
            step=len(self._steps) + 1,
            description=str(description),
            tool=tool,
            timestamp=now_ms(),
        )
        self._steps.append(step)
        return step

    def record_exchange(self, entry: NetworkLogEntry) -> None:
        """Record an HTTP exchange that did not go through the observed page."""
        self._network.append(entry)

    def get_network_logs(self) -> List[NetworkLogEntry]:
        return list(self._network)

    def get_console_logs(self) -> List[ConsoleLogEntry]:
        return list(self._console)

    def get_steps(self) -> List[ExecutionStep]:
        return list(self._steps)

    def build_error_report(
        self,
        case_info: CaseInfo,
        error: Any,
        environment: Optional[EnvironmentInfo] = None,
        media: Optional[MediaRefs] = None,
        dom_state: Optional[DomState] = None,
        production: Optional[bool] = None,
    ) -> FailureRecord:
        sanitized = sanitize_error(error, production=production)
        details = sanitized.get("details") or {}
        return FailureRecord(
            case_info=case_info,
            error=ErrorDetails(
                message=sanitized["message"],
                type=sanitized.get("type"),
                name=sanitized.get("type"),
                stack=details.get("stack"),
            ),
            environment=environment or EnvironmentInfo(),
            network_logs=self.get_network_logs() or None,
            console_logs=self.get_console_logs() or None,
            dom_state=dom_state,
            test_steps=self.get_steps() or None,
            media=media,
        )

    def reset(self) -> None:
        self._network.clear()
        self._console.clear()
        self._steps.clear()
        self._pending.clear()
