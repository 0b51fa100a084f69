from __future__ import annotations

import asyncio
import json
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from playwright_mcp.config import AppConfig

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


class FakeRequest:
    def __init__(self, url: str, method: str = "GET", headers: Optional[Dict[str, str]] = None,
                 post_data: Optional[str] = None, failure: Optional[str] = None):
        self.url = url
        self.method = method
        self.headers = headers or {}
        self.post_data = post_data
        self.failure = failure


class FakeResponse:
    def __init__(self, request: FakeRequest, status: int = 200, body: str = "",
                 headers: Optional[Dict[str, str]] = None, status_text: str = "OK"):
        self.request = request
        self.status = status
        self.status_text = status_text
        self.headers = headers or {}
        self._body = body

    async def json(self) -> Any:
        return json.loads(self._body)

    async def text(self) -> str:
        return self._body


class FakeConsoleMessage:
    def __init__(self, type: str, text: str, location: Optional[Dict[str, Any]] = None):
        self.type = type
        self.text = text
        self.location = location or {}


class FakePageError(Exception):
    def __init__(self, message: str, stack: str):
        super().__init__(message)
        self.message = message
        self.stack = stack


class FakeElement:
    def __init__(self, tag: str = "div", text: str = "", attrs: Optional[Dict[str, str]] = None,
                 visible: bool = True, broken: bool = False):
        self.tag = tag
        self.text = text
        self.attrs = attrs or {}
        self.visible = visible
        self.broken = broken

    async def is_visible(self) -> bool:
        if self.broken:
            raise RuntimeError("Element is detached")
        return self.visible

    async def get_attribute(self, name: str) -> Optional[str]:
        return self.attrs.get(name)

    async def text_content(self) -> str:
        return self.text

    async def evaluate(self, _expression: str) -> str:
        return self.tag


class FakeLocator:
    def __init__(self, page: "FakePage", selector: str):
        self.page = page
        self.selector = selector

    @property
    def first(self) -> "FakeLocator":
        return self

    def _maybe_fail(self) -> None:
        if self.selector in self.page.failing_selectors:
            raise TimeoutError(f"Timeout 30000ms exceeded waiting for {self.selector}")

    async def all(self) -> List[FakeElement]:
        return list(self.page.elements) if self.selector == "body *" else []

    async def click(self, timeout: Optional[float] = None) -> None:
        self._maybe_fail()
        self.page.actions.append(("click", self.selector, timeout))

    async def fill(self, value: str, timeout: Optional[float] = None) -> None:
        self._maybe_fail()
        self.page.actions.append(("fill", self.selector, value))

    async def text_content(self, timeout: Optional[float] = None) -> Optional[str]:
        self._maybe_fail()
        return self.page.texts.get(self.selector)

    async def all_text_contents(self) -> List[str]:
        return list(self.page.all_texts.get(self.selector, []))

    async def count(self) -> int:
        return self.page.counts.get(self.selector, 0)

    async def wait_for(self, state: str = "visible", timeout: Optional[float] = None) -> None:
        self._maybe_fail()
        self.page.actions.append(("wait_for", self.selector, state))

    async def screenshot(self, path: Optional[str] = None) -> bytes:
        if path:
            Path(path).write_bytes(PNG_BYTES)
        return PNG_BYTES


class FakeGotoResponse:
    def __init__(self, status: int):
        self.status = status


class FakePage:
    """Minimal stand-in for a Playwright page with an event emitter."""

    def __init__(self, url: str = "about:blank", title: str = "Fake App"):
        self.url = url
        self._title = title
        self.html = "<html><body><h1 id='main'>Hello</h1></body></html>"
        self.listeners: Dict[str, List[Any]] = defaultdict(list)
        self.elements: List[FakeElement] = []
        self.failing_selectors: set = set()
        self.texts: Dict[str, str] = {}
        self.all_texts: Dict[str, List[str]] = {}
        self.counts: Dict[str, int] = {}
        self.actions: List[Any] = []
        self.goto_error: Optional[Exception] = None
        self.closed = False

    def on(self, event: str, handler: Any) -> None:
        self.listeners[event].append(handler)

    def remove_listener(self, event: str, handler: Any) -> None:
        self.listeners[event].remove(handler)

    def emit(self, event: str, payload: Any) -> None:
        for handler in list(self.listeners[event]):
            handler(payload)

    def listener_count(self) -> int:
        return sum(len(handlers) for handlers in self.listeners.values())

    def is_closed(self) -> bool:
        return self.closed

    async def title(self) -> str:
        return self._title

    async def content(self) -> str:
        return self.html

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[float] = None) -> FakeGotoResponse:
        self.actions.append(("goto", url, wait_until))
        request = FakeRequest(url)
        self.emit("request", request)
        if self.goto_error is not None:
            request.failure = "net::ERR_CONNECTION_REFUSED"
            self.emit("requestfailed", request)
            raise self.goto_error
        self.emit("response", FakeResponse(request, 200, "<html></html>", {"content-type": "text/html"}))
        self.url = url
        return FakeGotoResponse(200)

    async def wait_for_url(self, pattern: str, timeout: Optional[float] = None) -> None:
        self.actions.append(("wait_for_url", pattern, timeout))

    async def screenshot(self, path: Optional[str] = None, full_page: bool = False) -> bytes:
        if path:
            Path(path).write_bytes(PNG_BYTES)
        self.actions.append(("screenshot", path, full_page))
        return PNG_BYTES


class FakeAPIResponse:
    def __init__(self, status: int = 200, body: str = "", headers: Optional[Dict[str, str]] = None,
                 status_text: str = "OK"):
        self.status = status
        self.status_text = status_text
        self.headers = headers or {}
        self._body = body
        self.disposed = False

    async def text(self) -> str:
        return self._body

    async def dispose(self) -> None:
        self.disposed = True


class FakeRequestContext:
    def __init__(self, responses: Optional[List[FakeAPIResponse]] = None, delay: float = 0.0,
                 error: Optional[Exception] = None):
        self.responses = list(responses or [])
        self.delay = delay
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def fetch(self, url: str, **options: Any) -> FakeAPIResponse:
        self.calls.append({"url": url, "options": options})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


class FakeSessionManager:
    def __init__(self, page: Optional[FakePage] = None, request_context: Optional[FakeRequestContext] = None):
        self.page = page or FakePage()
        self.request_context = request_context or FakeRequestContext()
        self.started = False
        self.closed = False

    @property
    def active_page(self) -> Optional[FakePage]:
        return self.page if self.started else None

    async def get_page(self) -> FakePage:
        self.started = True
        return self.page

    async def get_request_context(self) -> FakeRequestContext:
        return self.request_context

    async def close(self) -> None:
        self.closed = True


def make_config(root: Path, **env: str) -> AppConfig:
    return AppConfig.load(project_root=root, environ=dict(env))


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return make_config(tmp_path)


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture
def session(fake_page: FakePage) -> FakeSessionManager:
    return FakeSessionManager(page=fake_page)
