"""Page action tools: navigation, interaction, assertions and screenshots."""

from __future__ import annotations

import base64
import inspect
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from langchain_core.tools import StructuredTool

from ..config import AppConfig
from ..errors import InvalidInput
from ..security.input_validator import (
    validate_fill_value,
    validate_selector,
    validate_text_input,
    validate_timeout,
    validate_wait_url_pattern,
)
from ..security.path_validator import validate_path
from ..security.url_validator import validate_navigation_url
from .session import BrowserSessionManager

DEFAULT_ACTION_TIMEOUT_MS = 30000
DEFAULT_ASSERT_TIMEOUT_MS = 5000
WAIT_UNTIL_MODES = {"load", "domcontentloaded", "networkidle", "commit"}
ELEMENT_STATES = {"visible", "hidden", "attached", "detached"}
ASSERTION_TYPES = ("visible", "hidden", "text", "url", "count")


def mcp_tool(
    _func: Optional[Callable[..., Any]] = None,
    *,
    name: Optional[str] = None,
    examples: Optional[List[str]] = None,
) -> Any:
    """Decorator to mark a method as an MCP-exposed tool."""

    def _decorate(func: Callable[..., Any]) -> Callable[..., Any]:
        setattr(func, "_is_mcp_tool", True)
        setattr(func, "_mcp_name", name or func.__name__)
        setattr(func, "_mcp_examples", examples or [])
        return func

    if _func is None:
        return _decorate
    return _decorate(_func)


def iter_mcp_methods(feature: Any) -> Iterator[Callable[..., Any]]:
    for method_name in dir(feature):
        method = getattr(feature, method_name, None)
        if callable(method) and bool(getattr(method, "_is_mcp_tool", False)):
            yield method


def tool_name_of(method: Callable[..., Any]) -> str:
    return str(getattr(method, "_mcp_name", method.__name__) or method.__name__)


def build_tool(method: Callable[..., Any], coroutine: Optional[Callable[..., Any]] = None) -> StructuredTool:
    """StructuredTool whose schema comes from ``method``; ``coroutine`` may replace the callable."""
    name = tool_name_of(method)
    doc = inspect.getdoc(method) or f"MCP tool: {name}"
    examples = list(getattr(method, "_mcp_examples", []) or [])
    if examples:
        doc = f"{doc}\n\nExamples:\n" + "\n".join(f"- {x}" for x in examples)
    tool = StructuredTool.from_function(name=name, description=doc, coroutine=method)
    if coroutine is None:
        return tool
    return StructuredTool(
        name=tool.name,
        description=tool.description,
        args_schema=tool.args_schema,
        coroutine=coroutine,
    )


def _locator(page: Any, selector: str) -> Any:
    # text= and data-testid= engines already address a single logical target.
    if selector.startswith("text=") or selector.startswith("data-testid="):
        return page.locator(selector)
    return page.locator(selector).first


class PageActionsFeature:
    """Navigate and interact with the shared page."""

    def __init__(
        self,
        session_manager: BrowserSessionManager,
        config: AppConfig,
        logger: Optional[logging.Logger] = None,
    ):
        self.session_manager = session_manager
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self._tools: List[Any] = []

    def get_tools(self) -> List[Any]:
        """Export page-action tools for LLM tool calling."""
        if not self._tools:
            self._tools = [build_tool(method) for method in iter_mcp_methods(self)]
        return self._tools

    @mcp_tool(name="playwright_navigate", examples=['{"url": "https://example.com", "wait_until": "load"}'])
    async def navigate(self, url: str, wait_until: str = "load") -> Dict[str, Any]:
        """Navigate the browser to a URL."""
        target = validate_navigation_url(url, list(self.config.security.allowed_ui_domains) or None)
        wait_mode = wait_until if wait_until in WAIT_UNTIL_MODES else "load"

        page = await self.session_manager.get_page()
        response = await page.goto(target.url, wait_until=wait_mode)

        status_code = None
        if response is not None:
            try:
                status_code = response.status
            except Exception:
                status_code = None
        try:
            title = await page.title()
        except Exception:
            title = ""
        return {
            "ok": True,
            "message": f"Navigated to {target.url}",
            "requested_url": target.url,
            "final_url": page.url,
            "status_code": status_code,
            "title": title,
            "wait_until": wait_mode,
        }

    @mcp_tool(name="playwright_click", examples=['{"selector": "button#submit"}', '{"selector": "text=Sign in"}'])
    async def click(self, selector: str, timeout: int = DEFAULT_ACTION_TIMEOUT_MS) -> Dict[str, Any]:
        """Click an element identified by a CSS selector, text, or test ID."""
        target = validate_selector(selector)
        wait_ms = validate_timeout(timeout)
        page = await self.session_manager.get_page()
        await _locator(page, target).click(timeout=wait_ms)
        return {"ok": True, "message": f"Clicked element: {target}", "selector": target}

    @mcp_tool(name="playwright_fill", examples=['{"selector": "#email", "value": "user@example.com"}'])
    async def fill(self, selector: str, value: str, timeout: int = DEFAULT_ACTION_TIMEOUT_MS) -> Dict[str, Any]:
        """Fill an input field with text."""
        target = validate_selector(selector)
        text = validate_fill_value(value)
        wait_ms = validate_timeout(timeout)
        page = await self.session_manager.get_page()
        await _locator(page, target).fill(text, timeout=wait_ms)
        return {"ok": True, "message": f"Filled {target}", "selector": target, "length": len(text)}

    @mcp_tool(name="playwright_get_text", examples=['{"selector": "h1"}', '{"selector": "li.item", "all_matches": true}'])
    async def get_text(self, selector: Optional[str] = None, all_matches: bool = False) -> Dict[str, Any]:
        """Get the text content of an element, or the page title when no selector is given."""
        page = await self.session_manager.get_page()
        if not selector:
            title = await page.title()
            return {"ok": True, "title": title, "text": title}

        target = validate_selector(selector)
        locator = page.locator(target)
        if all_matches:
            texts = await locator.all_text_contents()
            return {"ok": True, "selector": target, "text": "\n".join(texts), "texts": texts}
        text = await locator.first.text_content()
        return {"ok": True, "selector": target, "text": text or ""}

    @mcp_tool(
        name="playwright_wait_for",
        examples=['{"selector": ".toast", "state": "visible"}', '{"url": "**/dashboard"}'],
    )
    async def wait_for(
        self,
        selector: Optional[str] = None,
        url: Optional[str] = None,
        timeout: int = DEFAULT_ACTION_TIMEOUT_MS,
        state: str = "visible",
    ) -> Dict[str, Any]:
        """Wait for an element state or for the page URL to match a pattern."""
        wait_ms = validate_timeout(timeout)
        if url:
            lowered = str(url).strip().lower()
            if lowered.startswith("http://") or lowered.startswith("https://"):
                pattern = validate_navigation_url(url, list(self.config.security.allowed_ui_domains) or None).url
            else:
                pattern = validate_wait_url_pattern(url)
            page = await self.session_manager.get_page()
            await page.wait_for_url(pattern, timeout=wait_ms)
            return {"ok": True, "message": f"Waited for URL: {pattern}", "url": page.url}

        if selector:
            target = validate_selector(selector)
            if state not in ELEMENT_STATES:
                raise InvalidInput(
                    f"state must be one of: {', '.join(sorted(ELEMENT_STATES))}",
                    field="state",
                )
            page = await self.session_manager.get_page()
            await page.locator(target).first.wait_for(state=state, timeout=wait_ms)
            return {"ok": True, "message": f"Waited for element {target} to be {state}", "selector": target}

        raise InvalidInput("Please provide either a selector or URL to wait for", field="selector")

    @mcp_tool(
        name="playwright_assert",
        examples=[
            '{"assertion_type": "visible", "selector": "#welcome"}',
            '{"assertion_type": "count", "selector": "li", "expected_count": 3}',
        ],
    )
    async def assert_condition(
        self,
        assertion_type: str,
        selector: Optional[str] = None,
        expected_text: Optional[str] = None,
        expected_url: Optional[str] = None,
        expected_count: Optional[int] = None,
        timeout: int = DEFAULT_ASSERT_TIMEOUT_MS,
    ) -> Dict[str, Any]:
        """Assert element visibility, text content, URL or element count."""
        if assertion_type not in ASSERTION_TYPES:
            raise InvalidInput(f"Unknown assertion type: {assertion_type}", field="assertion_type")
        target = validate_selector(selector) if selector else None
        wait_ms = validate_timeout(timeout)
        page = await self.session_manager.get_page()

        if assertion_type in ("visible", "hidden"):
            if not target:
                raise InvalidInput(f"Selector is required for {assertion_type} assertion", field="selector")
            await page.locator(target).first.wait_for(state=assertion_type, timeout=wait_ms)
            message = f"Element {target} is {assertion_type}"

        elif assertion_type == "text":
            if not target or not expected_text:
                raise InvalidInput("Selector and expected_text are required for text assertion", field="selector")
            expected = validate_text_input(expected_text, field="expected_text")
            actual = await page.locator(target).first.text_content(timeout=wait_ms)
            if expected not in (actual or ""):
                raise AssertionError(f'Text assertion failed. Expected "{expected}", got "{actual}"')
            message = f'Element {target} contains text "{expected}"'

        elif assertion_type == "url":
            if not expected_url:
                raise InvalidInput("expected_url is required for URL assertion", field="expected_url")
            expected = validate_text_input(expected_url, field="expected_url", max_length=2048)
            current = page.url
            if expected not in current:
                raise AssertionError(f'URL assertion failed. Expected URL containing "{expected}", got "{current}"')
            message = f'URL contains "{expected}"'

        else:
            if not target or expected_count is None:
                raise InvalidInput("Selector and expected_count are required for count assertion", field="selector")
            count = await page.locator(target).count()
            if count != expected_count:
                raise AssertionError(f"Count assertion failed. Expected {expected_count}, got {count}")
            message = f"Found {count} elements matching {target}"

        return {"ok": True, "assertion": assertion_type, "message": f"Assertion passed: {message}"}

    @mcp_tool(
        name="playwright_screenshot",
        examples=['{"full_page": true}', '{"selector": "#chart", "path": "chart.png"}'],
    )
    async def screenshot(
        self,
        selector: Optional[str] = None,
        path: Optional[str] = None,
        full_page: bool = False,
    ) -> Dict[str, Any]:
        """Screenshot the page or one element; saved under the screenshot directory or returned as base64."""
        target = validate_selector(selector) if selector else None
        saved: Optional[Path] = None
        if path:
            base_dir = self.config.screenshot_dir
            base_dir.mkdir(parents=True, exist_ok=True)
            saved = validate_path(path, str(base_dir))
            saved.parent.mkdir(parents=True, exist_ok=True)

        page = await self.session_manager.get_page()
        kwargs: Dict[str, Any] = {"path": str(saved)} if saved is not None else {}
        if target:
            image = await page.locator(target).first.screenshot(**kwargs)
        else:
            image = await page.screenshot(full_page=bool(full_page), **kwargs)

        size = len(image) if isinstance(image, (bytes, bytearray)) else 0
        if saved is not None:
            return {"ok": True, "message": f"Screenshot saved to {saved}", "path": str(saved), "bytes": size}
        return {
            "ok": True,
            "message": f"Screenshot taken ({size} bytes)",
            "mime_type": "image/png",
            "image_base64": base64.b64encode(bytes(image or b"")).decode("ascii"),
            "bytes": size,
        }

    async def save_failure_screenshot(self, label: str) -> Optional[str]:
        """Best-effort full-page screenshot of the current page for a failure report."""
        page = self.session_manager.active_page
        if page is None:
            return None
        try:
            base_dir = self.config.screenshot_dir
            base_dir.mkdir(parents=True, exist_ok=True)
            target = validate_path(f"failure-{label}.png", str(base_dir))
            await page.screenshot(path=str(target), full_page=True)
        except Exception as exc:
            self.logger.warning("Failure screenshot not captured: %s", exc)
            return None
        return str(target)
