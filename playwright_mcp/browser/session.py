"""Playwright session lifecycle: one lazily started browser, context and page."""

from __future__ import annotations

import logging
from typing import Any, Optional

from playwright.async_api import async_playwright

from ..config import AppConfig

DEFAULT_VIEWPORT = {"width": 1280, "height": 720}


class BrowserSessionManager:
    """Own the Playwright driver, browser, context, page and API request context."""

    def __init__(self, config: AppConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None
        self._request_context: Any = None

    @property
    def active_page(self) -> Any:
        """The current page without starting a browser; ``None`` when there is none."""
        page = self._page
        if page is None:
            return None
        try:
            if page.is_closed():
                return None
        except Exception:
            return None
        return page

    async def _driver(self) -> Any:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return self._playwright

    async def get_context(self) -> Any:
        if self._context is None:
            pw = await self._driver()
            if self._browser is None:
                launcher = getattr(pw, self.config.browser, pw.chromium)
                self._browser = await launcher.launch(headless=bool(self.config.headless))
                self.logger.info("Launched %s (headless=%s)", self.config.browser, self.config.headless)
            self._context = await self._browser.new_context(viewport=dict(DEFAULT_VIEWPORT))
        return self._context

    async def get_page(self) -> Any:
        page = self.active_page
        if page is not None:
            return page
        context = await self.get_context()
        self._page = await context.new_page()
        return self._page

    async def get_request_context(self) -> Any:
        """API request context, separate from the page so calls need no browser."""
        if self._request_context is None:
            pw = await self._driver()
            self._request_context = await pw.request.new_context()
        return self._request_context

    async def close(self) -> None:
        for attr in ("_page", "_context", "_browser", "_request_context"):
            resource = getattr(self, attr)
            if resource is None:
                continue
            try:
                if attr == "_request_context":
                    await resource.dispose()
                else:
                    await resource.close()
            except Exception as exc:
                self.logger.debug("Ignoring error while closing %s: %s", attr.lstrip("_"), exc)
            setattr(self, attr, None)

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as exc:
                self.logger.debug("Ignoring error while stopping playwright: %s", exc)
            self._playwright = None
