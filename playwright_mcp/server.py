"""Tool dispatcher: validation, execution and the failure-report pipeline."""

from __future__ import annotations

import inspect
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .browser.api_request import ApiRequestFeature
from .browser.error_capture import ErrorCapture, now_ms
from .browser.models import CaseInfo, EnvironmentInfo, FailureRecord, MediaRefs
from .browser.page_actions import PageActionsFeature, build_tool, iter_mcp_methods, tool_name_of
from .browser.session import BrowserSessionManager
from .config import AppConfig
from .errors import InvalidInput, ValidationError
from .reporting.report_generator import ReportGenerator, detect_test_type, report_base_name
from .security.error_sanitizer import sanitize_error

API_TOOL = "playwright_api_request"
_DESCRIBED_ARGS = ("method", "url", "selector", "assertion_type", "state")


class PlaywrightMCPServer:
    """Expose the browser and API tools and report on their failures.

    Each call runs on the single shared page. Arguments are validated inside
    the tool before anything reaches Playwright; validation rejections return
    a failure result without a report. Any other failure produces a
    FailureRecord, persisted in the configured formats when error capture is
    enabled.
    """

    name = "playwright-mcp-server"

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        session_manager: Optional[BrowserSessionManager] = None,
        report_generator: Optional[ReportGenerator] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or AppConfig.load()
        self.logger = logger or logging.getLogger(__name__)
        self.session_manager = session_manager or BrowserSessionManager(self.config, logger=self.logger)
        self.report_generator = report_generator or ReportGenerator(logger=self.logger)
        self.capture = ErrorCapture(logger=self.logger)
        self.page_actions = PageActionsFeature(self.session_manager, self.config, logger=self.logger)
        self.api = ApiRequestFeature(self.session_manager, self.config, capture=self.capture, logger=self.logger)
        self.last_failure: Optional[FailureRecord] = None

        self._handlers: Dict[str, Callable[..., Any]] = {}
        for feature in (self.page_actions, self.api):
            for method in iter_mcp_methods(feature):
                self._handlers[tool_name_of(method)] = method
        self._tools: List[Any] = []

    async def __aenter__(self) -> "PlaywrightMCPServer":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def tool_names(self) -> List[str]:
        return sorted(self._handlers)

    def list_tools(self) -> List[Dict[str, Any]]:
        """Tool descriptors with JSON input schemas."""
        descriptors = []
        for tool in self.get_tools():
            schema = tool.get_input_schema().model_json_schema()
            descriptors.append({"name": tool.name, "description": tool.description, "input_schema": schema})
        return descriptors

    def get_tools(self) -> List[Any]:
        """LangChain tools routed through `call_tool`, so failures are reported."""
        if not self._tools:
            self._tools = [
                build_tool(method, coroutine=self._dispatcher(name)) for name, method in sorted(self._handlers.items())
            ]
        return self._tools

    def _dispatcher(self, name: str) -> Callable[..., Any]:
        async def _run(**kwargs: Any) -> Dict[str, Any]:
            return await self.call_tool(name, kwargs)

        _run.__name__ = name
        return _run

    async def call_tool(
        self,
        name: str,
        arguments: Optional[Dict[str, Any]] = None,
        test_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        args = dict(arguments or {})
        self.capture.reset()
        started = now_ms()
        try:
            handler = self._handlers.get(name)
            if handler is None:
                raise InvalidInput(f"Unknown tool: {name}", field="name")
            try:
                inspect.signature(handler).bind(**args)
            except TypeError as exc:
                raise InvalidInput(f"Invalid arguments for {name}: {exc}", field="arguments") from None

            self.capture.add_step(self._describe(name, args), tool=name)
            if name == API_TOOL:
                result = await handler(**args)
            else:
                page = await self.session_manager.get_page()
                async with self.capture.observe(page):
                    result = await handler(**args)
        except ValidationError as exc:
            self.logger.info("Rejected %s call: %s", name, exc.rule)
            return {
                "ok": False,
                "tool": name,
                "error": sanitize_error(exc, production=self.config.production),
                "rule": exc.rule,
                "field": exc.field,
            }
        except Exception as exc:
            self.logger.warning("Tool %s failed: %s", name, type(exc).__name__)
            reports = await self._report_failure(name, args, exc, started, test_path)
            return {
                "ok": False,
                "tool": name,
                "error": sanitize_error(exc, production=self.config.production),
                "reports": [str(path) for path in reports],
            }

        result = dict(result or {})
        result.setdefault("ok", True)
        result["tool"] = name
        return result

    async def _report_failure(
        self,
        name: str,
        args: Dict[str, Any],
        error: BaseException,
        started: int,
        test_path: Optional[str],
    ) -> List[Path]:
        is_api = name == API_TOOL
        case_type = detect_test_type(test_path) if test_path else ("api" if is_api else "ui")
        case_info = CaseInfo(
            name=name,
            type=case_type,
            description=self._describe(name, args),
            timestamp=started,
            duration=max(0, now_ms() - started),
        )

        media = None
        dom_state = None
        if not is_api:
            shot = await self.page_actions.save_failure_screenshot(report_base_name(name, started))
            if shot:
                media = MediaRefs(screenshots=[shot])
            try:
                dom_state = await self.capture.capture_dom_state(self.session_manager.active_page)
            except Exception as exc:
                self.logger.warning("DOM state not captured: %s", exc)

        record = self.capture.build_error_report(
            case_info,
            error,
            environment=self._environment(),
            media=media,
            dom_state=dom_state,
            production=self.config.production,
        )
        self.last_failure = record

        settings = self.config.error_capture
        if not settings.enabled or not settings.formats:
            return []
        try:
            return self.report_generator.generate_reports(
                record,
                self.config.report_dir,
                settings.formats,
                project_root=self.config.project_root,
            )
        except Exception as exc:
            self.logger.warning("Error report generation failed: %s", exc)
            return []

    def _environment(self) -> EnvironmentInfo:
        return EnvironmentInfo(
            browser=self.config.browser,
            os=sys.platform,
            test_env=self.config.test_env,
            api_url=self.config.api_url,
            ui_url=self.config.ui_url,
        )

    @staticmethod
    def _describe(name: str, args: Dict[str, Any]) -> str:
        details = [f"{key}={str(args[key])[:200]}" for key in _DESCRIBED_ARGS if args.get(key)]
        return f"{name} {' '.join(details)}".strip()

    async def close(self) -> None:
        await self.session_manager.close()
