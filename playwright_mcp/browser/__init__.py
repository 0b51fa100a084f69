"""Browser runtime: session, page actions, API calls and failure capture."""

from .api_request import ApiRequestFeature
from .error_capture import ErrorCapture
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
from .page_actions import PageActionsFeature, mcp_tool
from .session import BrowserSessionManager

__all__ = [
    "ApiRequestFeature",
    "BrowserSessionManager",
    "CaseInfo",
    "ConsoleLocation",
    "ConsoleLogEntry",
    "DomState",
    "EnvironmentInfo",
    "ErrorCapture",
    "ErrorDetails",
    "ExecutionStep",
    "FailureRecord",
    "MediaRefs",
    "NetworkLogEntry",
    "PageActionsFeature",
    "VisibleElement",
    "mcp_tool",
]
