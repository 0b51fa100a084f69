"""Shared models for the browser runtime and failure records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

TEST_TYPES = ("api", "ui", "e2e")
CONSOLE_LEVELS = ("log", "info", "warning", "error", "debug")


def _drop_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


@dataclass
class CaseInfo:
    """Identity of the failed action."""

    name: str
    type: str = "e2e"
    description: Optional[str] = None
    timestamp: int = 0
    duration: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "name": self.name,
                "type": self.type,
                "description": self.description,
                "timestamp": self.timestamp,
                "duration": self.duration,
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CaseInfo":
        return cls(
            name=str(data.get("name") or ""),
            type=str(data.get("type") or "e2e"),
            description=data.get("description"),
            timestamp=int(data.get("timestamp") or 0),
            duration=data.get("duration"),
        )


@dataclass
class ErrorDetails:
    message: str
    type: Optional[str] = None
    name: Optional[str] = None
    stack: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {"message": self.message, "type": self.type, "name": self.name, "stack": self.stack}
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorDetails":
        return cls(
            message=str(data.get("message") or ""),
            type=data.get("type"),
            name=data.get("name"),
            stack=data.get("stack"),
        )


@dataclass
class NetworkLogEntry:
    """One request/response exchange. Failed requests carry status 0 / "Failed"."""

    url: str
    method: str
    status: Optional[int] = None
    status_text: Optional[str] = None
    request_headers: Optional[Dict[str, str]] = None
    response_headers: Optional[Dict[str, str]] = None
    request_body: Any = None
    response_body: Any = None
    timestamp: int = 0
    duration: Optional[int] = None
    error_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "url": self.url,
                "method": self.method,
                "status": self.status,
                "statusText": self.status_text,
                "requestHeaders": self.request_headers,
                "responseHeaders": self.response_headers,
                "requestBody": self.request_body,
                "responseBody": self.response_body,
                "timestamp": self.timestamp,
                "duration": self.duration,
                "errorText": self.error_text,
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkLogEntry":
        return cls(
            url=str(data.get("url") or ""),
            method=str(data.get("method") or ""),
            status=data.get("status"),
            status_text=data.get("statusText"),
            request_headers=data.get("requestHeaders"),
            response_headers=data.get("responseHeaders"),
            request_body=data.get("requestBody"),
            response_body=data.get("responseBody"),
            timestamp=int(data.get("timestamp") or 0),
            duration=data.get("duration"),
            error_text=data.get("errorText"),
        )


@dataclass
class ConsoleLocation:
    url: str = ""
    line: int = 0
    column: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "line": self.line, "column": self.column}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsoleLocation":
        return cls(
            url=str(data.get("url") or ""),
            line=int(data.get("line") or 0),
            column=int(data.get("column") or 0),
        )


@dataclass
class ConsoleLogEntry:
    type: str
    message: str
    timestamp: int = 0
    location: Optional[ConsoleLocation] = None
    args: Optional[List[Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "type": self.type,
                "message": self.message,
                "timestamp": self.timestamp,
                "location": self.location.to_dict() if self.location else None,
                "args": self.args,
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsoleLogEntry":
        location = data.get("location")
        return cls(
            type=str(data.get("type") or "log"),
            message=str(data.get("message") or ""),
            timestamp=int(data.get("timestamp") or 0),
            location=ConsoleLocation.from_dict(location) if isinstance(location, dict) else None,
            args=data.get("args"),
        )


@dataclass
class VisibleElement:
    selector: str
    text: Optional[str] = None
    visible: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"selector": self.selector, "text": self.text, "visible": self.visible})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VisibleElement":
        return cls(
            selector=str(data.get("selector") or ""),
            text=data.get("text"),
            visible=bool(data.get("visible", True)),
        )


@dataclass
class DomState:
    url: str
    title: Optional[str] = None
    html: Optional[str] = None
    visible_elements: List[VisibleElement] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "url": self.url,
                "title": self.title,
                "html": self.html,
                "visibleElements": [el.to_dict() for el in self.visible_elements],
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DomState":
        return cls(
            url=str(data.get("url") or ""),
            title=data.get("title"),
            html=data.get("html"),
            visible_elements=[
                VisibleElement.from_dict(el) for el in (data.get("visibleElements") or []) if isinstance(el, dict)
            ],
        )


@dataclass
class EnvironmentInfo:
    browser: Optional[str] = None
    os: Optional[str] = None
    test_env: Optional[str] = None
    api_url: Optional[str] = None
    ui_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "browser": self.browser,
                "os": self.os,
                "testEnv": self.test_env,
                "apiUrl": self.api_url,
                "uiUrl": self.ui_url,
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnvironmentInfo":
        return cls(
            browser=data.get("browser"),
            os=data.get("os"),
            test_env=data.get("testEnv"),
            api_url=data.get("apiUrl"),
            ui_url=data.get("uiUrl"),
        )


@dataclass
class ExecutionStep:
    step: int
    description: str
    tool: Optional[str] = None
    timestamp: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {"step": self.step, "description": self.description, "tool": self.tool, "timestamp": self.timestamp}
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionStep":
        return cls(
            step=int(data.get("step") or 0),
            description=str(data.get("description") or ""),
            tool=data.get("tool"),
            timestamp=int(data.get("timestamp") or 0),
        )


@dataclass
class MediaRefs:
    screenshots: List[str] = field(default_factory=list)
    videos: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"screenshots": list(self.screenshots), "videos": list(self.videos)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MediaRefs":
        return cls(
            screenshots=[str(x) for x in (data.get("screenshots") or [])],
            videos=[str(x) for x in (data.get("videos") or [])],
        )


@dataclass
class FailureRecord:
    """Structured diagnostic snapshot for one failed automated action.

    `to_dict()` is the JSON wire format; optional sections with no data are
    omitted so a record without network activity has no ``networkLogs`` key.
    """

    case_info: CaseInfo
    error: ErrorDetails
    environment: EnvironmentInfo = field(default_factory=EnvironmentInfo)
    network_logs: Optional[List[NetworkLogEntry]] = None
    console_logs: Optional[List[ConsoleLogEntry]] = None
    dom_state: Optional[DomState] = None
    test_steps: Optional[List[ExecutionStep]] = None
    media: Optional[MediaRefs] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "testInfo": self.case_info.to_dict(),
            "error": self.error.to_dict(),
        }
        if self.network_logs:
            payload["networkLogs"] = [entry.to_dict() for entry in self.network_logs]
        if self.console_logs:
            payload["consoleLogs"] = [entry.to_dict() for entry in self.console_logs]
        if self.dom_state is not None:
            payload["domState"] = self.dom_state.to_dict()
        payload["environment"] = self.environment.to_dict()
        if self.test_steps:
            payload["testSteps"] = [step.to_dict() for step in self.test_steps]
        if self.media is not None:
            payload["media"] = self.media.to_dict()
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FailureRecord":
        network = data.get("networkLogs")
        console = data.get("consoleLogs")
        steps = data.get("testSteps")
        dom = data.get("domState")
        media = data.get("media")
        return cls(
            case_info=CaseInfo.from_dict(data.get("testInfo") or {}),
            error=ErrorDetails.from_dict(data.get("error") or {}),
            environment=EnvironmentInfo.from_dict(data.get("environment") or {}),
            network_logs=[NetworkLogEntry.from_dict(x) for x in network] if network else None,
            console_logs=[ConsoleLogEntry.from_dict(x) for x in console] if console else None,
            dom_state=DomState.from_dict(dom) if isinstance(dom, dict) else None,
            test_steps=[ExecutionStep.from_dict(x) for x in steps] if steps else None,
            media=MediaRefs.from_dict(media) if isinstance(media, dict) else None,
        )
