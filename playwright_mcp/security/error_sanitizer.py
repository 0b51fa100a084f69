"""Strip process internals from errors before they cross the tool boundary."""

from __future__ import annotations

import os
import re
import traceback
from collections.abc import Mapping
from typing import Any, Dict, Optional

DEFAULT_MESSAGE = "An error occurred"

_DEPENDENCY_FRAME = re.compile(r'File "[^"]*(?:site-packages|dist-packages|node_modules)[/\\][^"]*"')
_ABSOLUTE_FRAME = re.compile(r'File "(?:[A-Za-z]:)?[/\\][^"]*?([^"/\\]+)"')
_ABSOLUTE_PATH = re.compile(r"(?:(?<=\s)|(?<=\()|^)(?:[A-Za-z]:)?[/\\](?:[^\s/\\:()\"']+[/\\])+([^\s/\\:()\"']+)")


def is_production(environ: Optional[Mapping] = None) -> bool:
    env = os.environ if environ is None else environ
    return str(env.get("NODE_ENV", "") or "").strip().lower() == "production"


def sanitize_stack(stack: str) -> str:
    """Collapse dependency frames and absolute paths into fixed placeholders."""
    lines = []
    for line in str(stack or "").splitlines():
        line = _DEPENDENCY_FRAME.sub('File "<site-packages>/..."', line)
        line = _ABSOLUTE_FRAME.sub(lambda m: f'File ".../{m.group(1)}"', line)
        line = _ABSOLUTE_PATH.sub(lambda m: f".../{m.group(1)}", line)
        lines.append(line)
    return "\n".join(lines)


def _message_of(error: Any) -> str:
    if error is None:
        return DEFAULT_MESSAGE
    if isinstance(error, str):
        return error or DEFAULT_MESSAGE
    if isinstance(error, Mapping):
        return str(error.get("message") or DEFAULT_MESSAGE)
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    if isinstance(error, BaseException):
        text = str(error)
        if text:
            return text
        return DEFAULT_MESSAGE
    return str(error) or DEFAULT_MESSAGE


def _type_of(error: Any) -> Optional[str]:
    if isinstance(error, Mapping):
        kind = error.get("type")
        return str(kind) if kind else None
    if isinstance(error, BaseException):
        return type(error).__name__
    name = getattr(error, "name", None)
    return str(name) if isinstance(name, str) and name else None


def _stack_of(error: Any) -> Optional[str]:
    if isinstance(error, Mapping):
        details = error.get("details")
        if isinstance(details, Mapping) and details.get("stack"):
            return str(details["stack"])
        return None
    if isinstance(error, BaseException) and error.__traceback__ is not None:
        return "".join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip()
    stack = getattr(error, "stack", None)
    return str(stack) if isinstance(stack, str) and stack else None


def sanitize_error(error: Any, production: Optional[bool] = None) -> Dict[str, Any]:
    """Return ``{"message", "type"?, "details"?}`` for any error-like value.

    Never raises. Stacks are attached only outside production and are
    rewritten so no local filesystem layout leaks to the caller.
    """
    try:
        sanitized: Dict[str, Any] = {"message": _message_of(error)}
    except Exception:
        return {"message": DEFAULT_MESSAGE}

    try:
        kind = _type_of(error)
        if kind:
            sanitized["type"] = kind
    except Exception:
        pass

    try:
        prod = is_production() if production is None else bool(production)
        if not prod:
            stack = _stack_of(error)
            if stack:
                sanitized["details"] = {"stack": sanitize_stack(stack)}
    except Exception:
        pass
    return sanitized


def get_safe_error_message(error: Any) -> str:
    return sanitize_error(error, production=True)["message"]
