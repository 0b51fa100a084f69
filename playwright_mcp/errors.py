"""Error taxonomy shared by validators, capture and reporting."""

from __future__ import annotations

from typing import Optional


class ValidationError(ValueError):
    """Untrusted input rejected at the tool boundary.

    `rule` names the check that failed; `field` names the input class
    (url, path, header, selector, ...). Messages never echo more of the
    offending value than is needed to identify it.
    """

    rule = "invalid_input"

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        payload = {"rule": self.rule, "message": self.message}
        if self.field:
            payload["field"] = self.field
        return payload


class InvalidFormat(ValidationError):
    rule = "invalid_format"


class DisallowedScheme(ValidationError):
    rule = "disallowed_scheme"


class PrivateAddressBlocked(ValidationError):
    rule = "private_address_blocked"


class HostNotAllowed(ValidationError):
    rule = "host_not_allowed"


class PathTraversal(ValidationError):
    rule = "path_traversal"


class UncPathBlocked(PathTraversal):
    rule = "unc_path_blocked"


class InvalidHeader(ValidationError):
    rule = "invalid_header"


class BlockedHeader(InvalidHeader):
    rule = "blocked_header"


class CRLFInjection(InvalidHeader):
    rule = "crlf_injection"


class InvalidTimeout(ValidationError):
    rule = "invalid_timeout"


class InvalidSelector(ValidationError):
    rule = "invalid_selector"


class DangerousPattern(InvalidSelector):
    rule = "dangerous_pattern"


class InvalidInput(ValidationError):
    rule = "invalid_input"


class CaptureError(RuntimeError):
    """Collecting diagnostics failed. Never replaces the original failure."""


class ReportWriteError(OSError):
    """A report artifact could not be persisted."""


class ConfigError(ValueError):
    """Configuration file could not be read or written."""
