"""Playwright browser and API automation tools with security validation and failure reports."""

from .config import AppConfig, ErrorCaptureSettings, ErrorConfigStore, SecuritySettings
from .server import PlaywrightMCPServer

__version__ = "1.0.0"

__all__ = [
    "AppConfig",
    "ErrorCaptureSettings",
    "ErrorConfigStore",
    "PlaywrightMCPServer",
    "SecuritySettings",
]
