"""Runtime configuration: environment variables over ``playwright-mcp.config.json``."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from .errors import ConfigError
from .security.path_validator import validate_path

CONFIG_FILENAME = "playwright-mcp.config.json"
REPORT_FORMATS: Tuple[str, ...] = ("markdown", "html", "json")
DEFAULT_REPORT_DIR = "./test-results/error-reports"
DEFAULT_SCREENSHOT_DIR = "./test-results/screenshots"
DEFAULT_API_TIMEOUT_MS = 30000
SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")

logger = logging.getLogger(__name__)


def parse_formats(raw: Union[str, Iterable[Any], None]) -> Tuple[str, ...]:
    """Normalize a comma list or iterable of format names, dropping unknown ones."""
    if raw is None:
        return ()
    items = raw.split(",") if isinstance(raw, str) else list(raw)
    formats = []
    for item in items:
        name = str(item or "").strip().lower()
        if name in REPORT_FORMATS and name not in formats:
            formats.append(name)
    return tuple(formats)


def _split_csv(raw: Optional[str]) -> Tuple[str, ...]:
    return tuple(item.strip().lower() for item in str(raw or "").split(",") if item.strip())


def _env_flag(raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() == "true"


def _env_int(raw: Optional[str], default: int) -> int:
    try:
        return int(str(raw).strip()) if raw not in (None, "") else default
    except ValueError:
        logger.warning("Ignoring non-integer value %r, using %s", raw, default)
        return default


def read_config_file(project_root: Path, log: Optional[logging.Logger] = None) -> Dict[str, Any]:
    """Return the parsed project config file, or ``{}`` when absent or unreadable."""
    log = log or logger
    config_path = Path(project_root) / CONFIG_FILENAME
    if not config_path.exists():
        return {}
    try:
        safe_path = validate_path(str(config_path), str(project_root))
        data = json.loads(safe_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log.warning("Could not load error capture config from %s, using defaults: %s", config_path.name, exc)
        return {}
    return data if isinstance(data, dict) else {}


@dataclass(frozen=True)
class ErrorCaptureSettings:
    enabled: bool = True
    output_dir: str = DEFAULT_REPORT_DIR
    formats: Tuple[str, ...] = REPORT_FORMATS

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "outputDir": self.output_dir, "formats": list(self.formats)}

    @classmethod
    def resolve(cls, file_section: Mapping[str, Any], environ: Mapping[str, str]) -> "ErrorCaptureSettings":
        """Merge the file's ``errorCapture`` section with env overrides."""
        section = file_section if isinstance(file_section, Mapping) else {}
        enabled = section.get("enabled", True)
        if isinstance(enabled, str):
            enabled = _env_flag(enabled, True)
        env_enabled = environ.get("PLAYWRIGHT_MCP_ERROR_CAPTURE_ENABLED")
        if env_enabled is not None:
            enabled = _env_flag(env_enabled, True)

        output_dir = environ.get("PLAYWRIGHT_MCP_ERROR_REPORT_DIR") or section.get("outputDir") or DEFAULT_REPORT_DIR

        env_formats = environ.get("PLAYWRIGHT_MCP_ERROR_FORMATS")
        if env_formats:
            formats = parse_formats(env_formats)
        elif "formats" in section:
            formats = parse_formats(section.get("formats") or [])
        else:
            formats = REPORT_FORMATS
        return cls(enabled=bool(enabled), output_dir=str(output_dir), formats=formats)


@dataclass(frozen=True)
class SecuritySettings:
    allowed_api_hosts: Tuple[str, ...] = ()
    allowed_ui_domains: Tuple[str, ...] = ()
    allow_localhost: bool = False
    api_request_timeout: int = DEFAULT_API_TIMEOUT_MS

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "SecuritySettings":
        return cls(
            allowed_api_hosts=_split_csv(environ.get("ALLOWED_API_HOSTS")),
            allowed_ui_domains=_split_csv(environ.get("ALLOWED_UI_DOMAINS")),
            allow_localhost=_env_flag(environ.get("ALLOW_LOCALHOST"), False),
            api_request_timeout=_env_int(environ.get("API_REQUEST_TIMEOUT"), DEFAULT_API_TIMEOUT_MS),
        )


@dataclass(frozen=True)
class AppConfig:
    """Configuration built once at startup and passed to every component."""

    project_root: Path
    error_capture: ErrorCaptureSettings = field(default_factory=ErrorCaptureSettings)
    security: SecuritySettings = field(default_factory=SecuritySettings)
    screenshot_output_dir: str = DEFAULT_SCREENSHOT_DIR
    headless: bool = True
    browser: str = "chromium"
    test_env: Optional[str] = None
    api_url: Optional[str] = None
    ui_url: Optional[str] = None
    production: bool = False

    @property
    def config_path(self) -> Path:
        return self.project_root / CONFIG_FILENAME

    @property
    def report_dir(self) -> Path:
        return (self.project_root / self.error_capture.output_dir).resolve()

    @property
    def screenshot_dir(self) -> Path:
        return (self.project_root / self.screenshot_output_dir).resolve()

    @classmethod
    def load(cls, project_root: Union[str, Path, None] = None, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        env = os.environ if environ is None else environ
        root = Path(project_root or os.getcwd()).resolve()
        file_config = read_config_file(root)

        browser = str(env.get("BROWSER") or "chromium").strip().lower()
        if browser not in SUPPORTED_BROWSERS:
            logger.warning("Unsupported BROWSER %r, falling back to chromium", browser)
            browser = "chromium"

        return cls(
            project_root=root,
            error_capture=ErrorCaptureSettings.resolve(file_config.get("errorCapture") or {}, env),
            security=SecuritySettings.from_env(env),
            screenshot_output_dir=env.get("SCREENSHOT_OUTPUT_DIR") or DEFAULT_SCREENSHOT_DIR,
            headless=_env_flag(env.get("HEADLESS"), True),
            browser=browser,
            test_env=env.get("TEST_ENV") or None,
            api_url=env.get("API_URL") or None,
            ui_url=env.get("UI_URL") or None,
            production=str(env.get("NODE_ENV") or "").strip().lower() == "production",
        )


class ErrorConfigStore:
    """Read and persist the ``errorCapture`` section of the project config file."""

    def __init__(
        self,
        project_root: Union[str, Path, None] = None,
        environ: Optional[Mapping[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.project_root = Path(project_root or os.getcwd()).resolve()
        self.config_path = self.project_root / CONFIG_FILENAME
        self.environ = os.environ if environ is None else environ
        self.logger = logger or logging.getLogger(__name__)
        self._settings = self._load()

    def _load(self) -> ErrorCaptureSettings:
        file_config = read_config_file(self.project_root, self.logger)
        return ErrorCaptureSettings.resolve(file_config.get("errorCapture") or {}, self.environ)

    def get_config(self) -> ErrorCaptureSettings:
        return self._settings

    def is_enabled(self) -> bool:
        return self._settings.enabled

    def get_output_dir(self) -> Path:
        return (self.project_root / self._settings.output_dir).resolve()

    def get_formats(self) -> Tuple[str, ...]:
        return self._settings.formats

    def reload(self) -> None:
        self._settings = self._load()

    def update(self, **changes: Any) -> ErrorCaptureSettings:
        self._settings = replace(self._settings, **changes)
        self.save()
        return self._settings

    def enable(self) -> ErrorCaptureSettings:
        return self.update(enabled=True)

    def disable(self) -> ErrorCaptureSettings:
        return self.update(enabled=False)

    def set_formats(self, formats: Union[str, Iterable[str]]) -> ErrorCaptureSettings:
        if formats == "all":
            return self.update(formats=REPORT_FORMATS)
        if formats == "none":
            return self.update(formats=())
        parsed = parse_formats(formats)
        if not parsed:
            raise ConfigError("Invalid format. Use: markdown, html, json, all, or none")
        return self.update(formats=parsed)

    def save(self) -> None:
        """Write settings back, preserving any other top-level keys in the file."""
        project_config: Dict[str, Any] = {}
        if self.config_path.exists():
            try:
                validate_path(str(self.config_path), str(self.project_root))
                loaded = json.loads(self.config_path.read_text(encoding="utf-8"))
                if isinstance(loaded, dict):
                    project_config = loaded
            except ValueError:
                project_config = {}
            except OSError as exc:
                raise ConfigError(f"Failed to save error capture config: {exc}") from exc

        project_config["errorCapture"] = self._settings.to_dict()
        try:
            safe_path = validate_path(str(self.config_path), str(self.project_root))
            safe_path.write_text(json.dumps(project_config, indent=2) + "\n", encoding="utf-8")
        except (OSError, ValueError) as exc:
            raise ConfigError(f"Failed to save error capture config: {exc}") from exc
