"""Render FailureRecords to Markdown, HTML and JSON artifacts."""

from __future__ import annotations

import html
import json
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from ..browser.models import FailureRecord, NetworkLogEntry
from ..errors import ReportWriteError

MAX_NAME_CHARS = 50
MAX_BODY_CHARS = 5000
MAX_REPORTED_ELEMENTS = 20

EXTENSIONS = {"markdown": "md", "html": "html", "json": "json"}

_NON_ALNUM = re.compile(r"[^a-z0-9]", re.IGNORECASE)
_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")

PathLike = Union[str, Path]


def iso_timestamp(epoch_ms: int) -> str:
    """Millisecond ISO-8601 UTC timestamp, e.g. ``2024-01-01T12:00:00.000Z``."""
    epoch_ms = int(epoch_ms or 0)
    moment = datetime.fromtimestamp(epoch_ms // 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S") + f".{epoch_ms % 1000:03d}Z"


def report_base_name(name: str, epoch_ms: int) -> str:
    safe_name = _NON_ALNUM.sub("-", str(name or "")).lower()[:MAX_NAME_CHARS]
    stamp = iso_timestamp(epoch_ms).replace(":", "-").replace(".", "-")
    return f"{safe_name}-{stamp}"


def detect_test_type(test_path: Optional[str]) -> str:
    """Classify a test by its file location: api, e2e or ui (default e2e)."""
    path = str(test_path or "").replace("\\", "/")
    if "/api/" in path:
        return "api"
    if "/e2e/" in path:
        return "e2e"
    if "/ui/" in path:
        return "ui"
    return "e2e"


def _pretty(value: Any, limit: Optional[int] = None) -> str:
    text = json.dumps(value, indent=2, ensure_ascii=False, default=str)
    return text[:limit] if limit is not None else text


def _has_body(value: Any) -> bool:
    return value is not None and value != ""


def _status_label(entry: NetworkLogEntry) -> str:
    status = entry.status if entry.status is not None else "N/A"
    return f"{status} {entry.status_text or ''}".rstrip()


class ReportGenerator:
    """Write one artifact per requested format for a FailureRecord.

    Formats render independently: a failure in one is logged and the rest are
    still written. Existing files are never overwritten.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def generate_reports(
        self,
        record: FailureRecord,
        output_dir: PathLike,
        formats: Iterable[str],
        project_root: Optional[PathLike] = None,
    ) -> List[Path]:
        out_dir = Path(output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)

        requested = []
        for fmt in formats:
            if fmt not in EXTENSIONS:
                self.logger.warning("Skipping unknown report format %r", fmt)
                continue
            if fmt not in requested:
                requested.append(fmt)
        if not requested:
            return []

        base = self._unused_base_name(out_dir, record, requested)
        renderers: Dict[str, Callable[[], str]] = {
            "markdown": lambda: self.render_markdown(record),
            "html": lambda: self.render_html(record, out_dir, project_root),
            "json": lambda: self.render_json(record),
        }

        written: List[Path] = []
        for fmt in requested:
            target = out_dir / f"{base}.{EXTENSIONS[fmt]}"
            try:
                self._write_new(target, renderers[fmt]())
            except Exception as exc:
                self.logger.warning("Failed to generate %s report: %s", fmt, exc)
                continue
            written.append(target)
        return written

    def _unused_base_name(self, out_dir: Path, record: FailureRecord, formats: List[str]) -> str:
        base = report_base_name(record.case_info.name, record.case_info.timestamp)
        candidate = base
        counter = 0
        while any((out_dir / f"{candidate}.{EXTENSIONS[fmt]}").exists() for fmt in formats):
            counter += 1
            candidate = f"{base}-{counter}"
        return candidate

    @staticmethod
    def _write_new(target: Path, content: str) -> None:
        try:
            with open(target, "x", encoding="utf-8") as fh:
                fh.write(content)
        except OSError as exc:
            raise ReportWriteError(f"Could not write {target.name}: {exc}") from exc

    def render_markdown(self, record: FailureRecord) -> str:
        info = record.case_info
        lines: List[str] = ["# Error Report", ""]
        lines.append(f"**Test:** {info.name}")
        lines.append(f"**Type:** {info.type}")
        if info.description:
            lines.append(f"**Description:** {info.description}")
        lines.append(f"**Timestamp:** {iso_timestamp(info.timestamp)}")
        if info.duration:
            lines.append(f"**Duration:** {info.duration}ms")
        lines.append("")

        err = record.error
        lines.extend(["## Error Details", "", f"**Message:** {err.message}"])
        if err.type:
            lines.append(f"**Type:** {err.type}")
        if err.name and err.name != err.type:
            lines.append(f"**Name:** {err.name}")
        if err.stack:
            lines.extend(["", "**Stack Trace:**", "```", err.stack, "```"])
        lines.append("")

        env = record.environment
        lines.extend(["## Environment", ""])
        for label, value in (
            ("Browser", env.browser),
            ("OS", env.os),
            ("Test Environment", env.test_env),
            ("API URL", env.api_url),
            ("UI URL", env.ui_url),
        ):
            if value:
                lines.append(f"- **{label}:** {value}")
        lines.append("")

        if record.test_steps:
            lines.extend(["## Test Steps", ""])
            for step in record.test_steps:
                lines.append(f"### Step {step.step}: {step.description}")
                if step.tool:
                    lines.append(f"- **Tool:** {step.tool}")
                lines.append(f"- **Timestamp:** {iso_timestamp(step.timestamp)}")
                lines.append("")

        if record.network_logs:
            lines.extend(["## Network Logs", ""])
            for entry in record.network_logs:
                lines.append(f"### {entry.method} {entry.url}")
                lines.append(f"- **Status:** {_status_label(entry)}")
                if entry.duration:
                    lines.append(f"- **Duration:** {entry.duration}ms")
                if entry.error_text:
                    lines.append(f"- **Failure:** {entry.error_text}")
                if _has_body(entry.request_body):
                    lines.extend(["", "**Request Body:**", "```json", _pretty(entry.request_body), "```"])
                if _has_body(entry.response_body):
                    lines.extend(
                        ["", "**Response Body:**", "```json", _pretty(entry.response_body, MAX_BODY_CHARS), "```"]
                    )
                lines.append("")

        if record.console_logs:
            lines.extend(["## Console Logs", ""])
            for entry in record.console_logs:
                lines.append(f"- **[{entry.type.upper()}]** {entry.message}")
                if entry.location:
                    loc = entry.location
                    lines.append(f"  - Location: {loc.url}:{loc.line}:{loc.column}")
            lines.append("")

        dom = record.dom_state
        if dom is not None:
            lines.extend(["## DOM State", "", f"- **URL:** {dom.url}"])
            if dom.title:
                lines.append(f"- **Title:** {dom.title}")
            if dom.visible_elements:
                lines.extend(["", "**Visible Elements:**"])
                for el in dom.visible_elements[:MAX_REPORTED_ELEMENTS]:
                    lines.append(f"- `{el.selector}`: {el.text or '(no text)'}")
            lines.append("")

        media = record.media
        if media is not None:
            lines.extend(["## Media", ""])
            if media.screenshots:
                lines.append("**Screenshots:**")
                lines.extend(f"- {shot}" for shot in media.screenshots)
                lines.append("")
            if media.videos:
                lines.append("**Videos:**")
                lines.extend(f"- {video}" for video in media.videos)
                lines.append("")

        return "\n".join(lines)

    def render_json(self, record: FailureRecord) -> str:
        return json.dumps(record.to_dict(), indent=2, ensure_ascii=False, default=str)

    @staticmethod
    def resolve_media_path(media_path: str, output_dir: PathLike, project_root: Optional[PathLike] = None) -> str:
        """Path to a media file as seen from the report directory."""
        raw = str(media_path)
        if os.path.isabs(raw) or _DRIVE_PREFIX.match(raw):
            if project_root is None:
                return raw
            try:
                resolved = os.path.join(str(project_root), raw)
                return os.path.relpath(resolved, str(output_dir)).replace(os.sep, "/")
            except ValueError:
                return raw
        # Relative media paths are rooted one level above the report directory.
        return "../" + raw.replace(os.sep, "/")

    def render_html(
        self,
        record: FailureRecord,
        output_dir: PathLike,
        project_root: Optional[PathLike] = None,
    ) -> str:
        def esc(value: Any) -> str:
            return html.escape(str(value if value is not None else ""), quote=True)

        def item(label: str, value: Any) -> str:
            return f'<div class="info-item"><strong>{esc(label)}</strong>{esc(value)}</div>'

        info = record.case_info
        err = record.error
        env = record.environment
        parts: List[str] = [
            "<!DOCTYPE html>",
            '<html lang="en">',
            "<head>",
            '  <meta charset="UTF-8">',
            '  <meta name="viewport" content="width=device-width, initial-scale=1.0">',
            f"  <title>Error Report: {esc(info.name)}</title>",
            f"  <style>{_CSS}</style>",
            "</head>",
            "<body>",
            '<div class="container">',
            "<h1>Error Report</h1>",
            '<div class="info-grid">',
            item("Test Name", info.name),
            item("Type", info.type),
            item("Timestamp", iso_timestamp(info.timestamp)),
        ]
        if info.description:
            parts.append(item("Description", info.description))
        if info.duration:
            parts.append(item("Duration", f"{info.duration}ms"))
        parts.append("</div>")

        parts.extend(["<h2>Error Details</h2>", '<div class="error-box">', f"<strong>{esc(err.message)}</strong>"])
        if err.type:
            parts.append(f"<p><strong>Type:</strong> {esc(err.type)}</p>")
        if err.stack:
            parts.append(f"<details><summary>Stack Trace</summary><pre><code>{esc(err.stack)}</code></pre></details>")
        parts.append("</div>")

        parts.extend(["<h2>Environment</h2>", '<div class="info-grid">'])
        for label, value in (
            ("Browser", env.browser),
            ("OS", env.os),
            ("Test Environment", env.test_env),
            ("API URL", env.api_url),
            ("UI URL", env.ui_url),
        ):
            if value:
                parts.append(item(label, value))
        parts.append("</div>")

        if record.test_steps:
            parts.append("<h2>Test Steps</h2>")
            for step in record.test_steps:
                parts.append('<div class="step">')
                parts.append(f"<h3>Step {esc(step.step)}: {esc(step.description)}</h3>")
                if step.tool:
                    parts.append(f"<p><strong>Tool:</strong> {esc(step.tool)}</p>")
                parts.append(f"<p><strong>Timestamp:</strong> {esc(iso_timestamp(step.timestamp))}</p>")
                parts.append("</div>")

        if record.network_logs:
            parts.append("<h2>Network Logs</h2>")
            for entry in record.network_logs:
                ok = entry.status is not None and 200 <= entry.status < 300
                status_class = "status-success" if ok else "status-error"
                parts.append('<div class="network-log">')
                parts.append(f"<h3>{esc(entry.method)} {esc(entry.url)}</h3>")
                parts.append(
                    f'<p><strong>Status:</strong> <span class="{status_class}">{esc(_status_label(entry))}</span></p>'
                )
                if entry.duration:
                    parts.append(f"<p><strong>Duration:</strong> {esc(entry.duration)}ms</p>")
                if entry.error_text:
                    parts.append(f"<p><strong>Failure:</strong> {esc(entry.error_text)}</p>")
                if _has_body(entry.request_body):
                    parts.append(
                        "<details><summary>Request Body</summary>"
                        f"<pre><code>{esc(_pretty(entry.request_body))}</code></pre></details>"
                    )
                if _has_body(entry.response_body):
                    parts.append(
                        "<details><summary>Response Body</summary>"
                        f"<pre><code>{esc(_pretty(entry.response_body, MAX_BODY_CHARS))}</code></pre></details>"
                    )
                parts.append("</div>")

        if record.console_logs:
            parts.append("<h2>Console Logs</h2>")
            for entry in record.console_logs:
                css = {"error": "console-error", "warning": "console-warning"}.get(entry.type, "console-log-msg")
                line = f'<div class="console-log {css}"><strong>[{esc(entry.type.upper())}]</strong> {esc(entry.message)}'
                if entry.location:
                    loc = entry.location
                    line += f"<br><small>{esc(loc.url)}:{esc(loc.line)}:{esc(loc.column)}</small>"
                parts.append(line + "</div>")

        dom = record.dom_state
        if dom is not None:
            parts.extend(["<h2>DOM State</h2>", item("URL", dom.url)])
            if dom.title:
                parts.append(item("Title", dom.title))
            if dom.visible_elements:
                parts.extend(["<h3>Visible Elements</h3>", "<ul>"])
                for el in dom.visible_elements[:MAX_REPORTED_ELEMENTS]:
                    parts.append(f"<li><code>{esc(el.selector)}</code>: {esc(el.text or '(no text)')}</li>")
                parts.append("</ul>")

        media = record.media
        if media is not None:
            parts.append("<h2>Media</h2>")
            if media.screenshots:
                parts.extend(["<h3>Screenshots</h3>", '<div class="media-grid">'])
                for shot in media.screenshots:
                    src = self.resolve_media_path(shot, output_dir, project_root)
                    name = os.path.basename(shot)
                    parts.append(
                        '<figure class="media">'
                        f'<img src="{esc(src)}" alt="Screenshot not found: {esc(name)}">'
                        f'<figcaption><a href="{esc(src)}">{esc(shot)}</a></figcaption>'
                        "</figure>"
                    )
                parts.append("</div>")
            if media.videos:
                parts.extend(["<h3>Videos</h3>", '<div class="media-grid">'])
                for video in media.videos:
                    src = self.resolve_media_path(video, output_dir, project_root)
                    name = os.path.basename(video)
                    parts.append(
                        '<figure class="media">'
                        "<video controls>"
                        f'<source src="{esc(src)}" type="video/webm">'
                        f'<source src="{esc(src)}" type="video/mp4">'
                        f'Video not found: {esc(name)}. <a href="{esc(src)}">Download video</a>'
                        "</video>"
                        f'<figcaption><a href="{esc(src)}">{esc(video)}</a></figcaption>'
                        "</figure>"
                    )
                parts.append("</div>")

        parts.extend(["</div>", "</body>", "</html>"])
        return "\n".join(parts)


_CSS = """
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
           line-height: 1.6; color: #333; background: #f5f5f5; padding: 20px; }
    .container { max-width: 1200px; margin: 0 auto; background: white; border-radius: 8px;
                 box-shadow: 0 2px 4px rgba(0,0,0,0.1); padding: 30px; }
    h1 { color: #d32f2f; border-bottom: 3px solid #d32f2f; padding-bottom: 10px; margin-bottom: 20px; }
    h2 { color: #1976d2; margin: 30px 0 15px; padding-bottom: 5px; border-bottom: 2px solid #e0e0e0; }
    h3 { color: #555; margin: 20px 0 10px; }
    .info-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 15px; margin: 20px 0; }
    .info-item { background: #f9f9f9; padding: 10px; border-radius: 4px; border-left: 3px solid #1976d2; }
    .info-item strong { display: block; color: #666; font-size: 0.9em; margin-bottom: 5px; }
    .error-box { background: #ffebee; border-left: 4px solid #d32f2f; padding: 15px; margin: 20px 0; border-radius: 4px; }
    .step { margin: 15px 0; padding: 10px; background: #f9f9f9; border-radius: 4px; }
    code { background: #f5f5f5; padding: 2px 6px; border-radius: 3px; font-family: 'Courier New', monospace; }
    pre { background: #f5f5f5; padding: 15px; border-radius: 4px; overflow-x: auto; margin: 10px 0; }
    pre code { background: none; padding: 0; }
    summary { cursor: pointer; margin-top: 10px; }
    .network-log { background: #f9f9f9; padding: 15px; margin: 10px 0; border-radius: 4px; border-left: 3px solid #1976d2; }
    .status-success { color: #2e7d32; }
    .status-error { color: #d32f2f; }
    .console-log { padding: 5px 10px; margin: 5px 0; border-radius: 3px; }
    .console-error { background: #ffebee; }
    .console-warning { background: #fff3e0; }
    .console-log-msg { background: #e3f2fd; }
    .media-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(300px, 1fr)); gap: 15px; margin: 20px 0; }
    .media { border: 1px solid #e0e0e0; border-radius: 4px; padding: 10px; }
    .media img, .media video { max-width: 100%; height: auto; border-radius: 4px; }
    .media figcaption { margin-top: 10px; font-size: 0.9em; color: #666; word-break: break-all; }
"""
