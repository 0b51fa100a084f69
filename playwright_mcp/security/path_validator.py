"""Confine file reads/writes to a base directory (path-traversal defense)."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Union

from ..errors import PathTraversal, UncPathBlocked

PathLike = Union[str, "os.PathLike[str]"]

IS_WINDOWS = sys.platform == "win32"


def _is_unc(value: str) -> bool:
    return value.startswith("\\\\") or (IS_WINDOWS and value.startswith("//"))


def _real(path: str) -> str:
    # realpath resolves every existing component and keeps the rest lexical,
    # so files validated before creation still compare against the real base.
    try:
        return os.path.realpath(path)
    except (OSError, ValueError):
        return os.path.abspath(path)


def validate_path(path: PathLike, base_dir: PathLike) -> Path:
    """Return the resolved absolute form of `path`, which must lie inside `base_dir`."""
    try:
        raw = os.fspath(path)
        base_raw = os.fspath(base_dir)
    except TypeError:
        raise PathTraversal("Path must be a string", field="path") from None
    if not isinstance(raw, str) or not isinstance(base_raw, str):
        raise PathTraversal("Path must be a string", field="path")
    if "\x00" in raw or "\x00" in base_raw:
        raise PathTraversal("Path contains a null byte", field="path")

    resolved_base = os.path.abspath(base_raw or ".")
    resolved_path = os.path.abspath(os.path.join(resolved_base, raw))

    real_base = _real(resolved_base)
    real_path = _real(resolved_path)

    try:
        relative = os.path.relpath(real_path, real_base)
    except ValueError:
        # Different drives on Windows.
        raise PathTraversal(f"Path traversal detected: {raw}", field="path") from None

    first = relative.split(os.sep, 1)[0]
    if first == ".." or os.path.isabs(relative):
        raise PathTraversal(f"Path traversal detected: {raw}", field="path")

    if (_is_unc(raw) or _is_unc(real_path)) and not (_is_unc(real_base) or _is_unc(base_raw)):
        raise UncPathBlocked(f"UNC path not allowed: {raw}", field="path")

    return Path(real_path)


def validate_directory_path(path: PathLike, base_dir: PathLike) -> Path:
    return validate_path(path, base_dir)
