from __future__ import annotations

import os
from pathlib import Path

import pytest

from playwright_mcp.errors import PathTraversal, UncPathBlocked
from playwright_mcp.security.path_validator import validate_directory_path, validate_path


def test_relative_path_resolves_inside_base(tmp_path: Path) -> None:
    result = validate_path("reports/out.md", tmp_path)
    assert result == Path(os.path.realpath(tmp_path)) / "reports" / "out.md"
    assert result.is_absolute()


def test_absolute_path_inside_base_is_accepted(tmp_path: Path) -> None:
    target = tmp_path / "shots" / "a.png"
    assert validate_path(str(target), str(tmp_path)) == Path(os.path.realpath(target))


def test_base_itself_is_accepted(tmp_path: Path) -> None:
    assert validate_directory_path(".", tmp_path) == Path(os.path.realpath(tmp_path))


@pytest.mark.parametrize("raw", ["../outside.txt", "a/../../outside.txt", "/etc/passwd"])
def test_escaping_paths_are_rejected(tmp_path: Path, raw: str) -> None:
    with pytest.raises(PathTraversal) as exc_info:
        validate_path(raw, tmp_path / "base")
    assert exc_info.value.rule == "path_traversal"


def test_sibling_with_common_prefix_is_rejected(tmp_path: Path) -> None:
    base = tmp_path / "reports"
    with pytest.raises(PathTraversal):
        validate_path(str(tmp_path / "reports-evil" / "x.md"), base)


def test_symlink_pointing_outside_is_rejected(tmp_path: Path) -> None:
    base = tmp_path / "base"
    outside = tmp_path / "outside"
    base.mkdir()
    outside.mkdir()
    (base / "link").symlink_to(outside, target_is_directory=True)
    with pytest.raises(PathTraversal):
        validate_path("link/secret.txt", base)


def test_symlinked_base_does_not_cause_false_positive(tmp_path: Path) -> None:
    real_base = tmp_path / "real"
    real_base.mkdir()
    alias = tmp_path / "alias"
    alias.symlink_to(real_base, target_is_directory=True)
    result = validate_path("new-file.json", alias)
    assert result == Path(os.path.realpath(real_base)) / "new-file.json"


def test_nul_byte_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(PathTraversal):
        validate_path("ok\x00.txt", tmp_path)


def test_non_string_path_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(PathTraversal):
        validate_path(42, tmp_path)  # type: ignore[arg-type]


def test_unc_style_path_is_rejected_for_local_base(tmp_path: Path) -> None:
    with pytest.raises(UncPathBlocked) as exc_info:
        validate_path("\\\\server\\share\\file.txt", tmp_path)
    assert isinstance(exc_info.value, PathTraversal)
