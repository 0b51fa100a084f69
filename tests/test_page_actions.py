from __future__ import annotations

import base64
from pathlib import Path

import pytest

from conftest import PNG_BYTES, FakeSessionManager, make_config
from playwright_mcp.browser.page_actions import PageActionsFeature
from playwright_mcp.errors import DangerousPattern, HostNotAllowed, InvalidInput, InvalidTimeout, PathTraversal


def _actions(session: FakeSessionManager, tmp_path: Path, **env: str) -> PageActionsFeature:
    return PageActionsFeature(session, make_config(tmp_path, **env))  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_navigate_normalizes_wait_mode(session: FakeSessionManager, tmp_path: Path) -> None:
    result = await _actions(session, tmp_path).navigate("https://App.Example.com/home", wait_until="eventually")
    assert result["ok"] is True
    assert result["wait_until"] == "load"
    assert result["final_url"] == "https://app.example.com/home"
    assert result["status_code"] == 200
    assert session.page.actions[0] == ("goto", "https://app.example.com/home", "load")


@pytest.mark.asyncio
async def test_navigate_respects_ui_domain_allow_list(session: FakeSessionManager, tmp_path: Path) -> None:
    actions = _actions(session, tmp_path, ALLOWED_UI_DOMAINS="app.example.com")
    with pytest.raises(HostNotAllowed):
        await actions.navigate("https://phish.example.net/")
    assert session.page.actions == []


@pytest.mark.asyncio
async def test_click_and_fill_validate_before_touching_the_page(session: FakeSessionManager, tmp_path: Path) -> None:
    actions = _actions(session, tmp_path)
    with pytest.raises(DangerousPattern):
        await actions.click("a[onclick=steal()]")
    with pytest.raises(InvalidTimeout):
        await actions.fill("#name", "Ada", timeout=999999)
    assert session.page.actions == []

    await actions.click("text=Sign in", timeout=1000)
    await actions.fill("#name", "Ada")
    assert session.page.actions == [("click", "text=Sign in", 1000), ("fill", "#name", "Ada")]


@pytest.mark.asyncio
async def test_get_text_variants(session: FakeSessionManager, tmp_path: Path) -> None:
    session.page.texts["h1"] = "Welcome"
    session.page.all_texts["li"] = ["one", "two"]
    actions = _actions(session, tmp_path)

    assert (await actions.get_text())["title"] == "Fake App"
    assert (await actions.get_text("h1"))["text"] == "Welcome"
    assert (await actions.get_text("li", all_matches=True))["text"] == "one\ntwo"


@pytest.mark.asyncio
async def test_wait_for_url_and_selector(session: FakeSessionManager, tmp_path: Path) -> None:
    actions = _actions(session, tmp_path)
    await actions.wait_for(url="**/dashboard", timeout=2000)
    await actions.wait_for(selector=".toast", state="attached")
    assert ("wait_for_url", "**/dashboard", 2000) in session.page.actions
    assert ("wait_for", ".toast", "attached") in session.page.actions

    with pytest.raises(DangerousPattern):
        await actions.wait_for(url="javascript:alert(1)")
    with pytest.raises(InvalidInput):
        await actions.wait_for(selector=".toast", state="floating")
    with pytest.raises(InvalidInput):
        await actions.wait_for()


@pytest.mark.asyncio
async def test_assertions_pass_and_fail(session: FakeSessionManager, tmp_path: Path) -> None:
    page = session.page
    page.url = "https://app.example.com/orders/42"
    page.texts["#status"] = "Order shipped"
    page.counts["li.order"] = 3
    actions = _actions(session, tmp_path)

    assert (await actions.assert_condition("visible", selector="#status"))["ok"] is True
    assert (await actions.assert_condition("text", selector="#status", expected_text="shipped"))["ok"] is True
    assert (await actions.assert_condition("url", expected_url="/orders/42"))["ok"] is True
    assert (await actions.assert_condition("count", selector="li.order", expected_count=3))["ok"] is True

    with pytest.raises(AssertionError, match="Expected 5, got 3"):
        await actions.assert_condition("count", selector="li.order", expected_count=5)
    with pytest.raises(AssertionError, match="Text assertion failed"):
        await actions.assert_condition("text", selector="#status", expected_text="cancelled")
    with pytest.raises(InvalidInput):
        await actions.assert_condition("visible")
    with pytest.raises(InvalidInput):
        await actions.assert_condition("glowing", selector="#status")


@pytest.mark.asyncio
async def test_screenshot_saved_inside_output_dir(session: FakeSessionManager, tmp_path: Path) -> None:
    actions = _actions(session, tmp_path)
    result = await actions.screenshot(path="shots/home.png", full_page=True)
    saved = Path(result["path"])
    assert saved.read_bytes() == PNG_BYTES
    assert saved.parent.parent == (tmp_path / "test-results" / "screenshots").resolve()

    with pytest.raises(PathTraversal):
        await actions.screenshot(path="../../escape.png")


@pytest.mark.asyncio
async def test_screenshot_without_path_returns_base64(session: FakeSessionManager, tmp_path: Path) -> None:
    result = await _actions(session, tmp_path).screenshot(selector="#chart")
    assert base64.b64decode(result["image_base64"]) == PNG_BYTES
    assert result["mime_type"] == "image/png"


@pytest.mark.asyncio
async def test_failure_screenshot_is_best_effort(session: FakeSessionManager, tmp_path: Path) -> None:
    actions = _actions(session, tmp_path)
    assert await actions.save_failure_screenshot("no-page") is None

    await session.get_page()
    path = await actions.save_failure_screenshot("click-1")
    assert path is not None and Path(path).name == "failure-click-1.png"


def test_tools_are_exported_with_schemas(session: FakeSessionManager, tmp_path: Path) -> None:
    tools = _actions(session, tmp_path).get_tools()
    names = {tool.name for tool in tools}
    assert names == {
        "playwright_navigate",
        "playwright_click",
        "playwright_fill",
        "playwright_get_text",
        "playwright_wait_for",
        "playwright_assert",
        "playwright_screenshot",
    }
    navigate = next(tool for tool in tools if tool.name == "playwright_navigate")
    assert "url" in navigate.args
    assert "Examples:" in navigate.description
