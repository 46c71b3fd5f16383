from __future__ import annotations

from typing import Any

import pytest
from selenium.common.exceptions import ElementClickInterceptedException, JavascriptException
from selenium.webdriver.remote.webelement import WebElement

from conftest import DummyDriver, DummyElement, DummySession
from webview_servers.tauri.tools.base import CommandError, CommandValidationError
from webview_servers.tauri.tools.evaluate import ELEMENT_KEY, block_form, eval_js, expression_form
from webview_servers.tauri.tools.input import click, type_text
from webview_servers.tauri.tools.sync import DOM_STABLE_JS, wait_for_dom_stable, wait_for_interactive
from webview_servers.tauri.tools.wait import sleep, wait_for

# ─────────────────────────────────────────────────────────────────────────────
# click / type
# ─────────────────────────────────────────────────────────────────────────────


def test_click_missing_element_reports_not_found(session: DummySession) -> None:
    with pytest.raises(CommandError) as excinfo:
        click(session, "#does-not-exist", auto_wait=False)
    assert "Element not found" in excinfo.value.reason
    assert "#does-not-exist" in excinfo.value.reason


def test_click_missing_element_with_auto_wait_still_reports_not_found(session: DummySession) -> None:
    with pytest.raises(CommandError) as excinfo:
        click(session, "#does-not-exist", auto_wait=True, timeout_ms=50)
    assert "Element not found" in excinfo.value.reason


def test_click_hidden_element(session: DummySession, driver: DummyDriver) -> None:
    driver.elements["#hidden"] = [DummyElement(displayed=False)]
    with pytest.raises(CommandError) as excinfo:
        click(session, "#hidden", auto_wait=False)
    assert "Element not visible" in excinfo.value.reason


def test_click_rejected_by_overlay(session: DummySession, driver: DummyDriver) -> None:
    driver.elements["#covered"] = [DummyElement(click_error=ElementClickInterceptedException("overlay"))]
    with pytest.raises(CommandError) as excinfo:
        click(session, "#covered", auto_wait=False)
    assert excinfo.value.reason.startswith("Click rejected")


def test_click_success_with_auto_wait(session: DummySession, driver: DummyDriver) -> None:
    button = DummyElement()
    driver.elements["#go"] = [button]

    result = click(session, "#go")

    assert result == {"selector": "#go", "success": True, "autoWaited": True}
    assert button.clicks == 1
    # DOM stability runs after the click.
    assert driver.async_scripts and driver.async_scripts[-1][0] == DOM_STABLE_JS


def test_click_without_auto_wait_skips_sync(session: DummySession, driver: DummyDriver) -> None:
    driver.elements["#go"] = [DummyElement()]
    result = click(session, "#go", auto_wait=False)
    assert result["autoWaited"] is False
    assert driver.async_scripts == []


def test_type_missing_element(session: DummySession) -> None:
    with pytest.raises(CommandError) as excinfo:
        type_text(session, "#nope", "hello", auto_wait=False)
    assert "Element not found" in excinfo.value.reason


def test_type_replaces_value(session: DummySession, driver: DummyDriver) -> None:
    field = DummyElement()
    driver.elements["input[name=q]"] = [field]

    result = type_text(session, "input[name=q]", "hello", auto_wait=False)

    assert result == {"selector": "input[name=q]", "text": "hello", "success": True, "autoWaited": False}
    assert field.cleared == 1
    assert field.keys == ["hello"]


def test_handlers_require_session(config) -> None:
    with pytest.raises(CommandError) as excinfo:
        click(DummySession(None, config), "#go", auto_wait=False)
    assert "Not connected" in excinfo.value.reason


# ─────────────────────────────────────────────────────────────────────────────
# sync primitives
# ─────────────────────────────────────────────────────────────────────────────


def test_dom_stable_passes_bounds_and_restores_script_timeout(session: DummySession, driver: DummyDriver) -> None:
    elapsed = wait_for_dom_stable(session, settle_ms=100, timeout_ms=2000)

    assert elapsed >= 0
    script, args = driver.async_scripts[0]
    assert script == DOM_STABLE_JS
    assert args == (100, 2000, 30)
    assert driver.script_timeouts[0] >= 2.0
    assert driver.script_timeouts[-1] == 30.0


def test_wait_for_interactive_times_out_on_disabled(session: DummySession, driver: DummyDriver) -> None:
    driver.elements["#save"] = [DummyElement(enabled=False)]
    with pytest.raises(CommandError) as excinfo:
        wait_for_interactive(session, "#save", timeout_ms=50)
    assert "Element not interactive after" in excinfo.value.reason


def test_wait_for_interactive_rejects_covered_element(session: DummySession, driver: DummyDriver) -> None:
    driver.elements["#save"] = [DummyElement()]
    driver.script_handler = lambda script, args: False
    with pytest.raises(CommandError):
        wait_for_interactive(session, "#save", timeout_ms=50)


def test_wait_for_interactive_ready(session: DummySession, driver: DummyDriver) -> None:
    driver.elements["#save"] = [DummyElement()]
    wait_for_interactive(session, "#save", timeout_ms=1000)


# ─────────────────────────────────────────────────────────────────────────────
# wait / sleep
# ─────────────────────────────────────────────────────────────────────────────


def test_wait_for_visible_element(session: DummySession, driver: DummyDriver) -> None:
    driver.elements[".toast"] = [DummyElement()]
    result = wait_for(session, ".toast", timeout_ms=1000)
    assert result["selector"] == ".toast"
    assert result["found"] is True
    assert result["elapsedMs"] >= 0


def test_wait_for_times_out_with_elapsed(session: DummySession) -> None:
    with pytest.raises(CommandError) as excinfo:
        wait_for(session, ".never", timeout_ms=50)
    assert excinfo.value.reason.startswith("Element not found after")
    assert excinfo.value.details["elapsedMs"] >= 0


def test_wait_for_gone(session: DummySession, driver: DummyDriver) -> None:
    result = wait_for(session, ".spinner", timeout_ms=1000, gone=True)
    assert result["found"] is False

    driver.elements[".spinner"] = [DummyElement()]
    with pytest.raises(CommandError) as excinfo:
        wait_for(session, ".spinner", timeout_ms=50, gone=True)
    assert excinfo.value.reason.startswith("Element still visible after")


def test_sleep_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    slept: list[float] = []
    monkeypatch.setattr("webview_servers.tauri.tools.wait.time.sleep", lambda s: slept.append(s))
    assert sleep() == {"slept": 1000}
    assert sleep(250) == {"slept": 250}
    assert slept == [1.0, 0.25]


# ─────────────────────────────────────────────────────────────────────────────
# eval
# ─────────────────────────────────────────────────────────────────────────────


def test_eval_expression_form(session: DummySession, driver: DummyDriver) -> None:
    driver.script_handler = lambda script, args: "Demo" if script == "return document.title" else None
    assert eval_js(session, "document.title") == "Demo"
    assert len(driver.scripts) == 1


def test_eval_falls_back_to_block_form(session: DummySession, driver: DummyDriver) -> None:
    script = "const x = 2; return x * 21;"

    def handler(source: str, args: tuple) -> Any:
        if source == expression_form(script):
            raise JavascriptException("SyntaxError: Unexpected keyword 'const'")
        assert source == block_form(script)
        return 42

    driver.script_handler = handler
    assert eval_js(session, script) == 42
    assert len(driver.scripts) == 2


def test_eval_returns_element_references(session: DummySession, driver: DummyDriver) -> None:
    driver.script_handler = lambda script, args: {
        "body": WebElement(None, "el-1"),
        "items": [WebElement(None, "el-2"), 3, None],
    }
    assert eval_js(session, "({body: document.body, items: [...]})") == {
        "body": {ELEMENT_KEY: "el-1"},
        "items": [{ELEMENT_KEY: "el-2"}, 3, None],
    }


def test_eval_reports_both_failures(session: DummySession, driver: DummyDriver) -> None:
    def handler(source: str, args: tuple) -> Any:
        raise JavascriptException("ReferenceError: nope is not defined")

    driver.script_handler = handler
    with pytest.raises(CommandError) as excinfo:
        eval_js(session, "nope()")
    reason = excinfo.value.reason
    assert reason.startswith("Script failed")
    assert "expression:" in reason and "block:" in reason


def test_eval_requires_script(session: DummySession, driver: DummyDriver) -> None:
    with pytest.raises(CommandValidationError):
        eval_js(session, "")
    assert driver.scripts == []
