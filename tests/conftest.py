from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from selenium.common.exceptions import NoSuchElementException

from webview_servers.tauri.config import DriverConfig
from webview_servers.tauri.session import NOT_CONNECTED
from webview_servers.tauri.tools.base import CommandError
from webview_servers.tauri.tools.sync import UNOBSCURED_JS


class DummyElement:
    def __init__(
        self,
        *,
        displayed: bool = True,
        enabled: bool = True,
        click_error: Exception | None = None,
    ) -> None:
        self.displayed = displayed
        self.enabled = enabled
        self.click_error = click_error
        self.clicks = 0
        self.cleared = 0
        self.keys: list[str] = []

    def is_displayed(self) -> bool:
        return self.displayed

    def is_enabled(self) -> bool:
        return self.enabled

    def click(self) -> None:
        if self.click_error is not None:
            raise self.click_error
        self.clicks += 1

    def clear(self) -> None:
        self.cleared += 1

    def send_keys(self, text: str) -> None:
        self.keys.append(text)


class DummySwitchTo:
    def __init__(self) -> None:
        self.windows: list[str] = []

    def window(self, handle: str) -> None:
        self.windows.append(handle)


class DummyDriver:
    """Records WebDriver calls; scripts are answered by ``script_handler``."""

    def __init__(self, elements: dict[str, list[DummyElement]] | None = None) -> None:
        self.elements = elements or {}
        self.scripts: list[tuple[str, tuple[Any, ...]]] = []
        self.async_scripts: list[tuple[str, tuple[Any, ...]]] = []
        self.script_timeouts: list[float] = []
        self.script_handler: Any = None
        self.async_handler: Any = None
        self.window_size: dict[str, int] = {"width": 800, "height": 600}
        self.screenshot_b64: str | None = None
        self.current_window_handle = "win-1"
        self.switch_to = DummySwitchTo()
        self.quit_calls = 0

    def find_elements(self, by: str, value: str) -> list[DummyElement]:
        return list(self.elements.get(value, []))

    def find_element(self, by: str, value: str) -> DummyElement:
        found = self.elements.get(value)
        if not found:
            raise NoSuchElementException(f"no element {value}")
        return found[0]

    def execute_script(self, script: str, *args: Any) -> Any:
        self.scripts.append((script, args))
        if self.script_handler is not None:
            return self.script_handler(script, args)
        if script == UNOBSCURED_JS:
            return True
        if "document.readyState" in script:
            return "complete"
        if "innerHTML.length" in script:
            return 500
        return None

    def execute_async_script(self, script: str, *args: Any) -> Any:
        self.async_scripts.append((script, args))
        if self.async_handler is not None:
            return self.async_handler(script, args)
        return "stable"

    def set_script_timeout(self, seconds: float) -> None:
        self.script_timeouts.append(seconds)

    def get_window_size(self) -> dict[str, int]:
        return dict(self.window_size)

    def get_screenshot_as_base64(self) -> str:
        if self.screenshot_b64 is None:
            raise RuntimeError("no native screenshot")
        return self.screenshot_b64

    def quit(self) -> None:
        self.quit_calls += 1


class DummySession:
    """Stands in for DriverSession in handler tests."""

    def __init__(self, driver: DummyDriver | None, config: DriverConfig) -> None:
        self.driver = driver
        self.config = config
        self.activations = 0
        self.connected_to: list[tuple[str, int | None]] = []

    def require_session(self) -> DummyDriver:
        if self.driver is None:
            raise CommandError(tool="session", action="require", reason=NOT_CONNECTED)
        return self.driver

    def connect(self, app_path: str, wait_timeout_ms: int | None = None) -> DummyDriver:
        self.connected_to.append((app_path, wait_timeout_ms))
        return self.require_session()

    def activate_window(self) -> None:
        self.activations += 1

    def disconnect(self) -> None:
        self.driver = None


@pytest.fixture
def config(tmp_path: Path) -> DriverConfig:
    return DriverConfig(driver_path="/opt/tauri-driver", log_dir=str(tmp_path / "logs"))


@pytest.fixture
def driver() -> DummyDriver:
    return DummyDriver()


@pytest.fixture
def session(driver: DummyDriver, config: DriverConfig) -> DummySession:
    return DummySession(driver, config)
