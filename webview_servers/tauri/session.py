"""Session subsystem.

- DriverSession: owns the bridge launcher and the WebDriver session handle
- DriverContext: explicit per-process context passed to the server and handlers
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.common.options import ArgOptions
from selenium.webdriver.remote.webdriver import WebDriver
from urllib3.exceptions import HTTPError as TransportError

from .config import DriverConfig
from .launcher import STATE_IDLE, DriverLauncher
from .tools.base import CommandError
from .xvfb import XvfbDisplay

_LOGGER = logging.getLogger("tauri.driver.session")

PAGE_POLL_INTERVAL = 0.2
PAGE_SETTLE_DELAY = 0.5
PAGE_FINAL_WAIT = 1.0
MIN_BODY_LENGTH = 100

NOT_CONNECTED = "Not connected. Run 'tauri-test-cli server' or pass --app first."


def build_options(app_path: str) -> ArgOptions:
    options = ArgOptions()
    options.set_capability("browserName", "wry")
    options.set_capability("tauri:options", {"application": app_path})
    return options


def _remote_factory(command_executor: str, options: ArgOptions) -> WebDriver:
    return webdriver.Remote(command_executor=command_executor, options=options)


class DriverSession:
    """One bridge process plus one WebDriver session against the app."""

    def __init__(
        self,
        config: DriverConfig,
        launcher: DriverLauncher | None = None,
        remote_factory: Callable[[str, ArgOptions], WebDriver] | None = None,
    ) -> None:
        self.config = config
        self.launcher = launcher or DriverLauncher(config)
        self.driver: WebDriver | None = None
        self.window_handle: str | None = None
        self.app_path: str | None = None
        self._remote_factory = remote_factory or _remote_factory

    @property
    def connected(self) -> bool:
        return self.driver is not None

    @property
    def state(self) -> str:
        return self.launcher.state

    def connect(self, app_path: str, wait_timeout_ms: int | None = None) -> WebDriver:
        if self.driver is not None:
            return self.driver

        launch = self.launcher.ensure_running()
        if not launch.started and not self.launcher.is_running():
            raise CommandError(
                tool="session",
                action="connect",
                reason=launch.message,
                suggestion="Check that tauri-driver is installed (tauri-test-cli check-deps)",
                details={"log": launch.log_path, "logTail": launch.log_tail},
            )

        try:
            driver = self._remote_factory(self.config.driver_url, build_options(app_path))
        except WebDriverException as exc:
            self.launcher.stop()
            raise CommandError(
                tool="session",
                action="connect",
                reason=f"Could not open a session for {app_path}: {exc.msg or exc}",
                suggestion="Check the app path and the bridge log",
                details={"log": launch.log_path},
            ) from exc

        self.driver = driver
        self.app_path = app_path
        timeout_ms = self.config.wait_timeout_ms if wait_timeout_ms is None else int(wait_timeout_ms)
        self.wait_for_page_load(timeout_ms)
        with contextlib.suppress(WebDriverException):
            self.window_handle = driver.current_window_handle
        _LOGGER.info("session_connected app=%s", app_path)
        return driver

    def wait_for_page_load(self, timeout_ms: int = 10000) -> bool:
        """Poll until the document is complete and has rendered content.

        Best-effort: on timeout this logs a warning and returns False after a final
        fixed wait instead of failing the connection.
        """
        driver = self.require_session()
        deadline = time.monotonic() + max(0, timeout_ms) / 1000.0
        while time.monotonic() < deadline:
            try:
                ready_state = driver.execute_script("return document.readyState")
                if ready_state == "complete":
                    # Async renderers (Svelte, React) may still be mounting.
                    time.sleep(PAGE_SETTLE_DELAY)
                    body_length = driver.execute_script("return document.body ? document.body.innerHTML.length : 0")
                    if isinstance(body_length, int) and body_length > MIN_BODY_LENGTH:
                        return True
            except WebDriverException:
                # Page might be navigating, retry.
                pass
            time.sleep(PAGE_POLL_INTERVAL)

        _LOGGER.warning("page_load_timeout timeout_ms=%s proceeding=true", timeout_ms)
        time.sleep(PAGE_FINAL_WAIT)
        return False

    def require_session(self) -> WebDriver:
        if self.driver is None:
            raise CommandError(
                tool="session",
                action="require",
                reason=NOT_CONNECTED,
                suggestion="Connect to the app first",
            )
        return self.driver

    def activate_window(self) -> None:
        """Switch to the known window handle; keeps WebKit from throttling an unfocused window."""
        driver = self.driver
        if driver is None:
            return
        try:
            handle = self.window_handle or driver.current_window_handle
            driver.switch_to.window(handle)
        except (WebDriverException, TransportError) as exc:
            _LOGGER.debug("activate_window_failed %s", exc)

    def disconnect(self) -> None:
        driver = self.driver
        self.driver = None
        self.window_handle = None
        if driver is not None:
            try:
                driver.quit()
            except Exception as exc:  # noqa: BLE001
                # The bridge may already be gone; the session is dropped either way.
                _LOGGER.debug("session_quit_failed %s", exc)
        self.launcher.stop()
        self.launcher.state = STATE_IDLE


@dataclass
class DriverContext:
    """Everything a front-end needs; one instance per control process."""

    config: DriverConfig
    session: DriverSession
    xvfb: XvfbDisplay = field(default_factory=XvfbDisplay)

    @classmethod
    def create(cls, config: DriverConfig | None = None, **session_kwargs: Any) -> DriverContext:
        config = config or DriverConfig.from_env()
        return cls(config=config, session=DriverSession(config, **session_kwargs))

    def close(self) -> None:
        with contextlib.suppress(Exception):
            self.session.disconnect()
        self.xvfb.stop()


__all__ = ["DriverContext", "DriverSession", "NOT_CONNECTED", "build_options"]
