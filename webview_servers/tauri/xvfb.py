"""Virtual X display (Xvfb) lifecycle, Linux only."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import time
from pathlib import Path

from .process_tree import ProcessGuard

_LOGGER = logging.getLogger("tauri.driver.xvfb")

FIRST_DISPLAY = 99
LAST_DISPLAY = 200
SCREEN_GEOMETRY = "1920x1080x24"


def check_xvfb() -> bool:
    if sys.platform == "win32":
        return False
    return shutil.which("Xvfb") is not None


def display_in_use(display: int) -> bool:
    return Path(f"/tmp/.X{display}-lock").exists() or Path(f"/tmp/.X11-unix/X{display}").exists()


def find_available_display(start: int = FIRST_DISPLAY, end: int = LAST_DISPLAY) -> int:
    for display in range(start, end):
        if not display_in_use(display):
            return display
    return start


def wait_for_display(display: int, timeout: float = 10.0, poll_interval: float = 0.1) -> bool:
    env = dict(os.environ, DISPLAY=f":{display}")
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            proc = subprocess.run(
                ["xdpyinfo"],
                env=env,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=1.0,
            )
            if proc.returncode == 0:
                return True
        except (OSError, subprocess.SubprocessError):
            pass
        time.sleep(poll_interval)
    return False


class XvfbDisplay:
    """At most one virtual display per context."""

    def __init__(self) -> None:
        self.process: subprocess.Popen | None = None
        self.display: int | None = None
        self.guard = ProcessGuard("Xvfb")

    @property
    def active(self) -> bool:
        return self.display is not None

    def start(self, timeout: float = 10.0) -> int:
        if self.display is not None:
            return self.display
        if not check_xvfb():
            raise RuntimeError("Xvfb not found. Install it (e.g. sudo apt install xvfb)")

        display = find_available_display()
        display_str = f":{display}"
        _LOGGER.info("xvfb_starting display=%s", display_str)
        self.process = subprocess.Popen(
            ["Xvfb", display_str, "-screen", "0", SCREEN_GEOMETRY, "-ac"],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        self.guard.arm(self.process.pid)

        if not wait_for_display(display, timeout=timeout):
            self.stop()
            raise RuntimeError(f"Xvfb display {display_str} failed to start within timeout")

        self.display = display
        os.environ["DISPLAY"] = display_str
        # Force the X11 backend so GTK/WebKit uses Xvfb instead of a Wayland session.
        os.environ.pop("WAYLAND_DISPLAY", None)
        os.environ["GDK_BACKEND"] = "x11"
        _LOGGER.info("xvfb_ready display=%s", display_str)
        return display

    def stop(self) -> None:
        proc = self.process
        self.process = None
        self.display = None
        if proc is None:
            return
        _LOGGER.info("xvfb_stopping pid=%s", proc.pid)
        self.guard.release()
        try:
            proc.wait(timeout=2.0)
        except subprocess.TimeoutExpired:
            _LOGGER.warning("xvfb_stop_timeout pid=%s", proc.pid)


__all__ = ["XvfbDisplay", "check_xvfb", "find_available_display", "wait_for_display"]
