from __future__ import annotations

import contextlib
import logging
import shlex
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO
from urllib.error import URLError
from urllib.request import urlopen

from .config import DriverConfig
from .process_tree import ProcessGuard, kill_port_holders

_LOGGER = logging.getLogger("tauri.driver.launcher")

STATE_IDLE = "idle"
STATE_STARTING = "starting"
STATE_READY = "ready"
STATE_STOPPED = "stopped"

# Seconds to wait for the ready marker before assuming the bridge is up anyway.
READY_FALLBACK_DELAY = 1.0
PORT_RELEASE_DELAY = 0.5


@dataclass
class LaunchResult:
    command: list[str]
    started: bool
    message: str
    log_path: str | None = None
    log_tail: str | None = None


def build_wrapper_script(driver_path: str) -> str:
    """Shell wrapper that ties the bridge's lifetime to our stdin pipe.

    The bridge runs as a background job. The shell blocks on ``read``; once the
    control process is gone (even SIGKILL) the pipe closes, ``read`` hits EOF,
    and the EXIT trap kills the whole process group.
    """
    return f'{shlex.quote(driver_path)} & trap "kill 0 2>/dev/null" EXIT; read _; exit'


def _tail_text(path: str, max_chars: int = 4000) -> str | None:
    try:
        p = Path(path)
        if not p.exists():
            return None
        raw = p.read_text(encoding="utf-8", errors="replace")
        if len(raw) <= max_chars:
            return raw
        return raw[-max_chars:]
    except OSError:
        return None


class DriverLauncher:
    """Supervises the tauri-driver bridge process."""

    def __init__(self, config: DriverConfig | None = None) -> None:
        self.config = config or DriverConfig.from_env()
        self.process: subprocess.Popen | None = None
        self.state = STATE_IDLE
        self.log_path: str | None = None
        self.guard = ProcessGuard("tauri-driver")

    def build_launch_command(self) -> list[str]:
        return ["sh", "-c", build_wrapper_script(self.config.driver_path)]

    def is_running(self) -> bool:
        proc = self.process
        return proc is not None and proc.poll() is None

    def bridge_ready(self, timeout: float = 0.5) -> bool:
        """Return True if the bridge's W3C /status endpoint responds."""
        endpoint = f"{self.config.driver_url}/status"
        try:
            with urlopen(endpoint, timeout=timeout) as resp:
                return resp.status == 200
        except (OSError, TimeoutError, URLError):
            return False

    def _make_log_path(self) -> str:
        log_dir = Path(self.config.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        ts = int(time.time() * 1000)
        return str(log_dir / f"tauri_driver_{ts}.log")

    def _saw_ready_marker(self) -> bool:
        if not self.log_path:
            return False
        tail = _tail_text(self.log_path)
        return bool(tail) and self.config.ready_marker in tail

    def ensure_running(self, timeout: float = READY_FALLBACK_DELAY) -> LaunchResult:
        if self.state == STATE_READY and self.is_running():
            return LaunchResult([], False, "tauri-driver already running", log_path=self.log_path)
        if self.process is not None:
            # Previous bridge died underneath us.
            _LOGGER.warning("bridge_crashed pid=%s", self.process.pid)
            self.stop()

        self.state = STATE_STARTING
        ports = [self.config.driver_port, self.config.native_driver_port]
        if kill_port_holders(ports):
            time.sleep(PORT_RELEASE_DELAY)

        cmd = self.build_launch_command()
        log_path = self._make_log_path()
        self.log_path = log_path
        log_fh: IO[bytes] | None = None
        try:
            log_fh = open(log_path, "ab", buffering=0)  # noqa: SIM115
            self.process = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=log_fh,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as exc:
            self.state = STATE_IDLE
            return LaunchResult(cmd, False, f"Failed to start tauri-driver: {exc}", log_path, _tail_text(log_path))
        finally:
            if log_fh is not None:
                log_fh.close()

        self.guard.arm(self.process.pid)
        _LOGGER.info("bridge_spawned pid=%s log=%s", self.process.pid, log_path)

        deadline = time.monotonic() + max(0.0, float(timeout))
        while time.monotonic() < deadline:
            if self.process.poll() is not None:
                tail = _tail_text(log_path)
                self.stop()
                return LaunchResult(cmd, False, "tauri-driver exited during startup", log_path, tail)
            if self._saw_ready_marker():
                self.state = STATE_READY
                return LaunchResult(cmd, True, "tauri-driver listening", log_path=log_path)
            time.sleep(0.05)

        if self.process.poll() is not None:
            tail = _tail_text(log_path)
            self.stop()
            return LaunchResult(cmd, False, "tauri-driver exited during startup", log_path, tail)

        self.state = STATE_READY
        if self.bridge_ready():
            _LOGGER.info("bridge_status_ok pid=%s", self.process.pid)
            return LaunchResult(cmd, True, "tauri-driver listening (status endpoint)", log_path=log_path)

        # No marker and no status reply: assume ready after the fallback delay.
        _LOGGER.info("bridge_ready_assumed pid=%s", self.process.pid)
        return LaunchResult(cmd, True, "tauri-driver started (ready marker not seen)", log_path=log_path)

    def stop(self) -> bool:
        """Force-kill the bridge process tree. Returns False if nothing was running."""
        proc = self.process
        self.process = None
        self.state = STATE_STOPPED if proc is not None else self.state
        self.guard.release()
        if proc is None:
            return False
        with contextlib.suppress(OSError):
            if proc.stdin is not None:
                proc.stdin.close()
        with contextlib.suppress(subprocess.TimeoutExpired):
            proc.wait(timeout=2.0)
        return True


__all__ = [
    "DriverLauncher",
    "LaunchResult",
    "STATE_IDLE",
    "STATE_READY",
    "STATE_STARTING",
    "STATE_STOPPED",
    "build_wrapper_script",
]
