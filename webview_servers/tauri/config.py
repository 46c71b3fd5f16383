from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path

HTML2CANVAS_CDN = "https://cdn.jsdelivr.net/npm/html2canvas@1.4.1/dist/html2canvas.min.js"


def _repo_root() -> Path:
    # webview_servers/tauri/config.py -> repo root is parents[2]
    return Path(__file__).resolve().parents[2]


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


DEFAULT_DRIVER_CANDIDATES: list[str] = [
    # cargo install drops it here; PATH may not include ~/.cargo/bin for GUI-launched shells.
    "~/.cargo/bin/tauri-driver",
    "/usr/local/bin/tauri-driver",
    "/usr/bin/tauri-driver",
]


@dataclass
class DriverConfig:
    driver_path: str
    driver_host: str = "127.0.0.1"
    driver_port: int = 4444
    server_port: int = 9222
    wait_timeout_ms: int = 15000
    screenshot_timeout_ms: int = 15000
    html2canvas_url: str = HTML2CANVAS_CDN
    log_dir: str = ""
    ready_marker: str = "Listening"

    @property
    def native_driver_port(self) -> int:
        """Port of the platform WebDriver (WebKitWebDriver) spawned by tauri-driver."""
        return self.driver_port + 1

    @property
    def driver_url(self) -> str:
        return f"http://{self.driver_host}:{self.driver_port}"

    @classmethod
    def detect_driver(cls) -> str:
        env_path = os.environ.get("TAURI_DRIVER_BINARY")
        if env_path:
            return expand_path(env_path)
        for candidate in DEFAULT_DRIVER_CANDIDATES:
            path = Path(expand_path(candidate))
            if path.exists() and os.access(str(path), os.X_OK):
                return str(path)
        # Last resort: rely on PATH lookup
        return shutil.which("tauri-driver") or "tauri-driver"

    @classmethod
    def from_env(cls) -> DriverConfig:
        log_dir = os.environ.get("TAURI_LOG_DIR") or str(_repo_root() / "data" / "logs")
        return cls(
            driver_path=cls.detect_driver(),
            driver_host=os.environ.get("TAURI_DRIVER_HOST", "127.0.0.1").strip() or "127.0.0.1",
            driver_port=_env_int("TAURI_DRIVER_PORT", 4444),
            server_port=_env_int("TAURI_SERVER_PORT", 9222),
            wait_timeout_ms=_env_int("TAURI_WAIT_TIMEOUT", 15000),
            screenshot_timeout_ms=_env_int("TAURI_SCREENSHOT_TIMEOUT", 15000),
            html2canvas_url=os.environ.get("TAURI_HTML2CANVAS_URL") or HTML2CANVAS_CDN,
            log_dir=expand_path(log_dir),
            ready_marker=os.environ.get("TAURI_READY_MARKER") or "Listening",
        )
