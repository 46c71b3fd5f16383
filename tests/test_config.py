from __future__ import annotations

from pathlib import Path

import pytest

from webview_servers.tauri.config import HTML2CANVAS_CDN, DriverConfig


def test_from_env_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "TAURI_DRIVER_HOST",
        "TAURI_DRIVER_PORT",
        "TAURI_SERVER_PORT",
        "TAURI_WAIT_TIMEOUT",
        "TAURI_SCREENSHOT_TIMEOUT",
        "TAURI_HTML2CANVAS_URL",
        "TAURI_LOG_DIR",
        "TAURI_READY_MARKER",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TAURI_DRIVER_BINARY", "/opt/bin/tauri-driver")

    cfg = DriverConfig.from_env()
    assert cfg.driver_path == "/opt/bin/tauri-driver"
    assert cfg.driver_host == "127.0.0.1"
    assert cfg.driver_port == 4444
    assert cfg.native_driver_port == 4445
    assert cfg.server_port == 9222
    assert cfg.wait_timeout_ms == 15000
    assert cfg.screenshot_timeout_ms == 15000
    assert cfg.html2canvas_url == HTML2CANVAS_CDN
    assert cfg.ready_marker == "Listening"
    assert Path(cfg.log_dir).parts[-2:] == ("data", "logs")
    assert cfg.driver_url == "http://127.0.0.1:4444"


def test_from_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TAURI_DRIVER_BINARY", "/x/tauri-driver")
    monkeypatch.setenv("TAURI_DRIVER_HOST", "localhost")
    monkeypatch.setenv("TAURI_DRIVER_PORT", "5555")
    monkeypatch.setenv("TAURI_SERVER_PORT", "8080")
    monkeypatch.setenv("TAURI_WAIT_TIMEOUT", "3000")
    monkeypatch.setenv("TAURI_SCREENSHOT_TIMEOUT", "2000")
    monkeypatch.setenv("TAURI_HTML2CANVAS_URL", "http://mirror/h2c.js")
    monkeypatch.setenv("TAURI_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("TAURI_READY_MARKER", "ready")

    cfg = DriverConfig.from_env()
    assert cfg.driver_url == "http://localhost:5555"
    assert cfg.native_driver_port == 5556
    assert cfg.server_port == 8080
    assert cfg.wait_timeout_ms == 3000
    assert cfg.screenshot_timeout_ms == 2000
    assert cfg.html2canvas_url == "http://mirror/h2c.js"
    assert cfg.log_dir == str(tmp_path)
    assert cfg.ready_marker == "ready"


def test_from_env_ignores_bad_integers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TAURI_DRIVER_BINARY", "/x/tauri-driver")
    monkeypatch.setenv("TAURI_DRIVER_PORT", "not-a-port")
    monkeypatch.setenv("TAURI_SERVER_PORT", " ")

    cfg = DriverConfig.from_env()
    assert cfg.driver_port == 4444
    assert cfg.server_port == 9222


def test_detect_driver_falls_back_to_path_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TAURI_DRIVER_BINARY", raising=False)
    monkeypatch.setattr("webview_servers.tauri.config.DEFAULT_DRIVER_CANDIDATES", [])
    monkeypatch.setenv("PATH", "")
    assert DriverConfig.detect_driver() == "tauri-driver"


def test_detect_driver_prefers_executable_candidate(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    binary = tmp_path / "tauri-driver"
    binary.write_text("#!/bin/sh\n")
    binary.chmod(0o755)
    monkeypatch.delenv("TAURI_DRIVER_BINARY", raising=False)
    monkeypatch.setattr("webview_servers.tauri.config.DEFAULT_DRIVER_CANDIDATES", [str(tmp_path / "missing"), str(binary)])
    assert DriverConfig.detect_driver() == str(binary)
