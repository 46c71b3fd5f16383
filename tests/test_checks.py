from __future__ import annotations

import stat
from pathlib import Path

import pytest

from webview_servers.tauri import checks
from webview_servers.tauri.checks import (
    DependencyStatus,
    MissingDependency,
    check_dependencies,
    command_exists,
    format_missing,
    format_status,
)
from webview_servers.tauri.config import DriverConfig


def _executable(tmp_path: Path, name: str) -> Path:
    path = tmp_path / name
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return path


def test_command_exists_for_paths(tmp_path: Path) -> None:
    binary = _executable(tmp_path, "tauri-driver")
    assert command_exists(str(binary)) is True
    assert command_exists(str(tmp_path / "missing")) is False


def test_missing_driver_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(checks, "command_exists", lambda cmd: False)
    monkeypatch.setattr(checks, "pkg_config_exists", lambda pkg: True)
    missing = check_dependencies(DriverConfig(driver_path="/nowhere/tauri-driver"))
    assert [dep.name for dep in missing] == ["tauri-driver"]
    assert missing[0].install == "cargo install tauri-driver"


def test_configured_driver_is_accepted(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    binary = _executable(tmp_path, "tauri-driver")
    monkeypatch.setattr(checks.shutil, "which", lambda cmd: None)
    monkeypatch.setattr(checks, "pkg_config_exists", lambda pkg: True)
    assert check_dependencies(DriverConfig(driver_path=str(binary))) == []


def test_webkit_checked_on_linux(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(checks.sys, "platform", "linux")
    monkeypatch.setattr(checks, "command_exists", lambda cmd: True)
    monkeypatch.setattr(checks, "pkg_config_exists", lambda pkg: False)
    missing = check_dependencies()
    assert [dep.name for dep in missing] == [checks.WEBKIT_PKG]


def test_format_status_and_missing() -> None:
    text = format_status([DependencyStatus("tauri-driver", True), DependencyStatus("WebKit", True, "included in macOS")])
    assert "✓ tauri-driver" in text
    assert "✓ WebKit (included in macOS)" in text

    report = format_missing([MissingDependency("tauri-driver", "cargo install tauri-driver", "needed")])
    assert report.startswith("Missing required dependencies:")
    assert "✗ tauri-driver" in report
    assert "      cargo install tauri-driver" in report
    assert format_missing([]) == ""
