"""System dependency checks for the `check-deps` command and one-shot runs."""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from dataclasses import dataclass

from .config import DriverConfig

WEBKIT_PKG = "webkit2gtk-4.1"

WEBKIT_INSTALL = "\n".join(
    [
        "# Debian/Ubuntu:",
        "sudo apt install libwebkit2gtk-4.1-dev webkit2gtk-driver",
        "",
        "# Fedora:",
        "sudo dnf install webkit2gtk4.1-devel",
        "",
        "# Arch:",
        "sudo pacman -S webkit2gtk-4.1",
    ]
)


@dataclass(slots=True, frozen=True)
class MissingDependency:
    name: str
    install: str
    reason: str


@dataclass(slots=True, frozen=True)
class DependencyStatus:
    name: str
    ok: bool
    note: str = ""


def command_exists(cmd: str) -> bool:
    if os.sep in cmd:
        return os.path.isfile(cmd) and os.access(cmd, os.X_OK)
    return shutil.which(cmd) is not None


def pkg_config_exists(pkg: str) -> bool:
    # --modversion behaves more consistently than --exists across distros.
    try:
        proc = subprocess.run(
            ["pkg-config", "--modversion", pkg],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=5.0,
        )
    except (OSError, subprocess.SubprocessError):
        return False
    return proc.returncode == 0


def _driver_available(config: DriverConfig | None) -> bool:
    if command_exists("tauri-driver"):
        return True
    return config is not None and command_exists(config.driver_path)


def check_dependencies(config: DriverConfig | None = None) -> list[MissingDependency]:
    missing: list[MissingDependency] = []
    if not _driver_available(config):
        missing.append(
            MissingDependency(
                name="tauri-driver",
                install="cargo install tauri-driver",
                reason="Required to control Tauri applications via the WebDriver protocol",
            )
        )
    if sys.platform.startswith("linux") and not pkg_config_exists(WEBKIT_PKG):
        missing.append(
            MissingDependency(
                name=WEBKIT_PKG,
                install=WEBKIT_INSTALL,
                reason="Required for WebDriver to communicate with the app's WebView",
            )
        )
    return missing


def dependency_status(config: DriverConfig | None = None) -> list[DependencyStatus]:
    statuses = [DependencyStatus("tauri-driver", _driver_available(config))]
    if sys.platform.startswith("linux"):
        statuses.append(DependencyStatus(WEBKIT_PKG, pkg_config_exists(WEBKIT_PKG)))
    elif sys.platform == "darwin":
        statuses.append(DependencyStatus("WebKit", True, "included in macOS"))
    elif sys.platform == "win32":
        statuses.append(DependencyStatus("WebView2", True, "included in Windows 10/11"))
    return statuses


def format_status(statuses: list[DependencyStatus]) -> str:
    lines = ["Dependency Status:", ""]
    for status in statuses:
        mark = "✓" if status.ok else "✗"
        note = f" ({status.note})" if status.note else ""
        lines.append(f"  {mark} {status.name}{note}")
    return "\n".join(lines) + "\n"


def format_missing(missing: list[MissingDependency]) -> str:
    if not missing:
        return ""
    lines = ["Missing required dependencies:", ""]
    for dep in missing:
        lines.append(f"  ✗ {dep.name}")
        lines.append(f"    {dep.reason}")
        lines.append("")
        lines.append("    Install with:")
        for line in dep.install.splitlines():
            lines.append(f"      {line}" if line.strip() else "")
        lines.append("")
    return "\n".join(lines)


__all__ = [
    "DependencyStatus",
    "MissingDependency",
    "check_dependencies",
    "command_exists",
    "dependency_status",
    "format_missing",
    "format_status",
    "pkg_config_exists",
]
