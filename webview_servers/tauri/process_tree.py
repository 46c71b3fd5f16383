"""Process-tree helpers used for bridge cleanup and stale-port eviction."""

from __future__ import annotations

import atexit
import logging
import os
import signal
import subprocess

_LOGGER = logging.getLogger("tauri.driver.process_tree")


def _pgrep(args: list[str]) -> list[int]:
    try:
        proc = subprocess.run(["pgrep", *args], capture_output=True, text=True, timeout=5.0)
    except (OSError, subprocess.SubprocessError):
        return []
    # pgrep exits 1 when nothing matched.
    if proc.returncode != 0:
        return []
    pids: list[int] = []
    for line in proc.stdout.split():
        try:
            pids.append(int(line))
        except ValueError:
            continue
    return pids


def children_of(pid: int) -> list[int]:
    return _pgrep(["-P", str(int(pid))])


def descendants_of(pid: int) -> list[int]:
    """Return every descendant pid of ``pid``, parents listed before their children."""
    descendants: list[int] = []
    for child in children_of(pid):
        descendants.append(child)
        descendants.extend(descendants_of(child))
    return descendants


def _kill(pid: int, sig: int) -> bool:
    try:
        os.kill(pid, sig)
        return True
    except (ProcessLookupError, PermissionError):
        # Already gone (or reparented to someone we can't signal): not a failure.
        return False


def kill_tree(pid: int, sig: int = signal.SIGKILL) -> None:
    """Kill ``pid`` and all of its descendants, deepest first."""
    descendants = descendants_of(pid)
    for child in reversed(descendants):
        _kill(child, sig)
    _kill(pid, sig)
    _LOGGER.debug("kill_tree pid=%s descendants=%s", pid, len(descendants))


def pids_on_port(port: int) -> list[int]:
    try:
        proc = subprocess.run(["lsof", f"-ti:{int(port)}"], capture_output=True, text=True, timeout=5.0)
    except (OSError, subprocess.SubprocessError):
        return []
    pids: list[int] = []
    for line in proc.stdout.split():
        try:
            pids.append(int(line))
        except ValueError:
            continue
    return pids


def kill_port_holders(ports: list[int]) -> bool:
    """Kill every process tree bound to one of ``ports``. Returns True if anything was killed."""
    killed = False
    own = os.getpid()
    for port in ports:
        for pid in pids_on_port(port):
            if pid == own:
                continue
            _LOGGER.info("stale_port_holder port=%s pid=%s", port, pid)
            kill_tree(pid)
            killed = True
    return killed


def kill_matching(pattern: str) -> bool:
    """Kill every process whose command line matches ``pattern`` (pgrep -f)."""
    own = os.getpid()
    pids = [pid for pid in _pgrep(["-f", pattern]) if pid != own]
    for pid in pids:
        kill_tree(pid)
    return bool(pids)


class ProcessGuard:
    """Owns one process tree and kills it when released.

    Every guard is released on interpreter exit by a single atexit hook,
    registered the first time any guard is armed.
    """

    _armed: list[ProcessGuard] = []
    _exit_hook_registered = False

    def __init__(self, name: str) -> None:
        self.name = name
        self.pid: int | None = None

    @classmethod
    def _register_exit_hook(cls) -> None:
        if cls._exit_hook_registered:
            return
        cls._exit_hook_registered = True
        atexit.register(cls.release_all)

    @classmethod
    def release_all(cls) -> None:
        for guard in list(cls._armed):
            guard.release()

    @property
    def armed(self) -> bool:
        return self.pid is not None

    def arm(self, pid: int) -> None:
        self.pid = int(pid)
        if self not in self._armed:
            self._armed.append(self)
        self._register_exit_hook()

    def release(self) -> None:
        pid = self.pid
        self.pid = None
        if self in self._armed:
            self._armed.remove(self)
        if pid is None:
            return
        _LOGGER.info("guard_release name=%s pid=%s", self.name, pid)
        kill_tree(pid)

    def __enter__(self) -> ProcessGuard:
        return self

    def __exit__(self, *args) -> None:
        self.release()


__all__ = [
    "ProcessGuard",
    "children_of",
    "descendants_of",
    "kill_matching",
    "kill_port_holders",
    "kill_tree",
    "pids_on_port",
]
