"""
Base utilities for command handlers.

Provides:
- CommandError: Structured errors carrying tool/action context
- CommandValidationError: Precondition errors raised before the session is touched
- with_timeout: Bound a blocking call that has no timeout of its own
"""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

T = TypeVar("T")


@dataclass
class CommandError(Exception):
    """Structured error with context for the caller."""

    tool: str
    action: str
    reason: str
    suggestion: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.reason

    def describe(self) -> str:
        text = f"[{self.tool}] {self.action} failed: {self.reason}"
        if self.suggestion:
            text += f". Suggestion: {self.suggestion}"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": True,
            "tool": self.tool,
            "action": self.action,
            "reason": self.reason,
            "suggestion": self.suggestion,
            "details": self.details,
        }


@dataclass
class CommandValidationError(CommandError):
    """Missing/invalid command fields; never reaches the session."""


class StrategyTimeout(Exception):
    pass


def with_timeout(func: Callable[[], T], timeout_ms: int, message: str) -> T:
    """Run ``func`` with an upper bound; a call still blocked at the deadline is abandoned.

    The call runs on a daemon thread so an abandoned call never holds up interpreter exit.
    """
    outcome: queue.Queue[tuple[bool, Any]] = queue.Queue(maxsize=1)

    def _runner() -> None:
        try:
            outcome.put((True, func()))
        except Exception as exc:  # noqa: BLE001
            outcome.put((False, exc))

    threading.Thread(target=_runner, name="bounded-call", daemon=True).start()
    try:
        ok, value = outcome.get(timeout=max(0.0, timeout_ms / 1000.0))
    except queue.Empty as exc:
        raise StrategyTimeout(message) from exc
    if not ok:
        raise value
    return value


def elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
