"""
Command dispatch table shared by every front-end.

Handlers are keyed by command class; construction fails if a command type
has no handler, so adding a variant without wiring it is caught at startup.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from selenium.common.exceptions import WebDriverException
from urllib3.exceptions import HTTPError as TransportError

from ..tools import click, eval_js, screenshot, sleep, snapshot, type_text, wait_for
from ..tools.base import CommandError, CommandValidationError, elapsed_ms
from .types import (
    COMMAND_TYPES,
    ClickCommand,
    Command,
    CommandResult,
    EvalCommand,
    ScreenshotCommand,
    SleepCommand,
    SnapshotCommand,
    StatusCommand,
    TypeCommand,
    WaitCommand,
    parse_command,
)

if TYPE_CHECKING:
    from ..session import DriverContext

logger = logging.getLogger("tauri.driver.dispatch")

HandlerFunc = Callable[[Any, bool], Any]


def _resolve_auto_wait(command: Any, default: bool) -> bool:
    override = getattr(command, "auto_wait", None)
    return default if override is None else bool(override)


class CommandDispatcher:
    """Runs commands against the context's session."""

    def __init__(self, context: DriverContext) -> None:
        self.context = context
        self._handlers: dict[type, HandlerFunc] = {
            ClickCommand: self._click,
            TypeCommand: self._type,
            WaitCommand: self._wait,
            EvalCommand: self._eval,
            ScreenshotCommand: self._screenshot,
            SnapshotCommand: self._snapshot,
            SleepCommand: self._sleep,
            StatusCommand: self._status,
        }
        missing = [cls.__name__ for cls in COMMAND_TYPES if cls not in self._handlers]
        if missing:
            raise RuntimeError(f"No handler registered for: {', '.join(missing)}")

    @property
    def command_names(self) -> list[str]:
        return [cls.name for cls in self._handlers]

    # ─────────────────────────────────────────────────────────────────────────
    # Handlers
    # ─────────────────────────────────────────────────────────────────────────

    def _click(self, command: ClickCommand, auto_wait: bool) -> Any:
        return click(self.context.session, command.selector, auto_wait=auto_wait, timeout_ms=command.timeout)

    def _type(self, command: TypeCommand, auto_wait: bool) -> Any:
        return type_text(
            self.context.session,
            command.selector,
            command.text,
            auto_wait=auto_wait,
            timeout_ms=command.timeout,
        )

    def _wait(self, command: WaitCommand, auto_wait: bool) -> Any:
        return wait_for(self.context.session, command.selector, timeout_ms=command.timeout, gone=command.gone)

    def _eval(self, command: EvalCommand, auto_wait: bool) -> Any:
        return eval_js(self.context.session, command.script)

    def _screenshot(self, command: ScreenshotCommand, auto_wait: bool) -> Any:
        timeout_ms = command.timeout if command.timeout is not None else self.context.config.screenshot_timeout_ms
        return screenshot(
            self.context.session,
            self.context.xvfb,
            output=command.output,
            full_page=command.full_page,
            auto_wait=auto_wait,
            timeout_ms=timeout_ms,
        )

    def _snapshot(self, command: SnapshotCommand, auto_wait: bool) -> Any:
        return snapshot(self.context.session, output=command.output, auto_wait=auto_wait)

    def _sleep(self, command: SleepCommand, auto_wait: bool) -> Any:
        return sleep(command.ms)

    def _status(self, command: StatusCommand, auto_wait: bool) -> Any:
        return {"status": "running", "message": "Server is running"}

    # ─────────────────────────────────────────────────────────────────────────
    # Entry points
    # ─────────────────────────────────────────────────────────────────────────

    def execute(self, command: Command, default_auto_wait: bool = True) -> Any:
        """Run one parsed command; raises CommandError on failure."""
        handler = self._handlers.get(type(command))
        if handler is None:
            raise KeyError(f"Unknown command type: {type(command).__name__}")
        auto_wait = _resolve_auto_wait(command, default_auto_wait)
        start = time.monotonic()
        try:
            return handler(command, auto_wait)
        finally:
            logger.info("command cmd=%s auto_wait=%s elapsed_ms=%s", command.name, auto_wait, elapsed_ms(start))

    def run(self, payload: Any, default_auto_wait: bool = True) -> CommandResult:
        """Parse and run a wire payload; command failures become a failed result."""
        name = payload.get("cmd") if isinstance(payload, dict) else None
        try:
            command = parse_command(payload)
        except CommandValidationError as exc:
            logger.info("command_invalid cmd=%s reason=%s", name, exc.reason)
            return CommandResult.failure(exc.reason, cmd=name if isinstance(name, str) else None)
        return self.run_command(command, default_auto_wait)

    def run_command(self, command: Command, default_auto_wait: bool = True) -> CommandResult:
        try:
            return CommandResult.success(self.execute(command, default_auto_wait), cmd=command.name)
        except CommandError as exc:
            logger.info("command_failed cmd=%s reason=%s", command.name, exc.reason)
            return CommandResult.failure(exc.reason, cmd=command.name)
        except WebDriverException as exc:
            reason = exc.msg or type(exc).__name__
            logger.warning("command_driver_error cmd=%s reason=%s", command.name, reason)
            return CommandResult.failure(reason, cmd=command.name)
        except OSError as exc:
            logger.warning("command_io_error cmd=%s reason=%s", command.name, exc)
            return CommandResult.failure(str(exc), cmd=command.name)
        except TransportError as exc:
            # Raised by selenium once the bridge is gone.
            reason = f"Lost connection to tauri-driver: {exc}"
            logger.warning("command_transport_error cmd=%s reason=%s", command.name, exc)
            return CommandResult.failure(reason, cmd=command.name)

    def run_batch(self, payloads: list[Any], default_auto_wait: bool = True) -> list[CommandResult]:
        """Run every payload in order; a failure does not stop the batch."""
        return [self.run(payload, default_auto_wait) for payload in payloads]


__all__ = ["CommandDispatcher", "parse_command"]
