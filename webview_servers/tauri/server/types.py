"""
Command and result types shared by the CLI, batch mode and the HTTP server.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from ..tools.base import CommandValidationError


@dataclass(slots=True, frozen=True)
class ClickCommand:
    name: ClassVar[str] = "click"

    selector: str
    timeout: int | None = None
    auto_wait: bool | None = None


@dataclass(slots=True, frozen=True)
class TypeCommand:
    name: ClassVar[str] = "type"

    selector: str
    text: str
    timeout: int | None = None
    auto_wait: bool | None = None


@dataclass(slots=True, frozen=True)
class WaitCommand:
    name: ClassVar[str] = "wait"

    selector: str
    timeout: int | None = None
    gone: bool = False


@dataclass(slots=True, frozen=True)
class EvalCommand:
    name: ClassVar[str] = "eval"

    script: str


@dataclass(slots=True, frozen=True)
class ScreenshotCommand:
    name: ClassVar[str] = "screenshot"

    output: str | None = None
    full_page: bool = False
    timeout: int | None = None
    auto_wait: bool | None = None


@dataclass(slots=True, frozen=True)
class SnapshotCommand:
    name: ClassVar[str] = "snapshot"

    output: str | None = None
    auto_wait: bool | None = None


@dataclass(slots=True, frozen=True)
class SleepCommand:
    name: ClassVar[str] = "sleep"

    ms: int | None = None


@dataclass(slots=True, frozen=True)
class StatusCommand:
    name: ClassVar[str] = "status"


Command = (
    ClickCommand
    | TypeCommand
    | WaitCommand
    | EvalCommand
    | ScreenshotCommand
    | SnapshotCommand
    | SleepCommand
    | StatusCommand
)

COMMAND_TYPES: tuple[type, ...] = (
    ClickCommand,
    TypeCommand,
    WaitCommand,
    EvalCommand,
    ScreenshotCommand,
    SnapshotCommand,
    SleepCommand,
    StatusCommand,
)
COMMANDS_BY_NAME: dict[str, type] = {cls.name: cls for cls in COMMAND_TYPES}


@dataclass(slots=True)
class CommandResult:
    """Outcome of one command: exactly one of ``value`` (success) or ``error`` (failure)."""

    ok: bool
    value: Any = None
    error: str | None = None
    cmd: str | None = None

    @classmethod
    def success(cls, value: Any, cmd: str | None = None) -> CommandResult:
        return cls(ok=True, value=value, cmd=cmd)

    @classmethod
    def failure(cls, error: str, cmd: str | None = None) -> CommandResult:
        return cls(ok=False, error=error, cmd=cmd)

    def to_wire(self) -> dict[str, Any]:
        if self.ok:
            return {"success": True, "result": self.value}
        return {"success": False, "error": self.error}

    def to_batch_wire(self, index: int) -> dict[str, Any]:
        return {"index": index, "cmd": self.cmd, **self.to_wire()}


def _invalid(reason: str, cmd: Any = None) -> CommandValidationError:
    return CommandValidationError(
        tool=str(cmd) if cmd else "command",
        action="validate",
        reason=reason,
        suggestion="Send a JSON object like {\"cmd\": \"click\", \"selector\": \"#id\"}",
    )


def _opt_int(payload: dict[str, Any], key: str, cmd: str) -> int | None:
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise _invalid(f"{cmd} {key} must be a number", cmd)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise _invalid(f"{cmd} {key} must be a number", cmd) from exc


def _opt_bool(payload: dict[str, Any], key: str, cmd: str) -> bool | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise _invalid(f"{cmd} {key} must be a boolean", cmd)
    return value


def _opt_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    return str(value)


def parse_command(payload: Any) -> Command:
    """Validate a wire payload and build the matching command.

    Raises:
        CommandValidationError: Not an object, missing/unknown ``cmd``, or a
            required field is missing
    """
    if not isinstance(payload, dict):
        raise _invalid("Command must be a JSON object")
    name = payload.get("cmd")
    if not name:
        raise _invalid("Missing 'cmd' field")
    if not isinstance(name, str) or name not in COMMANDS_BY_NAME:
        raise _invalid(f"Unknown command: {name}", name)

    selector = _opt_str(payload, "selector")
    auto_wait = _opt_bool(payload, "autoWait", name)

    if name == "click":
        if not selector:
            raise _invalid("click requires a selector", name)
        return ClickCommand(selector=selector, timeout=_opt_int(payload, "timeout", name), auto_wait=auto_wait)

    if name == "type":
        text = payload.get("text")
        if not selector or text is None:
            raise _invalid("type requires selector and text", name)
        return TypeCommand(
            selector=selector,
            text=str(text),
            timeout=_opt_int(payload, "timeout", name),
            auto_wait=auto_wait,
        )

    if name == "wait":
        if not selector:
            raise _invalid("wait requires a selector", name)
        return WaitCommand(
            selector=selector,
            timeout=_opt_int(payload, "timeout", name),
            gone=bool(_opt_bool(payload, "gone", name)),
        )

    if name == "eval":
        script = payload.get("script")
        if not script or not isinstance(script, str):
            raise _invalid("eval requires a script", name)
        return EvalCommand(script=script)

    if name == "screenshot":
        return ScreenshotCommand(
            output=_opt_str(payload, "output"),
            full_page=bool(_opt_bool(payload, "fullPage", name)),
            timeout=_opt_int(payload, "timeout", name),
            auto_wait=auto_wait,
        )

    if name == "snapshot":
        return SnapshotCommand(output=_opt_str(payload, "output"), auto_wait=auto_wait)

    if name == "sleep":
        return SleepCommand(ms=_opt_int(payload, "ms", name))

    return StatusCommand()


__all__ = [
    "COMMANDS_BY_NAME",
    "COMMAND_TYPES",
    "ClickCommand",
    "Command",
    "CommandResult",
    "EvalCommand",
    "ScreenshotCommand",
    "SleepCommand",
    "SnapshotCommand",
    "StatusCommand",
    "TypeCommand",
    "WaitCommand",
    "parse_command",
]
