"""Server package: command types, dispatch and the HTTP front-end.

Keep this package import light: `server.http` pulls in the stdlib HTTP server
and is only needed by the `server` subcommand.
"""

from __future__ import annotations

from typing import Any

__all__ = ["CommandDispatcher", "CommandServer"]


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name == "CommandDispatcher":
        from .dispatch import CommandDispatcher

        return CommandDispatcher
    if name == "CommandServer":
        from .http import CommandServer

        return CommandServer
    raise AttributeError(name)
