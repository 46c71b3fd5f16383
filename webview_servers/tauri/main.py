"""
Command-line entry point for Tauri app testing over WebDriver.

One-shot commands connect, run a single command and disconnect. `batch`
runs a JSON array of commands from stdin in one session. `server` keeps
the session open and accepts commands over HTTP (see server/http.py).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, TextIO

from selenium.common.exceptions import WebDriverException
from urllib3.exceptions import HTTPError as TransportError

from .checks import check_dependencies, dependency_status, format_missing, format_status
from .config import DriverConfig
from .http_client import HttpClientError, stop_server
from .process_tree import kill_matching
from .server.dispatch import CommandDispatcher
from .server.types import parse_command
from .session import DriverContext
from .tools.base import CommandError

logger = logging.getLogger("tauri.driver")

CLEANUP_PATTERNS = ("tauri-driver", "WebKitWebDriver", "Xvfb")
APP_COMMANDS = ("server", "screenshot", "snapshot", "click", "type", "wait", "eval", "batch")

EPILOG = """\
examples:
  tauri-test-cli server --app ./target/debug/my-app --xvfb
  curl -s http://127.0.0.1:9222 -d '{"cmd":"click","selector":"button"}'
  tauri-test-cli screenshot --app ./target/debug/my-app --output /tmp/screen.png
  echo '[{"cmd":"click","selector":"#go"},{"cmd":"snapshot"}]' | tauri-test-cli batch --app ./my-app
  tauri-test-cli stop
"""


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--app", help="Path to the Tauri app binary")
    common.add_argument("--wait", type=int, default=None, help="Page load timeout in ms (default: 15000)")
    common.add_argument("--json", action="store_true", help="Print results as JSON")
    common.add_argument("--no-auto-wait", action="store_true", help="Skip DOM-stability waits around commands")
    common.add_argument("--xvfb", action="store_true", help="Run the app inside a virtual X display (Linux)")

    parser = argparse.ArgumentParser(
        prog="tauri-test-cli",
        description="Drive a Tauri app through tauri-driver: screenshots, snapshots, input and scripts.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", metavar="<command>")

    server = sub.add_parser("server", parents=[common], help="Keep a session open and accept commands over HTTP")
    server.add_argument("--port", type=int, default=None, help="Listen port (default: 9222)")
    server.add_argument("--auto-wait", action="store_true", help="Enable auto-wait for every command")

    shot = sub.add_parser("screenshot", parents=[common], help="Capture the app window as PNG")
    shot.add_argument("--output", "-o", help="Write the PNG here instead of printing base64")
    shot.add_argument("--full-page", action="store_true", help="Render the whole scrollable document")

    snap = sub.add_parser("snapshot", parents=[common], help="Print an accessibility-tree listing")
    snap.add_argument("--output", "-o", help="Also write the listing to this file")

    click = sub.add_parser("click", parents=[common], help="Click an element")
    click.add_argument("selector")

    type_ = sub.add_parser("type", parents=[common], help="Type text into an element")
    type_.add_argument("selector")
    type_.add_argument("text")

    wait = sub.add_parser("wait", parents=[common], help="Wait for an element to appear or disappear")
    wait.add_argument("selector")
    wait.add_argument("--timeout", type=int, default=None, help="Timeout in ms (default: 5000)")
    wait.add_argument("--gone", action="store_true", help="Wait for the element to disappear")

    evaluate = sub.add_parser("eval", parents=[common], help="Evaluate JavaScript in the app")
    evaluate.add_argument("script")

    sub.add_parser("batch", parents=[common], help="Run a JSON array of commands read from stdin")

    stop = sub.add_parser("stop", help="Stop a running server")
    stop.add_argument("--port", type=int, default=None, help="Server port (default: 9222)")

    sub.add_parser("cleanup", help="Kill stale tauri-driver, WebKitWebDriver and Xvfb processes")
    sub.add_parser("check-deps", help="Check required system dependencies")
    return parser


def payload_from_args(args: argparse.Namespace) -> dict[str, Any]:
    """Translate one-shot CLI arguments into the wire command shape."""
    command = args.command
    if command == "screenshot":
        return {"cmd": command, "output": args.output, "fullPage": args.full_page}
    if command == "snapshot":
        return {"cmd": command, "output": args.output}
    if command == "click":
        return {"cmd": command, "selector": args.selector}
    if command == "type":
        return {"cmd": command, "selector": args.selector, "text": args.text}
    if command == "wait":
        return {"cmd": command, "selector": args.selector, "timeout": args.timeout, "gone": args.gone}
    if command == "eval":
        return {"cmd": command, "script": args.script}
    raise ValueError(f"Not a one-shot command: {command}")


def _print_result(result: Any, json_output: bool, out: TextIO) -> None:
    if result is None:
        return
    if isinstance(result, str) and not json_output:
        out.write(result if result.endswith("\n") else result + "\n")
        return
    out.write(json.dumps(result, indent=2, ensure_ascii=False) + "\n")


def _fail(message: str, json_output: bool) -> int:
    if json_output:
        sys.stdout.write(json.dumps({"error": message}) + "\n")
    else:
        sys.stderr.write(f"Error: {message}\n")
    return 1


def read_batch(stream: TextIO) -> list[Any]:
    try:
        commands = json.loads(stream.read() or "null")
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid JSON input for batch mode") from exc
    if not isinstance(commands, list):
        raise ValueError("Batch input must be a JSON array")
    return commands


# ─────────────────────────────────────────────────────────────────────────────
# Subcommands without an app session
# ─────────────────────────────────────────────────────────────────────────────


def run_stop(args: argparse.Namespace, config: DriverConfig) -> int:
    port = args.port if args.port is not None else config.server_port
    try:
        result = stop_server(port)
    except HttpClientError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 1
    if result["running"]:
        sys.stdout.write("✓ Server stopped\n")
    else:
        sys.stdout.write(f"Server not running on port {port}\n")
    return 0


def run_cleanup() -> int:
    if sys.platform == "win32":
        sys.stderr.write("Error: cleanup is not supported on Windows\n")
        return 1
    sys.stdout.write("Cleaning up stale processes...\n\n")
    for pattern in CLEANUP_PATTERNS:
        if kill_matching(pattern):
            sys.stdout.write(f"  ✓ Killed {pattern}\n")
        else:
            sys.stdout.write(f"  - {pattern} not running\n")
    sys.stdout.write("\n")
    return 0


def run_check_deps(config: DriverConfig) -> int:
    sys.stdout.write(format_status(dependency_status(config)))
    missing = check_dependencies(config)
    if missing:
        sys.stderr.write(format_missing(missing))
        return 1
    return 0


# ─────────────────────────────────────────────────────────────────────────────
# Subcommands with an app session
# ─────────────────────────────────────────────────────────────────────────────


def run_server(args: argparse.Namespace, context: DriverContext) -> int:
    from .server.http import CommandServer

    server = CommandServer(context, port=args.port, auto_wait=args.auto_wait)
    server.start(args.app, args.wait)
    return 0


def run_batch(args: argparse.Namespace, context: DriverContext, commands: list[Any]) -> int:
    dispatcher = CommandDispatcher(context)
    auto_wait = not args.no_auto_wait
    logger.info("batch_start count=%s auto_wait=%s", len(commands), auto_wait)
    results = dispatcher.run_batch(commands, default_auto_wait=auto_wait)
    failures = sum(1 for r in results if not r.ok)
    logger.info("batch_done failed=%s total=%s", failures, len(results))
    _print_result([r.to_batch_wire(i) for i, r in enumerate(results)], True, sys.stdout)
    return 0


def run_one_shot(args: argparse.Namespace, context: DriverContext) -> int:
    command = parse_command(payload_from_args(args))
    result = CommandDispatcher(context).execute(command, default_auto_wait=not args.no_auto_wait)
    _print_result(result, args.json, sys.stdout)
    return 0


def run_app_command(args: argparse.Namespace, config: DriverConfig) -> int:
    missing = check_dependencies(config)
    if missing:
        sys.stderr.write(format_missing(missing))
        return 1

    if not args.app:
        sys.stderr.write(
            "Error: --app <path> is required. Specify the path to your Tauri app binary.\n\n"
            "Example:\n"
            "  tauri-test-cli server --app ./target/debug/my-app\n"
        )
        return 1

    commands: list[Any] = []
    if args.command == "batch":
        try:
            commands = read_batch(sys.stdin)
        except ValueError as exc:
            sys.stderr.write(f"Error: {exc}\n")
            sys.stderr.write('Expected format: [{"cmd":"click","selector":"button"}, ...]\n')
            return 1

    context = DriverContext.create(config)
    try:
        if args.xvfb:
            if sys.platform == "win32":
                return _fail("--xvfb is not supported on Windows", args.json)
            context.xvfb.start()

        if args.command == "server":
            return run_server(args, context)

        wait_ms = config.wait_timeout_ms if args.wait is None else args.wait
        logger.info("connecting app=%s wait_timeout_ms=%s", args.app, wait_ms)
        context.session.connect(args.app, wait_ms)

        if args.command == "batch":
            return run_batch(args, context, commands)
        return run_one_shot(args, context)
    except CommandError as exc:
        return _fail(exc.reason, args.json)
    except WebDriverException as exc:
        return _fail(exc.msg or type(exc).__name__, args.json)
    except TransportError as exc:
        return _fail(f"Lost connection to tauri-driver: {exc}", args.json)
    except (RuntimeError, OSError) as exc:
        return _fail(str(exc), args.json)
    finally:
        context.close()


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    config = DriverConfig.from_env()
    if args.command == "check-deps":
        return run_check_deps(config)
    if args.command == "stop":
        return run_stop(args, config)
    if args.command == "cleanup":
        return run_cleanup()
    if args.command in APP_COMMANDS:
        return run_app_command(args, config)
    parser.error(f"unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
