"""
Persistent HTTP front-end: keeps one app session alive and runs commands
posted as JSON, one request at a time in arrival order.
"""

from __future__ import annotations

import json
import logging
import signal
import sys
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import TYPE_CHECKING, Any

from selenium.common.exceptions import WebDriverException

from ..tools.base import CommandValidationError
from .dispatch import CommandDispatcher
from .types import CommandResult, parse_command

if TYPE_CHECKING:
    from ..session import DriverContext

logger = logging.getLogger("tauri.driver.server")

STATE_STARTING = "starting"
STATE_LISTENING = "listening"
STATE_SHUTTING_DOWN = "shutting_down"
STATE_STOPPED = "stopped"

LISTEN_HOST = "127.0.0.1"
POLL_INTERVAL = 0.5
MAX_BODY_BYTES = 10 * 1024 * 1024

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

USAGE = {
    "POST /": "Execute a command",
    "GET /status": "Check server status",
    "GET /stop": "Stop the server",
}

# WebKit throttles timers in unfocused windows but not while audio plays.
KEEP_ALIVE_JS = """
if (!window.__keepAliveAudio) {
    try {
        const audioCtx = new AudioContext();
        const oscillator = audioCtx.createOscillator();
        const gain = audioCtx.createGain();
        gain.gain.value = 0;
        oscillator.connect(gain);
        gain.connect(audioCtx.destination);
        oscillator.start();
        window.__keepAliveAudio = { audioCtx, oscillator, gain };
        return true;
    } catch (e) {
        return String(e);
    }
}
return true;
"""


def encode_payload(payload: dict[str, Any] | None) -> bytes:
    if payload is None:
        return b""
    return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")


class _CommandHTTPServer(HTTPServer):
    command_server: CommandServer


class _RequestHandler(BaseHTTPRequestHandler):
    server: _CommandHTTPServer
    server_version = "tauri-test-cli"

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("http %s", format % args)

    def _send(self, status: int, payload: dict[str, Any] | None) -> None:
        try:
            body = encode_payload(payload)
        except (TypeError, ValueError) as exc:
            logger.warning("response_encode_failed status=%s error=%s", status, exc)
            status, payload = 500, {"success": False, "error": f"Result is not JSON serializable: {exc}"}
            body = encode_payload(payload)
        self.send_response(status)
        if payload is not None:
            self.send_header("Content-Type", "application/json")
            self.send_header("Access-Control-Allow-Origin", "*")
        else:
            for key, value in CORS_HEADERS.items():
                self.send_header(key, value)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if body:
            self.wfile.write(body)

    def _read_body(self) -> bytes:
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = 0
        if length <= 0:
            return b""
        return self.rfile.read(min(length, MAX_BODY_BYTES))

    def _handle(self) -> None:
        body = self._read_body() if self.command in ("POST", "PUT") else b""
        status, payload = self.server.command_server.route(self.command, self.path, body)
        self._send(status, payload)

    def do_GET(self) -> None:  # noqa: N802
        self._handle()

    def do_POST(self) -> None:  # noqa: N802
        self._handle()

    def do_OPTIONS(self) -> None:  # noqa: N802
        self._handle()


class CommandServer:
    """Single-threaded command server bound to 127.0.0.1."""

    def __init__(
        self,
        context: DriverContext,
        port: int | None = None,
        auto_wait: bool = False,
        dispatcher: CommandDispatcher | None = None,
    ) -> None:
        self.context = context
        self.port = context.config.server_port if port is None else int(port)
        self.auto_wait = auto_wait
        self.dispatcher = dispatcher or CommandDispatcher(context)
        self.state = STATE_STARTING
        self.httpd: _CommandHTTPServer | None = None
        self._stop_requested = False

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def start(self, app_path: str, wait_timeout_ms: int | None = None) -> None:
        """Connect to the app, bind, announce readiness and serve until stopped."""
        signal.signal(signal.SIGINT, self._on_signal)
        signal.signal(signal.SIGTERM, self._on_signal)

        logger.info("server_connecting app=%s wait_timeout_ms=%s", app_path, wait_timeout_ms)
        self.context.session.connect(app_path, wait_timeout_ms)
        self.inject_keep_alive()

        self.listen()
        self.announce_ready()
        self.serve()

    def listen(self) -> int:
        self.httpd = _CommandHTTPServer((LISTEN_HOST, self.port), _RequestHandler)
        self.httpd.command_server = self
        self.httpd.timeout = POLL_INTERVAL
        self.port = int(self.httpd.server_address[1])
        self.state = STATE_LISTENING
        logger.info("server_listening url=http://%s:%s auto_wait=%s", LISTEN_HOST, self.port, self.auto_wait)
        return self.port

    def announce_ready(self) -> None:
        line = {"status": "ready", "port": self.port, "url": f"http://{LISTEN_HOST}:{self.port}"}
        sys.stdout.write(json.dumps(line) + "\n")
        sys.stdout.flush()

    def serve(self) -> None:
        httpd = self.httpd
        if httpd is None:
            raise RuntimeError("listen() must be called before serve()")
        while not self._stop_requested:
            httpd.handle_request()
        self.shutdown()

    def request_stop(self) -> None:
        self._stop_requested = True

    def _on_signal(self, signum: int, frame: Any) -> None:
        logger.info("server_signal signum=%s", signum)
        self.request_stop()

    def shutdown(self, exit_process: bool = True) -> None:
        """Close the listener, disconnect and exit; repeated calls are no-ops."""
        if self.state in (STATE_SHUTTING_DOWN, STATE_STOPPED):
            return
        self.state = STATE_SHUTTING_DOWN
        logger.info("server_shutting_down port=%s", self.port)
        if self.httpd is not None:
            self.httpd.server_close()
            self.httpd = None
        self.context.close()
        self.state = STATE_STOPPED
        if exit_process:
            sys.exit(0)

    def inject_keep_alive(self) -> None:
        driver = self.context.session.driver
        if driver is None:
            return
        try:
            outcome = driver.execute_script(KEEP_ALIVE_JS)
        except WebDriverException as exc:
            logger.warning("keep_alive_failed %s", exc.msg or exc)
            return
        if outcome is not True:
            logger.warning("keep_alive_unavailable reason=%s", outcome)
        else:
            logger.info("keep_alive_injected")

    # ─────────────────────────────────────────────────────────────────────────
    # Routing
    # ─────────────────────────────────────────────────────────────────────────

    def route(self, method: str, path: str, body: bytes = b"") -> tuple[int, dict[str, Any] | None]:
        """Map one request to (status, JSON payload); ``None`` payload means no body."""
        path = path.split("?", 1)[0] or "/"

        if method == "OPTIONS":
            return 204, None

        if method == "GET" and path == "/status":
            return 200, {"status": "running"}

        if path == "/stop":
            self.request_stop()
            return 200, {"status": "stopping", "message": "Server shutting down"}

        if method == "POST" and path in ("/", "/cmd"):
            return self.handle_command(body)

        return 404, {"error": "Not found", "usage": USAGE}

    def handle_command(self, body: bytes) -> tuple[int, dict[str, Any]]:
        try:
            payload = json.loads(body.decode("utf-8") or "null")
        except (UnicodeDecodeError, json.JSONDecodeError):
            return 400, {"success": False, "error": "Invalid JSON"}

        try:
            command = parse_command(payload)
        except CommandValidationError as exc:
            return 400, CommandResult.failure(exc.reason).to_wire()

        self.context.session.activate_window()
        result = self.dispatcher.run_command(command, default_auto_wait=self.auto_wait)
        return (200 if result.ok else 500), result.to_wire()


__all__ = ["CommandServer", "KEEP_ALIVE_JS", "USAGE"]
