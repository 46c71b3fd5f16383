from __future__ import annotations

import errno
import json
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

DEFAULT_TIMEOUT = 5.0


class HttpClientError(Exception):
    pass


def _build_request(url: str, method: str, body: bytes | None = None) -> Request:
    headers = {"User-Agent": "tauri-test-cli/1.0"}
    if body is not None:
        headers["Content-Type"] = "application/json"
    return Request(url, data=body, headers=headers, method=method)


def _is_refused(exc: BaseException) -> bool:
    reason = getattr(exc, "reason", exc)
    if isinstance(reason, ConnectionRefusedError):
        return True
    return isinstance(reason, OSError) and reason.errno == errno.ECONNREFUSED


def server_url(port: int, host: str = "127.0.0.1") -> str:
    return f"http://{host}:{port}"


def stop_server(port: int, host: str = "127.0.0.1", timeout: float = DEFAULT_TIMEOUT) -> dict[str, object]:
    """Ask a running command server to shut down.

    A refused connection means nothing is listening and counts as success.
    """
    req = _build_request(f"{server_url(port, host)}/stop", "POST", b"")
    try:
        with urlopen(req, timeout=timeout) as resp:
            raw = resp.read()
    except HTTPError as exc:
        raise HttpClientError(f"Server returned status {exc.code}") from exc
    except (URLError, ConnectionError) as exc:
        if _is_refused(exc):
            return {"success": True, "running": False, "message": "Server not running"}
        raise HttpClientError(str(getattr(exc, "reason", exc))) from exc
    except TimeoutError as exc:
        raise HttpClientError(f"Timed out contacting server on port {port}") from exc

    result: dict[str, object] = {"success": True, "running": True, "message": "Server stopped"}
    try:
        result["response"] = json.loads(raw.decode("utf-8") or "null")
    except (UnicodeDecodeError, json.JSONDecodeError):
        pass
    return result


__all__ = ["HttpClientError", "server_url", "stop_server"]
