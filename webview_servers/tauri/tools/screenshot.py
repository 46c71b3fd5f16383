"""
Screenshot capture with ordered fallbacks.

WebKitGTK's WebDriver screenshot hangs when the window has no real compositor
(Xvfb), and html2canvas needs network access to its CDN, so several
strategies are tried in order until one yields a PNG:

1. x11: grab the virtual display framebuffer with Pillow (Xvfb only)
2. native: WebDriver screenshot, bounded by a timeout (skipped under Xvfb)
3. html2canvas: render the DOM in-page
4. canvas: SVG foreignObject render, or plain text when the canvas is tainted
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from PIL import Image, ImageGrab
from selenium.common.exceptions import WebDriverException

from .base import CommandError, StrategyTimeout, elapsed_ms, with_timeout
from .sync import script_timeout, wait_for_dom_stable

if TYPE_CHECKING:
    from ..session import DriverSession
    from ..xvfb import XvfbDisplay

_LOGGER = logging.getLogger("tauri.driver.screenshot")

DEFAULT_SCREENSHOT_TIMEOUT_MS = 15000
HTML2CANVAS_LOAD_TIMEOUT_MS = 3000
HTML2CANVAS_RENDER_TIMEOUT_MS = 4000
CANVAS_MAX_TEXT_LINES = 40
PNG_PREFIX = "data:image/png;base64,"

HTML2CANVAS_JS = """
const scriptUrl = arguments[0];
const fullPage = arguments[1];
const loadTimeout = arguments[2];
const renderTimeout = arguments[3];
const done = arguments[arguments.length - 1];
const render = () => {
    const target = document.body || document.documentElement;
    const opts = { useCORS: true, allowTaint: false, logging: false, backgroundColor: '#ffffff' };
    if (fullPage) {
        opts.width = Math.max(document.documentElement.scrollWidth, target.scrollWidth);
        opts.height = Math.max(document.documentElement.scrollHeight, target.scrollHeight);
        opts.windowWidth = opts.width;
        opts.windowHeight = opts.height;
    }
    const timer = setTimeout(() => done({ error: 'html2canvas render timed out' }), renderTimeout);
    window.html2canvas(target, opts).then((canvas) => {
        clearTimeout(timer);
        done({ data: canvas.toDataURL('image/png') });
    }).catch((err) => {
        clearTimeout(timer);
        done({ error: String(err && err.message ? err.message : err) });
    });
};
if (typeof window.html2canvas === 'function') {
    render();
} else {
    const script = document.createElement('script');
    const timer = setTimeout(() => done({ error: 'html2canvas load timed out' }), loadTimeout);
    script.src = scriptUrl;
    script.onload = () => { clearTimeout(timer); render(); };
    script.onerror = () => { clearTimeout(timer); done({ error: 'html2canvas failed to load' }); };
    document.head.appendChild(script);
}
"""

CANVAS_JS = """
const fullPage = arguments[0];
const maxLines = arguments[1];
const done = arguments[arguments.length - 1];
const doc = document.documentElement;
const width = fullPage ? doc.scrollWidth : window.innerWidth;
const height = fullPage ? doc.scrollHeight : window.innerHeight;
const canvas = document.createElement('canvas');
canvas.width = width;
canvas.height = height;
const ctx = canvas.getContext('2d');
const drawText = () => {
    ctx.fillStyle = '#ffffff';
    ctx.fillRect(0, 0, width, height);
    ctx.fillStyle = '#000000';
    ctx.font = '16px monospace';
    const lines = ((document.body && document.body.innerText) || '').split('\\n').slice(0, maxLines);
    lines.forEach((line, i) => ctx.fillText(line, 10, 20 + i * 20));
    done({ data: canvas.toDataURL('image/png') });
};
try {
    const markup = new XMLSerializer().serializeToString(doc);
    const svg = '<svg xmlns="http://www.w3.org/2000/svg" width="' + width + '" height="' + height + '">' +
        '<foreignObject width="100%" height="100%">' + markup + '</foreignObject></svg>';
    const img = new Image();
    img.onload = () => {
        try {
            ctx.fillStyle = '#ffffff';
            ctx.fillRect(0, 0, width, height);
            ctx.drawImage(img, 0, 0);
            done({ data: canvas.toDataURL('image/png') });
        } catch (e) {
            drawText();
        }
    };
    img.onerror = drawText;
    img.src = 'data:image/svg+xml;charset=utf-8,' + encodeURIComponent(svg);
} catch (e) {
    drawText();
}
"""


@dataclass(slots=True)
class Capture:
    method: str
    data_b64: str


def _strip_data_url(data: str) -> str:
    if data.startswith(PNG_PREFIX):
        return data[len(PNG_PREFIX) :]
    if data.startswith("data:"):
        return data.split(",", 1)[-1]
    return data


def _script_payload(result: Any, method: str) -> str:
    if not isinstance(result, dict):
        raise RuntimeError(f"{method} returned no data")
    if result.get("error"):
        raise RuntimeError(str(result["error"]))
    data = _strip_data_url(str(result.get("data") or ""))
    if not data:
        raise RuntimeError(f"{method} returned an empty image")
    return data


def capture_x11(display: int) -> str:
    """Grab the whole virtual display framebuffer as base64 PNG."""
    image = ImageGrab.grab(xdisplay=f":{display}")
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


def capture_native(session: DriverSession, timeout_ms: int) -> str:
    driver = session.require_session()
    data = with_timeout(
        driver.get_screenshot_as_base64,
        timeout_ms,
        f"native screenshot timed out after {timeout_ms}ms",
    )
    if not data:
        raise RuntimeError("native screenshot returned no data")
    return data


def capture_html2canvas(session: DriverSession, url: str, full_page: bool, timeout_ms: int) -> str:
    driver = session.require_session()
    with script_timeout(driver, timeout_ms / 1000.0):
        result = driver.execute_async_script(
            HTML2CANVAS_JS,
            url,
            bool(full_page),
            HTML2CANVAS_LOAD_TIMEOUT_MS,
            HTML2CANVAS_RENDER_TIMEOUT_MS,
        )
    return _script_payload(result, "html2canvas")


def capture_canvas(session: DriverSession, full_page: bool, timeout_ms: int) -> str:
    driver = session.require_session()
    with script_timeout(driver, timeout_ms / 1000.0):
        result = driver.execute_async_script(CANVAS_JS, bool(full_page), CANVAS_MAX_TEXT_LINES)
    return _script_payload(result, "canvas")


def build_strategies(
    session: DriverSession,
    xvfb: XvfbDisplay | None,
    *,
    full_page: bool,
    timeout_ms: int,
) -> list[tuple[str, Callable[[], str]]]:
    strategies: list[tuple[str, Callable[[], str]]] = []
    display = xvfb.display if xvfb is not None and xvfb.active else None
    if display is not None:
        strategies.append(("x11", lambda: capture_x11(display)))
    else:
        strategies.append(("native", lambda: capture_native(session, timeout_ms)))
    url = session.config.html2canvas_url
    strategies.append(("html2canvas", lambda: capture_html2canvas(session, url, full_page, timeout_ms)))
    strategies.append(("canvas", lambda: capture_canvas(session, full_page, timeout_ms)))
    return strategies


def run_strategies(strategies: list[tuple[str, Callable[[], str]]]) -> Capture:
    failures: list[str] = []
    for method, func in strategies:
        start = time.monotonic()
        try:
            data = func()
        except (StrategyTimeout, WebDriverException, RuntimeError, OSError, ValueError) as exc:
            message = getattr(exc, "msg", None) or str(exc) or type(exc).__name__
            _LOGGER.info("screenshot_strategy_failed method=%s error=%s", method, message)
            failures.append(f"{method}: {message}")
            continue
        _LOGGER.info("screenshot_captured method=%s elapsed_ms=%s", method, elapsed_ms(start))
        return Capture(method=method, data_b64=data)

    raise CommandError(
        tool="screenshot",
        action="capture",
        reason="All screenshot methods failed: " + ", ".join(failures),
        suggestion="Run under --xvfb or allow network access for html2canvas",
        details={"attempts": [m for m, _ in strategies]},
    )


def _decode(data_b64: str) -> bytes:
    try:
        return base64.b64decode(data_b64, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise CommandError(
            tool="screenshot",
            action="decode",
            reason=f"Screenshot data is not valid base64: {exc}",
        ) from exc


def image_size(raw: bytes) -> tuple[int, int]:
    try:
        with Image.open(io.BytesIO(raw)) as image:
            return image.size
    except (OSError, ValueError):
        return 0, 0


def screenshot(
    session: DriverSession,
    xvfb: XvfbDisplay | None = None,
    *,
    output: str | None = None,
    full_page: bool = False,
    auto_wait: bool = True,
    timeout_ms: int | None = None,
) -> dict[str, Any]:
    """Capture the app window.

    Args:
        session: Connected driver session
        xvfb: Virtual display handle; an active display enables framebuffer capture
        output: File path to write the PNG to (otherwise base64 is returned)
        full_page: Render the full scrollable document (DOM strategies only)
        auto_wait: Wait for DOM stability first
        timeout_ms: Per-strategy timeout (default: 15000)

    Returns:
        Dict with path or base64, width, height, method and autoWaited
    """
    driver = session.require_session()
    timeout_ms = DEFAULT_SCREENSHOT_TIMEOUT_MS if timeout_ms is None else int(timeout_ms)
    if auto_wait:
        wait_for_dom_stable(session)

    capture = run_strategies(build_strategies(session, xvfb, full_page=full_page, timeout_ms=timeout_ms))
    raw = _decode(capture.data_b64)

    width = height = 0
    try:
        size = driver.get_window_size()
        width, height = int(size.get("width") or 0), int(size.get("height") or 0)
    except WebDriverException as exc:
        _LOGGER.debug("window_size_failed %s", exc)
    if width <= 0 or height <= 0:
        width, height = image_size(raw)

    result: dict[str, Any] = {"width": width, "height": height, "method": capture.method, "autoWaited": auto_wait}
    if output:
        path = Path(output).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(raw)
        result["path"] = str(path)
    else:
        result["base64"] = capture.data_b64
    return result


__all__ = [
    "Capture",
    "build_strategies",
    "capture_canvas",
    "capture_html2canvas",
    "capture_native",
    "capture_x11",
    "run_strategies",
    "screenshot",
]
