"""
Synchronization primitives shared by the command handlers.

Provides wait_for_dom_stable (structural mutation settle) and
wait_for_interactive (visible + clickable, one shared deadline).
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Callable, Generator
from typing import TYPE_CHECKING, Any

from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from .base import CommandError, elapsed_ms

if TYPE_CHECKING:
    from ..session import DriverSession

_LOGGER = logging.getLogger("tauri.driver.sync")

DEFAULT_SETTLE_MS = 100
DEFAULT_STABLE_TIMEOUT_MS = 2000
INITIAL_GRACE_MS = 30
DEFAULT_INTERACTIVE_TIMEOUT_MS = 5000
# W3C default script timeout, restored after scripts that need a different bound.
DEFAULT_SCRIPT_TIMEOUT = 30.0

# Only childList/characterData count: attribute-only changes (hover, focus,
# class toggles) would otherwise keep the page "changing" forever.
DOM_STABLE_JS = """
const settleTime = arguments[0];
const timeout = arguments[1];
const grace = arguments[2];
const done = arguments[arguments.length - 1];
let mutationDetected = false;
let settleTimer = null;
let finished = false;
const finish = (reason) => {
    if (finished) return;
    finished = true;
    observer.disconnect();
    if (settleTimer) clearTimeout(settleTimer);
    done(reason);
};
const observer = new MutationObserver((mutations) => {
    const structural = mutations.some((m) => m.type === 'childList' || m.type === 'characterData');
    if (!structural) return;
    mutationDetected = true;
    if (settleTimer) clearTimeout(settleTimer);
    settleTimer = setTimeout(() => finish('settled'), settleTime);
});
const root = document.body || document.documentElement;
if (!root) { done('no-body'); return; }
observer.observe(root, { childList: true, subtree: true, attributes: false, characterData: true });
setTimeout(() => { if (!mutationDetected) finish('stable'); }, grace);
setTimeout(() => finish('timeout'), timeout);
"""

UNOBSCURED_JS = """
const el = arguments[0];
const rect = el.getBoundingClientRect();
if (rect.width === 0 || rect.height === 0) return false;
const x = rect.left + rect.width / 2;
const y = rect.top + rect.height / 2;
const hit = document.elementFromPoint(x, y);
return !!hit && (hit === el || el.contains(hit));
"""


@contextlib.contextmanager
def script_timeout(driver: WebDriver, seconds: float) -> Generator[None, None, None]:
    """Temporarily change the session's script timeout."""
    driver.set_script_timeout(max(0.1, float(seconds)))
    try:
        yield
    finally:
        with contextlib.suppress(WebDriverException):
            driver.set_script_timeout(DEFAULT_SCRIPT_TIMEOUT)


def wait_for_dom_stable(
    session: DriverSession,
    settle_ms: int = DEFAULT_SETTLE_MS,
    timeout_ms: int = DEFAULT_STABLE_TIMEOUT_MS,
) -> int:
    """Block until no structural DOM mutation happened for ``settle_ms``.

    Returns immediately (after the initial grace window) if nothing mutates,
    and never waits longer than ``timeout_ms``. Returns the elapsed milliseconds.
    """
    driver = session.require_session()
    start = time.monotonic()
    with script_timeout(driver, timeout_ms / 1000.0 + 2.0):
        reason = driver.execute_async_script(DOM_STABLE_JS, int(settle_ms), int(timeout_ms), INITIAL_GRACE_MS)
    waited = elapsed_ms(start)
    _LOGGER.debug("dom_stable reason=%s elapsed_ms=%s", reason, waited)
    return waited


def _clickable_and_unobscured(locator: tuple[str, str]) -> Callable[[WebDriver], Any]:
    clickable = EC.element_to_be_clickable(locator)

    def _predicate(driver: WebDriver) -> Any:
        element = clickable(driver)
        if not element:
            return False
        if not driver.execute_script(UNOBSCURED_JS, element):
            return False
        return element

    return _predicate


def wait_for_interactive(
    session: DriverSession,
    selector: str,
    timeout_ms: int = DEFAULT_INTERACTIVE_TIMEOUT_MS,
) -> None:
    """Wait until ``selector`` is visible, then until it is clickable (not disabled, not covered)."""
    driver = session.require_session()
    locator = (By.CSS_SELECTOR, selector)
    start = time.monotonic()
    deadline = start + max(0, timeout_ms) / 1000.0
    try:
        WebDriverWait(driver, max(0.0, deadline - time.monotonic())).until(EC.visibility_of_element_located(locator))
        WebDriverWait(driver, max(0.0, deadline - time.monotonic())).until(_clickable_and_unobscured(locator))
    except TimeoutException as exc:
        raise CommandError(
            tool="wait_for_interactive",
            action="wait",
            reason=f"Element not interactive after {elapsed_ms(start)}ms: {selector}",
            suggestion="Check the selector or raise the timeout",
            details={"selector": selector, "timeoutMs": timeout_ms},
        ) from exc


__all__ = [
    "DEFAULT_SETTLE_MS",
    "DEFAULT_STABLE_TIMEOUT_MS",
    "INITIAL_GRACE_MS",
    "script_timeout",
    "wait_for_dom_stable",
    "wait_for_interactive",
]
