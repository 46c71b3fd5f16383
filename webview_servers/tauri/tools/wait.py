"""
Explicit waits: element appearance/disappearance and fixed sleeps.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from selenium.common.exceptions import TimeoutException
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from .base import CommandError, elapsed_ms

if TYPE_CHECKING:
    from ..session import DriverSession

DEFAULT_WAIT_TIMEOUT_MS = 5000
DEFAULT_SLEEP_MS = 1000


def wait_for(
    session: DriverSession,
    selector: str,
    *,
    timeout_ms: int | None = None,
    gone: bool = False,
) -> dict[str, Any]:
    """
    Wait for an element to become visible, or with ``gone`` to stop being visible.

    Args:
        session: Connected driver session
        selector: CSS selector to watch
        timeout_ms: Maximum wait in milliseconds (default: 5000)
        gone: Wait for disappearance instead of appearance

    Returns:
        Dict with selector, found flag and elapsedMs

    Raises:
        CommandError: On timeout, carrying the elapsed time
    """
    driver = session.require_session()
    timeout_ms = DEFAULT_WAIT_TIMEOUT_MS if timeout_ms is None else int(timeout_ms)
    locator = (By.CSS_SELECTOR, selector)
    condition = EC.invisibility_of_element_located(locator) if gone else EC.visibility_of_element_located(locator)

    start = time.monotonic()
    try:
        WebDriverWait(driver, max(0, timeout_ms) / 1000.0).until(condition)
    except TimeoutException as exc:
        waited = elapsed_ms(start)
        reason = (
            f"Element still visible after {waited}ms: {selector}"
            if gone
            else f"Element not found after {waited}ms: {selector}"
        )
        raise CommandError(
            tool="wait",
            action="wait",
            reason=reason,
            suggestion="Raise the timeout or check the selector",
            details={"selector": selector, "elapsedMs": waited, "gone": gone},
        ) from exc

    return {"selector": selector, "found": not gone, "elapsedMs": elapsed_ms(start)}


def sleep(ms: int | None = None) -> dict[str, Any]:
    duration = DEFAULT_SLEEP_MS if ms is None else max(0, int(ms))
    time.sleep(duration / 1000.0)
    return {"slept": duration}


__all__ = ["DEFAULT_WAIT_TIMEOUT_MS", "sleep", "wait_for"]
