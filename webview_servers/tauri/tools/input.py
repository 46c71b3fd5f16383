"""
Input tools: click and type by CSS selector.

Both optionally wait for the element to become interactive first and for
the DOM to settle afterwards (auto-wait).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from selenium.common.exceptions import (
    ElementClickInterceptedException,
    ElementNotInteractableException,
)
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webelement import WebElement

from .base import CommandError
from .sync import DEFAULT_INTERACTIVE_TIMEOUT_MS, wait_for_dom_stable, wait_for_interactive

if TYPE_CHECKING:
    from ..session import DriverSession

_LOGGER = logging.getLogger("tauri.driver.input")


def _pre_wait(session: DriverSession, selector: str, timeout_ms: int) -> None:
    try:
        wait_for_interactive(session, selector, timeout_ms)
    except CommandError as exc:
        # The existence/visibility checks below produce the precise failure.
        _LOGGER.info("interactive_wait_timeout selector=%s reason=%s", selector, exc.reason)


def _find_first(session: DriverSession, tool: str, selector: str) -> WebElement:
    driver = session.require_session()
    elements = driver.find_elements(By.CSS_SELECTOR, selector)
    if not elements:
        raise CommandError(
            tool=tool,
            action="locate",
            reason=f"Element not found: {selector}",
            suggestion="Check the selector against a snapshot",
            details={"selector": selector},
        )
    return elements[0]


def click(
    session: DriverSession,
    selector: str,
    *,
    auto_wait: bool = True,
    timeout_ms: int | None = None,
) -> dict[str, Any]:
    """Click an element by CSS selector.

    Args:
        session: Connected driver session
        selector: CSS selector of the element
        auto_wait: Wait for interactivity before and DOM stability after the click
        timeout_ms: Interactivity timeout (default: 5000)

    Returns:
        Dict with selector, success flag and whether auto-wait ran
    """
    timeout_ms = DEFAULT_INTERACTIVE_TIMEOUT_MS if timeout_ms is None else int(timeout_ms)
    if auto_wait:
        _pre_wait(session, selector, timeout_ms)

    element = _find_first(session, "click", selector)
    if not element.is_displayed():
        raise CommandError(
            tool="click",
            action="check",
            reason=f"Element not visible: {selector}",
            suggestion="Wait for the element to appear or scroll it into view",
            details={"selector": selector},
        )

    try:
        element.click()
    except (ElementClickInterceptedException, ElementNotInteractableException) as exc:
        raise CommandError(
            tool="click",
            action="click",
            reason=f"Click rejected: {selector}: {exc.msg or exc}",
            suggestion="Another element may be covering it, or it is disabled",
            details={"selector": selector},
        ) from exc

    if auto_wait:
        wait_for_dom_stable(session)

    return {"selector": selector, "success": True, "autoWaited": auto_wait}


def type_text(
    session: DriverSession,
    selector: str,
    text: str,
    *,
    auto_wait: bool = True,
    timeout_ms: int | None = None,
) -> dict[str, Any]:
    """Replace the value of an input-like element with ``text``."""
    timeout_ms = DEFAULT_INTERACTIVE_TIMEOUT_MS if timeout_ms is None else int(timeout_ms)
    if auto_wait:
        _pre_wait(session, selector, timeout_ms)

    element = _find_first(session, "type", selector)
    element.clear()
    element.send_keys(text)

    # Debounced inputs re-render shortly after the last keystroke.
    if auto_wait:
        wait_for_dom_stable(session)

    return {"selector": selector, "text": text, "success": True, "autoWaited": auto_wait}


__all__ = ["click", "type_text"]
