"""
JavaScript evaluation in the app's WebView.

Scripts are tried as a bare expression first (``document.title``), then as a
statement block with its own ``return`` when the page rejects the expression.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from selenium.common.exceptions import JavascriptException
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.remote.webelement import WebElement

from .base import CommandError, CommandValidationError

if TYPE_CHECKING:
    from ..session import DriverSession

_LOGGER = logging.getLogger("tauri.driver.evaluate")

# W3C web element identifier.
ELEMENT_KEY = "element-6066-11e4-a52e-4f735466cecf"


@dataclass(slots=True, frozen=True)
class EvalAttempt:
    form: str
    ok: bool
    value: Any = None
    error: str | None = None


def to_json_value(value: Any) -> Any:
    """Replace selenium element handles with their W3C references, recursively."""
    if isinstance(value, WebElement):
        return {ELEMENT_KEY: value.id}
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    return value


def expression_form(script: str) -> str:
    return f"return {script}"


def block_form(script: str) -> str:
    return f"return (function() {{\n{script}\n}})();"


def _attempt(driver: WebDriver, form: str, source: str) -> EvalAttempt:
    try:
        return EvalAttempt(form=form, ok=True, value=driver.execute_script(source))
    except JavascriptException as exc:
        return EvalAttempt(form=form, ok=False, error=exc.msg or str(exc))


def eval_js(session: DriverSession, script: str) -> Any:
    """Execute ``script`` in the app context and return its JSON-compatible result."""
    if not script or not isinstance(script, str):
        raise CommandValidationError(
            tool="eval",
            action="validate",
            reason="eval requires a script",
            suggestion="Provide a JavaScript expression or statement block",
        )
    driver = session.require_session()

    attempts: list[EvalAttempt] = []
    for form, source in (("expression", expression_form(script)), ("block", block_form(script))):
        attempt = _attempt(driver, form, source)
        if attempt.ok:
            return to_json_value(attempt.value)
        _LOGGER.debug("eval_form_rejected form=%s error=%s", form, attempt.error)
        attempts.append(attempt)

    raise CommandError(
        tool="eval",
        action="evaluate",
        reason="Script failed: " + "; ".join(f"{a.form}: {a.error}" for a in attempts),
        suggestion="Check JavaScript syntax; statement blocks need an explicit return",
        details={"attempts": [a.form for a in attempts]},
    )


__all__ = ["ELEMENT_KEY", "EvalAttempt", "block_form", "eval_js", "expression_form", "to_json_value"]
