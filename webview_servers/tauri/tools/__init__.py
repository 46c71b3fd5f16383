"""
Command handlers organized by domain.

Each module provides focused functionality:
- base: Structured errors and bounded calls
- sync: DOM stability and interactivity waits
- input: Click and type by selector
- wait: Element waits and fixed sleeps
- evaluate: JavaScript evaluation
- snapshot: Accessibility-tree listing of the page
- screenshot: PNG capture with ordered fallbacks
"""

from .base import CommandError, CommandValidationError, StrategyTimeout, with_timeout
from .evaluate import eval_js
from .input import click, type_text
from .screenshot import screenshot
from .snapshot import AccessibilityNode, snapshot
from .sync import wait_for_dom_stable, wait_for_interactive
from .wait import sleep, wait_for

__all__ = [
    "AccessibilityNode",
    "CommandError",
    "CommandValidationError",
    "StrategyTimeout",
    "click",
    "eval_js",
    "screenshot",
    "sleep",
    "snapshot",
    "type_text",
    "wait_for",
    "wait_for_dom_stable",
    "wait_for_interactive",
    "with_timeout",
]
