"""Accessibility-style snapshot of the live DOM rendered as an indented listing."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .sync import wait_for_dom_stable

if TYPE_CHECKING:
    from ..session import DriverSession

_LOGGER = logging.getLogger("tauri.driver.snapshot")

MAX_DEPTH = 10
MAX_TEXT_CHARS = 50
MAX_INLINE_CLASSES = 2
INTRINSIC_TAGS = ("img", "input", "textarea", "select")
SKIPPED_TAGS = ("script", "style", "noscript")
RELEVANT_ATTRS = (
    "id",
    "class",
    "type",
    "name",
    "value",
    "placeholder",
    "href",
    "src",
    "disabled",
    "checked",
    "selected",
    "aria-expanded",
    "aria-pressed",
    "aria-checked",
    "data-testid",
)

SNAPSHOT_JS = """
const maxDepth = arguments[0];
const relevantAttrs = arguments[1];
const intrinsicTags = arguments[2];
const skippedTags = arguments[3];
const roleMap = {
    button: 'button', a: 'link', input: 'textbox', select: 'combobox', textarea: 'textbox',
    img: 'img', nav: 'navigation', main: 'main', header: 'banner', footer: 'contentinfo',
    aside: 'complementary', article: 'article', section: 'region', form: 'form',
    ul: 'list', ol: 'list', li: 'listitem', table: 'table', tr: 'row', td: 'cell',
    th: 'columnheader', h1: 'heading', h2: 'heading', h3: 'heading', h4: 'heading',
    h5: 'heading', h6: 'heading', dialog: 'dialog',
};

function getRole(el) {
    const role = el.getAttribute('role');
    if (role) return role;
    const tag = el.tagName.toLowerCase();
    return roleMap[tag] || tag;
}

function getAccessibleName(el) {
    const ariaLabel = el.getAttribute('aria-label');
    if (ariaLabel) return ariaLabel;
    const labelledBy = el.getAttribute('aria-labelledby');
    if (labelledBy) {
        const labelEl = document.getElementById(labelledBy);
        if (labelEl) return (labelEl.textContent || '').trim();
    }
    if ((el instanceof HTMLInputElement || el instanceof HTMLTextAreaElement) && el.id) {
        const label = document.querySelector('label[for="' + CSS.escape(el.id) + '"]');
        if (label) return (label.textContent || '').trim();
    }
    if (el instanceof HTMLImageElement) return el.alt || '';
    if (el instanceof HTMLButtonElement || el instanceof HTMLAnchorElement) {
        return (el.textContent || '').trim();
    }
    return '';
}

function buildTree(el, depth) {
    if (depth > maxDepth) return null;
    const tag = el.tagName.toLowerCase();
    if (skippedTags.includes(tag)) return null;
    if (el instanceof HTMLElement && el.hidden) return null;
    const style = window.getComputedStyle(el);
    if (style.display === 'none' || style.visibility === 'hidden') return null;

    const attrs = {};
    for (const attr of relevantAttrs) {
        const val = el.getAttribute(attr);
        if (val !== null && (val !== '' || attr === 'disabled' || attr === 'checked')) attrs[attr] = val;
    }

    let text = '';
    for (const node of el.childNodes) {
        if (node.nodeType === Node.TEXT_NODE) {
            const t = (node.textContent || '').trim();
            if (t) text += t + ' ';
        }
    }
    text = text.trim();

    const children = [];
    for (const child of el.children) {
        const childNode = buildTree(child, depth + 1);
        if (childNode) children.push(childNode);
    }

    const name = getAccessibleName(el);
    if (!name && !text && children.length === 0 && !intrinsicTags.includes(tag)) return null;

    return { tag, role: getRole(el), name, text, attrs, children };
}

return document.body ? buildTree(document.body, 0) : null;
"""


@dataclass
class AccessibilityNode:
    role: str
    name: str | None = None
    text: str | None = None
    attrs: dict[str, str] = field(default_factory=dict)
    children: list[AccessibilityNode] = field(default_factory=list)
    tag: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None, depth: int = 0) -> AccessibilityNode | None:
        if not isinstance(raw, dict) or depth > MAX_DEPTH:
            return None
        tag = str(raw.get("tag") or "").lower() or None
        if tag in SKIPPED_TAGS:
            return None
        children: list[AccessibilityNode] = []
        for child in raw.get("children") or []:
            node = cls.from_dict(child, depth + 1)
            if node is not None:
                children.append(node)
        attrs = raw.get("attrs") if isinstance(raw.get("attrs"), dict) else {}
        node = cls(
            role=str(raw.get("role") or tag or "generic"),
            name=str(raw.get("name") or "").strip() or None,
            text=str(raw.get("text") or "").strip() or None,
            attrs={str(k): str(v) for k, v in attrs.items()},
            children=children,
            tag=tag,
        )
        if node.is_empty_container():
            return None
        return node

    def is_empty_container(self) -> bool:
        return not self.name and not self.text and not self.children and self.tag not in INTRINSIC_TAGS

    def inline_markers(self) -> str:
        markers: list[str] = []
        if self.attrs.get("id"):
            markers.append(f"#{self.attrs['id']}")
        classes = [c for c in self.attrs.get("class", "").split() if c][:MAX_INLINE_CLASSES]
        if classes:
            markers.append("." + ".".join(classes))
        if self.attrs.get("type"):
            markers.append(f"[type={self.attrs['type']}]")
        if "disabled" in self.attrs:
            markers.append("[disabled]")
        if "checked" in self.attrs:
            markers.append("[checked]")
        return "".join(markers)

    def render(self, indent: int = 0) -> str:
        line = f"{'  ' * indent}- {self.role}"
        if self.name:
            line += f' "{self.name}"'
        markers = self.inline_markers()
        if markers:
            line += f" {markers}"
        if self.text and not self.name:
            text = self.text if len(self.text) <= MAX_TEXT_CHARS else self.text[:MAX_TEXT_CHARS] + "..."
            line += f': "{text}"'
        lines = [line]
        for child in self.children:
            lines.append(child.render(indent + 1))
        return "\n".join(lines)


def render_snapshot(root: AccessibilityNode | None) -> str:
    if root is None:
        return ""
    return root.render(0) + "\n"


def snapshot(session: DriverSession, *, output: str | None = None, auto_wait: bool = True) -> str:
    """Return the page as an accessibility-tree listing, optionally writing it to ``output``."""
    driver = session.require_session()
    if auto_wait:
        wait_for_dom_stable(session)

    raw = driver.execute_script(SNAPSHOT_JS, MAX_DEPTH, list(RELEVANT_ATTRS), list(INTRINSIC_TAGS), list(SKIPPED_TAGS))
    text = render_snapshot(AccessibilityNode.from_dict(raw))

    if output:
        path = Path(output).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        _LOGGER.info("snapshot_saved path=%s", path)
    return text


__all__ = ["AccessibilityNode", "render_snapshot", "snapshot"]
