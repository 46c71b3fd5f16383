from __future__ import annotations

from pathlib import Path

from conftest import DummyDriver, DummySession
from webview_servers.tauri.tools.snapshot import SNAPSHOT_JS, AccessibilityNode, render_snapshot, snapshot

PAGE = {
    "tag": "body",
    "role": "body",
    "name": "",
    "text": "",
    "attrs": {},
    "children": [
        {"tag": "script", "role": "script", "name": "", "text": "var x = 1;", "attrs": {}, "children": []},
        {"tag": "div", "role": "div", "name": "", "text": "", "attrs": {"class": "spacer"}, "children": []},
        {
            "tag": "nav",
            "role": "navigation",
            "name": "",
            "text": "",
            "attrs": {"id": "top", "class": "nav main sticky"},
            "children": [
                {"tag": "a", "role": "link", "name": "Home", "text": "Home", "attrs": {"href": "/"}, "children": []},
            ],
        },
        {
            "tag": "input",
            "role": "textbox",
            "name": "Email",
            "text": "",
            "attrs": {"id": "email", "type": "email", "disabled": ""},
            "children": [],
        },
        {"tag": "img", "role": "img", "name": "", "text": "", "attrs": {"src": "logo.png"}, "children": []},
        {"tag": "p", "role": "p", "name": "", "text": "x" * 60, "attrs": {}, "children": []},
    ],
}


def test_tree_prunes_empty_containers_and_scripts() -> None:
    root = AccessibilityNode.from_dict(PAGE)
    assert root is not None
    roles = [child.role for child in root.children]
    assert roles == ["navigation", "textbox", "img", "p"]


def test_render_markers_and_name_precedence() -> None:
    text = render_snapshot(AccessibilityNode.from_dict(PAGE))
    lines = text.splitlines()

    assert lines[0] == "- body"
    assert '  - navigation #top.nav.main' in lines
    # A named node never repeats its text.
    assert '    - link "Home"' in lines
    assert '  - textbox "Email" #email[type=email][disabled]' in lines
    assert "  - img" in lines
    assert f'  - p: "{"x" * 50}..."' in lines
    assert "script" not in text
    assert "var x" not in text


def test_nested_nodes_indent_two_spaces_per_level() -> None:
    raw = {
        "tag": "ul",
        "role": "list",
        "children": [{"tag": "li", "role": "listitem", "text": "one", "children": []}],
    }
    assert render_snapshot(AccessibilityNode.from_dict(raw)) == '- list\n  - listitem: "one"\n'


def test_depth_cap_drops_deep_nodes() -> None:
    raw: dict = {"tag": "span", "role": "span", "text": "leaf", "children": []}
    for _ in range(12):
        raw = {"tag": "div", "role": "div", "children": [raw]}
    root = AccessibilityNode.from_dict(raw)
    # The leaf sits below the depth cap, so every wrapper ends up empty.
    assert root is None


def test_empty_page_renders_nothing() -> None:
    assert render_snapshot(AccessibilityNode.from_dict(None)) == ""


def test_snapshot_runs_builder_and_writes_file(session: DummySession, driver: DummyDriver, tmp_path: Path) -> None:
    driver.script_handler = lambda script, args: PAGE if script == SNAPSHOT_JS else None
    out = tmp_path / "snaps" / "page.yaml"

    text = snapshot(session, output=str(out), auto_wait=False)

    assert text.startswith("- body\n")
    assert out.read_text(encoding="utf-8") == text
    _, args = driver.scripts[0]
    assert args[0] == 10
    assert "data-testid" in args[1]
    assert driver.async_scripts == []


def test_snapshot_waits_for_dom_when_auto_wait(session: DummySession, driver: DummyDriver) -> None:
    driver.script_handler = lambda script, args: PAGE if script == SNAPSHOT_JS else None
    snapshot(session)
    assert len(driver.async_scripts) == 1
