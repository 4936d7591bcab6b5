"""Convert CDP Accessibility.getFullAXTree output into a StateNode tree."""

from __future__ import annotations

from typing import Any

from devbrowser.core.types import StateNode

# Internal Chrome role names → normalised role strings
_INTERNAL_ROLE_MAP: dict[str, str] = {
    "RootWebArea": "document",
    "WebArea": "document",
    "StaticText": "text",
    "LineBreak": "text",
    "GenericContainer": "generic",
    "LayoutTable": "table",
    "LayoutTableRow": "row",
    "LayoutTableCell": "cell",
}

# Dropped outright; their text is already in the parent StaticText
_DROPPED_ROLES = frozenset({"InlineTextBox"})

# Roles with no semantic meaning, pruned when they have no name AND no children
_STRUCTURAL_ROLES = frozenset({
    "generic", "none", "presentation", "text",
    "document",   # root carries no actionable info itself
})

INTERACTIVE_ROLES = frozenset({
    "button", "link", "textbox", "searchbox", "checkbox", "radio",
    "combobox", "listbox", "option", "menuitem", "menuitemcheckbox",
    "menuitemradio", "tab", "switch", "slider", "spinbutton", "treeitem",
})


def _ax_value(v: dict | None) -> Any:
    """Pull the concrete value out of a CDP AXValue envelope."""
    if v is None:
        return None
    return v.get("value")


def _get_props(raw_node: dict) -> dict[str, Any]:
    """Flatten the CDP properties array into a {name: value} dict."""
    return {
        p["name"]: _ax_value(p.get("value"))
        for p in raw_node.get("properties", [])
    }


def _truthy(raw: Any) -> bool:
    return raw is True or raw == "true"


def _tristate(raw: Any) -> bool | str | None:
    if raw is None:
        return None
    if raw == "mixed":
        return "mixed"
    if isinstance(raw, str):
        return raw == "true"
    return bool(raw)


def build_tree(nodes: list[dict]) -> StateNode:
    """Build the StateNode tree in document order. No refs are assigned here."""
    if not nodes:
        return StateNode(role="document", name="")
    by_id: dict[str, dict] = {n["nodeId"]: n for n in nodes}
    # Root = the single node with no parentId (or empty string parentId)
    root_raw = next(
        (n for n in nodes if not n.get("parentId")),
        nodes[0],
    )
    if root_raw.get("ignored"):
        root = StateNode(role="document", name="")
        root.children = _collect_children(root_raw, by_id, root)
        return root
    return _convert_node(root_raw, by_id) or StateNode(role="document", name="")


def _convert_node(raw: dict, by_id: dict[str, dict]) -> StateNode | None:
    role_raw = raw.get("role", {})
    raw_role = role_raw.get("value", "generic") or "generic"
    if raw_role in _DROPPED_ROLES:
        return None
    role = _INTERNAL_ROLE_MAP.get(raw_role, raw_role)

    name = str(_ax_value(raw.get("name")) or "").strip()
    value_raw = _ax_value(raw.get("value"))
    value = str(value_raw) if value_raw is not None else ""

    props = _get_props(raw)

    expanded_raw = props.get("expanded")
    level_raw = props.get("level")

    node = StateNode(
        role=role,
        name=name,
        value=value,
        checked=_tristate(props.get("checked")),
        expanded=None if expanded_raw is None else _truthy(expanded_raw),
        disabled=_truthy(props.get("disabled")),
        selected=_truthy(props.get("selected")),
        pressed=_tristate(props.get("pressed")),
        level=int(level_raw) if level_raw is not None else None,
        url=str(props.get("url") or ""),
        focusable=_truthy(props.get("focusable")),
        backend_node_id=raw.get("backendDOMNodeId"),
    )
    node.children = _collect_children(raw, by_id, node)
    return node


def _collect_children(raw: dict, by_id: dict[str, dict], parent: StateNode) -> list[StateNode]:
    """Convert children of ``raw``; ignored nodes are skipped but traversed through."""
    result: list[StateNode] = []
    for child_id in raw.get("childIds", []):
        child_raw = by_id.get(child_id)
        if child_raw is None:
            continue
        if child_raw.get("ignored"):
            result.extend(_collect_children(child_raw, by_id, parent))
            continue
        child = _convert_node(child_raw, by_id)
        if child is not None and _is_interesting(child, parent):
            result.append(child)
    return result


def _is_interesting(node: StateNode, parent: StateNode) -> bool:
    """
    Rough equivalent of Playwright's old interesting_only=True filter.
    Prune structural wrappers with no name and no children, and text that
    only repeats the parent's accessible name.
    """
    if node.role == "text" and not node.children and node.name == parent.name:
        return False
    if node.role not in _STRUCTURAL_ROLES:
        return True  # any semantic role is worth keeping
    if node.name:
        return True  # has an accessible name
    if node.children:
        return True  # container for other interesting nodes
    return False


def is_candidate(node: StateNode) -> bool:
    """Actionable by role (or focusable and semantic), and backed by a DOM node."""
    if node.backend_node_id is None:
        return False
    if node.role in INTERACTIVE_ROLES:
        return True
    return node.focusable and node.role not in _STRUCTURAL_ROLES


def candidates(root: StateNode) -> list[StateNode]:
    """Ref candidates in document order."""
    return [n for n in root.walk() if is_candidate(n)]
