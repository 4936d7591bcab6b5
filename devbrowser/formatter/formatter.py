"""SnapshotFormatter: renders a StateNode tree as aria-snapshot text."""

from __future__ import annotations

import json

from devbrowser.core.types import StateNode
from devbrowser.formatter.token_budget import TokenBudget

_INDENT = "  "


class SnapshotFormatter:
    """
    Produces the YAML-like text scripts and LLMs read top to bottom::

        - heading "Welcome" [level=1]
        - button "Go" [disabled] [ref=e2]
        - link "Docs" [ref=e4]:
          - /url: https://example.com/docs
    """

    def __init__(self, token_budget: TokenBudget | None = None) -> None:
        self._budget = token_budget or TokenBudget()

    def format(self, root: StateNode, max_tokens: int | None = None) -> str:
        text = "\n".join(self._render_node(root, depth=0))
        if max_tokens is not None:
            text, _ = self._budget.truncate(text, max_tokens)
        return text

    def _render_node(self, node: StateNode, depth: int) -> list[str]:
        indent = _INDENT * depth
        line = f"{indent}- {node.role}"

        if node.name:
            line += f" {json.dumps(node.name, ensure_ascii=False)}"

        for flag in _flags(node):
            line += f" [{flag}]"
        if node.ref:
            line += f" [ref={node.ref}]"

        extras = _extra_props(node)
        value = node.value if node.value != node.name else ""

        if extras or node.children:
            # a value cannot share the line with nested content
            if value:
                extras.insert(0, f"/value: {value}")
            line += ":"
        elif value:
            line += f": {json.dumps(value, ensure_ascii=False)}"

        result = [line]
        child_indent = _INDENT * (depth + 1)
        for extra in extras:
            result.append(f"{child_indent}- {extra}")
        for child in node.children:
            result += self._render_node(child, depth + 1)
        return result


def _flags(node: StateNode) -> list[str]:
    flags: list[str] = []
    if node.checked == "mixed":
        flags.append("checked=mixed")
    elif node.checked is True:
        flags.append("checked")
    if node.disabled:
        flags.append("disabled")
    if node.expanded:
        flags.append("expanded")
    if node.level is not None:
        flags.append(f"level={node.level}")
    if node.pressed == "mixed":
        flags.append("pressed=mixed")
    elif node.pressed is True:
        flags.append("pressed")
    if node.selected:
        flags.append("selected")
    return flags


def _extra_props(node: StateNode) -> list[str]:
    extras: list[str] = []
    if node.url:
        extras.append(f"/url: {node.url}")
    if node.placeholder:
        extras.append(f"/placeholder: {node.placeholder}")
    return extras
