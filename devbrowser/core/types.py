"""Shared types and dataclasses for dev-browser."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from playwright.async_api import Page

from devbrowser.formatter.ref_manager import RefManager


@dataclass
class StateNode:
    """A single node in the accessibility tree."""

    role: str  # ARIA role (button, textbox, link, heading, ...)
    name: str  # accessible name
    ref: str = ""  # eN reference ID, empty unless visible and actionable
    value: str = ""  # current value (inputs, selects)
    checked: bool | str | None = None  # True / False / "mixed"
    expanded: bool | None = None  # trees, accordions
    disabled: bool = False
    selected: bool = False
    pressed: bool | str | None = None
    level: int | None = None  # headings
    url: str = ""  # link target
    placeholder: str = ""  # inputs
    focusable: bool = False
    backend_node_id: int | None = None  # CDP DOM.BackendNodeId
    children: list[StateNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ref": self.ref,
            "role": self.role,
            "name": self.name,
            "value": self.value,
            "checked": self.checked,
            "expanded": self.expanded,
            "disabled": self.disabled,
            "selected": self.selected,
            "pressed": self.pressed,
            "level": self.level,
            "url": self.url,
            "placeholder": self.placeholder,
            "children": [c.to_dict() for c in self.children],
        }

    def walk(self) -> list[StateNode]:
        """Return this node and all descendants in document order (depth-first)."""
        result: list[StateNode] = []
        stack = [self]
        while stack:
            node = stack.pop()
            result.append(node)
            stack.extend(reversed(node.children))
        return result


@dataclass(frozen=True)
class RefTarget:
    """What a ref points at: enough to find the live element again."""

    ref: str
    role: str
    name: str
    backend_node_id: int
    generation: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "ref": self.ref,
            "role": self.role,
            "name": self.name,
            "generation": self.generation,
        }


@dataclass(frozen=True)
class RefIndex:
    """
    Ref -> target mapping for one capture of one page.

    Never mutated after construction; a new capture builds a new index and
    swaps it in whole.
    """

    generation: int
    first: int  # lowest ref number issued by this capture
    targets: Mapping[str, RefTarget]

    @classmethod
    def build(cls, generation: int, first: int, targets: list[RefTarget]) -> RefIndex:
        return cls(
            generation=generation,
            first=first,
            targets=MappingProxyType({t.ref: t for t in targets}),
        )

    def __contains__(self, ref: str) -> bool:
        return ref in self.targets

    def __len__(self) -> int:
        return len(self.targets)


@dataclass
class Snapshot:
    """Point-in-time serialized accessibility tree of a named page."""

    name: str
    url: str
    title: str
    generation: int
    root: StateNode
    text: str
    refs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "title": self.title,
            "generation": self.generation,
            "refs": list(self.refs),
            "snapshot": self.text,
        }


@dataclass
class PageEntry:
    """A registered page: the native Playwright page plus its registry metadata."""

    name: str
    page: Page
    target_id: str
    created_at: float = field(default_factory=time.time)
    ref_index: RefIndex | None = None
    refs: RefManager = field(default_factory=RefManager)
    capture_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    crashed: bool = False

    @property
    def is_alive(self) -> bool:
        return not self.crashed and not self.page.is_closed()

    def info(self) -> PageInfo:
        return PageInfo(
            name=self.name,
            target_id=self.target_id,
            url=self.page.url,
            created_at=self.created_at,
        )


@dataclass
class PageInfo:
    """Serializable view of a PageEntry for the HTTP boundary."""

    name: str
    target_id: str
    url: str
    created_at: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "targetId": self.target_id,
            "url": self.url,
            "createdAt": self.created_at,
        }
