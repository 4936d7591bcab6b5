"""RefManager: issues eN reference IDs for one page."""

from __future__ import annotations

import re

_REF_RE = re.compile(r"^(?:@|ref=)?e(\d+)$")


def parse_ref(ref: str) -> int | None:
    """Return the number in ``eN`` (also accepts ``@eN`` and ``ref=eN``), or None."""
    match = _REF_RE.match(ref.strip())
    if match is None:
        return None
    return int(match.group(1))


class RefManager:
    """
    Hands out ``e1``, ``e2``, ... for a single page.

    The counter never resets while the page lives, so every capture issues
    numbers no earlier capture has used. A ref number below the current
    capture's first number therefore always belongs to a superseded capture.
    ``start`` continues the numbering of pages that came before this one.
    """

    def __init__(self, start: int = 0) -> None:
        self._counter = start
        self._generation = 0

    def begin_capture(self) -> tuple[int, int]:
        """Start a new capture; return (generation, first ref number it will issue)."""
        self._generation += 1
        return self._generation, self._counter + 1

    def next_ref(self) -> str:
        self._counter += 1
        return f"e{self._counter}"

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def last_number(self) -> int:
        return self._counter
