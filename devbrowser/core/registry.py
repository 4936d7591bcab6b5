"""PageRegistry: maps session names to live browser tabs."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from playwright.async_api import BrowserContext, Page
from playwright.async_api import Error as PlaywrightError

from devbrowser.core.errors import InvalidRequestError, PageNotFoundError
from devbrowser.core.types import PageEntry
from devbrowser.formatter.ref_manager import RefManager
from devbrowser.extractors import _cdp

logger = logging.getLogger(__name__)


def validate_name(name: object) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidRequestError("Page name must be a non-empty string")
    if "/" in name:
        raise InvalidRequestError(f"Page name may not contain '/': {name!r}")
    return name


class PageRegistry:
    """
    Process-wide name -> page map, owned by the server for its lifetime.

    Usage:
        registry = PageRegistry(context)
        entry = await registry.resolve("checkout")   # creates the tab
        entry = await registry.resolve("checkout")   # same entry
        await registry.close("checkout")
    """

    def __init__(
        self,
        context: BrowserContext,
        *,
        target_id_lookup: Callable[[Page], Awaitable[str]] = _cdp.target_id,
    ) -> None:
        self._context = context
        self._target_id = target_id_lookup
        self._entries: dict[str, PageEntry] = {}
        # creation locks exist only while a creation for the name is in flight
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiting: dict[str, int] = {}
        # highest ref number any forgotten page issued; new pages count on from it
        self._retired_refs = 0
        self._tasks: set[asyncio.Task] = set()

    async def resolve(self, name: str) -> PageEntry:
        """Return the page registered under ``name``, creating it on first use."""
        validate_name(name)
        entry = self._live_entry(name)
        if entry is not None:
            return entry
        # Shielded: a caller that disconnects mid-creation must not leave a
        # tab that other callers never see.
        return await asyncio.shield(self._create_once(name))

    def get(self, name: str) -> PageEntry:
        """Return the live page for ``name`` without creating one."""
        entry = self._live_entry(name)
        if entry is None:
            raise PageNotFoundError(name)
        return entry

    def names(self) -> set[str]:
        return {name for name in list(self._entries) if self._live_entry(name) is not None}

    async def close(self, name: str) -> None:
        """Close the tab behind ``name``. Unknown names raise PageNotFoundError."""
        entry = self._entries.get(name)
        if entry is None:
            raise PageNotFoundError(name)
        logger.info("closing page %r (target %s)", name, entry.target_id)
        if not entry.page.is_closed():
            await entry.page.close()
        self._forget(entry)

    async def close_all(self) -> None:
        for name in list(self._entries):
            try:
                await self.close(name)
            except PlaywrightError as exc:
                logger.warning("failed to close page %r during shutdown: %s", name, exc)
            except PageNotFoundError:
                pass  # removed by its own close event meanwhile

    def __len__(self) -> int:
        return len(self.names())

    def __contains__(self, name: str) -> bool:
        return self._live_entry(name) is not None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _live_entry(self, name: str) -> PageEntry | None:
        entry = self._entries.get(name)
        if entry is None:
            return None
        if entry.is_alive:
            return entry
        # crashed or closed natively: forget it, the next resolve creates afresh
        logger.warning("page %r is no longer alive; dropping it", name)
        self._forget(entry)
        if entry.crashed and not entry.page.is_closed():
            task = asyncio.ensure_future(self._discard(entry))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return None

    async def _create_once(self, name: str) -> PageEntry:
        lock = self._locks.setdefault(name, asyncio.Lock())
        self._waiting[name] = self._waiting.get(name, 0) + 1
        try:
            async with lock:
                # another caller may have created it while we waited
                entry = self._live_entry(name)
                if entry is not None:
                    return entry
                entry = await self._create(name)
                self._entries[name] = entry
                return entry
        finally:
            self._waiting[name] -= 1
            if not self._waiting[name]:
                del self._waiting[name]
                del self._locks[name]

    async def _create(self, name: str) -> PageEntry:
        page = await self._context.new_page()
        try:
            target_id = await self._target_id(page)
        except PlaywrightError:
            await page.close()
            raise
        entry = PageEntry(
            name=name,
            page=page,
            target_id=target_id,
            refs=RefManager(start=self._retired_refs),
        )
        page.on("crash", lambda _page: self._on_crash(entry))
        page.on("close", lambda _page: self._on_close(entry))
        logger.info("created page %r (target %s)", name, target_id)
        return entry

    def _on_crash(self, entry: PageEntry) -> None:
        logger.warning("page %r crashed", entry.name)
        entry.crashed = True

    def _on_close(self, entry: PageEntry) -> None:
        if self._entries.get(entry.name) is entry:
            logger.info("page %r was closed", entry.name)
        self._forget(entry)

    def _forget(self, entry: PageEntry) -> None:
        # only drop the entry if it is still the one registered under the name
        if self._entries.get(entry.name) is entry:
            del self._entries[entry.name]
        # refs of a forgotten page must never be reissued under any name
        self._retired_refs = max(self._retired_refs, entry.refs.last_number)

    async def _discard(self, entry: PageEntry) -> None:
        try:
            await entry.page.close()
        except PlaywrightError as exc:
            logger.debug("could not close crashed page %r: %s", entry.name, exc)
