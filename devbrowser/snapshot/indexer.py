"""SnapshotIndexer: captures accessibility snapshots and resolves their refs."""

from __future__ import annotations

import asyncio
import logging
import time

from playwright.async_api import ElementHandle, Page

from devbrowser.core.errors import RefNotFoundError, StaleRefError
from devbrowser.core.types import PageEntry, RefIndex, RefTarget, Snapshot
from devbrowser.extractors import _cdp
from devbrowser.extractors.a11y import build_tree, candidates
from devbrowser.formatter.formatter import SnapshotFormatter
from devbrowser.formatter.ref_manager import parse_ref

logger = logging.getLogger(__name__)


class SnapshotIndexer:
    """
    Owns the ref index of every page it captures.

    A capture walks the live accessibility tree, gives each visible and
    actionable node the next ``eN`` from the page's RefManager, mirrors the
    ref -> element map into the page itself (so any Playwright connection can
    fetch the element), and then swaps the page's RefIndex. Refs are valid
    until the next capture of the same page, or until their element leaves
    the document.
    """

    def __init__(self, formatter: SnapshotFormatter | None = None) -> None:
        self._formatter = formatter or SnapshotFormatter()

    async def capture(self, entry: PageEntry, *, max_tokens: int | None = None) -> Snapshot:
        # Shielded so a disconnecting client cannot leave the in-page map and
        # the RefIndex on different generations.
        snapshot = await asyncio.shield(self._capture(entry))
        if max_tokens is not None:
            snapshot.text = self._formatter.format(snapshot.root, max_tokens=max_tokens)
        return snapshot

    async def _capture(self, entry: PageEntry) -> Snapshot:
        async with entry.capture_lock:
            t0 = time.monotonic()
            page = entry.page
            async with _cdp.cdp_session(page) as cdp:
                root = build_tree(await _cdp.fetch_ax_nodes(cdp))
                this_id = await _cdp.document_object_id(cdp)

                nodes = candidates(root)
                object_ids = await _cdp.resolve_objects(
                    cdp, [n.backend_node_id for n in nodes]
                )
                resolved = [(n, oid) for n, oid in zip(nodes, object_ids) if oid is not None]
                probes = await _cdp.probe_elements(cdp, this_id, [oid for _, oid in resolved])

                generation, first = entry.refs.begin_capture()
                targets: list[RefTarget] = []
                ref_object_ids: list[str] = []
                for (node, oid), probe in zip(resolved, probes):
                    if node.role == "link" and not node.url:
                        node.url = probe.get("href", "")
                    if not node.placeholder:
                        node.placeholder = probe.get("placeholder", "")
                    if not probe.get("visible"):
                        continue
                    node.ref = entry.refs.next_ref()
                    targets.append(
                        RefTarget(
                            ref=node.ref,
                            role=node.role,
                            name=node.name,
                            backend_node_id=node.backend_node_id,
                            generation=generation,
                        )
                    )
                    ref_object_ids.append(oid)

                await _cdp.install_refs(
                    cdp, this_id, generation, [t.ref for t in targets], ref_object_ids
                )
                entry.ref_index = RefIndex.build(generation, first, targets)

            snapshot = Snapshot(
                name=entry.name,
                url=page.url,
                title=await page.title(),
                generation=generation,
                root=root,
                text=self._formatter.format(root),
                refs=[t.ref for t in targets],
            )
            logger.info(
                "captured %r generation=%d refs=%d in %.1fms",
                entry.name,
                generation,
                len(targets),
                (time.monotonic() - t0) * 1000,
            )
            return snapshot

    def resolve(self, entry: PageEntry, ref: str) -> RefTarget:
        """
        Look ``ref`` up in the page's current index.

        Raises StaleRefError for refs issued by a superseded capture and
        RefNotFoundError for anything never issued.
        """
        number = parse_ref(ref)
        index = entry.ref_index  # read once; captures swap it whole
        if number is None:
            raise RefNotFoundError(ref, f"Malformed ref: {ref!r} (expected e.g. 'e3')")
        if index is None:
            raise RefNotFoundError(ref, f"No snapshot has been taken of page {entry.name!r}")
        key = f"e{number}"
        target = index.targets.get(key)
        if target is not None:
            return target
        if number < index.first:
            raise StaleRefError(key)
        raise RefNotFoundError(key)

    async def element(self, entry: PageEntry, ref: str) -> ElementHandle:
        """Resolve ``ref`` to a live element handle on the page."""
        target = self.resolve(entry, ref)
        return await fetch_element(entry.page, target.ref, target.generation)


async def fetch_element(page: Page, ref: str, generation: int) -> ElementHandle:
    """
    Fetch the element installed for ``ref`` by capture ``generation``.

    Fails with StaleRefError if the page has been re-captured, navigated, or
    the element was removed from the document.
    """
    handle = await page.evaluate_handle(_cdp.LOOKUP_REF_JS, [ref, generation])
    element = handle.as_element()
    if element is None:
        await handle.dispose()
        raise StaleRefError(ref, f"Ref {ref!r} no longer points at an element in the page")
    return element

