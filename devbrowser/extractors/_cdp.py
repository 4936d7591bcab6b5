"""
Raw Chrome DevTools Protocol calls used by the snapshot indexer and registry.

Playwright removed page.accessibility.snapshot() in 1.46, and it never
exposed backend node ids anyway, so the accessibility tree and the element
handles behind refs both come straight from CDP.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from playwright.async_api import CDPSession, Page
from playwright.async_api import Error as PlaywrightError

logger = logging.getLogger(__name__)

REFS_GLOBAL = "__devbrowserRefs"

# Reports, per element, whether it renders a box and the structural
# attributes the AX tree does not carry.
_PROBE_JS = """
function(...els) {
  return els.map((el) => {
    if (!el || el.nodeType !== Node.ELEMENT_NODE) {
      return {visible: false, href: "", placeholder: ""};
    }
    const style = window.getComputedStyle(el);
    const rect = el.getBoundingClientRect();
    const visible = style.display !== "none"
      && style.visibility !== "hidden"
      && rect.width > 0
      && rect.height > 0;
    return {
      visible,
      href: el.href ? String(el.href) : "",
      placeholder: el.getAttribute("placeholder") || "",
    };
  });
}
"""

# Swaps the whole in-page ref map in one assignment.
_INSTALL_JS = f"""
function(generation, refs, ...els) {{
  const map = {{}};
  refs.forEach((ref, i) => {{ map[ref] = els[i]; }});
  window.{REFS_GLOBAL} = {{generation, refs: map}};
}}
"""

# Used with page.evaluate_handle(LOOKUP_REF_JS, [ref, generation]).
LOOKUP_REF_JS = f"""
([ref, generation]) => {{
  const state = window.{REFS_GLOBAL};
  if (!state || state.generation !== generation) return null;
  const el = state.refs[ref];
  return el && el.isConnected ? el : null;
}}
"""


@asynccontextmanager
async def cdp_session(page: Page) -> AsyncIterator[CDPSession]:
    cdp = await page.context.new_cdp_session(page)
    try:
        yield cdp
    finally:
        await cdp.detach()


async def target_id(page: Page) -> str:
    """CDP target id of a page; stable for the tab's lifetime and shared by all clients."""
    async with cdp_session(page) as cdp:
        info = await cdp.send("Target.getTargetInfo")
    return info["targetInfo"]["targetId"]


async def fetch_ax_nodes(cdp: CDPSession) -> list[dict]:
    result = await cdp.send("Accessibility.getFullAXTree")
    return result.get("nodes", [])


async def document_object_id(cdp: CDPSession) -> str:
    result = await cdp.send("Runtime.evaluate", {"expression": "document"})
    return result["result"]["objectId"]


async def resolve_objects(cdp: CDPSession, backend_node_ids: list[int]) -> list[str | None]:
    """
    Map backend node ids to remote object ids.

    A node removed from the DOM since the tree was fetched resolves to None.
    """
    object_ids: list[str | None] = []
    for backend_id in backend_node_ids:
        try:
            result = await cdp.send("DOM.resolveNode", {"backendNodeId": backend_id})
        except PlaywrightError as exc:
            logger.debug("backend node %s vanished before probing: %s", backend_id, exc)
            object_ids.append(None)
            continue
        object_ids.append(result.get("object", {}).get("objectId"))
    return object_ids


async def probe_elements(
    cdp: CDPSession, this_id: str, object_ids: list[str]
) -> list[dict[str, Any]]:
    if not object_ids:
        return []
    result = await cdp.send(
        "Runtime.callFunctionOn",
        {
            "functionDeclaration": _PROBE_JS,
            "objectId": this_id,
            "arguments": [{"objectId": oid} for oid in object_ids],
            "returnByValue": True,
        },
    )
    return result["result"]["value"]


async def install_refs(
    cdp: CDPSession,
    this_id: str,
    generation: int,
    refs: list[str],
    object_ids: list[str],
) -> None:
    await cdp.send(
        "Runtime.callFunctionOn",
        {
            "functionDeclaration": _INSTALL_JS,
            "objectId": this_id,
            "arguments": [{"value": generation}, {"value": refs}]
            + [{"objectId": oid} for oid in object_ids],
        },
    )
