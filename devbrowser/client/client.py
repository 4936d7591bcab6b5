"""DevBrowserClient: attach to a running server, work on named pages, leave."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import aiohttp
from playwright.async_api import Browser, ElementHandle, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from devbrowser.core.config import DEFAULT_PORT
from devbrowser.core.errors import (
    DevBrowserError,
    PageNotFoundError,
    ServerUnavailableError,
    error_from_payload,
)
from devbrowser.extractors import _cdp
from devbrowser.snapshot.indexer import fetch_element

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = f"http://localhost:{DEFAULT_PORT}"

# a page created by the server shows up on our CDP connection asynchronously
_TARGET_POLL_INTERVAL = 0.05
_TARGET_POLL_ATTEMPTS = 40


async def connect(server_url: str = DEFAULT_SERVER_URL) -> DevBrowserClient:
    """
    Connect to a dev-browser server.

    Usage:
        client = await connect()
        page = await client.page("search")
        await page.goto("https://example.com")
        print(await client.get_ai_snapshot("search"))
        await client.disconnect()    # "search" stays open on the server
    """
    http = aiohttp.ClientSession()
    client = DevBrowserClient(server_url, http)
    try:
        info = await client._request("GET", "/")
    except BaseException:
        await http.close()
        raise
    client.ws_endpoint = info["wsEndpoint"]
    return client


class DevBrowserClient:
    """Thin counterpart of DevBrowserServer; every call is one HTTP round trip."""

    def __init__(self, server_url: str, http: aiohttp.ClientSession) -> None:
        self.server_url = server_url.rstrip("/")
        self.ws_endpoint = ""
        self._http = http
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._connect_lock = asyncio.Lock()
        self._page_targets: dict[Page, str] = {}

    async def __aenter__(self) -> DevBrowserClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.disconnect()

    # ------------------------------------------------------------------
    # Registry operations
    # ------------------------------------------------------------------

    async def page(self, name: str) -> Page:
        """Get or create the page called ``name`` and return the native Playwright page."""
        info = await self._request("POST", "/pages", json={"name": name})
        browser = await self._ensure_browser()
        return await self._find_page(browser, name, info["targetId"])

    async def list(self) -> list[str]:
        payload = await self._request("GET", "/pages")
        return payload["pages"]

    async def close(self, name: str) -> None:
        """Close a page on the server. Raises PageNotFoundError if it is already gone."""
        await self._request("DELETE", f"/pages/{_seg(name)}")

    # ------------------------------------------------------------------
    # Snapshots and refs
    # ------------------------------------------------------------------

    async def snapshot(self, name: str, max_tokens: int | None = None) -> dict[str, Any]:
        params = {"max_tokens": str(max_tokens)} if max_tokens is not None else None
        return await self._request("GET", f"/pages/{_seg(name)}/snapshot", params=params)

    async def get_ai_snapshot(self, name: str, max_tokens: int | None = None) -> str:
        payload = await self.snapshot(name, max_tokens=max_tokens)
        return payload["snapshot"]

    async def resolve_ref(self, name: str, ref: str) -> dict[str, Any]:
        return await self._request("GET", f"/pages/{_seg(name)}/refs/{_seg(ref)}")

    async def select_snapshot_ref(self, name: str, ref: str) -> ElementHandle:
        """Return a live element handle for ``ref`` from the page's latest snapshot."""
        target = await self.resolve_ref(name, ref)
        page = await self.page(name)
        return await fetch_element(page, target["ref"], target["generation"])

    async def click_ref(self, name: str, ref: str) -> dict[str, Any]:
        return await self._request("POST", f"/pages/{_seg(name)}/refs/{_seg(ref)}/click")

    async def fill_ref(self, name: str, ref: str, value: str) -> dict[str, Any]:
        return await self._request(
            "POST", f"/pages/{_seg(name)}/refs/{_seg(ref)}/fill", json={"value": value}
        )

    # ------------------------------------------------------------------
    # Server-side passthroughs (usable without a Playwright connection)
    # ------------------------------------------------------------------

    async def goto(self, name: str, url: str, wait_until: str = "load") -> dict[str, Any]:
        return await self._request(
            "POST", f"/pages/{_seg(name)}/goto", json={"url": url, "wait_until": wait_until}
        )

    async def screenshot(self, name: str, path: str, full_page: bool = False) -> str:
        payload = await self._request(
            "POST",
            f"/pages/{_seg(name)}/screenshot",
            json={"path": path, "full_page": full_page},
        )
        return payload["path"]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def disconnect(self) -> None:
        """
        Drop this client's connections. Nothing is sent to the server and no
        page is closed; the browser only sees a CDP client go away.
        """
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            self._browser = None
            self._page_targets.clear()
        if not self._http.closed:
            await self._http.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        url = f"{self.server_url}{path}"
        try:
            async with self._http.request(method, url, **kwargs) as resp:
                try:
                    payload = await resp.json(content_type=None)
                except ValueError:
                    payload = None
                if resp.status >= 400:
                    if not isinstance(payload, dict):
                        raise DevBrowserError(f"{method} {path} failed with HTTP {resp.status}")
                    raise error_from_payload(payload, resp.status)
        except aiohttp.ClientConnectionError as exc:
            raise ServerUnavailableError(
                f"Cannot reach dev-browser server at {self.server_url}: {exc}"
            ) from exc
        if not isinstance(payload, dict):
            raise DevBrowserError(f"{method} {path} returned a non-object response")
        return payload

    async def _ensure_browser(self) -> Browser:
        async with self._connect_lock:
            if self._browser is None or not self._browser.is_connected():
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                logger.debug("connecting over CDP to %s", self.ws_endpoint)
                self._browser = await self._playwright.chromium.connect_over_cdp(
                    self.ws_endpoint
                )
            return self._browser

    async def _find_page(self, browser: Browser, name: str, target_id: str) -> Page:
        for _ in range(_TARGET_POLL_ATTEMPTS):
            for context in browser.contexts:
                for page in context.pages:
                    if page.is_closed():
                        continue
                    if page not in self._page_targets:
                        try:
                            self._page_targets[page] = await _cdp.target_id(page)
                        except PlaywrightError as exc:
                            # an unrelated tab went away mid-scan
                            logger.debug("skipping page %s: %s", page.url, exc)
                            continue
                    if self._page_targets[page] == target_id:
                        return page
            await asyncio.sleep(_TARGET_POLL_INTERVAL)
        raise PageNotFoundError(
            name, f"Page {name!r} (target {target_id}) is not visible over CDP"
        )


async def wait_for_page_load(page: Page, timeout: float = 10.0) -> bool:
    """
    Wait for ``load`` and then a network-idle settle.

    Returns False instead of raising when either wait times out; the page is
    usually usable by then.
    """
    try:
        await page.wait_for_load_state("load", timeout=timeout * 1000)
        await page.wait_for_load_state("networkidle", timeout=timeout * 1000)
    except PlaywrightTimeoutError:
        logger.debug("page %s did not settle within %.1fs", page.url, timeout)
        return False
    return True


def _seg(value: str) -> str:
    return quote(value, safe="")
