"""DevBrowserServer: HTTP control API over one persistent browser."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any

import aiohttp
from aiohttp import web
from playwright.async_api import BrowserContext, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from devbrowser.core.config import ServerConfig
from devbrowser.core.errors import BrowserError, DevBrowserError, InvalidRequestError
from devbrowser.core.registry import PageRegistry, validate_name
from devbrowser.snapshot.indexer import SnapshotIndexer

logger = logging.getLogger(__name__)

_WAIT_UNTIL = frozenset({"load", "domcontentloaded", "networkidle", "commit"})


class DevBrowserServer:
    """
    Owns the browser for its whole lifetime and serves named pages to
    short-lived clients.

    Usage:
        server = DevBrowserServer(ServerConfig(headless=True))
        await server.start()
        ...                       # clients come and go
        await server.stop()

    Tests can skip ``start()`` and build the app around an existing
    registry with ``create_app()``.
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        *,
        registry: PageRegistry | None = None,
        indexer: SnapshotIndexer | None = None,
        ws_endpoint: str = "",
    ) -> None:
        self.config = config or ServerConfig()
        self.registry = registry
        self.indexer = indexer or SnapshotIndexer()
        self.ws_endpoint = ws_endpoint
        self._playwright: Playwright | None = None
        self._context: BrowserContext | None = None
        self._runner: web.AppRunner | None = None
        self._started_at = time.monotonic()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Launch the browser, then bind the HTTP port."""
        cfg = self.config
        cfg.ensure_dirs()
        logger.info(
            "launching chromium headless=%s profile=%s cdp_port=%d",
            cfg.headless, cfg.profile_dir, cfg.cdp_port,
        )
        self._playwright = await async_playwright().start()
        try:
            self._context = await self._playwright.chromium.launch_persistent_context(
                str(cfg.profile_dir),
                headless=cfg.headless,
                args=[f"--remote-debugging-port={cfg.cdp_port}"],
            )
            self.ws_endpoint = await fetch_ws_endpoint(cfg.cdp_port)
        except Exception:
            await self._shutdown_browser()
            raise
        self.registry = PageRegistry(self._context)

        self._runner = web.AppRunner(self.create_app(), handler_cancellation=True)
        await self._runner.setup()
        site = web.TCPSite(self._runner, cfg.host, cfg.port)
        await site.start()
        self._started_at = time.monotonic()
        logger.info("dev-browser listening on %s (ws %s)", cfg.base_url, self.ws_endpoint)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        if self.registry is not None:
            await self.registry.close_all()
        await self._shutdown_browser()
        logger.info("dev-browser stopped")

    async def _shutdown_browser(self) -> None:
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def create_app(self) -> web.Application:
        if self.registry is None:
            raise RuntimeError("DevBrowserServer has no page registry; call start() first")
        app = web.Application(middlewares=[_request_logging_middleware, _error_middleware])
        r = app.router
        r.add_get("/", self._handle_root)
        r.add_get("/health", self._handle_health)
        # Page registry
        r.add_get("/pages", self._handle_list_pages)
        r.add_post("/pages", self._handle_get_or_create_page)
        r.add_delete("/pages/{name}", self._handle_close_page)
        # Snapshots and refs
        r.add_get("/pages/{name}/snapshot", self._handle_snapshot)
        r.add_get("/pages/{name}/refs/{ref}", self._handle_resolve_ref)
        r.add_post("/pages/{name}/refs/{ref}/click", self._handle_click_ref)
        r.add_post("/pages/{name}/refs/{ref}/fill", self._handle_fill_ref)
        # Native passthroughs
        r.add_post("/pages/{name}/goto", self._handle_goto)
        r.add_post("/pages/{name}/screenshot", self._handle_screenshot)
        return app

    # ── Handlers ──

    async def _handle_root(self, request: web.Request) -> web.Response:
        return web.json_response({"wsEndpoint": self.ws_endpoint})

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({
            "status": "ok",
            "pages": len(self.registry),
            "uptime_s": round(time.monotonic() - self._started_at, 1),
        })

    async def _handle_list_pages(self, request: web.Request) -> web.Response:
        return web.json_response({"pages": sorted(self.registry.names())})

    async def _handle_get_or_create_page(self, request: web.Request) -> web.Response:
        body = await _json_body(request)
        name = validate_name(body.get("name"))
        entry = await self.registry.resolve(name)
        info = entry.info()
        return web.json_response({**info.to_dict(), "wsEndpoint": self.ws_endpoint})

    async def _handle_close_page(self, request: web.Request) -> web.Response:
        await self.registry.close(request.match_info["name"])
        return web.json_response({"success": True})

    async def _handle_snapshot(self, request: web.Request) -> web.Response:
        entry = self.registry.get(request.match_info["name"])
        max_tokens = _optional_int(request.query.get("max_tokens"), "max_tokens")
        snapshot = await self.indexer.capture(entry, max_tokens=max_tokens)
        return web.json_response(snapshot.to_dict())

    async def _handle_resolve_ref(self, request: web.Request) -> web.Response:
        entry = self.registry.get(request.match_info["name"])
        target = self.indexer.resolve(entry, request.match_info["ref"])
        return web.json_response(target.to_dict())

    async def _handle_click_ref(self, request: web.Request) -> web.Response:
        entry = self.registry.get(request.match_info["name"])
        element = await self.indexer.element(entry, request.match_info["ref"])
        try:
            await element.click()
        finally:
            await element.dispose()
        return web.json_response({"success": True, "url": entry.page.url})

    async def _handle_fill_ref(self, request: web.Request) -> web.Response:
        entry = self.registry.get(request.match_info["name"])
        body = await _json_body(request)
        value = body.get("value")
        if not isinstance(value, str):
            raise InvalidRequestError("'value' must be a string")
        element = await self.indexer.element(entry, request.match_info["ref"])
        try:
            await element.fill(value)
        finally:
            await element.dispose()
        return web.json_response({"success": True})

    async def _handle_goto(self, request: web.Request) -> web.Response:
        entry = self.registry.get(request.match_info["name"])
        body = await _json_body(request)
        url = body.get("url")
        if not isinstance(url, str) or not url:
            raise InvalidRequestError("'url' must be a non-empty string")
        wait_until = body.get("wait_until", "load")
        if wait_until not in _WAIT_UNTIL:
            raise InvalidRequestError(f"'wait_until' must be one of {sorted(_WAIT_UNTIL)}")
        response = await entry.page.goto(url, wait_until=wait_until)
        return web.json_response({
            "url": entry.page.url,
            "status": response.status if response is not None else None,
        })

    async def _handle_screenshot(self, request: web.Request) -> web.Response:
        entry = self.registry.get(request.match_info["name"])
        body = await _json_body(request)
        path = body.get("path")
        if not isinstance(path, str) or not path:
            raise InvalidRequestError("'path' must be a non-empty string")
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        await entry.page.screenshot(path=path, full_page=bool(body.get("full_page", False)))
        return web.json_response({"path": path})


# ── Middleware ──


@web.middleware
async def _request_logging_middleware(request: web.Request, handler) -> web.StreamResponse:
    start = time.monotonic()
    try:
        response = await handler(request)
    except asyncio.CancelledError:
        logger.info("HTTP %s %s cancelled (client went away)", request.method, request.path_qs)
        raise
    elapsed_ms = (time.monotonic() - start) * 1000
    logger.info(
        "HTTP %s %s status=%s duration_ms=%.1f",
        request.method, request.path_qs, getattr(response, "status", "?"), elapsed_ms,
    )
    return response


@web.middleware
async def _error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Map the error taxonomy onto JSON responses; nothing is retried or defaulted."""
    try:
        return await handler(request)
    except DevBrowserError as exc:
        return web.json_response(exc.to_dict(), status=exc.status)
    except PlaywrightError as exc:
        logger.warning("browser error on %s %s: %s", request.method, request.path, exc.message)
        err = BrowserError(exc.message)
        return web.json_response(err.to_dict(), status=err.status)


# ── Helpers ──


async def _json_body(request: web.Request) -> dict[str, Any]:
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except json.JSONDecodeError as exc:
        raise InvalidRequestError(f"Request body is not valid JSON: {exc}") from exc
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object")
    return body


def _optional_int(raw: str | None, field: str) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidRequestError(f"'{field}' must be an integer") from exc
    if value <= 0:
        raise InvalidRequestError(f"'{field}' must be positive")
    return value


async def fetch_ws_endpoint(cdp_port: int, timeout: float = 10.0) -> str:
    """Read the browser websocket URL from Chromium's /json/version endpoint."""
    url = f"http://127.0.0.1:{cdp_port}/json/version"
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
        async with session.get(url) as resp:
            resp.raise_for_status()
            payload = await resp.json(content_type=None)
    return payload["webSocketDebuggerUrl"]
