"""DevBrowserClient against a real aiohttp server backed by fake pages."""

from __future__ import annotations

from contextlib import asynccontextmanager

import pytest
from aiohttp import test_utils
from playwright.async_api import Error as PlaywrightError

from devbrowser.client.client import DevBrowserClient, connect
from devbrowser.core.errors import (
    InvalidRequestError,
    PageNotFoundError,
    RefNotFoundError,
    ServerUnavailableError,
    StaleRefError,
)
from devbrowser.core.registry import PageRegistry
from devbrowser.server.app import DevBrowserServer
from fakes import FakeBrowser, FakeContext, FakePage, form_document

WS = "ws://127.0.0.1:9223/devtools/browser/fake"


@asynccontextmanager
async def running_server():
    context = FakeContext()
    server = DevBrowserServer(registry=PageRegistry(context), ws_endpoint=WS)
    async with test_utils.TestServer(server.create_app()) as http_server:
        yield server, context, str(http_server.make_url("/"))


@asynccontextmanager
async def attached_client(url: str, context: FakeContext):
    """A client whose CDP connection sees the fake context instead of a real browser."""
    client = await connect(url)

    async def fake_browser():
        return FakeBrowser(context)

    client._ensure_browser = fake_browser
    try:
        yield client
    finally:
        await client.disconnect()


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_reads_ws_endpoint(self):
        async with running_server() as (_, _, url):
            client = await connect(url)
            try:
                assert client.ws_endpoint == WS
                assert client.server_url == url.rstrip("/")
            finally:
                await client.disconnect()

    @pytest.mark.asyncio
    async def test_unreachable_server(self):
        port = test_utils.unused_port()
        with pytest.raises(ServerUnavailableError):
            await connect(f"http://127.0.0.1:{port}")

    @pytest.mark.asyncio
    async def test_async_context_manager_disconnects(self):
        async with running_server() as (_, _, url):
            async with await connect(url) as client:
                assert await client.list() == []
            assert client._http.closed


class TestPages:
    @pytest.mark.asyncio
    async def test_page_returns_native_page_by_target_id(self):
        async with running_server() as (_, context, url):
            async with attached_client(url, context) as client:
                await client.page("first")
                page = await client.page("search")
                assert page is context.pages[1]
                again = await client.page("search")
                assert again is page
                assert context.created == 2

    @pytest.mark.asyncio
    async def test_closed_or_vanishing_tabs_are_skipped(self):
        async with running_server() as (_, context, url):
            closed = FakePage(context, "TARGET-CLOSED")
            closed.closed = True
            vanishing = FakePage(context, "TARGET-GONE")
            context.pages[:0] = [closed, vanishing]
            original = context.new_cdp_session

            async def new_cdp_session(page):
                if page is closed:
                    raise AssertionError("closed tab was inspected")
                if page is vanishing:
                    raise PlaywrightError("Target page, context or browser has been closed")
                return await original(page)

            context.new_cdp_session = new_cdp_session
            async with attached_client(url, context) as client:
                page = await client.page("search")
            assert page is context.pages[-1]
            assert page.target_id == "TARGET-1"

    @pytest.mark.asyncio
    async def test_pages_survive_disconnect(self):
        async with running_server() as (_, context, url):
            async with attached_client(url, context) as client:
                await client.page("search")
            # a new script run sees the same page
            async with attached_client(url, context) as client:
                assert await client.list() == ["search"]
                page = await client.page("search")
            assert page is context.pages[0]
            assert not page.is_closed()
            assert context.created == 1

    @pytest.mark.asyncio
    async def test_close_and_unknown_close(self):
        async with running_server() as (_, context, url):
            async with attached_client(url, context) as client:
                await client.page("a")
                await client.close("a")
                assert await client.list() == []
                with pytest.raises(PageNotFoundError) as info:
                    await client.close("a")
                assert info.value.name == "a"

    @pytest.mark.asyncio
    async def test_invalid_name_surfaces_as_invalid_request(self):
        async with running_server() as (_, context, url):
            async with attached_client(url, context) as client:
                with pytest.raises(InvalidRequestError):
                    await client.page("")

    @pytest.mark.asyncio
    async def test_names_with_spaces_are_quoted(self):
        async with running_server() as (server, context, url):
            async with attached_client(url, context) as client:
                await client.page("my page")
                assert await client.list() == ["my page"]
                await client.close("my page")
                assert "my page" not in server.registry


class TestSnapshots:
    @pytest.mark.asyncio
    async def test_snapshot_then_select_ref_in_later_run(self):
        async with running_server() as (server, context, url):
            async with attached_client(url, context) as client:
                await client.page("search")
                nodes, dom = form_document()
                server.registry.get("search").page.load(nodes, dom, title="Test Page")
                text = await client.get_ai_snapshot("search")
                assert '- textbox "Search" [ref=e1]:' in text

            # separate invocation: the ref from the earlier run still resolves
            async with attached_client(url, context) as client:
                element = await client.select_snapshot_ref("search", "e1")
                assert element is dom[4]
                await element.fill("laptops")
            dom[4].fill.assert_awaited_once_with("laptops")

    @pytest.mark.asyncio
    async def test_stale_and_unknown_refs(self):
        async with running_server() as (server, context, url):
            async with attached_client(url, context) as client:
                await client.page("search")
                nodes, dom = form_document()
                server.registry.get("search").page.load(nodes, dom)
                await client.snapshot("search")
                second = await client.snapshot("search")
                assert second["refs"][0] == "e6"

                with pytest.raises(StaleRefError) as info:
                    await client.select_snapshot_ref("search", "e1")
                assert info.value.ref == "e1"

                with pytest.raises(RefNotFoundError) as info:
                    await client.resolve_ref("search", "e99")
                assert not isinstance(info.value, StaleRefError)

    @pytest.mark.asyncio
    async def test_snapshot_of_unknown_page(self):
        async with running_server() as (_, context, url):
            async with attached_client(url, context) as client:
                with pytest.raises(PageNotFoundError):
                    await client.get_ai_snapshot("ghost")

    @pytest.mark.asyncio
    async def test_click_and_fill_by_ref(self):
        async with running_server() as (server, context, url):
            async with attached_client(url, context) as client:
                await client.page("search")
                nodes, dom = form_document()
                server.registry.get("search").page.load(nodes, dom)
                await client.snapshot("search")
                await client.fill_ref("search", "e1", "laptops")
                result = await client.click_ref("search", "@e5")
        assert result["success"] is True
        dom[4].fill.assert_awaited_once_with("laptops")
        dom[10].click.assert_awaited_once()


class TestPassthroughs:
    @pytest.mark.asyncio
    async def test_goto_and_screenshot(self, tmp_path):
        async with running_server() as (_, context, url):
            async with attached_client(url, context) as client:
                await client.page("a")
                result = await client.goto("a", "http://localhost/next")
                assert result["url"] == "http://localhost/next"
                path = await client.screenshot("a", str(tmp_path / "a.png"))
        assert (tmp_path / "a.png").exists()
        assert path == str(tmp_path / "a.png")


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self):
        async with running_server() as (_, _, url):
            client = await connect(url)
            await client.disconnect()
            await client.disconnect()
            assert isinstance(client, DevBrowserClient)
