from devbrowser.client.client import DevBrowserClient, connect, wait_for_page_load
from devbrowser.core.config import ServerConfig
from devbrowser.core.errors import (
    BrowserError,
    DevBrowserError,
    InvalidRequestError,
    PageNotFoundError,
    RefNotFoundError,
    ServerUnavailableError,
    StaleRefError,
)
from devbrowser.core.registry import PageRegistry
from devbrowser.core.types import (
    PageEntry,
    PageInfo,
    RefIndex,
    RefTarget,
    Snapshot,
    StateNode,
)
from devbrowser.server.app import DevBrowserServer
from devbrowser.snapshot.indexer import SnapshotIndexer

__all__ = [
    "DevBrowserClient",
    "DevBrowserServer",
    "PageRegistry",
    "ServerConfig",
    "SnapshotIndexer",
    "connect",
    "wait_for_page_load",
    # Types
    "PageEntry",
    "PageInfo",
    "RefIndex",
    "RefTarget",
    "Snapshot",
    "StateNode",
    # Errors
    "BrowserError",
    "DevBrowserError",
    "InvalidRequestError",
    "PageNotFoundError",
    "RefNotFoundError",
    "ServerUnavailableError",
    "StaleRefError",
]
