"""Session client used by automation scripts."""

from devbrowser.client.client import (
    DEFAULT_SERVER_URL,
    DevBrowserClient,
    connect,
    wait_for_page_load,
)

__all__ = ["DEFAULT_SERVER_URL", "DevBrowserClient", "connect", "wait_for_page_load"]
