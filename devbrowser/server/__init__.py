"""Session server: the HTTP control API."""

from devbrowser.server.app import DevBrowserServer, fetch_ws_endpoint

__all__ = ["DevBrowserServer", "fetch_ws_endpoint"]
