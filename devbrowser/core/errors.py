"""Exception taxonomy shared by the server, the registry and the client."""

from __future__ import annotations

from typing import Any


class DevBrowserError(Exception):
    """Base class. ``code`` and ``status`` are what the HTTP boundary reports."""

    code = "error"
    status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code}


class PageNotFoundError(DevBrowserError):
    code = "page_not_found"
    status = 404

    def __init__(self, name: str, message: str | None = None) -> None:
        super().__init__(message or f"Page not found: {name!r}")
        self.name = name

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "name": self.name}


class RefNotFoundError(DevBrowserError):
    """The ref was never issued for the page's current capture."""

    code = "ref_not_found"
    status = 404

    def __init__(self, ref: str, message: str | None = None) -> None:
        super().__init__(message or f"Ref not found: {ref!r}")
        self.ref = ref

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "ref": self.ref}


class StaleRefError(RefNotFoundError):
    """The ref existed once but its capture was superseded or its node detached."""

    code = "stale_ref"

    def __init__(self, ref: str, message: str | None = None) -> None:
        super().__init__(
            ref,
            message or f"Ref {ref!r} is stale; take a new snapshot and use its refs",
        )


class InvalidRequestError(DevBrowserError):
    code = "invalid_request"
    status = 400


class BrowserError(DevBrowserError):
    """A failure reported by the browser engine (navigation, evaluation, crashed tab)."""

    code = "browser_error"
    status = 502


class ServerUnavailableError(DevBrowserError):
    """The client could not reach the server."""

    code = "server_unavailable"
    status = 503


def error_from_payload(payload: dict[str, Any], status: int) -> DevBrowserError:
    """Rebuild the server-side exception from an error response body."""
    code = str(payload.get("code", ""))
    message = str(payload.get("error") or f"HTTP {status}")
    if code == PageNotFoundError.code:
        return PageNotFoundError(str(payload.get("name", "")), message)
    if code == StaleRefError.code:
        return StaleRefError(str(payload.get("ref", "")), message)
    if code == RefNotFoundError.code:
        return RefNotFoundError(str(payload.get("ref", "")), message)
    if code == InvalidRequestError.code:
        return InvalidRequestError(message)
    if code == BrowserError.code:
        return BrowserError(message)
    err = DevBrowserError(message)
    err.status = status
    return err
