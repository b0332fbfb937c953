"""Error taxonomy shared by the core and adapters."""

from __future__ import annotations

from typing import Optional


class UpstreamError(Exception):
    """Base class for failures talking to an upstream data source."""


class TransientUpstreamFailure(UpstreamError):
    """Raised when an upstream call keeps failing after the retry budget."""

    def __init__(self, url: str, last_error: Optional[BaseException]) -> None:
        super().__init__(f"Upstream request to {url} failed: {last_error!r}")
        self.url = url
        self.last_error = last_error


class MalformedUpstreamResponse(UpstreamError):
    """Raised when an upstream payload does not have the expected shape."""

    def __init__(self, source: str, detail: str) -> None:
        super().__init__(f"Malformed response from {source}: {detail}")
        self.source = source
        self.detail = detail


class NotifyFailure(Exception):
    """Raised by notifier adapters when a message could not be delivered."""


class AuthFailure(Exception):
    """Raised when an inbound webhook does not carry the shared secret."""
