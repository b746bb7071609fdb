"""Exceptions raised along the fetch -> extract -> detect pipeline.

Every error here is recoverable at the sweep level: a failing channel is
logged and the sweep moves on to the next one.
"""


class YouTubeFetchError(Exception):
    """Base class for failures while fetching a community page."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class NetworkError(YouTubeFetchError):
    """Timeout, DNS/connection failure or a non-2xx response."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, url=url)
        self.status_code = status_code


class RateLimitedError(NetworkError):
    """YouTube answered 429; the candidate cascade stops here."""


class PageValidationError(YouTubeFetchError):
    """The page was fetched but describes a missing or invalid channel."""


class StoreError(Exception):
    """A persistence operation failed (never raised for duplicate posts)."""


class ChannelCheckError(Exception):
    """One channel could not be checked during a sweep."""

    def __init__(self, channel_id: str, stage: str, message: str) -> None:
        super().__init__(message)
        self.channel_id = channel_id
        self.stage = stage
