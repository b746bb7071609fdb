"""HTTP fetching and validation of YouTube channel pages.

Pages are requested with browser-like headers and a bounded timeout. A
response is only accepted once it looks like a real channel page; error
pages that come back with HTTP 200 are rejected by title and body markers.
"""

from __future__ import annotations

from collections.abc import Sequence

import httpx
from bs4 import BeautifulSoup

from ytposts.constants import (
    DEFAULT_USER_AGENT,
    FALLBACK_TIMEOUT_SECONDS,
    PAGE_TIMEOUT_SECONDS,
)
from ytposts.errors import NetworkError, PageValidationError, RateLimitedError
from ytposts.logging import get_logger
from ytposts.youtube.models import ChannelInfo, FetchResult, RawPage
from ytposts.youtube.urls import channel_home_url

log = get_logger("ytposts.youtube.fetcher")

# Markers of a missing channel or page
INVALID_TITLE_MARKERS = ("404", "Not Found")
UNAVAILABLE_BODY_MARKERS = ("This page isn't available", "Channel not found")

UNKNOWN_CHANNEL_NAME = "Unknown Channel"


def validate_page(page: RawPage) -> None:
    """Reject pages that describe a missing or unavailable channel.

    Raises:
        PageValidationError: If the page is not a usable channel page.
    """
    title = page.title
    if not title:
        raise PageValidationError("Page has an empty title", url=page.url)
    for marker in INVALID_TITLE_MARKERS:
        if marker in title:
            raise PageValidationError(f"Invalid page title: {title!r}", url=page.url)
    for marker in UNAVAILABLE_BODY_MARKERS:
        if marker in page.html:
            raise PageValidationError(f"Channel unavailable: {marker!r}", url=page.url)


class PageFetcher:
    """Fetches channel pages, one candidate URL at a time."""

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = PAGE_TIMEOUT_SECONDS,
        fallback_timeout: float = FALLBACK_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the fetcher.

        Args:
            user_agent: Browser user agent sent with every request.
            timeout: Timeout in seconds for community page requests.
            fallback_timeout: Timeout in seconds for the channel main page.
        """
        self._user_agent = user_agent
        self._timeout = timeout
        self._fallback_timeout = fallback_timeout

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": self._user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
            "Upgrade-Insecure-Requests": "1",
        }

    async def _get(self, url: str, *, timeout: float) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=timeout,
            headers=self._headers(),
            follow_redirects=True,
        ) as client:
            try:
                response = await client.get(url)
            except httpx.TimeoutException as exc:
                raise NetworkError(f"Request timed out: {exc}", url=url) from exc
            except httpx.RequestError as exc:
                raise NetworkError(f"Request failed: {exc}", url=url) from exc

        if response.status_code == 429:
            raise RateLimitedError("Rate limited by YouTube", url=url, status_code=429)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NetworkError(
                f"HTTP {response.status_code}", url=url, status_code=response.status_code
            ) from exc
        return response

    async def fetch_page(self, url: str) -> RawPage:
        """Fetch and validate a single page.

        Raises:
            RateLimitedError: On HTTP 429.
            NetworkError: On timeouts, connection failures and non-2xx codes.
            PageValidationError: If the page is an error or unavailable page.
        """
        response = await self._get(url, timeout=self._timeout)
        html = response.text
        page = RawPage(
            url=url,
            status_code=response.status_code,
            html=html,
            document=BeautifulSoup(html, "html.parser"),
        )
        validate_page(page)
        return page

    async def fetch(self, candidates: Sequence[str]) -> FetchResult:
        """Return the first candidate that yields a valid page.

        Each URL is tried once, in order. A rate-limited response stops the
        walk immediately.
        """
        result = FetchResult(success=False)
        for url in candidates:
            result.tried_urls.append(url)
            log.debug("trying_candidate_url", url=url)
            try:
                page = await self.fetch_page(url)
            except RateLimitedError as exc:
                log.warning("candidate_rate_limited", url=url)
                result.last_error = str(exc)
                result.rate_limited = True
                return result
            except PageValidationError as exc:
                log.info("candidate_rejected", url=url, reason=str(exc))
                result.last_error = str(exc)
                continue
            except NetworkError as exc:
                log.info("candidate_failed", url=url, error=str(exc))
                result.last_error = str(exc)
                continue

            log.debug("candidate_accepted", url=url, title=page.title)
            result.success = True
            result.page = page
            return result

        return result

    async def fetch_channel_info(self, handle: str) -> ChannelInfo:
        """Recover channel identity from the channel main page.

        Raises:
            NetworkError: If the main page cannot be fetched.
        """
        url = channel_home_url(handle)
        response = await self._get(url, timeout=self._fallback_timeout)
        document = BeautifulSoup(response.text, "html.parser")

        name = None
        for attrs in ({"property": "og:title"}, {"name": "title"}):
            tag = document.find("meta", attrs=attrs)
            if tag and tag.get("content"):
                name = str(tag["content"])
                break

        avatar = document.find("meta", attrs={"property": "og:image"})
        return ChannelInfo(
            name=name or UNKNOWN_CHANNEL_NAME,
            handle=handle,
            avatar_url=str(avatar["content"]) if avatar and avatar.get("content") else None,
        )
