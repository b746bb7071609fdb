"""Channel posts service: candidate cascade plus degraded fallback.

Typical flow::

    service = ChannelPostsService(PageFetcher())
    result = await service.fetch_channel_posts("@SomeChannel")
    if result.posts:
        latest = result.posts[0]

The service never raises: every failure ends up in the returned
:class:`ExtractionResult`.
"""

from __future__ import annotations

from datetime import datetime

from ytposts.errors import NetworkError
from ytposts.logging import get_logger
from ytposts.youtube.extractor import extract_posts
from ytposts.youtube.fetcher import PageFetcher
from ytposts.youtube.initial_data import extract_posts_from_markup, locate_initial_data
from ytposts.youtube.models import ExtractionResult, RawPage
from ytposts.youtube.urls import candidate_urls

log = get_logger("ytposts.youtube.service")

FALLBACK_DIAGNOSTIC = "Fallback method used - limited data available"


def extract_from_page(page: RawPage, *, now: datetime | None = None) -> ExtractionResult:
    """Run the extractor on a validated page.

    Falls back to the markup heuristic when the page has no initial data.
    """
    data = locate_initial_data(page)
    if data is None:
        return extract_posts_from_markup(page, now=now)
    result = extract_posts(data, now=now)
    result.source_url = page.url
    return result


class ChannelPostsService:
    """Fetches and extracts the community posts of a channel."""

    def __init__(self, fetcher: PageFetcher) -> None:
        self._fetcher = fetcher

    async def fetch_channel_posts(self, handle: str) -> ExtractionResult:
        """Return the posts of *handle*, most recent first.

        Candidates are tried in priority order. The first page that yields
        posts wins; a valid page without posts is remembered and the
        cascade continues with the next candidate. When no page is accepted
        at all, or YouTube rate-limits us, only the channel identity is
        recovered from the main page.
        """
        candidates = list(candidate_urls(handle))
        tried: list[str] = []
        last_error: str | None = None
        empty_result: ExtractionResult | None = None
        rate_limited = False

        log.info("fetching_channel_posts", handle=handle)
        remaining = candidates
        while remaining:
            fetched = await self._fetcher.fetch(remaining)
            tried.extend(fetched.tried_urls)
            last_error = fetched.last_error or last_error
            if fetched.rate_limited:
                rate_limited = True
                break
            if not fetched.success or fetched.page is None:
                break

            result = extract_from_page(fetched.page)
            result.tried_urls = list(tried)
            if result.posts:
                log.info(
                    "channel_posts_found",
                    handle=handle,
                    url=fetched.page.url,
                    posts=len(result.posts),
                    strategy=result.strategy,
                )
                return result

            log.info("no_posts_on_candidate", handle=handle, url=fetched.page.url)
            if empty_result is None:
                empty_result = result
            remaining = remaining[len(fetched.tried_urls) :]

        if empty_result is not None and not rate_limited:
            empty_result.tried_urls = list(tried)
            return empty_result

        log.info(
            "using_fallback",
            handle=handle,
            tried_urls=tried,
            rate_limited=rate_limited,
            last_error=last_error,
        )
        return await self._fallback(handle, tried, last_error)

    async def _fallback(
        self,
        handle: str,
        tried: list[str],
        last_error: str | None,
    ) -> ExtractionResult:
        try:
            channel = await self._fetcher.fetch_channel_info(handle)
        except NetworkError as exc:
            log.warning("fallback_failed", handle=handle, error=str(exc))
            return ExtractionResult(
                success=False,
                error=str(exc),
                diagnostic=last_error,
                tried_urls=tried,
            )

        return ExtractionResult(
            success=True,
            channel=channel,
            diagnostic=FALLBACK_DIAGNOSTIC,
            error=last_error,
            strategy="fallback",
            tried_urls=tried,
        )
