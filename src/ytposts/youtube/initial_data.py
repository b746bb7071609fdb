"""Location of the embedded ``ytInitialData`` render state.

YouTube serialises the state of a channel page into an inline script. The
assignment has been written in a few different ways over time; each form is
tried in turn and accepted only if the object after it decodes as JSON.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any

from ytposts.logging import get_logger
from ytposts.youtube.models import ExtractionResult, Post, RawPage
from ytposts.youtube.timeparse import normalize_published_time

log = get_logger("ytposts.youtube.initial_data")

INITIAL_DATA_MARKER = "ytInitialData"

# Assignment forms, most specific first
ASSIGNMENT_PATTERNS = (
    re.compile(r"var\s+ytInitialData\s*=\s*"),
    re.compile(r"window\[\s*[\"']ytInitialData[\"']\s*\]\s*=\s*"),
    re.compile(r"ytInitialData\s*=\s*"),
)

# Markup that may carry a post outside of the embedded data
POST_ELEMENT_SELECTOR = "[data-post-id], [data-content-id], .post-container, .community-post"
POST_ID_ATTRIBUTES = ("data-post-id", "data-content-id")

_decoder = json.JSONDecoder()


def _decode_after(script: str, pattern: re.Pattern[str]) -> dict[str, Any] | None:
    for match in pattern.finditer(script):
        start = match.end()
        if script[start : start + 1] != "{":
            continue
        try:
            data, _ = _decoder.raw_decode(script, start)
        except json.JSONDecodeError as exc:
            log.debug("initial_data_decode_failed", pattern=pattern.pattern, error=str(exc))
            continue
        if isinstance(data, dict):
            return data
    return None


def locate_initial_data(page: RawPage) -> dict[str, Any] | None:
    """Return the parsed ``ytInitialData`` tree of *page*, or ``None``."""
    scripts = page.document.find_all("script")
    for index, tag in enumerate(scripts):
        script = tag.string or tag.get_text()
        if not script or INITIAL_DATA_MARKER not in script:
            continue
        for pattern in ASSIGNMENT_PATTERNS:
            data = _decode_after(script, pattern)
            if data is not None:
                log.debug("initial_data_found", url=page.url, script_index=index)
                return data

    log.info("initial_data_not_found", url=page.url, scripts=len(scripts))
    return None


def extract_posts_from_markup(page: RawPage, *, now: datetime | None = None) -> ExtractionResult:
    """Heuristic pass over the page markup when no initial data exists.

    Only elements that carry an explicit post id become posts; anything
    else is counted for the diagnostic and ignored. Usually this finds
    nothing, which is reported as an empty success.
    """
    elements = page.document.select(POST_ELEMENT_SELECTOR)
    posts: list[Post] = []
    seen: set[str] = set()

    for element in elements:
        post_id = next(
            (str(element[attr]) for attr in POST_ID_ATTRIBUTES if element.get(attr)),
            None,
        )
        if not post_id or post_id in seen:
            continue
        seen.add(post_id)
        posts.append(
            Post(
                id=post_id,
                content=element.get_text(" ", strip=True),
                published_at=normalize_published_time(None, now=now),
            )
        )

    title = page.title
    lowered = title.lower()
    if "community" not in lowered and "posts" not in lowered:
        log.debug("page_not_a_posts_page", url=page.url, title=title)

    log.info(
        "markup_extraction_attempted",
        url=page.url,
        elements=len(elements),
        posts=len(posts),
    )
    return ExtractionResult(
        success=True,
        posts=posts,
        diagnostic=(
            f"HTML parsing attempted: {len(elements)} post-like elements, "
            f"{len(posts)} posts extracted"
        ),
        strategy="markup",
        source_url=page.url,
    )
