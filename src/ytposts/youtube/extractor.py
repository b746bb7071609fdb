"""Extraction of community posts from the ``ytInitialData`` tree.

The tree differs between channel types and changes without notice. The
posts container is found through an ordered table of lookup strategies;
the first one that yields a container wins. Items inside the container are
parsed one by one and a malformed item never aborts the others.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import datetime
from typing import Any

from ytposts.logging import get_logger
from ytposts.youtube.models import ChannelInfo, ExtractionResult, Post, PostImage
from ytposts.youtube.timeparse import normalize_published_time

log = get_logger("ytposts.youtube.extractor")

ContainerLocator = Callable[[dict[str, Any]], list[Any] | None]


def dig(node: Any, *path: str | int) -> Any:
    """Walk *path* through nested dicts/lists, returning ``None`` on any miss."""
    for key in path:
        if isinstance(key, int):
            if not isinstance(node, list) or not -len(node) <= key < len(node):
                return None
            node = node[key]
        else:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        if node is None:
            return None
    return node


def text_of(node: Any) -> str | None:
    """Concatenate a YouTube text object (``runs`` or ``simpleText``)."""
    if not isinstance(node, dict):
        return None
    runs = node.get("runs")
    if isinstance(runs, list):
        return "".join(str(run.get("text", "")) for run in runs if isinstance(run, dict))
    simple = node.get("simpleText")
    return str(simple) if simple is not None else None


def first_run_text(node: Any) -> str | None:
    """Text of the first run, or ``simpleText``."""
    first = dig(node, "runs", 0, "text")
    if first is not None:
        return str(first)
    simple = dig(node, "simpleText")
    return str(simple) if simple is not None else None


def largest_thumbnail(thumbnails: Any) -> dict[str, Any] | None:
    """Pick the thumbnail with the largest area (last one when sizes are missing)."""
    if not isinstance(thumbnails, list):
        return None
    candidates = [thumb for thumb in thumbnails if isinstance(thumb, dict) and thumb.get("url")]
    if not candidates:
        return None
    return max(
        enumerate(candidates),
        key=lambda pair: ((pair[1].get("width") or 0) * (pair[1].get("height") or 0), pair[0]),
    )[1]


# ------------------------------------------------------------------
# Container strategies
# ------------------------------------------------------------------


def _tabs(data: dict[str, Any]) -> list[Any]:
    tabs = dig(data, "contents", "twoColumnBrowseResultsRenderer", "tabs")
    return tabs if isinstance(tabs, list) else []


def _tab_titled(data: dict[str, Any], title: str) -> dict[str, Any] | None:
    for tab in _tabs(data):
        if dig(tab, "tabRenderer", "title") == title:
            return tab  # type: ignore[no-any-return]
    return None


def _as_list(value: Any) -> list[Any] | None:
    return value if isinstance(value, list) else None


def _community_tab(data: dict[str, Any]) -> list[Any] | None:
    tab = _tab_titled(data, "Community")
    return _as_list(dig(tab, "tabRenderer", "content", "sectionListRenderer", "contents"))


def _posts_tab(data: dict[str, Any]) -> list[Any] | None:
    tab = _tab_titled(data, "Posts")
    if tab is None:
        return None
    content = dig(tab, "tabRenderer", "content")
    # An empty section list is still the posts container
    section = _as_list(dig(content, "sectionListRenderer", "contents"))
    if section is not None:
        return section
    return _as_list(dig(content, "richGridRenderer", "contents"))


def _main_content(data: dict[str, Any]) -> list[Any] | None:
    return _as_list(
        dig(data, "contents", "twoColumnBrowseResultsRenderer", "tabs", 0,
            "tabRenderer", "content", "sectionListRenderer", "contents")
    )


def _rich_grid(data: dict[str, Any]) -> list[Any] | None:
    return _as_list(
        dig(data, "contents", "twoColumnBrowseResultsRenderer", "tabs", 0,
            "tabRenderer", "content", "richGridRenderer", "contents")
    )


# Evaluated in order until one returns a container
CONTAINER_STRATEGIES: tuple[tuple[str, ContainerLocator], ...] = (
    ("community_tab", _community_tab),
    ("posts_tab", _posts_tab),
    ("main_content", _main_content),
    ("rich_grid", _rich_grid),
)


def locate_posts_container(data: dict[str, Any]) -> tuple[str, list[Any]] | None:
    """Return ``(strategy_name, contents)`` for the first matching strategy."""
    for name, locator in CONTAINER_STRATEGIES:
        contents = locator(data)
        if contents is not None:
            return name, contents
    return None


def iter_post_renderers(contents: list[Any]) -> Iterator[dict[str, Any]]:
    """Yield every ``backstagePostRenderer`` in a posts container.

    Handles section lists (``itemSectionRenderer.contents``) and rich grids
    (``richItemRenderer.content``).
    """
    for section in contents:
        items = dig(section, "itemSectionRenderer", "contents")
        if not isinstance(items, list):
            grid_item = dig(section, "richItemRenderer", "content")
            items = [grid_item] if grid_item is not None else []
        for item in items:
            renderer = dig(item, "backstagePostThreadRenderer", "post", "backstagePostRenderer")
            if renderer is None:
                renderer = dig(item, "backstagePostRenderer")
            if isinstance(renderer, dict):
                yield renderer


# ------------------------------------------------------------------
# Item parsing
# ------------------------------------------------------------------


def _image_from(renderer: Any) -> PostImage | None:
    thumb = largest_thumbnail(dig(renderer, "image", "thumbnails"))
    if thumb is None:
        return None
    return PostImage(url=str(thumb["url"]), width=thumb.get("width"), height=thumb.get("height"))


def extract_images(post: dict[str, Any]) -> list[PostImage]:
    """Images attached to a post, in display order."""
    attachment = post.get("backstageAttachment")
    if not isinstance(attachment, dict):
        return []

    single = _image_from(attachment.get("backstageImageRenderer"))
    if single is not None:
        return [single]

    images: list[PostImage] = []
    for entry in dig(attachment, "postMultiImageRenderer", "images") or []:
        image = _image_from(dig(entry, "backstageImageRenderer"))
        if image is not None:
            images.append(image)
    return images


def extract_post(post: dict[str, Any], *, now: datetime | None = None) -> Post | None:
    """Build a :class:`Post` from a ``backstagePostRenderer``.

    Returns ``None`` for posts without an id.
    """
    post_id = post.get("postId")
    if not post_id:
        return None

    time_text = first_run_text(post.get("publishedTimeText"))
    return Post(
        id=str(post_id),
        author=first_run_text(post.get("authorText")),
        content=text_of(post.get("contentText")) or "",
        published_time_text=time_text,
        published_at=normalize_published_time(time_text, now=now),
        images=extract_images(post),
    )


def extract_channel_info(data: dict[str, Any]) -> ChannelInfo:
    """Channel title and avatar (metadata first, then page header)."""
    metadata = dig(data, "metadata", "channelMetadataRenderer")
    avatar_url = None
    for source in (metadata, dig(data, "header", "c4TabbedHeaderRenderer")):
        thumb = largest_thumbnail(dig(source, "avatar", "thumbnails"))
        if thumb is not None:
            avatar_url = str(thumb["url"])
            break

    title = dig(metadata, "title")
    return ChannelInfo(name=str(title) if title else None, avatar_url=avatar_url)


def extract_posts(data: dict[str, Any], *, now: datetime | None = None) -> ExtractionResult:
    """Extract posts from a parsed ``ytInitialData`` tree.

    A tree without a recognised container, or a container without posts,
    is an empty success.
    """
    channel = extract_channel_info(data)

    tab_titles = [dig(tab, "tabRenderer", "title") or "Unknown" for tab in _tabs(data)]
    log.debug("available_tabs", tabs=tab_titles)

    located = locate_posts_container(data)
    if located is None:
        log.info("posts_container_not_found", tabs=tab_titles)
        return ExtractionResult(
            success=True,
            channel=channel,
            diagnostic="No posts container found in initial data",
        )

    strategy, contents = located
    posts: list[Post] = []
    seen: set[str] = set()
    skipped = 0
    for renderer in iter_post_renderers(contents):
        try:
            post = extract_post(renderer, now=now)
        except (TypeError, ValueError, AttributeError, KeyError) as exc:
            skipped += 1
            log.warning("post_item_malformed", error=str(exc), post_id=renderer.get("postId"))
            continue
        if post is None or post.id in seen:
            continue
        seen.add(post.id)
        posts.append(post)

    log.info(
        "posts_extracted",
        strategy=strategy,
        sections=len(contents),
        posts=len(posts),
        skipped=skipped,
    )
    return ExtractionResult(
        success=True,
        posts=posts,
        channel=channel,
        strategy=strategy,
        diagnostic=None if posts else f"Posts container '{strategy}' holds no posts",
    )
