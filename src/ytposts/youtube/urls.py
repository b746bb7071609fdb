"""URL construction for YouTube channel and post pages."""

from ytposts.constants import YOUTUBE_BASE_URL


def _bare(handle: str) -> str:
    return handle.strip().lstrip("@")


def candidate_urls(handle: str) -> tuple[str, ...]:
    """Return the community page URLs to try for *handle*, best first.

    The order is a fixed priority: handle community tab, handle posts tab,
    legacy custom-URL community tab, channel-id community tab.
    """
    name = _bare(handle)
    return (
        f"{YOUTUBE_BASE_URL}/@{name}/community",
        f"{YOUTUBE_BASE_URL}/@{name}/posts",
        f"{YOUTUBE_BASE_URL}/c/{name}/community",
        f"{YOUTUBE_BASE_URL}/channel/{name}/community",
    )


def channel_home_url(handle: str) -> str:
    """Channel main page, used to recover channel identity."""
    return f"{YOUTUBE_BASE_URL}/@{_bare(handle)}"


def post_url(post_id: str) -> str:
    """Canonical permalink of a community post."""
    return f"{YOUTUBE_BASE_URL}/post/{post_id}"
