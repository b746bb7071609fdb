"""Data models for fetched pages and extracted community posts.

All models are plain dataclasses with ``to_dict`` for logging and
serialisation. Pages and extraction results live for one detection cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ytposts.youtube.urls import post_url

if TYPE_CHECKING:
    from bs4 import BeautifulSoup


@dataclass(frozen=True)
class PostImage:
    """An image attached to a post (largest thumbnail available)."""

    url: str
    width: int | None = None
    height: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "width": self.width, "height": self.height}


@dataclass(eq=False)
class Post:
    """A community post.

    ``id`` is the only identity key: the same post can be re-rendered with
    slightly different content, so equality and hashing ignore every other
    field.
    """

    id: str
    content: str
    published_at: datetime
    author: str | None = None
    published_time_text: str | None = None
    images: list[PostImage] = field(default_factory=list)

    @property
    def url(self) -> str:
        """Canonical permalink."""
        return post_url(self.id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Post):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "author": self.author,
            "content": self.content,
            "published_time_text": self.published_time_text,
            "published_at": self.published_at.isoformat(),
            "images": [image.to_dict() for image in self.images],
            "url": self.url,
        }


@dataclass
class ChannelInfo:
    """Channel identity recovered from a page."""

    name: str | None = None
    handle: str | None = None
    avatar_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "handle": self.handle, "avatar_url": self.avatar_url}


@dataclass
class RawPage:
    """A fetched and validated HTML page."""

    url: str
    status_code: int
    html: str
    document: BeautifulSoup

    @property
    def title(self) -> str:
        tag = self.document.title
        return tag.get_text(strip=True) if tag else ""


@dataclass
class FetchResult:
    """Outcome of walking a list of candidate URLs."""

    success: bool
    page: RawPage | None = None
    tried_urls: list[str] = field(default_factory=list)
    last_error: str | None = None
    rate_limited: bool = False


@dataclass
class ExtractionResult:
    """Posts extracted from one channel, index 0 being the most recent.

    ``success=True`` with no posts is a valid outcome (the channel has no
    posts, or the page shape was not recognised) and differs from
    ``success=False`` (nothing usable could be fetched).
    """

    success: bool
    posts: list[Post] = field(default_factory=list)
    diagnostic: str | None = None
    error: str | None = None
    channel: ChannelInfo | None = None
    strategy: str | None = None
    source_url: str | None = None
    tried_urls: list[str] = field(default_factory=list)

    @property
    def latest(self) -> Post | None:
        return self.posts[0] if self.posts else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "posts": [post.to_dict() for post in self.posts],
            "diagnostic": self.diagnostic,
            "error": self.error,
            "channel": self.channel.to_dict() if self.channel else None,
            "strategy": self.strategy,
            "source_url": self.source_url,
            "tried_urls": list(self.tried_urls),
        }
