"""Data models exchanged between the detector, the monitor and notifiers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from ytposts.constants import MAX_POST_DESCRIPTION_LENGTH
from ytposts.utils import truncate_text

if TYPE_CHECKING:
    from ytposts.storage.posts import UpsertOutcome, WatchRecord
    from ytposts.youtube.models import Post, PostImage

NO_TEXT_CONTENT = "*No text content*"


@dataclass
class Detection:
    """Outcome of comparing a channel's top post with the stored state."""

    channel_id: str
    post: Post
    is_new: bool
    first_observation: bool = False
    upsert: UpsertOutcome | None = None  # None when the upsert failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "post_id": self.post.id,
            "is_new": self.is_new,
            "first_observation": self.first_observation,
            "upsert": self.upsert.value if self.upsert else None,
        }


@dataclass
class PostNotification:
    """A new post, addressed to every watcher of its channel."""

    channel_id: str
    channel_display_name: str
    channel_avatar_url: str | None
    post: Post
    watchers: list[WatchRecord] = field(default_factory=list)
    channel_url: str | None = None

    @property
    def description(self) -> str:
        """Post content cut to the display limit."""
        if not self.post.content:
            return NO_TEXT_CONTENT
        return truncate_text(self.post.content, MAX_POST_DESCRIPTION_LENGTH)

    @property
    def primary_image(self) -> PostImage | None:
        return self.post.images[0] if self.post.images else None

    def to_dict(self) -> dict[str, Any]:
        image = self.primary_image
        return {
            "channel_id": self.channel_id,
            "channel_display_name": self.channel_display_name,
            "channel_avatar_url": self.channel_avatar_url,
            "channel_url": self.channel_url,
            "post": self.post.to_dict(),
            "description": self.description,
            "primary_image": image.to_dict() if image else None,
            "watchers": [watch.to_dict() for watch in self.watchers],
        }


@dataclass
class SweepReport:
    """Summary of one detection sweep."""

    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    channels_checked: int = 0
    new_posts: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "channels_checked": self.channels_checked,
            "new_posts": list(self.new_posts),
            "failures": dict(self.failures),
        }


class Notifier(Protocol):
    """Delivers new-post notifications to their watchers."""

    async def notify(self, event: PostNotification) -> int:
        """Deliver *event*; returns the number of successful deliveries."""
        ...
