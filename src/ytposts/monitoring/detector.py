"""Change detection for the most recent post of a channel."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from ytposts.errors import StoreError
from ytposts.logging import get_logger
from ytposts.monitoring.models import Detection

if TYPE_CHECKING:
    from ytposts.storage.posts import UpsertOutcome, WatchRecord
    from ytposts.youtube.models import ExtractionResult, Post

log = get_logger("ytposts.monitoring.detector")


class PostStore(Protocol):
    """Read/write contract the detector and monitor need from storage."""

    async def get_latest_post(self, channel_id: str) -> Post | None: ...

    async def upsert_post(
        self,
        channel_id: str,
        post_id: str,
        content: str,
        published_at: datetime,
    ) -> UpsertOutcome: ...

    async def get_watchers(self, channel_id: str) -> list[WatchRecord]: ...

    async def list_watches(self, guild_id: int | None = None) -> list[WatchRecord]: ...


class ChangeDetector:
    """Decides whether a channel's top post is new.

    A post is new when the channel has no stored post yet (unless
    ``notify_on_first_observation`` is off) or when its id differs from the
    stored one. The top post is upserted on every call either way.
    """

    def __init__(self, store: PostStore, *, notify_on_first_observation: bool = True) -> None:
        self._store = store
        self._notify_on_first_observation = notify_on_first_observation

    async def detect(self, channel_id: str, result: ExtractionResult) -> Detection | None:
        """Classify the most recent post of *result*.

        Returns ``None`` when there are no posts.

        Raises:
            StoreError: If the stored state cannot be read.
        """
        latest = result.latest
        if latest is None:
            return None

        stored = await self._store.get_latest_post(channel_id)
        first_observation = stored is None
        if stored is None:
            is_new = self._notify_on_first_observation
            log.info(
                "first_observation",
                channel_id=channel_id,
                post_id=latest.id,
                notify=is_new,
            )
        else:
            is_new = stored.id != latest.id
            if is_new:
                log.info(
                    "new_post_detected",
                    channel_id=channel_id,
                    post_id=latest.id,
                    previous_post_id=stored.id,
                )

        detection = Detection(
            channel_id=channel_id,
            post=latest,
            is_new=is_new,
            first_observation=first_observation,
        )

        try:
            detection.upsert = await self._store.upsert_post(
                channel_id,
                latest.id,
                latest.content,
                latest.published_at,
            )
        except StoreError as exc:
            log.error("post_upsert_failed", channel_id=channel_id, post_id=latest.id, error=str(exc))
        else:
            log.debug(
                "post_upserted",
                channel_id=channel_id,
                post_id=latest.id,
                outcome=detection.upsert.value,
            )

        return detection
