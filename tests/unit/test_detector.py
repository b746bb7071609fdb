"""Unit tests for the change detector."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from ytposts.errors import StoreError
from ytposts.monitoring.detector import ChangeDetector
from ytposts.monitoring.models import Detection
from ytposts.storage.posts import PostStorage, UpsertOutcome
from ytposts.youtube.models import ExtractionResult, Post

WHEN = datetime(2026, 2, 11, 12, 0, 0, tzinfo=UTC)


class FakeStore:
    """In-memory store; the latest post is the one upserted last, duplicates included."""

    def __init__(self) -> None:
        self.posts: dict[str, dict[str, Post]] = {}
        self.latest: dict[str, Post] = {}

    async def get_latest_post(self, channel_id: str) -> Post | None:
        return self.latest.get(channel_id)

    async def upsert_post(self, channel_id, post_id, content, published_at) -> UpsertOutcome:
        channel_posts = self.posts.setdefault(channel_id, {})
        if post_id in channel_posts:
            self.latest[channel_id] = channel_posts[post_id]
            return UpsertOutcome.ALREADY_EXISTS
        post = Post(id=post_id, content=content, published_at=published_at)
        channel_posts[post_id] = post
        self.latest[channel_id] = post
        return UpsertOutcome.STORED

    async def get_watchers(self, channel_id):
        return []

    async def list_watches(self, guild_id=None):
        return []


def _result(*post_ids: str) -> ExtractionResult:
    return ExtractionResult(
        success=True,
        posts=[Post(id=post_id, content=f"content {post_id}", published_at=WHEN) for post_id in post_ids],
    )


@pytest.fixture
def store():
    return FakeStore()


class TestChangeDetector:
    """Tests for ChangeDetector.detect."""

    @pytest.mark.asyncio
    async def test_sequence_new_then_same_then_new(self, store):
        """P1 is new, P1 again is not, P2 on top is new again."""
        detector = ChangeDetector(store)

        first = await detector.detect("UC1", _result("P1"))
        second = await detector.detect("UC1", _result("P1"))
        third = await detector.detect("UC1", _result("P2", "P1"))

        assert (first.is_new, first.first_observation, first.upsert) == (
            True,
            True,
            UpsertOutcome.STORED,
        )
        assert (second.is_new, second.upsert) == (False, UpsertOutcome.ALREADY_EXISTS)
        assert third.is_new is True
        assert third.post.id == "P2"
        assert third.first_observation is False
        assert store.latest["UC1"].id == "P2"

    @pytest.mark.asyncio
    async def test_only_the_top_post_is_compared(self, store):
        """Older posts further down the list never trigger detection."""
        detector = ChangeDetector(store)
        await detector.detect("UC1", _result("P2"))

        detection = await detector.detect("UC1", _result("P2", "P0", "P-1"))

        assert detection.is_new is False

    @pytest.mark.asyncio
    async def test_first_observation_silent_when_disabled(self, store):
        detector = ChangeDetector(store, notify_on_first_observation=False)

        detection = await detector.detect("UC1", _result("P1"))

        assert detection.is_new is False
        assert detection.first_observation is True
        assert store.latest["UC1"].id == "P1"

    @pytest.mark.asyncio
    async def test_channels_are_independent(self, store):
        detector = ChangeDetector(store)
        await detector.detect("UC1", _result("P1"))

        detection = await detector.detect("UC2", _result("P1"))

        assert detection.first_observation is True

    @pytest.mark.asyncio
    async def test_no_posts_returns_none(self, store):
        detector = ChangeDetector(store)
        assert await detector.detect("UC1", ExtractionResult(success=True)) is None

    @pytest.mark.asyncio
    async def test_upsert_failure_keeps_decision(self):
        """A failing upsert is recorded but the post is still reported as new."""
        store = AsyncMock()
        store.get_latest_post.return_value = Post(id="P1", content="", published_at=WHEN)
        store.upsert_post.side_effect = StoreError("disk full")
        detector = ChangeDetector(store)

        detection = await detector.detect("UC1", _result("P2"))

        assert detection.is_new is True
        assert detection.upsert is None

    @pytest.mark.asyncio
    async def test_read_failure_propagates(self):
        store = AsyncMock()
        store.get_latest_post.side_effect = StoreError("down")
        detector = ChangeDetector(store)

        with pytest.raises(StoreError):
            await detector.detect("UC1", _result("P1"))

        store.upsert_post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_older_labelled_post_is_not_resent(self, posts_table_pool):
        """A new post with an older publish time than the stored one is reported once."""
        pool, _ = posts_table_pool
        storage = PostStorage()
        await storage.initialize(pool)
        detector = ChangeDetector(storage)
        undated = ExtractionResult(
            success=True, posts=[Post(id="P1", content="markup", published_at=WHEN)]
        )
        labelled = ExtractionResult(
            success=True,
            posts=[Post(id="P2", content="real", published_at=WHEN - timedelta(hours=1))],
        )

        await detector.detect("UC1", undated)
        sweeps = [await detector.detect("UC1", labelled) for _ in range(3)]

        assert [detection.is_new for detection in sweeps] == [True, False, False]
        assert (await storage.get_latest_post("UC1")).id == "P2"

    @pytest.mark.asyncio
    async def test_post_back_on_top_after_deletion_is_reported_once(self, store):
        detector = ChangeDetector(store)
        await detector.detect("UC1", _result("P1"))
        await detector.detect("UC1", _result("P2", "P1"))

        back = await detector.detect("UC1", _result("P1"))
        again = await detector.detect("UC1", _result("P1"))

        assert (back.is_new, again.is_new) == (True, False)

    def test_detection_to_dict(self):
        detection = Detection("UC1", Post(id="P1", content="", published_at=WHEN), True)
        assert detection.to_dict() == {
            "channel_id": "UC1",
            "post_id": "P1",
            "is_new": True,
            "first_observation": False,
            "upsert": None,
        }
