"""Shared fixtures: canned ytInitialData trees, pages and a mock asyncpg pool."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from youtube_data import (
    build_html,
    build_initial_data,
    build_renderer,
    build_section_list,
    build_tab,
    build_thread,
)


@pytest.fixture
def now():
    """A deterministic UTC timestamp for tests."""
    return datetime(2026, 2, 11, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def community_posts():
    """Three post renderers, most recent first."""
    return [
        build_renderer("UgkxNewest", "Newest post", time_text="1 hour ago"),
        build_renderer("UgkxMiddle", "Middle post", time_text="3 days ago"),
        build_renderer("UgkxOldest", "Oldest post", time_text="2 weeks ago"),
    ]


@pytest.fixture
def community_data(community_posts):
    """ytInitialData with the posts under a "Community" tab."""
    return build_initial_data(
        [
            build_tab("Home"),
            build_tab(
                "Community",
                build_section_list([build_thread(post) for post in community_posts]),
            ),
        ],
        metadata={
            "title": "Test Channel",
            "avatar": {
                "thumbnails": [
                    {"url": "https://yt3.example/avatar-88", "width": 88, "height": 88},
                    {"url": "https://yt3.example/avatar-176", "width": 176, "height": 176},
                ]
            },
        },
    )


@pytest.fixture
def community_html(community_data):
    """A valid community page embedding ``community_data``."""
    return build_html(community_data)


@pytest.fixture
def mock_pool():
    """Create a mock asyncpg pool that yields an async connection context."""
    pool = MagicMock()
    conn = AsyncMock()
    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=conn)
    ctx.__aexit__ = AsyncMock(return_value=False)
    pool.acquire.return_value = ctx
    return pool, conn


class FakePostsConnection:
    """Connection double that keeps ``youtube_posts`` rows in memory.

    Answers the post queries PostStorage issues with the same semantics as
    the SQL: upserts insert or bump ``last_seen_at``, and the latest-post
    query orders by ``last_seen_at``.
    """

    def __init__(self) -> None:
        self.rows: dict[str, dict] = {}
        self._clock = 0

    async def execute(self, query, *args):
        return "CREATE TABLE"

    async def fetchrow(self, query, *args):
        if "INSERT INTO youtube_posts" in query:
            return self._upsert(*args)
        if "ORDER BY last_seen_at DESC" in query:
            (channel_id,) = args
            rows = [row for row in self.rows.values() if row["youtube_channel_id"] == channel_id]
            if not rows:
                return None
            return max(rows, key=lambda row: (row["last_seen_at"], row["created_at"]))
        if "COUNT(*)" in query:
            return {"total": len(self.rows)}
        raise AssertionError(f"unexpected query: {query}")

    def _upsert(self, post_id, channel_id, content, published_at):
        self._clock += 1
        row = self.rows.get(post_id)
        if row is not None:
            row["last_seen_at"] = self._clock
            return {"inserted": False}
        self.rows[post_id] = {
            "post_id": post_id,
            "youtube_channel_id": channel_id,
            "content": content,
            "published_at": published_at,
            "created_at": self._clock,
            "last_seen_at": self._clock,
        }
        return {"inserted": True}


@pytest.fixture
def posts_table_pool():
    """A mock asyncpg pool backed by a :class:`FakePostsConnection`."""
    conn = FakePostsConnection()
    pool = MagicMock()
    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=conn)
    ctx.__aexit__ = AsyncMock(return_value=False)
    pool.acquire.return_value = ctx
    return pool, conn
