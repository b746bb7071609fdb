"""PostgreSQL storage for watches and observed posts.

Initialise with an asyncpg.Pool, then use the async methods for reads and
writes::

    storage = PostStorage()
    await storage.initialize(pool)
    outcome = await storage.upsert_post(channel_id, post.id, post.content, post.published_at)

Duplicate posts are an expected outcome (``UpsertOutcome.ALREADY_EXISTS``);
only genuine persistence failures raise :class:`StoreError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

import asyncpg  # type: ignore[import-not-found,import-untyped]

from ytposts.errors import StoreError
from ytposts.logging import get_logger
from ytposts.youtube.models import Post

if TYPE_CHECKING:
    from collections.abc import Sequence

log = get_logger("ytposts.storage.posts")


class UpsertOutcome(Enum):
    """Result of storing a post."""

    STORED = "stored"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class WatchRecord:
    """A Discord channel receiving notifications for one YouTube channel."""

    guild_id: int
    discord_channel_id: int
    youtube_channel_id: str
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "guild_id": self.guild_id,
            "discord_channel_id": self.discord_channel_id,
            "youtube_channel_id": self.youtube_channel_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ------------------------------------------------------------------
# SQL schema
# ------------------------------------------------------------------

_SCHEMA = """
CREATE TABLE IF NOT EXISTS watched_channels (
    id                  SERIAL       PRIMARY KEY,
    guild_id            BIGINT       NOT NULL,
    discord_channel_id  BIGINT       NOT NULL,
    youtube_channel_id  TEXT         NOT NULL,
    created_at          TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
    UNIQUE (guild_id, discord_channel_id, youtube_channel_id)
);

CREATE TABLE IF NOT EXISTS youtube_posts (
    post_id             TEXT         PRIMARY KEY,
    youtube_channel_id  TEXT         NOT NULL,
    content             TEXT         NOT NULL DEFAULT '',
    published_at        TIMESTAMPTZ  NOT NULL,
    created_at          TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
    last_seen_at        TIMESTAMPTZ  NOT NULL DEFAULT clock_timestamp()
);

ALTER TABLE youtube_posts
    ADD COLUMN IF NOT EXISTS last_seen_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp();

CREATE INDEX IF NOT EXISTS idx_watched_channels_youtube
    ON watched_channels (youtube_channel_id);
CREATE INDEX IF NOT EXISTS idx_youtube_posts_channel_seen
    ON youtube_posts (youtube_channel_id, last_seen_at DESC);
"""

# A channel's latest post is the one upserted last; publish times parsed
# from relative labels are approximate and do not order posts reliably.
_UPSERT_POST = """
INSERT INTO youtube_posts (post_id, youtube_channel_id, content, published_at)
VALUES ($1, $2, $3, $4)
ON CONFLICT (post_id) DO UPDATE SET last_seen_at = clock_timestamp()
RETURNING (xmax = 0) AS inserted
"""


def _watch_from_row(row: Any) -> WatchRecord:
    return WatchRecord(
        guild_id=row["guild_id"],
        discord_channel_id=row["discord_channel_id"],
        youtube_channel_id=row["youtube_channel_id"],
        created_at=row["created_at"],
    )


def _affected_rows(status: str) -> int:
    """Row count from an asyncpg status tag such as ``INSERT 0 1``."""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class PostStorage:
    """Watches and last-seen posts, backed by PostgreSQL."""

    def __init__(self) -> None:
        self._pool: asyncpg.Pool | None = None

    async def initialize(self, pool: asyncpg.Pool) -> None:
        """Create tables and store the connection pool reference."""
        self._pool = pool
        async with pool.acquire() as conn:
            await conn.execute(_SCHEMA)
        log.info("post_storage_initialized")

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise StoreError("PostStorage used before initialize()")
        return self._pool

    async def _fetch(self, query: str, *args: Any) -> Sequence[Any]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetch(query, *args)  # type: ignore[no-any-return]
        except (asyncpg.PostgresError, OSError) as exc:
            raise StoreError(str(exc)) from exc

    async def _fetchrow(self, query: str, *args: Any) -> Any:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetchrow(query, *args)
        except (asyncpg.PostgresError, OSError) as exc:
            raise StoreError(str(exc)) from exc

    async def _execute(self, query: str, *args: Any) -> str:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.execute(query, *args)  # type: ignore[no-any-return]
        except (asyncpg.PostgresError, OSError) as exc:
            raise StoreError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    async def get_latest_post(self, channel_id: str) -> Post | None:
        """Most recently upserted post of a channel, or ``None``."""
        row = await self._fetchrow(
            """
            SELECT post_id, content, published_at
            FROM youtube_posts
            WHERE youtube_channel_id = $1
            ORDER BY last_seen_at DESC, created_at DESC
            LIMIT 1
            """,
            channel_id,
        )
        if row is None:
            return None
        return Post(
            id=row["post_id"],
            content=row["content"],
            published_at=row["published_at"],
        )

    async def upsert_post(
        self,
        channel_id: str,
        post_id: str,
        content: str,
        published_at: datetime,
    ) -> UpsertOutcome:
        """Store a post and mark it as the channel's latest.

        An existing post keeps its content and publish time; only its
        last-seen time moves forward.

        Raises:
            StoreError: If the database operation fails.
        """
        row = await self._fetchrow(_UPSERT_POST, post_id, channel_id, content, published_at)

        if row is None or not row["inserted"]:
            log.debug("post_already_stored", channel_id=channel_id, post_id=post_id)
            return UpsertOutcome.ALREADY_EXISTS

        log.info("post_stored", channel_id=channel_id, post_id=post_id)
        return UpsertOutcome.STORED

    async def count_posts(self) -> int:
        """Total number of stored posts."""
        row = await self._fetchrow("SELECT COUNT(*) AS total FROM youtube_posts")
        return int(row["total"]) if row is not None else 0

    # ------------------------------------------------------------------
    # Watches
    # ------------------------------------------------------------------

    async def get_watchers(self, channel_id: str) -> list[WatchRecord]:
        """Delivery targets watching a YouTube channel."""
        rows = await self._fetch(
            """
            SELECT guild_id, discord_channel_id, youtube_channel_id, created_at
            FROM watched_channels
            WHERE youtube_channel_id = $1
            ORDER BY created_at
            """,
            channel_id,
        )
        return [_watch_from_row(row) for row in rows]

    async def list_watches(self, guild_id: int | None = None) -> list[WatchRecord]:
        """All watches, optionally limited to one Discord guild."""
        if guild_id is None:
            rows = await self._fetch(
                """
                SELECT guild_id, discord_channel_id, youtube_channel_id, created_at
                FROM watched_channels
                ORDER BY created_at
                """
            )
        else:
            rows = await self._fetch(
                """
                SELECT guild_id, discord_channel_id, youtube_channel_id, created_at
                FROM watched_channels
                WHERE guild_id = $1
                ORDER BY created_at
                """,
                guild_id,
            )
        return [_watch_from_row(row) for row in rows]

    async def add_watch(
        self,
        guild_id: int,
        discord_channel_id: int,
        channel_id: str,
    ) -> bool:
        """Add a watch. Returns ``False`` if it already existed."""
        status = await self._execute(
            """
            INSERT INTO watched_channels (guild_id, discord_channel_id, youtube_channel_id)
            VALUES ($1, $2, $3)
            ON CONFLICT (guild_id, discord_channel_id, youtube_channel_id) DO NOTHING
            """,
            guild_id,
            discord_channel_id,
            channel_id,
        )
        added = _affected_rows(status) > 0
        log.info(
            "watch_added" if added else "watch_exists",
            guild_id=guild_id,
            discord_channel_id=discord_channel_id,
            channel_id=channel_id,
        )
        return added

    async def remove_watch(
        self,
        guild_id: int,
        discord_channel_id: int,
        channel_id: str,
    ) -> bool:
        """Remove a watch. Returns ``False`` if there was nothing to remove."""
        status = await self._execute(
            """
            DELETE FROM watched_channels
            WHERE guild_id = $1 AND discord_channel_id = $2 AND youtube_channel_id = $3
            """,
            guild_id,
            discord_channel_id,
            channel_id,
        )
        removed = _affected_rows(status) > 0
        log.info(
            "watch_removed" if removed else "watch_not_found",
            guild_id=guild_id,
            discord_channel_id=discord_channel_id,
            channel_id=channel_id,
        )
        return removed
