"""Discord client that hosts the post monitor."""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord

from ytposts.logging import get_logger

if TYPE_CHECKING:
    from ytposts.monitoring.monitor import PostMonitor

log = get_logger("ytposts.bot")


class YouTubePostsBot(discord.Client):
    """Discord client that starts the post monitor once connected."""

    def __init__(self) -> None:
        intents = discord.Intents.default()
        super().__init__(intents=intents)
        self._monitor: PostMonitor | None = None

    def attach_monitor(self, monitor: PostMonitor) -> None:
        """Set the monitor to start when the bot is ready."""
        self._monitor = monitor

    async def on_ready(self) -> None:
        """Called when the bot is fully ready (again after every reconnect)."""
        log.info(
            "bot_ready",
            user=str(self.user),
            guilds=len(self.guilds),
        )
        if self._monitor is None:
            log.warning("bot_ready_without_monitor")
            return
        if not self._monitor.is_running:
            self._monitor.start()

    async def close(self) -> None:
        """Stop the monitor before closing the gateway connection."""
        if self._monitor is not None:
            await self._monitor.stop()
        await super().close()
