"""Unit tests for the Discord client hosting the monitor."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest

from ytposts.bot import YouTubePostsBot


@pytest.fixture
def monitor():
    monitor = MagicMock()
    monitor.is_running = False
    monitor.stop = AsyncMock()
    return monitor


class TestYouTubePostsBot:
    """Tests for YouTubePostsBot."""

    @pytest.mark.asyncio
    async def test_on_ready_starts_monitor(self, monitor):
        bot = YouTubePostsBot()
        bot.attach_monitor(monitor)

        await bot.on_ready()

        monitor.start.assert_called_once()

    @pytest.mark.asyncio
    async def test_reconnect_does_not_restart_running_monitor(self, monitor):
        monitor.is_running = True
        bot = YouTubePostsBot()
        bot.attach_monitor(monitor)

        await bot.on_ready()

        monitor.start.assert_not_called()

    @pytest.mark.asyncio
    async def test_on_ready_without_monitor(self):
        await YouTubePostsBot().on_ready()

    @pytest.mark.asyncio
    async def test_close_stops_monitor_first(self, monitor):
        bot = YouTubePostsBot()
        bot.attach_monitor(monitor)

        with patch.object(discord.Client, "close", new_callable=AsyncMock) as mock_close:
            await bot.close()

        monitor.stop.assert_awaited_once()
        mock_close.assert_awaited_once()
