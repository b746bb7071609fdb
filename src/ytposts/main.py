"""Main entry point for ytposts.

Subcommands::

    ytposts run                                    # Discord bot + periodic sweeps
    ytposts fetch <channel> [--store]              # one-shot fetch, prints JSON
    ytposts channels                               # configured channels, prints JSON
    ytposts status                                 # watch and stored post counts
    ytposts watch list [--guild ID]
    ytposts watch add <channel> <guild_id> <discord_channel_id>
    ytposts watch remove <channel> <guild_id> <discord_channel_id>

``<channel>`` is a configured channel id, handle or display name.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg  # type: ignore[import-not-found,import-untyped]

from ytposts import __version__
from ytposts.bot import YouTubePostsBot
from ytposts.channels import ChannelDirectory, ChannelTarget, load_channels
from ytposts.config import Settings, get_settings
from ytposts.logging import get_logger, setup_logging
from ytposts.monitoring.detector import ChangeDetector
from ytposts.monitoring.monitor import PostMonitor, group_watches
from ytposts.notifications.discord import DiscordNotifier
from ytposts.storage.posts import PostStorage
from ytposts.youtube.fetcher import PageFetcher
from ytposts.youtube.service import ChannelPostsService

log = get_logger("ytposts.main")


def build_service(settings: Settings) -> ChannelPostsService:
    """Create the fetch/extract service from settings."""
    fetcher = PageFetcher(
        user_agent=settings.user_agent,
        timeout=settings.http_timeout_seconds,
        fallback_timeout=settings.fallback_timeout_seconds,
    )
    return ChannelPostsService(fetcher)


@asynccontextmanager
async def open_storage(settings: Settings) -> AsyncIterator[PostStorage]:
    """Create the connection pool and an initialised :class:`PostStorage`."""
    try:
        pool = await asyncpg.create_pool(dsn=settings.postgres_dsn)
        log.info("postgres_pool_created", dsn=settings.postgres_dsn.split("@")[-1])
    except (asyncpg.PostgresError, OSError) as exc:
        log.error("postgres_pool_creation_failed", error=str(exc))
        raise

    try:
        storage = PostStorage()
        await storage.initialize(pool)
        yield storage
    finally:
        await pool.close()
        log.info("postgres_pool_closed")


def _resolve_channel(channels: ChannelDirectory, key: str) -> ChannelTarget:
    channel = channels.resolve(key)
    if channel is None:
        raise SystemExit(f"Unknown channel: {key}")
    return channel


async def run_bot(settings: Settings, channels: ChannelDirectory) -> None:
    """Run the Discord bot with periodic sweeps until interrupted."""
    token = settings.discord_token.get_secret_value().strip() if settings.discord_token else ""
    if not token:
        raise SystemExit("DISCORD_TOKEN is required to run the bot")

    log.info(
        "starting_ytposts",
        version=__version__,
        environment=settings.environment,
        channels=len(channels),
        interval_minutes=settings.check_interval_minutes,
    )

    async with open_storage(settings) as storage:
        bot = YouTubePostsBot()
        monitor = PostMonitor(
            channels=channels,
            service=build_service(settings),
            store=storage,
            detector=ChangeDetector(
                storage,
                notify_on_first_observation=settings.notify_on_first_observation,
            ),
            notifier=DiscordNotifier(bot, notification_role_id=settings.notification_role_id),
            interval_seconds=settings.check_interval_seconds,
        )
        bot.attach_monitor(monitor)

        try:
            await bot.start(token)
        except KeyboardInterrupt:
            log.info("shutdown_requested")
        finally:
            await bot.close()
            log.info("ytposts_stopped")


async def fetch_channel(
    settings: Settings,
    channels: ChannelDirectory,
    key: str,
    *,
    store: bool = False,
) -> int:
    """Fetch a channel once and print the result as JSON."""
    channel = _resolve_channel(channels, key)
    result = await build_service(settings).fetch_channel_posts(channel.handle)
    output = {"channel": channel.to_dict(), "result": result.to_dict(), "stored": None}

    latest = result.latest
    if store and latest is not None:
        async with open_storage(settings) as storage:
            outcome = await storage.upsert_post(
                channel.id, latest.id, latest.content, latest.published_at
            )
        output["stored"] = outcome.value

    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0 if result.success else 1


def list_channels(channels: ChannelDirectory) -> int:
    """Print the configured channels as JSON."""
    print(json.dumps([channel.to_dict() for channel in channels], indent=2, ensure_ascii=False))
    return 0


async def show_status(settings: Settings, channels: ChannelDirectory) -> int:
    """Print configured channels, watches and stored posts."""
    async with open_storage(settings) as storage:
        watches = await storage.list_watches()
        stored_posts = await storage.count_posts()

    grouped = group_watches(watches)
    status = {
        "version": __version__,
        "check_interval_minutes": settings.check_interval_minutes,
        "channels_configured": len(channels),
        "watches": len(watches),
        "channels_watched": len(grouped),
        "unconfigured_watched": sorted(cid for cid in grouped if channels.get(cid) is None),
        "stored_posts": stored_posts,
    }
    print(json.dumps(status, indent=2))
    return 0


async def manage_watches(settings: Settings, channels: ChannelDirectory, args: argparse.Namespace) -> int:
    """List, add or remove watches."""
    async with open_storage(settings) as storage:
        if args.watch_command == "list":
            watches = await storage.list_watches(args.guild)
            print(json.dumps([watch.to_dict() for watch in watches], indent=2))
            return 0

        channel = _resolve_channel(channels, args.channel)
        if args.watch_command == "add":
            changed = await storage.add_watch(args.guild_id, args.discord_channel_id, channel.id)
            print("Watch added" if changed else "Already watching")
        else:
            changed = await storage.remove_watch(args.guild_id, args.discord_channel_id, channel.id)
            print("Watch removed" if changed else "No such watch")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ytposts",
        description="YouTube community post notifications for Discord",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Run the Discord bot and periodic sweeps")
    sub.add_parser("channels", help="List the configured channels")
    sub.add_parser("status", help="Show watch and stored post counts")

    fetch = sub.add_parser("fetch", help="Fetch a channel's posts once")
    fetch.add_argument("channel", help="Channel id, handle or display name")
    fetch.add_argument(
        "--store",
        action="store_true",
        help="Store the latest post as the channel's baseline",
    )

    watch = sub.add_parser("watch", help="Manage watches")
    watch_sub = watch.add_subparsers(dest="watch_command", required=True)
    watch_list = watch_sub.add_parser("list", help="List watches")
    watch_list.add_argument("--guild", type=int, default=None, help="Only this guild")
    for name in ("add", "remove"):
        cmd = watch_sub.add_parser(name, help=f"{name.capitalize()} a watch")
        cmd.add_argument("channel", help="Channel id, handle or display name")
        cmd.add_argument("guild_id", type=int)
        cmd.add_argument("discord_channel_id", type=int)

    return parser


async def main(argv: list[str] | None = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    setup_logging(settings)
    channels = load_channels(settings.channels_file)

    if args.command == "run":
        await run_bot(settings, channels)
        return 0
    if args.command == "channels":
        return list_channels(channels)
    if args.command == "status":
        return await show_status(settings, channels)
    if args.command == "fetch":
        return await fetch_channel(settings, channels, args.channel, store=args.store)
    return await manage_watches(settings, channels, args)


def run() -> None:
    """Run the application."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
