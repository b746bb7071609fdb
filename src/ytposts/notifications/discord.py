"""Discord delivery of new-post notifications."""

from __future__ import annotations

from datetime import UTC, datetime

import discord

from ytposts.constants import EMBED_COLOR
from ytposts.logging import get_logger
from ytposts.monitoring.models import PostNotification

log = get_logger("ytposts.notifications.discord")


def build_post_embed(event: PostNotification) -> discord.Embed:
    """Render a notification as a Discord embed."""
    post = event.post
    embed = discord.Embed(
        color=EMBED_COLOR,
        description=f"{event.description}\n\n[View Post]({post.url})",
        timestamp=datetime.now(UTC),
    )
    embed.set_author(
        name=event.channel_display_name,
        url=event.channel_url,
        icon_url=event.channel_avatar_url,
    )
    if event.channel_avatar_url:
        embed.set_thumbnail(url=event.channel_avatar_url)

    image = event.primary_image
    if image is not None:
        embed.set_image(url=image.url)

    embed.set_footer(text=f"Posted {post.published_time_text or 'recently'}")
    return embed


class DiscordNotifier:
    """Sends one message per watching Discord channel.

    A delivery failure on one channel is logged and does not prevent the
    remaining channels from being notified.
    """

    def __init__(self, client: discord.Client, *, notification_role_id: int | None = None) -> None:
        """Initialize the notifier.

        Args:
            client: Connected Discord client used to resolve channels.
            notification_role_id: Role mentioned at the start of every
                message, when it exists in the target guild.
        """
        self._client = client
        self._role_id = notification_role_id

    async def _resolve_channel(self, channel_id: int) -> discord.abc.Messageable | None:
        channel = self._client.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self._client.fetch_channel(channel_id)
            except discord.HTTPException as exc:
                log.warning("discord_channel_fetch_failed", channel_id=channel_id, error=str(exc))
                return None
        if not isinstance(channel, discord.abc.Messageable):
            log.warning("discord_channel_not_messageable", channel_id=channel_id)
            return None
        return channel

    def _message_for(
        self,
        channel: discord.abc.Messageable,
        event: PostNotification,
    ) -> tuple[str, discord.AllowedMentions]:
        content = f"New post from **{event.channel_display_name}** {event.post.url}"
        if self._role_id is None:
            return content, discord.AllowedMentions.none()

        guild = getattr(channel, "guild", None)
        role = guild.get_role(self._role_id) if guild is not None else None
        if role is None:
            log.warning(
                "notification_role_not_found",
                role_id=self._role_id,
                guild=getattr(guild, "name", None),
            )
            return content, discord.AllowedMentions.none()

        return f"{role.mention} {content}", discord.AllowedMentions(
            everyone=False, users=False, roles=[role]
        )

    async def notify(self, event: PostNotification) -> int:
        """Deliver *event* to every watcher. Returns the number of messages sent."""
        embed = build_post_embed(event)
        delivered = 0

        for watch in event.watchers:
            channel = await self._resolve_channel(watch.discord_channel_id)
            if channel is None:
                continue

            content, allowed_mentions = self._message_for(channel, event)
            try:
                await channel.send(content=content, embed=embed, allowed_mentions=allowed_mentions)
            except discord.HTTPException as exc:
                log.warning(
                    "discord_notification_failed",
                    discord_channel_id=watch.discord_channel_id,
                    post_id=event.post.id,
                    error=str(exc),
                )
                continue

            delivered += 1
            log.info(
                "discord_notification_sent",
                discord_channel_id=watch.discord_channel_id,
                guild_id=watch.guild_id,
                post_id=event.post.id,
            )

        return delivered
