"""Notification delivery for newly detected posts."""

from ytposts.notifications.discord import DiscordNotifier, build_post_embed

__all__ = ["DiscordNotifier", "build_post_embed"]
