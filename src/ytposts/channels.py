"""Monitored channel configuration.

Channels are static configuration, loaded once at startup from a JSON file
shaped like::

    {"channels": [{"id": "UC...", "handle": "@name", "displayName": "Name",
                   "url": "https://www.youtube.com/@name", "avatarUrl": "..."}]}
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ytposts.logging import get_logger

log = get_logger("ytposts.channels")


@dataclass(frozen=True)
class ChannelTarget:
    """A YouTube channel that can be watched."""

    id: str
    handle: str
    display_name: str
    url: str
    avatar_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "handle": self.handle,
            "displayName": self.display_name,
            "url": self.url,
            "avatarUrl": self.avatar_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChannelTarget:
        handle = data["handle"]
        return cls(
            id=data["id"],
            handle=handle,
            display_name=data.get("displayName") or handle,
            url=data.get("url") or f"https://www.youtube.com/{handle}",
            avatar_url=data.get("avatarUrl") or None,
        )


class ChannelDirectory:
    """Read-only lookup of configured channels by id or handle."""

    def __init__(self, channels: list[ChannelTarget]) -> None:
        self._channels = list(channels)
        self._by_id = {channel.id: channel for channel in self._channels}

    def __iter__(self) -> Iterator[ChannelTarget]:
        return iter(self._channels)

    def __len__(self) -> int:
        return len(self._channels)

    def get(self, channel_id: str) -> ChannelTarget | None:
        return self._by_id.get(channel_id)

    def resolve(self, key: str) -> ChannelTarget | None:
        """Find a channel by id, handle (with or without ``@``) or display name."""
        if key in self._by_id:
            return self._by_id[key]
        wanted = key.lower().lstrip("@")
        for channel in self._channels:
            if channel.handle.lower().lstrip("@") == wanted:
                return channel
            if channel.display_name.lower() == wanted:
                return channel
        return None


def load_channels(path: str | Path) -> ChannelDirectory:
    """Load the channel list from *path*.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a valid channel list.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid channel file {path}: {exc}") from exc

    raw_channels = data.get("channels") if isinstance(data, dict) else None
    if not isinstance(raw_channels, list):
        raise ValueError(f"Channel file {path} has no 'channels' list")

    channels: list[ChannelTarget] = []
    seen: set[str] = set()
    for entry in raw_channels:
        try:
            channel = ChannelTarget.from_dict(entry)
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Invalid channel entry in {path}: {entry!r}") from exc
        if channel.id in seen:
            log.warning("duplicate_channel_id", channel_id=channel.id, path=str(path))
            continue
        seen.add(channel.id)
        channels.append(channel)

    log.info("channels_loaded", count=len(channels), path=str(path))
    return ChannelDirectory(channels)
