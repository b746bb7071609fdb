"""Persistence of watches and last-seen posts."""

from ytposts.storage.posts import PostStorage, UpsertOutcome, WatchRecord

__all__ = ["PostStorage", "UpsertOutcome", "WatchRecord"]
