"""ytposts - YouTube community post notifications for Discord."""

__version__ = "0.1.0"
