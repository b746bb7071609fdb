"""Fetching and parsing of YouTube community post pages.

The community tab is not a documented API: pages are fetched like a
browser would, the embedded ``ytInitialData`` tree is located and walked
with a prioritised set of lookups, and every step degrades to an empty
result instead of guessing.
"""

from ytposts.youtube.models import (
    ChannelInfo,
    ExtractionResult,
    FetchResult,
    Post,
    PostImage,
    RawPage,
)
from ytposts.youtube.service import ChannelPostsService

__all__ = [
    "ChannelInfo",
    "ChannelPostsService",
    "ExtractionResult",
    "FetchResult",
    "Post",
    "PostImage",
    "RawPage",
]
