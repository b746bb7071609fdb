"""Centralized constants for ytposts."""

YOUTUBE_BASE_URL = "https://www.youtube.com"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# HTTP timeouts (seconds)
PAGE_TIMEOUT_SECONDS = 30.0
FALLBACK_TIMEOUT_SECONDS = 15.0

# Monitoring
DEFAULT_CHECK_INTERVAL_MINUTES = 10

# Discord
MAX_POST_DESCRIPTION_LENGTH = 1950
EMBED_COLOR = 0x00FF00
DEFAULT_AVATAR_URL = "https://yt3.ggpht.com/ytc/default_profile.jpg"
