"""
Shared utility functions for phraseloop.

Video identifier handling and log hygiene used by the web layer and
the providers.
"""

import re
from urllib.parse import urlparse

# Pre-compiled regex patterns
YOUTUBE_URL_PATTERN = re.compile(
    r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/shorts/|youtube\.com/live/)"
    r"([a-zA-Z0-9_-]{11})"
)
YOUTUBE_ID_PATTERN = re.compile(r"^([a-zA-Z0-9_-]{11})$")

VALID_HOSTS = {
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
    "youtu.be",
}


def extract_video_id(value: str) -> str | None:
    """
    Extract the video ID from a YouTube URL, or return the input if it is a raw ID.

    Handles watch, youtu.be, embed, shorts and live URLs, with or without
    extra query parameters. URLs on hosts other than YouTube are rejected.

    Examples:
        >>> extract_video_id("https://www.youtube.com/watch?v=dQw4w9WgXcQ")
        'dQw4w9WgXcQ'
        >>> extract_video_id("https://www.youtube.com/watch?t=10&v=dQw4w9WgXcQ")
        'dQw4w9WgXcQ'
        >>> extract_video_id("https://youtu.be/dQw4w9WgXcQ")
        'dQw4w9WgXcQ'
        >>> extract_video_id("dQw4w9WgXcQ")
        'dQw4w9WgXcQ'
        >>> extract_video_id("https://evil.com/?ref=youtube.com/watch?v=dQw4w9WgXcQ") is None
        True
    """
    value = value.strip()

    match = YOUTUBE_ID_PATTERN.match(value)
    if match:
        return match.group(1)

    if not value.startswith(("http://", "https://")):
        return None

    parsed = urlparse(value)
    if parsed.netloc.lower() not in VALID_HOSTS:
        return None

    match = YOUTUBE_URL_PATTERN.search(value)
    if match:
        return match.group(1)
    return None


def watch_url(video_id: str) -> str:
    """Canonical watch URL for a video ID."""
    return f"https://www.youtube.com/watch?v={video_id}"


def sanitize_for_log(input_str: str) -> str:
    """
    Sanitize user input for logging to prevent log injection.

    Replaces newlines, carriage returns, and tabs with their escaped
    representations.
    """
    return input_str.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
