"""
Video language detection.

Reads a video's caption listings with yt-dlp to work out its original
spoken language and which caption languages exist. This is an enrichment
signal for the UI, so failures degrade to an empty result instead of
raising.
"""

import logging

from phraseloop.config import Settings
from phraseloop.models import VideoLanguageInfo
from phraseloop.providers.ytdlp import fetch_video_info

logger = logging.getLogger(__name__)


async def detect_video_language(video_id: str, config: Settings) -> VideoLanguageInfo:
    """
    Detect the original language and available caption languages of a video.

    The original language is taken from, in order: the video-level language
    metadata, the first manual caption track, the first auto-generated track.

    Args:
        video_id: YouTube video ID
        config: Settings used for the yt-dlp extraction

    Returns:
        VideoLanguageInfo; the empty value if anything goes wrong
    """
    try:
        logger.info(f"[YouTubeMetadata] Detecting language for {video_id}")
        info = await fetch_video_info(video_id, config)

        manual_languages = list(info.get("subtitles") or {})
        auto_languages = list(info.get("automatic_captions") or {})

        original_language = info.get("language") or None
        if original_language is None and manual_languages:
            original_language = manual_languages[0]
        elif original_language is None and auto_languages:
            original_language = auto_languages[0]

        result = VideoLanguageInfo(
            original_language=original_language,
            available_languages=list(dict.fromkeys(manual_languages + auto_languages)),
            has_manual_captions=bool(manual_languages),
            has_auto_captions=bool(auto_languages),
        )
    except Exception as e:
        logger.error(f"[YouTubeMetadata] Error detecting language for {video_id}: {e}")
        return VideoLanguageInfo.empty()

    logger.info(
        f"[YouTubeMetadata] Detected original={result.original_language} "
        f"({len(result.available_languages)} caption languages)"
    )
    return result
