"""
Subtitle acquisition service.

This module is the entry point the web layer calls. It checks the on-disk
cache, falls back to the configured provider, substitutes mock phrases for
the reserved demo video when nothing else works, and writes results
through to the cache.

Each call is independent: there is no shared in-memory state between
requests apart from the cache files. Concurrent calls for the same key may
both reach the provider; the last cache write wins.
"""

import logging
from collections.abc import Awaitable, Callable

from phraseloop.cache import (
    CacheProtocol,
    build_subtitle_cache,
    build_video_info_cache,
    subtitle_cache_key,
)
from phraseloop.config import Settings
from phraseloop.errors import ConfigError, FetchError, NoSubtitlesError
from phraseloop.metadata import detect_video_language
from phraseloop.models import Phrase, SubtitleFetchOptions, VideoLanguageInfo
from phraseloop.providers import SubtitleProvider, create_provider

logger = logging.getLogger(__name__)

# Reserved demo video; always yields phrases, even with no working provider
DEMO_VIDEO_ID = "dQw4w9WgXcQ"

DEMO_PHRASES: tuple[Phrase, ...] = (
    Phrase(id=0, start_sec=0.0, end_sec=2.0, text="We're no strangers to love"),
    Phrase(id=1, start_sec=2.0, end_sec=4.5, text="You know the rules and so do I"),
    Phrase(id=2, start_sec=4.5, end_sec=8.0, text="A full commitment's what I'm thinking of"),
    Phrase(id=3, start_sec=8.0, end_sec=10.0, text="You wouldn't get this from any other guy"),
)

ProviderFactory = Callable[[Settings], SubtitleProvider]
LanguageDetector = Callable[[str, Settings], Awaitable[VideoLanguageInfo]]


class SubtitleService:
    """
    Orchestrates cache, provider and demo fallback for subtitle requests.

    Args:
        config: Settings passed to the provider factory and language detector
        subtitle_cache: Cache for phrase sequences
        video_info_cache: Cache for VideoLanguageInfo
        provider_factory: Maps settings to a provider (default: create_provider)
        language_detector: Resolves VideoLanguageInfo (default: detect_video_language)
    """

    def __init__(
        self,
        config: Settings,
        subtitle_cache: CacheProtocol[list[Phrase]],
        video_info_cache: CacheProtocol[VideoLanguageInfo],
        provider_factory: ProviderFactory = create_provider,
        language_detector: LanguageDetector = detect_video_language,
    ):
        self.config = config
        self.subtitle_cache = subtitle_cache
        self.video_info_cache = video_info_cache
        self._provider_factory = provider_factory
        self._language_detector = language_detector

    @classmethod
    def from_settings(cls, config: Settings) -> "SubtitleService":
        """Build a service with the on-disk caches described by the settings."""
        return cls(
            config,
            subtitle_cache=build_subtitle_cache(config),
            video_info_cache=build_video_info_cache(config),
        )

    async def get_subtitles(self, video_id: str, language: str | None = "auto") -> list[Phrase]:
        """
        Return the caption phrases for a video.

        Args:
            video_id: YouTube video ID
            language: Language code, or "auto" for the provider's choice

        Returns:
            Non-empty phrase sequence

        Raises:
            ConfigError: If the provider is misconfigured (except for the demo video)
            NoSubtitlesError: If no captions exist and the video is not the demo video
        """
        cache_key = subtitle_cache_key(video_id, language)

        if self.config.cache_enabled:
            cached = await self.subtitle_cache.get(cache_key)
            if cached:
                logger.info(f"Returning {len(cached)} cached phrases for {cache_key}")
                return cached

        options = SubtitleFetchOptions(language=None if language == "auto" else language)
        phrases: list[Phrase] = []
        try:
            provider = self._provider_factory(self.config)
            phrases = await provider.fetch_subtitles(video_id, options)
        except ConfigError as e:
            if video_id != DEMO_VIDEO_ID:
                raise
            logger.error(f"Provider misconfigured, serving demo video {video_id}: {e}")
        except FetchError as e:
            logger.warning(f"Provider found no subtitles for {video_id}: {e}")
        except Exception as e:
            if video_id != DEMO_VIDEO_ID:
                raise
            logger.error(f"Provider error for demo video {video_id}: {e}")

        if not phrases:
            if video_id != DEMO_VIDEO_ID:
                raise NoSubtitlesError(f"No subtitles found for video {video_id}")
            logger.info(f"Using mock fallback for {video_id}")
            phrases = list(DEMO_PHRASES)

        if self.config.cache_enabled:
            await self.subtitle_cache.set(cache_key, phrases)
        return phrases

    async def get_video_info(self, video_id: str) -> VideoLanguageInfo:
        """
        Return caption language information for a video.

        Never raises for upstream failures; an empty result is returned and,
        unlike a real result, not cached.
        """
        if self.config.cache_enabled:
            cached = await self.video_info_cache.get(video_id)
            if cached is not None:
                logger.info(f"Returning cached video info for {video_id}")
                return cached

        info = await self._language_detector(video_id, self.config)

        if self.config.cache_enabled and not info.is_empty:
            await self.video_info_cache.set(video_id, info)
        return info

    async def sweep_caches(self) -> int:
        """Remove expired entries from both caches. Returns files removed."""
        removed = await self.subtitle_cache.sweep_expired()
        removed += await self.video_info_cache.sweep_expired()
        return removed
