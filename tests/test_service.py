"""Service layer tests for SubtitleService.

The provider and language detector are fakes from conftest; the caches are
real FileCache instances under a temporary directory.
"""

from unittest.mock import AsyncMock

import pytest

from phraseloop.cache import build_subtitle_cache, build_video_info_cache
from phraseloop.errors import ConfigError, FetchError, NoSubtitlesError
from phraseloop.models import Phrase, VideoLanguageInfo
from phraseloop.service import DEMO_PHRASES, DEMO_VIDEO_ID, SubtitleService

from tests.conftest import SAMPLE_PHRASES, FakeProvider

VIDEO_ID = "abcdefghijk"


def make_service(settings, provider, detector=None):
    return SubtitleService(
        settings,
        subtitle_cache=build_subtitle_cache(settings),
        video_info_cache=build_video_info_cache(settings),
        provider_factory=lambda config: provider,
        language_detector=detector or AsyncMock(return_value=VideoLanguageInfo.empty()),
    )


class TestGetSubtitles:
    """Tests for the cache / provider / demo fallback chain."""

    @pytest.mark.asyncio
    async def test_provider_result_is_returned_and_cached(self, service, provider):
        phrases = await service.get_subtitles(VIDEO_ID, "en")

        assert phrases == SAMPLE_PHRASES
        assert await service.subtitle_cache.get(f"{VIDEO_ID}_en") == SAMPLE_PHRASES

    @pytest.mark.asyncio
    async def test_cache_hit_skips_provider(self, service, provider):
        await service.get_subtitles(VIDEO_ID, "en")
        await service.get_subtitles(VIDEO_ID, "en")

        assert provider.calls == [(VIDEO_ID, "en")]

    @pytest.mark.asyncio
    async def test_languages_are_cached_separately(self, test_settings):
        dutch = [Phrase(id=0, start_sec=0.0, end_sec=1.0, text="Hallo")]
        english = [Phrase(id=0, start_sec=0.0, end_sec=1.0, text="Hello")]
        provider = FakeProvider(dutch)
        service = make_service(test_settings, provider)

        assert await service.get_subtitles(VIDEO_ID, "nl") == dutch
        provider.phrases = english
        assert await service.get_subtitles(VIDEO_ID, "en") == english
        assert await service.get_subtitles(VIDEO_ID, "nl") == dutch
        assert len(provider.calls) == 2

    @pytest.mark.asyncio
    async def test_auto_language_passes_none_to_provider(self, service, provider):
        await service.get_subtitles(VIDEO_ID, "auto")

        assert provider.calls == [(VIDEO_ID, None)]
        assert await service.subtitle_cache.get(VIDEO_ID) == SAMPLE_PHRASES

    @pytest.mark.asyncio
    async def test_no_subtitles_raises(self, test_settings):
        service = make_service(test_settings, FakeProvider([]))

        with pytest.raises(NoSubtitlesError):
            await service.get_subtitles(VIDEO_ID, "auto")

        assert await service.subtitle_cache.get(VIDEO_ID) is None

    @pytest.mark.asyncio
    async def test_fetch_error_becomes_no_subtitles(self, test_settings):
        service = make_service(test_settings, FakeProvider(error=FetchError("upstream down")))

        with pytest.raises(NoSubtitlesError):
            await service.get_subtitles(VIDEO_ID, "en")

    @pytest.mark.asyncio
    async def test_demo_video_uses_mock_phrases(self, test_settings):
        service = make_service(test_settings, FakeProvider([]))

        phrases = await service.get_subtitles(DEMO_VIDEO_ID, "auto")

        assert phrases == list(DEMO_PHRASES)
        assert [p.id for p in phrases] == [0, 1, 2, 3]
        assert await service.subtitle_cache.get(DEMO_VIDEO_ID) == list(DEMO_PHRASES)

    @pytest.mark.asyncio
    async def test_demo_video_survives_unexpected_error(self, test_settings):
        service = make_service(test_settings, FakeProvider(error=RuntimeError("boom")))

        assert await service.get_subtitles(DEMO_VIDEO_ID, "en") == list(DEMO_PHRASES)

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates(self, test_settings):
        service = make_service(test_settings, FakeProvider(error=RuntimeError("boom")))

        with pytest.raises(RuntimeError):
            await service.get_subtitles(VIDEO_ID, "en")

    @pytest.mark.asyncio
    async def test_demo_video_survives_missing_api_key(self, test_settings):
        config = test_settings.model_copy(
            update={"subtitle_provider": "supadata", "supadata_api_key": None}
        )
        service = SubtitleService.from_settings(config)

        assert await service.get_subtitles(DEMO_VIDEO_ID, "auto") == list(DEMO_PHRASES)

    @pytest.mark.asyncio
    async def test_config_error_propagates_for_other_videos(self, test_settings):
        config = test_settings.model_copy(
            update={"subtitle_provider": "supadata", "supadata_api_key": None}
        )
        service = SubtitleService.from_settings(config)

        with pytest.raises(ConfigError, match="API key"):
            await service.get_subtitles(VIDEO_ID, "auto")

    @pytest.mark.asyncio
    async def test_cache_disabled(self, test_settings, provider):
        config = test_settings.model_copy(update={"cache_enabled": False})
        service = make_service(config, provider)

        await service.get_subtitles(VIDEO_ID, "en")
        await service.get_subtitles(VIDEO_ID, "en")

        assert len(provider.calls) == 2
        assert (await service.subtitle_cache.get_stats())["size"] == 0


class TestGetVideoInfo:
    @pytest.mark.asyncio
    async def test_detected_info_is_cached(self, service, language_detector):
        first = await service.get_video_info(VIDEO_ID)
        second = await service.get_video_info(VIDEO_ID)

        assert first == second
        assert first.original_language == "en"
        language_detector.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_info_is_not_cached(self, test_settings, provider):
        detector = AsyncMock(return_value=VideoLanguageInfo.empty())
        service = make_service(test_settings, provider, detector)

        assert (await service.get_video_info(VIDEO_ID)).is_empty
        await service.get_video_info(VIDEO_ID)

        assert detector.await_count == 2


class TestSweepCaches:
    @pytest.mark.asyncio
    async def test_sweep_removes_expired_entries(self, service):
        await service.get_subtitles(VIDEO_ID, "en")
        service.subtitle_cache.ttl_seconds = -1

        assert await service.sweep_caches() == 1
