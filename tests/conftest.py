"""Shared pytest fixtures for phraseloop tests."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from phraseloop.cache import build_subtitle_cache, build_video_info_cache
from phraseloop.config import Settings
from phraseloop.dictionary import DictionaryClient
from phraseloop.errors import FetchError
from phraseloop.main import app, get_dictionary, get_service
from phraseloop.models import Phrase, VideoLanguageInfo
from phraseloop.providers.base import SubtitleProvider
from phraseloop.service import SubtitleService

SAMPLE_VTT = """WEBVTT
Kind: captions
Language: en

00:00:00.000 --> 00:00:03.500
Hello world

00:00:03.500 --> 00:00:07.000 align:start position:0%
This is a <c>test</c> subtitle
"""

SAMPLE_PHRASES = [
    Phrase(id=0, start_sec=0.0, end_sec=3.5, text="Hello world"),
    Phrase(id=1, start_sec=3.5, end_sec=7.0, text="This is a test subtitle"),
]


class FakeProvider(SubtitleProvider):
    """Provider returning canned phrases, or raising, and recording calls."""

    name = "fake"

    def __init__(self, phrases=None, error: Exception | None = None):
        self.phrases = list(phrases or [])
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    async def fetch_subtitles(self, video_id, options=None):
        self.calls.append((video_id, options.language if options else None))
        if self.error is not None:
            raise self.error
        if not self.phrases:
            raise FetchError(f"No subtitles found for video {video_id}")
        return list(self.phrases)


@pytest.fixture
def test_settings(tmp_path):
    """Settings pointing both caches at a temporary directory."""
    return Settings(
        subtitle_provider="yt-dlp",
        subtitle_cache_dir=str(tmp_path / "subtitles"),
        video_info_cache_dir=str(tmp_path / "video-info"),
        rate_limit_enabled=False,
        cache_sweep_on_startup=False,
    )


@pytest.fixture
def provider():
    """Fake provider that returns two sample phrases."""
    return FakeProvider(SAMPLE_PHRASES)


@pytest.fixture
def language_detector():
    """Language detector stub reporting an English video."""
    return AsyncMock(
        return_value=VideoLanguageInfo(
            original_language="en",
            available_languages=["en", "nl"],
            has_manual_captions=True,
            has_auto_captions=True,
        )
    )


@pytest.fixture
def service(test_settings, provider, language_detector):
    """SubtitleService wired to the fake provider and temporary caches."""
    return SubtitleService(
        test_settings,
        subtitle_cache=build_subtitle_cache(test_settings),
        video_info_cache=build_video_info_cache(test_settings),
        provider_factory=lambda config: provider,
        language_detector=language_detector,
    )


def dictionary_handler(request: httpx.Request) -> httpx.Response:
    word = request.url.path.rsplit("/", 1)[-1]
    if word == "hello":
        return httpx.Response(200, json=[{"word": "hello", "meanings": []}])
    if word == "boom":
        return httpx.Response(502, text="Bad Gateway")
    return httpx.Response(404, json={"title": "No Definitions Found"})


@pytest.fixture
def dictionary(test_settings):
    """DictionaryClient answering from an in-memory transport."""
    return DictionaryClient(test_settings, transport=httpx.MockTransport(dictionary_handler))


@pytest.fixture
def client(service, dictionary):
    """FastAPI TestClient for endpoint testing."""
    app.dependency_overrides[get_service] = lambda: service
    app.dependency_overrides[get_dictionary] = lambda: dictionary

    # Mock rate limiting to always allow during tests
    with patch("phraseloop.main._check_rate_limit", return_value=True):
        try:
            yield TestClient(app)
        finally:
            app.dependency_overrides.clear()
