"""
Tests for utility functions in phraseloop/utils.py.

Covers video ID normalization and log sanitizing.
"""

import pytest

from phraseloop.utils import extract_video_id, sanitize_for_log, watch_url

VIDEO_ID = "dQw4w9WgXcQ"


class TestExtractVideoId:
    """Tests for extract_video_id function."""

    @pytest.mark.parametrize(
        "value",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=10",
            "https://www.youtube.com/watch?list=xyz&v=dQw4w9WgXcQ",
            "http://youtube.com/watch?v=dQw4w9WgXcQ",
            "https://m.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ",
            "https://www.youtube.com/embed/dQw4w9WgXcQ",
            "https://www.youtube.com/shorts/dQw4w9WgXcQ?feature=share",
            "https://www.youtube.com/live/dQw4w9WgXcQ",
            "dQw4w9WgXcQ",
            "  dQw4w9WgXcQ  ",
        ],
    )
    def test_accepted_forms(self, value):
        assert extract_video_id(value) == VIDEO_ID

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "not-a-url",
            "dQw4w9Wg",
            "toolongvideoid123",
            "https://example.com/watch?v=dQw4w9WgXcQ",
            "https://evil.com?ref=youtube.com/watch?v=dQw4w9WgXcQ",
            "https://fakeyoutube.com/watch?v=dQw4w9WgXcQ",
            "ftp://youtube.com/watch?v=dQw4w9WgXcQ",
            "https://www.youtube.com/channel/UCabc",
        ],
    )
    def test_rejected_forms(self, value):
        assert extract_video_id(value) is None


def test_watch_url():
    assert watch_url(VIDEO_ID) == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def test_sanitize_for_log():
    assert sanitize_for_log("a\nb\rc\td") == "a\\nb\\rc\\td"
