"""Tests for timed-text parsing and rendering in phraseloop/parser.py."""

from phraseloop.models import Phrase
from phraseloop.parser import (
    clean_caption_text,
    format_timestamp,
    parse_vtt,
    phrases_to_srt,
    phrases_to_text,
    phrases_to_vtt,
)

from tests.conftest import SAMPLE_VTT


class TestParseVtt:
    """Tests for parse_vtt."""

    def test_single_cue_with_markup(self):
        phrases = parse_vtt("00:00:00.115 --> 00:00:02.423\nHello <i>world</i>\n\n")

        assert phrases == [Phrase(id=0, start_sec=0.115, end_sec=2.423, text="Hello world")]

    def test_markup_only_cue_is_dropped(self):
        """A cue whose text is nothing but tags yields no phrase."""
        document = (
            "WEBVTT\n\n"
            "00:00:00.000 --> 00:00:01.000\n<c>\n</c>\n\n"
            "00:00:01.000 --> 00:00:02.000\nkept\n"
        )
        phrases = parse_vtt(document)

        assert len(phrases) == 1
        assert phrases[0].id == 0
        assert phrases[0].text == "kept"

    def test_header_and_cue_settings_ignored(self):
        phrases = parse_vtt(SAMPLE_VTT)

        assert [p.text for p in phrases] == ["Hello world", "This is a test subtitle"]
        assert phrases[1].start_sec == 3.5
        assert phrases[1].end_sec == 7.0

    def test_multiline_text_joined_with_space(self):
        phrases = parse_vtt("00:00:01.000 --> 00:00:02.000\nfirst line\nsecond line\n")

        assert phrases[0].text == "first line second line"

    def test_next_timestamp_terminates_text(self):
        document = (
            "00:00:01.000 --> 00:00:02.000\n"
            "one\n"
            "00:00:02.000 --> 00:00:03.000\n"
            "two\n"
        )
        phrases = parse_vtt(document)

        assert [p.text for p in phrases] == ["one", "two"]

    def test_hours_are_converted(self):
        phrases = parse_vtt("01:02:03.500 --> 01:02:04.000\nlate\n")

        assert phrases[0].start_sec == 3723.5

    def test_inline_timestamps_removed(self):
        phrases = parse_vtt(
            "00:00:01.000 --> 00:00:03.000\n"
            "we<00:00:01.500><c> are</c><00:00:02.000><c> here</c>\n"
        )

        assert phrases[0].text == "we are here"

    def test_entities_decoded(self):
        phrases = parse_vtt("00:00:01.000 --> 00:00:02.000\nrock &amp; roll\n")

        assert phrases[0].text == "rock & roll"

    def test_reversed_cue_dropped(self):
        phrases = parse_vtt("00:00:05.000 --> 00:00:04.000\nbackwards\n")

        assert phrases == []

    def test_ids_are_dense_after_drops(self):
        document = (
            "00:00:00.000 --> 00:00:01.000\n<b></b>\n\n"
            "00:00:01.000 --> 00:00:02.000\na\n\n"
            "00:00:03.000 --> 00:00:02.000\nbad\n\n"
            "00:00:02.000 --> 00:00:03.000\nb\n"
        )

        assert [p.id for p in parse_vtt(document)] == [0, 1]

    def test_malformed_input_yields_nothing(self):
        assert parse_vtt("") == []
        assert parse_vtt("not a caption file\n1:2:3 --> nope") == []

    def test_parse_is_deterministic(self):
        assert parse_vtt(SAMPLE_VTT) == parse_vtt(SAMPLE_VTT)


class TestCleanCaptionText:
    def test_strips_tags_and_collapses_whitespace(self):
        assert clean_caption_text("  <b>bold</b>\t and   <u>under</u> ") == "bold and under"

    def test_script_content_not_left_as_markup(self):
        assert "<" not in clean_caption_text("<script>alert(1)</script>hi")


class TestRenderers:
    """Tests for format conversions used by /subtitles?format=..."""

    phrases = [
        Phrase(id=0, start_sec=0.115, end_sec=2.423, text="Hello world"),
        Phrase(id=1, start_sec=3723.5, end_sec=3725.0, text="Goodbye"),
    ]

    def test_format_timestamp(self):
        assert format_timestamp(0.115) == "00:00:00.115"
        assert format_timestamp(3723.5) == "01:02:03.500"
        assert format_timestamp(2.423, separator=",") == "00:00:02,423"

    def test_vtt_output(self):
        vtt = phrases_to_vtt(self.phrases)

        assert vtt.startswith("WEBVTT\n\n")
        assert "00:00:00.115 --> 00:00:02.423\nHello world" in vtt
        assert "01:02:03.500 --> 01:02:05.000\nGoodbye" in vtt

    def test_vtt_output_parses_back(self):
        assert parse_vtt(phrases_to_vtt(self.phrases)) == self.phrases

    def test_srt_output(self):
        srt = phrases_to_srt(self.phrases)

        assert srt.startswith("1\n00:00:00,115 --> 00:00:02,423\nHello world")
        assert "\n\n2\n01:02:03,500 --> 01:02:05,000\nGoodbye" in srt

    def test_text_output(self):
        assert phrases_to_text(self.phrases) == "Hello world Goodbye"
