"""
Timed-text parsing and rendering.

``parse_vtt`` turns a WebVTT caption document into an ordered list of
Phrase records. It is a pure function: no I/O, no shared state, and it
never raises on malformed input; cues it cannot use are skipped.

The ``phrases_to_*`` helpers render a phrase sequence back out as VTT,
SRT or plain text for the ``format`` query parameter of /subtitles.
"""

import html
import re

import nh3

from phraseloop.models import Phrase

# Timestamp line: HH:MM:SS.mmm --> HH:MM:SS.mmm, optionally followed by cue settings
TIMESTAMP_PATTERN = re.compile(
    r"^(\d{2}):(\d{2}):(\d{2}\.\d{3})\s*-->\s*(\d{2}):(\d{2}):(\d{2}\.\d{3})"
)
# A text line that starts with a timestamp begins the next cue
TIMESTAMP_PREFIX_PATTERN = re.compile(r"^\d{2}:\d{2}:\d{2}\.\d{3}")

# Any <...> span: styling tags, <c> classes, <00:00:02.500> karaoke timestamps
TAG_REMOVAL_PATTERN = re.compile(r"<[^>]*>")
WHITESPACE_PATTERN = re.compile(r"\s+")


def clean_caption_text(text: str) -> str:
    """
    Reduce caption markup to plain text.

    Angle-bracket spans are removed first (nh3 would otherwise escape
    VTT timestamp tags instead of dropping them), then nh3 strips anything
    that still parses as HTML. Entities are decoded and whitespace collapsed.
    """
    text = TAG_REMOVAL_PATTERN.sub("", text)
    text = nh3.clean(text)
    text = html.unescape(text)
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def _to_seconds(hours: str, minutes: str, seconds: str) -> float:
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def parse_vtt(document: str) -> list[Phrase]:
    """
    Parse a WebVTT document into phrases.

    Args:
        document: Raw timed-text document

    Returns:
        Phrases in document order with dense ids starting at 0.

    Note:
        Text lines following a timestamp line are joined with a single space
        until a blank line or another timestamp line. Cues whose cleaned text
        is empty, or whose end precedes their start, are dropped.
    """
    phrases: list[Phrase] = []
    lines = document.splitlines()

    for i, raw_line in enumerate(lines):
        match = TIMESTAMP_PATTERN.match(raw_line.strip())
        if not match:
            continue

        start_sec = _to_seconds(*match.group(1, 2, 3))
        end_sec = _to_seconds(*match.group(4, 5, 6))

        text_lines = []
        for text_line in lines[i + 1:]:
            text_line = text_line.strip()
            if not text_line or TIMESTAMP_PREFIX_PATTERN.match(text_line):
                break
            text_lines.append(text_line)

        text = clean_caption_text(" ".join(text_lines))
        if not text or end_sec < start_sec:
            continue

        phrases.append(
            Phrase(id=len(phrases), start_sec=start_sec, end_sec=end_sec, text=text)
        )

    return phrases


def format_timestamp(seconds: float, separator: str = ".") -> str:
    """
    Format seconds as HH:MM:SS.mmm (VTT) or HH:MM:SS,mmm (SRT).

    Examples:
        >>> format_timestamp(3723.5)
        '01:02:03.500'
        >>> format_timestamp(0.115, separator=",")
        '00:00:00,115'
    """
    total_ms = int(round(seconds * 1000))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{millis:03d}"


def phrases_to_vtt(phrases: list[Phrase]) -> str:
    """Render phrases as a WebVTT document."""
    cues = [
        f"{format_timestamp(p.start_sec)} --> {format_timestamp(p.end_sec)}\n{p.text}"
        for p in phrases
    ]
    return "WEBVTT\n\n" + "\n\n".join(cues) + "\n"


def phrases_to_srt(phrases: list[Phrase]) -> str:
    """
    Render phrases as SRT.

    SRT format:
    1
    00:00:01,000 --> 00:00:04,000
    Subtitle text here
    """
    cues = [
        f"{idx}\n{format_timestamp(p.start_sec, ',')} --> {format_timestamp(p.end_sec, ',')}\n{p.text}"
        for idx, p in enumerate(phrases, start=1)
    ]
    return "\n\n".join(cues) + "\n"


def phrases_to_text(phrases: list[Phrase]) -> str:
    """Join all phrase texts into one whitespace-normalized string."""
    return WHITESPACE_PATTERN.sub(" ", " ".join(p.text for p in phrases)).strip()
