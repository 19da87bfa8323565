"""
Data models for the subtitle acquisition pipeline.

These dataclasses are the internal representation shared by the parser,
providers, cache and service. Their JSON form (``to_dict``) uses the
camelCase keys the player UI consumes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SubtitleFormat(str, Enum):
    """Timed-text formats a caller may ask a provider for."""

    vtt = "vtt"
    srt = "srt"
    text = "text"


@dataclass(frozen=True)
class Phrase:
    """
    One timed caption unit.

    Attributes:
        id: Zero-based position in its phrase sequence (loop/navigation order)
        start_sec: Start time in seconds from video start
        end_sec: End time in seconds, never before start_sec
        text: Plain caption text, never empty
    """

    id: int
    start_sec: float
    end_sec: float
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startSec": self.start_sec,
            "endSec": self.end_sec,
            "text": self.text,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Phrase":
        return cls(
            id=int(data["id"]),
            start_sec=float(data["startSec"]),
            end_sec=float(data["endSec"]),
            text=str(data["text"]),
        )


@dataclass
class SubtitleFetchOptions:
    """
    Options passed to a subtitle provider.

    Attributes:
        language: Language code, or None/"auto" to let the provider pick
            the original-language captions
        format: Preferred timed-text format (informational)
    """

    language: str | None = None
    format: SubtitleFormat | None = None

    @property
    def requested_language(self) -> str | None:
        """The concrete language asked for, or None for auto-detection."""
        if not self.language or self.language == "auto":
            return None
        return self.language


@dataclass
class VideoLanguageInfo:
    """
    Caption language information for a single video.

    Attributes:
        original_language: Spoken language of the video, if known
        available_languages: Caption languages, manual and automatic, de-duplicated
        has_manual_captions: Whether any manually authored track exists
        has_auto_captions: Whether any auto-generated track exists
    """

    original_language: str | None = None
    available_languages: list[str] = field(default_factory=list)
    has_manual_captions: bool = False
    has_auto_captions: bool = False

    @classmethod
    def empty(cls) -> "VideoLanguageInfo":
        return cls()

    @property
    def is_empty(self) -> bool:
        return (
            self.original_language is None
            and not self.available_languages
            and not self.has_manual_captions
            and not self.has_auto_captions
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalLanguage": self.original_language,
            "availableLanguages": list(self.available_languages),
            "hasManualCaptions": self.has_manual_captions,
            "hasAutoCaptions": self.has_auto_captions,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VideoLanguageInfo":
        return cls(
            original_language=data.get("originalLanguage"),
            available_languages=list(data.get("availableLanguages") or []),
            has_manual_captions=bool(data.get("hasManualCaptions", False)),
            has_auto_captions=bool(data.get("hasAutoCaptions", False)),
        )


def phrases_to_payload(phrases: list[Phrase]) -> dict[str, Any]:
    """Serialize a phrase sequence as the ``{"phrases": [...]}`` document."""
    return {"phrases": [phrase.to_dict() for phrase in phrases]}


def phrases_from_payload(payload: dict[str, Any]) -> list[Phrase]:
    """Inverse of phrases_to_payload."""
    return [Phrase.from_dict(item) for item in payload["phrases"]]
