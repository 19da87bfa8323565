"""Base class for subtitle providers."""

from abc import ABC, abstractmethod
from enum import Enum

from phraseloop.models import Phrase, SubtitleFetchOptions


class ProviderType(str, Enum):
    """Available subtitle provider implementations."""

    supadata = "supadata"
    ytdlp = "yt-dlp"


class SubtitleProvider(ABC):
    """
    Vendor-agnostic source of caption phrases.

    Providers hold no persistent state; everything they do is scoped to a
    single fetch_subtitles call.
    """

    name: str

    @abstractmethod
    async def fetch_subtitles(
        self, video_id: str, options: SubtitleFetchOptions | None = None
    ) -> list[Phrase]:
        """
        Retrieve caption phrases for a video.

        Args:
            video_id: YouTube video ID
            options: Language and format preferences

        Returns:
            Non-empty phrase sequence

        Raises:
            FetchError: If no usable captions exist in any attempted language
        """
