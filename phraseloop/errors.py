"""
Exception types raised by the subtitle acquisition pipeline.

The web layer maps these to HTTP status codes in phraseloop.main.
"""


class PhraseloopError(Exception):
    """Base class for all phraseloop errors."""


class ConfigError(PhraseloopError):
    """Provider configuration is missing or invalid. Never retried."""


class FetchError(PhraseloopError):
    """A provider exhausted every language/mode fallback without captions."""


class NoSubtitlesError(FetchError):
    """No captions are available for a video after all fallbacks."""


class CacheIOError(PhraseloopError, OSError):
    """A cache file could not be read or written.

    Raised inside phraseloop.cache only; it never crosses the cache boundary.
    """
