"""
Word lookup passthrough to the Free Dictionary API.

Successful lookups are cached in memory for an hour, since the player
looks the same words up again and again while a phrase loops.
"""

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx
from cachetools import TTLCache

from phraseloop.config import Settings
from phraseloop.errors import PhraseloopError

logger = logging.getLogger(__name__)


class DictionaryLookupError(PhraseloopError):
    """The dictionary service failed for a reason other than an unknown word."""


def translate_url(word: str) -> str:
    """Google Translate link offered when the dictionary has no entry."""
    return f"https://translate.google.com/?sl=en&tl=en&text={quote(word)}&op=translate"


class DictionaryClient:
    """
    Client for dictionary lookups with a TTL cache of successful results.

    Args:
        config: Settings (endpoint, timeout, cache size/TTL)
        transport: Optional httpx transport, used by tests
    """

    def __init__(self, config: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport
        # cachetools.TTLCache handles TTL expiration and LRU eviction
        self._cache: TTLCache = TTLCache(
            maxsize=config.dictionary_cache_maxsize,
            ttl=config.dictionary_cache_ttl,
            timer=time.monotonic,
        )

    async def lookup(self, word: str) -> dict[str, Any]:
        """
        Look up a word.

        Returns:
            ``{"result": payload}`` on success, or
            ``{"error": "Not found", "translateUrl": ...}`` for unknown words

        Raises:
            DictionaryLookupError: On any other upstream failure
        """
        key = word.strip().lower()
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Dictionary cache hit for {key}")
            return cached

        url = f"{self.config.dictionary_endpoint}{quote(key)}"
        try:
            async with httpx.AsyncClient(
                timeout=self.config.http_timeout, transport=self._transport
            ) as client:
                response = await client.get(url)
                if response.status_code == 404:
                    return {"error": "Not found", "translateUrl": translate_url(word)}
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DictionaryLookupError(f"Dictionary lookup failed for {key}: {e}") from e

        result = {"result": payload}
        self._cache[key] = result
        return result
