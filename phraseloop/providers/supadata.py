"""
Subtitle provider backed by the hosted Supadata transcript API.

Every request asks for timestamped content (``text=false``) in either
``native`` (manually authored) or ``auto`` (auto-generated) mode. Empty
results and upstream errors are recovered locally by trying the next
mode/language; only total exhaustion raises FetchError.
"""

import asyncio
import logging
from typing import Any

import httpx

from phraseloop.config import Settings
from phraseloop.errors import FetchError
from phraseloop.models import Phrase, SubtitleFetchOptions
from phraseloop.providers.base import SubtitleProvider
from phraseloop.utils import watch_url

logger = logging.getLogger(__name__)

# Tried in this order when the service cannot auto-detect a language
FALLBACK_LANGUAGES = ("nl", "en", "de", "fr", "es")

MODES = ("native", "auto")


def transform_content(payload: Any) -> list[Phrase]:
    """
    Convert a transcript payload to phrases.

    Each content item carries ``offset`` and ``duration`` in milliseconds.
    Text is copied verbatim. Items with blank text or non-numeric timing
    are dropped and ids are numbered densely over the remaining items.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("content"), list):
        logger.warning("[SupadataProvider] No content in response")
        return []

    phrases: list[Phrase] = []
    for item in payload["content"]:
        if not isinstance(item, dict):
            continue
        text = item.get("text")
        if not isinstance(text, str) or not text.strip():
            continue
        try:
            offset = float(item.get("offset") or 0)
            duration = max(float(item.get("duration") or 0), 0.0)
        except (TypeError, ValueError):
            logger.warning(f"[SupadataProvider] Skipping item with bad timing: {item!r:.100}")
            continue
        phrases.append(
            Phrase(
                id=len(phrases),
                start_sec=offset / 1000,
                end_sec=(offset + duration) / 1000,
                text=text,
            )
        )
    return phrases


class SupadataProvider(SubtitleProvider):
    """
    Hosted transcript API provider.

    Args:
        api_key: Supadata API key
        config: Settings (base URL, timeouts, job polling)
        transport: Optional httpx transport, used by tests
    """

    name = "supadata"

    def __init__(
        self,
        api_key: str,
        config: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.supadata_base_url,
            headers={"x-api-key": self.api_key},
            timeout=self.config.http_timeout,
            transport=self._transport,
        )

    async def _poll_job(self, client: httpx.AsyncClient, job_id: str) -> Any:
        """Wait for an asynchronous transcript job and return its final payload."""
        for _ in range(self.config.supadata_poll_attempts):
            await asyncio.sleep(self.config.supadata_poll_interval)
            response = await client.get(f"/transcript/{job_id}")
            response.raise_for_status()
            payload = response.json()
            status = payload.get("status") if isinstance(payload, dict) else None
            if status == "completed":
                return payload
            if status == "failed":
                logger.warning(f"[SupadataProvider] Transcript job {job_id} failed: {payload.get('error')}")
                return None
        logger.warning(f"[SupadataProvider] Transcript job {job_id} did not finish in time")
        return None

    async def _request_transcript(
        self, client: httpx.AsyncClient, video_id: str, lang: str | None, mode: str
    ) -> list[Phrase]:
        """
        One transcript request. Returns [] on empty content or upstream errors.
        """
        params: dict[str, str] = {"url": watch_url(video_id), "text": "false", "mode": mode}
        if lang:
            params["lang"] = lang

        try:
            response = await client.get("/transcript", params=params)
            response.raise_for_status()
            payload = response.json()
            if response.status_code == 202 and isinstance(payload, dict) and payload.get("jobId"):
                payload = await self._poll_job(client, payload["jobId"])
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                f"[SupadataProvider] Request failed for {video_id} (lang={lang or 'auto'}, mode={mode}): {e}"
            )
            return []

        phrases = transform_content(payload)
        logger.info(
            f"[SupadataProvider] Got {len(phrases)} phrases for {video_id} (lang={lang or 'auto'}, mode={mode})"
        )
        return phrases

    async def _fetch_language(
        self, client: httpx.AsyncClient, video_id: str, lang: str | None
    ) -> list[Phrase]:
        """Native captions first, then auto-generated."""
        for mode in MODES:
            phrases = await self._request_transcript(client, video_id, lang, mode)
            if phrases:
                return phrases
        return []

    async def fetch_subtitles(
        self, video_id: str, options: SubtitleFetchOptions | None = None
    ) -> list[Phrase]:
        options = options or SubtitleFetchOptions()
        language = options.requested_language

        async with self._client() as client:
            if language is not None:
                logger.info(f"[SupadataProvider] Fetching subtitles for {video_id} (explicit lang: {language})")
                phrases = await self._fetch_language(client, video_id, language)
                if phrases:
                    return phrases
                raise FetchError(f"No subtitles found for video {video_id} in language '{language}'")

            logger.info(f"[SupadataProvider] Fetching subtitles for {video_id} (auto-detect language)")
            phrases = await self._fetch_language(client, video_id, None)
            if phrases:
                return phrases

            for lang in FALLBACK_LANGUAGES:
                logger.info(f"[SupadataProvider] Trying language: {lang}")
                phrases = await self._fetch_language(client, video_id, lang)
                if phrases:
                    logger.info(f"[SupadataProvider] Success with language: {lang}")
                    return phrases

        raise FetchError(f"No subtitles found for video {video_id} in any supported language")
