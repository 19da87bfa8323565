"""
Subtitle provider backed by yt-dlp.

yt-dlp is used only to read video info (caption track listings and the
video's language); the chosen WebVTT track is then downloaded with httpx
and parsed locally.

Info extraction runs either through a yt-dlp executable (when YT_DLP_PATH
is configured) or in-process through the yt_dlp module with the
anti-blocking options below:
    1. Browser Impersonation: TLS fingerprint spoofing to mimic Chrome
    2. Client Source Spoofing: non-web player client avoids the PO Token requirement
    3. Retry Logic: exponential backoff with jitter for transient errors
"""

import asyncio
import json
import logging
import random
import time
from typing import Any

import httpx
import yt_dlp
from starlette.concurrency import run_in_threadpool
from yt_dlp.networking.impersonate import ImpersonateTarget

from phraseloop.config import Settings
from phraseloop.errors import FetchError
from phraseloop.models import Phrase, SubtitleFetchOptions
from phraseloop.parser import parse_vtt
from phraseloop.providers.base import SubtitleProvider
from phraseloop.utils import watch_url

logger = logging.getLogger(__name__)

# Retry configuration for transient errors
RETRY_BACKOFF_BASE = 1  # Base delay in seconds
RETRY_BACKOFF_MAX = 4  # Maximum delay in seconds
RETRY_JITTER = 0.5  # Jitter factor to avoid thundering herd

TRANSIENT_STATUS_CODES = ("429", "503", "502", "504")
TRANSIENT_PATTERNS = (
    "too many requests",
    "rate limit",
    "timeout",
    "timed out",
    "connection refused",
    "connection reset",
    "connection error",
    "network error",
    "temporary",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
)


def is_transient_error(error: Exception) -> bool:
    """
    Determine if an extraction error is transient and worth retrying.

    Transient errors include HTTP 429/5xx responses and network timeouts
    or connection failures.
    """
    error_message = str(error).lower()
    if any(code in error_message for code in TRANSIENT_STATUS_CODES):
        return True
    return any(pattern in error_message for pattern in TRANSIENT_PATTERNS)


def calculate_retry_delay(attempt: int) -> float:
    """
    Calculate delay with exponential backoff and jitter.

    Args:
        attempt: Current retry attempt (0-indexed)

    Returns:
        Delay in seconds before next retry: 1s, 2s, 4s (capped) plus jitter
    """
    base_delay = min(RETRY_BACKOFF_BASE * (2**attempt), RETRY_BACKOFF_MAX)
    return base_delay + random.uniform(0, RETRY_JITTER)


def build_ydl_options(config: Settings) -> dict[str, Any]:
    """
    Build yt-dlp options for an info-only extraction.

    Nothing is downloaded; subtitle URLs are read from the info dictionary.
    """
    options: dict[str, Any] = {
        "skip_download": True,
        # The 'web' client requires a PO Token; skip it entirely
        "extractor_args": {"youtube": {"player_client": ["default,-web"]}},
        "quiet": True,
        "no_warnings": True,
        "logger": logger,
        "socket_timeout": config.ytdlp_request_timeout,
    }
    if config.ytdlp_impersonate_target:
        options["impersonate"] = ImpersonateTarget.from_str(config.ytdlp_impersonate_target)
    return options


def _extract_info_in_process(video_id: str, config: Settings) -> dict[str, Any]:
    """Blocking yt-dlp extraction with retries for transient errors."""
    last_error: Exception | None = None

    for attempt in range(config.ytdlp_max_retries):
        try:
            with yt_dlp.YoutubeDL(build_ydl_options(config)) as ydl:
                info = ydl.extract_info(watch_url(video_id), download=False)
            if not info:
                raise FetchError(f"yt-dlp returned no info for video {video_id}")
            return info
        except yt_dlp.utils.YoutubeDLError as e:
            last_error = e
            if attempt < config.ytdlp_max_retries - 1 and is_transient_error(e):
                delay = calculate_retry_delay(attempt)
                logger.warning(
                    f"Transient error on attempt {attempt + 1} for video {video_id}: {e}. "
                    f"Retrying in {delay:.2f}s..."
                )
                time.sleep(delay)
            else:
                break

    raise FetchError(f"yt-dlp could not read video {video_id}: {last_error}")


async def _extract_info_with_executable(video_id: str, config: Settings) -> dict[str, Any]:
    """Run a yt-dlp executable and parse its single-JSON dump."""
    try:
        process = await asyncio.create_subprocess_exec(
            config.ytdlp_path,
            "--dump-single-json",
            "--skip-download",
            "--no-warnings",
            watch_url(video_id),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise FetchError(f"Could not run yt-dlp at {config.ytdlp_path}: {e}") from e
    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(), timeout=config.ytdlp_request_timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise FetchError(f"yt-dlp timed out for video {video_id}")

    if process.returncode != 0:
        message = stderr.decode("utf-8", errors="replace").strip()[:200]
        raise FetchError(f"yt-dlp exited with {process.returncode} for video {video_id}: {message}")

    try:
        return json.loads(stdout)
    except ValueError as e:
        raise FetchError(f"yt-dlp produced invalid JSON for video {video_id}") from e


async def fetch_video_info(video_id: str, config: Settings) -> dict[str, Any]:
    """
    Fetch the yt-dlp info dictionary for a video.

    The relevant keys are ``subtitles`` and ``automatic_captions``
    (language -> list of {ext, url}) and ``language``.

    Raises:
        FetchError: If the extractor fails
    """
    if config.ytdlp_path:
        logger.info(f"Fetching video info for {video_id} via {config.ytdlp_path}")
        return await _extract_info_with_executable(video_id, config)

    logger.info(
        f"Fetching video info for {video_id} in-process "
        f"(impersonate={config.ytdlp_impersonate_target or 'off'})"
    )
    return await run_in_threadpool(_extract_info_in_process, video_id, config)


def select_track(
    info: dict[str, Any], language: str | None
) -> list[dict[str, Any]] | None:
    """
    Pick the caption track list to use.

    Preference is ``[language or "en", "nl", "en"]``, manual before automatic
    for each language, then the first track in either collection.
    """
    subtitles = info.get("subtitles") or {}
    auto_captions = info.get("automatic_captions") or {}

    for lang in (language or "en", "nl", "en"):
        track = subtitles.get(lang) or auto_captions.get(lang)
        if isinstance(track, list) and track:
            return track

    for collection in (subtitles, auto_captions):
        for track in collection.values():
            if isinstance(track, list) and track:
                return track
    return None


class YtDlpProvider(SubtitleProvider):
    """
    Local-extractor subtitle provider.

    Args:
        config: Settings (yt-dlp path, impersonation, timeouts)
        transport: Optional httpx transport, used by tests
    """

    name = "yt-dlp"

    def __init__(self, config: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport

    async def _download_track(self, url: str) -> str:
        async with httpx.AsyncClient(
            timeout=self.config.http_timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            try:
                response = await client.get(url)
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise FetchError(f"Failed to fetch VTT: {e}") from e
        return response.text

    async def fetch_subtitles(
        self, video_id: str, options: SubtitleFetchOptions | None = None
    ) -> list[Phrase]:
        options = options or SubtitleFetchOptions()
        logger.info(f"[YtDlpProvider] Fetching subtitles for {video_id}")

        info = await fetch_video_info(video_id, self.config)

        track = select_track(info, options.requested_language)
        if track is None:
            raise FetchError(f"No subtitles found for video {video_id}")

        vtt_entry = next(
            (entry for entry in track if entry.get("ext") == "vtt" and entry.get("url")),
            None,
        )
        if vtt_entry is None:
            raise FetchError(f"VTT format not available for video {video_id}")

        vtt_content = await self._download_track(vtt_entry["url"])
        logger.info(f"[YtDlpProvider] Fetched {len(vtt_content)} characters of VTT")

        phrases = parse_vtt(vtt_content)
        if not phrases:
            raise FetchError(f"Subtitle track for video {video_id} contained no phrases")

        logger.info(f"[YtDlpProvider] Parsed {len(phrases)} phrases")
        return phrases
