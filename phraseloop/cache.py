"""
On-disk JSON cache for subtitle and video-info results.

Each entry is one human-readable JSON file named
``<version>_<sanitized key>.json`` holding ``{value, createdAt, version}``.
Expiry is lazy: an entry past its TTL is deleted by the read that finds it.
Writes go through a temp file and an atomic rename, so concurrent writers
for the same key end with last-write-wins and never a torn file.

Disk access runs in the threadpool so a slow disk never stalls the event
loop. Caching is an optimization only: no method here raises to the caller.
"""

import json
import logging
import os
import re
import tempfile
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

from starlette.concurrency import run_in_threadpool

from phraseloop.config import Settings
from phraseloop.errors import CacheIOError
from phraseloop.models import (
    Phrase,
    VideoLanguageInfo,
    phrases_from_payload,
    phrases_to_payload,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Bump when the stored structure or the selection logic behind it changes,
# so stale entries are treated as absent instead of being misread
SUBTITLE_CACHE_VERSION = "v3"
VIDEO_INFO_CACHE_VERSION = "v1"

KEY_SANITIZE_PATTERN = re.compile(r"[^a-zA-Z0-9_-]")


class CacheProtocol(Protocol[T]):
    """Protocol for cache backends used by the subtitle service."""

    async def get(self, key: str) -> T | None: ...
    async def set(self, key: str, value: T) -> None: ...
    async def clear(self) -> int: ...
    async def sweep_expired(self) -> int: ...
    async def get_stats(self) -> dict[str, Any]: ...


def sanitize_key(key: str) -> str:
    """Replace every character outside [A-Za-z0-9_-] with an underscore."""
    return KEY_SANITIZE_PATTERN.sub("_", key)


def subtitle_cache_key(video_id: str, language: str | None = None) -> str:
    """
    Cache key for a phrase sequence.

    The video ID alone for auto-detected language, ``<id>_<lang>`` otherwise,
    so each language of a video is a separate entry.
    """
    if not language or language == "auto":
        return video_id
    return f"{video_id}_{language}"


class FileCache(Generic[T]):
    """
    Directory-backed cache with a schema version tag and TTL.

    Args:
        directory: Cache directory, created on first write
        ttl_seconds: Maximum entry age before it is treated as absent
        version: Schema version tag, part of every file name
        name: Label used in log messages
        dump: Converts a value to a JSON-serializable object
        load: Converts the stored JSON object back to a value
        clock: Returns the current time in seconds (injectable for tests)
    """

    def __init__(
        self,
        directory: str | Path,
        ttl_seconds: float,
        version: str,
        name: str,
        dump: Callable[[T], Any],
        load: Callable[[Any], T],
        clock: Callable[[], float] = time.time,
    ):
        self.directory = Path(directory)
        self.ttl_seconds = ttl_seconds
        self.version = version
        self.name = name
        self._dump = dump
        self._load = load
        self._clock = clock
        self._hits = 0
        self._misses = 0

    @property
    def ttl_ms(self) -> int:
        return int(self.ttl_seconds * 1000)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def path_for(self, key: str) -> Path:
        """File path backing a cache key."""
        return self.directory / f"{self.version}_{sanitize_key(key)}.json"

    def _is_expired(self, created_at: int) -> bool:
        return self._now_ms() - created_at > self.ttl_ms

    def _is_stale(self, entry: Any) -> bool:
        """True if an entry is expired, from another schema version, or malformed."""
        if not isinstance(entry, dict):
            return True
        created_at = entry.get("createdAt")
        if not isinstance(created_at, (int, float)):
            return True
        return entry.get("version") != self.version or self._is_expired(created_at)

    def _remove(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"[{self.name}] Could not delete {path.name}: {e}")

    def _read(self, key: str) -> T | None:
        path = self.path_for(key)
        if not path.exists():
            self._misses += 1
            logger.debug(f"[{self.name}] Cache miss for {key}")
            return None

        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self._misses += 1
            logger.error(f"[{self.name}] Error reading cache for {key}: {e}")
            return None

        if self._is_stale(entry):
            self._misses += 1
            logger.info(f"[{self.name}] Cache expired for {key}")
            self._remove(path)
            return None

        try:
            value = self._load(entry["value"])
        except (KeyError, TypeError, ValueError) as e:
            self._misses += 1
            logger.error(f"[{self.name}] Malformed cache value for {key}: {e}")
            return None

        self._hits += 1
        logger.info(f"[{self.name}] Cache hit for {key}")
        return value

    async def get(self, key: str) -> T | None:
        """
        Return the cached value for a key, or None.

        Expired entries and entries written under a different schema version
        are deleted and reported as a miss. Unreadable files are a miss.
        File access runs in the threadpool.
        """
        return await run_in_threadpool(self._read, key)

    def _write_entry(self, path: Path, entry: dict[str, Any]) -> None:
        """Write an entry atomically: temp file in the same directory, then rename."""
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.directory,
                prefix=f".{path.stem}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                json.dump(entry, tmp, indent=2)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise CacheIOError(f"could not write {path.name}: {e}") from e

    def _write(self, key: str, value: T) -> None:
        path = self.path_for(key)
        try:
            entry = {
                "value": self._dump(value),
                "createdAt": self._now_ms(),
                "version": self.version,
            }
            self._write_entry(path, entry)
        except (CacheIOError, TypeError, ValueError) as e:
            logger.error(f"[{self.name}] Error writing cache for {key}: {e}")
            return
        logger.info(f"[{self.name}] Cached {key}")

    async def set(self, key: str, value: T) -> None:
        """
        Store a value under a key.

        Never raises: write failures are logged and swallowed.
        """
        await run_in_threadpool(self._write, key, value)

    def _cache_files(self) -> list[Path]:
        if not self.directory.is_dir():
            return []
        return sorted(self.directory.glob("*.json"))

    def _clear(self) -> int:
        files = self._cache_files()
        for path in files:
            self._remove(path)
        logger.info(f"[{self.name}] Cleared {len(files)} cached files")
        return len(files)

    async def clear(self) -> int:
        """Delete every cache file. Returns the number of files removed."""
        return await run_in_threadpool(self._clear)

    def _sweep(self) -> int:
        cleaned = 0
        for path in self._cache_files():
            try:
                entry = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                entry = None
            if self._is_stale(entry):
                self._remove(path)
                cleaned += 1

        if cleaned:
            logger.info(f"[{self.name}] Cleaned up {cleaned} expired cache entries")
        return cleaned

    async def sweep_expired(self) -> int:
        """
        Delete expired, stale-version and unparseable entries.

        Returns:
            Number of files removed
        """
        return await run_in_threadpool(self._sweep)

    async def get_stats(self) -> dict[str, Any]:
        """Cache size, hits, misses, and hit rate."""
        size = len(await run_in_threadpool(self._cache_files))
        total = self._hits + self._misses
        return {
            "size": size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / total if total > 0 else 0,
            "ttl_seconds": self.ttl_seconds,
            "version": self.version,
        }


def build_subtitle_cache(config: Settings, **kwargs: Any) -> FileCache[list[Phrase]]:
    """Phrase cache: ``{"phrases": [...]}`` per video/language."""
    return FileCache(
        directory=config.subtitle_cache_dir,
        ttl_seconds=config.subtitle_cache_ttl,
        version=SUBTITLE_CACHE_VERSION,
        name="SubtitleCache",
        dump=phrases_to_payload,
        load=phrases_from_payload,
        **kwargs,
    )


def build_video_info_cache(config: Settings, **kwargs: Any) -> FileCache[VideoLanguageInfo]:
    """Video language info cache, keyed by video ID."""
    return FileCache(
        directory=config.video_info_cache_dir,
        ttl_seconds=config.video_info_cache_ttl,
        version=VIDEO_INFO_CACHE_VERSION,
        name="VideoInfoCache",
        dump=VideoLanguageInfo.to_dict,
        load=VideoLanguageInfo.from_dict,
        **kwargs,
    )
