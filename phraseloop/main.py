"""
FastAPI application for phraseloop.

Serves caption phrases, caption language info and dictionary lookups to
the looped-listening player UI.
"""

import asyncio
import logging
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from enum import Enum

import structlog
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from phraseloop import __version__
from phraseloop.config import settings
from phraseloop.dictionary import DictionaryClient, DictionaryLookupError
from phraseloop.errors import ConfigError, NoSubtitlesError, PhraseloopError
from phraseloop.parser import phrases_to_srt, phrases_to_text, phrases_to_vtt
from phraseloop.service import SubtitleService
from phraseloop.utils import extract_video_id, sanitize_for_log

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)
logger = structlog.get_logger()


def get_remote_address_proxied(request: Request) -> str:
    """Get client address, considering X-Forwarded-For header."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


limiter = Limiter(key_func=get_remote_address_proxied)

_app_start_time = time.time()

# Sliding-window rate limiting per client IP
_rate_limit_tracker: defaultdict[str, list[float]] = defaultdict(list)
_rate_limit_lock = asyncio.Lock()
_MAX_TRACKED_IPS = 10000


async def _check_rate_limit(ip: str, max_requests: int, window_seconds: int = 60) -> bool:
    """
    Check if the IP has exceeded the rate limit.

    Returns:
        True if request is allowed, False if rate limit exceeded
    """
    async with _rate_limit_lock:
        now = time.time()
        _rate_limit_tracker[ip] = [t for t in _rate_limit_tracker[ip] if now - t < window_seconds]
        if len(_rate_limit_tracker[ip]) >= max_requests:
            return False
        _rate_limit_tracker[ip].append(now)

        # Bound memory: drop idle IPs once too many are tracked
        if len(_rate_limit_tracker) > _MAX_TRACKED_IPS:
            inactive_ips = [
                tracked_ip
                for tracked_ip, timestamps in _rate_limit_tracker.items()
                if all(now - t > window_seconds for t in timestamps)
            ]
            for inactive_ip in inactive_ips[: max(1, _MAX_TRACKED_IPS // 10)]:
                del _rate_limit_tracker[inactive_ip]

        return True


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency applying the per-IP limit when enabled."""
    if not settings.rate_limit_enabled:
        return
    client_ip = get_remote_address_proxied(request)
    if not await _check_rate_limit(client_ip, settings.rate_limit_per_minute):
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded. Maximum {settings.rate_limit_per_minute} requests per minute.",
        )


# ============================================================================
# Dependencies
# ============================================================================

_service: SubtitleService | None = None
_dictionary: DictionaryClient | None = None


def get_service() -> SubtitleService:
    """Process-wide SubtitleService built from the global settings."""
    global _service
    if _service is None:
        _service = SubtitleService.from_settings(settings)
    return _service


def get_dictionary() -> DictionaryClient:
    """Process-wide DictionaryClient, so its lookup cache is shared."""
    global _dictionary
    if _dictionary is None:
        _dictionary = DictionaryClient(settings)
    return _dictionary


def resolve_video_id(raw: str) -> str:
    """
    Normalize a videoId query value.

    YouTube URLs are reduced to their ID; any other non-blank value is used
    as given. Only a blank value is rejected with 400.
    """
    value = raw.strip()
    if not value:
        raise HTTPException(status_code=400, detail="Missing videoId")

    video_id = extract_video_id(value)
    if video_id is None:
        logger.info(f"Using videoId as given: {sanitize_for_log(value)}")
        return value
    return video_id


# ============================================================================
# Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the configuration banner and sweep expired cache entries."""
    logger.info("=" * 60)
    logger.info("phraseloop starting")
    logger.info("=" * 60)
    logger.info(f"  - Subtitle provider: {settings.subtitle_provider}")
    logger.info(f"  - yt-dlp: {settings.ytdlp_path or 'in-process module'}")
    logger.info(f"  - Caching: {'enabled' if settings.cache_enabled else 'disabled'}")
    logger.info(f"  - Subtitle cache: {settings.subtitle_cache_dir} (TTL {settings.subtitle_cache_ttl}s)")
    logger.info(f"  - Video info cache: {settings.video_info_cache_dir} (TTL {settings.video_info_cache_ttl}s)")
    logger.info(f"  - Rate Limiting: {'enabled' if settings.rate_limit_enabled else 'disabled'}")
    logger.info("=" * 60)

    if settings.cache_enabled and settings.cache_sweep_on_startup:
        removed = await get_service().sweep_caches()
        logger.info(f"Startup cache sweep removed {removed} entries")

    yield


app = FastAPI(
    title="phraseloop",
    description="Caption phrases for looped listening practice",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


def configure_middleware():
    """Configure middleware based on settings."""
    from fastapi.middleware.cors import CORSMiddleware

    from phraseloop.middleware import RequestIdMiddleware, SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    if settings.enable_security_headers:
        app.add_middleware(SecurityHeadersMiddleware)

    if settings.rate_limit_enabled:
        app.state.limiter = limiter
        app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


configure_middleware()


# ============================================================================
# Pydantic Models
# ============================================================================


class CamelModel(BaseModel):
    """Base model serialized with the camelCase keys the player expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PhraseModel(CamelModel):
    """One caption phrase."""

    id: int = Field(..., description="Zero-based position in the sequence")
    start_sec: float = Field(..., description="Start time in seconds")
    end_sec: float = Field(..., description="End time in seconds")
    text: str = Field(..., description="Plain caption text")


class SubtitlesResponse(CamelModel):
    """Response model for subtitle data in JSON format."""

    phrases: list[PhraseModel]

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "phrases": [
                    {"id": 0, "startSec": 0.115, "endSec": 2.423, "text": "Hello world"},
                ]
            }
        },
    )


class SubtitleTextResponse(CamelModel):
    """Response model for subtitle data in TEXT format."""

    video_id: str
    language: str
    text: str


class VideoInfoResponse(CamelModel):
    """Caption language information for a video."""

    video_id: str
    original_language: str | None = None
    available_languages: list[str] = Field(default_factory=list)
    has_manual_captions: bool = False
    has_auto_captions: bool = False


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Human-readable error message")


class HealthResponse(BaseModel):
    """Response model for enhanced health check."""

    status: str
    service: str
    version: str
    timestamp: float
    uptime_seconds: float
    provider: str
    cache: dict = Field(default_factory=dict)
    rate_limiting: dict = Field(default_factory=dict)


class OutputFormat(str, Enum):
    """Supported output formats for /subtitles."""

    json = "json"
    vtt = "vtt"
    srt = "srt"
    text = "text"


# ============================================================================
# Exception Handlers
# ============================================================================


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@app.exception_handler(NoSubtitlesError)
async def no_subtitles_handler(request: Request, exc: NoSubtitlesError):
    return error_response(404, str(exc) or "No subtitles found")


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    logger.error(f"Provider configuration error: {exc}")
    return error_response(500, f"Server misconfiguration: {exc}")


@app.exception_handler(DictionaryLookupError)
async def dictionary_error_handler(request: Request, exc: DictionaryLookupError):
    logger.error(str(exc))
    return error_response(500, "Failed to fetch definition")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report which query parameter was missing or malformed."""
    errors = exc.errors()
    logger.warning(f"Validation error: {errors}")

    details = []
    for error in errors:
        loc = " -> ".join(str(x) for x in error["loc"])
        details.append(f"{loc}: {error['msg']}")
    return error_response(400, "Invalid request parameters: " + "; ".join(details))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {exc!r}")
    return error_response(500, "Internal server error")


# ============================================================================
# API Endpoints
# ============================================================================


@app.get(
    "/subtitles",
    response_model=None,
    responses={
        200: {"description": "Subtitles retrieved", "model": SubtitlesResponse},
        400: {"model": ErrorResponse, "description": "Missing or invalid parameters"},
        404: {"model": ErrorResponse, "description": "No subtitles for this video"},
        429: {"model": ErrorResponse, "description": "Too many requests"},
        500: {"model": ErrorResponse, "description": "Unexpected or upstream failure"},
    },
    summary="Caption phrases for a video",
    dependencies=[Depends(enforce_rate_limit)],
)
async def get_subtitles(
    video_id: str = Query(..., alias="videoId", min_length=1, max_length=500),
    lang: str = Query(
        "auto",
        pattern=r"^(auto|[a-zA-Z]{2,3}(-[a-zA-Z0-9]{2,8})*)$",
        max_length=20,
        description="Caption language code, or 'auto' for the video's original language",
    ),
    format: OutputFormat = Query(OutputFormat.json, description="json, vtt, srt, or text"),
    service: SubtitleService = Depends(get_service),
) -> SubtitlesResponse | SubtitleTextResponse | PlainTextResponse:
    """
    Return the caption phrases for a video.

    **Example Usage:**
    ```bash
    curl "http://localhost:8000/subtitles?videoId=dQw4w9WgXcQ&lang=auto"
    curl "http://localhost:8000/subtitles?videoId=dQw4w9WgXcQ&lang=en&format=srt"
    ```
    """
    resolved_id = resolve_video_id(video_id)
    logger.info(f"Fetching subtitles for {resolved_id} (lang={lang})")

    try:
        phrases = await service.get_subtitles(resolved_id, lang)
    except PhraseloopError:
        raise
    except Exception as e:
        logger.error(f"Error fetching subtitles for {resolved_id}: {e!r}")
        return error_response(500, "Failed to fetch subtitles")

    if format == OutputFormat.vtt:
        return PlainTextResponse(phrases_to_vtt(phrases), media_type="text/vtt")
    if format == OutputFormat.srt:
        return PlainTextResponse(phrases_to_srt(phrases), media_type="application/x-subrip")
    if format == OutputFormat.text:
        return SubtitleTextResponse(video_id=resolved_id, language=lang, text=phrases_to_text(phrases))

    return SubtitlesResponse(
        phrases=[
            PhraseModel(id=p.id, start_sec=p.start_sec, end_sec=p.end_sec, text=p.text)
            for p in phrases
        ]
    )


@app.get(
    "/video-info",
    response_model=VideoInfoResponse,
    responses={400: {"model": ErrorResponse, "description": "Missing or invalid videoId"}},
    summary="Caption language information for a video",
    dependencies=[Depends(enforce_rate_limit)],
)
async def get_video_info(
    video_id: str = Query(..., alias="videoId", min_length=1, max_length=500),
    service: SubtitleService = Depends(get_service),
) -> VideoInfoResponse:
    """
    Return the video's original language and available caption languages.

    Detection failures produce an empty result rather than an error.
    """
    resolved_id = resolve_video_id(video_id)
    info = await service.get_video_info(resolved_id)
    return VideoInfoResponse(
        video_id=resolved_id,
        original_language=info.original_language,
        available_languages=info.available_languages,
        has_manual_captions=info.has_manual_captions,
        has_auto_captions=info.has_auto_captions,
    )


@app.get(
    "/dictionary",
    responses={
        400: {"model": ErrorResponse, "description": "Missing word"},
        500: {"model": ErrorResponse, "description": "Dictionary service failure"},
    },
    summary="Look up an English word",
    dependencies=[Depends(enforce_rate_limit)],
)
async def lookup_word(
    word: str = Query(..., min_length=1, max_length=100),
    dictionary: DictionaryClient = Depends(get_dictionary),
) -> dict:
    """Proxy a word lookup to the Free Dictionary API."""
    return await dictionary.lookup(word)


@app.get("/", summary="Simple health check")
async def root() -> dict[str, str]:
    """Simple health check endpoint."""
    return {"status": "healthy", "service": "phraseloop", "version": __version__}


@app.get("/health", response_model=HealthResponse, summary="Enhanced health check")
async def health(service: SubtitleService = Depends(get_service)) -> HealthResponse:
    """Service status, uptime, and cache statistics."""
    if settings.cache_enabled:
        cache_stats = {
            "subtitles": await service.subtitle_cache.get_stats(),
            "video_info": await service.video_info_cache.get_stats(),
        }
    else:
        cache_stats = {"enabled": False}

    return HealthResponse(
        status="healthy",
        service="phraseloop",
        version=__version__,
        timestamp=time.time(),
        uptime_seconds=time.time() - _app_start_time,
        provider=settings.subtitle_provider,
        cache=cache_stats,
        rate_limiting={
            "enabled": settings.rate_limit_enabled,
            "per_minute": settings.rate_limit_per_minute,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
