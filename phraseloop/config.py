"""
Configuration module for phraseloop.

Uses pydantic-settings to load configuration from environment variables.
Provider selection and credentials are only read here; they are validated
when a provider is constructed (see phraseloop.providers.create_provider).
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DAY_SECONDS = 60 * 60 * 24


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be set either with the PHRASELOOP_ prefix
    (e.g. PHRASELOOP_CACHE_ENABLED) or, for aliased fields, by their alias.

    Environment Variables:
        HOST: Server host (default: 0.0.0.0)
        PORT: Server port (default: 8000)
        LOG_LEVEL: Logging level (default: info)
        SUBTITLE_PROVIDER: Active provider, "supadata" or "yt-dlp" (default: supadata)
        SUPADATA_API_KEY: API key for the hosted Supadata transcript service
        YT_DLP_PATH: Path to a yt-dlp executable. When unset the bundled
            yt_dlp module is used in-process.
        PHRASELOOP_YTDLP_IMPERSONATE_TARGET: Browser to impersonate for TLS
            fingerprinting (default: "chrome", empty string disables)
        PHRASELOOP_SUBTITLE_CACHE_DIR / PHRASELOOP_VIDEO_INFO_CACHE_DIR:
            On-disk cache directories
        PHRASELOOP_SUBTITLE_CACHE_TTL / PHRASELOOP_VIDEO_INFO_CACHE_TTL:
            Cache TTLs in seconds (default: 7 and 30 days)
        PHRASELOOP_RATE_LIMIT_PER_MINUTE: Requests per minute per IP (default: 60)
    """

    # ========== Server Configuration ==========

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    log_level: str = Field(default="info", alias="LOG_LEVEL")

    # ========== Provider Selection ==========

    # Kept as a plain string so an unknown value surfaces as a ConfigError
    # at provider construction instead of failing process start
    subtitle_provider: str = Field(default="supadata", alias="SUBTITLE_PROVIDER")

    # Hosted transcript API
    supadata_api_key: str | None = Field(default=None, alias="SUPADATA_API_KEY")
    supadata_base_url: str = "https://api.supadata.ai/v1"
    supadata_poll_interval: float = 1.0
    supadata_poll_attempts: int = 30

    # Local extractor
    ytdlp_path: str | None = Field(default=None, alias="YT_DLP_PATH")
    ytdlp_impersonate_target: str | None = "chrome"
    ytdlp_request_timeout: int = 120
    ytdlp_max_retries: int = 3

    # Timeout for plain HTTP calls (hosted API, track downloads, dictionary)
    http_timeout: float = 30.0

    # ========== Caching Settings ==========

    cache_enabled: bool = True
    cache_sweep_on_startup: bool = True
    subtitle_cache_dir: str = ".subtitle-cache"
    subtitle_cache_ttl: int = 7 * DAY_SECONDS
    video_info_cache_dir: str = ".video-info-cache"
    video_info_cache_ttl: int = 30 * DAY_SECONDS

    # ========== Dictionary ==========

    dictionary_endpoint: str = "https://api.dictionaryapi.dev/api/v2/entries/en/"
    dictionary_cache_ttl: int = 3600
    dictionary_cache_maxsize: int = 1000

    # ========== Security Settings ==========

    rate_limit_enabled: bool = True
    rate_limit_per_minute: int = 60
    enable_security_headers: bool = True

    model_config = SettingsConfigDict(
        env_prefix="PHRASELOOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


# Global settings instance - loaded once at process start
settings = Settings()
