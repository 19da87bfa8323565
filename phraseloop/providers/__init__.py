"""
Subtitle provider registry and selector.

``create_provider`` maps configuration to a provider instance. It is the
only place provider configuration is validated.
"""

import logging

from phraseloop.config import Settings
from phraseloop.errors import ConfigError
from phraseloop.providers.base import ProviderType, SubtitleProvider
from phraseloop.providers.supadata import SupadataProvider
from phraseloop.providers.ytdlp import YtDlpProvider

logger = logging.getLogger(__name__)


def create_provider(config: Settings) -> SubtitleProvider:
    """
    Construct the configured subtitle provider.

    Args:
        config: Settings carrying the provider type and its credentials/paths

    Returns:
        A new provider instance (construction is cheap; nothing is cached)

    Raises:
        ConfigError: If the provider type is unknown, or Supadata is selected
            without an API key
    """
    try:
        provider_type = ProviderType(config.subtitle_provider)
    except ValueError:
        raise ConfigError(f"Unknown provider type: {config.subtitle_provider}") from None

    if provider_type is ProviderType.supadata:
        if not config.supadata_api_key:
            raise ConfigError("API key is required for Supadata provider (SUPADATA_API_KEY)")
        provider: SubtitleProvider = SupadataProvider(config.supadata_api_key, config)
    else:
        provider = YtDlpProvider(config)

    logger.debug(f"Using subtitle provider: {provider.name}")
    return provider


__all__ = [
    "ProviderType",
    "SubtitleProvider",
    "SupadataProvider",
    "YtDlpProvider",
    "create_provider",
]
