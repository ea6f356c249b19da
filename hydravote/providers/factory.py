"""Construction of provider adapters from configuration."""

from typing import Dict, Optional, Type

from hydravote.config import Settings, get_settings
from hydravote.exceptions import ConfigurationError
from hydravote.providers.base import BaseProvider
from hydravote.providers.claude import ClaudeProvider
from hydravote.providers.gemini import GeminiProvider
from hydravote.providers.grok import GrokProvider
from hydravote.providers.models import ProviderConfig
from hydravote.providers.openai import OpenAIProvider
from hydravote.providers.perplexity import PerplexityProvider

ADAPTER_CLASSES: Dict[str, Type[BaseProvider]] = {
    "anthropic": ClaudeProvider,
    "openai": OpenAIProvider,
    "openai_compatible": OpenAIProvider,
    "grok": GrokProvider,
    "perplexity": PerplexityProvider,
    "gemini": GeminiProvider,
}


def create_adapter(config: ProviderConfig, settings: Optional[Settings] = None) -> BaseProvider:
    """Create the adapter for a provider configuration.

    Args:
        config: Provider configuration
        settings: Settings holding API keys. If None, uses the global settings.

    Returns:
        Provider adapter

    Raises:
        ConfigurationError: If the provider kind is unknown, a compatible
            endpoint has no base URL, or the API key is missing
    """
    adapter_class = ADAPTER_CLASSES.get(config.kind)
    if adapter_class is None:
        raise ConfigurationError(f"Unknown provider kind '{config.kind}' for '{config.id}'")

    if config.kind == "openai_compatible" and not config.base_url:
        raise ConfigurationError(f"Provider '{config.id}' needs a base_url")

    return adapter_class(config, settings=settings)


def has_credentials(config: ProviderConfig, settings: Optional[Settings] = None) -> bool:
    """Check whether the API key for a provider is configured."""
    settings = settings or get_settings()
    return bool(getattr(settings, config.api_key_setting, None))
