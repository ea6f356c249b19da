"""Default provider catalog."""

import logging
from typing import List, Optional

from hydravote.config import Settings, get_settings
from hydravote.database.repositories import ProviderRepository
from hydravote.providers.models import Capability, ProviderConfig

logger = logging.getLogger(__name__)


def default_provider_configs(settings: Optional[Settings] = None) -> List[ProviderConfig]:
    """Build the built-in provider list.

    Vision providers identify the item from images, text providers reason over
    the identification, and the search provider looks up sold listings.

    Args:
        settings: Settings to read model names and timeouts from

    Returns:
        Provider configurations, in stage order
    """
    settings = settings or get_settings()
    timeout = settings.provider_timeout_seconds

    return [
        ProviderConfig(
            id="openai",
            name="OpenAI",
            base_weight=1.0,
            capability=Capability.VISION,
            specialty="identification",
            kind="openai",
            model=settings.default_model_openai,
            api_key_setting="openai_api_key",
            timeout_seconds=timeout,
        ),
        ProviderConfig(
            id="anthropic",
            name="Anthropic",
            base_weight=1.0,
            capability=Capability.VISION,
            specialty="reasoning",
            kind="anthropic",
            model=settings.default_model_claude,
            api_key_setting="anthropic_api_key",
            timeout_seconds=timeout,
        ),
        ProviderConfig(
            id="google",
            name="Google Gemini",
            base_weight=1.0,
            capability=Capability.VISION,
            specialty="identification",
            kind="gemini",
            model=settings.default_model_gemini,
            api_key_setting="google_api_key",
            timeout_seconds=timeout,
        ),
        ProviderConfig(
            id="mistral",
            name="Mistral",
            base_weight=0.75,
            capability=Capability.TEXT,
            kind="openai_compatible",
            model=settings.default_model_mistral,
            base_url="https://api.mistral.ai/v1",
            api_key_setting="mistral_api_key",
            timeout_seconds=timeout,
        ),
        ProviderConfig(
            id="groq",
            name="Groq",
            base_weight=0.75,
            capability=Capability.TEXT,
            kind="openai_compatible",
            model=settings.default_model_groq,
            base_url="https://api.groq.com/openai/v1",
            api_key_setting="groq_api_key",
            timeout_seconds=min(timeout, 15.0),
        ),
        ProviderConfig(
            id="xai",
            name="xAI Grok",
            base_weight=0.80,
            capability=Capability.TEXT,
            specialty="reasoning",
            kind="grok",
            model=settings.default_model_grok,
            api_key_setting="xai_api_key",
            timeout_seconds=timeout,
        ),
        ProviderConfig(
            id="deepseek",
            name="DeepSeek",
            base_weight=0.75,
            capability=Capability.TEXT,
            specialty="reasoning",
            kind="openai_compatible",
            model=settings.default_model_deepseek,
            base_url="https://api.deepseek.com/v1",
            api_key_setting="deepseek_api_key",
            timeout_seconds=timeout,
        ),
        ProviderConfig(
            id="perplexity",
            name="Perplexity",
            base_weight=0.85,
            capability=Capability.SEARCH,
            specialty="pricing",
            kind="perplexity",
            model=settings.default_model_perplexity,
            api_key_setting="perplexity_api_key",
            timeout_seconds=timeout,
        ),
    ]


def load_provider_configs(
    repo: Optional[ProviderRepository] = None,
    settings: Optional[Settings] = None,
) -> List[ProviderConfig]:
    """Load active provider configurations.

    Providers stored in the database take precedence over the built-in catalog.

    Args:
        repo: Provider repository. If None, the built-in catalog is used.
        settings: Settings for the built-in catalog

    Returns:
        Active provider configurations
    """
    if repo is not None:
        stored = repo.get_all(active_only=True)
        if stored:
            logger.debug(f"Loaded {len(stored)} provider configs from database")
            return stored

    return [config for config in default_provider_configs(settings) if config.active]
