"""Grok (xAI) provider implementation."""

from hydravote.providers.openai import OpenAIProvider


class GrokProvider(OpenAIProvider):
    """Grok (xAI) provider. xAI uses an OpenAI-compatible API."""

    source = "xai"
    default_model_setting = "default_model_grok"
    default_base_url = "https://api.x.ai/v1"
