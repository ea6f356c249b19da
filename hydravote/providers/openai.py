"""OpenAI provider implementation.

Also serves any OpenAI-compatible chat completions endpoint (Mistral, Groq,
DeepSeek) when the provider config carries a ``base_url``.
"""

from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, RateLimitError

from hydravote.exceptions import ProviderRateLimitError, ProviderResponseError
from hydravote.providers.base import BaseProvider, detect_image_mime, encode_image


class OpenAIProvider(BaseProvider):
    """OpenAI chat completions provider."""

    source = "openai"
    default_model_setting = "default_model_openai"
    default_base_url: Optional[str] = None

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.config.base_url or self.default_base_url,
        )

    def _build_messages(self, images: List[bytes], prompt: str) -> List[Dict[str, Any]]:
        if not images:
            return [{"role": "user", "content": prompt}]

        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        for image in images:
            content.append(
                {
                    "type": "image_url",
                    "image_url": {
                        "url": f"data:{detect_image_mime(image)};base64,{encode_image(image)}"
                    },
                }
            )
        return [{"role": "user", "content": content}]

    async def _complete(self, images: List[bytes], prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self._build_messages(images, prompt),
                max_tokens=1024,
            )
        except RateLimitError as e:
            raise ProviderRateLimitError(
                f"{self.config.name} rate limit exceeded: {e}",
                provider_id=self.provider_id,
                status_code=429,
            )

        if not response.choices:
            raise ProviderResponseError(
                f"{self.config.name} returned no choices", provider_id=self.provider_id
            )

        response_text = response.choices[0].message.content
        if not response_text or not response_text.strip():
            raise ProviderResponseError(
                f"{self.config.name} returned empty response", provider_id=self.provider_id
            )
        return response_text
