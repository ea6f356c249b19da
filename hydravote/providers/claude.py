"""Claude (Anthropic) provider implementation."""

from typing import List

from anthropic import AsyncAnthropic, RateLimitError

from hydravote.exceptions import ProviderRateLimitError, ProviderResponseError
from hydravote.providers.base import BaseProvider, detect_image_mime, encode_image


class ClaudeProvider(BaseProvider):
    """Claude provider with vision support."""

    source = "anthropic"
    default_model_setting = "default_model_claude"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.client = AsyncAnthropic(api_key=self.api_key)

    async def _complete(self, images: List[bytes], prompt: str) -> str:
        content = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": detect_image_mime(image),
                    "data": encode_image(image),
                },
            }
            for image in images
        ]
        content.append({"type": "text", "text": prompt})

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=1024,
                messages=[{"role": "user", "content": content}],
            )
        except RateLimitError as e:
            raise ProviderRateLimitError(
                f"Claude rate limit exceeded: {e}", provider_id=self.provider_id, status_code=429
            )

        # Extract response text
        response_text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not response_text.strip():
            raise ProviderResponseError("Claude returned empty response", provider_id=self.provider_id)
        return response_text
