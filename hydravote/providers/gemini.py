"""Gemini (Google) provider implementation."""

from typing import List

from google import genai
from google.genai import errors, types

from hydravote.exceptions import ProviderRateLimitError, ProviderResponseError
from hydravote.providers.base import BaseProvider, detect_image_mime


class GeminiProvider(BaseProvider):
    """Gemini provider with vision support."""

    source = "gemini"
    default_model_setting = "default_model_gemini"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.client = genai.Client(api_key=self.api_key)

    async def _complete(self, images: List[bytes], prompt: str) -> str:
        contents = [
            types.Part.from_bytes(data=image, mime_type=detect_image_mime(image))
            for image in images
        ]
        contents.append(prompt)

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=contents,
            )
        except errors.APIError as e:
            if e.code == 429:
                raise ProviderRateLimitError(
                    f"Gemini rate limit exceeded: {e}", provider_id=self.provider_id, status_code=429
                )
            raise

        # Check if response was blocked by safety filters
        if response.prompt_feedback and response.prompt_feedback.block_reason:
            raise ProviderResponseError(
                f"Gemini blocked response due to safety filters: {response.prompt_feedback.block_reason}",
                provider_id=self.provider_id,
            )

        if not response.candidates:
            raise ProviderResponseError("Gemini returned no candidates", provider_id=self.provider_id)

        candidate = response.candidates[0]
        if candidate.finish_reason and "SAFETY" in str(candidate.finish_reason):
            raise ProviderResponseError(
                f"Gemini candidate blocked by safety: {candidate.finish_reason}",
                provider_id=self.provider_id,
            )

        response_text = response.text
        if not response_text or not response_text.strip():
            raise ProviderResponseError("Gemini returned empty response", provider_id=self.provider_id)
        return response_text
