"""Perplexity provider implementation for market-price search."""

from typing import Any, Dict, List, Optional, Tuple

from hydravote.providers.models import ParsedAnalysis
from hydravote.providers.openai import OpenAIProvider
from hydravote.providers.parsers import parse_search_response


class PerplexityProvider(OpenAIProvider):
    """Perplexity search provider.

    Text only: images are never sent. Responses quoting sold listings in prose
    rather than JSON are still usable, as the median quoted price is taken.
    """

    source = "perplexity"
    default_model_setting = "default_model_perplexity"
    default_base_url = "https://api.perplexity.ai"

    def _build_messages(self, images: List[bytes], prompt: str) -> List[Dict[str, Any]]:
        return [
            {
                "role": "system",
                "content": "You are a market researcher. Cite recent sold prices for the item.",
            },
            {"role": "user", "content": prompt},
        ]

    def _parse_response(self, text: str) -> Tuple[Optional[ParsedAnalysis], Optional[Dict[str, Any]]]:
        return parse_search_response(text)
