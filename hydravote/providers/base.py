"""Base interface for AI providers."""

import asyncio
import base64
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from hydravote.config import Settings, get_settings
from hydravote.exceptions import ConfigurationError, ProviderRateLimitError
from hydravote.providers.models import AdapterResult, ParsedAnalysis, ProviderConfig, RawPayload
from hydravote.providers.parsers import parse_analysis
from hydravote.providers.prompts import ANALYSIS_INSTRUCTIONS
from hydravote.utils.helpers import async_retry

logger = logging.getLogger(__name__)

_IMAGE_SIGNATURES = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
]


def detect_image_mime(data: bytes) -> str:
    """Guess an image's mime type from its magic bytes, defaulting to JPEG."""
    for signature, mime in _IMAGE_SIGNATURES:
        if data.startswith(signature):
            return mime
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def encode_image(data: bytes) -> str:
    """Base64-encode image bytes for JSON transport."""
    return base64.b64encode(data).decode("ascii")


class BaseProvider(ABC):
    """Abstract base class for AI providers.

    Subclasses implement ``_complete`` (one raw request returning text). The
    public ``analyze`` wraps it with the per-call timeout, rate-limit retries
    and response parsing, and never raises for provider failures: a failed
    call yields an AdapterResult whose ``response`` is None.
    """

    source: str = "base"
    default_model_setting: Optional[str] = None

    def __init__(
        self,
        config: ProviderConfig,
        api_key: Optional[str] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize provider from its configuration.

        Args:
            config: Provider configuration
            api_key: API key. If None, read from the settings attribute named by the config.
            settings: Settings to use. If None, uses the global settings.

        Raises:
            ConfigurationError: If the API key or model cannot be resolved
        """
        settings = settings or get_settings()

        api_key = api_key or getattr(settings, config.api_key_setting, None)
        if not api_key:
            raise ConfigurationError(
                f"Missing API key for provider '{config.id}' "
                f"(set {config.api_key_setting.upper()})"
            )

        model = config.model
        if not model and self.default_model_setting:
            model = getattr(settings, self.default_model_setting, None)
        if not model:
            raise ConfigurationError(f"No model configured for provider '{config.id}'")

        self.config = config
        self.api_key = api_key
        self.model = model
        self.max_retries = settings.provider_max_retries

    @property
    def provider_id(self) -> str:
        return self.config.id

    @abstractmethod
    async def _complete(self, images: List[bytes], prompt: str) -> str:
        """Send one request to the provider and return its text.

        Args:
            images: Raw image bytes (may be empty)
            prompt: Full prompt including the analysis instructions

        Returns:
            Response text

        Raises:
            ProviderRateLimitError: If the provider rejected the call with HTTP 429
            Exception: Any other SDK or transport failure
        """
        pass

    def _build_analysis_prompt(self, prompt: str) -> str:
        """Prepend the shared JSON analysis instructions to the caller's prompt."""
        return f"{ANALYSIS_INSTRUCTIONS}\n{prompt}"

    def _parse_response(self, text: str) -> Tuple[Optional[ParsedAnalysis], Optional[Dict[str, Any]]]:
        return parse_analysis(text)

    async def _request(self, images: List[bytes], prompt: str) -> str:
        retrying = async_retry(
            max_retries=self.max_retries,
            delay=1.0,
            backoff=2.0,
            exceptions=(ProviderRateLimitError,),
        )(self._complete)
        return await retrying(images, prompt)

    async def analyze(self, images: List[bytes], prompt: str) -> AdapterResult:
        """Analyze an item with this provider.

        Args:
            images: Raw image bytes (ignored by text-only providers)
            prompt: Caller's prompt

        Returns:
            AdapterResult; ``response`` is None when the call failed, timed out
            or could not be parsed
        """
        started = time.perf_counter()
        full_prompt = self._build_analysis_prompt(prompt)

        try:
            text = await asyncio.wait_for(
                self._request(images, full_prompt), timeout=self.config.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"{self.config.name} timed out after {self.config.timeout_seconds:.0f}s"
            )
            return AdapterResult(latency_ms=_elapsed_ms(started))
        except Exception as e:
            logger.warning(f"{self.config.name} API error: {e}")
            return AdapterResult(latency_ms=_elapsed_ms(started))

        latency_ms = _elapsed_ms(started)
        analysis, data = self._parse_response(text)

        if analysis is None:
            logger.warning(f"Failed to parse {self.config.name} response: {text[:200]!r}")
            return AdapterResult(
                latency_ms=latency_ms,
                raw=RawPayload(source=self.source, data={"text": text[:500]}),
            )

        logger.debug(
            f"{self.config.name}: {analysis.item_name} ${analysis.estimated_value:.2f} "
            f"{analysis.decision} in {latency_ms}ms"
        )
        return AdapterResult(
            response=analysis,
            confidence=analysis.confidence or 0.0,
            latency_ms=latency_ms,
            raw=RawPayload(source=self.source, data=data or {}),
        )


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
