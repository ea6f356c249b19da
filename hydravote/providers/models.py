"""Models for provider configuration, requests and responses."""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field


class Capability(str, Enum):
    """Which stage a provider participates in."""

    VISION = "vision"
    TEXT = "text"
    SEARCH = "search"


class ProviderConfig(BaseModel):
    """Static configuration for one AI provider."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable provider identifier")
    name: str = Field(..., description="Display name")
    base_weight: float = Field(1.0, ge=0.0, description="Static trust multiplier")
    capability: Capability
    specialty: Optional[str] = Field(None, description="e.g. pricing, identification, reasoning")
    active: bool = True

    # Adapter wiring
    kind: Literal["anthropic", "openai", "openai_compatible", "grok", "perplexity", "gemini"]
    model: Optional[str] = Field(None, description="Model name. If None, uses config default.")
    base_url: Optional[str] = None
    api_key_setting: str = Field(..., description="Settings attribute holding the API key")
    timeout_seconds: float = Field(30.0, gt=0.0)


class RawPayload(BaseModel):
    """Provider-specific raw response, opaque outside the adapter that produced it."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(..., description="Adapter family that produced the payload")
    data: Dict[str, Any] = Field(default_factory=dict)


class ParsedAnalysis(BaseModel):
    """Structured analysis extracted from a provider response."""

    item_name: str = ""
    estimated_value: float = Field(0.0, ge=0.0)
    decision: Literal["BUY", "SELL"] = "SELL"
    reasoning: str = ""
    category: Optional[str] = None
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    valuation_factors: List[str] = Field(default_factory=list)


class AdapterResult(BaseModel):
    """Outcome of a single provider call."""

    response: Optional[ParsedAnalysis] = None
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    latency_ms: int = Field(0, ge=0)
    raw: Optional[RawPayload] = None

    @property
    def ok(self) -> bool:
        """Whether the provider produced a usable analysis."""
        return self.response is not None


class ProviderAdapter(Protocol):
    """Anything that can turn images and a prompt into an AdapterResult."""

    async def analyze(self, images: List[bytes], prompt: str) -> AdapterResult:
        ...
