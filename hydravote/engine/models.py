"""Models for votes and consensus results."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from hydravote.providers.models import Capability, RawPayload

Decision = Literal["BUY", "SELL"]

FALLBACK_ITEM_NAME = "Unknown Item"
DEFAULT_CATEGORY = "general"


class QualityTier(str, Enum):
    """How much evidence a consensus rests on."""

    OPTIMAL = "OPTIMAL"
    DEGRADED = "DEGRADED"
    FALLBACK = "FALLBACK"


class ModelVote(BaseModel):
    """One provider's contribution to one analysis."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    provider_name: str
    item_name: str = ""
    estimated_value: float = Field(..., ge=0.0)
    decision: Decision
    confidence: float = Field(..., ge=0.0, le=1.0)
    latency_ms: int = Field(0, ge=0)
    weight: float = Field(..., ge=0.0, description="Effective weight used in consensus")
    stage: Capability
    category: Optional[str] = None
    raw_response: Optional[RawPayload] = None


class ConsensusMetrics(BaseModel):
    """Agreement statistics behind a consensus."""

    model_config = ConfigDict(frozen=True)

    avg_confidence: float = 0.0
    decision_agreement: float = Field(0.0, ge=0.0, le=1.0)
    value_agreement: float = Field(0.0, ge=0.0, le=1.0)
    participation_rate: float = Field(0.0, ge=0.0, le=1.0)
    buy_weight: float = 0.0
    sell_weight: float = 0.0
    total_weight: float = 0.0


class ConsensusResult(BaseModel):
    """Weighted consensus over a vote set."""

    model_config = ConfigDict(frozen=True)

    item_name: str
    estimated_value: float = Field(..., ge=0.0)
    decision: Decision
    confidence: int = Field(..., ge=0, le=100)
    total_votes: int = Field(..., ge=0)
    quality: QualityTier
    category: str = DEFAULT_CATEGORY
    metrics: ConsensusMetrics = Field(default_factory=ConsensusMetrics)


class ConsensusOutcome(BaseModel):
    """Everything produced by one run of the pipeline."""

    model_config = ConfigDict(frozen=True)

    analysis_id: str
    consensus: ConsensusResult
    votes: List[ModelVote] = Field(default_factory=list)
    created_at: datetime
    processing_time_ms: int = 0
    stage_counts: Dict[str, int] = Field(default_factory=dict)
    tiebreaker_triggered: bool = False
