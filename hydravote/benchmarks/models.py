"""Models for provider benchmarking and calibration."""

from datetime import date, datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class BenchmarkRecord(BaseModel):
    """One vote scored against its analysis' ground truth."""

    model_config = ConfigDict(frozen=True)

    analysis_id: str
    provider_id: str
    provider_name: str
    stage: str
    estimated_value: float
    decision: Literal["BUY", "SELL"]
    confidence: float
    latency_ms: int = 0
    category: str = "general"
    ground_truth_price: Optional[float] = None

    # Set only when a positive ground truth exists
    price_error: Optional[float] = None
    price_error_percent: Optional[float] = None
    direction: Optional[Literal["over", "under", "accurate"]] = None
    decision_correct: Optional[bool] = None

    @property
    def has_ground_truth(self) -> bool:
        return self.price_error_percent is not None


class CategoryScore(BaseModel):
    """A provider's accuracy within one item category."""

    model_config = ConfigDict(frozen=True)

    votes: int
    mean_absolute_percent_error: Optional[float] = None
    accuracy_rate_10: float = 0.0
    accuracy_rate_25: float = 0.0
    avg_response_ms: float = 0.0
    is_best: bool = False
    is_worst: bool = False


class WeeklyScorecard(BaseModel):
    """A provider's graded performance for one Monday-Sunday week."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    provider_name: str
    week_start: date
    week_end: date

    total_votes: int = Field(..., ge=0)
    successful_votes: int = Field(..., ge=0, description="Votes with a ground truth")

    mean_absolute_error: float = 0.0
    mean_absolute_percent_error: float = 0.0
    median_error_percent: float = 0.0
    accuracy_rate_10: float = Field(0.0, ge=0.0, le=1.0)
    accuracy_rate_25: float = Field(0.0, ge=0.0, le=1.0)

    over_predictions: int = 0
    under_predictions: int = 0
    accurate_predictions: int = 0

    correct_decisions: int = 0
    decision_accuracy: float = Field(0.0, ge=0.0, le=1.0)

    avg_response_ms: float = 0.0
    p50_response_ms: int = 0
    p95_response_ms: int = 0

    category_scores: Dict[str, CategoryScore] = Field(default_factory=dict)

    price_accuracy_score: float = 0.0
    decision_score: float = 0.0
    speed_score: float = 0.0
    coverage_score: float = 0.0
    composite_score: float = Field(0.0, ge=0.0, le=100.0)


class RankEntry(BaseModel):
    """A provider's position in one ranking."""

    model_config = ConfigDict(frozen=True)

    rank: int
    provider_id: str
    provider_name: str
    score: float
    delta: Optional[int] = Field(None, description="Previous rank minus current rank; None without prior data")


class CompetitiveRanking(BaseModel):
    """Cross-provider rankings for one week."""

    model_config = ConfigDict(frozen=True)

    week_start: date
    overall: List[RankEntry] = Field(default_factory=list)
    price_accuracy: List[RankEntry] = Field(default_factory=list)
    speed: List[RankEntry] = Field(default_factory=list)
    decision_accuracy: List[RankEntry] = Field(default_factory=list)
    category_leaders: Dict[str, RankEntry] = Field(default_factory=dict)


class DynamicWeightSet(BaseModel):
    """Calibrated weight multipliers by provider id. Missing providers mean 1.0."""

    model_config = ConfigDict(frozen=True)

    multipliers: Dict[str, float] = Field(default_factory=dict)
    computed_at: Optional[datetime] = None
    weeks: List[date] = Field(default_factory=list, description="Scorecard weeks used")

    def get(self, provider_id: str, default: float = 1.0) -> float:
        return self.multipliers.get(provider_id, default)

    @property
    def is_empty(self) -> bool:
        return not self.multipliers


class CalibrationReport(BaseModel):
    """Result of one weekly calibration run."""

    week_start: date
    week_end: date
    records: int = 0
    scorecards: List[WeeklyScorecard] = Field(default_factory=list)
    ranking: Optional[CompetitiveRanking] = None
    skipped_providers: List[str] = Field(default_factory=list)
