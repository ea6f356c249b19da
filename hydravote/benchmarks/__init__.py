"""Provider benchmarking against ground truth."""

from hydravote.benchmarks.models import (
    BenchmarkRecord,
    CalibrationReport,
    CategoryScore,
    CompetitiveRanking,
    DynamicWeightSet,
    RankEntry,
    WeeklyScorecard,
)
from hydravote.benchmarks.scorer import score_vote
from hydravote.benchmarks.aggregator import (
    aggregate_provider_week,
    aggregate_week,
    build_competitive_rankings,
)

__all__ = [
    "BenchmarkRecord",
    "CalibrationReport",
    "CategoryScore",
    "CompetitiveRanking",
    "DynamicWeightSet",
    "RankEntry",
    "WeeklyScorecard",
    "score_vote",
    "aggregate_provider_week",
    "aggregate_week",
    "build_competitive_rankings",
]
