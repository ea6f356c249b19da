"""Weekly aggregation of scored votes into provider scorecards and rankings."""

import logging
import statistics
from collections import defaultdict
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from hydravote.benchmarks.models import (
    BenchmarkRecord,
    CategoryScore,
    CompetitiveRanking,
    RankEntry,
    WeeklyScorecard,
)
from hydravote.exceptions import CalibrationError

logger = logging.getLogger(__name__)

# Composite score blend
PRICE_ACCURACY_WEIGHT = 0.4
DECISION_WEIGHT = 0.2
SPEED_WEIGHT = 0.2
COVERAGE_WEIGHT = 0.2

# Average latency is divided by this to give speed-score points lost
SPEED_MS_PER_POINT = 150.0
# Number of weekly votes at which the coverage score saturates
COVERAGE_TARGET_VOTES = 10

# Minimum graded votes for a category to count toward best/worst and leaders
MIN_CATEGORY_VOTES = 3


def percentile(sorted_values: Sequence[float], fraction: float) -> float:
    """Floor-index percentile of an ascending list.

    Picks the element at index int(n * fraction), capped at the last one, so
    p95 of 20 values is the maximum. An empty list gives 0.
    """
    if not sorted_values:
        return 0.0
    index = min(len(sorted_values) - 1, int(len(sorted_values) * fraction))
    return sorted_values[index]


def _rate(count: int, total: int) -> float:
    return round(count / total, 4) if total else 0.0


def _category_scores(records: Sequence[BenchmarkRecord]) -> Dict[str, CategoryScore]:
    by_category: Dict[str, List[BenchmarkRecord]] = defaultdict(list)
    for record in records:
        by_category[record.category].append(record)

    stats = {}
    for category in sorted(by_category):
        group = by_category[category]
        errors = [r.price_error_percent for r in group]
        stats[category] = {
            "votes": len(group),
            "mean_absolute_percent_error": round(statistics.fmean(errors), 4),
            "accuracy_rate_10": _rate(sum(1 for e in errors if e <= 10), len(group)),
            "accuracy_rate_25": _rate(sum(1 for e in errors if e <= 25), len(group)),
            "avg_response_ms": round(statistics.fmean(r.latency_ms for r in group), 2),
        }

    eligible = [c for c, s in stats.items() if s["votes"] >= MIN_CATEGORY_VOTES]
    best = worst = None
    if len(eligible) >= 2:
        best = min(eligible, key=lambda c: (stats[c]["mean_absolute_percent_error"], c))
        worst = max(eligible, key=lambda c: (stats[c]["mean_absolute_percent_error"], c))

    return {
        category: CategoryScore(**values, is_best=category == best, is_worst=category == worst)
        for category, values in stats.items()
    }


def aggregate_provider_week(
    records: Sequence[BenchmarkRecord], week_start: date, week_end: date
) -> Optional[WeeklyScorecard]:
    """Build one provider's scorecard for a week.

    Args:
        records: All of the provider's scored votes for the week
        week_start: First day of the week
        week_end: Day after the last day of the week

    Returns:
        Scorecard, or None if none of the votes has a ground truth yet

    Raises:
        CalibrationError: If the records belong to more than one provider
    """
    if not records:
        return None

    graded = [r for r in records if r.has_ground_truth]
    if not graded:
        return None

    first = records[0]
    if any(r.provider_id != first.provider_id for r in records):
        raise CalibrationError(f"Records for week {week_start} mix several providers")

    errors = [r.price_error_percent for r in graded]
    abs_errors = [r.price_error for r in graded]
    latencies = sorted(r.latency_ms for r in records)

    mape = statistics.fmean(errors)
    correct = sum(1 for r in graded if r.decision_correct)
    decision_accuracy = _rate(correct, len(graded))
    avg_response_ms = statistics.fmean(latencies)

    price_accuracy_score = round(max(0.0, 100 - mape), 2)
    decision_score = round(decision_accuracy * 100, 2)
    speed_score = round(max(0.0, 100 - avg_response_ms / SPEED_MS_PER_POINT), 2)
    coverage_score = round(min(100.0, len(records) / COVERAGE_TARGET_VOTES * 100), 2)
    composite = (
        PRICE_ACCURACY_WEIGHT * price_accuracy_score
        + DECISION_WEIGHT * decision_score
        + SPEED_WEIGHT * speed_score
        + COVERAGE_WEIGHT * coverage_score
    )

    return WeeklyScorecard(
        provider_id=first.provider_id,
        provider_name=first.provider_name,
        week_start=week_start,
        week_end=week_end,
        total_votes=len(records),
        successful_votes=len(graded),
        mean_absolute_error=round(statistics.fmean(abs_errors), 4),
        mean_absolute_percent_error=round(mape, 4),
        median_error_percent=round(statistics.median(errors), 4),
        accuracy_rate_10=_rate(sum(1 for e in errors if e <= 10), len(graded)),
        accuracy_rate_25=_rate(sum(1 for e in errors if e <= 25), len(graded)),
        over_predictions=sum(1 for r in graded if r.direction == "over"),
        under_predictions=sum(1 for r in graded if r.direction == "under"),
        accurate_predictions=sum(1 for r in graded if r.direction == "accurate"),
        correct_decisions=correct,
        decision_accuracy=decision_accuracy,
        avg_response_ms=round(avg_response_ms, 2),
        p50_response_ms=int(percentile(latencies, 0.5)),
        p95_response_ms=int(percentile(latencies, 0.95)),
        category_scores=_category_scores(graded),
        price_accuracy_score=price_accuracy_score,
        decision_score=decision_score,
        speed_score=speed_score,
        coverage_score=coverage_score,
        composite_score=round(max(0.0, min(100.0, composite)), 2),
    )


def aggregate_week(
    records: Sequence[BenchmarkRecord], week_start: date, week_end: date
) -> Tuple[List[WeeklyScorecard], List[str]]:
    """Build scorecards for every provider with votes in a week.

    A provider whose votes cannot be aggregated is skipped without affecting
    the others.

    Args:
        records: Scored votes of all providers for the week
        week_start: First day of the week
        week_end: Day after the last day of the week

    Returns:
        Tuple of (scorecards ordered by provider ID, skipped provider IDs)
    """
    by_provider: Dict[str, List[BenchmarkRecord]] = defaultdict(list)
    for record in records:
        by_provider[record.provider_id].append(record)

    scorecards = []
    skipped = []
    for provider_id in sorted(by_provider):
        try:
            scorecard = aggregate_provider_week(by_provider[provider_id], week_start, week_end)
        except Exception as e:
            logger.error(f"Failed to aggregate {provider_id} for week {week_start}: {e}")
            skipped.append(provider_id)
            continue

        if scorecard is None:
            logger.info(f"No ground truth for {provider_id} in week {week_start}, skipping")
            skipped.append(provider_id)
            continue
        scorecards.append(scorecard)

    return scorecards, skipped


def _rank(
    scorecards: Sequence[WeeklyScorecard],
    metric: Callable[[WeeklyScorecard], float],
    descending: bool,
    previous: Optional[Sequence[RankEntry]],
) -> List[RankEntry]:
    """Sort scorecards by a metric (ties by provider ID) and compute rank deltas."""
    ordered = sorted(
        scorecards,
        key=lambda s: (-metric(s) if descending else metric(s), s.provider_id),
    )
    previous_ranks = {e.provider_id: e.rank for e in previous} if previous is not None else None

    entries = []
    for rank, scorecard in enumerate(ordered, start=1):
        delta = None
        if previous_ranks is not None and scorecard.provider_id in previous_ranks:
            delta = previous_ranks[scorecard.provider_id] - rank
        entries.append(
            RankEntry(
                rank=rank,
                provider_id=scorecard.provider_id,
                provider_name=scorecard.provider_name,
                score=metric(scorecard),
                delta=delta,
            )
        )
    return entries


def _category_leaders(scorecards: Sequence[WeeklyScorecard]) -> Dict[str, RankEntry]:
    leaders: Dict[str, RankEntry] = {}
    categories = sorted({c for s in scorecards for c in s.category_scores})

    for category in categories:
        candidates = [
            s for s in scorecards
            if category in s.category_scores
            and s.category_scores[category].votes >= MIN_CATEGORY_VOTES
        ]
        if not candidates:
            continue
        leader = min(
            candidates,
            key=lambda s: (s.category_scores[category].mean_absolute_percent_error, s.provider_id),
        )
        leaders[category] = RankEntry(
            rank=1,
            provider_id=leader.provider_id,
            provider_name=leader.provider_name,
            score=leader.category_scores[category].mean_absolute_percent_error,
        )
    return leaders


def build_competitive_rankings(
    scorecards: Sequence[WeeklyScorecard],
    week_start: date,
    previous: Optional[CompetitiveRanking] = None,
) -> CompetitiveRanking:
    """Rank providers for a week.

    Args:
        scorecards: The week's scorecards
        week_start: First day of the week
        previous: Stored ranking of the prior week. If None, every delta is None.

    Returns:
        Competitive ranking
    """
    return CompetitiveRanking(
        week_start=week_start,
        overall=_rank(
            scorecards, lambda s: s.composite_score, True,
            previous.overall if previous else None,
        ),
        price_accuracy=_rank(
            scorecards, lambda s: s.mean_absolute_percent_error, False,
            previous.price_accuracy if previous else None,
        ),
        speed=_rank(
            scorecards, lambda s: s.avg_response_ms, False,
            previous.speed if previous else None,
        ),
        decision_accuracy=_rank(
            scorecards, lambda s: s.decision_accuracy, True,
            previous.decision_accuracy if previous else None,
        ),
        category_leaders=_category_leaders(scorecards),
    )
