"""Scoring of individual votes against ground truth."""

from typing import Any, Dict, Optional

from hydravote.benchmarks.models import BenchmarkRecord

# A prediction within this percentage of ground truth counts as accurate
ACCURATE_THRESHOLD_PERCENT = 10.0

# Ground truth at or above this price implies the item was worth buying
DEFAULT_BUY_THRESHOLD_PRICE = 2.0


def score_vote(
    row: Dict[str, Any], buy_threshold_price: float = DEFAULT_BUY_THRESHOLD_PRICE
) -> BenchmarkRecord:
    """Score one vote against its analysis' ground truth.

    Error fields are only filled in when the ground truth is positive.

    Args:
        row: Vote row joined with the analysis (see VoteRepository.get_for_benchmark)
        buy_threshold_price: Price at or above which BUY is the correct decision

    Returns:
        Benchmark record
    """
    estimated_value = float(row["estimated_value"] or 0.0)
    ground_truth = row.get("ground_truth_price")

    price_error = None
    price_error_percent = None
    direction = None
    decision_correct = None

    if ground_truth is not None and ground_truth > 0:
        price_error = abs(estimated_value - ground_truth)
        price_error_percent = price_error / ground_truth * 100

        if price_error_percent <= ACCURATE_THRESHOLD_PERCENT:
            direction = "accurate"
        elif estimated_value > ground_truth:
            direction = "over"
        else:
            direction = "under"

        should_buy = ground_truth >= buy_threshold_price
        decision_correct = (row["decision"] == "BUY") == should_buy

    return BenchmarkRecord(
        analysis_id=row["analysis_id"],
        provider_id=row["provider_id"],
        provider_name=row.get("provider_name") or row["provider_id"],
        stage=row.get("stage") or "",
        estimated_value=estimated_value,
        decision=row["decision"],
        confidence=float(row.get("confidence") or 0.0),
        latency_ms=int(row.get("latency_ms") or 0),
        category=row.get("category") or "general",
        ground_truth_price=ground_truth,
        price_error=price_error,
        price_error_percent=price_error_percent,
        direction=direction,
        decision_correct=decision_correct,
    )


def accuracy_summary(mape: Optional[float], accuracy_rate_10: float, total: int) -> str:
    """Human-readable one-line accuracy summary for logs and the CLI."""
    if mape is None or total == 0:
        return "No ground truth available"
    return (
        f"MAPE {mape:.1f}%, {accuracy_rate_10 * 100:.0f}% within 10% "
        f"across {total} graded votes"
    )
