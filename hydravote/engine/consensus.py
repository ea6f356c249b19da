"""Consensus calculation over weighted provider votes."""

import logging
import statistics
from typing import Dict, List, Optional, Sequence, Tuple

from hydravote.engine.models import (
    DEFAULT_CATEGORY,
    FALLBACK_ITEM_NAME,
    ConsensusMetrics,
    ConsensusResult,
    ModelVote,
    QualityTier,
)
from hydravote.providers.models import Capability
from hydravote.utils.helpers import normalize_name

logger = logging.getLogger(__name__)

# Number of votes at which the participation bonus saturates
DIVERSITY_SATURATION = 7

OPTIMAL_MIN_VOTES = 6
DEGRADED_MIN_VOTES = 3


def fallback_consensus() -> ConsensusResult:
    """Consensus returned when no provider produced a vote."""
    return ConsensusResult(
        item_name=FALLBACK_ITEM_NAME,
        estimated_value=0.0,
        decision="SELL",
        confidence=0,
        total_votes=0,
        quality=QualityTier.FALLBACK,
        category=DEFAULT_CATEGORY,
        metrics=ConsensusMetrics(),
    )


def determine_quality(votes: Sequence[ModelVote]) -> QualityTier:
    """Classify how much evidence a vote set provides.

    Checks are ordered: OPTIMAL needs at least 6 votes with both vision and
    text participation, DEGRADED needs at least 3 votes with vision
    participation, anything else is FALLBACK.
    """
    stages = {vote.stage for vote in votes}
    has_vision = Capability.VISION in stages
    has_text = Capability.TEXT in stages

    if len(votes) >= OPTIMAL_MIN_VOTES and has_vision and has_text:
        return QualityTier.OPTIMAL
    if len(votes) >= DEGRADED_MIN_VOTES and has_vision:
        return QualityTier.DEGRADED
    return QualityTier.FALLBACK


def _weighted_value(votes: Sequence[ModelVote]) -> float:
    """Weighted mean value over the votes that carry weight.

    Zero-weight votes are left out of the clamp range as well, so they can
    never move the result. A set without any weight values to 0.
    """
    weighted = [vote for vote in votes if vote.weight > 0]
    if not weighted:
        return 0.0

    values = [vote.estimated_value for vote in weighted]
    total_weight = sum(vote.weight for vote in weighted)
    value = sum(vote.estimated_value * vote.weight for vote in weighted) / total_weight

    # Rounding to cents must not leave the range spanned by the votes
    return min(max(round(value, 2), min(values)), max(values))


def _value_agreement(votes: Sequence[ModelVote]) -> float:
    values = [vote.estimated_value for vote in votes]
    if len(values) < 2:
        return 1.0

    mean = statistics.fmean(values)
    spread = statistics.pstdev(values)
    if mean == 0:
        return 1.0 if spread == 0 else 0.0
    return max(0.0, min(1.0, 1 - spread / mean))


def _pick_group(entries: List[Tuple[Optional[str], float]]) -> Optional[str]:
    """Pick the highest scoring label among normalized groups.

    Args:
        entries: (label, score) pairs in vote order

    Returns:
        First spelling seen of the winning group, or None if no label has a
        positive score. Ties resolve to the group encountered first.
    """
    scores: Dict[str, float] = {}
    spellings: Dict[str, str] = {}

    for label, score in entries:
        key = normalize_name(label)
        if not key or score <= 0:
            continue
        if key not in scores:
            scores[key] = 0.0
            spellings[key] = " ".join(label.split())
        scores[key] += score

    best_key = None
    for key, score in scores.items():
        if best_key is None or score > scores[best_key]:
            best_key = key

    return spellings[best_key] if best_key is not None else None


def calculate_consensus(votes: Sequence[ModelVote]) -> ConsensusResult:
    """Merge provider votes into one consensus.

    Args:
        votes: Weighted votes from all stages

    Returns:
        Consensus result. An empty vote set yields the fallback consensus.
    """
    if not votes:
        return fallback_consensus()

    total_weight = sum(vote.weight for vote in votes)
    buy_weight = sum(vote.weight for vote in votes if vote.decision == "BUY")
    sell_weight = sum(vote.weight for vote in votes if vote.decision == "SELL")

    # Ties go to SELL
    decision = "BUY" if buy_weight > sell_weight else "SELL"

    avg_confidence = sum(vote.confidence for vote in votes) / len(votes)
    if total_weight > 0:
        buy_share = buy_weight / total_weight
        agreement = abs(buy_share - 0.5) * 2
        decision_agreement = max(buy_weight, sell_weight) / total_weight
    else:
        agreement = 0.0
        decision_agreement = 0.0
    diversity = min(1.0, len(votes) / DIVERSITY_SATURATION)

    confidence = round(100 * (0.6 * avg_confidence + 0.3 * agreement + 0.1 * diversity))
    confidence = max(0, min(100, confidence))

    item_name = _pick_group(
        [(vote.item_name, vote.weight * vote.confidence) for vote in votes]
    )
    category = _pick_group(
        [(vote.category, vote.weight * vote.confidence) for vote in votes]
    )

    result = ConsensusResult(
        item_name=item_name or FALLBACK_ITEM_NAME,
        estimated_value=_weighted_value(votes),
        decision=decision,
        confidence=confidence,
        total_votes=len(votes),
        quality=determine_quality(votes),
        category=category or DEFAULT_CATEGORY,
        metrics=ConsensusMetrics(
            avg_confidence=round(avg_confidence, 4),
            decision_agreement=round(decision_agreement, 4),
            value_agreement=round(_value_agreement(votes), 4),
            participation_rate=round(diversity, 4),
            buy_weight=round(buy_weight, 4),
            sell_weight=round(sell_weight, 4),
            total_weight=round(total_weight, 4),
        ),
    )

    if result.metrics.decision_agreement < 0.6 and total_weight > 0:
        logger.debug(
            f"Low decision agreement {result.metrics.decision_agreement:.0%} "
            f"for {result.item_name}"
        )

    return result
