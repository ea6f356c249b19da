"""Tiebreaker round for close BUY/SELL splits.

When the staged votes split almost evenly between BUY and SELL, one extra
provider is asked for an independent assessment. Its vote joins the set at
reduced weight; an exact tie after that still resolves to SELL.
"""

from typing import List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from hydravote.engine.models import ModelVote
from hydravote.engine.votes import build_vote
from hydravote.providers.models import AdapterResult, ProviderConfig

# Relative BUY/SELL weight difference below which a vote counts as close
CLOSE_VOTE_THRESHOLD = 0.15
MIN_PRIMARY_VOTES = 4
TIEBREAKER_WEIGHT_MULTIPLIER = 0.6
TIEBREAKER_LABEL = "Tiebreaker"


class TiebreakerTrigger(BaseModel):
    """Whether the staged votes call for a tiebreaker, and why."""

    model_config = ConfigDict(frozen=True)

    triggered: bool
    reason: str
    buy_weight: float = 0.0
    sell_weight: float = 0.0
    weight_difference: float = 0.0


def should_trigger_tiebreaker(
    votes: Sequence[ModelVote],
    threshold: float = CLOSE_VOTE_THRESHOLD,
    min_votes: int = MIN_PRIMARY_VOTES,
) -> TiebreakerTrigger:
    """Decide whether a vote set is too close to call.

    Args:
        votes: Votes from all stages
        threshold: Relative weight difference below which the vote is close
        min_votes: Fewest votes for the split to be assessed at all

    Returns:
        Trigger decision with the tally behind it
    """
    if len(votes) < min_votes:
        return TiebreakerTrigger(
            triggered=False,
            reason=f"Insufficient votes: {len(votes)} < {min_votes}",
        )

    buy_weight = sum(vote.weight for vote in votes if vote.decision == "BUY")
    sell_weight = sum(vote.weight for vote in votes if vote.decision == "SELL")
    total_weight = buy_weight + sell_weight
    difference = abs(buy_weight - sell_weight) / total_weight if total_weight > 0 else 0.0

    if difference < threshold:
        reason = f"Close vote: {difference:.1%} difference < {threshold:.0%} threshold"
    else:
        reason = f"Clear consensus: {difference:.1%} difference >= {threshold:.0%} threshold"

    return TiebreakerTrigger(
        triggered=difference < threshold,
        reason=reason,
        buy_weight=round(buy_weight, 4),
        sell_weight=round(sell_weight, 4),
        weight_difference=round(difference, 4),
    )


def build_tiebreaker_vote(
    config: ProviderConfig,
    result: AdapterResult,
    dynamic_weights: Optional[Mapping[str, float]] = None,
    fallback_item_name: Optional[str] = None,
) -> Optional[ModelVote]:
    """Build a vote for the tiebreaker provider at 60% of its normal weight."""
    vote = build_vote(
        config,
        result,
        config.capability,
        dynamic_weights=dynamic_weights,
        fallback_item_name=fallback_item_name,
    )
    if vote is None:
        return None

    return vote.model_copy(
        update={
            "provider_name": f"{config.name} ({TIEBREAKER_LABEL})",
            "weight": vote.weight * TIEBREAKER_WEIGHT_MULTIPLIER,
        }
    )


def merge_with_tiebreaker(
    votes: Sequence[ModelVote], tiebreaker_vote: Optional[ModelVote]
) -> List[ModelVote]:
    """Append the tiebreaker vote, if there is one, to the staged votes."""
    if tiebreaker_vote is None:
        return list(votes)
    return list(votes) + [tiebreaker_vote]
