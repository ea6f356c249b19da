"""Derivation of dynamic provider weights from recent scorecards."""

import logging
import time
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from hydravote.benchmarks.models import DynamicWeightSet, WeeklyScorecard
from hydravote.config import Settings, get_settings
from hydravote.database.repositories import ScorecardRepository

logger = logging.getLogger(__name__)

# Multiplier applied when a provider's latest week is markedly worse than its window
DEGRADATION_PENALTY = 0.7


def _weighted_mean(pairs: Sequence[Tuple[float, int]]) -> float:
    total = sum(weight for _, weight in pairs)
    if total == 0:
        return 0.0
    return sum(value * weight for value, weight in pairs) / total


def is_degraded(history: Sequence[WeeklyScorecard], threshold: float) -> bool:
    """Check whether the latest week's within-10% rate fell below the earlier weeks.

    Args:
        history: One provider's scorecards, oldest first
        threshold: Absolute drop in accuracy rate that counts as degradation

    Returns:
        True if the drop is at least the threshold
    """
    if len(history) < 2:
        return False
    earlier = [s.accuracy_rate_10 for s in history[:-1]]
    baseline = sum(earlier) / len(earlier)
    return baseline - history[-1].accuracy_rate_10 >= threshold


def compute_dynamic_weights(
    scorecards: Sequence[WeeklyScorecard],
    min_samples: int = 5,
    max_boost: float = 1.5,
    min_weight: float = 0.3,
    degradation_threshold: float = 0.20,
) -> Dict[str, float]:
    """Compute a weight multiplier per provider.

    Each provider is compared with the fleet over the window: lower MAPE and
    higher decision accuracy than the fleet push the multiplier above 1.0.

        multiplier = 1 + 0.5 * (fleet_mape - mape) / 100
                       + 0.5 * (decision_accuracy - fleet_decision_accuracy)

    A degraded provider is further multiplied by 0.7. The result is clamped
    to [min_weight, max_boost] and rounded to 3 decimals.

    Args:
        scorecards: Scorecards from the calibration window
        min_samples: Graded votes a provider needs across the window
        max_boost: Upper bound for a multiplier
        min_weight: Lower bound for a multiplier
        degradation_threshold: Accuracy drop that triggers the degradation penalty

    Returns:
        Multipliers by provider ID; providers without enough data are absent
    """
    history: Dict[str, List[WeeklyScorecard]] = defaultdict(list)
    for scorecard in sorted(scorecards, key=lambda s: (s.provider_id, s.week_start)):
        history[scorecard.provider_id].append(scorecard)

    summaries: Dict[str, Tuple[float, float, int]] = {}
    for provider_id, cards in history.items():
        samples = sum(s.successful_votes for s in cards)
        if samples < min_samples:
            logger.debug(f"Not enough graded votes for {provider_id} ({samples} < {min_samples})")
            continue
        mape = _weighted_mean([(s.mean_absolute_percent_error, s.successful_votes) for s in cards])
        accuracy = _weighted_mean([(s.decision_accuracy, s.successful_votes) for s in cards])
        summaries[provider_id] = (mape, accuracy, samples)

    if not summaries:
        return {}

    fleet_mape = _weighted_mean([(mape, n) for mape, _, n in summaries.values()])
    fleet_accuracy = _weighted_mean([(acc, n) for _, acc, n in summaries.values()])

    multipliers = {}
    for provider_id in sorted(summaries):
        mape, accuracy, _ = summaries[provider_id]
        multiplier = 1 + 0.5 * (fleet_mape - mape) / 100 + 0.5 * (accuracy - fleet_accuracy)

        if is_degraded(history[provider_id], degradation_threshold):
            logger.warning(f"Provider {provider_id} accuracy degraded, applying penalty")
            multiplier *= DEGRADATION_PENALTY

        multipliers[provider_id] = round(max(min_weight, min(max_boost, multiplier)), 3)

    return multipliers


class DynamicWeightResolver:
    """Resolves the DynamicWeightSet handed to the next analysis request."""

    def __init__(
        self,
        scorecard_repo: Optional[ScorecardRepository] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize resolver.

        Args:
            scorecard_repo: Scorecard repository. If None, uses the default database.
            settings: Calibration settings. If None, uses the global settings.
        """
        self.scorecard_repo = scorecard_repo or ScorecardRepository()
        self.settings = settings or get_settings()
        self._cache: Optional[Tuple[float, Optional[date], DynamicWeightSet]] = None

    def resolve(self, as_of: Optional[date] = None, use_cache: bool = True) -> DynamicWeightSet:
        """Resolve weights from the most recent scorecards.

        Never raises: without scorecards, or if anything goes wrong, an empty
        set is returned and every provider keeps its static weight.

        Args:
            as_of: Only use weeks starting on or before this day
            use_cache: Reuse a result computed within the cache window

        Returns:
            Dynamic weight set
        """
        if use_cache and self._cache is not None:
            cached_at, cached_as_of, cached = self._cache
            if (
                cached_as_of == as_of
                and time.monotonic() - cached_at < self.settings.weights_cache_seconds
            ):
                return cached

        try:
            scorecards = self.scorecard_repo.get_recent_weeks(
                self.settings.calibration_window_weeks, as_of
            )
            multipliers = compute_dynamic_weights(
                scorecards,
                min_samples=self.settings.calibration_min_samples,
                max_boost=self.settings.weight_max_boost,
                min_weight=self.settings.weight_min,
                degradation_threshold=self.settings.degradation_threshold,
            )
        except Exception as e:
            logger.error(f"Failed to resolve dynamic weights, using static weights: {e}")
            return DynamicWeightSet()

        weight_set = DynamicWeightSet(
            multipliers=multipliers,
            computed_at=datetime.now(timezone.utc),
            weeks=sorted({s.week_start for s in scorecards}),
        )
        if weight_set.is_empty:
            logger.info("No calibration history yet, using static weights")
        else:
            logger.info(f"Resolved dynamic weights for {len(multipliers)} providers")

        self._cache = (time.monotonic(), as_of, weight_set)
        return weight_set

    def invalidate(self) -> None:
        """Drop the cached weight set."""
        self._cache = None
