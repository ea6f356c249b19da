"""Conversion of provider results into weighted votes."""

from typing import Dict, Mapping, Optional

from hydravote.engine.models import ModelVote
from hydravote.providers.models import AdapterResult, Capability, ProviderConfig

SPECIALTY_MULTIPLIER = 1.3
SEARCH_STAGE_MULTIPLIER = 1.2

# Specialty that earns the bonus in each stage
STAGE_ROLES: Dict[Capability, str] = {
    Capability.VISION: "identification",
    Capability.TEXT: "reasoning",
    Capability.SEARCH: "pricing",
}


def calculate_weight(
    config: ProviderConfig,
    confidence: float,
    stage: Capability,
    dynamic_weights: Optional[Mapping[str, float]] = None,
) -> float:
    """Calculate the effective weight of a vote.

    weight = base * confidence, where base is the provider's static weight,
    scaled by its calibrated multiplier when dynamic weights are supplied.
    A specialty matching the stage's role multiplies by 1.3 and votes from the
    search stage by a further 1.2.

    Args:
        config: Provider configuration
        confidence: Vote confidence (0-1)
        stage: Stage the vote was cast in
        dynamic_weights: Calibrated multipliers by provider id; missing ids mean 1.0

    Returns:
        Non-negative weight
    """
    base = config.base_weight
    if dynamic_weights is not None:
        base *= dynamic_weights.get(config.id, 1.0)

    weight = base * confidence

    if config.specialty and config.specialty == STAGE_ROLES.get(stage):
        weight *= SPECIALTY_MULTIPLIER
    if stage == Capability.SEARCH:
        weight *= SEARCH_STAGE_MULTIPLIER

    return max(0.0, weight)


def build_vote(
    config: ProviderConfig,
    result: AdapterResult,
    stage: Capability,
    dynamic_weights: Optional[Mapping[str, float]] = None,
    fallback_item_name: Optional[str] = None,
) -> Optional[ModelVote]:
    """Build a vote from a provider result.

    Args:
        config: Provider configuration
        result: Adapter result
        stage: Stage the call belonged to
        dynamic_weights: Calibrated multipliers by provider id
        fallback_item_name: Name to use when the provider returned none

    Returns:
        ModelVote, or None if the provider produced no usable response
    """
    analysis = result.response
    if analysis is None:
        return None

    return ModelVote(
        provider_id=config.id,
        provider_name=config.name,
        item_name=analysis.item_name or fallback_item_name or "",
        estimated_value=analysis.estimated_value,
        decision=analysis.decision,
        confidence=result.confidence,
        latency_ms=result.latency_ms,
        weight=calculate_weight(config, result.confidence, stage, dynamic_weights),
        stage=stage,
        category=analysis.category,
        raw_response=result.raw,
    )
