"""Unit tests for the weight calculator and vote construction."""

import pytest

from hydravote.benchmarks.models import DynamicWeightSet
from hydravote.engine.votes import build_vote, calculate_weight
from hydravote.providers.models import AdapterResult, Capability


def test_weight_is_base_times_confidence(make_config):
    """Test plain weight without specialty or dynamic weights."""
    config = make_config("mistral", Capability.TEXT, base_weight=0.75)

    assert calculate_weight(config, 0.8, Capability.TEXT) == pytest.approx(0.6)


def test_zero_confidence_gives_zero_weight(make_config):
    """Test a zero-confidence vote has zero weight."""
    config = make_config("openai", base_weight=1.0, specialty="identification")

    assert calculate_weight(config, 0.0, Capability.VISION) == 0.0


def test_specialty_bonus_only_in_matching_stage(make_config):
    """Test the specialty multiplier applies only when it matches the stage role."""
    config = make_config("claude", Capability.VISION, specialty="reasoning")

    assert calculate_weight(config, 1.0, Capability.VISION) == pytest.approx(1.0)
    assert calculate_weight(config, 1.0, Capability.TEXT) == pytest.approx(1.3)


def test_search_multipliers_compose(make_config):
    """Test a pricing specialist in the search stage gets both multipliers."""
    config = make_config("perplexity", Capability.SEARCH, base_weight=0.85, specialty="pricing")

    assert calculate_weight(config, 0.85, Capability.SEARCH) == pytest.approx(
        0.85 * 0.85 * 1.3 * 1.2
    )


def test_search_multiplier_without_specialty(make_config):
    """Test search-stage votes get the live-data premium on their own."""
    config = make_config("search", Capability.SEARCH)

    assert calculate_weight(config, 0.5, Capability.SEARCH) == pytest.approx(0.6)


def test_dynamic_weights_scale_base(make_config):
    """Test dynamic multipliers scale the base weight; missing ids mean 1.0."""
    config = make_config("openai", base_weight=0.8)

    assert calculate_weight(config, 1.0, Capability.VISION, {"openai": 1.5}) == pytest.approx(1.2)
    assert calculate_weight(config, 1.0, Capability.VISION, {"other": 0.3}) == pytest.approx(0.8)


def test_dynamic_weight_set_accepted(make_config):
    """Test a DynamicWeightSet works wherever a mapping does."""
    config = make_config("openai")
    weight_set = DynamicWeightSet(multipliers={"openai": 0.5})

    assert calculate_weight(config, 1.0, Capability.VISION, weight_set) == pytest.approx(0.5)


def test_build_vote_from_result(make_config, analysis):
    """Test a successful result becomes a weighted vote."""
    config = make_config("openai", base_weight=1.0)
    result = AdapterResult(response=analysis(), confidence=0.8, latency_ms=1200)

    vote = build_vote(config, result, Capability.VISION)

    assert vote.provider_id == "openai"
    assert vote.item_name == "Canon AE-1 Camera"
    assert vote.estimated_value == 120.0
    assert vote.weight == pytest.approx(0.8)
    assert vote.latency_ms == 1200
    assert vote.stage == Capability.VISION


def test_build_vote_inherits_item_name(make_config, analysis):
    """Test a vote without an item name takes the fallback name."""
    config = make_config("groq", Capability.TEXT)
    result = AdapterResult(response=analysis(item_name=""), confidence=0.7)

    vote = build_vote(config, result, Capability.TEXT, fallback_item_name="Canon AE-1")

    assert vote.item_name == "Canon AE-1"


def test_build_vote_without_response_is_none(make_config):
    """Test a failed result produces no vote."""
    config = make_config("openai")

    assert build_vote(config, AdapterResult(latency_ms=30000), Capability.VISION) is None
