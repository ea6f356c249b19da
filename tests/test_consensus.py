"""Unit tests for the consensus calculator.

Tests weighted value, decision tie-breaks, confidence, item naming, quality
tiers and idempotence.
"""

import pytest

from hydravote.engine.consensus import calculate_consensus, determine_quality
from hydravote.engine.models import QualityTier
from hydravote.providers.models import Capability


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------


def test_empty_votes_return_fallback():
    """Test an empty vote set yields the exact fallback consensus."""
    result = calculate_consensus([])

    assert result.item_name == "Unknown Item"
    assert result.estimated_value == 0
    assert result.decision == "SELL"
    assert result.confidence == 0
    assert result.quality == QualityTier.FALLBACK
    assert result.total_votes == 0


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


def test_three_vision_votes_scenario(make_vote):
    """Test the canonical three-vote scenario: BUY, weighted value, DEGRADED."""
    votes = [
        make_vote("a", value=100, decision="BUY", confidence=0.9),
        make_vote("b", value=120, decision="BUY", confidence=0.8),
        make_vote("c", value=80, decision="SELL", confidence=0.5),
    ]

    result = calculate_consensus(votes)

    assert result.decision == "BUY"
    # (100*0.9 + 120*0.8 + 80*0.5) / 2.2
    assert result.estimated_value == pytest.approx(102.73, abs=0.01)
    assert 100 <= result.estimated_value <= 108
    assert result.quality == QualityTier.DEGRADED
    assert result.total_votes == 3


def test_confidence_formula(make_vote):
    """Test confidence blends average confidence, agreement and diversity."""
    votes = [
        make_vote("a", decision="BUY", confidence=0.9),
        make_vote("b", decision="BUY", confidence=0.8),
        make_vote("c", decision="SELL", confidence=0.5),
    ]

    result = calculate_consensus(votes)

    avg = (0.9 + 0.8 + 0.5) / 3
    agreement = abs(1.7 / 2.2 - 0.5) * 2
    diversity = 3 / 7
    assert result.confidence == round(100 * (0.6 * avg + 0.3 * agreement + 0.1 * diversity))
    assert isinstance(result.confidence, int)


def test_unanimous_high_confidence_capped_at_100(make_vote):
    """Test confidence never exceeds 100."""
    votes = [make_vote(f"p{i}", confidence=1.0) for i in range(10)]

    result = calculate_consensus(votes)

    assert result.confidence == 100


# ---------------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------------


def test_decision_tie_resolves_to_sell(make_vote):
    """Test equal BUY and SELL weight yields SELL."""
    votes = [
        make_vote("a", decision="BUY", weight=1.0),
        make_vote("b", decision="SELL", weight=1.0),
    ]

    assert calculate_consensus(votes).decision == "SELL"


def test_decision_buy_requires_strictly_more_weight(make_vote):
    """Test BUY wins only with strictly greater weight."""
    votes = [
        make_vote("a", decision="BUY", weight=1.01),
        make_vote("b", decision="SELL", weight=1.0),
    ]

    assert calculate_consensus(votes).decision == "BUY"


def test_all_zero_weight_carries_no_evidence(make_vote):
    """Test a set without any weight values to 0, SELL and the fallback name."""
    votes = [
        make_vote("a", value=10, decision="BUY", confidence=0.0, weight=0.0),
        make_vote("b", value=30, decision="BUY", confidence=0.0, weight=0.0),
    ]

    result = calculate_consensus(votes)

    assert result.estimated_value == 0
    assert result.decision == "SELL"
    assert result.item_name == "Unknown Item"
    assert result.metrics.decision_agreement == 0
    assert result.total_votes == 2


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "values,weights",
    [
        ([10.0, 10.0, 10.0], [0.3, 0.3, 0.3]),
        ([1.0, 1000.0], [0.01, 5.0]),
        ([19.99, 20.01, 20.0], [0.7, 0.2, 0.1]),
        ([0.0, 0.5, 99.999], [1.0, 1.0, 1.0]),
        ([33.333, 66.667], [0.333, 0.667]),
    ],
)
def test_value_within_vote_range(make_vote, values, weights):
    """Test consensus value always lies within the vote value range."""
    votes = [
        make_vote(f"p{i}", value=v, weight=w) for i, (v, w) in enumerate(zip(values, weights))
    ]

    result = calculate_consensus(votes)

    assert min(values) <= result.estimated_value <= max(values)
    assert 0 <= result.confidence <= 100


@pytest.mark.parametrize(
    "base,zero,first",
    [
        # Named majority decides everything
        (
            [
                ("Leica M6", 100, "BUY", 0.9),
                ("Leica M6", 140, "BUY", 0.6),
                ("Leica M3", 90, "SELL", 0.7),
            ],
            ("Toaster", 5000, "SELL"),
            False,
        ),
        # No positively weighted vote has a name
        ([("", 100, "BUY", 0.9), ("", 120, "BUY", 0.8)], ("Toaster", 110, "SELL"), False),
        # Rounding to cents would leave the weighted votes' range
        ([("Coin", 10.005, "BUY", 0.5), ("Coin", 10.005, "BUY", 0.5)], ("Coin", 5.0, "SELL"), False),
        # Zero vote listed first in a tied name and decision split
        ([("Leica M6", 100, "BUY", 0.5), ("Leica M3", 120, "SELL", 0.5)], ("Leica M3", 110, "BUY"), True),
        # Nothing carries weight at all
        ([("Coin", 10, "BUY", 0.0)], ("Coin", 1000, "BUY"), False),
    ],
)
def test_zero_weight_vote_is_non_influential(make_vote, base, zero, first):
    """Test adding a zero-weight vote changes neither value, decision nor item name."""
    votes = [
        make_vote(f"p{i}", value=value, decision=decision, confidence=confidence, item_name=name)
        for i, (name, value, decision, confidence) in enumerate(base)
    ]
    name, value, decision = zero
    zero_vote = make_vote(
        "z", value=value, decision=decision, confidence=0.0, weight=0.0, item_name=name
    )

    before = calculate_consensus(votes)
    after = calculate_consensus([zero_vote] + votes if first else votes + [zero_vote])

    assert after.estimated_value == before.estimated_value
    assert after.decision == before.decision
    assert after.item_name == before.item_name


def test_rounding_stays_inside_weighted_range(make_vote):
    """Test a rounded mean is clamped to the range of the weighted votes only."""
    votes = [
        make_vote("a", value=10.005, confidence=0.5),
        make_vote("b", value=10.005, confidence=0.5),
        make_vote("z", value=5.0, confidence=0.0, weight=0.0),
    ]

    assert calculate_consensus(votes).estimated_value == 10.005


def test_consensus_is_idempotent(make_vote):
    """Test recomputing from the same votes yields identical output."""
    votes = [
        make_vote("a", value=12.5, confidence=0.7, category="toys"),
        make_vote("b", value=14.25, decision="SELL", confidence=0.4, stage=Capability.TEXT),
        make_vote("c", value=13.0, confidence=0.9, stage=Capability.SEARCH, weight=1.4),
    ]

    first = calculate_consensus(votes)
    second = calculate_consensus(list(votes))

    assert first == second
    assert first.model_dump_json() == second.model_dump_json()


# ---------------------------------------------------------------------------
# Item name and category
# ---------------------------------------------------------------------------


def test_item_name_groups_normalized_spellings(make_vote):
    """Test spellings differing in case and whitespace are grouped."""
    votes = [
        make_vote("a", item_name="Nintendo  Game Boy", confidence=0.5),
        make_vote("b", item_name="nintendo game boy", confidence=0.5),
        make_vote("c", item_name="Sega Game Gear", confidence=0.9),
    ]

    result = calculate_consensus(votes)

    # 0.25 + 0.25 = 0.5 vs 0.81 for the single Sega vote
    assert result.item_name == "Sega Game Gear"

    votes.append(make_vote("d", item_name="NINTENDO GAME BOY", confidence=0.9))
    assert calculate_consensus(votes).item_name == "Nintendo Game Boy"


def test_item_name_tie_resolves_to_first_group(make_vote):
    """Test equal item name scores pick the group seen first."""
    votes = [
        make_vote("a", item_name="Rolex Submariner", confidence=0.8),
        make_vote("b", item_name="Omega Seamaster", confidence=0.8),
    ]

    assert calculate_consensus(votes).item_name == "Rolex Submariner"


def test_empty_item_names_fall_back(make_vote):
    """Test votes without names produce the fallback name."""
    votes = [make_vote("a", item_name=""), make_vote("b", item_name="  ")]

    assert calculate_consensus(votes).item_name == "Unknown Item"


def test_category_defaults_to_general(make_vote):
    """Test category is chosen by weight and defaults to general."""
    assert calculate_consensus([make_vote("a")]).category == "general"

    votes = [
        make_vote("a", category="coins", confidence=0.9),
        make_vote("b", category="antiques", confidence=0.4),
    ]
    assert calculate_consensus(votes).category == "coins"


# ---------------------------------------------------------------------------
# Quality tier
# ---------------------------------------------------------------------------


def test_quality_optimal_requires_vision_and_text(make_vote):
    """Test OPTIMAL needs six votes spanning vision and text."""
    vision_only = [make_vote(f"v{i}") for i in range(6)]
    assert determine_quality(vision_only) == QualityTier.DEGRADED

    mixed = [make_vote(f"v{i}") for i in range(3)] + [
        make_vote(f"t{i}", stage=Capability.TEXT) for i in range(3)
    ]
    assert determine_quality(mixed) == QualityTier.OPTIMAL


def test_quality_degraded_requires_vision(make_vote):
    """Test three text-only votes stay FALLBACK."""
    text_only = [make_vote(f"t{i}", stage=Capability.TEXT) for i in range(5)]

    assert determine_quality(text_only) == QualityTier.FALLBACK


def test_quality_is_monotonic_under_additions(make_vote):
    """Test adding votes never moves the tier backwards."""
    order = [QualityTier.FALLBACK, QualityTier.DEGRADED, QualityTier.OPTIMAL]
    additions = [
        make_vote("t1", stage=Capability.TEXT),
        make_vote("v1"),
        make_vote("s1", stage=Capability.SEARCH),
        make_vote("v2"),
        make_vote("t2", stage=Capability.TEXT),
        make_vote("v3"),
        make_vote("s2", stage=Capability.SEARCH),
    ]

    votes = []
    previous = order.index(determine_quality(votes))
    for vote in additions:
        votes.append(vote)
        current = order.index(determine_quality(votes))
        assert current >= previous
        previous = current

    assert determine_quality(votes) == QualityTier.OPTIMAL
