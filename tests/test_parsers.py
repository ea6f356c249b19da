"""Unit tests for provider response parsing."""

import pytest

from hydravote.providers.parsers import (
    apply_field_aliases,
    extract_json_block,
    extract_price_from_text,
    load_json_object,
    normalize_category,
    normalize_decision,
    parse_analysis,
    parse_price,
    parse_search_response,
)


def test_parse_clean_json():
    """Test a well-formed response parses into every field."""
    text = """{
        "itemName": "Canon AE-1",
        "category": "electronics",
        "estimatedValue": 145.5,
        "decision": "BUY",
        "valuation_factors": ["Working shutter", "Clean lens"],
        "summary_reasoning": "Popular film camera in good condition",
        "confidence": 0.82
    }"""

    analysis, data = parse_analysis(text)

    assert analysis.item_name == "Canon AE-1"
    assert analysis.estimated_value == 145.5
    assert analysis.decision == "BUY"
    assert analysis.category == "electronics"
    assert analysis.confidence == 0.82
    assert analysis.valuation_factors == ["Working shutter", "Clean lens"]
    assert data["itemName"] == "Canon AE-1"


def test_parse_markdown_fenced_json():
    """Test JSON inside a markdown code block with surrounding prose."""
    text = 'Here is my analysis:\n```json\n{"item_name": "Lego 10179", "price": "$1,250.00", "recommendation": "purchase"}\n```\nHope it helps.'

    analysis, _ = parse_analysis(text)

    assert analysis.item_name == "Lego 10179"
    assert analysis.estimated_value == 1250.0
    assert analysis.decision == "BUY"


def test_parse_repairs_trailing_commas():
    """Test trailing commas and single quotes are repaired."""
    text = "{'name': 'Morgan Dollar', 'value': 45, 'decision': 'SELL',}"

    analysis, _ = parse_analysis(text)

    assert analysis.item_name == "Morgan Dollar"
    assert analysis.estimated_value == 45.0
    assert analysis.decision == "SELL"


def test_parse_without_json_returns_none():
    """Test prose without JSON yields no analysis."""
    assert parse_analysis("I cannot identify this item.") == (None, None)
    assert parse_analysis("") == (None, None)
    assert parse_analysis(None) == (None, None)


def test_parse_requires_name_or_value():
    """Test an object with neither an item name nor a price is rejected."""
    analysis, data = parse_analysis('{"decision": "BUY", "confidence": 0.9}')

    assert analysis is None
    assert data == {"decision": "BUY", "confidence": 0.9}


def test_missing_confidence_is_estimated():
    """Test confidence is estimated from completeness when absent."""
    analysis, _ = parse_analysis('{"itemName": "Vase", "estimatedValue": 30}')

    # 0.5 base + name + value + valid decision
    assert analysis.confidence == pytest.approx(0.8)


def test_percentage_confidence_is_scaled():
    """Test confidence given on a 0-100 scale is normalized."""
    analysis, _ = parse_analysis('{"itemName": "Vase", "estimatedValue": 30, "confidence": 85}')

    assert analysis.confidence == pytest.approx(0.85)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("BUY", "BUY"),
        ("purchase", "BUY"),
        ("Good Deal", "BUY"),
        ("PASS", "SELL"),
        ("avoid", "SELL"),
        ("not recommended", "SELL"),
        ("maybe", "SELL"),
        (None, "SELL"),
    ],
)
def test_normalize_decision(raw, expected):
    """Test decision vocabulary maps to BUY or SELL, defaulting to SELL."""
    assert normalize_decision(raw) == expected


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("$1,200", 1200.0),
        ("45.50", 45.5),
        (30, 30.0),
        (-5, 0.0),
        ("n/a", 0.0),
        (None, 0.0),
        ({"low": 10, "high": 20}, 15.0),
    ],
)
def test_parse_price(raw, expected):
    """Test price coercion from the formats providers return."""
    assert parse_price(raw) == expected


def test_normalize_category():
    """Test categories are mapped onto supported values."""
    assert normalize_category("Pokemon Cards") == "pokemon_cards"
    assert normalize_category("sneakers") == "sneakers"
    assert normalize_category("vintage watches") == "watches"
    assert normalize_category("spaceship") == "general"


def test_field_aliases_prefer_canonical_names():
    """Test the canonical spelling wins over an alias when both are present."""
    fields = apply_field_aliases({"itemName": "A", "name": "B", "value": 3})

    assert fields == {"item_name": "A", "estimated_value": 3}


def test_extract_json_block_handles_prose():
    """Test JSON is located between the first and last brace."""
    assert extract_json_block('Answer: {"a": {"b": 1}} done') == '{"a": {"b": 1}}'
    assert extract_json_block("no braces") is None
    assert load_json_object("[1, 2]") is None


def test_extract_price_from_text_uses_median():
    """Test free-text prices resolve to the median of plausible amounts."""
    text = "Recent listings: sold for $120, another at $100.00 and one at $140."

    assert extract_price_from_text(text) == 120.0
    assert extract_price_from_text("no prices here") == 0.0


def test_search_response_json_gets_search_confidence():
    """Test a JSON search response without confidence gets the search default."""
    text = '{"product": "Game Boy", "average_price": "$85"} [1][2]'

    analysis, _ = parse_search_response(text)

    assert analysis.item_name == "Game Boy"
    assert analysis.estimated_value == 85.0
    assert analysis.confidence == 0.85


def test_search_response_falls_back_to_text_price():
    """Test a prose search response still yields a price."""
    text = "Recent eBay sales [1]: sold for $60 on 3/2, sold for $80 on 3/9."

    analysis, data = parse_search_response(text, fallback_item_name="Game Boy")

    assert data is None
    assert analysis.item_name == "Game Boy"
    assert analysis.estimated_value == 70.0
    assert analysis.confidence == 0.6


def test_search_response_without_price_is_none():
    """Test a search response with no price is unusable."""
    analysis, _ = parse_search_response("No sales found for this item.")

    assert analysis is None
