"""Lenient parsing of provider responses into ParsedAnalysis."""

import json
import logging
import re
import statistics
from typing import Any, Dict, List, Optional, Tuple

from hydravote.providers.models import ParsedAnalysis
from hydravote.providers.prompts import SUPPORTED_CATEGORIES

logger = logging.getLogger(__name__)

# Canonical field -> accepted spellings, in lookup order
FIELD_ALIASES: Dict[str, List[str]] = {
    "item_name": [
        "itemName", "item_name", "item", "name", "product_name", "productName", "title", "product",
    ],
    "estimated_value": [
        "estimatedValue", "estimated_value", "value", "price", "estimated_price",
        "estimatedPrice", "market_value", "marketValue", "average_price", "averagePrice",
        "sold_price", "soldPrice",
    ],
    "decision": [
        "decision", "recommendation", "action", "buy_sell", "buySell", "verdict", "assessment",
    ],
    "valuation_factors": [
        "valuation_factors", "factors", "reasons", "valuation_reasons", "valuationFactors",
        "key_factors", "keyFactors", "pricing_factors",
    ],
    "reasoning": [
        "summary_reasoning", "summary", "reasoning", "explanation", "analysis",
        "summaryReasoning", "description", "rationale",
    ],
    "confidence": ["confidence", "confidence_score", "confidenceScore", "certainty"],
    "category": ["category", "item_category", "itemCategory", "product_category", "productCategory", "type"],
}

DECISION_ALIASES: Dict[str, str] = {
    "BUY": "BUY",
    "BUY IT": "BUY",
    "PURCHASE": "BUY",
    "ACQUIRE": "BUY",
    "YES": "BUY",
    "GOOD DEAL": "BUY",
    "RECOMMENDED": "BUY",
    "SELL": "SELL",
    "PASS": "SELL",
    "SKIP": "SELL",
    "AVOID": "SELL",
    "NO": "SELL",
    "OVERPRICED": "SELL",
    "NOT RECOMMENDED": "SELL",
}

_PRICE_PATTERNS = [
    re.compile(r"sold\s+(?:for\s+)?\$?([\d,]+(?:\.\d{2})?)", re.IGNORECASE),
    re.compile(r"price[:\s]+\$?([\d,]+(?:\.\d{2})?)", re.IGNORECASE),
    re.compile(r"\$\s*([\d,]+(?:\.\d{2})?)"),
    re.compile(r"(\d+(?:,\d{3})*(?:\.\d{2})?)\s*(?:USD|dollars?)", re.IGNORECASE),
]

_CITATION = re.compile(r"\[\d+\]")
_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def extract_json_block(text: Optional[str]) -> Optional[str]:
    """Extract the JSON object from a response that may wrap it in markdown or prose.

    Args:
        text: Raw response text

    Returns:
        Substring from the first "{" to the last "}", or None if there is none
    """
    if not text:
        return None

    # Try to extract JSON from markdown code blocks if present
    if "```json" in text:
        json_start = text.find("```json") + 7
        json_end = text.find("```", json_start)
        text = text[json_start:json_end if json_end != -1 else None]
    elif "```" in text:
        json_start = text.find("```") + 3
        json_end = text.find("```", json_start)
        text = text[json_start:json_end if json_end != -1 else None]

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def repair_json(block: str) -> Optional[Dict[str, Any]]:
    """Attempt to fix common JSON syntax errors.

    Removes trailing commas, quotes bare keys and swaps single quotes.

    Returns:
        Decoded object, or None if it still does not parse
    """
    fixed = re.sub(r",\s*([}\]])", r"\1", block)
    fixed = re.sub(r"([{,]\s*)([a-zA-Z_][a-zA-Z0-9_]*)\s*:", r'\1"\2":', fixed)
    fixed = fixed.replace("'", '"')
    try:
        data = json.loads(fixed)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def load_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Locate and decode the JSON object in a provider response."""
    block = extract_json_block(text)
    if block is None:
        return None
    try:
        data = json.loads(block)
    except json.JSONDecodeError:
        return repair_json(block)
    return data if isinstance(data, dict) else None


def apply_field_aliases(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map provider-specific field names onto canonical names.

    Args:
        data: Decoded response object

    Returns:
        Dict keyed by canonical field names, containing only fields that were found
    """
    canonical: Dict[str, Any] = {}
    for field, aliases in FIELD_ALIASES.items():
        for alias in aliases:
            if data.get(alias) is not None:
                canonical[field] = data[alias]
                break
    return canonical


def parse_price(value: Any) -> float:
    """Coerce a price field ("$1,200", "45.5", 30) into a non-negative float."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return max(0.0, float(value))
    if isinstance(value, dict):
        low = parse_price(value.get("low"))
        high = parse_price(value.get("high"))
        return (low + high) / 2 if low > 0 and high > 0 else 0.0
    match = _NUMBER.search(str(value).replace("$", "").replace(",", ""))
    if not match:
        return 0.0
    return float(match.group())


def normalize_decision(decision: Any) -> str:
    """Normalize a decision value to BUY or SELL.

    Exact vocabulary matches win, then substring matches; anything else is SELL.
    """
    if not decision:
        return "SELL"

    upper = str(decision).strip().upper()
    if upper in DECISION_ALIASES:
        return DECISION_ALIASES[upper]

    for key, value in DECISION_ALIASES.items():
        if key in upper:
            return value

    return "SELL"


def normalize_category(category: Any) -> str:
    """Normalize a category to one of the supported categories, defaulting to general."""
    if not category:
        return "general"

    lower = "_".join(str(category).strip().lower().split())
    if lower in SUPPORTED_CATEGORIES:
        return lower

    for supported in SUPPORTED_CATEGORIES:
        if lower in supported or supported in lower:
            return supported

    return "general"


def estimate_confidence(analysis: ParsedAnalysis) -> float:
    """Estimate confidence from response completeness when the provider gives none."""
    confidence = 0.5

    if len(analysis.item_name) > 3:
        confidence += 0.1
    if analysis.estimated_value > 0:
        confidence += 0.15
    if len(analysis.valuation_factors) >= 3:
        confidence += 0.15
    if len(analysis.reasoning) > 50:
        confidence += 0.1
    # Decision is always normalized by this point
    confidence += 0.05

    return min(confidence, 0.95)


def extract_price_from_text(text: Optional[str]) -> float:
    """Extract a price from unstructured text.

    Returns:
        Median of all plausible dollar amounts found, or 0.0
    """
    if not text:
        return 0.0

    prices: List[float] = []
    for pattern in _PRICE_PATTERNS:
        for match in pattern.finditer(text):
            try:
                price = float(match.group(1).replace(",", ""))
            except ValueError:
                continue
            if 0 < price < 1_000_000:
                prices.append(price)

    if not prices:
        return 0.0
    return float(statistics.median(prices))


def _to_factors(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(v) for v in value][:5]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def _to_confidence(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        confidence = float(str(value).rstrip("%"))
    except ValueError:
        return None
    # Some providers answer on a 0-100 scale
    if confidence > 1.0:
        confidence /= 100.0
    return max(0.0, min(1.0, confidence))


def analysis_from_dict(
    data: Dict[str, Any], fallback_item_name: Optional[str] = None
) -> Optional[ParsedAnalysis]:
    """Build a ParsedAnalysis from a decoded response object.

    Args:
        data: Decoded response object with provider-specific field names
        fallback_item_name: Item name to use when the response has none

    Returns:
        ParsedAnalysis, or None if neither an item name nor a value was found
    """
    fields = apply_field_aliases(data)
    item_name = str(fields.get("item_name") or fallback_item_name or "").strip()
    estimated_value = parse_price(fields.get("estimated_value"))

    if not item_name and estimated_value <= 0:
        return None

    analysis = ParsedAnalysis(
        item_name=item_name,
        estimated_value=round(estimated_value, 2),
        decision=normalize_decision(fields.get("decision")),
        reasoning=str(fields.get("reasoning") or "").strip(),
        category=normalize_category(fields.get("category")) if fields.get("category") else None,
        valuation_factors=_to_factors(fields.get("valuation_factors")),
    )

    confidence = _to_confidence(fields.get("confidence"))
    if confidence is None:
        confidence = estimate_confidence(analysis)
    return analysis.model_copy(update={"confidence": confidence})


def parse_analysis(text: Optional[str]) -> Tuple[Optional[ParsedAnalysis], Optional[Dict[str, Any]]]:
    """Parse a provider's text response.

    Args:
        text: Raw response text

    Returns:
        Tuple of (analysis or None, decoded JSON object or None)
    """
    data = load_json_object(text)
    if data is None:
        return None, None
    return analysis_from_dict(data), data


def parse_search_response(
    text: Optional[str], fallback_item_name: Optional[str] = None
) -> Tuple[Optional[ParsedAnalysis], Optional[Dict[str, Any]]]:
    """Parse a market-search response, falling back to prices quoted in prose.

    Args:
        text: Raw response text, possibly with citation markers
        fallback_item_name: Item name to use when the response has none

    Returns:
        Tuple of (analysis or None, decoded JSON object or None)
    """
    if not text:
        return None, None

    cleaned = _CITATION.sub("", text)
    data = load_json_object(cleaned)

    if data is not None:
        analysis = analysis_from_dict(data, fallback_item_name)
        if analysis is not None and analysis.estimated_value <= 0:
            analysis = analysis.model_copy(
                update={"estimated_value": round(extract_price_from_text(cleaned), 2)}
            )
        if analysis is not None and analysis.estimated_value > 0:
            if _to_confidence(apply_field_aliases(data).get("confidence")) is None:
                analysis = analysis.model_copy(update={"confidence": 0.85})
            return analysis, data

    price = extract_price_from_text(cleaned)
    if price <= 0:
        logger.debug("No price found in search response")
        return None, data

    analysis = ParsedAnalysis(
        item_name=fallback_item_name or "",
        estimated_value=round(price, 2),
        decision="BUY",
        reasoning="Price extracted from market search results.",
        confidence=0.6,
        valuation_factors=["Price extracted from market search", "Based on recent listings"],
    )
    return analysis, data
