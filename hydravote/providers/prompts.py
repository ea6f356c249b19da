"""Prompt text shared by all providers."""

from typing import Optional

SUPPORTED_CATEGORIES = [
    "pokemon_cards",
    "trading_cards",
    "coins",
    "banknotes",
    "lego",
    "video_games",
    "vinyl_records",
    "comics",
    "books",
    "sneakers",
    "watches",
    "jewelry",
    "toys",
    "art",
    "antiques",
    "electronics",
    "general",
]

ANALYSIS_INSTRUCTIONS = """You are a professional appraiser analyzing an item for resale value. Focus only on what you can actually observe about the physical item.

Respond with ONLY a valid JSON object with exactly this structure:
{{
    "itemName": "<specific item name>",
    "category": "<one of: {categories}>",
    "estimatedValue": <number, resale value in USD>,
    "decision": "<BUY or SELL>",
    "valuation_factors": ["<factor>", "<factor>", "<factor>", "<factor>", "<factor>"],
    "summary_reasoning": "<why the item is worth the estimated value>",
    "confidence": <float between 0 and 1>
}}

Rules:
- Only identify brands you can clearly verify from logos, tags or distinctive features
- Choose the most specific category; use "general" only if nothing else fits
- valuation_factors must describe the physical item, not the analysis
- decision must be exactly "BUY" or "SELL"
""".format(categories=", ".join(SUPPORTED_CATEGORIES))


def build_enhanced_prompt(prompt: str, description: str, item_name: str) -> str:
    """Build the text-stage prompt from the vision stage's best description.

    Args:
        prompt: Caller's original prompt
        description: Best description ("<item name>: <reasoning>")
        item_name: Resolved item name

    Returns:
        Prompt enriched with the visual identification
    """
    return (
        f"{prompt}\n\nBased on expert visual analysis by multiple AI systems, "
        f'this item has been identified as: "{description}"\n\n'
        f"Please provide your valuation analysis for this {item_name}."
    )


def build_market_prompt(prompt: str, item_name: str) -> str:
    """Build the search-stage prompt asking for recent sold-listing evidence."""
    return (
        f"{prompt}\n\nIMPORTANT: Search for recent eBay sold listings, Amazon prices, "
        f'and current market values for: "{item_name}". Include specific sold prices '
        f"from the last 30 days with dates and conditions."
    )


def build_tiebreaker_prompt(prompt: str, item_name: Optional[str] = None) -> str:
    """Build the prompt for the provider asked to settle a close BUY/SELL split."""
    subject = f' The item has been identified as: "{item_name}".' if item_name else ""
    return (
        f"{prompt}\n\nPrevious AI analyses of this item disagree on whether to buy it.{subject} "
        f"Provide your independent assessment to help reach consensus."
    )
