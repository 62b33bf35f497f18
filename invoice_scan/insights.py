# invoice_scan/insights.py
"""Price estimates from the language model: ingredient cost and market averages."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from .config_labels import DEFAULT_UNIT
from .errors import ExtractionError, InvoiceScanError
from .lang_utils import normalize_amount
from .logging_utils import get_logger
from .models import CostPrediction, MarketInsight, MarketItem
from .parsing import safe_parse_json

log = get_logger(__name__)

PREDICT_COST_PROMPT = """
You are a kitchen master and food cost expert in Israel.
Given an ingredient and its quantity, predict its cost in Israeli Shekels (₪) based on average market prices for restaurants.

Ingredient: "{ingredient}"

Respond ONLY with valid JSON:
{{
  "cost": 12.5,
  "matchedItem": "Description of the item matched"
}}
"""

MARKET_PROMPT = """
You are an expert economic consultant for the restaurant and hospitality industry in Israel.
You possess deep knowledge of current wholesale B2B pricing, food costs, and supplier rates in NIS (Shekels).

The user is providing you with a JSON array of ingredients they recently purchased, including the name they used, the price they paid per unit, and the unit type.
Your task is to analyze each item and provide a realistic, objective "Market Average" wholesale price for it in Israel today, taking into account the unit specified.

Input JSON:
{items}

Instructions:
1. For each item in the input array, give your best estimate for the "marketPrice" (number) in NIS based on standard Israeli restaurant supplier rates.
2. If the user's price is extremely high or unusual, ignore it and provide the true market average. If the item is too vague, give a generalized average for that category.
3. Return ONLY a JSON array of objects, each exactly:
{{"itemName": "string (the exact name from the input)", "marketPrice": number}}
"""


def predict_cost(ingredient_text: str, llm) -> CostPrediction:
    if llm is None:
        raise ExtractionError("No language model configured")
    try:
        parsed = safe_parse_json(llm.generate(PREDICT_COST_PROMPT.format(ingredient=ingredient_text)))
    except InvoiceScanError as exc:
        raise ExtractionError(f"Failed to predict cost: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ExtractionError("Failed to predict cost: model did not return an object")
    return CostPrediction.model_validate(parsed)


def savings_percent(user_price: float, market_price: float) -> float:
    """How much cheaper the market is than what the user paid, in percent."""
    if user_price > market_price and market_price > 0:
        return round((user_price - market_price) / user_price * 100, 1)
    return 0.0


def merge_market_prices(items: List[MarketItem], estimates: List[Any]) -> List[MarketInsight]:
    """Join model estimates back onto the user's items by exact name."""
    by_name: Dict[str, Optional[float]] = {}
    for est in estimates:
        if isinstance(est, dict) and "itemName" in est:
            by_name.setdefault(str(est["itemName"]), normalize_amount(est.get("marketPrice")))

    insights: List[MarketInsight] = []
    for item in items:
        market_price = by_name.get(item.name)
        if market_price is None:
            market_price = item.price
        market_price = round(market_price, 2)
        insights.append(
            MarketInsight(
                item_name=item.name,
                user_price=item.price,
                market_price=market_price,
                savings_pct=savings_percent(item.price, market_price),
                unit=item.unit or DEFAULT_UNIT,
            )
        )
    return insights


def market_insights(items: List[MarketItem], llm) -> List[MarketInsight]:
    if llm is None:
        raise ExtractionError("No language model configured")
    payload = json.dumps(
        [item.model_dump(mode="json") for item in items], ensure_ascii=False, indent=2
    )
    try:
        parsed = safe_parse_json(llm.generate(MARKET_PROMPT.format(items=payload)))
    except InvoiceScanError as exc:
        raise ExtractionError(f"Failed to estimate market prices: {exc}") from exc
    if not isinstance(parsed, list):
        raise ExtractionError("Model did not return an array of market prices")
    log.info("Market estimates for %d of %d items", len(parsed), len(items))
    return merge_market_prices(items, parsed)
