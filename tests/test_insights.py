# tests/test_insights.py
import pytest
from fakes import FakeLlm

from invoice_scan.errors import ExtractionError
from invoice_scan.insights import market_insights, merge_market_prices, predict_cost, savings_percent
from invoice_scan.models import MarketItem


def test_savings_percent():
    assert savings_percent(10, 8) == 20.0
    assert savings_percent(3, 2) == 33.3
    assert savings_percent(8, 10) == 0.0
    assert savings_percent(8, 0) == 0.0


def test_merge_keeps_user_price_for_unmatched_items():
    items = [MarketItem(name="שמן", price=30, unit="ליטר"), MarketItem(name="מלח", price=2)]
    estimates = [{"itemName": "שמן", "marketPrice": "24.999"}, {"marketPrice": 1}, "junk"]

    first, second = merge_market_prices(items, estimates)

    assert first.market_price == 25.0
    assert first.savings_pct == 16.7
    assert second.market_price == 2
    assert second.savings_pct == 0.0


def test_market_insights_rejects_non_array():
    items = [MarketItem(name="שמן", price=30)]
    with pytest.raises(ExtractionError):
        market_insights(items, FakeLlm('{"itemName": "שמן"}'))
    with pytest.raises(ExtractionError):
        market_insights(items, None)


def test_market_insights_sends_items_to_model():
    llm = FakeLlm('```json\n[{"itemName": "שמן", "marketPrice": 20}]\n```')
    [insight] = market_insights([MarketItem(name="שמן", price=30)], llm)
    assert insight.market_price == 20
    assert '"שמן"' in llm.calls[0]["prompt"]


def test_predict_cost():
    prediction = predict_cost("2 ק\"ג עגבניות", FakeLlm('{"cost": "14.5", "matchedItem": "עגבניות"}'))
    assert prediction.cost == 14.5
    assert prediction.matched_item == "עגבניות"


def test_predict_cost_failures():
    with pytest.raises(ExtractionError):
        predict_cost("x", None)
    with pytest.raises(ExtractionError):
        predict_cost("x", FakeLlm("[1]"))
    with pytest.raises(ExtractionError):
        predict_cost("x", FakeLlm("no idea"))
