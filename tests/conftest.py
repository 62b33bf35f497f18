# tests/conftest.py
import pytest

from invoice_scan.models import LineItem


@pytest.fixture
def make_item():
    def _make(name="item", quantity=1.0, price=0.0, total=0.0, unit="kg"):
        return LineItem(
            name=name,
            quantity=quantity,
            unit=unit,
            price_per_unit=price,
            total_price=total,
        )

    return _make
