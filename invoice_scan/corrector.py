# invoice_scan/corrector.py
"""
Undo quantity/price column transpositions made by the extraction model.

Since quantity x price is commutative the row total cannot tell the two
columns apart, so this is a heuristic: a decimal quantity under 10 paired
with a whole price of 10 or more is read as swapped. Legitimate rows such as
2.5 kg at 150 are swapped too; that is a known limitation.
"""
from __future__ import annotations

from typing import List, Sequence

from .config_labels import SWAP_BALANCE_TOLERANCE, SWAP_MAGNITUDE
from .logging_utils import get_logger
from .models import LineItem

log = get_logger(__name__)


def _is_whole(value: float) -> bool:
    return float(value).is_integer()


def _row_balances(item: LineItem) -> bool:
    if item.total_price <= 0:
        return False
    diff = abs(item.quantity * item.price_per_unit - item.total_price)
    return diff / item.total_price <= SWAP_BALANCE_TOLERANCE


def looks_swapped(item: LineItem) -> bool:
    if not _row_balances(item):
        return False
    quantity_looks_like_price = not _is_whole(item.quantity) and item.quantity < SWAP_MAGNITUDE
    price_looks_like_quantity = _is_whole(item.price_per_unit) and item.price_per_unit >= SWAP_MAGNITUDE
    return quantity_looks_like_price and price_looks_like_quantity


def fix_swaps(items: Sequence[LineItem]) -> List[LineItem]:
    fixed: List[LineItem] = []
    for i, item in enumerate(items):
        if looks_swapped(item):
            log.info(
                "Swapping quantity/price on row %d (%s): %s x %s",
                i, item.name, item.quantity, item.price_per_unit,
            )
            item = item.model_copy(
                update={"quantity": item.price_per_unit, "price_per_unit": item.quantity}
            )
        else:
            item = item.model_copy()
        fixed.append(item)
    return fixed
