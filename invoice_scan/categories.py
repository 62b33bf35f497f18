# invoice_scan/categories.py
"""Expense categories and how each one is handled by the scan pipeline."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class InvoiceCategory(str, Enum):
    RAW_MATERIALS = "חומרי גלם"
    DRINKS = "שתייה"
    ALCOHOL = "אלכוהול"
    EQUIPMENT = "ציוד"
    MAINTENANCE = "תחזוקה"
    RENT = "שכירות"
    PAYROLL = "עובדים"
    UTILITIES = "חשמל / מים / גז"
    GENERAL = "כללי"

    @classmethod
    def parse(cls, raw: Any) -> Optional["InvoiceCategory"]:
        """Match a label or a known alias; None when the text is not a category."""
        key = _key(raw)
        if not key:
            return None
        return _LOOKUP.get(key)

    @classmethod
    def labels(cls) -> list[str]:
        return [member.value for member in cls]


class CategoryBehavior(str, Enum):
    ITEMIZED = "itemized"
    NON_ITEMIZED = "non_itemized"


def _key(raw: Any) -> str:
    if not isinstance(raw, str):
        return ""
    return "".join(raw.split()).lower()


_ALIASES: Dict[str, InvoiceCategory] = {
    "raw materials": InvoiceCategory.RAW_MATERIALS,
    "ingredients": InvoiceCategory.RAW_MATERIALS,
    "food": InvoiceCategory.RAW_MATERIALS,
    "drinks": InvoiceCategory.DRINKS,
    "beverages": InvoiceCategory.DRINKS,
    "alcohol": InvoiceCategory.ALCOHOL,
    "equipment": InvoiceCategory.EQUIPMENT,
    "maintenance": InvoiceCategory.MAINTENANCE,
    "repairs": InvoiceCategory.MAINTENANCE,
    "rent": InvoiceCategory.RENT,
    "payroll": InvoiceCategory.PAYROLL,
    "salaries": InvoiceCategory.PAYROLL,
    "wages": InvoiceCategory.PAYROLL,
    "staff": InvoiceCategory.PAYROLL,
    "utilities": InvoiceCategory.UTILITIES,
    "utility": InvoiceCategory.UTILITIES,
    "electricity": InvoiceCategory.UTILITIES,
    "water": InvoiceCategory.UTILITIES,
    "gas": InvoiceCategory.UTILITIES,
    "חשבונות": InvoiceCategory.UTILITIES,
    "חשמל": InvoiceCategory.UTILITIES,
    "ארנונה": InvoiceCategory.UTILITIES,
    "משכורות": InvoiceCategory.PAYROLL,
    "general": InvoiceCategory.GENERAL,
    "other": InvoiceCategory.GENERAL,
}

_LOOKUP: Dict[str, InvoiceCategory] = {_key(m.value): m for m in InvoiceCategory}
_LOOKUP.update({_key(alias): member for alias, member in _ALIASES.items()})

_BEHAVIORS: Dict[InvoiceCategory, CategoryBehavior] = {
    InvoiceCategory.RAW_MATERIALS: CategoryBehavior.ITEMIZED,
    InvoiceCategory.DRINKS: CategoryBehavior.ITEMIZED,
    InvoiceCategory.ALCOHOL: CategoryBehavior.ITEMIZED,
    InvoiceCategory.EQUIPMENT: CategoryBehavior.ITEMIZED,
    InvoiceCategory.MAINTENANCE: CategoryBehavior.NON_ITEMIZED,
    InvoiceCategory.RENT: CategoryBehavior.NON_ITEMIZED,
    InvoiceCategory.PAYROLL: CategoryBehavior.NON_ITEMIZED,
    InvoiceCategory.UTILITIES: CategoryBehavior.NON_ITEMIZED,
    InvoiceCategory.GENERAL: CategoryBehavior.ITEMIZED,
}


def canonical_category(raw: Any, default: str) -> str:
    """Known categories come back as their Hebrew label, free text is kept."""
    category = InvoiceCategory.parse(raw)
    if category is not None:
        return category.value
    if not isinstance(raw, str):
        return default
    return raw.strip() or default


def behavior_for(raw: Any) -> CategoryBehavior:
    category = InvoiceCategory.parse(raw)
    if category is None:
        return CategoryBehavior.ITEMIZED
    return _BEHAVIORS[category]
