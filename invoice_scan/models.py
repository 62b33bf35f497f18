# invoice_scan/models.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .config_labels import DEFAULT_CATEGORY, DEFAULT_UNIT, UNRECOGNIZED_SUPPLIER
from .lang_utils import normalize_amount, today_label


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python; both accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _amount_or_zero(value: Any) -> float:
    amount = normalize_amount(value)
    return 0.0 if amount is None else amount


class LineItem(WireModel):
    name: str
    quantity: float = 0.0
    unit: str = DEFAULT_UNIT
    price_per_unit: float = 0.0
    total_price: float = 0.0
    math_reasoning: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: Any) -> str:
        text = "" if value is None else str(value).strip()
        if not text:
            raise ValueError("line item without a name")
        return text

    @field_validator("quantity", "price_per_unit", "total_price", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        return _amount_or_zero(value)

    @field_validator("unit", mode="before")
    @classmethod
    def _coerce_unit(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("math_reasoning", mode="before")
    @classmethod
    def _coerce_reasoning(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)


class InvoiceHeader(WireModel):
    supplier: str = UNRECOGNIZED_SUPPLIER
    total: float = 0.0
    date: str = Field(default_factory=today_label)
    category: str = DEFAULT_CATEGORY

    @field_validator("total", mode="before")
    @classmethod
    def _coerce_total(cls, value: Any) -> float:
        return _amount_or_zero(value)


class ValidationStatus(str, Enum):
    VALID = "VALID"
    LINE_ITEM_ERROR = "LINE_ITEM_ERROR"
    TOTAL_MISMATCH = "TOTAL_MISMATCH"


class ValidationResult(WireModel):
    status: ValidationStatus
    computed_subtotal: float = 0.0
    failed_items: List[int] = Field(default_factory=list)


class ScanResult(WireModel):
    supplier: str
    total: float
    date: str
    category: str
    line_items: List[LineItem] = Field(default_factory=list)
    validation: ValidationResult
    raw_text: str = ""
    language: str = "unknown"

    @classmethod
    def compose(
        cls,
        header: InvoiceHeader,
        line_items: List[LineItem],
        validation: ValidationResult,
        raw_text: str,
        language: str = "unknown",
    ) -> "ScanResult":
        return cls(
            supplier=header.supplier,
            total=header.total,
            date=header.date,
            category=header.category,
            line_items=line_items,
            validation=validation,
            raw_text=raw_text,
            language=language,
        )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------
# Request bodies
# ---------------------------------------------------------
class ImageRequest(WireModel):
    image_base64: Optional[str] = None
    mime_type: Optional[str] = None


class PredictCostRequest(WireModel):
    ingredient_text: Optional[str] = None


class MarketItem(WireModel):
    name: str
    price: float = 0.0
    unit: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> float:
        return _amount_or_zero(value)


class MarketInsightsRequest(WireModel):
    items: Optional[List[MarketItem]] = None


# ---------------------------------------------------------
# Supplementary extraction results
# ---------------------------------------------------------
class MenuDish(WireModel):
    name: str
    price: float = 0.0

    @field_validator("name", mode="before")
    @classmethod
    def _clean_name(cls, value: Any) -> str:
        text = "" if value is None else str(value).strip()
        if not text:
            raise ValueError("dish without a name")
        return text

    @field_validator("price", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> float:
        return _amount_or_zero(value)


class CostPrediction(WireModel):
    cost: float = 0.0
    matched_item: str = ""

    @field_validator("cost", mode="before")
    @classmethod
    def _coerce_cost(cls, value: Any) -> float:
        return _amount_or_zero(value)


class MarketInsight(WireModel):
    item_name: str
    user_price: float
    market_price: float
    savings_pct: float
    unit: str


# ---------------------------------------------------------
# Batch re-validation (CLI)
# ---------------------------------------------------------
class ScanValidationReport(WireModel):
    index: int
    supplier: str
    status: ValidationStatus
    failed_items: List[int]
    computed_subtotal: float
    status_changed: bool = False


class BatchValidationSummary(WireModel):
    total_scans: int
    valid_scans: int
    flagged_scans: int
    status_counts: Dict[str, int]


# ---------------------------------------------------------
# Expense report
# ---------------------------------------------------------
class ExpenseRow(WireModel):
    """One saved invoice as the report lists it."""

    date: str = ""
    supplier: str = ""
    category: str = ""
    total: float = 0.0

    @field_validator("date", "supplier", "category", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    @field_validator("total", mode="before")
    @classmethod
    def _coerce_total(cls, value: Any) -> float:
        return _amount_or_zero(value)


class SendReportRequest(WireModel):
    # checked by the route so a non-array gets the same 400 as a missing one
    expenses: Any = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None


class ExpenseReport(WireModel):
    subject: str
    html: str
    total: float
    row_count: int
