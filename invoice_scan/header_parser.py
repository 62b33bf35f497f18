# invoice_scan/header_parser.py
"""Supplier / total / date / category from raw OCR text."""
from __future__ import annotations

from typing import Any, Dict, Optional

from .categories import InvoiceCategory, canonical_category
from .config_labels import (
    DATE_PATTERN,
    DEFAULT_CATEGORY,
    TOTAL_PATTERN,
    UNRECOGNIZED_SUPPLIER,
)
from .errors import InvoiceScanError
from .lang_utils import extract_lines, normalize_amount, parse_date_any, today_label
from .logging_utils import get_logger
from .models import InvoiceHeader
from .parsing import safe_parse_json

log = get_logger(__name__)

_CATEGORY_CHOICES = ", ".join(InvoiceCategory.labels())

HEADER_PROMPT = """
Extract the following details from this Israeli restaurant receipt text.
Respond ONLY with a valid JSON object matching exactly this schema:
{{
  "supplier": "Name of the business/supplier (usually at the top)",
  "total": 123.45,
  "date": "dd/mm/yyyy",
  "category": "One of: {categories}"
}}
"total" is a number: the final amount to pay. Use today's date if the date is missing.

Receipt text:
{raw_text}
"""

CATEGORY_PROMPT = """
Classify this Israeli restaurant supplier invoice into exactly one expense category.
Respond ONLY with a valid JSON object: {{"category": "One of: {categories}"}}

Invoice text:
{raw_text}
"""


def default_header() -> InvoiceHeader:
    return InvoiceHeader(
        supplier=UNRECOGNIZED_SUPPLIER,
        total=0,
        date=today_label(),
        category=DEFAULT_CATEGORY,
    )


def _text_field(data: Dict[str, Any], key: str, default: str) -> str:
    value = data.get(key)
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def header_from_mapping(data: Dict[str, Any]) -> InvoiceHeader:
    """Build a header from model output, filling gaps with the defaults."""
    total = normalize_amount(data.get("total"))
    return InvoiceHeader(
        supplier=_text_field(data, "supplier", UNRECOGNIZED_SUPPLIER),
        total=total if total is not None and total > 0 else 0,
        date=_text_field(data, "date", today_label()),
        category=canonical_category(data.get("category"), DEFAULT_CATEGORY),
    )


def heuristic_header(raw_text: str) -> InvoiceHeader:
    """Regex reading used when no language model is available."""
    lines = extract_lines(raw_text)
    supplier = lines[0] if lines else UNRECOGNIZED_SUPPLIER

    total_match = TOTAL_PATTERN.search(raw_text)
    total = normalize_amount(total_match.group(1)) if total_match else None

    date_match = DATE_PATTERN.search(raw_text)
    date = None
    if date_match:
        date = parse_date_any(date_match.group(1)) or date_match.group(1)

    return InvoiceHeader(
        supplier=supplier,
        total=total or 0,
        date=date or today_label(),
        category=DEFAULT_CATEGORY,
    )


def parse_header(raw_text: str, llm=None) -> InvoiceHeader:
    """Never raises; any failure yields the default header."""
    if not (raw_text or "").strip():
        return default_header()

    if llm is None:
        log.info("No language model configured; using regex header parse")
        return heuristic_header(raw_text)

    prompt = HEADER_PROMPT.format(categories=_CATEGORY_CHOICES, raw_text=raw_text)
    try:
        parsed = safe_parse_json(llm.generate(prompt))
    except InvoiceScanError as exc:
        log.warning("Header parse failed, using defaults: %s", exc)
        return default_header()
    except Exception:
        log.exception("Unexpected error while parsing header; using defaults")
        return default_header()

    if not isinstance(parsed, dict):
        log.warning("Header parse returned %s instead of an object", type(parsed).__name__)
        return default_header()
    return header_from_mapping(parsed)


def classify_category(raw_text: str, llm=None) -> str:
    """Category-only prompt for when structured OCR already has the header."""
    if llm is None or not (raw_text or "").strip():
        return DEFAULT_CATEGORY

    prompt = CATEGORY_PROMPT.format(categories=_CATEGORY_CHOICES, raw_text=raw_text)
    try:
        parsed = safe_parse_json(llm.generate(prompt))
    except InvoiceScanError as exc:
        log.warning("Category classification failed: %s", exc)
        return DEFAULT_CATEGORY
    except Exception:
        log.exception("Unexpected error while classifying category")
        return DEFAULT_CATEGORY

    raw_category: Optional[Any] = parsed.get("category") if isinstance(parsed, dict) else parsed
    if not isinstance(raw_category, str):
        return DEFAULT_CATEGORY
    return canonical_category(raw_category, DEFAULT_CATEGORY)
