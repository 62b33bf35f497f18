# invoice_scan/extractor.py
from __future__ import annotations

from typing import Any, List, Optional

from pydantic import ValidationError

from .config_labels import PDF_MIME_TYPE
from .errors import ExtractionError, InvoiceScanError, ServiceNotConfigured
from .lang_utils import normalize_unit
from .logging_utils import get_logger
from .models import LineItem, MenuDish
from .parsing import safe_parse_json, unwrap_items

log = get_logger(__name__)

VISION_ITEMS_PROMPT = """You are reading an Israeli supplier invoice image.
Extract EVERY product line from the TABLE. Israeli invoices have columns like:
  [Product Name] | [Qty] | [Unit Price] | [Total]
or (RTL): [Total] | [Unit Price] | [Qty] | [Product Name]

RULES:
1. quantity = the number in the QUANTITY column. Can be a decimal like 24.60 (weight in kg).
2. unit = one of these ASCII codes ONLY (no Hebrew, no quotes): unit, kg, gram, liter, ml, case, pack
3. Verify: quantity x pricePerUnit is approximately equal to totalPrice. If not, re-read.
4. Hint: if quantity > 5 and looks decimal, unit is probably "kg". Small integers -> "unit".
5. name = full product name exactly as written.

Return ONLY a valid JSON array. No markdown, no explanation, no Hebrew in the JSON keys or unit values:
[{"name":"Vodka Smirnoff 1L","quantity":2,"unit":"unit","pricePerUnit":89.90,"totalPrice":179.80}]
If no items found, return []."""

TEXT_ITEMS_PROMPT = """
Extract the individual line items (purchased goods/ingredients) from this Israeli restaurant receipt text.
Respond ONLY with a valid JSON array of objects matching exactly this schema:
[
  {{
    "name": "The name of the item (e.g., 'עגבניות חממה', 'פחית קולה')",
    "quantity": 1.5,
    "unit": "kg",
    "pricePerUnit": 5.90,
    "totalPrice": 8.85
  }}
]
quantity is the total quantity purchased, pricePerUnit the price for ONE unit and
totalPrice the line total, all numbers. unit is one of: unit, kg, gram, liter, ml, case, pack.

If you cannot confidently extract an item's details, skip it. If no items are found, return an empty array [].
Receipt text:
{raw_text}
"""

MENU_PROMPT = """
You are an expert at extracting menus from photos.
Extract a list of dishes and their prices from the provided image.
Be precise with the names in Hebrew and the prices in numbers (ILS).

Respond ONLY with valid JSON:
{
  "dishes": [
    { "name": "Dish Name", "price": 89.0 }
  ]
}
"""


def is_pdf(mime_type: Optional[str]) -> bool:
    return (mime_type or "").lower() == PDF_MIME_TYPE


def _coerce_rows(rows: List[Any]) -> List[LineItem]:
    items: List[LineItem] = []
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            log.debug("Skipping row %d: not an object", i)
            continue
        try:
            items.append(LineItem.model_validate(row))
        except ValidationError as exc:
            log.debug("Skipping row %d: %s", i, exc.errors()[0].get("msg"))
    return items


def items_from_response(raw: str) -> List[LineItem]:
    """Parse a model response into line items; raises JsonParseError."""
    return _coerce_rows(unwrap_items(safe_parse_json(raw)))


def normalize_units(items: List[LineItem]) -> List[LineItem]:
    return [item.model_copy(update={"unit": normalize_unit(item.unit)}) for item in items]


def _extract_from_image(image: bytes, mime_type: Optional[str], vision_llm) -> List[LineItem]:
    if vision_llm is None:
        raise ServiceNotConfigured("No vision model configured")
    raw = vision_llm.generate(VISION_ITEMS_PROMPT, image=image, mime_type=mime_type, json_mode=False)
    return items_from_response(raw)


def _extract_from_text(text: str, text_llm) -> List[LineItem]:
    if text_llm is None:
        raise ServiceNotConfigured("No text model configured")
    raw = text_llm.generate(TEXT_ITEMS_PROMPT.format(raw_text=text))
    return items_from_response(raw)


def extract_line_items(
    image: bytes,
    mime_type: Optional[str] = None,
    text_hint: Optional[str] = None,
    vision_llm=None,
    text_llm=None,
) -> List[LineItem]:
    """Line items from the invoice image, falling back to the OCR text.

    PDFs go straight to the text path. Never raises: when both paths fail
    the result is an empty list.
    """
    items: Optional[List[LineItem]] = None

    if is_pdf(mime_type):
        log.info("PDF input; extracting line items from OCR text")
    else:
        try:
            items = _extract_from_image(image, mime_type, vision_llm)
            log.info("Vision extraction returned %d line items", len(items))
        except InvoiceScanError as exc:
            log.warning("Vision extraction failed: %s", exc)
        except Exception:
            log.exception("Unexpected error during vision extraction")

    if items is None:
        if not (text_hint or "").strip():
            log.info("No OCR text to fall back on; returning no line items")
            return []
        try:
            items = _extract_from_text(text_hint, text_llm)
            log.info("Text extraction returned %d line items", len(items))
        except InvoiceScanError as exc:
            log.warning("Text extraction failed: %s", exc)
            return []
        except Exception:
            log.exception("Unexpected error during text extraction")
            return []

    return normalize_units(items)


def extract_menu(image: bytes, mime_type: Optional[str], vision_llm) -> List[MenuDish]:
    """Dishes and prices from a menu photo; raises ExtractionError."""
    if vision_llm is None:
        raise ExtractionError("No vision model configured")
    try:
        parsed = safe_parse_json(vision_llm.generate(MENU_PROMPT, image=image, mime_type=mime_type))
    except InvoiceScanError as exc:
        raise ExtractionError(f"Failed to process menu: {exc}") from exc

    dishes: List[MenuDish] = []
    for row in unwrap_items(parsed, keys=("dishes",)):
        if not isinstance(row, dict):
            continue
        try:
            dishes.append(MenuDish.model_validate(row))
        except ValidationError:
            log.debug("Skipping menu row without a usable name: %r", row)
    return dishes
