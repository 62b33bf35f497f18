# invoice_scan/config_labels.py
"""Vocabulary, default values and thresholds used across the scan pipeline."""
from __future__ import annotations

import re

# Canonical Hebrew unit tokens
UNIT_COUNT = "יח'"
KILOGRAM = "קג"
GRAM = "גרם"
LITER = "ליטר"
MILLILITER = "מל"
CRATE = "ארגז"
PACKAGE = "מארז"

CANONICAL_UNITS = (UNIT_COUNT, KILOGRAM, GRAM, LITER, MILLILITER, CRATE, PACKAGE)

# Lowercased token -> canonical unit. Canonical tokens are added below so the
# mapping is closed under itself.
UNIT_ALIASES = {
    # English / ASCII codes requested from the extraction prompts
    "unit": UNIT_COUNT,
    "units": UNIT_COUNT,
    "pcs": UNIT_COUNT,
    "pc": UNIT_COUNT,
    "piece": UNIT_COUNT,
    "pieces": UNIT_COUNT,
    "each": UNIT_COUNT,
    "kg": KILOGRAM,
    "kgs": KILOGRAM,
    "kilo": KILOGRAM,
    "kilogram": KILOGRAM,
    "kilograms": KILOGRAM,
    "gram": GRAM,
    "grams": GRAM,
    "g": GRAM,
    "gr": GRAM,
    "liter": LITER,
    "liters": LITER,
    "litre": LITER,
    "litres": LITER,
    "l": LITER,
    "lt": LITER,
    "ml": MILLILITER,
    "milliliter": MILLILITER,
    "millilitre": MILLILITER,
    "case": CRATE,
    "cases": CRATE,
    "crate": CRATE,
    "box": CRATE,
    "boxes": CRATE,
    "pack": PACKAGE,
    "packs": PACKAGE,
    "package": PACKAGE,
    "packet": PACKAGE,
    # Hebrew spellings seen on supplier invoices
    "יח": UNIT_COUNT,
    "יחידה": UNIT_COUNT,
    "יחידות": UNIT_COUNT,
    'יח"': UNIT_COUNT,
    'ק"ג': KILOGRAM,
    "ק''ג": KILOGRAM,
    "ק״ג": KILOGRAM,
    "קילו": KILOGRAM,
    "קילוגרם": KILOGRAM,
    "גר'": GRAM,
    "גר": GRAM,
    "ל'": LITER,
    'מ"ל': MILLILITER,
    "מ''ל": MILLILITER,
    "מ״ל": MILLILITER,
    "ארגזים": CRATE,
    "קרטון": CRATE,
    "מארזים": PACKAGE,
    "חבילה": PACKAGE,
}
UNIT_ALIASES.update({unit: unit for unit in CANONICAL_UNITS})

DEFAULT_UNIT = UNIT_COUNT

# Header defaults
UNRECOGNIZED_SUPPLIER = "לא זוהה"
DEFAULT_CATEGORY = "כללי"

# MIME handling
PDF_MIME_TYPE = "application/pdf"
DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"

RAW_TEXT_LIMIT = 1500

# Swap heuristic: only attempt when qty * price is within 2% of the total
SWAP_BALANCE_TOLERANCE = 0.02
SWAP_MAGNITUDE = 10

# Math validation
LINE_ITEM_TOLERANCE = 0.05
INVOICE_TOTAL_TOLERANCE = 0.10

# Regex fallback for header fields when no language model is configured
TOTAL_PATTERN = re.compile(
    r"(?:סה[\"״]כ|Total|סכום)\s*:?\s*(\d+(?:[.,]\d{1,2})?)", re.IGNORECASE
)
DATE_PATTERN = re.compile(r"(\d{1,2}[/.]\d{1,2}[/.]\d{2,4})")

# Monthly expense report
REPORT_TITLE = "דו״ח הוצאות חודשי - מסעדת פרו"
REPORT_SUBJECT_PREFIX = "דו״ח הוצאות - מסעדת פרו"
REPORT_SENDER_NAME = "Antigravity POS"
HEBREW_MONTHS = (
    "ינואר",
    "פברואר",
    "מרץ",
    "אפריל",
    "מאי",
    "יוני",
    "יולי",
    "אוגוסט",
    "ספטמבר",
    "אוקטובר",
    "נובמבר",
    "דצמבר",
)
DEFAULT_SMTP_PORT = 587
