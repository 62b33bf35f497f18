# invoice_scan/lang_utils.py
from __future__ import annotations

import math
import re
from datetime import date
from typing import Any, Optional

import dateparser
from langdetect import DetectorFactory, LangDetectException, detect

from .config_labels import DEFAULT_UNIT, UNIT_ALIASES
from .logging_utils import get_logger

log = get_logger(__name__)

# langdetect is non-deterministic without a fixed seed
DetectorFactory.seed = 0

AMOUNT_RE = re.compile(r"[-+]?\d+(?:\.\d+)?")


def detect_language(text: str) -> str:
    if not text or not text.strip():
        return "unknown"
    try:
        return detect(text)
    except LangDetectException:
        return "unknown"


def normalize_amount(raw: Any) -> Optional[float]:
    """Coerce a model- or OCR-produced amount into a float.

    Accepts numbers, and strings such as ``"1,234.50"``, ``"1.234,50"``,
    ``"₪ 89.90"`` or ``"12,5"``. The right-most separator is taken as the
    decimal point when both ``,`` and ``.`` appear.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        try:
            value = float(raw)
        except OverflowError:
            return None
        # json.loads lets NaN and Infinity through
        return value if math.isfinite(value) else None

    s = str(raw).strip()
    if not s:
        return None
    # remove currency symbols + spaces
    s = re.sub(r"[^\d.,\-+]", "", s)

    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        head, _, tail = s.rpartition(",")
        # "1,234" is a thousands separator, "12,5" a decimal comma
        if len(tail) == 3 and head.replace(",", "").lstrip("-+").isdigit():
            s = s.replace(",", "")
        else:
            s = head.replace(",", "") + "." + tail

    m = AMOUNT_RE.search(s)
    if not m:
        return None
    try:
        value = float(m.group(0))
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def normalize_unit(raw_unit: Optional[str]) -> str:
    """Map any unit spelling to the canonical Hebrew unit vocabulary.

    Unknown tokens fall back to the unit-count token; that fallback is logged
    but never raised.
    """
    key = (raw_unit or "").strip().lower()
    if not key:
        return DEFAULT_UNIT
    canonical = UNIT_ALIASES.get(key)
    if canonical is None:
        log.warning("Unknown unit %r, defaulting to %s", raw_unit, DEFAULT_UNIT)
        return DEFAULT_UNIT
    return canonical


def format_he_date(d: date) -> str:
    """Israeli short date, as the invoices and the frontend print it: 19.10.2026."""
    return f"{d.day}.{d.month}.{d.year}"


def today_label() -> str:
    return format_he_date(date.today())


def parse_date_any(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    dt = dateparser.parse(
        text,
        settings={"DATE_ORDER": "DMY", "PREFER_DAY_OF_MONTH": "first"},
    )
    if not dt:
        return None
    return format_he_date(dt.date())


def clean_line(line: str) -> str:
    return line.strip().replace("\u00a0", " ")


def extract_lines(text: str) -> list[str]:
    """Split text into cleaned non-empty lines."""
    return [l for l in (clean_line(x) for x in text.splitlines()) if l]


def truncate(text: str, limit: int) -> str:
    if limit <= 0:
        return ""
    return text if len(text) <= limit else text[:limit]
