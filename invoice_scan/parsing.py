# invoice_scan/parsing.py
"""
Recovery for the ways language models mangle JSON.

Two failure modes show up on Hebrew invoices:
- the payload is wrapped in a markdown code fence;
- an abbreviation such as ק"ג leaves a bare ``"`` inside a string value.
"""
from __future__ import annotations

import json
import re
from typing import Any, List

from .errors import JsonParseError

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```\s*$")

# A double quote with a Hebrew letter or word character on both sides is part
# of the text, not a JSON delimiter.
_EMBEDDED_QUOTE = re.compile(r'(?<=[\u0590-\u05FF\w])"(?=[\u0590-\u05FF\w])')
_QUOTE_REPLACEMENT = "''"


def strip_markdown_fences(text: str) -> str:
    text = (text or "").strip()
    text = _FENCE_START.sub("", text)
    text = _FENCE_END.sub("", text)
    return text.strip()


def repair_embedded_quotes(text: str) -> str:
    return _EMBEDDED_QUOTE.sub(_QUOTE_REPLACEMENT, text)


def _outermost_json_span(text: str) -> str | None:
    """Substring from the first opening bracket to its last matching closer."""
    starts = [i for i in (text.find("["), text.find("{")) if i != -1]
    if not starts:
        return None
    start = min(starts)
    closer = "]" if text[start] == "[" else "}"
    end = text.rfind(closer)
    if end <= start:
        return None
    return text[start : end + 1]


def preview_text(text: str, limit: int = 300) -> str:
    compact = (text or "").replace("\r", "\\r").replace("\n", "\\n").strip()
    if len(compact) <= limit:
        return compact
    return compact[:limit] + "...(truncated)"


def safe_parse_json(raw: str) -> Any:
    """Parse model output, repairing fences and embedded quotes.

    Raises JsonParseError when nothing parses.
    """
    if not (raw or "").strip():
        raise JsonParseError("Model returned an empty response")

    text = strip_markdown_fences(raw)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    repaired = repair_embedded_quotes(text)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError:
        pass

    span = _outermost_json_span(repaired)
    if span is not None:
        try:
            return json.loads(span)
        except json.JSONDecodeError as exc:
            raise JsonParseError(
                f"Invalid JSON after repair: {exc} preview='{preview_text(raw)}'"
            ) from exc

    raise JsonParseError(f"No JSON found in model output preview='{preview_text(raw)}'")


def unwrap_items(parsed: Any, keys: tuple[str, ...] = ("items", "lineItems")) -> List[Any]:
    """Return the row list from a bare array or from a wrapping object."""
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in keys:
            value = parsed.get(key)
            if isinstance(value, list):
                return value
    return []
