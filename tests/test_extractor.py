# tests/test_extractor.py
import pytest
from fakes import FakeLlm

from invoice_scan.config_labels import CRATE, KILOGRAM, UNIT_COUNT
from invoice_scan.errors import ExtractionError, UpstreamError
from invoice_scan.extractor import extract_line_items, extract_menu

IMAGE = b"\xff\xd8fake-jpeg"

VISION_ROWS = (
    '[{"name": "עגבניות", "quantity": 24.6, "unit": "kg", "pricePerUnit": 5, "totalPrice": 123},'
    ' {"name": "קולה", "quantity": 2, "unit": "case", "pricePerUnit": 60, "totalPrice": 120}]'
)


def test_vision_rows_are_parsed_and_units_normalized():
    vision = FakeLlm(VISION_ROWS)

    items = extract_line_items(IMAGE, "image/jpeg", text_hint="ocr text", vision_llm=vision)

    assert [i.name for i in items] == ["עגבניות", "קולה"]
    assert [i.unit for i in items] == [KILOGRAM, CRATE]
    assert items[0].quantity == 24.6
    assert items[0].price_per_unit == 5
    assert vision.calls[0]["image"] == IMAGE
    assert vision.calls[0]["mime_type"] == "image/jpeg"


def test_vision_failure_falls_back_to_text():
    vision = FakeLlm(UpstreamError("vision down"))
    text = FakeLlm('{"items": [{"name": "חלב", "quantity": "3", "unit": "bottle", "pricePerUnit": "6.5", "totalPrice": "19.5"}]}')

    items = extract_line_items(IMAGE, "image/png", text_hint="חלב 3 6.5 19.5", vision_llm=vision, text_llm=text)

    assert len(items) == 1
    assert items[0].quantity == 3
    assert items[0].price_per_unit == 6.5
    assert items[0].unit == UNIT_COUNT
    assert "חלב 3 6.5 19.5" in text.calls[0]["prompt"]


def test_vision_failure_without_text_returns_no_items():
    text = FakeLlm("[]")

    items = extract_line_items(IMAGE, "image/jpeg", text_hint="", vision_llm=FakeLlm(RuntimeError("boom")), text_llm=text)

    assert items == []
    assert text.calls == []


def test_pdf_goes_straight_to_text():
    vision = FakeLlm(VISION_ROWS)
    text = FakeLlm('[{"name": "שמן", "quantity": 1, "unit": "liter", "pricePerUnit": 30, "totalPrice": 30}]')

    items = extract_line_items(b"%PDF-1.4", "application/pdf", text_hint="שמן 30", vision_llm=vision, text_llm=text)

    assert [i.name for i in items] == ["שמן"]
    assert vision.calls == []


def test_both_paths_failing_returns_no_items():
    items = extract_line_items(
        IMAGE,
        "image/jpeg",
        text_hint="some text",
        vision_llm=FakeLlm("not json"),
        text_llm=FakeLlm(UpstreamError("text down")),
    )
    assert items == []


def test_rows_without_names_are_dropped():
    vision = FakeLlm('[{"name": "", "quantity": 1}, "junk", {"name": "ביצים", "quantity": 30, "unit": null}]')

    items = extract_line_items(IMAGE, "image/jpeg", vision_llm=vision)

    assert [i.name for i in items] == ["ביצים"]
    assert items[0].unit == UNIT_COUNT


def test_extract_menu():
    vision = FakeLlm('{"dishes": [{"name": "שקשוקה", "price": "54"}, {"name": "", "price": 10}]}')

    dishes = extract_menu(IMAGE, "image/jpeg", vision)

    assert [(d.name, d.price) for d in dishes] == [("שקשוקה", 54.0)]


def test_extract_menu_errors():
    with pytest.raises(ExtractionError):
        extract_menu(IMAGE, "image/jpeg", None)
    with pytest.raises(ExtractionError):
        extract_menu(IMAGE, "image/jpeg", FakeLlm("sorry"))
