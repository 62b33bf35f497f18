# tests/test_header_parser.py
import pytest
from fakes import FakeLlm

from invoice_scan.config_labels import DEFAULT_CATEGORY, UNRECOGNIZED_SUPPLIER
from invoice_scan.errors import UpstreamError
from invoice_scan.header_parser import classify_category, parse_header
from invoice_scan.lang_utils import today_label

RECEIPT = "מאפיית השחר\nתאריך 05/03/2024\nלחם 2 x 12.00\nסה\"כ: 250.00"


def test_parse_header_from_model_output():
    llm = FakeLlm(
        '```json\n{"supplier": "מאפיית השחר", "total": "250.00", '
        '"date": "05/03/2024", "category": "Raw materials"}\n```'
    )

    header = parse_header(RECEIPT, llm)

    assert header.supplier == "מאפיית השחר"
    assert header.total == 250.0
    assert header.date == "05/03/2024"
    assert header.category == "חומרי גלם"
    assert RECEIPT in llm.calls[0]["prompt"]


def test_missing_fields_get_defaults():
    header = parse_header(RECEIPT, FakeLlm('{"supplier": "", "total": null}'))

    assert header.supplier == UNRECOGNIZED_SUPPLIER
    assert header.total == 0
    assert header.date == today_label()
    assert header.category == DEFAULT_CATEGORY


def test_model_failure_yields_default_header():
    header = parse_header(RECEIPT, FakeLlm(UpstreamError("quota exceeded")))

    assert header.supplier == UNRECOGNIZED_SUPPLIER
    assert header.total == 0
    assert header.category == DEFAULT_CATEGORY


def test_garbage_output_yields_default_header():
    assert parse_header(RECEIPT, FakeLlm("I could not read it")).supplier == UNRECOGNIZED_SUPPLIER
    assert parse_header(RECEIPT, FakeLlm("[1, 2]")).supplier == UNRECOGNIZED_SUPPLIER


def test_empty_text_skips_the_model():
    llm = FakeLlm('{"supplier": "x"}')
    header = parse_header("   ", llm)
    assert header.supplier == UNRECOGNIZED_SUPPLIER
    assert llm.calls == []


def test_regex_header_without_model():
    header = parse_header(RECEIPT, None)

    assert header.supplier == "מאפיית השחר"
    assert header.total == 250.0
    assert header.date == "5.3.2024"
    assert header.category == DEFAULT_CATEGORY


def test_classify_category():
    llm = FakeLlm('{"category": "שכירות"}')
    assert classify_category("Monthly rent March", llm) == "שכירות"
    assert "Monthly rent March" in llm.calls[0]["prompt"]


def test_classify_category_falls_back():
    assert classify_category("text", None) == DEFAULT_CATEGORY
    assert classify_category("text", FakeLlm(UpstreamError("down"))) == DEFAULT_CATEGORY
    assert classify_category("text", FakeLlm('{"category": 7}')) == DEFAULT_CATEGORY


@pytest.mark.parametrize("category", ["5", '["rent"]', '{"he": "שכירות"}'])
def test_non_text_category_gets_the_default(category):
    llm = FakeLlm(
        '{"supplier": "x", "total": 10, "date": "1.1.2024", "category": ' + category + "}"
    )

    header = parse_header(RECEIPT, llm)

    assert header.supplier == "x"
    assert header.total == 10
    assert header.category == DEFAULT_CATEGORY
