# tests/test_validator.py
import pytest

from invoice_scan.models import ScanResult, ValidationResult, ValidationStatus
from invoice_scan.validator import validate_line_items, validate_scans


def test_balanced_invoice_is_valid(make_item):
    result = validate_line_items([make_item(quantity=2, price=50, total=100)], 100)
    assert result.status is ValidationStatus.VALID
    assert result.computed_subtotal == 100
    assert result.failed_items == []


def test_total_mismatch(make_item):
    result = validate_line_items([make_item(quantity=2, price=50, total=100)], 200)
    assert result.status is ValidationStatus.TOTAL_MISMATCH
    assert result.computed_subtotal == 100


def test_row_error_short_circuits_total_check(make_item):
    items = [
        make_item(quantity=2, price=50, total=100),
        make_item(quantity=3, price=50, total=100),
    ]
    result = validate_line_items(items, 5000)
    assert result.status is ValidationStatus.LINE_ITEM_ERROR
    assert result.failed_items == [1]
    # failed rows still count toward the subtotal
    assert result.computed_subtotal == 200


def test_row_within_tolerance_passes(make_item):
    # 2 x 50 = 100 vs 104: 3.8% off
    result = validate_line_items([make_item(quantity=2, price=50, total=104)], 0)
    assert result.status is ValidationStatus.VALID


def test_rows_without_total_are_not_checked(make_item):
    result = validate_line_items([make_item(quantity=2, price=50, total=0)], 0)
    assert result.status is ValidationStatus.VALID
    assert result.computed_subtotal == 0


def test_missing_invoice_total_skips_total_check(make_item):
    result = validate_line_items([make_item(quantity=1, price=10, total=10)], 0)
    assert result.status is ValidationStatus.VALID


def test_total_within_ten_percent(make_item):
    result = validate_line_items([make_item(quantity=1, price=95, total=95)], 100)
    assert result.status is ValidationStatus.VALID


def test_empty_items():
    result = validate_line_items([], 150)
    assert result.status is ValidationStatus.TOTAL_MISMATCH
    assert result.computed_subtotal == 0


def test_subtotal_is_rounded(make_item):
    items = [make_item(quantity=1, price=0.1, total=0.1) for _ in range(3)]
    assert validate_line_items(items, 0).computed_subtotal == pytest.approx(0.3)
    assert validate_line_items(items, 0).computed_subtotal == 0.3


def _scan(items, total, status):
    return ScanResult(
        supplier="ספק",
        total=total,
        date="1.3.2024",
        category="חומרי גלם",
        line_items=items,
        validation=ValidationResult(status=status),
    )


def test_validate_scans_reports_changes(make_item):
    good = _scan([make_item(quantity=2, price=50, total=100)], 100, ValidationStatus.VALID)
    # edited after the scan: row no longer balances
    edited = _scan([make_item(quantity=4, price=50, total=100)], 100, ValidationStatus.VALID)

    reports, summary = validate_scans([good, edited])

    assert [r.status for r in reports] == [
        ValidationStatus.VALID,
        ValidationStatus.LINE_ITEM_ERROR,
    ]
    assert [r.status_changed for r in reports] == [False, True]
    assert summary.total_scans == 2
    assert summary.valid_scans == 1
    assert summary.flagged_scans == 1
    assert summary.status_counts == {"VALID": 1, "LINE_ITEM_ERROR": 1}
