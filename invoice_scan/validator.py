# invoice_scan/validator.py
from __future__ import annotations

from collections import Counter
from typing import Iterable, List, Tuple

from .config_labels import INVOICE_TOTAL_TOLERANCE, LINE_ITEM_TOLERANCE
from .models import (
    BatchValidationSummary,
    LineItem,
    ScanResult,
    ScanValidationReport,
    ValidationResult,
    ValidationStatus,
)


def _relative_diff(value: float, reference: float) -> float:
    return abs(value - reference) / reference


def validate_line_items(items: Iterable[LineItem], extracted_total: float) -> ValidationResult:
    """Cross-check row arithmetic, then the invoice total.

    Gate 1: every row with a positive total must satisfy
    quantity x price within 5%. Any failure ends validation with
    LINE_ITEM_ERROR. Gate 2: the sum of row totals must be within 10% of a
    positive extracted total. The subtotal always includes every row.
    """
    failed_items: List[int] = []
    computed_subtotal = 0.0

    for i, item in enumerate(items):
        expected = item.quantity * item.price_per_unit
        actual = item.total_price
        if actual > 0 and _relative_diff(expected, actual) > LINE_ITEM_TOLERANCE:
            failed_items.append(i)
        computed_subtotal += actual

    if failed_items:
        status = ValidationStatus.LINE_ITEM_ERROR
    elif extracted_total > 0 and _relative_diff(computed_subtotal, extracted_total) > INVOICE_TOTAL_TOLERANCE:
        status = ValidationStatus.TOTAL_MISMATCH
    else:
        status = ValidationStatus.VALID

    return ValidationResult(
        status=status,
        computed_subtotal=round(computed_subtotal, 2),
        failed_items=failed_items,
    )


def validate_scans(
    scans: List[ScanResult],
) -> Tuple[List[ScanValidationReport], BatchValidationSummary]:
    """Re-run the math validation over stored scans (e.g. after manual edits)."""
    reports: List[ScanValidationReport] = []
    status_counter: Counter[str] = Counter()

    for i, scan in enumerate(scans):
        result = validate_line_items(scan.line_items, scan.total)
        status_counter[result.status.value] += 1
        reports.append(
            ScanValidationReport(
                index=i,
                supplier=scan.supplier,
                status=result.status,
                failed_items=result.failed_items,
                computed_subtotal=result.computed_subtotal,
                status_changed=result.status != scan.validation.status,
            )
        )

    total = len(scans)
    valid = status_counter.get(ValidationStatus.VALID.value, 0)

    summary = BatchValidationSummary(
        total_scans=total,
        valid_scans=valid,
        flagged_scans=total - valid,
        status_counts=dict(status_counter),
    )
    return reports, summary
