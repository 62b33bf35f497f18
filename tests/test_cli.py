# tests/test_cli.py
import json

import pytest

from invoice_scan.cli import main


def _scan(quantity, status="VALID"):
    return {
        "supplier": "תנובה",
        "total": 100,
        "date": "1.3.2024",
        "category": "חומרי גלם",
        "lineItems": [
            {"name": "חלב", "quantity": quantity, "unit": "יח'", "pricePerUnit": 50, "totalPrice": 100}
        ],
        "validation": {"status": status, "computedSubtotal": 100, "failedItems": []},
        "rawText": "",
    }


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


def test_validate_clean_batch(tmp_path, capsys):
    scans = tmp_path / "scans.json"
    scans.write_text(json.dumps([_scan(2), {"success": True, "data": _scan(2)}]), encoding="utf-8")
    report = tmp_path / "out" / "report.json"

    code = _run(["validate", "--input", str(scans), "--report", str(report)])

    assert code == 0
    data = json.loads(report.read_text(encoding="utf-8"))
    assert data["summary"]["totalScans"] == 2
    assert data["summary"]["validScans"] == 2
    assert "Valid scans: 2" in capsys.readouterr().out


def test_validate_flags_edited_scan(tmp_path, capsys):
    scans = tmp_path / "scans.json"
    scans.write_text(json.dumps(_scan(3)), encoding="utf-8")

    code = _run(["validate", "--input", str(scans)])

    assert code == 1
    out = capsys.readouterr().out
    assert "LINE_ITEM_ERROR" in out
    assert "Status changed since scan: 0" in out


def test_validate_unreadable_input(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("not json", encoding="utf-8")
    assert _run(["validate", "--input", str(bad)]) == 2
    assert _run(["validate", "--input", str(tmp_path / "missing.json")]) == 2


def test_scan_missing_file(tmp_path):
    assert _run(["scan", "--file", str(tmp_path / "nope.jpg")]) == 2
