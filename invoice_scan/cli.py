# invoice_scan/cli.py
from __future__ import annotations

import argparse
import json
import mimetypes
import sys
from pathlib import Path
from typing import List

import uvicorn
from pydantic import ValidationError

from .config import load_settings
from .config_labels import DEFAULT_IMAGE_MIME_TYPE
from .models import ScanResult
from .pipeline import InvoiceScanner, build_services
from .validator import validate_scans


def _guess_mime_type(path: Path) -> str:
    mime, _ = mimetypes.guess_type(str(path))
    return mime or DEFAULT_IMAGE_MIME_TYPE


def _write_json(data, output: str | None) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output:
        out = Path(output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text, encoding="utf-8")
    else:
        print(text)


def cmd_scan(args: argparse.Namespace) -> int:
    path = Path(args.file)
    if not path.is_file():
        print(f"No such file: {path}", file=sys.stderr)
        return 2

    settings = load_settings()
    scanner = InvoiceScanner(build_services(settings), raw_text_limit=settings.raw_text_limit)
    result = scanner.scan(path.read_bytes(), args.mime_type or _guess_mime_type(path))

    _write_json(result.to_wire(), args.output)
    if args.output:
        print(
            f"{result.supplier}: {len(result.line_items)} line items, "
            f"validation {result.validation.status.value} -> {args.output}"
        )
    return 0


def _load_scans_from_json(path: str) -> List[ScanResult]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = [data]
    # accept both bare results and {"success": true, "data": {...}} responses
    return [ScanResult.model_validate(obj.get("data", obj)) for obj in data]


def cmd_validate(args: argparse.Namespace) -> int:
    try:
        scans = _load_scans_from_json(args.input)
    except (OSError, ValueError, AttributeError, ValidationError) as exc:
        print(f"Could not read scans from {args.input}: {exc}", file=sys.stderr)
        return 2

    reports, summary = validate_scans(scans)

    report = {
        "summary": summary.model_dump(by_alias=True),
        "results": [r.model_dump(by_alias=True, mode="json") for r in reports],
    }
    _write_json(report, args.report)

    print(f"Total scans: {summary.total_scans}")
    print(f"Valid scans: {summary.valid_scans}")
    print(f"Flagged scans: {summary.flagged_scans}")
    for status, count in sorted(summary.status_counts.items(), key=lambda kv: -kv[1]):
        print(f"  {status}: {count}")

    changed = [r for r in reports if r.status_changed]
    if changed:
        print(f"Status changed since scan: {', '.join(str(r.index) for r in changed)}")

    return 0 if summary.flagged_scans == 0 else 1


def cmd_serve(args: argparse.Namespace) -> int:
    uvicorn.run("app.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="invoice-scan")
    sub = parser.add_subparsers(dest="command", required=True)

    p_scan = sub.add_parser("scan", help="Scan one invoice image or PDF")
    p_scan.add_argument("--file", required=True, help="Invoice image or PDF")
    p_scan.add_argument("--mime-type", help="Override the MIME type guessed from the file name")
    p_scan.add_argument("--output", help="Write the JSON result here instead of stdout")
    p_scan.set_defaults(func=cmd_scan)

    p_validate = sub.add_parser("validate", help="Re-validate stored scan results")
    p_validate.add_argument("--input", required=True, help="JSON file with one or more scan results")
    p_validate.add_argument("--report", help="Output validation report JSON")
    p_validate.set_defaults(func=cmd_validate)

    p_serve = sub.add_parser("serve", help="Run the HTTP service")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: List[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
