# invoice_scan/pipeline.py
"""
Invoice scan orchestration.

RECEIVED -> OCR_DONE -> HEADERS_PARSED -> ITEMS_EXTRACTED -> VALIDATED -> RESPONDED
RECEIVED -> NO_TEXT -> RESPONDED when no OCR backend produced any text.

Every external call is guarded at its stage and degrades to a fallback;
``InvoiceScanner.scan`` only raises for errors that escape all of them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Protocol, TypeVar

from .categories import CategoryBehavior, behavior_for
from .config import Settings
from .config_labels import DEFAULT_IMAGE_MIME_TYPE, DEFAULT_UNIT, RAW_TEXT_LIMIT
from .corrector import fix_swaps
from .errors import InvoiceScanError
from .extractor import extract_line_items, is_pdf
from .gemini import build_gemini_clients
from .header_parser import classify_category, default_header, parse_header
from .lang_utils import detect_language, truncate
from .logging_utils import get_logger
from .models import (
    InvoiceHeader,
    LineItem,
    ScanResult,
    ValidationResult,
    ValidationStatus,
)
from .ocr import OcrDocument, build_ocr_services
from .validator import validate_line_items

log = get_logger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------
class DocumentOcr(Protocol):
    def process(self, content: bytes, mime_type: str) -> OcrDocument: ...


class TextOcr(Protocol):
    accepts_pdf: bool

    def detect_text(self, content: bytes, mime_type: str) -> str: ...


class LlmClient(Protocol):
    def generate(
        self,
        prompt: str,
        image: Optional[bytes] = None,
        mime_type: Optional[str] = None,
        json_mode: bool = True,
    ) -> str: ...


@dataclass(frozen=True)
class ScanServices:
    """External clients, created once per process and shared by all scans."""

    document_ocr: Optional[DocumentOcr] = None
    text_ocr: Optional[TextOcr] = None
    text_llm: Optional[LlmClient] = None
    vision_llm: Optional[LlmClient] = None

    def describe(self) -> Dict[str, bool]:
        return {
            "document_ocr": self.document_ocr is not None,
            "text_ocr": self.text_ocr is not None,
            "text_llm": self.text_llm is not None,
            "vision_llm": self.vision_llm is not None,
        }


def build_services(settings: Settings) -> ScanServices:
    document_ocr, text_ocr = build_ocr_services(settings)
    text_llm, vision_llm = build_gemini_clients(settings)
    return ScanServices(
        document_ocr=document_ocr,
        text_ocr=text_ocr,
        text_llm=text_llm,
        vision_llm=vision_llm,
    )


# ---------------------------------------------------------
# Stage results
# ---------------------------------------------------------
class StageError(str, Enum):
    NOT_CONFIGURED = "not_configured"
    UPSTREAM = "upstream"
    EMPTY = "empty"
    SKIPPED = "skipped"


@dataclass
class StageOutcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[StageError] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "StageOutcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: StageError, detail: str = "") -> "StageOutcome[T]":
        return cls(error=error, detail=detail)


class ScanState(str, Enum):
    RECEIVED = "RECEIVED"
    OCR_DONE = "OCR_DONE"
    NO_TEXT = "NO_TEXT"
    HEADERS_PARSED = "HEADERS_PARSED"
    ITEMS_EXTRACTED = "ITEMS_EXTRACTED"
    VALIDATED = "VALIDATED"
    RESPONDED = "RESPONDED"


_TRANSITIONS = {
    ScanState.RECEIVED: {ScanState.OCR_DONE, ScanState.NO_TEXT},
    ScanState.OCR_DONE: {ScanState.HEADERS_PARSED},
    ScanState.NO_TEXT: {ScanState.RESPONDED},
    ScanState.HEADERS_PARSED: {ScanState.ITEMS_EXTRACTED},
    ScanState.ITEMS_EXTRACTED: {ScanState.VALIDATED},
    ScanState.VALIDATED: {ScanState.RESPONDED},
    ScanState.RESPONDED: set(),
}


@dataclass
class ScanContext:
    """Per-request state; never shared between scans."""

    image: bytes
    mime_type: str
    state: ScanState = ScanState.RECEIVED
    history: List[ScanState] = field(default_factory=lambda: [ScanState.RECEIVED])

    raw_text: str = ""
    ocr_header: Optional[Dict[str, str]] = None
    header: Optional[InvoiceHeader] = None
    line_items: List[LineItem] = field(default_factory=list)
    validation: Optional[ValidationResult] = None

    @property
    def is_pdf(self) -> bool:
        return is_pdf(self.mime_type)

    def advance(self, new_state: ScanState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvoiceScanError(f"Illegal scan transition {self.state.value} -> {new_state.value}")
        log.info("scan %s -> %s", self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)


def summary_line_item(header: InvoiceHeader) -> LineItem:
    """Single row standing in for invoices that are not itemized (rent, payroll...)."""
    return LineItem(
        name=header.category,
        quantity=1,
        unit=DEFAULT_UNIT,
        price_per_unit=header.total,
        total_price=header.total,
    )


class InvoiceScanner:
    def __init__(self, services: ScanServices, raw_text_limit: int = RAW_TEXT_LIMIT):
        self.services = services
        self.raw_text_limit = raw_text_limit

    # ---------------------------------------------------------
    # OCR stages
    # ---------------------------------------------------------
    def _structured_ocr(self, ctx: ScanContext) -> StageOutcome[OcrDocument]:
        ocr = self.services.document_ocr
        if ocr is None:
            return StageOutcome.failure(StageError.NOT_CONFIGURED)
        try:
            document = ocr.process(ctx.image, ctx.mime_type)
        except InvoiceScanError as exc:
            return StageOutcome.failure(StageError.UPSTREAM, str(exc))
        except Exception as exc:
            log.exception("Unexpected structured OCR error")
            return StageOutcome.failure(StageError.UPSTREAM, str(exc))
        if not (document.text or "").strip():
            return StageOutcome.failure(StageError.EMPTY)
        return StageOutcome.success(document)

    def _text_ocr(self, ctx: ScanContext) -> StageOutcome[str]:
        ocr = self.services.text_ocr
        if ocr is None:
            return StageOutcome.failure(StageError.NOT_CONFIGURED)
        if ctx.is_pdf and not getattr(ocr, "accepts_pdf", False):
            return StageOutcome.failure(StageError.SKIPPED, "text OCR does not accept PDF")
        try:
            text = ocr.detect_text(ctx.image, ctx.mime_type)
        except InvoiceScanError as exc:
            return StageOutcome.failure(StageError.UPSTREAM, str(exc))
        except Exception as exc:
            log.exception("Unexpected text OCR error")
            return StageOutcome.failure(StageError.UPSTREAM, str(exc))
        if not (text or "").strip():
            return StageOutcome.failure(StageError.EMPTY)
        return StageOutcome.success(text)

    def _run_ocr(self, ctx: ScanContext) -> bool:
        structured = self._structured_ocr(ctx)
        if structured.ok:
            ctx.raw_text = structured.value.text
            ctx.ocr_header = structured.value.header_fields()
            return True
        log.info("Structured OCR unavailable (%s) %s", structured.error.value, structured.detail)

        fallback = self._text_ocr(ctx)
        if fallback.ok:
            ctx.raw_text = fallback.value
            return True
        log.info("Text OCR unavailable (%s) %s", fallback.error.value, fallback.detail)
        return False

    # ---------------------------------------------------------
    # Header / item stages
    # ---------------------------------------------------------
    def _parse_header(self, ctx: ScanContext) -> InvoiceHeader:
        if ctx.ocr_header is not None:
            log.info("Header fields taken from structured OCR; classifying category only")
            category = classify_category(ctx.raw_text, self.services.text_llm)
            return InvoiceHeader(**ctx.ocr_header, category=category)
        return parse_header(ctx.raw_text, self.services.text_llm)

    def _extract_items(self, ctx: ScanContext) -> List[LineItem]:
        behavior = behavior_for(ctx.header.category)
        if behavior is CategoryBehavior.NON_ITEMIZED:
            log.info("Category %s is not itemized; using a summary row", ctx.header.category)
            return [summary_line_item(ctx.header)]

        items = extract_line_items(
            ctx.image,
            ctx.mime_type,
            text_hint=ctx.raw_text,
            vision_llm=self.services.vision_llm,
            text_llm=self.services.text_llm,
        )
        return fix_swaps(items)

    def _empty_result(self) -> ScanResult:
        return ScanResult.compose(
            header=default_header(),
            line_items=[],
            validation=ValidationResult(status=ValidationStatus.VALID, computed_subtotal=0.0),
            raw_text="",
        )

    # ---------------------------------------------------------
    # Entry point
    # ---------------------------------------------------------
    def scan(self, image: bytes, mime_type: Optional[str] = None) -> ScanResult:
        ctx = ScanContext(image=image, mime_type=mime_type or DEFAULT_IMAGE_MIME_TYPE)
        log.info("Scanning %d bytes (%s)", len(image), ctx.mime_type)

        if not self._run_ocr(ctx):
            ctx.advance(ScanState.NO_TEXT)
            result = self._empty_result()
            ctx.advance(ScanState.RESPONDED)
            return result
        ctx.advance(ScanState.OCR_DONE)

        ctx.header = self._parse_header(ctx)
        ctx.advance(ScanState.HEADERS_PARSED)

        ctx.line_items = self._extract_items(ctx)
        ctx.advance(ScanState.ITEMS_EXTRACTED)

        ctx.validation = validate_line_items(ctx.line_items, ctx.header.total)
        ctx.advance(ScanState.VALIDATED)
        if ctx.validation.status is not ValidationStatus.VALID:
            log.info(
                "Validation %s (subtotal=%s, total=%s, failed rows=%s)",
                ctx.validation.status.value,
                ctx.validation.computed_subtotal,
                ctx.header.total,
                ctx.validation.failed_items,
            )

        result = ScanResult.compose(
            header=ctx.header,
            line_items=ctx.line_items,
            validation=ctx.validation,
            raw_text=truncate(ctx.raw_text, self.raw_text_limit),
            language=detect_language(ctx.raw_text),
        )
        ctx.advance(ScanState.RESPONDED)
        return result

    def describe(self) -> Dict[str, Any]:
        return self.services.describe()
