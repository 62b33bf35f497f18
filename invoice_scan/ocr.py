# invoice_scan/ocr.py
"""
OCR backends.

- DocumentAiOcr: structured invoice parser, returns text plus entities.
- VisionTextOcr: general text detection, images only.
- LocalTextOcr: pdfplumber / Tesseract, for running without Google Cloud.
"""
from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import pdfplumber
import pytesseract
from google.api_core.client_options import ClientOptions
from google.cloud import documentai, vision
from google.oauth2 import service_account
from PIL import Image

from .config import Settings
from .config_labels import PDF_MIME_TYPE
from .errors import UpstreamError
from .logging_utils import get_logger

log = get_logger(__name__)

# Document AI invoice parser entity types -> header fields
HEADER_ENTITY_TYPES = {
    "supplier": "supplier_name",
    "total": "total_amount",
    "date": "invoice_date",
}


@dataclass
class OcrDocument:
    text: str
    entities: Dict[str, str] = field(default_factory=dict)

    def header_fields(self) -> Optional[Dict[str, str]]:
        """supplier/total/date when all three entities were found, else None."""
        fields = {
            name: self.entities.get(entity_type, "").strip()
            for name, entity_type in HEADER_ENTITY_TYPES.items()
        }
        if all(fields.values()):
            return fields
        return None


def _entity_value(entity) -> str:
    normalized = getattr(entity, "normalized_value", None)
    if normalized is not None and normalized.text:
        return normalized.text
    return entity.mention_text or ""


class DocumentAiOcr:
    accepts_pdf = True

    def __init__(self, project_id: str, location: str, processor_id: str, credentials=None):
        options = ClientOptions(api_endpoint=f"{location}-documentai.googleapis.com")
        self._client = documentai.DocumentProcessorServiceClient(
            client_options=options, credentials=credentials
        )
        self._name = self._client.processor_path(project_id, location, processor_id)

    def process(self, content: bytes, mime_type: str) -> OcrDocument:
        request = documentai.ProcessRequest(
            name=self._name,
            raw_document=documentai.RawDocument(content=content, mime_type=mime_type),
        )
        try:
            result = self._client.process_document(request=request)
        except Exception as exc:
            raise UpstreamError(f"Document AI failed: {exc}") from exc

        document = result.document
        entities: Dict[str, str] = {}
        for entity in document.entities:
            value = _entity_value(entity).strip()
            # keep the first (highest ranked) mention of each type
            if value and entity.type_ not in entities:
                entities[entity.type_] = value
        return OcrDocument(text=document.text or "", entities=entities)


class VisionTextOcr:
    accepts_pdf = False

    def __init__(self, credentials=None):
        self._client = vision.ImageAnnotatorClient(credentials=credentials)

    def detect_text(self, content: bytes, mime_type: str) -> str:
        try:
            response = self._client.text_detection(image=vision.Image(content=content))
        except Exception as exc:
            raise UpstreamError(f"Vision text detection failed: {exc}") from exc
        if response.error.message:
            raise UpstreamError(f"Vision text detection failed: {response.error.message}")

        annotations = response.text_annotations
        if not annotations:
            return ""
        return annotations[0].description or ""


class LocalTextOcr:
    accepts_pdf = True

    def __init__(self, tesseract_cmd: Optional[str] = None, lang: str = "heb+eng"):
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.lang = lang

    def detect_text(self, content: bytes, mime_type: str) -> str:
        try:
            if mime_type == PDF_MIME_TYPE:
                return self._pdf_text(content)
            return self._image_text(content)
        except Exception as exc:
            raise UpstreamError(f"Local OCR failed: {exc}") from exc

    def _pdf_text(self, content: bytes) -> str:
        parts = []
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            for page in pdf.pages:
                parts.append(page.extract_text() or "")
        return "\n".join(parts)

    def _image_text(self, content: bytes) -> str:
        with Image.open(io.BytesIO(content)) as img:
            return pytesseract.image_to_string(img, lang=self.lang) or ""


def _credentials(settings: Settings):
    info = settings.google_service_account_info()
    if info is None:
        # fall back to Application Default Credentials
        return None
    return service_account.Credentials.from_service_account_info(info)


def build_ocr_services(settings: Settings) -> Tuple[Optional[DocumentAiOcr], Optional[object]]:
    """Return (structured OCR, text OCR) for the configured environment."""
    try:
        credentials = _credentials(settings)
    except ValueError as exc:
        log.error("GOOGLE_APPLICATION_CREDENTIALS_JSON is not valid service-account JSON: %s", exc)
        credentials = None

    document_ocr = None
    if settings.documentai_configured:
        try:
            document_ocr = DocumentAiOcr(
                settings.documentai_project_id,
                settings.documentai_location,
                settings.documentai_processor_id,
                credentials=credentials,
            )
            log.info("Document AI processor %s configured", settings.documentai_processor_id)
        except Exception as exc:
            log.error("Could not create Document AI client: %s", exc)

    text_ocr = None
    if settings.vision_enabled:
        try:
            text_ocr = VisionTextOcr(credentials=credentials)
            log.info("Cloud Vision text detection configured")
        except Exception as exc:
            log.error("Could not create Vision client: %s", exc)

    if text_ocr is None:
        text_ocr = LocalTextOcr(settings.tesseract_cmd, settings.tesseract_lang)
        log.info("Using local OCR (pdfplumber / tesseract %s)", settings.tesseract_lang)

    return document_ocr, text_ocr
