# tests/fakes.py
"""Scripted stand-ins for the OCR backends, language models and token verifier."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from invoice_scan.errors import AuthError, UpstreamError
from invoice_scan.ocr import OcrDocument


class FakeLlm:
    """Returns queued responses in order; queued exceptions are raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def generate(self, prompt, image=None, mime_type=None, json_mode=True) -> str:
        self.calls.append(
            {"prompt": prompt, "image": image, "mime_type": mime_type, "json_mode": json_mode}
        )
        if not self.responses:
            raise UpstreamError("no scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeDocumentOcr:
    accepts_pdf = True

    def __init__(self, document: Optional[OcrDocument] = None, error: Optional[Exception] = None):
        self.document = document
        self.error = error
        self.calls: List[str] = []

    def process(self, content: bytes, mime_type: str) -> OcrDocument:
        self.calls.append(mime_type)
        if self.error is not None:
            raise self.error
        return self.document


class FakeTextOcr:
    def __init__(self, text: str = "", accepts_pdf: bool = False, error: Optional[Exception] = None):
        self.text = text
        self.accepts_pdf = accepts_pdf
        self.error = error
        self.calls: List[str] = []

    def detect_text(self, content: bytes, mime_type: str) -> str:
        self.calls.append(mime_type)
        if self.error is not None:
            raise self.error
        return self.text


class FakeVerifier:
    def __init__(self, valid_token: str = "good-token"):
        self.valid_token = valid_token
        self.calls: List[str] = []

    def verify(self, token: str) -> Dict[str, Any]:
        self.calls.append(token)
        if token != self.valid_token:
            raise AuthError("Invalid token")
        return {"uid": "user-1"}
