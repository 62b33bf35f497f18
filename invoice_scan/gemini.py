# invoice_scan/gemini.py
from __future__ import annotations

from typing import Optional, Tuple

from google import generativeai as genai

from .config import Settings
from .config_labels import DEFAULT_IMAGE_MIME_TYPE
from .errors import UpstreamError
from .logging_utils import get_logger

log = get_logger(__name__)

_JSON_CONFIG = {"response_mime_type": "application/json"}


def _extract_text(response) -> Optional[str]:
    """Safely extract text from a Gemini response."""
    try:
        if response.text:
            return response.text
    except (ValueError, AttributeError):
        # .text raises when the candidate was blocked or has no text part
        pass

    try:
        if response.candidates:
            parts = response.candidates[0].content.parts
            if parts and getattr(parts[0], "text", None):
                return parts[0].text
    except (AttributeError, IndexError):
        pass

    return None


class GeminiClient:
    """One configured Gemini model, reused for every request.

    ``generate`` sends a prompt, optionally with one inline image or PDF,
    and returns the raw response text. Failures raise UpstreamError.
    """

    def __init__(self, api_key: str, model_name: str):
        genai.configure(api_key=api_key)
        self.model_name = model_name
        self._model = genai.GenerativeModel(model_name)

    def generate(
        self,
        prompt: str,
        image: Optional[bytes] = None,
        mime_type: Optional[str] = None,
        json_mode: bool = True,
    ) -> str:
        contents: list = [prompt]
        if image is not None:
            contents.append({"mime_type": mime_type or DEFAULT_IMAGE_MIME_TYPE, "data": image})

        log.debug("Calling %s (image=%s, prompt=%s...)", self.model_name, image is not None, prompt[:80])
        try:
            response = self._model.generate_content(
                contents,
                generation_config=_JSON_CONFIG if json_mode else None,
            )
        except Exception as exc:
            raise UpstreamError(f"{self.model_name} call failed: {exc}") from exc

        text = _extract_text(response)
        if not text:
            raise UpstreamError(f"No usable text from {self.model_name}")
        log.debug("%s responded: %s...", self.model_name, text[:200])
        return text


def build_gemini_clients(settings: Settings) -> Tuple[Optional[GeminiClient], Optional[GeminiClient]]:
    """Return (text model, vision model); both None without GEMINI_API_KEY."""
    if not settings.gemini_api_key:
        log.warning("GEMINI_API_KEY not set; language model stages will use fallbacks")
        return None, None

    log.info(
        "Gemini configured: text=%s vision=%s",
        settings.gemini_text_model,
        settings.gemini_vision_model,
    )
    return (
        GeminiClient(settings.gemini_api_key, settings.gemini_text_model),
        GeminiClient(settings.gemini_api_key, settings.gemini_vision_model),
    )
