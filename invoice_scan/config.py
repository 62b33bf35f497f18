# invoice_scan/config.py
"""Runtime settings read from the environment (and a local .env, if any)."""
from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from .config_labels import DEFAULT_SMTP_PORT, RAW_TEXT_LIMIT


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


def _env_flag(name: str, default: bool = False) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    gemini_api_key: Optional[str] = None
    gemini_text_model: str = "gemini-2.5-flash"
    gemini_vision_model: str = "gemini-2.5-flash-lite"

    # Service-account JSON shared by Document AI and Vision
    google_credentials_json: Optional[str] = None

    documentai_project_id: Optional[str] = None
    documentai_location: str = "us"
    documentai_processor_id: Optional[str] = None

    vision_enabled: bool = False

    firebase_project_id: Optional[str] = None
    auth_disabled: bool = False

    tesseract_cmd: Optional[str] = None
    tesseract_lang: str = "heb+eng"

    raw_text_limit: int = RAW_TEXT_LIMIT

    smtp_host: Optional[str] = None
    smtp_port: int = DEFAULT_SMTP_PORT
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    accountant_email: Optional[str] = None

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    @property
    def documentai_configured(self) -> bool:
        return bool(self.documentai_project_id and self.documentai_processor_id)

    def google_service_account_info(self) -> Optional[Dict[str, Any]]:
        if not self.google_credentials_json:
            return None
        return json.loads(self.google_credentials_json)


def load_settings() -> Settings:
    """Build Settings from os.environ after loading .env (existing vars win)."""
    load_dotenv()

    credentials_json = _env("GOOGLE_APPLICATION_CREDENTIALS_JSON")
    has_google_credentials = bool(
        credentials_json or _env("GOOGLE_APPLICATION_CREDENTIALS")
    )

    return Settings(
        gemini_api_key=_env("GEMINI_API_KEY"),
        gemini_text_model=_env("GEMINI_TEXT_MODEL", "gemini-2.5-flash"),
        gemini_vision_model=_env("GEMINI_VISION_MODEL", "gemini-2.5-flash-lite"),
        google_credentials_json=credentials_json,
        documentai_project_id=_env("DOCUMENTAI_PROJECT_ID"),
        documentai_location=_env("DOCUMENTAI_LOCATION", "us"),
        documentai_processor_id=_env("DOCUMENTAI_PROCESSOR_ID"),
        vision_enabled=_env_flag("VISION_ENABLED", default=has_google_credentials),
        firebase_project_id=_env("FIREBASE_PROJECT_ID"),
        auth_disabled=_env_flag("AUTH_DISABLED"),
        tesseract_cmd=_env("TESSERACT_CMD"),
        tesseract_lang=_env("TESSERACT_LANG", "heb+eng"),
        raw_text_limit=int(_env("RAW_TEXT_LIMIT", str(RAW_TEXT_LIMIT))),
        smtp_host=_env("SMTP_HOST"),
        smtp_port=int(_env("SMTP_PORT", str(DEFAULT_SMTP_PORT))),
        smtp_user=_env("SMTP_USER"),
        smtp_password=_env("SMTP_PASS"),
        accountant_email=_env("ACCOUNTANT_EMAIL"),
    )
