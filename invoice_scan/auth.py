# invoice_scan/auth.py
"""Bearer-token checks against Firebase Authentication ID tokens."""
from __future__ import annotations

from typing import Any, Dict, Optional

from google.auth import exceptions as google_auth_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from .config import Settings
from .errors import AuthError
from .logging_utils import get_logger

log = get_logger(__name__)


def bearer_token(authorization: Optional[str]) -> str:
    """Token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        raise AuthError("Missing Authorization header")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Authorization header must be 'Bearer <token>'")
    return token.strip()


class FirebaseTokenVerifier:
    def __init__(self, project_id: str):
        self.project_id = project_id
        self._request = google_requests.Request()

    def verify(self, token: str) -> Dict[str, Any]:
        try:
            claims = id_token.verify_firebase_token(token, self._request, audience=self.project_id)
        except (ValueError, google_auth_exceptions.GoogleAuthError) as exc:
            raise AuthError(f"Invalid token: {exc}") from exc
        if not claims:
            raise AuthError("Invalid token")
        return claims


class RejectingVerifier:
    """Used when no identity project is configured: every request is refused."""

    def verify(self, token: str) -> Dict[str, Any]:
        raise AuthError("Authentication is not configured")


class LocalDevVerifier:
    """AUTH_DISABLED=1 only: any non-empty token is accepted."""

    def verify(self, token: str) -> Dict[str, Any]:
        return {"uid": "local-dev"}


def build_verifier(settings: Settings):
    if settings.auth_disabled:
        log.warning("AUTH_DISABLED is set; bearer tokens are not verified")
        return LocalDevVerifier()
    if not settings.firebase_project_id:
        log.error("FIREBASE_PROJECT_ID not set; all authenticated requests will be rejected")
        return RejectingVerifier()
    return FirebaseTokenVerifier(settings.firebase_project_id)
