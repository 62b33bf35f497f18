# app/main.py
from __future__ import annotations

import base64
import binascii
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from invoice_scan.auth import bearer_token, build_verifier
from invoice_scan.config import Settings, load_settings
from invoice_scan.errors import AuthError, ExtractionError, UpstreamError
from invoice_scan.extractor import extract_menu
from invoice_scan.insights import market_insights, predict_cost
from invoice_scan.logging_utils import get_logger
from invoice_scan.models import (
    ImageRequest,
    MarketInsightsRequest,
    PredictCostRequest,
    SendReportRequest,
)
from invoice_scan.pipeline import InvoiceScanner, build_services
from invoice_scan.report import build_mailer, build_report, expense_rows

log = get_logger("app")

_STATUS_MESSAGES = {
    404: "Not found",
    405: "Method not allowed",
}

router = APIRouter()


# ---------------------------------------------------------
# DEPENDENCIES
# ---------------------------------------------------------
def require_user(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> Dict[str, Any]:
    try:
        return request.app.state.verifier.verify(bearer_token(authorization))
    except AuthError as exc:
        log.info("Rejected request to %s: %s", request.url.path, exc)
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_scanner(request: Request) -> InvoiceScanner:
    return request.app.state.scanner


def _decode_image(payload: Optional[ImageRequest]) -> bytes:
    data = (payload.image_base64 if payload else None) or ""
    # strip data URL prefix, e.g. "data:image/jpeg;base64,..."
    if "," in data:
        data = data.split(",", 1)[1]
    data = "".join(data.split())
    if not data:
        raise HTTPException(status_code=400, detail="Missing imageBase64")
    try:
        image = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="imageBase64 is not valid base64")
    if not image:
        raise HTTPException(status_code=400, detail="Missing imageBase64")
    return image


# ---------------------------------------------------------
# HEALTH
# ---------------------------------------------------------
@router.get("/health")
def health(scanner: InvoiceScanner = Depends(get_scanner)):
    return {"status": "ok", "services": scanner.describe()}


# ---------------------------------------------------------
# INVOICE SCAN
# ---------------------------------------------------------
@router.post("/api/ocr")
def scan_invoice(
    payload: Optional[ImageRequest] = Body(default=None),
    user: Dict[str, Any] = Depends(require_user),
    scanner: InvoiceScanner = Depends(get_scanner),
):
    image = _decode_image(payload)
    try:
        result = scanner.scan(image, payload.mime_type)
    except Exception:
        log.exception("Invoice scan failed for user %s", user.get("uid"))
        raise HTTPException(status_code=500, detail="Failed to process invoice")

    return {"success": True, "data": result.to_wire()}


# ---------------------------------------------------------
# MENU / PRICING HELPERS
# ---------------------------------------------------------
@router.post("/api/ocr-menu")
def scan_menu(
    payload: Optional[ImageRequest] = Body(default=None),
    user: Dict[str, Any] = Depends(require_user),
    scanner: InvoiceScanner = Depends(get_scanner),
):
    image = _decode_image(payload)
    try:
        dishes = extract_menu(image, payload.mime_type, scanner.services.vision_llm)
    except ExtractionError as exc:
        log.warning("Menu extraction failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc))

    return {
        "success": True,
        "data": {"dishes": [d.model_dump(by_alias=True) for d in dishes]},
    }


@router.post("/api/predict-cost")
def predict_ingredient_cost(
    payload: Optional[PredictCostRequest] = Body(default=None),
    user: Dict[str, Any] = Depends(require_user),
    scanner: InvoiceScanner = Depends(get_scanner),
):
    ingredient = ((payload.ingredient_text if payload else None) or "").strip()
    if not ingredient:
        raise HTTPException(status_code=400, detail="Missing ingredientText")
    try:
        prediction = predict_cost(ingredient, scanner.services.text_llm)
    except ExtractionError as exc:
        log.warning("Cost prediction failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc))

    return {"success": True, "data": prediction.model_dump(by_alias=True)}


@router.post("/api/market-insights")
def market_price_insights(
    payload: Optional[MarketInsightsRequest] = Body(default=None),
    user: Dict[str, Any] = Depends(require_user),
    scanner: InvoiceScanner = Depends(get_scanner),
):
    items = payload.items if payload else None
    if not items:
        raise HTTPException(status_code=400, detail="Missing or invalid items array")
    try:
        insights = market_insights(items, scanner.services.text_llm)
    except ExtractionError as exc:
        log.warning("Market insights failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc))

    return {"success": True, "insights": [i.model_dump(by_alias=True) for i in insights]}


# ---------------------------------------------------------
# ACCOUNTANT REPORT
# ---------------------------------------------------------
@router.post("/api/send-report")
def send_report(
    request: Request,
    payload: Optional[SendReportRequest] = Body(default=None),
    user: Dict[str, Any] = Depends(require_user),
):
    expenses = payload.expenses if payload else None
    if not isinstance(expenses, list):
        raise HTTPException(status_code=400, detail="Missing expenses data")

    report = build_report(expense_rows(expenses), payload.user_name, payload.user_email)
    mailer = request.app.state.mailer
    if mailer is None:
        return {
            "success": True,
            "message": "Report generated successfully (Simulated - SMTP not configured)",
            "preview": report.html,
        }

    try:
        mailer.send(report, cc=payload.user_email)
    except UpstreamError as exc:
        log.error("Expense report delivery failed: %s", exc)
        raise HTTPException(status_code=500, detail=f"Failed to send email: {exc}")

    return {"success": True, "message": "Report sent successfully"}


# ---------------------------------------------------------
# APP FACTORY
# ---------------------------------------------------------
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = _STATUS_MESSAGES.get(exc.status_code, exc.detail)
    return JSONResponse(
        {"error": str(message)},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


def create_app(
    settings: Optional[Settings] = None,
    scanner: Optional[InvoiceScanner] = None,
    verifier=None,
    mailer=None,
) -> FastAPI:
    """Build the service; clients are created here once and reused per request."""
    settings = settings or load_settings()
    if scanner is None:
        scanner = InvoiceScanner(build_services(settings), raw_text_limit=settings.raw_text_limit)
    if verifier is None:
        verifier = build_verifier(settings)
    if mailer is None:
        mailer = build_mailer(settings)

    app = FastAPI(title="Invoice Scan Service")
    app.state.scanner = scanner
    app.state.verifier = verifier
    app.state.mailer = mailer
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.include_router(router)
    return app


app = create_app()
