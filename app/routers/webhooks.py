# app/routers/webhooks.py
"""
Device/gateway webhooks — no API key, CORS-open.
POST /payment-webhook — payment confirmation, opens the door on success.
POST /sensor-update   — occupancy sensor report.

Response bodies keep the contract the kiosks and payment relay already speak:
  success  → 200 {success: true, ...}
  amount   → 400 {success: false, message}   (any amount that is not the tariff number, "200" included)
  invalid  → 400 {error}
  conflict → 409 {error, retryable: true}
  store    → 500 {error}
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import AmountMismatchError, ConflictError, StoreError, ToiletError
from app.schemas.toilet import ToiletOut
from app.services.event_parser import parse_payment_payload, parse_sensor_payload
from app.services.payment_service import confirm_payment
from app.services.sensor_service import handle_sensor_event
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _error_response(exc: ToiletError) -> JSONResponse:
    if isinstance(exc, AmountMismatchError):
        return JSONResponse(status_code=400, content={"success": False, "message": exc.message})
    if isinstance(exc, ConflictError):
        return JSONResponse(status_code=409, content={"error": exc.message, "retryable": True})
    if isinstance(exc, StoreError):
        return JSONResponse(status_code=500, content={"error": exc.message})
    return JSONResponse(status_code=400, content={"error": exc.message})


async def _read_json(request: Request):
    try:
        return await request.json()
    except ValueError:
        return None


@router.post("/payment-webhook", summary="Payment confirmation webhook")
async def payment_webhook(request: Request, db: Session = Depends(get_db)):
    """Verifies the tariff, records the payment, opens the door and logs the entry."""
    data = await _read_json(request)
    logger.info(f"[PAYMENT] Webhook received: {data}")
    try:
        event = parse_payment_payload(data)
        result = await confirm_payment(event, db)
    except ToiletError as e:
        logger.warning(f"[PAYMENT] Rejected: {e.message}")
        return _error_response(e)

    message = "Payment already processed" if result.replayed else "Payment verified and door opened"
    return {"success": True, "message": message, "payment_id": result.payment.id}


@router.post("/sensor-update", summary="Occupancy sensor webhook")
async def sensor_update(request: Request, db: Session = Depends(get_db)):
    """Applies an occupied/available report and returns the resulting toilet state."""
    data = await _read_json(request)
    logger.info(f"[SENSOR] Update received: {data}")
    try:
        event = parse_sensor_payload(data)
        toilet = await handle_sensor_event(event, db)
    except ToiletError as e:
        logger.warning(f"[SENSOR] Rejected: {e.message}")
        return _error_response(e)

    return {"success": True, "data": ToiletOut.model_validate(toilet).model_dump(mode="json")}
