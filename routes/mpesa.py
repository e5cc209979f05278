import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.orm import Session

from core.db import get_db
from core.errors import PaymentError, ProviderError
from core.http import browser_json, plain_text, preflight
from schemas.mpesa import StkCallback, StkPushRequest
from services.mpesa import get_mpesa_client_factory
from services.payments import CallbackReceiver, PaymentInitiator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mpesa", tags=["mpesa"])


def _validation_messages(exc: ValidationError):
    return [f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}" for err in exc.errors()]


@router.options("/stk-push", include_in_schema=False)
def stk_push_preflight():
    return preflight()


@router.post("/stk-push")
async def stk_push(request: Request, db: Session = Depends(get_db), client_factory=Depends(get_mpesa_client_factory)):
    """Send an STK push for an existing payment request.

    Body: ``{"amount": 200, "phoneNumber": "254712345678", "paymentRequestId": "..."}``.
    The outcome of the payment itself arrives later on ``/mpesa/callback``.
    """
    try:
        payload = await request.json()
    except ValueError:
        return browser_json({"success": False, "message": "Request body must be valid JSON"}, 400)
    try:
        data = StkPushRequest.model_validate(payload)
    except ValidationError as exc:
        return browser_json(
            {"success": False, "message": "Invalid payment details", "details": _validation_messages(exc)}, 400
        )

    initiator = PaymentInitiator(db, client_factory)
    try:
        result = await run_in_threadpool(initiator.initiate, data)
    except PaymentError as exc:
        if exc.status_code != 500:
            return browser_json({"success": False, "message": exc.message}, exc.status_code)
        logger.error("M-Pesa payment initiation failed: %s", exc.message)
        details = exc.response_text if isinstance(exc, ProviderError) and exc.response_text else exc.message
        return browser_json({"success": False, "message": "Payment processing failed", "details": details}, 500)
    except Exception as exc:
        logger.exception("M-Pesa payment initiation failed")
        return browser_json({"success": False, "message": "Payment processing failed", "details": str(exc)}, 500)
    return browser_json(result.model_dump())


@router.api_route("/callback", methods=["GET", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def mpesa_callback(request: Request, db: Session = Depends(get_db)):
    """Safaricom's STK result delivery. Answers in plain text; "OK" acknowledges it."""
    if request.method != "POST":
        return plain_text("Method not allowed", 400)
    try:
        payload = await request.json()
    except ValueError:
        return plain_text("Invalid JSON body", 400)

    logger.info("M-Pesa callback received: %s", json.dumps(payload))
    body = payload.get("Body") if isinstance(payload, dict) else None
    stk = body.get("stkCallback") if isinstance(body, dict) else None
    if not isinstance(stk, dict):
        return plain_text("Missing Body.stkCallback", 400)
    try:
        callback = StkCallback.model_validate(stk)
    except ValidationError:
        return plain_text("Malformed stkCallback", 400)

    try:
        await run_in_threadpool(CallbackReceiver(db).receive, callback)
    except PaymentError as exc:
        logger.error("M-Pesa callback for %s not processed: %s", callback.checkout_request_id, exc.message)
        return plain_text(exc.message, exc.status_code)
    except Exception:
        logger.exception("M-Pesa callback for %s failed", callback.checkout_request_id)
        return plain_text("Internal Server Error", 500)
    return plain_text("OK")
