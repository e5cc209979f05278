"""
STK Push initiation and callback reconciliation.

The initiator only records Daraja's correlation ids against the payment
request; the payment itself is settled later by the callback receiver, which
is the only code that writes a ``completed`` status or an ``mpesa_payments`` row.
"""
import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from core.db import transaction
from core.errors import CallbackMetadataError, PaymentAlreadyCompleted, PaymentRequestNotFound
from models.enums import PaymentStatus
from models.mpesa_configuration import MpesaConfiguration
from models.mpesa_payment import MpesaPayment
from models.payment_request import PaymentRequest
from schemas.mpesa import StkCallback, StkPushRequest, StkPushResponse
from services.mpesa import ACCEPTED_RESPONSE_CODE, SUCCESS_RESULT_CODE, MpesaClient, account_reference
from services.notifications import create_notification, email_notification
from services.provider_config import get_active_config

logger = logging.getLogger(__name__)

REQUIRED_SUCCESS_METADATA = ("Amount", "MpesaReceiptNumber", "PhoneNumber")


def _as_text(value) -> str:
    # Daraja sends numbers as JSON numbers, sometimes with a trailing ".0"
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


class PaymentInitiator:
    def __init__(self, db: Session, client_factory: Callable[[MpesaConfiguration], MpesaClient] = MpesaClient):
        self.db = db
        self.client_factory = client_factory

    def initiate(self, data: StkPushRequest) -> StkPushResponse:
        config = get_active_config(self.db)
        current_status = (
            self.db.query(PaymentRequest.status).filter(PaymentRequest.id == data.payment_request_id).scalar()
        )
        if current_status == PaymentStatus.COMPLETED:
            logger.warning("Refusing STK push for already completed payment request %s", data.payment_request_id)
            raise PaymentAlreadyCompleted()

        client = self.client_factory(config)
        reply = client.stk_push(
            amount=data.amount,
            phone_number=data.phone_number,
            reference=account_reference(data.payment_request_id),
        )
        accepted = str(reply.get("ResponseCode")) == ACCEPTED_RESPONSE_CODE
        checkout_request_id = reply.get("CheckoutRequestID")

        with transaction(self.db):
            updated = (
                self.db.query(PaymentRequest)
                .filter(
                    PaymentRequest.id == data.payment_request_id,
                    PaymentRequest.status != PaymentStatus.COMPLETED,
                )
                .update(
                    {
                        PaymentRequest.checkout_request_id: checkout_request_id,
                        PaymentRequest.merchant_request_id: reply.get("MerchantRequestID"),
                        PaymentRequest.status: PaymentStatus.PENDING if accepted else PaymentStatus.FAILED,
                    },
                    synchronize_session=False,
                )
            )
        if not updated:
            logger.warning("STK push sent for unknown or already completed payment request %s", data.payment_request_id)

        logger.info(
            "STK push for payment request %s %s (checkout %s)",
            data.payment_request_id,
            "accepted" if accepted else "rejected",
            checkout_request_id,
        )
        return StkPushResponse(
            success=accepted,
            message=reply.get("CustomerMessage") or reply.get("ResponseDescription") or "",
            checkoutRequestId=checkout_request_id,
        )


class CallbackReceiver:
    def __init__(self, db: Session):
        self.db = db

    def receive(self, callback: StkCallback) -> Optional[PaymentStatus]:
        """Apply a Daraja result to its payment request.

        Returns the terminal status written, or ``None`` when the request had
        already been settled by an earlier delivery and nothing was written.
        """
        request = (
            self.db.query(PaymentRequest)
            .filter(PaymentRequest.checkout_request_id == callback.checkout_request_id)
            .first()
        )
        if request is None:
            logger.warning("Callback for unknown checkout request %s", callback.checkout_request_id)
            raise PaymentRequestNotFound()

        if request.status.is_terminal:
            logger.info("Ignoring repeated callback for %s (already %s)", request.id, request.status.value)
            return None

        if callback.result_code == SUCCESS_RESULT_CODE:
            return self._complete(request, callback)
        return self._fail(request, callback)

    def _claim(self, request: PaymentRequest, values: Dict[Any, Any]) -> bool:
        # Conditional on still being pending, so a concurrent delivery cannot settle it twice
        claimed = (
            self.db.query(PaymentRequest)
            .filter(PaymentRequest.id == request.id, PaymentRequest.status == PaymentStatus.PENDING)
            .update(values, synchronize_session="fetch")
        )
        return claimed == 1

    def _complete(self, request: PaymentRequest, callback: StkCallback) -> Optional[PaymentStatus]:
        details = {name: callback.metadata_value(name) for name in REQUIRED_SUCCESS_METADATA}
        missing = [name for name, value in details.items() if value is None]
        if missing:
            raise CallbackMetadataError(f"Callback metadata missing: {', '.join(missing)}")

        amount = details["Amount"]
        receipt = _as_text(details["MpesaReceiptNumber"])
        with transaction(self.db):
            if not self._claim(request, {PaymentRequest.status: PaymentStatus.COMPLETED}):
                return None
            self.db.add(
                MpesaPayment(
                    user_id=request.user_id,
                    transaction_id=receipt,
                    mpesa_receipt_number=receipt,
                    phone_number=_as_text(details["PhoneNumber"]),
                    amount=amount,
                    payment_type=request.payment_type,
                    reference_id=request.reference_id,
                    checkout_request_id=callback.checkout_request_id,
                    merchant_request_id=callback.merchant_request_id,
                    status=PaymentStatus.COMPLETED,
                )
            )
            notification = create_notification(
                self.db,
                request.user_id,
                "Payment Successful",
                f"Your payment of KSh {_as_text(amount)} has been received successfully.",
            )

        logger.info("Payment request %s completed, receipt %s", request.id, receipt)
        email_notification(self.db, notification, PaymentStatus.COMPLETED.value, receipt=receipt)
        return PaymentStatus.COMPLETED

    def _fail(self, request: PaymentRequest, callback: StkCallback) -> Optional[PaymentStatus]:
        with transaction(self.db):
            claimed = self._claim(
                request,
                {
                    PaymentRequest.status: PaymentStatus.FAILED,
                    PaymentRequest.result_code: str(callback.result_code),
                    PaymentRequest.result_desc: callback.result_desc,
                },
            )
            if not claimed:
                return None
            notification = create_notification(
                self.db,
                request.user_id,
                "Payment Failed",
                f"Your payment failed: {callback.result_desc}",
            )

        logger.info("Payment request %s failed: %s %s", request.id, callback.result_code, callback.result_desc)
        email_notification(self.db, notification, PaymentStatus.FAILED.value)
        return PaymentStatus.FAILED
