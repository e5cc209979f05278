from typing import List, Optional

from sqlalchemy.orm import Session

from models.mpesa_payment import MpesaPayment
from models.payment_request import PaymentRequest
from models.user import User
from schemas.payment import PaymentRequestCreate


def create_payment_request(db: Session, user: User, data: PaymentRequestCreate) -> PaymentRequest:
    payment_request = PaymentRequest(
        user_id=user.id,
        amount=data.amount,
        phone_number=data.phone_number,
        payment_type=data.payment_type,
        reference_id=data.reference_id,
    )
    db.add(payment_request)
    db.commit()
    db.refresh(payment_request)
    return payment_request


def get_payment_request_for(db: Session, payment_request_id: str, user: User) -> Optional[PaymentRequest]:
    query = db.query(PaymentRequest).filter(PaymentRequest.id == payment_request_id)
    if not user.is_admin:
        query = query.filter(PaymentRequest.user_id == user.id)
    return query.one_or_none()


def recent_payments(db: Session, user_id: int, limit: int = 5) -> List[MpesaPayment]:
    return (
        db.query(MpesaPayment)
        .filter(MpesaPayment.user_id == user_id)
        .order_by(MpesaPayment.created_at.desc(), MpesaPayment.id.desc())
        .limit(limit)
        .all()
    )


def all_payments_with_payers(db: Session) -> List[dict]:
    rows = (
        db.query(MpesaPayment, User)
        .outerjoin(User, MpesaPayment.user_id == User.id)
        .order_by(MpesaPayment.created_at.desc(), MpesaPayment.id.desc())
        .all()
    )
    payments = []
    for payment, user in rows:
        payments.append({
            "id": payment.id,
            "user_id": payment.user_id,
            "transaction_id": payment.transaction_id,
            "mpesa_receipt_number": payment.mpesa_receipt_number,
            "phone_number": payment.phone_number,
            "amount": float(payment.amount),
            "payment_type": payment.payment_type,
            "reference_id": payment.reference_id,
            "checkout_request_id": payment.checkout_request_id,
            "merchant_request_id": payment.merchant_request_id,
            "status": payment.status,
            "created_at": payment.created_at,
            "payer_name": user.full_name if user else None,
            "payer_email": user.email if user else None,
        })
    return payments
