from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from core.db import get_db
from models.user import User
from routes.auth import get_current_user, require_admin
from schemas.payment import (
    PaymentRequestCreate,
    PaymentRequestOut,
    MpesaPaymentOut,
    AdminMpesaPaymentOut,
)
from services.payment_requests import (
    create_payment_request,
    get_payment_request_for,
    recent_payments,
    all_payments_with_payers,
)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/requests", response_model=PaymentRequestOut, status_code=201)
def create_request(
    data: PaymentRequestCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return create_payment_request(db, current_user, data)


@router.get("/requests/{payment_request_id}", response_model=PaymentRequestOut)
def get_request(
    payment_request_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    payment_request = get_payment_request_for(db, payment_request_id, current_user)
    if not payment_request:
        raise HTTPException(status_code=404, detail="Payment request not found")
    return payment_request


@router.get("/history", response_model=List[MpesaPaymentOut])
def payment_history(
    limit: int = Query(5, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return recent_payments(db, current_user.id, limit)


@router.get("", response_model=List[AdminMpesaPaymentOut])
def list_payments(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    return all_payments_with_payers(db)
