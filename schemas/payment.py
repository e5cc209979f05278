import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from models.enums import PaymentStatus, PaymentType


_LOCAL_MOBILE = re.compile(r"^0([17]\d{8})$")
_INTERNATIONAL_MOBILE = re.compile(r"^\+?254([17]\d{8})$")


def normalize_phone_number(raw: str) -> str:
    """Turn 07XX/01XX/+254/254 Kenyan mobile numbers into 2547XXXXXXXX form."""
    cleaned = re.sub(r"[\s\-()]", "", raw or "")
    match = _LOCAL_MOBILE.match(cleaned) or _INTERNATIONAL_MOBILE.match(cleaned)
    if not match:
        raise ValueError("Enter a valid Safaricom number, e.g. 0712345678 or 254712345678")
    return f"254{match.group(1)}"


class PaymentRequestCreate(BaseModel):
    amount: float = Field(gt=0, allow_inf_nan=False)
    phone_number: str
    payment_type: PaymentType = PaymentType.MEMBERSHIP
    reference_id: Optional[str] = Field(None, max_length=64)

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v):
        return normalize_phone_number(v)


class PaymentRequestOut(BaseModel):
    id: str
    user_id: Optional[int] = None
    amount: float
    phone_number: str
    payment_type: PaymentType
    reference_id: Optional[str] = None
    status: PaymentStatus
    checkout_request_id: Optional[str] = None
    merchant_request_id: Optional[str] = None
    result_code: Optional[str] = None
    result_desc: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MpesaPaymentOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    transaction_id: str
    mpesa_receipt_number: Optional[str] = None
    phone_number: str
    amount: float
    payment_type: PaymentType
    reference_id: Optional[str] = None
    checkout_request_id: Optional[str] = None
    merchant_request_id: Optional[str] = None
    status: PaymentStatus
    created_at: datetime

    class Config:
        from_attributes = True


class AdminMpesaPaymentOut(MpesaPaymentOut):
    payer_name: Optional[str] = None
    payer_email: Optional[str] = None
