import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, Numeric, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base
from models.enums import PaymentStatus, PaymentType, enum_values


class PaymentRequest(Base):
    """A member's intent to pay, created before the STK push is sent."""

    __tablename__ = "payment_requests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    amount: Mapped[float] = mapped_column(Numeric(12, 2))
    phone_number: Mapped[str] = mapped_column(String(20))
    payment_type: Mapped[PaymentType] = mapped_column(
        Enum(PaymentType, native_enum=False, length=20, values_callable=enum_values),
        default=PaymentType.MEMBERSHIP,
    )
    reference_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False, length=20, values_callable=enum_values),
        default=PaymentStatus.PENDING,
        index=True,
    )
    checkout_request_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    merchant_request_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    result_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    result_desc: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="payment_requests")
