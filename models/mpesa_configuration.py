from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


class MpesaConfiguration(Base):
    __tablename__ = "mpesa_configurations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    configuration_name: Mapped[str] = mapped_column(String(100), default="default")
    business_short_code: Mapped[str] = mapped_column(String(20))
    consumer_key: Mapped[str] = mapped_column(String(255))
    consumer_secret: Mapped[str] = mapped_column(String(255))
    passkey: Mapped[str] = mapped_column(String(255))
    callback_url: Mapped[str] = mapped_column(String(500))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
