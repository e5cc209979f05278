from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


class MpesaConfigurationAudit(Base):
    """Who created, edited or activated which credentials row, and when.

    Only field names are recorded; secret values never reach this table.
    """

    __tablename__ = "mpesa_configuration_audit"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    configuration_id: Mapped[int | None] = mapped_column(
        ForeignKey("mpesa_configurations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    action: Mapped[str] = mapped_column(String(30))
    changed_by: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    change_description: Mapped[str] = mapped_column(Text, default="")
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
