from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, AnyHttpUrl


class MpesaConfigUpdate(BaseModel):
    business_short_code: str = Field(min_length=5, max_length=10, pattern=r"^\d+$")
    consumer_key: str = Field(min_length=1, max_length=255)
    consumer_secret: str = Field(min_length=1, max_length=255)
    passkey: str = Field(min_length=1, max_length=255)
    callback_url: AnyHttpUrl


class MpesaConfigCreate(MpesaConfigUpdate):
    configuration_name: str = Field(min_length=1, max_length=100)
    activate: bool = False


class MpesaConfigOut(BaseModel):
    id: int
    configuration_name: str
    business_short_code: str
    consumer_key: str
    consumer_secret: str
    passkey: str
    callback_url: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MpesaConfigAuditOut(BaseModel):
    id: int
    configuration_id: Optional[int] = None
    action: str
    changed_by: Optional[int] = None
    change_description: str
    changed_at: datetime

    class Config:
        from_attributes = True
