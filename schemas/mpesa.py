from typing import List, Optional, Union

from pydantic import BaseModel, Field


# Daraja wants MSISDNs as country code + 9 digits, no leading "+"
MSISDN_PATTERN = r"^254\d{9}$"


class StkPushRequest(BaseModel):
    amount: float = Field(gt=0, strict=True, allow_inf_nan=False)
    phone_number: str = Field(alias="phoneNumber", pattern=MSISDN_PATTERN)
    payment_request_id: str = Field(alias="paymentRequestId", min_length=8, max_length=64)

    class Config:
        populate_by_name = True


class StkPushResponse(BaseModel):
    success: bool
    message: str
    checkoutRequestId: Optional[str] = None


class CallbackItem(BaseModel):
    name: str = Field(alias="Name")
    value: Optional[Union[int, float, str]] = Field(default=None, alias="Value")


class CallbackMetadata(BaseModel):
    items: List[CallbackItem] = Field(default_factory=list, alias="Item")


class StkCallback(BaseModel):
    """The ``Body.stkCallback`` object Safaricom POSTs to the callback URL."""

    merchant_request_id: str = Field(alias="MerchantRequestID")
    checkout_request_id: str = Field(alias="CheckoutRequestID")
    result_code: int = Field(alias="ResultCode")
    result_desc: str = Field(default="", alias="ResultDesc")
    callback_metadata: Optional[CallbackMetadata] = Field(default=None, alias="CallbackMetadata")

    class Config:
        populate_by_name = True

    def metadata_value(self, name: str):
        if self.callback_metadata is None:
            return None
        for item in self.callback_metadata.items:
            if item.name == name:
                return item.value
        return None
