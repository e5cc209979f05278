"""
Safaricom Daraja client for Lipa na M-Pesa Online (STK Push).

    GET  /oauth/v1/generate?grant_type=client_credentials   (HTTP Basic)
    POST /mpesa/stkpush/v1/processrequest                   (Bearer)

Credentials come from the active ``mpesa_configurations`` row; only the
environment (sandbox/production) and the timeout come from settings.
Every call is a single attempt: no retries, no token caching.
"""
import base64
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import requests

from core.config import settings
from core.errors import ProviderError
from models.mpesa_configuration import MpesaConfiguration

logger = logging.getLogger(__name__)

BASE_URLS = {
    "sandbox": "https://sandbox.safaricom.co.ke",
    "production": "https://api.safaricom.co.ke",
}
TOKEN_PATH = "/oauth/v1/generate?grant_type=client_credentials"
STK_PUSH_PATH = "/mpesa/stkpush/v1/processrequest"

# ResponseCode "0" on the STK push means the prompt was sent to the handset.
ACCEPTED_RESPONSE_CODE = "0"
# ResultCode 0 on the callback means the customer paid.
SUCCESS_RESULT_CODE = 0

ACCOUNT_REFERENCE_MAX_LENGTH = 12
TRANSACTION_DESC_MAX_LENGTH = 13

# East Africa Time, no DST
EAT = timezone(timedelta(hours=3))


def base_url(environment: str) -> str:
    try:
        return BASE_URLS[environment.lower()]
    except KeyError:
        raise ValueError(f"MPESA_ENVIRONMENT must be 'sandbox' or 'production', got '{environment}'")


def timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(EAT)
    return now.astimezone(EAT).strftime("%Y%m%d%H%M%S")


def stk_password(short_code: str, passkey: str, ts: str) -> str:
    raw = f"{short_code}{passkey}{ts}".encode("utf-8")
    return base64.b64encode(raw).decode("utf-8")


def basic_auth_header(consumer_key: str, consumer_secret: str) -> str:
    credentials = base64.b64encode(f"{consumer_key}:{consumer_secret}".encode("utf-8")).decode("utf-8")
    return f"Basic {credentials}"


def account_reference(payment_request_id: str, prefix: Optional[str] = None) -> str:
    prefix = settings.MPESA_ACCOUNT_PREFIX if prefix is None else prefix
    return f"{prefix}-{payment_request_id}"[:ACCOUNT_REFERENCE_MAX_LENGTH]


def whole_shillings(amount: float) -> int:
    # Daraja rejects fractional amounts; never charge less than requested
    return int(math.ceil(amount))


class MpesaClient:
    def __init__(
        self,
        config: MpesaConfiguration,
        environment: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.base_url = base_url(environment or settings.MPESA_ENVIRONMENT)
        self.timeout = timeout or settings.MPESA_TIMEOUT_SECONDS
        self.http = session or requests.Session()

    def access_token(self) -> str:
        url = f"{self.base_url}{TOKEN_PATH}"
        headers = {"Authorization": basic_auth_header(self.config.consumer_key, self.config.consumer_secret)}
        try:
            resp = self.http.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ProviderError(f"Failed to get MPESA token: {exc}")
        if not resp.ok:
            logger.error("M-Pesa token request failed with HTTP %s", resp.status_code)
            raise ProviderError("Failed to get MPESA token", status=resp.status_code, response_text=resp.text)
        token = (resp.json() or {}).get("access_token")
        if not token:
            raise ProviderError("MPESA token response had no access_token", status=resp.status_code, response_text=resp.text)
        return token

    def build_stk_payload(self, amount: float, phone_number: str, reference: str, ts: Optional[str] = None) -> Dict[str, Any]:
        ts = ts or timestamp()
        short_code = self.config.business_short_code
        return {
            "BusinessShortCode": short_code,
            "Password": stk_password(short_code, self.config.passkey, ts),
            "Timestamp": ts,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": whole_shillings(amount),
            "PartyA": phone_number,
            "PartyB": short_code,
            "PhoneNumber": phone_number,
            "CallBackURL": self.config.callback_url,
            "AccountReference": reference,
            "TransactionDesc": settings.MPESA_TRANSACTION_DESC[:TRANSACTION_DESC_MAX_LENGTH],
        }

    def stk_push(self, amount: float, phone_number: str, reference: str) -> Dict[str, Any]:
        """Send the payment prompt to the customer's handset and return Daraja's JSON reply."""
        token = self.access_token()
        payload = self.build_stk_payload(amount, phone_number, reference)
        headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        try:
            resp = self.http.post(f"{self.base_url}{STK_PUSH_PATH}", json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ProviderError(f"STK Push request failed: {exc}")
        if not resp.ok:
            logger.error("STK push rejected with HTTP %s: %s", resp.status_code, resp.text)
            raise ProviderError("STK Push request failed", status=resp.status_code, response_text=resp.text)
        return resp.json()


def get_mpesa_client_factory():
    """FastAPI dependency returning how to build a client for a config row."""
    return MpesaClient
