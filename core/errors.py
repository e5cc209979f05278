"""Exceptions raised by the payment flow.

Each carries the HTTP status the route layer answers with, so handlers can
catch ``PaymentError`` once and translate it.
"""
from typing import Any, Optional


class PaymentError(Exception):
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class PaymentValidationError(PaymentError):
    status_code = 400


class ConfigurationNotFound(PaymentError):
    status_code = 404

    def __init__(self, message: str = "MPESA configuration not found"):
        super().__init__(message)


class PaymentRequestNotFound(PaymentError):
    status_code = 404

    def __init__(self, message: str = "Payment request not found"):
        super().__init__(message)


class PaymentAlreadyCompleted(PaymentError):
    status_code = 409

    def __init__(self, message: str = "Payment request already completed"):
        super().__init__(message)


class ProviderError(PaymentError):
    """Non-2xx or unreadable response from the Daraja API."""

    def __init__(self, message: str, status: Optional[int] = None, response_text: str = ""):
        super().__init__(message, details=response_text or None)
        self.status = status
        self.response_text = response_text


class CallbackMetadataError(PaymentError):
    """A successful callback is missing one of its required metadata items."""
