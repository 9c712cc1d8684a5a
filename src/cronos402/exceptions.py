"""Exception hierarchy for cronos402.

Exceptions stay inside the library: the server pipeline converts every one
of them into a structured ``x402/error`` rejection before it reaches a caller.
"""

from typing import Optional

from cronos402.types import ErrorReason


class X402Error(Exception):
    """Base class for all cronos402 errors."""

    reason: str = ErrorReason.INVALID_PAYMENT

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        if reason is not None:
            self.reason = reason


class PaymentError(X402Error):
    """Base class for payment-related errors."""

    pass


class InvalidPaymentError(PaymentError):
    """Raised when a payment token cannot be decoded."""

    reason = ErrorReason.INVALID_PAYMENT


class PaymentAmountExceededError(PaymentError):
    """Raised when payment amount exceeds maximum allowed value."""

    reason = ErrorReason.PAYMENT_AMOUNT_EXCEEDED


class PaymentDeclinedError(PaymentError):
    """Raised when the confirmation callback declines a payment."""

    reason = ErrorReason.PAYMENT_DECLINED


class ConfigurationError(X402Error):
    """Raised for invalid server or client configuration."""

    pass


class UnsupportedNetworkError(ConfigurationError):
    reason = ErrorReason.UNSUPPORTED_NETWORK


class InvalidPriceError(ConfigurationError):
    reason = ErrorReason.PRICE_COMPUTE_FAILED


class FacilitatorError(X402Error):
    """Raised when the facilitator cannot be reached or answers badly."""

    pass
