"""
Payment error codes and exceptions.

Expected failures of escrow operations are reported as ServiceResult
failures carrying one of the EscrowErrorCode values. Exceptions below are
raised by the processor adapter and by storage helpers; services catch
them at their boundary and convert them into result codes.

Exception Hierarchy:
    PaymentError (base for payment domain)
    └── PaymentProcessingError - Processor call failures
        └── StripeError - Base for all Stripe errors
            ├── StripeCardDeclinedError - Card declined (permanent)
            ├── StripeInvalidAccountError - Invalid Connect account (permanent)
            ├── StripeInvalidRequestError - Invalid request params (permanent)
            ├── StripeRateLimitError - Rate limited (transient, retry)
            ├── StripeAPIUnavailableError - API unavailable (transient, retry)
            └── StripeTimeoutError - Request timeout (transient, retry)

Usage:
    from payments.exceptions import EscrowErrorCode, StripeError

    try:
        transfer = StripeAdapter.create_transfer(params, idempotency_key=key)
    except StripeError as e:
        return ServiceResult.failure(
            "Transfer to host failed",
            EscrowErrorCode.TRANSFER_FAILED,
            details={"retry_safe": True, "stripe_error": e.error_code},
        )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Result Error Codes
# =============================================================================


class EscrowErrorCode:
    """
    Error codes returned in ServiceResult.error_code by payment services.

    Each precondition of an escrow operation has its own code so callers
    can tell which check failed.
    """

    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_STATE = "INVALID_STATE"
    TOO_EARLY = "TOO_EARLY"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_RATE = "INVALID_RATE"
    OWNER_ACCOUNT_NOT_FOUND = "OWNER_ACCOUNT_NOT_FOUND"
    TRANSFER_FAILED = "TRANSFER_FAILED"
    REFUND_FAILED = "REFUND_FAILED"
    # Money moved at the processor but the payment row disagrees
    RECONCILIATION_REQUIRED = "RECONCILIATION_REQUIRED"
    UNKNOWN = "UNKNOWN"


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """Base exception for all payment operations."""

    default_error_code: str = "PAYMENT_ERROR"


class PaymentProcessingError(PaymentError):
    """Raised when a call to the payment processor fails."""

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"


# =============================================================================
# Stripe-Specific Exceptions
# =============================================================================


class StripeError(PaymentProcessingError):
    """
    Base exception for all Stripe-related errors.

    Attributes:
        stripe_code: Stripe's error code
        decline_code: Card decline code, if any
        is_retryable: Whether repeating the call (same idempotency key) may succeed
    """

    default_error_code: str = "STRIPE_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_code: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_code = stripe_code
        self.decline_code = decline_code


# Permanent errors


class StripeCardDeclinedError(StripeError):
    """Card was declined by the issuing bank."""

    default_error_code: str = "CARD_DECLINED"


class StripeInvalidAccountError(StripeError):
    """
    The host's Connect account cannot receive the transfer.

    Needs manual intervention (account disabled, not onboarded, removed).
    """

    default_error_code: str = "INVALID_STRIPE_ACCOUNT"


class StripeInvalidRequestError(StripeError):
    """
    Stripe rejected the request parameters.

    Also raised for webhook signature verification failures.
    """

    default_error_code: str = "INVALID_STRIPE_REQUEST"


# Transient errors


class StripeRateLimitError(StripeError):
    """Rate limited by Stripe API."""

    default_error_code: str = "STRIPE_RATE_LIMITED"
    is_retryable: bool = True


class StripeAPIUnavailableError(StripeError):
    """Stripe unreachable or returned a server error."""

    default_error_code: str = "STRIPE_UNAVAILABLE"
    is_retryable: bool = True


class StripeTimeoutError(StripeError):
    """
    Stripe API call timed out.

    The operation may have succeeded on Stripe's side. Retry with the
    same idempotency key so Stripe replays the original response.
    """

    default_error_code: str = "STRIPE_TIMEOUT"
    is_retryable: bool = True


__all__ = [
    "EscrowErrorCode",
    "PaymentError",
    "PaymentProcessingError",
    "StripeError",
    "StripeCardDeclinedError",
    "StripeInvalidAccountError",
    "StripeInvalidRequestError",
    "StripeRateLimitError",
    "StripeAPIUnavailableError",
    "StripeTimeoutError",
]
