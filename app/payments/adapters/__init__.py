"""
Payment adapters for external services.

All Stripe calls go through StripeAdapter.

Usage:
    from payments.adapters import StripeAdapter, IdempotencyKeyGenerator
"""

from payments.adapters.stripe_adapter import (
    CheckoutSessionResult,
    CreateCheckoutSessionParams,
    IdempotencyKeyGenerator,
    RefundResult,
    StripeAdapter,
    TransferResult,
    is_retryable_stripe_error,
)

__all__ = [
    "CheckoutSessionResult",
    "CreateCheckoutSessionParams",
    "IdempotencyKeyGenerator",
    "RefundResult",
    "StripeAdapter",
    "TransferResult",
    "is_retryable_stripe_error",
]
