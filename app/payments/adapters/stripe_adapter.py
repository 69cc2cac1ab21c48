"""
Stripe API adapter for escrow payment operations.

Every Stripe call made by the payments app goes through StripeAdapter so
that timeouts, idempotency keys, error translation and timing logs are
handled in one place.

Operations:
- create_checkout_session: hosted checkout, escrow or destination charge
- retrieve_checkout_session: client-redirect verification
- expire_checkout_session: close a superseded checkout
- create_transfer: host payout when an escrow is released
- create_refund: return escrowed funds to the guest
- verify_webhook_signature: authenticate incoming webhook payloads

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: SDK network retries (default: 3)

Usage:
    from payments.adapters import IdempotencyKeyGenerator, StripeAdapter

    transfer = StripeAdapter.create_transfer(
        amount_cents=8500,
        destination_account="acct_host",
        idempotency_key=IdempotencyKeyGenerator.generate("escrow_release", booking.id),
        currency="eur",
    )
"""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import stripe
from django.conf import settings

from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreateCheckoutSessionParams:
    """
    Parameters for a hosted Checkout Session in payment mode.

    Attributes:
        amount_cents: Gross amount charged to the guest
        currency: ISO 4217 currency code
        product_name: Line item label shown on the checkout page
        success_url / cancel_url: Redirect targets after checkout
        idempotency_key: Unique key for idempotent creation
        metadata: Copied to both the session and its PaymentIntent
        customer_email: Prefills the checkout form
        application_fee_amount: Platform fee for destination charges
        destination_account: Connect account receiving a destination charge
        transfer_group: Groups the charge with a later escrow transfer
    """

    amount_cents: int
    currency: str
    product_name: str
    success_url: str
    cancel_url: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)
    customer_email: str | None = None
    application_fee_amount: int | None = None
    destination_account: str | None = None
    transfer_group: str | None = None

    def __post_init__(self) -> None:
        if self.amount_cents <= 0:
            raise ValueError("amount_cents must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")
        if not self.currency:
            raise ValueError("currency is required")
        if self.application_fee_amount is not None and not self.destination_account:
            raise ValueError("application_fee_amount requires destination_account")


@dataclass
class CheckoutSessionResult:
    """
    Result from Checkout Session operations.

    Attributes:
        id: Session ID (cs_xxx)
        url: Hosted checkout URL (None once the session is complete)
        status: open, complete or expired
        payment_status: paid, unpaid or no_payment_required
        payment_intent_id: PaymentIntent created by the session
        amount_total: Amount charged in cents
        metadata: Attached metadata
    """

    id: str
    url: str | None
    status: str | None
    payment_status: str | None
    payment_intent_id: str | None = None
    amount_total: int | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, session: Any) -> CheckoutSessionResult:
        """Build from a Stripe object or a webhook ``data.object`` dict."""
        if isinstance(session, dict):
            data = session
        else:
            data = session.to_dict()
        payment_intent = data.get("payment_intent")
        if isinstance(payment_intent, dict):
            payment_intent = payment_intent.get("id")
        return cls(
            id=data["id"],
            url=data.get("url"),
            status=data.get("status"),
            payment_status=data.get("payment_status"),
            payment_intent_id=payment_intent,
            amount_total=data.get("amount_total"),
            metadata=dict(data.get("metadata") or {}),
            raw_response=data,
        )


@dataclass
class TransferResult:
    """
    Result from Stripe Transfer operations.

    Attributes:
        id: Transfer ID (tr_xxx), the transfer reference stored on release
        amount_cents: Amount transferred in cents
        currency: Currency code
        destination_account: Destination Stripe account ID
    """

    id: str
    amount_cents: int
    currency: str
    destination_account: str
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class RefundResult:
    """
    Result from Stripe Refund operations.

    Attributes:
        id: Refund ID (re_xxx)
        status: succeeded, pending or failed
    """

    id: str
    amount_cents: int
    currency: str
    status: str
    payment_intent_id: str
    metadata: dict[str, str] = field(default_factory=dict)
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Deterministic idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The same operation on the same entity always yields the same key, so a
    repeated escrow release of one booking can never produce a second
    transfer.

    Example:
        key = IdempotencyKeyGenerator.generate("escrow_release", booking.id)
        # "escrow_release:550e8400-e29b-41d4-a716-446655440000:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        """
        Args:
            operation: Operation name (checkout_session, escrow_release, escrow_refund)
            entity_id: Domain entity the operation acts on
            attempt: Bump only when a genuinely new operation is intended
        """
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Retry Logic Helpers
# =============================================================================


def is_retryable_stripe_error(error: Exception) -> bool:
    """True for transient Stripe errors (rate limits, outages, timeouts)."""
    if isinstance(error, StripeError):
        return getattr(error, "is_retryable", False)
    return False


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are classmethods with no instance state, so services take
    the class itself as their ``stripe_adapter`` dependency and tests pass
    a mock in its place.
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure API key, timeout and network retries."""
        stripe.api_key = settings.STRIPE_SECRET_KEY
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)
        stripe.max_network_retries = getattr(settings, "STRIPE_MAX_RETRIES", 3)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Checkout Sessions
    # =========================================================================

    @classmethod
    def create_checkout_session(
        cls,
        params: CreateCheckoutSessionParams,
        trace_id: str | None = None,
    ) -> CheckoutSessionResult:
        """
        Create a hosted Checkout Session for a single booking payment.

        With ``destination_account`` set the charge is a destination charge
        and Stripe splits off ``application_fee_amount`` at charge time.
        Otherwise the platform keeps the funds until the escrow is released.

        Raises:
            StripeInvalidRequestError: Invalid parameters
            StripeInvalidAccountError: Destination account unusable
            StripeAPIUnavailableError: Stripe service unavailable
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_checkout_session",
            "amount_cents": params.amount_cents,
            "currency": params.currency,
            "destination_account": params.destination_account,
            "idempotency_key": params.idempotency_key,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            payment_intent_data: dict[str, Any] = {"metadata": params.metadata}
            if params.destination_account:
                payment_intent_data["application_fee_amount"] = params.application_fee_amount
                payment_intent_data["transfer_data"] = {
                    "destination": params.destination_account,
                }
            if params.transfer_group:
                payment_intent_data["transfer_group"] = params.transfer_group

            session_params: dict[str, Any] = {
                "mode": "payment",
                "payment_method_types": ["card"],
                "line_items": [
                    {
                        "price_data": {
                            "currency": params.currency,
                            "unit_amount": params.amount_cents,
                            "product_data": {"name": params.product_name},
                        },
                        "quantity": 1,
                    }
                ],
                "success_url": params.success_url,
                "cancel_url": params.cancel_url,
                "metadata": params.metadata,
                "payment_intent_data": payment_intent_data,
            }
            if params.customer_email:
                session_params["customer_email"] = params.customer_email

            session = stripe.checkout.Session.create(
                idempotency_key=params.idempotency_key,
                **session_params,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "session_id": session.id,
                    "duration_ms": duration_ms,
                },
            )

            return CheckoutSessionResult.from_stripe(session)

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def retrieve_checkout_session(
        cls,
        session_id: str,
        trace_id: str | None = None,
    ) -> CheckoutSessionResult:
        """
        Retrieve a Checkout Session by ID.

        Raises:
            StripeInvalidRequestError: Session not found
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "retrieve_checkout_session",
            "session_id": session_id,
            "trace_id": trace_id,
        }

        start_time = time.time()

        try:
            session = stripe.checkout.Session.retrieve(session_id)

            duration_ms = (time.time() - start_time) * 1000
            logger.debug(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "payment_status": session.payment_status,
                    "duration_ms": duration_ms,
                },
            )

            return CheckoutSessionResult.from_stripe(session)

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def expire_checkout_session(
        cls,
        session_id: str,
        trace_id: str | None = None,
    ) -> CheckoutSessionResult:
        """
        Expire an open Checkout Session so it can no longer be paid.

        Raises:
            StripeInvalidRequestError: Session not found or no longer open
            StripeAPIUnavailableError: Stripe service unavailable
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "expire_checkout_session",
            "session_id": session_id,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            session = stripe.checkout.Session.expire(session_id)

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "status": session.status,
                    "duration_ms": duration_ms,
                },
            )

            return CheckoutSessionResult.from_stripe(session)

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Money Movement
    # =========================================================================

    @classmethod
    def create_transfer(
        cls,
        amount_cents: int,
        destination_account: str,
        idempotency_key: str,
        currency: str = "eur",
        description: str | None = None,
        metadata: dict[str, str] | None = None,
        transfer_group: str | None = None,
        trace_id: str | None = None,
    ) -> TransferResult:
        """
        Transfer funds from the platform balance to a connected account.

        Raises:
            StripeInvalidAccountError: Invalid destination account
            StripeInvalidRequestError: Insufficient platform balance, bad params
            StripeAPIUnavailableError / StripeTimeoutError: Transient, retry with the same key
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_transfer",
            "amount_cents": amount_cents,
            "destination_account": destination_account,
            "idempotency_key": idempotency_key,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            transfer_params: dict[str, Any] = {
                "amount": amount_cents,
                "currency": currency,
                "destination": destination_account,
                "metadata": metadata or {},
            }
            if description:
                transfer_params["description"] = description
            if transfer_group:
                transfer_params["transfer_group"] = transfer_group

            transfer = stripe.Transfer.create(
                idempotency_key=idempotency_key,
                **transfer_params,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "transfer_id": transfer.id,
                    "duration_ms": duration_ms,
                },
            )

            return TransferResult(
                id=transfer.id,
                amount_cents=transfer.amount,
                currency=transfer.currency,
                destination_account=transfer.destination,
                metadata=dict(transfer.metadata or {}),
                raw_response=transfer.to_dict(),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def create_refund(
        cls,
        payment_intent_id: str,
        idempotency_key: str,
        amount_cents: int | None = None,
        reason: str | None = None,
        metadata: dict[str, str] | None = None,
        trace_id: str | None = None,
    ) -> RefundResult:
        """
        Refund a PaymentIntent, in full unless ``amount_cents`` is given.

        Raises:
            StripeInvalidRequestError: Refund not possible
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_refund",
            "payment_intent_id": payment_intent_id,
            "amount_cents": amount_cents,
            "idempotency_key": idempotency_key,
            "trace_id": trace_id,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            refund_params: dict[str, Any] = {
                "payment_intent": payment_intent_id,
                "metadata": metadata or {},
            }
            if amount_cents is not None:
                refund_params["amount"] = amount_cents
            if reason:
                refund_params["reason"] = reason

            refund = stripe.Refund.create(
                idempotency_key=idempotency_key,
                **refund_params,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "refund_id": refund.id,
                    "status": refund.status,
                    "duration_ms": duration_ms,
                },
            )

            return RefundResult(
                id=refund.id,
                amount_cents=refund.amount,
                currency=refund.currency,
                status=refund.status,
                payment_intent_id=refund.payment_intent,
                metadata=dict(refund.metadata or {}),
                raw_response=refund.to_dict(),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Raises:
            StripeInvalidRequestError: Invalid signature or payload
        """
        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
            )
            return event.to_dict()
        except stripe.SignatureVerificationError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook signature",
                stripe_code="signature_verification_failed",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            raise StripeInvalidRequestError(
                "Invalid webhook payload",
                stripe_code="invalid_payload",
                details={"error": str(e)},
            ) from e

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe SDK exceptions into payments.exceptions.

        Always raises.
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None)
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise StripeCardDeclinedError(
                str(error.user_message or error),
                stripe_code=error.code,
                decline_code=decline_code,
            ) from error

        if isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code},
            )
            if "account" in str(error).lower():
                raise StripeInvalidAccountError(
                    str(error),
                    stripe_code=error.code,
                ) from error
            raise StripeInvalidRequestError(
                str(error),
                stripe_code=error.code,
            ) from error

        if isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise StripeRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_code="rate_limit",
            ) from error

        if isinstance(error, stripe.APIConnectionError):
            if "timed out" in str(error).lower():
                logger.error("Stripe request timed out", extra=log_context)
                raise StripeTimeoutError(
                    "Stripe request timed out. Please retry.",
                    stripe_code="timeout",
                ) from error
            logger.error("Connection error to Stripe", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_code="api_connection_error",
            ) from error

        if isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise StripeAPIUnavailableError(
                "Stripe service error. Please retry.",
                stripe_code="api_error",
            ) from error

        if isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise StripeInvalidRequestError(
                "Stripe authentication failed",
                stripe_code="authentication_error",
            ) from error

        logger.error(
            f"Unexpected error from Stripe: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise StripeAPIUnavailableError(
            f"Unexpected Stripe error: {error}",
            stripe_code="unknown_error",
        ) from error
