"""
Stripe webhook handlers.

Handlers are registered per event type and receive the stored
WebhookEvent. Only Checkout Session events matter to the escrow flow;
every other event type is acknowledged without action.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Callable

from core.services import ServiceResult
from payments.exceptions import EscrowErrorCode
from payments.models import WebhookEvent
from payments.services import PaymentConfirmationService

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(*event_types: str) -> Callable:
    """Register the decorated function for one or more event types."""

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Route ``webhook_event`` to its handler.

    Unknown event types succeed so Stripe stops redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            "No handler registered for event type",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "event_type": webhook_event.event_type,
            },
        )
        return ServiceResult.success(None)

    return handler(webhook_event)


# =============================================================================
# Checkout Session Handlers
# =============================================================================


def _session_or_failure(webhook_event: WebhookEvent) -> dict | ServiceResult:
    session = webhook_event.get_object()
    if not session.get("id"):
        logger.error(
            "Checkout event without session id",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.failure(
            "Could not extract checkout session from webhook",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )
    return session


@register_handler(
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
)
def handle_checkout_session_paid(webhook_event: WebhookEvent) -> ServiceResult:
    """Confirm the payment (escrow or destination charge) for a paid session."""
    session = _session_or_failure(webhook_event)
    if isinstance(session, ServiceResult):
        return session

    # Redelivered events confirm as a no-op success
    return PaymentConfirmationService().confirm_checkout_session(session)


@register_handler(
    "checkout.session.async_payment_failed",
    "checkout.session.expired",
)
def handle_checkout_session_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """Fail the pending payment of an expired or unpaid session."""
    session = _session_or_failure(webhook_event)
    if isinstance(session, ServiceResult):
        return session

    result = PaymentConfirmationService().fail_checkout_session(
        session["id"],
        reason=webhook_event.event_type,
    )
    if not result.success and result.error_code == EscrowErrorCode.NOT_FOUND:
        # Sessions created outside this service have no payment record
        return ServiceResult.success(None)
    return result
