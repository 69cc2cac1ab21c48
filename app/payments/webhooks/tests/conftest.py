"""
Pytest fixtures for webhook tests.

Provides WebhookEvent objects in each processing state and a pending
escrow checkout whose session the events refer to.
"""

import pytest

from bookings.tests.factories import BookingFactory
from payments.state_machines import WebhookEventStatus
from payments.tests.factories import WebhookEventFactory, create_pending_checkout


# =============================================================================
# Checkout Fixtures
# =============================================================================


@pytest.fixture
def pending_checkout(db):
    """(booking, payment) for an unpaid escrow checkout."""
    return create_pending_checkout(BookingFactory())


@pytest.fixture
def paid_session(pending_checkout):
    _, payment = pending_checkout
    return {
        "id": payment.stripe_checkout_session_id,
        "object": "checkout.session",
        "status": "complete",
        "payment_status": "paid",
        "payment_intent": "pi_test_webhook_paid",
        "amount_total": payment.amount_cents,
    }


# =============================================================================
# WebhookEvent Fixtures
# =============================================================================


@pytest.fixture
def pending_webhook_event(db):
    return WebhookEventFactory()


@pytest.fixture
def processed_webhook_event(db):
    event = WebhookEventFactory()
    event.mark_processing()
    event.mark_processed()
    event.save()
    return event


@pytest.fixture
def failed_webhook_event(db):
    return WebhookEventFactory(
        status=WebhookEventStatus.FAILED,
        error_message="Previous error",
        retry_count=1,
    )
