"""
Pytest fixtures for payment tests.

Services take their processor adapter as a constructor argument, so the
``stripe_adapter`` fixture is a MagicMock standing in for StripeAdapter
with successful default responses. Tests override return values or
side effects per case.

Usage:
    def test_release(escrowed_booking, release_service, stripe_adapter):
        result = release_service.release(
            escrowed_booking.id, ReleaseReason.GUEST_CONFIRMED, ReleaseActor.from_user(guest)
        )
        stripe_adapter.create_transfer.assert_called_once()
"""

from unittest.mock import MagicMock

import pytest

from authentication.tests.factories import UserFactory
from bookings.tests.factories import BookingFactory, PropertyFactory
from payments.adapters import (
    CheckoutSessionResult,
    RefundResult,
    StripeAdapter,
    TransferResult,
)
from payments.services import (
    CheckoutService,
    EscrowRefundService,
    EscrowReleaseService,
    PaymentConfirmationService,
    ReleaseActor,
)
from payments.store import EscrowStore
from payments.tests.factories import create_escrowed_booking


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def host(db):
    return UserFactory(full_name="Amina Host")


@pytest.fixture
def guest(db):
    return UserFactory(full_name="Karim Guest")


@pytest.fixture
def admin_user(db):
    """Platform administrator."""
    return UserFactory(is_staff=True)


@pytest.fixture
def stranger(db):
    """Authenticated user with no relation to the booking."""
    return UserFactory()


# =============================================================================
# Bookings
# =============================================================================


@pytest.fixture
def listing(db, host):
    """Short-stay property with a payout account and no per-listing rate."""
    return PropertyFactory(host=host, host_payout_account_id="acct_host")


@pytest.fixture
def pending_booking(db, guest, listing):
    return BookingFactory(guest=guest, property=listing)


@pytest.fixture
def escrowed_booking(db, guest, listing):
    """Escrowed 100.00 EUR at 15% for a stay that ended three days ago."""
    return create_escrowed_booking(
        gross_amount=10_000,
        guest=guest,
        property=listing,
    )


# =============================================================================
# Stripe Adapter Mock
# =============================================================================


@pytest.fixture
def stripe_adapter():
    """MagicMock with the StripeAdapter interface and successful defaults."""
    adapter = MagicMock(spec=StripeAdapter)
    adapter.create_transfer.return_value = TransferResult(
        id="tr_test_release",
        amount_cents=8500,
        currency="eur",
        destination_account="acct_host",
    )
    adapter.create_refund.return_value = RefundResult(
        id="re_test_refund",
        amount_cents=10_000,
        currency="eur",
        status="succeeded",
        payment_intent_id="pi_test",
    )
    adapter.create_checkout_session.return_value = CheckoutSessionResult(
        id="cs_test_created",
        url="https://checkout.stripe.com/c/pay/cs_test_created",
        status="open",
        payment_status="unpaid",
    )
    adapter.expire_checkout_session.return_value = CheckoutSessionResult(
        id="cs_test_expired",
        url=None,
        status="expired",
        payment_status="unpaid",
    )
    return adapter


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def store():
    return EscrowStore()


@pytest.fixture
def release_service(store, stripe_adapter):
    return EscrowReleaseService(store=store, stripe_adapter=stripe_adapter)


@pytest.fixture
def refund_service(store, stripe_adapter):
    return EscrowRefundService(store=store, stripe_adapter=stripe_adapter)


@pytest.fixture
def checkout_service(store, stripe_adapter):
    return CheckoutService(store=store, stripe_adapter=stripe_adapter)


@pytest.fixture
def confirmation_service(store, stripe_adapter):
    return PaymentConfirmationService(store=store, stripe_adapter=stripe_adapter)


@pytest.fixture
def system_actor():
    return ReleaseActor.system()
