"""
Tests for PaymentConfirmationService.

Covers:
- Paid escrow session: payment escrowed, booking payment_escrowed with
  its auto-release eligibility time
- Paid destination-charge session: payment and commission completed,
  booking confirmed
- Redelivered and unpaid sessions change nothing
- Failed/expired sessions
- Client redirect verification
"""

import datetime

import pytest

from bookings.models import Booking
from bookings.states import BookingStatus, PropertyCategory
from bookings.tests.factories import BookingFactory, PropertyFactory
from payments.adapters import CheckoutSessionResult
from payments.exceptions import EscrowErrorCode, StripeAPIUnavailableError
from payments.models import CommissionTransaction, PaymentRecord
from payments.state_machines import (
    CommissionStatus,
    EscrowStatus,
    PaymentStatus,
    SettlementFlow,
)
from payments.tests.factories import PaymentRecordFactory, create_pending_checkout


def _session(payment, payment_status="paid", payment_intent="pi_test_paid"):
    return {
        "id": payment.stripe_checkout_session_id,
        "object": "checkout.session",
        "status": "complete",
        "payment_status": payment_status,
        "payment_intent": payment_intent,
        "amount_total": payment.amount_cents,
    }


@pytest.fixture
def checkout(db, guest, listing):
    """Pending escrow checkout for a stay checking out on 2026-03-08."""
    booking = BookingFactory(
        guest=guest,
        property=listing,
        check_in_date=datetime.date(2026, 3, 5),
        check_out_date=datetime.date(2026, 3, 8),
    )
    return create_pending_checkout(booking)


class TestConfirmEscrow:
    def test_paid_session_moves_funds_into_escrow(self, checkout, confirmation_service):
        booking, payment = checkout

        result = confirmation_service.confirm_checkout_session(_session(payment))

        assert result.success
        payment = PaymentRecord.objects.get(pk=payment.pk)
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.escrow_status == EscrowStatus.ESCROWED
        assert payment.escrowed_at is not None
        assert payment.stripe_payment_intent_id == "pi_test_paid"

        booking = Booking.objects.get(pk=booking.pk)
        assert booking.status == BookingStatus.PAYMENT_ESCROWED
        assert booking.escrow_release_eligible_at == datetime.datetime(
            2026, 3, 9, 11, 0, tzinfo=datetime.timezone.utc
        )

        # Commission stays pending until the escrow is released
        assert CommissionTransaction.objects.get(payment=payment).status == CommissionStatus.PENDING

    def test_accepts_checkout_session_result(self, checkout, confirmation_service):
        _, payment = checkout
        session = CheckoutSessionResult.from_stripe(_session(payment))

        result = confirmation_service.confirm_checkout_session(session)

        assert result.data.escrow_status == EscrowStatus.ESCROWED

    def test_redelivery_is_a_no_op(self, checkout, confirmation_service):
        _, payment = checkout
        confirmation_service.confirm_checkout_session(_session(payment))
        first = PaymentRecord.objects.get(pk=payment.pk)

        result = confirmation_service.confirm_checkout_session(
            _session(payment, payment_intent="pi_other")
        )

        assert result.success
        second = PaymentRecord.objects.get(pk=payment.pk)
        assert second.escrowed_at == first.escrowed_at
        assert second.stripe_payment_intent_id == "pi_test_paid"
        assert second.version == first.version

    def test_unpaid_session_changes_nothing(self, checkout, confirmation_service):
        booking, payment = checkout

        result = confirmation_service.confirm_checkout_session(
            _session(payment, payment_status="unpaid")
        )

        assert result.success
        assert PaymentRecord.objects.get(pk=payment.pk).status == PaymentStatus.PENDING
        assert Booking.objects.get(pk=booking.pk).status == BookingStatus.PENDING

    def test_rent_booking_is_never_auto_released(self, db, guest, confirmation_service):
        booking, payment = create_pending_checkout(
            BookingFactory(guest=guest, property=PropertyFactory(category=PropertyCategory.RENT))
        )

        confirmation_service.confirm_checkout_session(_session(payment))

        booking = Booking.objects.get(pk=booking.pk)
        assert booking.status == BookingStatus.PAYMENT_ESCROWED
        assert booking.escrow_release_eligible_at is None

    def test_unknown_session(self, db, confirmation_service):
        result = confirmation_service.confirm_checkout_session(
            {"id": "cs_unknown", "payment_status": "paid"}
        )

        assert result.error_code == EscrowErrorCode.NOT_FOUND

    def test_payment_without_booking(self, db, confirmation_service):
        payment = PaymentRecordFactory()

        result = confirmation_service.confirm_checkout_session(_session(payment))

        assert result.error_code == EscrowErrorCode.NOT_FOUND
        assert PaymentRecord.objects.get(pk=payment.pk).status == PaymentStatus.PENDING


class TestConfirmDestinationCharge:
    def test_paid_session_confirms_booking(self, db, guest, confirmation_service):
        booking, payment = create_pending_checkout(
            BookingFactory(guest=guest),
            settlement_flow=SettlementFlow.DESTINATION_CHARGE,
        )

        result = confirmation_service.confirm_checkout_session(_session(payment))

        assert result.success
        payment = PaymentRecord.objects.get(pk=payment.pk)
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.escrow_status == EscrowStatus.NONE
        assert CommissionTransaction.objects.get(payment=payment).status == CommissionStatus.COMPLETED
        assert Booking.objects.get(pk=booking.pk).status == BookingStatus.CONFIRMED


class TestFailCheckoutSession:
    def test_marks_payment_and_commission_failed(self, checkout, confirmation_service):
        booking, payment = checkout

        result = confirmation_service.fail_checkout_session(
            payment.stripe_checkout_session_id, reason="expired"
        )

        assert result.success
        payment = PaymentRecord.objects.get(pk=payment.pk)
        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "expired"
        assert CommissionTransaction.objects.get(payment=payment).status == CommissionStatus.FAILED
        assert Booking.objects.get(pk=booking.pk).status == BookingStatus.PENDING

    def test_does_not_touch_paid_payment(self, checkout, confirmation_service):
        _, payment = checkout
        confirmation_service.confirm_checkout_session(_session(payment))

        confirmation_service.fail_checkout_session(payment.stripe_checkout_session_id)

        assert PaymentRecord.objects.get(pk=payment.pk).escrow_status == EscrowStatus.ESCROWED

    def test_unknown_session(self, db, confirmation_service):
        result = confirmation_service.fail_checkout_session("cs_unknown")

        assert result.error_code == EscrowErrorCode.NOT_FOUND


class TestVerifySession:
    def test_guest_redirect_confirms_payment(
        self, checkout, guest, confirmation_service, stripe_adapter
    ):
        _, payment = checkout
        stripe_adapter.retrieve_checkout_session.return_value = CheckoutSessionResult.from_stripe(
            _session(payment)
        )

        result = confirmation_service.verify_session(payment.stripe_checkout_session_id, guest)

        assert result.success
        assert result.data.escrow_status == EscrowStatus.ESCROWED
        stripe_adapter.retrieve_checkout_session.assert_called_once_with(
            payment.stripe_checkout_session_id
        )

    def test_other_user_cannot_verify(self, checkout, stranger, confirmation_service, stripe_adapter):
        _, payment = checkout

        result = confirmation_service.verify_session(payment.stripe_checkout_session_id, stranger)

        assert result.error_code == EscrowErrorCode.UNAUTHORIZED
        stripe_adapter.retrieve_checkout_session.assert_not_called()

    def test_processor_failure(self, checkout, guest, confirmation_service, stripe_adapter):
        _, payment = checkout
        stripe_adapter.retrieve_checkout_session.side_effect = StripeAPIUnavailableError("down")

        result = confirmation_service.verify_session(payment.stripe_checkout_session_id, guest)

        assert result.error_code == EscrowErrorCode.UNKNOWN
        assert result.retry_safe is True

    def test_unknown_session(self, db, guest, confirmation_service):
        result = confirmation_service.verify_session("cs_unknown", guest)

        assert result.error_code == EscrowErrorCode.NOT_FOUND
