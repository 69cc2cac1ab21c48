"""
Tests for CheckoutService.

Covers:
- Escrow checkout: pending payment and commission recorded, session opened
- Destination-charge checkout for configured payment kinds
- Validation order: amount, rate, booking, payer, state, payout account
- No Stripe call for any rejected request
- Processor failure rolls back the local records
"""

import uuid
from decimal import Decimal

import pytest

from bookings.models import Booking
from bookings.states import BookingStatus
from bookings.tests.factories import BookingFactory, PropertyFactory
from payments.adapters import CheckoutSessionResult, IdempotencyKeyGenerator
from payments.commission import split
from payments.exceptions import (
    EscrowErrorCode,
    StripeAPIUnavailableError,
    StripeInvalidRequestError,
)
from payments.models import CommissionTransaction, PaymentRecord
from payments.services import CreateCheckoutParams
from payments.state_machines import (
    CommissionStatus,
    PaymentKind,
    PaymentStatus,
    SettlementFlow,
)
from payments.tests.factories import create_pending_checkout


def _params(booking, payer, **overrides):
    values = {
        "booking_id": booking.id,
        "property_id": booking.property_id,
        "gross_amount": 10_000,
        "payer": payer,
    }
    values.update(overrides)
    return CreateCheckoutParams(**values)


class TestCreateEscrowCheckout:
    def test_records_payment_and_opens_session(
        self, pending_booking, guest, checkout_service, stripe_adapter
    ):
        result = checkout_service.create_checkout(_params(pending_booking, guest))

        assert result.success, result.error
        assert result.data.session_id == "cs_test_created"
        assert result.data.checkout_url.startswith("https://checkout.stripe.com/")
        assert result.data.application_fee_amount == 1_500
        assert result.data.host_payout_amount == 8_500

        payment = PaymentRecord.objects.get(pk=result.data.payment_id)
        assert payment.status == PaymentStatus.PENDING
        assert payment.settlement_flow == SettlementFlow.ESCROW_TRANSFER
        assert payment.commission_rate == Decimal("0.1500")
        assert payment.destination_account_id == "acct_host"
        assert payment.stripe_checkout_session_id == "cs_test_created"

        commission = CommissionTransaction.objects.get(payment=payment)
        assert commission.status == CommissionStatus.PENDING
        assert commission.commission_amount_cents + commission.host_payout_cents == 10_000

        assert Booking.objects.get(pk=pending_booking.pk).payment_id == payment.pk

    def test_session_params_hold_funds_on_platform(
        self, pending_booking, guest, checkout_service, stripe_adapter, settings
    ):
        settings.APP_URL = "https://holibayt.test"

        result = checkout_service.create_checkout(_params(pending_booking, guest))

        params = stripe_adapter.create_checkout_session.call_args.args[0]
        assert params.amount_cents == 10_000
        assert params.destination_account is None
        assert params.application_fee_amount is None
        assert params.transfer_group == f"booking_{pending_booking.id}"
        assert params.success_url == (
            f"https://holibayt.test/booking/success?bookingId={pending_booking.id}"
            "&session_id={CHECKOUT_SESSION_ID}"
        )
        assert params.cancel_url == (
            f"https://holibayt.test/booking/cancel?bookingId={pending_booking.id}"
        )
        assert params.idempotency_key == IdempotencyKeyGenerator.generate(
            "checkout_session", result.data.payment_id
        )
        assert params.metadata["booking_id"] == str(pending_booking.id)
        assert params.customer_email == guest.email

    def test_explicit_rate_overrides_property_rate(
        self, db, guest, checkout_service, stripe_adapter
    ):
        booking = BookingFactory(
            guest=guest, property=PropertyFactory(commission_rate=Decimal("0.20"))
        )

        result = checkout_service.create_checkout(
            _params(booking, guest, commission_rate="0.10")
        )

        assert result.data.application_fee_amount == 1_000

    def test_split_uses_rate_as_stored(self, pending_booking, guest, checkout_service):
        result = checkout_service.create_checkout(
            _params(pending_booking, guest, gross_amount=1_000_000, commission_rate="0.123456")
        )

        payment = PaymentRecord.objects.get(pk=result.data.payment_id)
        commission = CommissionTransaction.objects.get(payment=payment)
        at_release = split(payment.amount_cents, payment.commission_rate)

        assert payment.commission_rate == Decimal("0.1235")
        assert commission.commission_rate == Decimal("0.1235")
        assert result.data.application_fee_amount == at_release.commission_amount == 123_500
        assert commission.host_payout_cents == at_release.host_payout == 876_500

    def test_rate_rounding_to_one_is_rejected(self, pending_booking, guest, checkout_service):
        result = checkout_service.create_checkout(
            _params(pending_booking, guest, commission_rate="0.99996")
        )

        assert result.error_code == EscrowErrorCode.INVALID_RATE

    def test_property_rate_used_when_no_explicit_rate(
        self, db, guest, checkout_service, stripe_adapter
    ):
        booking = BookingFactory(
            guest=guest, property=PropertyFactory(commission_rate=Decimal("0.20"))
        )

        result = checkout_service.create_checkout(_params(booking, guest))

        assert result.data.application_fee_amount == 2_000

    def test_new_checkout_supersedes_abandoned_one(
        self, db, guest, checkout_service, stripe_adapter
    ):
        booking, abandoned = create_pending_checkout(BookingFactory(guest=guest))

        result = checkout_service.create_checkout(_params(booking, guest))

        assert result.success
        old = PaymentRecord.objects.get(pk=abandoned.pk)
        assert old.status == PaymentStatus.FAILED
        assert old.failure_reason == "Superseded by a new checkout"
        assert CommissionTransaction.objects.get(payment=old).status == CommissionStatus.CANCELLED
        assert Booking.objects.get(pk=booking.pk).payment_id == uuid.UUID(result.data.payment_id)
        stripe_adapter.expire_checkout_session.assert_called_once_with(
            abandoned.stripe_checkout_session_id
        )


class TestSupersededSession:
    def test_completed_earlier_session_blocks_new_checkout(
        self, db, guest, checkout_service, stripe_adapter
    ):
        booking, earlier = create_pending_checkout(BookingFactory(guest=guest))
        stripe_adapter.expire_checkout_session.side_effect = StripeInvalidRequestError(
            "Only Checkout Sessions with a status of open can be expired"
        )
        stripe_adapter.retrieve_checkout_session.return_value = CheckoutSessionResult(
            id=earlier.stripe_checkout_session_id,
            url=None,
            status="complete",
            payment_status="paid",
        )

        result = checkout_service.create_checkout(_params(booking, guest))

        assert result.error_code == EscrowErrorCode.INVALID_STATE
        stripe_adapter.create_checkout_session.assert_not_called()
        assert PaymentRecord.objects.get(pk=earlier.pk).status == PaymentStatus.PENDING
        assert Booking.objects.get(pk=booking.pk).payment_id == earlier.pk
        assert PaymentRecord.objects.count() == 1

    def test_already_expired_session_is_superseded(
        self, db, guest, checkout_service, stripe_adapter
    ):
        booking, earlier = create_pending_checkout(BookingFactory(guest=guest))
        stripe_adapter.expire_checkout_session.side_effect = StripeInvalidRequestError(
            "Only Checkout Sessions with a status of open can be expired"
        )
        stripe_adapter.retrieve_checkout_session.return_value = CheckoutSessionResult(
            id=earlier.stripe_checkout_session_id,
            url=None,
            status="expired",
            payment_status="unpaid",
        )

        result = checkout_service.create_checkout(_params(booking, guest))

        assert result.success
        assert PaymentRecord.objects.get(pk=earlier.pk).status == PaymentStatus.FAILED

    def test_processor_outage_keeps_earlier_checkout(
        self, db, guest, checkout_service, stripe_adapter
    ):
        booking, earlier = create_pending_checkout(BookingFactory(guest=guest))
        stripe_adapter.expire_checkout_session.side_effect = StripeAPIUnavailableError("down")

        result = checkout_service.create_checkout(_params(booking, guest))

        assert result.error_code == EscrowErrorCode.UNKNOWN
        assert result.retry_safe is True
        stripe_adapter.create_checkout_session.assert_not_called()
        assert PaymentRecord.objects.get(pk=earlier.pk).status == PaymentStatus.PENDING

    def test_first_checkout_expires_nothing(
        self, pending_booking, guest, checkout_service, stripe_adapter
    ):
        checkout_service.create_checkout(_params(pending_booking, guest))

        stripe_adapter.expire_checkout_session.assert_not_called()


class TestCreateDestinationChargeCheckout:
    def test_security_deposit_uses_destination_charge(
        self, pending_booking, guest, checkout_service, stripe_adapter, settings
    ):
        settings.PAYMENT_DESTINATION_CHARGE_KINDS = [PaymentKind.SECURITY_DEPOSIT]

        result = checkout_service.create_checkout(
            _params(pending_booking, guest, kind=PaymentKind.SECURITY_DEPOSIT)
        )

        assert result.success
        payment = PaymentRecord.objects.get(pk=result.data.payment_id)
        assert payment.settlement_flow == SettlementFlow.DESTINATION_CHARGE

        params = stripe_adapter.create_checkout_session.call_args.args[0]
        assert params.destination_account == "acct_host"
        assert params.application_fee_amount == 1_500
        assert params.transfer_group is None


class TestCheckoutValidation:
    def test_rate_of_one_is_rejected_without_stripe_call(
        self, pending_booking, guest, checkout_service, stripe_adapter
    ):
        result = checkout_service.create_checkout(
            _params(pending_booking, guest, commission_rate=Decimal("1.0"))
        )

        assert result.error_code == EscrowErrorCode.INVALID_RATE
        stripe_adapter.create_checkout_session.assert_not_called()
        assert not PaymentRecord.objects.exists()

    @pytest.mark.parametrize("rate", ["0", "-0.1", "1.5", "abc"])
    def test_out_of_range_rates(self, pending_booking, guest, checkout_service, rate):
        result = checkout_service.create_checkout(
            _params(pending_booking, guest, commission_rate=rate)
        )

        assert result.error_code == EscrowErrorCode.INVALID_RATE

    @pytest.mark.parametrize("amount", [0, -100, 49, 50_000_001, 100.5, "10000", True])
    def test_invalid_amounts(self, pending_booking, guest, checkout_service, stripe_adapter, amount):
        result = checkout_service.create_checkout(_params(pending_booking, guest, gross_amount=amount))

        assert result.error_code == EscrowErrorCode.INVALID_AMOUNT
        stripe_adapter.create_checkout_session.assert_not_called()

    def test_amount_checked_before_rate(self, pending_booking, guest, checkout_service):
        result = checkout_service.create_checkout(
            _params(pending_booking, guest, gross_amount=0, commission_rate="2")
        )

        assert result.error_code == EscrowErrorCode.INVALID_AMOUNT

    def test_unknown_booking(self, db, guest, listing, checkout_service):
        result = checkout_service.create_checkout(
            CreateCheckoutParams(
                booking_id=uuid.uuid4(),
                property_id=listing.id,
                gross_amount=10_000,
                payer=guest,
            )
        )

        assert result.error_code == EscrowErrorCode.NOT_FOUND

    def test_property_mismatch_is_not_found(self, pending_booking, guest, checkout_service):
        other = PropertyFactory()

        result = checkout_service.create_checkout(
            _params(pending_booking, guest, property_id=other.id)
        )

        assert result.error_code == EscrowErrorCode.NOT_FOUND

    def test_only_guest_can_pay(self, pending_booking, stranger, checkout_service, stripe_adapter):
        result = checkout_service.create_checkout(_params(pending_booking, stranger))

        assert result.error_code == EscrowErrorCode.UNAUTHORIZED
        stripe_adapter.create_checkout_session.assert_not_called()

    def test_escrowed_booking_cannot_be_paid_again(self, escrowed_booking, guest, checkout_service):
        result = checkout_service.create_checkout(_params(escrowed_booking, guest))

        assert result.error_code == EscrowErrorCode.INVALID_STATE

    def test_pending_booking_with_completed_payment(self, db, guest, checkout_service):
        booking, payment = create_pending_checkout(
            BookingFactory(guest=guest), status=PaymentStatus.COMPLETED
        )

        result = checkout_service.create_checkout(_params(booking, guest))

        assert result.error_code == EscrowErrorCode.INVALID_STATE
        assert result.details["payment_id"] == str(payment.id)

    def test_cancelled_booking(self, db, guest, checkout_service):
        booking = BookingFactory(guest=guest, status=BookingStatus.CANCELLED)

        result = checkout_service.create_checkout(_params(booking, guest))

        assert result.error_code == EscrowErrorCode.INVALID_STATE

    def test_host_without_payout_account(self, db, guest, checkout_service, stripe_adapter):
        booking = BookingFactory(
            guest=guest, property=PropertyFactory(host_payout_account_id=None)
        )

        result = checkout_service.create_checkout(_params(booking, guest))

        assert result.error_code == EscrowErrorCode.OWNER_ACCOUNT_NOT_FOUND
        stripe_adapter.create_checkout_session.assert_not_called()


class TestCheckoutProcessorFailure:
    def test_stripe_failure_rolls_back_records(
        self, pending_booking, guest, checkout_service, stripe_adapter
    ):
        stripe_adapter.create_checkout_session.side_effect = StripeAPIUnavailableError("down")

        result = checkout_service.create_checkout(_params(pending_booking, guest))

        assert result.error_code == EscrowErrorCode.UNKNOWN
        assert result.error == "Something went wrong, please try again"
        assert result.retry_safe is True
        assert not PaymentRecord.objects.exists()
        assert not CommissionTransaction.objects.exists()
        assert Booking.objects.get(pk=pending_booking.pk).payment_id is None

    def test_rejected_checkout_leaves_escrowed_payment_alone(self, escrowed_booking, guest, checkout_service):
        checkout_service.create_checkout(_params(escrowed_booking, guest))

        assert PaymentRecord.objects.get(pk=escrowed_booking.payment_id).status == (
            PaymentStatus.COMPLETED
        )
