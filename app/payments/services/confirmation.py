"""
Payment confirmation: apply a finished Checkout Session to local state.

Called from the Stripe webhook handlers and from the client redirect
(verify_session). Both paths may see the same session, in any order and
more than once; every write is conditional so the second caller finds the
rows already moved and returns a no-op success.

Escrow flow:
    PaymentRecord  pending/none -> completed/escrowed
    Booking        pending -> payment_escrowed (+ escrow_release_eligible_at)

Destination charge flow:
    PaymentRecord          pending -> completed
    CommissionTransaction  pending -> completed
    Booking                pending -> confirmed
"""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any

from django.conf import settings

from bookings.states import BookingStatus
from core.services import BaseService, ServiceResult
from payments.adapters import CheckoutSessionResult, StripeAdapter
from payments.exceptions import EscrowErrorCode, StripeError
from payments.state_machines import (
    CommissionStatus,
    EscrowStatus,
    PaymentStatus,
)
from payments.store import EscrowStore

if TYPE_CHECKING:
    from bookings.models import Booking
    from payments.models import PaymentRecord

logger = logging.getLogger(__name__)

PAID_STATUSES = frozenset({"paid", "no_payment_required"})


class PaymentConfirmationService(BaseService):
    """Confirms or fails payments from Checkout Session outcomes."""

    def __init__(self, store: EscrowStore | None = None, stripe_adapter=None):
        self.store = store or EscrowStore()
        self.stripe_adapter = stripe_adapter or StripeAdapter

    # =========================================================================
    # Confirmation
    # =========================================================================

    def confirm_checkout_session(
        self, session: CheckoutSessionResult | dict[str, Any]
    ) -> ServiceResult[PaymentRecord]:
        if not isinstance(session, CheckoutSessionResult):
            session = CheckoutSessionResult.from_stripe(session)

        payment = self.store.get_payment_by_session(session.id)
        if payment is None:
            logger.warning(
                "No payment record for checkout session",
                extra={"session_id": session.id},
            )
            return ServiceResult.failure(
                "Payment record not found",
                EscrowErrorCode.NOT_FOUND,
            )

        log_context = {
            "session_id": session.id,
            "payment_id": str(payment.id),
            "payment_status": session.payment_status,
            "settlement_flow": payment.settlement_flow,
        }

        if session.payment_status not in PAID_STATUSES:
            logger.info("Checkout session not paid yet", extra=log_context)
            return ServiceResult.success(payment)

        booking = getattr(payment, "booking", None)
        if booking is None:
            logger.error("Paid payment has no booking", extra=log_context)
            return ServiceResult.failure(
                "Booking not found",
                EscrowErrorCode.NOT_FOUND,
            )
        log_context["booking_id"] = str(booking.id)

        if payment.uses_escrow:
            self._confirm_escrow(payment, booking, session, log_context)
        else:
            self._confirm_destination_charge(payment, booking, session, log_context)

        return ServiceResult.success(self.store.get_payment_record(payment.id))

    def _confirm_escrow(
        self,
        payment: PaymentRecord,
        booking: Booking,
        session: CheckoutSessionResult,
        log_context: dict[str, Any],
    ) -> None:
        now = self.store.now()
        escrowed = self.store.update_payment_record(
            payment.id,
            {
                "status": PaymentStatus.COMPLETED,
                "escrow_status": EscrowStatus.ESCROWED,
                "escrowed_at": now,
                "completed_at": now,
                "stripe_payment_intent_id": session.payment_intent_id,
            },
            expected={
                "status": PaymentStatus.PENDING,
                "escrow_status": EscrowStatus.NONE,
            },
        )
        if not escrowed:
            logger.info("Checkout session already confirmed", extra=log_context)
            return

        eligible_at = self.release_eligible_at(booking)
        moved = self.store.update_booking(
            booking.id,
            {
                "status": BookingStatus.PAYMENT_ESCROWED,
                "escrow_release_eligible_at": eligible_at,
            },
            expected={"status": BookingStatus.PENDING},
        )
        if not moved:
            logger.error(
                "Payment escrowed but booking was not pending",
                extra={**log_context, "booking_status": booking.status},
            )
            return

        logger.info(
            "Payment held in escrow",
            extra={
                **log_context,
                "escrow_release_eligible_at": eligible_at.isoformat() if eligible_at else None,
            },
        )

    def _confirm_destination_charge(
        self,
        payment: PaymentRecord,
        booking: Booking,
        session: CheckoutSessionResult,
        log_context: dict[str, Any],
    ) -> None:
        now = self.store.now()
        completed = self.store.update_payment_record(
            payment.id,
            {
                "status": PaymentStatus.COMPLETED,
                "completed_at": now,
                "stripe_payment_intent_id": session.payment_intent_id,
            },
            expected={"status": PaymentStatus.PENDING},
        )
        if not completed:
            logger.info("Checkout session already confirmed", extra=log_context)
            return

        self.store.update_commission_transaction(
            payment.id,
            {"status": CommissionStatus.COMPLETED},
            expected={"status": CommissionStatus.PENDING},
        )
        if not self.store.update_booking(
            booking.id,
            {"status": BookingStatus.CONFIRMED},
            expected={"status": BookingStatus.PENDING},
        ):
            logger.error(
                "Payment completed but booking was not pending",
                extra={**log_context, "booking_status": booking.status},
            )
            return

        logger.info("Destination charge completed", extra=log_context)

    def release_eligible_at(self, booking: Booking) -> datetime.datetime | None:
        """
        When the auto-release sweep may pick the booking up.

        Short stays: check-out cutoff plus ESCROW_AUTO_RELEASE_DELAY_HOURS.
        Rent and sale bookings are never auto-released.
        """
        if not booking.property.is_short_stay:
            return None
        cutoff = booking.checkout_cutoff_at(
            getattr(settings, "ESCROW_CHECKOUT_CUTOFF_HOUR", 11),
            getattr(settings, "ESCROW_CHECKOUT_TIME_ZONE", "UTC"),
        )
        delay = getattr(settings, "ESCROW_AUTO_RELEASE_DELAY_HOURS", 24)
        return cutoff + datetime.timedelta(hours=delay)

    # =========================================================================
    # Failure
    # =========================================================================

    def fail_checkout_session(self, session_id: str, reason: str = "") -> ServiceResult[None]:
        payment = self.store.get_payment_by_session(session_id)
        if payment is None:
            return ServiceResult.failure(
                "Payment record not found",
                EscrowErrorCode.NOT_FOUND,
            )

        failed = self.store.update_payment_record(
            payment.id,
            {
                "status": PaymentStatus.FAILED,
                "failed_at": self.store.now(),
                "failure_reason": reason or None,
            },
            expected={"status": PaymentStatus.PENDING},
        )
        if failed:
            self.store.update_commission_transaction(
                payment.id,
                {"status": CommissionStatus.FAILED},
                expected={"status": CommissionStatus.PENDING},
            )
            logger.info(
                "Checkout payment failed",
                extra={"session_id": session_id, "payment_id": str(payment.id), "reason": reason},
            )
        return ServiceResult.success(None)

    # =========================================================================
    # Client Redirect
    # =========================================================================

    def verify_session(self, session_id: str, user) -> ServiceResult[PaymentRecord]:
        """Confirm a session the guest was redirected back from."""
        payment = self.store.get_payment_by_session(session_id)
        if payment is None:
            return ServiceResult.failure(
                "Payment record not found",
                EscrowErrorCode.NOT_FOUND,
            )
        if payment.payer_id != getattr(user, "pk", None):
            return ServiceResult.failure(
                "Not allowed to verify this payment",
                EscrowErrorCode.UNAUTHORIZED,
            )

        try:
            session = self.stripe_adapter.retrieve_checkout_session(session_id)
        except StripeError as e:
            logger.warning(
                "Checkout session lookup failed",
                extra={"session_id": session_id, "error": str(e)},
            )
            return ServiceResult.failure(
                "Something went wrong, please try again",
                EscrowErrorCode.UNKNOWN,
                details={"retry_safe": True, "stripe_error": e.error_code},
            )

        return self.confirm_checkout_session(session)
