"""
Escrow refund: return an escrowed payment to the guest and cancel the booking.

Administrators only. The processor refund runs first; local rows are moved
only after it succeeds, each with a conditional update.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from django.db import DatabaseError

from bookings.states import BookingStatus
from core.services import BaseService, ServiceResult
from notifications.services import NotificationService
from payments.adapters import IdempotencyKeyGenerator, StripeAdapter
from payments.exceptions import EscrowErrorCode, StripeError
from payments.services.escrow_release import ReleaseActor
from payments.state_machines import CommissionStatus, EscrowStatus
from payments.store import EscrowStore

logger = logging.getLogger(__name__)


@dataclass
class RefundOutcome:
    booking_id: str
    payment_id: str
    refund_reference: str
    amount: int
    reconciliation_required: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class EscrowRefundService(BaseService):
    """Refunds escrowed payments."""

    def __init__(self, store: EscrowStore | None = None, stripe_adapter=None, notifier=None):
        self.store = store or EscrowStore()
        self.stripe_adapter = stripe_adapter or StripeAdapter
        self.notifier = notifier or NotificationService

    def refund(
        self,
        booking_id,
        actor: ReleaseActor,
        reason: str | None = None,
    ) -> ServiceResult[RefundOutcome]:
        if not actor.is_admin:
            return ServiceResult.failure(
                "Only administrators can refund an escrow",
                EscrowErrorCode.UNAUTHORIZED,
            )

        booking = self.store.get_booking(booking_id)
        if booking is None:
            return ServiceResult.failure("Booking not found", EscrowErrorCode.NOT_FOUND)

        payment = (
            self.store.get_payment_record(booking.payment_id) if booking.payment_id else None
        )
        if (
            booking.status != BookingStatus.PAYMENT_ESCROWED
            or payment is None
            or payment.escrow_status != EscrowStatus.ESCROWED
        ):
            return ServiceResult.failure(
                "Booking has no escrowed payment to refund",
                EscrowErrorCode.INVALID_STATE,
                details={"booking_status": booking.status},
            )

        idempotency_key = IdempotencyKeyGenerator.generate("escrow_refund", booking.id)
        log_context = {
            "booking_id": str(booking.id),
            "payment_id": str(payment.id),
            "idempotency_key": idempotency_key,
            "reason": reason,
        }

        try:
            refund = self.stripe_adapter.create_refund(
                payment_intent_id=payment.stripe_payment_intent_id,
                idempotency_key=idempotency_key,
                reason="requested_by_customer",
                metadata={
                    "booking_id": str(booking.id),
                    "payment_id": str(payment.id),
                    "refund_reason": reason or "",
                },
            )
        except StripeError as e:
            logger.warning(
                "Escrow refund failed at processor",
                extra={**log_context, "error": str(e), "stripe_error": e.error_code},
            )
            return ServiceResult.failure(
                "Refund failed",
                EscrowErrorCode.REFUND_FAILED,
                details={"retry_safe": True, "stripe_error": e.error_code},
            )

        now = self.store.now()
        log_context["refund_reference"] = refund.id
        try:
            refunded = self.store.update_payment_record(
                payment.id,
                {
                    "escrow_status": EscrowStatus.REFUNDED,
                    "refunded_at": now,
                    "stripe_refund_id": refund.id,
                },
                expected={"escrow_status": EscrowStatus.ESCROWED},
            )
        except DatabaseError as e:
            logger.critical(
                "Refund executed but payment record could not be marked refunded",
                extra=log_context,
                exc_info=True,
            )
            return ServiceResult.failure(
                str(e),
                EscrowErrorCode.UNKNOWN,
                details={"retry_safe": True, "refund_reference": refund.id},
            )
        if not refunded:
            current = self.store.get_payment_record(payment.id)
            current_status = current.escrow_status if current else None
            if current_status != EscrowStatus.REFUNDED:
                # The guest was refunded but the payment says the host got the money
                logger.critical(
                    "Refund executed but payment was moved to %s concurrently",
                    current_status,
                    extra={**log_context, "escrow_status": current_status},
                )
                return ServiceResult.failure(
                    f"Refund {refund.id} executed for a payment that is {current_status}",
                    EscrowErrorCode.RECONCILIATION_REQUIRED,
                    details={
                        "retry_safe": False,
                        "refund_reference": refund.id,
                        "escrow_status": current_status,
                    },
                )
            return ServiceResult.failure(
                "Payment is no longer escrowed",
                EscrowErrorCode.INVALID_STATE,
                details={"refund_reference": refund.id},
            )

        booking_cancelled = self.store.update_booking(
            booking.id,
            {"status": BookingStatus.CANCELLED, "cancelled_at": now},
            expected={"status": BookingStatus.PAYMENT_ESCROWED},
        )
        self.store.update_commission_transaction(
            payment.id,
            {"status": CommissionStatus.CANCELLED},
            expected={"status__in": [CommissionStatus.PENDING, CommissionStatus.FAILED]},
        )
        if not booking_cancelled:
            logger.error("Escrow refund requires reconciliation", extra=log_context)
        else:
            logger.info("Escrow refunded", extra=log_context)

        try:
            self.notifier.create_notification(
                recipient=booking.guest,
                notification_type="payment_refunded",
                title="Payment Refunded",
                message=f'Your payment for "{booking.property.title}" has been refunded.',
                related_id=booking.id,
                idempotency_key=f"payment_refunded:{booking.id}",
            )
        except Exception:
            logger.warning("Refund notification failed", extra=log_context, exc_info=True)

        return ServiceResult.success(
            RefundOutcome(
                booking_id=str(booking.id),
                payment_id=str(payment.id),
                refund_reference=refund.id,
                amount=payment.amount_cents,
                reconciliation_required=not booking_cancelled,
            )
        )
