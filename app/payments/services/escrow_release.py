"""
Escrow release: the only path that moves escrowed money to a host.

EscrowReleaseService.release() checks, in order:
1. The booking exists                                    -> NOT_FOUND
2. The caller may release it                             -> UNAUTHORIZED
3. The booking is payment_escrowed                       -> INVALID_STATE
4. The payment exists and is escrowed                    -> NOT_FOUND / INVALID_STATE
5. Short stays have reached check-out (guest may bypass) -> TOO_EARLY

and then executes:
1. Split the gross amount with payments.commission
2. Transfer the host payout (idempotency key derived from the booking)
3. Payment: escrowed -> released      (conditional on escrowed)
4. Booking: payment_escrowed -> completed
5. CommissionTransaction -> completed
6. Notify guest and host (best effort)

The transfer happens before any local write. If it fails nothing has
changed and the call may simply be repeated. If step 3 succeeds but step 4
or 5 does not, the payment's released status is authoritative and the
outcome is flagged ``reconciliation_required`` for the reconciliation
sweep (payments.services.reconciliation).

Usage:
    from payments.services import EscrowReleaseService, ReleaseActor
    from payments.state_machines import ReleaseReason

    result = EscrowReleaseService().release(
        booking_id,
        ReleaseReason.GUEST_CONFIRMED,
        ReleaseActor.from_user(request.user),
    )
    if result.success:
        result.data.host_payout_amount
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import DatabaseError
from django_fsm import can_proceed

from bookings.states import BookingStatus
from core.services import BaseService, ServiceResult
from notifications.services import NotificationService
from payments.adapters import IdempotencyKeyGenerator, StripeAdapter, is_retryable_stripe_error
from payments.commission import resolve_rate, split
from payments.exceptions import EscrowErrorCode, StripeError
from payments.state_machines import (
    CommissionStatus,
    EscrowStatus,
    PaymentStatus,
    ReleaseReason,
)
from payments.store import EscrowStore

if TYPE_CHECKING:
    from bookings.models import Booking
    from payments.models import PaymentRecord

logger = logging.getLogger(__name__)


# =============================================================================
# Data Types
# =============================================================================


@dataclass(frozen=True)
class ReleaseActor:
    """
    Who is asking for the release.

    Attributes:
        user_id: Authenticated user's id (None for the system caller)
        is_admin: Platform administrator
        is_system: Internal caller (auto-release sweep)
    """

    user_id: Any = None
    is_admin: bool = False
    is_system: bool = False

    @classmethod
    def system(cls) -> ReleaseActor:
        return cls(is_system=True)

    @classmethod
    def from_user(cls, user) -> ReleaseActor:
        """Map a request user (or internal service principal) to an actor."""
        if getattr(user, "is_internal_service", False):
            return cls.system()
        return cls(user_id=user.pk, is_admin=bool(getattr(user, "is_staff", False)))


@dataclass
class ReleaseOutcome:
    """
    Successful release.

    Attributes:
        transfer_reference: Processor transfer id, None when no transfer was needed
        host_payout_amount: Amount sent to the host in minor units
        commission_amount: Amount kept by the platform
        reconciliation_required: Payment is released but the booking or
            commission row could not be updated
    """

    booking_id: str
    payment_id: str
    transfer_reference: str | None
    host_payout_amount: int
    commission_amount: int
    reconciliation_required: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# Service
# =============================================================================


class EscrowReleaseService(BaseService):
    """
    Releases escrowed booking payments to hosts.

    Dependencies are injected so tests can substitute fakes; each defaults
    to the production implementation and settings.
    """

    def __init__(
        self,
        store: EscrowStore | None = None,
        stripe_adapter=None,
        notifier=None,
        default_commission_rate: Decimal | str | None = None,
        checkout_cutoff_hour: int | None = None,
        checkout_time_zone: str | None = None,
    ):
        self.store = store or EscrowStore()
        self.stripe_adapter = stripe_adapter or StripeAdapter
        self.notifier = notifier or NotificationService
        self.default_commission_rate = (
            default_commission_rate
            if default_commission_rate is not None
            else getattr(settings, "PLATFORM_DEFAULT_COMMISSION_RATE", "0.15")
        )
        self.checkout_cutoff_hour = (
            checkout_cutoff_hour
            if checkout_cutoff_hour is not None
            else getattr(settings, "ESCROW_CHECKOUT_CUTOFF_HOUR", 11)
        )
        self.checkout_time_zone = checkout_time_zone or getattr(
            settings, "ESCROW_CHECKOUT_TIME_ZONE", "UTC"
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def release(
        self,
        booking_id,
        reason: str,
        actor: ReleaseActor,
    ) -> ServiceResult[ReleaseOutcome]:
        """
        Release the escrowed payment of ``booking_id`` to the host.

        Returns:
            ServiceResult[ReleaseOutcome]. Failures carry an EscrowErrorCode
            and ``details["retry_safe"]`` when nothing was changed.
        """
        log_context = {
            "booking_id": str(booking_id),
            "release_reason": reason,
            "actor_user_id": str(actor.user_id) if actor.user_id is not None else None,
            "actor_is_system": actor.is_system,
            "actor_is_admin": actor.is_admin,
        }
        logger.info("Escrow release requested", extra=log_context)

        try:
            checked = self._check_preconditions(booking_id, reason, actor)
        except DatabaseError as e:
            return self.handle_exception(
                e,
                "Escrow release precondition check failed",
                EscrowErrorCode.UNKNOWN,
                details={"retry_safe": True, **log_context},
            )

        if isinstance(checked, ServiceResult):
            logger.info(
                "Escrow release rejected",
                extra={**log_context, "error_code": checked.error_code},
            )
            return checked

        booking, payment = checked
        return self._execute(booking, payment, reason, log_context)

    # =========================================================================
    # Preconditions
    # =========================================================================

    def _check_preconditions(
        self, booking_id, reason: str, actor: ReleaseActor
    ) -> tuple[Booking, PaymentRecord] | ServiceResult:
        booking = self.store.get_booking(booking_id)
        if booking is None:
            return ServiceResult.failure(
                "Booking not found",
                EscrowErrorCode.NOT_FOUND,
                details={"retry_safe": True},
            )

        if not self._is_authorized(booking, reason, actor):
            return ServiceResult.failure(
                "Not allowed to release this booking",
                EscrowErrorCode.UNAUTHORIZED,
            )

        if booking.status != BookingStatus.PAYMENT_ESCROWED:
            return ServiceResult.failure(
                f"Booking is {booking.status}, not payment_escrowed",
                EscrowErrorCode.INVALID_STATE,
                details={"booking_status": booking.status},
            )

        payment = (
            self.store.get_payment_record(booking.payment_id) if booking.payment_id else None
        )
        if payment is None:
            return ServiceResult.failure(
                "Payment record not found",
                EscrowErrorCode.NOT_FOUND,
            )

        if payment.escrow_status != EscrowStatus.ESCROWED or not can_proceed(
            payment.release_escrow
        ):
            return ServiceResult.failure(
                f"Payment escrow is {payment.escrow_status}, not escrowed",
                EscrowErrorCode.INVALID_STATE,
                details={"escrow_status": payment.escrow_status},
            )

        if booking.property.is_short_stay and reason != ReleaseReason.GUEST_CONFIRMED:
            cutoff = booking.checkout_cutoff_at(self.checkout_cutoff_hour, self.checkout_time_zone)
            if self.store.now() < cutoff:
                return ServiceResult.failure(
                    "This stay hasn't ended yet",
                    EscrowErrorCode.TOO_EARLY,
                    details={"retry_safe": True, "eligible_at": cutoff.isoformat()},
                )

        return booking, payment

    @staticmethod
    def _is_authorized(booking: Booking, reason: str, actor: ReleaseActor) -> bool:
        if reason not in ReleaseReason.values:
            return False
        if actor.is_system:
            return reason == ReleaseReason.AUTO_RELEASE
        if actor.is_admin:
            return True
        return (
            actor.user_id is not None
            and actor.user_id == booking.guest_id
            and reason != ReleaseReason.AUTO_RELEASE
        )

    # =========================================================================
    # Execution
    # =========================================================================

    def _execute(
        self,
        booking: Booking,
        payment: PaymentRecord,
        reason: str,
        log_context: dict[str, Any],
    ) -> ServiceResult[ReleaseOutcome]:
        rate = resolve_rate(
            payment.commission_rate,
            booking.property.commission_rate,
            self.default_commission_rate,
        )
        amounts = split(payment.amount_cents, rate)
        destination = payment.destination_account_id or booking.property.host_payout_account_id
        idempotency_key = IdempotencyKeyGenerator.generate("escrow_release", booking.id)

        log_context = {
            **log_context,
            "payment_id": str(payment.id),
            "gross_amount": amounts.gross_amount,
            "commission_amount": amounts.commission_amount,
            "host_payout": amounts.host_payout,
            "commission_rate": str(rate),
            "destination_account": destination,
            "idempotency_key": idempotency_key,
        }

        # Transfer first; nothing local has changed until it succeeds
        transfer_reference = None
        if destination and amounts.host_payout > 0:
            try:
                transfer = self.stripe_adapter.create_transfer(
                    amount_cents=amounts.host_payout,
                    destination_account=destination,
                    idempotency_key=idempotency_key,
                    currency=payment.currency,
                    description=f"Payout for booking {booking.id}",
                    metadata={
                        "booking_id": str(booking.id),
                        "payment_id": str(payment.id),
                        "property_id": str(booking.property_id),
                        "commission_amount": str(amounts.commission_amount),
                    },
                    transfer_group=f"booking_{booking.id}",
                )
            except StripeError as e:
                logger.warning(
                    "Escrow release transfer failed",
                    extra={**log_context, "error": str(e), "stripe_error": e.error_code},
                )
                return ServiceResult.failure(
                    "Transfer to host failed",
                    EscrowErrorCode.TRANSFER_FAILED,
                    details={
                        "retry_safe": True,
                        "processor_retryable": is_retryable_stripe_error(e),
                        "stripe_error": e.error_code,
                    },
                )
            except Exception as e:
                return self.handle_exception(
                    e,
                    "Unexpected error during escrow release transfer",
                    EscrowErrorCode.UNKNOWN,
                    details={"retry_safe": True, **log_context},
                )
            transfer_reference = transfer.id
        elif amounts.host_payout > 0:
            logger.warning(
                "Escrow released without transfer: host has no payout account",
                extra=log_context,
            )

        log_context["transfer_reference"] = transfer_reference
        now = self.store.now()

        try:
            released = self.store.update_payment_record(
                payment.id,
                {
                    "escrow_status": EscrowStatus.RELEASED,
                    "status": PaymentStatus.COMPLETED,
                    "escrow_released_at": now,
                    "escrow_release_reason": reason,
                    "completed_at": payment.completed_at or now,
                    "stripe_transfer_id": transfer_reference,
                },
                expected={"escrow_status": EscrowStatus.ESCROWED},
            )
        except DatabaseError as e:
            logger.critical(
                "Transfer executed but payment record could not be marked released",
                extra=log_context,
                exc_info=True,
            )
            # The transfer key makes a retry replay the same transfer
            return ServiceResult.failure(
                str(e),
                EscrowErrorCode.UNKNOWN,
                details={"retry_safe": True, "transfer_reference": transfer_reference},
            )

        if not released:
            return self._lost_race(payment, transfer_reference, log_context)

        reconciliation_required = not self._complete_booking(booking, reason, now, log_context)
        if not self._complete_commission(payment, transfer_reference, now, log_context):
            reconciliation_required = True

        if reconciliation_required:
            logger.error("Escrow release requires reconciliation", extra=log_context)
        else:
            logger.info("Escrow released", extra=log_context)

        self._notify(booking)

        return ServiceResult.success(
            ReleaseOutcome(
                booking_id=str(booking.id),
                payment_id=str(payment.id),
                transfer_reference=transfer_reference,
                host_payout_amount=amounts.host_payout,
                commission_amount=amounts.commission_amount,
                reconciliation_required=reconciliation_required,
            )
        )

    def _lost_race(
        self, payment: PaymentRecord, transfer_reference: str | None, log_context
    ) -> ServiceResult[ReleaseOutcome]:
        """
        The payment left escrowed between the precondition check and the write.

        A concurrent release replays the same transfer, so ``released`` is the
        no-op case. Any other state (a refund that won) means the host was
        paid out of money that is no longer held.
        """
        current = self.store.get_payment_record(payment.id)
        current_status = current.escrow_status if current else None

        if transfer_reference is None or current_status == EscrowStatus.RELEASED:
            logger.warning(
                "Escrow release lost race: payment no longer escrowed",
                extra={**log_context, "escrow_status": current_status},
            )
            return ServiceResult.failure(
                "Payment is no longer escrowed",
                EscrowErrorCode.INVALID_STATE,
                details={"transfer_reference": transfer_reference},
            )

        logger.critical(
            "Transfer executed but payment was moved to %s concurrently",
            current_status,
            extra={**log_context, "escrow_status": current_status},
        )
        return ServiceResult.failure(
            f"Transfer {transfer_reference} executed for a payment that is {current_status}",
            EscrowErrorCode.RECONCILIATION_REQUIRED,
            details={
                "retry_safe": False,
                "transfer_reference": transfer_reference,
                "escrow_status": current_status,
            },
        )

    def _complete_booking(self, booking: Booking, reason: str, now, log_context) -> bool:
        try:
            return self.store.update_booking(
                booking.id,
                {
                    "status": BookingStatus.COMPLETED,
                    "completed_at": now,
                    "guest_confirmed_completion": reason == ReleaseReason.GUEST_CONFIRMED,
                },
                expected={"status": BookingStatus.PAYMENT_ESCROWED},
            )
        except DatabaseError:
            logger.error("Booking completion failed after release", extra=log_context, exc_info=True)
            return False

    def _complete_commission(
        self, payment: PaymentRecord, transfer_reference: str | None, now, log_context
    ) -> bool:
        try:
            return self.store.update_commission_transaction(
                payment.id,
                {
                    "status": CommissionStatus.COMPLETED,
                    "stripe_transfer_id": transfer_reference,
                    "escrow_released_at": now,
                },
                expected={"status__in": [CommissionStatus.PENDING, CommissionStatus.FAILED]},
            )
        except DatabaseError:
            logger.error(
                "Commission completion failed after release", extra=log_context, exc_info=True
            )
            return False

    # =========================================================================
    # Notifications
    # =========================================================================

    def _notify(self, booking: Booking) -> None:
        title = booking.property.title
        messages = [
            (
                booking.guest,
                "payment_released",
                "Payment Released",
                f'Your payment for "{title}" has been released to the host. '
                "Thank you for your stay!",
            ),
            (
                booking.property.host,
                "payment_received",
                "Payment Received",
                f'Payment for booking "{title}" has been released to your account.',
            ),
        ]
        for recipient, notification_type, heading, message in messages:
            try:
                self.notifier.create_notification(
                    recipient=recipient,
                    notification_type=notification_type,
                    title=heading,
                    message=message,
                    related_id=booking.id,
                    idempotency_key=f"{notification_type}:{booking.id}",
                )
            except Exception:
                logger.warning(
                    "Release notification failed",
                    extra={
                        "booking_id": str(booking.id),
                        "notification_type": notification_type,
                    },
                    exc_info=True,
                )

