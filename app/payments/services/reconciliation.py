"""
Reconciliation of partially applied escrow releases.

A release writes the payment first and the booking second. If the process
stops in between, the payment is ``released`` while its booking is still
``payment_escrowed``. The payment's escrow status is authoritative, so the
booking (and the commission row) are brought forward to match it.

Bookings in any other open status are never modified; they are reported
for manual review.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from bookings.states import BookingStatus
from core.services import BaseService
from payments.state_machines import CommissionStatus, ReleaseReason
from payments.store import EscrowStore

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationSummary:
    checked: int = 0
    repaired: int = 0
    manual_review: int = 0
    results: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class EscrowReconciliationService(BaseService):
    def __init__(self, store: EscrowStore | None = None):
        self.store = store or EscrowStore()

    def repair_released_escrows(self, limit: int | None = 100) -> ReconciliationSummary:
        summary = ReconciliationSummary()

        for payment in self.store.query_released_payments_with_open_booking(limit):
            booking = payment.booking
            summary.checked += 1
            entry = {"booking_id": str(booking.id), "payment_id": str(payment.id)}
            log_context = {**entry, "booking_status": booking.status}

            if booking.status != BookingStatus.PAYMENT_ESCROWED:
                logger.error(
                    "Released payment on a booking that cannot be completed",
                    extra=log_context,
                )
                summary.manual_review += 1
                summary.results.append({**entry, "status": "manual_review"})
                continue

            completed = self.store.update_booking(
                booking.id,
                {
                    "status": BookingStatus.COMPLETED,
                    "completed_at": payment.escrow_released_at or self.store.now(),
                    "guest_confirmed_completion": (
                        payment.escrow_release_reason == ReleaseReason.GUEST_CONFIRMED
                    ),
                },
                expected={"status": BookingStatus.PAYMENT_ESCROWED},
            )
            self.store.update_commission_transaction(
                payment.id,
                {
                    "status": CommissionStatus.COMPLETED,
                    "stripe_transfer_id": payment.stripe_transfer_id,
                    "escrow_released_at": payment.escrow_released_at,
                },
                expected={"status__in": [CommissionStatus.PENDING, CommissionStatus.FAILED]},
            )

            if completed:
                logger.warning("Reconciled released escrow", extra=log_context)
                summary.repaired += 1
                summary.results.append({**entry, "status": "repaired"})
            else:
                # Another worker moved the booking in the meantime
                summary.results.append({**entry, "status": "skipped"})

        if summary.checked:
            logger.info(
                "Escrow reconciliation finished",
                extra={
                    "checked": summary.checked,
                    "repaired": summary.repaired,
                    "manual_review": summary.manual_review,
                },
            )
        return summary
