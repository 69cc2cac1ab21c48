"""
Auto-release scheduler for escrowed short-stay bookings.

Bookings become eligible ESCROW_AUTO_RELEASE_DELAY_HOURS after the
check-out cutoff (see PaymentConfirmationService.release_eligible_at). The
sweep picks them up oldest first, claims each one through the
``auto_release_scheduled`` latch and releases it as the system actor.

The latch is a conditional update, so any number of overlapping sweeps
(celery-beat, the internal HTTP trigger, a manual run) attempt each
booking at most once. A failed attempt resets the latch and the next sweep
retries it. A failure on one booking never stops the batch.

Usage:
    from payments.workers import run_auto_release_sweep

    run_auto_release_sweep.delay()
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from celery import shared_task
from django.conf import settings

from payments.services import EscrowReleaseService, ReleaseActor
from payments.state_machines import ReleaseReason
from payments.store import EscrowStore

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Maximum bookings attempted per sweep
DEFAULT_BATCH_SIZE = 100


class ProcessStatus:
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class SweepSummary:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[dict[str, Any]] = field(default_factory=list)

    def record(self, result: dict[str, Any]) -> None:
        self.results.append(result)
        status = result["status"]
        if status == ProcessStatus.SUCCESS:
            self.succeeded += 1
        elif status == ProcessStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# Scheduler
# =============================================================================


class AutoReleaseScheduler:
    """
    Finds eligible bookings and releases them one at a time.

    Collaborators are injectable for tests; the defaults are the production
    store and release service.
    """

    def __init__(
        self,
        store: EscrowStore | None = None,
        release_service: EscrowReleaseService | None = None,
        batch_size: int | None = None,
    ):
        self.store = store or EscrowStore()
        self.release_service = release_service or EscrowReleaseService(store=self.store)
        self.batch_size = batch_size or getattr(
            settings, "ESCROW_AUTO_RELEASE_BATCH_SIZE", DEFAULT_BATCH_SIZE
        )

    def sweep(self) -> SweepSummary:
        now = self.store.now()
        booking_ids = self.store.query_eligible_bookings(now, limit=self.batch_size)

        logger.info(
            "Starting auto-release sweep",
            extra={"eligible_count": len(booking_ids), "batch_size": self.batch_size},
        )

        summary = SweepSummary()
        for booking_id in booking_ids:
            summary.attempted += 1
            summary.record(self.process_booking(booking_id))

        logger.info(
            "Auto-release sweep complete",
            extra={
                "attempted": summary.attempted,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "skipped": summary.skipped,
            },
        )
        return summary

    def process_booking(self, booking_id) -> dict[str, Any]:
        """
        Claim and release a single booking.

        Returns:
            Dict with ``booking_id``, ``status`` (success, failed, skipped or
            error) and, on failure, ``error_code`` and ``error``.
        """
        booking_id = str(booking_id)

        if not self.store.claim_auto_release(booking_id):
            logger.info(
                "Booking already claimed by another sweep, skipping",
                extra={"booking_id": booking_id},
            )
            return {"booking_id": booking_id, "status": ProcessStatus.SKIPPED}

        try:
            result = self.release_service.release(
                booking_id,
                ReleaseReason.AUTO_RELEASE,
                ReleaseActor.system(),
            )
        except Exception as e:
            logger.exception(
                "Unexpected error during auto-release",
                extra={"booking_id": booking_id},
            )
            self._reset_latch(booking_id)
            return {
                "booking_id": booking_id,
                "status": ProcessStatus.ERROR,
                "error_code": "UNKNOWN",
                "error": str(e),
            }

        if result.success:
            return {
                "booking_id": booking_id,
                "status": ProcessStatus.SUCCESS,
                "transfer_reference": result.data.transfer_reference,
                "reconciliation_required": result.data.reconciliation_required,
            }

        logger.warning(
            "Auto-release failed",
            extra={
                "booking_id": booking_id,
                "error_code": result.error_code,
                "error": result.error,
            },
        )
        self._reset_latch(booking_id)
        return {
            "booking_id": booking_id,
            "status": ProcessStatus.FAILED,
            "error_code": result.error_code,
            "error": result.error,
        }

    def _reset_latch(self, booking_id: str) -> None:
        try:
            self.store.reset_auto_release(booking_id)
        except Exception:
            logger.exception(
                "Could not reset auto-release latch",
                extra={"booking_id": booking_id},
            )


# =============================================================================
# Periodic Task
# =============================================================================


@shared_task
def run_auto_release_sweep() -> dict:
    """
    Release every escrowed booking past its eligibility time.

    Scheduled by celery-beat every ESCROW_AUTO_RELEASE_SWEEP_MINUTES.
    """
    return AutoReleaseScheduler().sweep().to_dict()


__all__ = [
    "AutoReleaseScheduler",
    "ProcessStatus",
    "SweepSummary",
    "run_auto_release_sweep",
]
