"""
Reconciliation worker for partially applied escrow releases.

Tasks:
- reconcile_released_escrows: Periodic task that completes bookings whose
  payment was released but whose own update never landed

Celery Beat Schedule:
    CELERY_BEAT_SCHEDULE = {
        "escrow-reconciliation-hourly": {
            "task": "payments.workers.reconciliation_worker.reconcile_released_escrows",
            "schedule": crontab(minute=30),
        },
    }
"""

from __future__ import annotations

import logging

from celery import shared_task

from payments.services import EscrowReconciliationService

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECORDS = 500


@shared_task(bind=True)
def reconcile_released_escrows(self, max_records: int = DEFAULT_MAX_RECORDS) -> dict:
    """
    Run one reconciliation pass.

    Returns:
        Dict with checked, repaired, manual_review and per-booking results
    """
    logger.info(
        "Starting escrow reconciliation",
        extra={"task_id": self.request.id, "max_records": max_records},
    )
    summary = EscrowReconciliationService().repair_released_escrows(limit=max_records)
    return summary.to_dict()


__all__ = ["reconcile_released_escrows"]
