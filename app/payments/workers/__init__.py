"""
Workers for async payment processing.

This module contains Celery tasks for background escrow operations:
- AutoReleaseScheduler: Releases escrowed bookings past their eligibility time
- reconcile_released_escrows: Completes bookings left behind by a release

Usage:
    from payments.workers import run_auto_release_sweep, reconcile_released_escrows

    run_auto_release_sweep.delay()
    reconcile_released_escrows.delay()
"""

from payments.workers.reconciliation_worker import reconcile_released_escrows
from payments.workers.release_scheduler import (
    AutoReleaseScheduler,
    ProcessStatus,
    SweepSummary,
    run_auto_release_sweep,
)

__all__ = [
    "AutoReleaseScheduler",
    "ProcessStatus",
    "SweepSummary",
    "reconcile_released_escrows",
    "run_auto_release_sweep",
]
