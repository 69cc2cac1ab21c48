"""
Tests for EscrowReconciliationService and its celery task.

The scenario under repair: the transfer went out and the payment was
marked released, but the booking/commission update never landed.
"""

from unittest.mock import patch

from django.utils import timezone

from bookings.models import Booking
from bookings.states import BookingStatus
from payments.models import CommissionTransaction
from payments.services import EscrowReconciliationService, ReleaseActor
from payments.state_machines import CommissionStatus, EscrowStatus, ReleaseReason
from payments.tests.factories import create_escrowed_booking
from payments.workers import reconcile_released_escrows


def _release_payment_only(store, booking, reason=ReleaseReason.GUEST_CONFIRMED):
    store.update_payment_record(
        booking.payment_id,
        {
            "escrow_status": EscrowStatus.RELEASED,
            "escrow_released_at": timezone.now(),
            "escrow_release_reason": reason,
            "stripe_transfer_id": "tr_partial",
        },
        expected={"escrow_status": EscrowStatus.ESCROWED},
    )


class TestRepairReleasedEscrows:
    def test_completes_booking_and_commission(self, escrowed_booking, store):
        _release_payment_only(store, escrowed_booking)

        summary = EscrowReconciliationService(store=store).repair_released_escrows()

        assert (summary.checked, summary.repaired, summary.manual_review) == (1, 1, 0)
        booking = Booking.objects.get(pk=escrowed_booking.pk)
        assert booking.status == BookingStatus.COMPLETED
        assert booking.guest_confirmed_completion is True
        commission = CommissionTransaction.objects.get(payment_id=escrowed_booking.payment_id)
        assert commission.status == CommissionStatus.COMPLETED
        assert commission.stripe_transfer_id == "tr_partial"

    def test_repairs_release_interrupted_after_payment_update(
        self, escrowed_booking, store, release_service
    ):
        with patch.object(store, "update_booking", return_value=False):
            result = release_service.release(
                escrowed_booking.id, ReleaseReason.ADMIN_RELEASE, ReleaseActor(is_admin=True)
            )
        assert result.data.reconciliation_required is True

        summary = EscrowReconciliationService(store=store).repair_released_escrows()

        assert summary.repaired == 1
        booking = Booking.objects.get(pk=escrowed_booking.pk)
        assert booking.status == BookingStatus.COMPLETED
        assert booking.guest_confirmed_completion is False

    def test_cancelled_booking_needs_manual_review(self, escrowed_booking, store):
        _release_payment_only(store, escrowed_booking)
        store.update_booking(
            escrowed_booking.id,
            {"status": BookingStatus.CANCELLED},
            expected={"status": BookingStatus.PAYMENT_ESCROWED},
        )

        summary = EscrowReconciliationService(store=store).repair_released_escrows()

        assert summary.manual_review == 1
        assert summary.results[0]["status"] == "manual_review"
        assert Booking.objects.get(pk=escrowed_booking.pk).status == BookingStatus.CANCELLED

    def test_nothing_to_repair(self, escrowed_booking, store):
        summary = EscrowReconciliationService(store=store).repair_released_escrows()

        assert summary.checked == 0

    def test_respects_limit(self, db, store):
        for _ in range(3):
            _release_payment_only(store, create_escrowed_booking())

        summary = EscrowReconciliationService(store=store).repair_released_escrows(limit=2)

        assert summary.checked == 2


class TestReconcileReleasedEscrowsTask:
    def test_task_runs_a_pass(self, escrowed_booking, store):
        _release_payment_only(store, escrowed_booking)

        result = reconcile_released_escrows.apply(kwargs={"max_records": 10}).get()

        assert result["repaired"] == 1
        assert result["results"][0]["booking_id"] == str(escrowed_booking.id)
