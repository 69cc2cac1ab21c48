"""
Store access layer for escrow operations.

Every write issued by the escrow services is a single-row conditional
update: ``UPDATE ... SET <changes> WHERE pk = <pk> AND <expected>``. The
update reports whether a row matched, which is how concurrent callers
(overlapping auto-release sweeps, duplicate webhooks, a guest double
click) find out that somebody else already moved the row on. No process
locks and no multi-row transactions are involved.

State columns (``PaymentRecord.escrow_status`` and ``Booking.status``)
can only be written when ``expected`` pins their current value to a
source of a declared django-fsm transition into the new value. Anything
else raises TransitionNotAllowed before the query is issued.

Usage:
    from payments.store import EscrowStore

    store = EscrowStore()
    if store.claim_auto_release(booking_id):
        ...  # this caller owns the attempt

    applied = store.update_payment_record(
        payment.id,
        {"escrow_status": EscrowStatus.RELEASED, ...},
        expected={"escrow_status": EscrowStatus.ESCROWED},
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import models
from django.db.models import F
from django.utils import timezone
from django_fsm import TransitionNotAllowed

from bookings.models import Booking, Property
from bookings.states import BookingStatus
from payments.models import CommissionTransaction, PaymentRecord
from payments.state_machines import EscrowStatus

if TYPE_CHECKING:
    import datetime
    import uuid
    from collections.abc import Mapping
    from typing import Any

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=models.Model)


class EscrowStore:
    """
    Reads and conditional writes for bookings, payments and commissions.

    Stateless; construct once and share.
    """

    # Columns whose writes must follow the model's declared transitions
    STATE_FIELDS = {
        PaymentRecord: "escrow_status",
        Booking: "status",
    }

    # =========================================================================
    # Clock
    # =========================================================================

    def now(self) -> datetime.datetime:
        """Current time used for every eligibility decision and timestamp."""
        return timezone.now()

    # =========================================================================
    # Reads
    # =========================================================================

    def _get(self, queryset: models.QuerySet[M], pk: Any) -> M | None:
        try:
            return queryset.filter(pk=pk).first()
        except (ValueError, DjangoValidationError):
            # Malformed id (e.g. not a UUID) cannot match any row
            return None

    def get_booking(self, booking_id: uuid.UUID | str) -> Booking | None:
        return self._get(
            Booking.objects.select_related("property", "guest", "property__host"),
            booking_id,
        )

    def get_payment_record(self, payment_id: uuid.UUID | str) -> PaymentRecord | None:
        return self._get(PaymentRecord.objects.all(), payment_id)

    def get_property(self, property_id: uuid.UUID | str) -> Property | None:
        return self._get(Property.objects.select_related("host"), property_id)

    def get_commission_transaction(
        self, payment_id: uuid.UUID | str
    ) -> CommissionTransaction | None:
        try:
            return CommissionTransaction.objects.filter(payment_id=payment_id).first()
        except (ValueError, DjangoValidationError):
            return None

    def get_payment_by_session(self, session_id: str) -> PaymentRecord | None:
        return PaymentRecord.objects.filter(stripe_checkout_session_id=session_id).first()

    # =========================================================================
    # Transition Guard
    # =========================================================================

    @staticmethod
    def legal_sources(model: type[models.Model], field_name: str, target: str) -> set[str]:
        """States with a declared transition on ``field_name`` into ``target``."""
        field = model._meta.get_field(field_name)
        return {
            transition.source
            for transition in field.get_all_transitions(model)
            if transition.target == target
        }

    def _check_transition(
        self,
        model: type[models.Model],
        expected: Mapping[str, Any] | None,
        changes: Mapping[str, Any],
    ) -> None:
        field_name = self.STATE_FIELDS.get(model)
        if field_name is None or field_name not in changes:
            return

        target = changes[field_name]
        expected = expected or {}
        if field_name in expected:
            pinned = {expected[field_name]}
        else:
            pinned = set(expected.get(f"{field_name}__in") or ())

        legal = self.legal_sources(model, field_name, target)
        if not pinned or not pinned <= legal:
            raise TransitionNotAllowed(
                f"{model.__name__}.{field_name} cannot move to {target} "
                f"from {sorted(pinned) or 'an unpinned state'}"
            )

    # =========================================================================
    # Conditional Update Primitive
    # =========================================================================

    def _conditional_update(
        self,
        model: type[models.Model],
        lookup: Mapping[str, Any],
        expected: Mapping[str, Any] | None,
        changes: Mapping[str, Any],
    ) -> int:
        self._check_transition(model, expected, changes)

        values = dict(changes)
        field_names = {f.name for f in model._meta.concrete_fields}
        if "updated_at" in field_names:
            values.setdefault("updated_at", self.now())
        if "version" in field_names:
            values["version"] = F("version") + 1

        return model.objects.filter(**lookup, **(expected or {})).update(**values)

    def update_where(
        self,
        model: type[models.Model],
        pk: Any,
        expected: Mapping[str, Any] | None,
        changes: Mapping[str, Any],
    ) -> bool:
        """
        Apply ``changes`` to row ``pk`` only if it still matches ``expected``.

        Returns:
            True if exactly one row was updated
        """
        updated = self._conditional_update(model, {"pk": pk}, expected, changes)
        if updated != 1:
            logger.debug(
                "Conditional update not applied",
                extra={
                    "model": model.__name__,
                    "pk": str(pk),
                    "expected": {k: str(v) for k, v in (expected or {}).items()},
                },
            )
        return updated == 1

    def update_booking(
        self,
        booking_id: uuid.UUID | str,
        changes: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> bool:
        return self.update_where(Booking, booking_id, expected, changes)

    def update_payment_record(
        self,
        payment_id: uuid.UUID | str,
        changes: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> bool:
        return self.update_where(PaymentRecord, payment_id, expected, changes)

    def update_commission_transaction(
        self,
        payment_id: uuid.UUID | str,
        changes: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> bool:
        """Update the commission row belonging to ``payment_id``."""
        updated = self._conditional_update(
            CommissionTransaction, {"payment_id": payment_id}, expected, changes
        )
        return updated == 1

    # =========================================================================
    # Auto-Release Latch
    # =========================================================================

    def claim_auto_release(self, booking_id: uuid.UUID | str) -> bool:
        """
        Set ``auto_release_scheduled`` if it is currently false.

        Only one of any number of concurrent callers gets True.
        """
        return self.update_where(
            Booking,
            booking_id,
            {
                "auto_release_scheduled": False,
                "status": BookingStatus.PAYMENT_ESCROWED,
            },
            {"auto_release_scheduled": True},
        )

    def reset_auto_release(self, booking_id: uuid.UUID | str) -> bool:
        """Release the latch so a later sweep retries the booking."""
        return self.update_where(
            Booking,
            booking_id,
            {"auto_release_scheduled": True},
            {"auto_release_scheduled": False},
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def query_eligible_bookings(
        self,
        eligible_before: datetime.datetime,
        limit: int | None = None,
    ) -> list:
        """
        Ids of escrowed bookings due for auto-release and not yet claimed.

        Oldest eligibility first.
        """
        queryset = (
            Booking.objects.filter(
                status=BookingStatus.PAYMENT_ESCROWED,
                auto_release_scheduled=False,
                escrow_release_eligible_at__isnull=False,
                escrow_release_eligible_at__lte=eligible_before,
            )
            .order_by("escrow_release_eligible_at")
            .values_list("id", flat=True)
        )
        if limit:
            queryset = queryset[:limit]
        return list(queryset)

    def query_released_payments_with_open_booking(self, limit: int | None = None) -> list:
        """
        Released payments whose booking never reached completed.

        These are the rows left behind when a release stopped between the
        payment update and the booking update.
        """
        queryset = (
            PaymentRecord.objects.filter(
                escrow_status=EscrowStatus.RELEASED,
                booking__isnull=False,
            )
            .exclude(booking__status=BookingStatus.COMPLETED)
            .select_related("booking")
            .order_by("escrow_released_at")
        )
        if limit:
            queryset = queryset[:limit]
        return list(queryset)


__all__ = ["EscrowStore"]
