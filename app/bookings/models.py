"""
Property and Booking models.

A Booking is the business entity an escrowed PaymentRecord is attached to.
Its status is advanced by the payments app (confirmation, release, refund)
through single-row conditional updates, see payments.store.EscrowStore.
The store accepts a status change only along a transition declared below.

Usage:
    from bookings.models import Booking

    booking = Booking.objects.select_related("property").get(pk=booking_id)
    if booking.status == BookingStatus.PAYMENT_ESCROWED:
        cutoff = booking.checkout_cutoff_at(hour=11, time_zone="UTC")
"""

from __future__ import annotations

import datetime
from zoneinfo import ZoneInfo

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import FSMField, transition

from bookings.states import BookingStatus, PropertyCategory
from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class Property(UUIDPrimaryKeyMixin, BaseModel):
    """
    A listing owned by a host.

    Fields:
        host: Owner who receives payouts
        title: Listing title shown in notifications
        category: short-stay, rent or sale
        commission_rate: Per-listing platform commission (fraction in (0, 1))
        host_payout_account_id: Host's processor payout account (acct_xxx)
    """

    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="properties",
        help_text="Host who owns the property and receives payouts",
    )

    title = models.CharField(
        max_length=255,
        help_text="Listing title",
    )

    category = models.CharField(
        max_length=20,
        choices=PropertyCategory.choices,
        default=PropertyCategory.SHORT_STAY,
        db_index=True,
        help_text="Listing category (short-stay, rent, sale)",
    )

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        null=True,
        blank=True,
        help_text="Platform commission as a fraction (e.g. 0.1500). Empty uses the platform default.",
    )

    host_payout_account_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe Connect account ID of the host (acct_xxx)",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Property"
        verbose_name_plural = "Properties"

    def __str__(self) -> str:
        return f"Property({self.id}, {self.title})"

    @property
    def is_short_stay(self) -> bool:
        return self.category == PropertyCategory.SHORT_STAY


class Booking(UUIDPrimaryKeyMixin, BaseModel):
    """
    A guest's booking of a property.

    State Flow:
        PENDING -> PAYMENT_ESCROWED -> COMPLETED (escrow path)
        PENDING -> CONFIRMED -> COMPLETED (fee-split path)
        PENDING/CONFIRMED/PAYMENT_ESCROWED -> CANCELLED

    Fields:
        guest: User who booked and pays
        property: Booked listing
        payment: Current PaymentRecord for this booking
        check_in_date/check_out_date: Stay dates
        status: FSM-managed lifecycle state
        escrow_release_eligible_at: When auto-release may run (short stays only)
        auto_release_scheduled: Latch claimed by the auto-release sweep
        guest_confirmed_completion: Whether the guest confirmed the stay
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    guest = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings",
        help_text="Guest who made the booking",
    )

    property = models.ForeignKey(
        Property,
        on_delete=models.PROTECT,
        related_name="bookings",
        help_text="Booked property",
    )

    payment = models.OneToOneField(
        "payments.PaymentRecord",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="booking",
        help_text="Payment record funding this booking",
    )

    # ==========================================================================
    # Stay Dates
    # ==========================================================================

    check_in_date = models.DateField(
        help_text="First night of the stay",
    )

    check_out_date = models.DateField(
        help_text="Departure date",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=BookingStatus.PENDING,
        choices=BookingStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current booking status (managed by FSM)",
    )

    # ==========================================================================
    # Escrow Release Scheduling
    # ==========================================================================

    escrow_release_eligible_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Earliest time the auto-release sweep may release the escrow",
    )

    auto_release_scheduled = models.BooleanField(
        default=False,
        help_text="Set while an auto-release attempt owns this booking",
    )

    guest_confirmed_completion = models.BooleanField(
        default=False,
        help_text="Whether the guest confirmed the stay before release",
    )

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the booking was completed",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the booking was cancelled",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Booking"
        verbose_name_plural = "Bookings"
        indexes = [
            models.Index(
                fields=["status", "auto_release_scheduled", "escrow_release_eligible_at"],
                name="booking_auto_release_idx",
            ),
            models.Index(fields=["guest", "status"], name="booking_guest_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out_date__gte=models.F("check_in_date")),
                name="booking_checkout_after_checkin",
            ),
        ]

    def __str__(self) -> str:
        return f"Booking({self.id}, {self.status})"

    def checkout_cutoff_at(self, hour: int, time_zone: str = "UTC") -> datetime.datetime:
        """
        Check-out date at the cutoff hour, as an aware datetime.

        Args:
            hour: Local cutoff hour (check-out time)
            time_zone: IANA zone the hour is expressed in
        """
        local = datetime.datetime.combine(self.check_out_date, datetime.time(hour=hour))
        return local.replace(tzinfo=ZoneInfo(time_zone))

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=BookingStatus.PENDING,
        target=BookingStatus.CONFIRMED,
    )
    def confirm(self):
        """PENDING -> CONFIRMED when a fee-split charge succeeds."""

    @transition(
        field=status,
        source=BookingStatus.PENDING,
        target=BookingStatus.PAYMENT_ESCROWED,
    )
    def escrow_payment(self):
        """PENDING -> PAYMENT_ESCROWED when the platform holds the funds."""

    @transition(
        field=status,
        source=[BookingStatus.PAYMENT_ESCROWED, BookingStatus.CONFIRMED],
        target=BookingStatus.COMPLETED,
    )
    def complete(self, guest_confirmed: bool = False):
        """
        Mark the booking completed.

        Transition: PAYMENT_ESCROWED/CONFIRMED -> COMPLETED
        """
        self.completed_at = timezone.now()
        self.guest_confirmed_completion = guest_confirmed

    @transition(
        field=status,
        source=[
            BookingStatus.PENDING,
            BookingStatus.CONFIRMED,
            BookingStatus.PAYMENT_ESCROWED,
        ],
        target=BookingStatus.CANCELLED,
    )
    def cancel(self):
        """Cancel the booking. Completed bookings cannot be cancelled."""
        self.cancelled_at = timezone.now()
