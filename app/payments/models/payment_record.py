"""
PaymentRecord model: the money side of a booking.

A PaymentRecord is created when checkout starts, confirmed when the
processor reports the charge as paid, and, for escrowed payments, moved
to released or refunded exactly once.

Usage:
    from payments.models import PaymentRecord
    from payments.state_machines import EscrowStatus

    payment = PaymentRecord.objects.get(stripe_checkout_session_id=session_id)
    if payment.escrow_status == EscrowStatus.ESCROWED:
        ...

Note:
    Both status fields are protected FSM fields. Runtime writes go through
    payments.store.EscrowStore conditional updates, which only accept an
    escrow_status change along one of the @transition methods below.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import (
    EscrowStatus,
    PaymentKind,
    PaymentStatus,
    SettlementFlow,
)


class PaymentRecord(UUIDPrimaryKeyMixin, BaseModel):
    """
    A single charge made by a guest, optionally held in escrow.

    Charge Flow:
        PENDING -> COMPLETED
        PENDING -> FAILED

    Escrow Flow (forward only):
        NONE -> ESCROWED -> RELEASED
        NONE -> ESCROWED -> REFUNDED

    Fields:
        payer: Guest who paid
        amount_cents: Gross amount in smallest currency unit
        kind: What the payment is for
        settlement_flow: Escrow transfer or destination charge
        status / escrow_status: FSM-managed states
        escrow_released_at / escrow_release_reason: Set together on release
        commission_rate: Rate snapshot taken at checkout
        destination_account_id: Host payout account snapshot
        version: Incremented on every write for optimistic concurrency
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    payer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payment_records",
        help_text="User who made the payment",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount_cents = models.PositiveBigIntegerField(
        help_text="Gross amount in smallest currency unit (e.g., cents)",
    )

    currency = models.CharField(
        max_length=3,
        default="eur",
        help_text="ISO 4217 currency code (lowercase)",
    )

    kind = models.CharField(
        max_length=20,
        choices=PaymentKind.choices,
        default=PaymentKind.BOOKING_FEE,
        help_text="What this payment is for",
    )

    settlement_flow = models.CharField(
        max_length=20,
        choices=SettlementFlow.choices,
        default=SettlementFlow.ESCROW_TRANSFER,
        help_text="How funds reach the host (escrow transfer or destination charge)",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Charge status (managed by FSM)",
    )

    escrow_status = FSMField(
        default=EscrowStatus.NONE,
        choices=EscrowStatus.choices,
        db_index=True,
        protected=True,
        help_text="Escrow status (managed by FSM, forward only)",
    )

    # ==========================================================================
    # Commission Snapshot
    # ==========================================================================

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        null=True,
        blank=True,
        help_text="Commission rate applied at checkout",
    )

    destination_account_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Host payout account at checkout time (acct_xxx)",
    )

    # ==========================================================================
    # Stripe Integration
    # ==========================================================================

    stripe_checkout_session_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe Checkout Session ID (cs_xxx)",
    )

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )

    stripe_transfer_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe Transfer ID of the host payout (tr_xxx)",
    )

    stripe_refund_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe Refund ID when the escrow was refunded (re_xxx)",
    )

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each write",
    )

    # ==========================================================================
    # State Timestamps
    # ==========================================================================

    escrowed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the charge was confirmed and funds entered escrow",
    )

    escrow_released_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When escrowed funds were released to the host",
    )

    escrow_release_reason = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text="Why the escrow was released",
    )

    completed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment reached completed",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment failed",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the escrow was refunded to the guest",
    )

    # ==========================================================================
    # Metadata & Error Info
    # ==========================================================================

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Booking, property and kind identifiers seeded at checkout",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Detailed reason if payment failed",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Record"
        verbose_name_plural = "Payment Records"
        indexes = [
            models.Index(fields=["payer", "status"], name="payment_payer_status_idx"),
            models.Index(
                fields=["escrow_status", "escrow_released_at"],
                name="payment_escrow_released_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_cents__gt=0),
                name="payment_record_amount_positive",
            ),
            models.CheckConstraint(
                condition=~models.Q(escrow_status=EscrowStatus.RELEASED)
                | (
                    models.Q(escrow_released_at__isnull=False)
                    & models.Q(escrow_release_reason__isnull=False)
                ),
                name="payment_record_release_fields_set",
            ),
        ]

    def __str__(self) -> str:
        amount_display = f"{self.amount_cents / 100:.2f} {self.currency.upper()}"
        return f"PaymentRecord({self.id}, {self.status}/{self.escrow_status}, {amount_display})"

    def save(self, *args, **kwargs):
        """Save with version auto-increment for optimistic locking."""
        is_update = self.pk and not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    @property
    def uses_escrow(self) -> bool:
        return self.settlement_flow == SettlementFlow.ESCROW_TRANSFER

    # ==========================================================================
    # Escrow Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=escrow_status,
        source=EscrowStatus.NONE,
        target=EscrowStatus.ESCROWED,
    )
    def hold_in_escrow(self):
        """NONE -> ESCROWED once the charge is paid."""
        self.escrowed_at = timezone.now()

    @transition(
        field=escrow_status,
        source=EscrowStatus.ESCROWED,
        target=EscrowStatus.RELEASED,
    )
    def release_escrow(self, reason: str):
        """
        ESCROWED -> RELEASED.

        Args:
            reason: ReleaseReason value recorded with the release
        """
        self.escrow_released_at = timezone.now()
        self.escrow_release_reason = reason

    @transition(
        field=escrow_status,
        source=EscrowStatus.ESCROWED,
        target=EscrowStatus.REFUNDED,
    )
    def refund_escrow(self):
        """ESCROWED -> REFUNDED."""
        self.refunded_at = timezone.now()
