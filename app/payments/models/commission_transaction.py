"""
CommissionTransaction model: platform fee ledger row for one payment.

Created alongside its PaymentRecord at checkout with the amounts from
payments.commission.split(), and completed either when the escrow is
released or, for destination charges, when the charge is confirmed.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import CommissionStatus


class CommissionTransaction(UUIDPrimaryKeyMixin, BaseModel):
    """
    Commission earned by the platform on one PaymentRecord.

    Invariant:
        commission_amount_cents + host_payout_cents == gross_amount_cents
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    payment = models.OneToOneField(
        "payments.PaymentRecord",
        on_delete=models.PROTECT,
        related_name="commission_transaction",
        help_text="Payment this commission was taken from",
    )

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="commission_transactions",
        help_text="Booking the payment funds",
    )

    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="commission_transactions",
        help_text="Host receiving the payout",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        help_text="Rate used for the split",
    )

    gross_amount_cents = models.PositiveBigIntegerField(
        help_text="Gross payment amount",
    )

    commission_amount_cents = models.PositiveBigIntegerField(
        help_text="Platform commission",
    )

    host_payout_cents = models.PositiveBigIntegerField(
        help_text="Amount paid out to the host",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=CommissionStatus.choices,
        default=CommissionStatus.PENDING,
        db_index=True,
        help_text="Commission status",
    )

    stripe_transfer_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe Transfer ID of the host payout (tr_xxx)",
    )

    escrow_released_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the escrow funding this commission was released",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Commission Transaction"
        verbose_name_plural = "Commission Transactions"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    gross_amount_cents=models.F("commission_amount_cents")
                    + models.F("host_payout_cents")
                ),
                name="commission_split_sums_to_gross",
            ),
        ]

    def __str__(self) -> str:
        return f"CommissionTransaction({self.id}, {self.status}, {self.commission_amount_cents})"
