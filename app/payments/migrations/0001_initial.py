import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentRecord",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Gross amount in smallest currency unit (e.g., cents)",
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="eur",
                        help_text="ISO 4217 currency code (lowercase)",
                        max_length=3,
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("booking_fee", "Booking Fee"),
                            ("security_deposit", "Security Deposit"),
                            ("rent", "Rent"),
                            ("sale", "Sale"),
                        ],
                        default="booking_fee",
                        help_text="What this payment is for",
                        max_length=20,
                    ),
                ),
                (
                    "settlement_flow",
                    models.CharField(
                        choices=[
                            ("escrow_transfer", "Escrow Transfer"),
                            ("destination_charge", "Destination Charge"),
                        ],
                        default="escrow_transfer",
                        help_text="How funds reach the host (escrow transfer or destination charge)",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Charge status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "escrow_status",
                    django_fsm.FSMField(
                        choices=[
                            ("none", "None"),
                            ("escrowed", "Escrowed"),
                            ("released", "Released"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="none",
                        help_text="Escrow status (managed by FSM, forward only)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "commission_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=4,
                        help_text="Commission rate applied at checkout",
                        max_digits=5,
                        null=True,
                    ),
                ),
                (
                    "destination_account_id",
                    models.CharField(
                        blank=True,
                        help_text="Host payout account at checkout time (acct_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "stripe_checkout_session_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Checkout Session ID (cs_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "stripe_payment_intent_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Stripe PaymentIntent ID (pi_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "stripe_transfer_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Transfer ID of the host payout (tr_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "stripe_refund_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Refund ID when the escrow was refunded (re_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each write",
                    ),
                ),
                (
                    "escrowed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the charge was confirmed and funds entered escrow",
                        null=True,
                    ),
                ),
                (
                    "escrow_released_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When escrowed funds were released to the host",
                        null=True,
                    ),
                ),
                (
                    "escrow_release_reason",
                    models.CharField(
                        blank=True,
                        help_text="Why the escrow was released",
                        max_length=50,
                        null=True,
                    ),
                ),
                (
                    "completed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the payment reached completed",
                        null=True,
                    ),
                ),
                (
                    "failed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the payment failed",
                        null=True,
                    ),
                ),
                (
                    "refunded_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the escrow was refunded to the guest",
                        null=True,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Booking, property and kind identifiers seeded at checkout",
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True,
                        help_text="Detailed reason if payment failed",
                        null=True,
                    ),
                ),
                (
                    "payer",
                    models.ForeignKey(
                        help_text="User who made the payment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_records",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Record",
                "verbose_name_plural": "Payment Records",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["payer", "status"], name="payment_payer_status_idx"),
                    models.Index(
                        fields=["escrow_status", "escrow_released_at"],
                        name="payment_escrow_released_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(amount_cents__gt=0),
                        name="payment_record_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=~models.Q(escrow_status="released")
                        | (
                            models.Q(escrow_released_at__isnull=False)
                            & models.Q(escrow_release_reason__isnull=False)
                        ),
                        name="payment_record_release_fields_set",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CommissionTransaction",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "commission_rate",
                    models.DecimalField(
                        decimal_places=4,
                        help_text="Rate used for the split",
                        max_digits=5,
                    ),
                ),
                (
                    "gross_amount_cents",
                    models.PositiveBigIntegerField(help_text="Gross payment amount"),
                ),
                (
                    "commission_amount_cents",
                    models.PositiveBigIntegerField(help_text="Platform commission"),
                ),
                (
                    "host_payout_cents",
                    models.PositiveBigIntegerField(help_text="Amount paid out to the host"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Commission status",
                        max_length=20,
                    ),
                ),
                (
                    "stripe_transfer_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Transfer ID of the host payout (tr_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "escrow_released_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the escrow funding this commission was released",
                        null=True,
                    ),
                ),
                (
                    "booking",
                    models.ForeignKey(
                        help_text="Booking the payment funds",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commission_transactions",
                        to="bookings.booking",
                    ),
                ),
                (
                    "host",
                    models.ForeignKey(
                        help_text="Host receiving the payout",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commission_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "payment",
                    models.OneToOneField(
                        help_text="Payment this commission was taken from",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commission_transaction",
                        to="payments.paymentrecord",
                    ),
                ),
            ],
            options={
                "verbose_name": "Commission Transaction",
                "verbose_name_plural": "Commission Transactions",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            gross_amount_cents=models.F("commission_amount_cents")
                            + models.F("host_payout_cents")
                        ),
                        name="commission_split_sums_to_gross",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "stripe_event_id",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe Event ID (evt_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe event type (e.g., 'checkout.session.completed')",
                        max_length=100,
                    ),
                ),
                ("payload", models.JSONField(help_text="Full webhook payload")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When event was successfully processed",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Error message if processing failed",
                        null=True,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of processing attempts",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
                    models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
                ],
            },
        ),
    ]
