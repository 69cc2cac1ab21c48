import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Property",
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
                ("title", models.CharField(help_text="Listing title", max_length=255)),
                (
                    "category",
                    models.CharField(
                        choices=[("short-stay", "Short Stay"), ("rent", "Rent"), ("sale", "Sale")],
                        db_index=True,
                        default="short-stay",
                        help_text="Listing category (short-stay, rent, sale)",
                        max_length=20,
                    ),
                ),
                (
                    "commission_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=4,
                        help_text=(
                            "Platform commission as a fraction (e.g. 0.1500). "
                            "Empty uses the platform default."
                        ),
                        max_digits=5,
                        null=True,
                    ),
                ),
                (
                    "host_payout_account_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Connect account ID of the host (acct_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "host",
                    models.ForeignKey(
                        help_text="Host who owns the property and receives payouts",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="properties",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Property",
                "verbose_name_plural": "Properties",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Booking",
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
                ("check_in_date", models.DateField(help_text="First night of the stay")),
                ("check_out_date", models.DateField(help_text="Departure date")),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("payment_escrowed", "Payment Escrowed"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current booking status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "escrow_release_eligible_at",
                    models.DateTimeField(
                        blank=True,
                        db_index=True,
                        help_text="Earliest time the auto-release sweep may release the escrow",
                        null=True,
                    ),
                ),
                (
                    "auto_release_scheduled",
                    models.BooleanField(
                        default=False,
                        help_text="Set while an auto-release attempt owns this booking",
                    ),
                ),
                (
                    "guest_confirmed_completion",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the guest confirmed the stay before release",
                    ),
                ),
                (
                    "completed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the booking was completed",
                        null=True,
                    ),
                ),
                (
                    "cancelled_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the booking was cancelled",
                        null=True,
                    ),
                ),
                (
                    "guest",
                    models.ForeignKey(
                        help_text="Guest who made the booking",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "property",
                    models.ForeignKey(
                        help_text="Booked property",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="bookings.property",
                    ),
                ),
            ],
            options={
                "verbose_name": "Booking",
                "verbose_name_plural": "Bookings",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "auto_release_scheduled", "escrow_release_eligible_at"],
                        name="booking_auto_release_idx",
                    ),
                    models.Index(fields=["guest", "status"], name="booking_guest_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(check_out_date__gte=models.F("check_in_date")),
                        name="booking_checkout_after_checkin",
                    ),
                ],
            },
        ),
    ]
