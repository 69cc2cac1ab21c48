import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
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
                    "notification_type",
                    models.CharField(
                        db_index=True,
                        help_text="Machine-readable notification type",
                        max_length=100,
                    ),
                ),
                ("title", models.CharField(help_text="Notification title", max_length=255)),
                (
                    "message",
                    models.TextField(blank=True, default="", help_text="Notification body"),
                ),
                (
                    "related_id",
                    models.CharField(
                        blank=True,
                        help_text="ID of the related entity (supports UUID and integer PKs)",
                        max_length=36,
                        null=True,
                    ),
                ),
                (
                    "is_read",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Whether recipient has read this notification",
                    ),
                ),
                (
                    "idempotency_key",
                    models.CharField(
                        blank=True,
                        help_text="Idempotency key to prevent duplicate notifications",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "recipient",
                    models.ForeignKey(
                        help_text="User receiving this notification",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "notifications_notification",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["recipient", "is_read", "-created_at"],
                        name="notif_recipient_unread_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(idempotency_key__isnull=False),
                        fields=("idempotency_key",),
                        name="notif_idempotency_key_unique",
                    ),
                ],
            },
        ),
    ]
