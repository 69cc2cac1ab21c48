"""
Notification model.

Notifications are immutable records once created; only ``is_read`` changes.
"""

from django.conf import settings
from django.db import models

from core.models import BaseModel


class Notification(BaseModel):
    """
    In-app notification for one user.

    Fields:
        recipient: User receiving the notification
        notification_type: Machine-readable type (e.g. "payment_released")
        title: Short heading
        message: Full text
        related_id: Id of the entity the notification is about (a booking)
        is_read: Whether the recipient has read it
        idempotency_key: Prevents the same event notifying twice
    """

    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
        db_index=True,
        help_text="User receiving this notification",
    )

    notification_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Machine-readable notification type",
    )

    title = models.CharField(
        max_length=255,
        help_text="Notification title",
    )

    message = models.TextField(
        blank=True,
        default="",
        help_text="Notification body",
    )

    related_id = models.CharField(
        max_length=36,
        null=True,
        blank=True,
        help_text="ID of the related entity (supports UUID and integer PKs)",
    )

    is_read = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether recipient has read this notification",
    )

    idempotency_key = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Idempotency key to prevent duplicate notifications",
    )

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["recipient", "is_read", "-created_at"],
                name="notif_recipient_unread_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["idempotency_key"],
                name="notif_idempotency_key_unique",
                condition=models.Q(idempotency_key__isnull=False),
            ),
        ]

    def __str__(self) -> str:
        read_status = "read" if self.is_read else "unread"
        return f"Notification({self.notification_type}) -> User {self.recipient_id} [{read_status}]"
