"""
Notification service layer.

Payment services call NotificationService after state changes they have
already committed. Delivery is best-effort for them, so callers wrap the
call and log failures instead of propagating them.

Usage:
    from notifications.services import NotificationService

    result = NotificationService.create_notification(
        recipient=host,
        notification_type="payment_received",
        title="Payment Received",
        message='Payment for booking "Sea view flat" has been released to your account.',
        related_id=booking.id,
        idempotency_key=f"payment_received:{booking.id}",
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction

from core.services import BaseService, ServiceResult
from notifications.models import Notification

if TYPE_CHECKING:
    from authentication.models import User

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    """
    Service for notification operations.

    Methods:
        create_notification: Create a notification (idempotent with a key)
    """

    @classmethod
    def create_notification(
        cls,
        recipient: User,
        notification_type: str,
        title: str,
        message: str = "",
        related_id=None,
        idempotency_key: str | None = None,
    ) -> ServiceResult[Notification]:
        """
        Create a notification for ``recipient``.

        With an idempotency key, a second call for the same key returns the
        existing notification instead of creating another.

        Error codes:
            INVALID_RECIPIENT: recipient is missing
        """
        if recipient is None:
            return ServiceResult.failure("Recipient is required", error_code="INVALID_RECIPIENT")

        if idempotency_key:
            existing = Notification.objects.filter(idempotency_key=idempotency_key).first()
            if existing:
                cls.get_logger().debug(
                    "Notification already exists for idempotency key",
                    extra={"idempotency_key": idempotency_key},
                )
                return ServiceResult.success(existing)

        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    recipient=recipient,
                    notification_type=notification_type,
                    title=title,
                    message=message,
                    related_id=str(related_id) if related_id is not None else None,
                    idempotency_key=idempotency_key,
                )
        except IntegrityError:
            # Concurrent create with the same key
            existing = Notification.objects.filter(idempotency_key=idempotency_key).first()
            if existing is None:
                raise
            return ServiceResult.success(existing)

        cls.get_logger().info(
            "Notification created",
            extra={
                "notification_id": notification.id,
                "recipient_id": recipient.pk,
                "notification_type": notification_type,
                "related_id": notification.related_id,
            },
        )
        return ServiceResult.success(notification)

