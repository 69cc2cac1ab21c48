"""
WebhookEvent model: every signed processor event we accepted.

The unique ``stripe_event_id`` makes redelivered events detectable, and the
stored payload lets the retry task replay a failed event without asking
the processor again.

Usage:
    event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=payload["id"],
        defaults={"event_type": payload["type"], "payload": payload},
    )
    if not created and event.is_processed:
        return HttpResponse(status=200)
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Processing record for one Stripe webhook event.

    Processing Flow:
        PENDING -> PROCESSING -> PROCESSED
        PENDING -> PROCESSING -> FAILED -> (retry task) -> PROCESSING
    """

    stripe_event_id = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Stripe Event ID (evt_xxx)",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Stripe event type (e.g., 'checkout.session.completed')",
    )

    payload = models.JSONField(
        help_text="Full webhook payload",
    )

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
            models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.stripe_event_id}, {self.event_type})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def can_retry(self) -> bool:
        """Failed events may be retried up to WEBHOOK_MAX_RETRIES attempts."""
        max_retries = getattr(settings, "WEBHOOK_MAX_RETRIES", 5)
        return self.status == WebhookEventStatus.FAILED and self.retry_count < max_retries

    # Callers save after each mark_* call.

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    def get_object(self) -> dict:
        """The ``data.object`` of the payload, or an empty dict."""
        data = self.payload.get("data") if isinstance(self.payload, dict) else None
        obj = data.get("object") if isinstance(data, dict) else None
        return obj if isinstance(obj, dict) else {}
