"""
Celery tasks for payment processing.

This module provides async tasks for:
- Processing Stripe webhook events
- Retrying failed webhook events
- Resetting webhook events stuck in processing
- The escrow auto-release sweep and reconciliation (re-exported from workers)

Usage:
    from payments.tasks import process_webhook_event

    # Queue a webhook for async processing
    process_webhook_event.delay(str(webhook_event.id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_WEBHOOK_RETRIES = getattr(settings, "WEBHOOK_MAX_RETRIES", 5)
STUCK_PROCESSING_THRESHOLD_MINUTES = 30


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a stored Stripe webhook event.

    Returns:
        Dict with ``status``: processed, already_processed, not_found or
        handler_failed

    Raises:
        Exception: Re-raised so Celery retries unexpected failures
    """
    # Imported here; handlers import the services, which import models
    from payments.webhooks.handlers import dispatch_webhook

    try:
        webhook_event = WebhookEvent.objects.get(id=UUID(str(webhook_event_id)))
    except (WebhookEvent.DoesNotExist, ValueError):
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    log_context = {
        "webhook_event_id": str(webhook_event.id),
        "stripe_event_id": webhook_event.stripe_event_id,
        "event_type": webhook_event.event_type,
    }

    if webhook_event.is_processed:
        logger.info("WebhookEvent already processed, skipping", extra=log_context)
        return {"status": "already_processed", "webhook_event_id": str(webhook_event.id)}

    webhook_event.mark_processing()
    webhook_event.save()

    logger.info(
        "Dispatching webhook",
        extra={**log_context, "retry_count": webhook_event.retry_count},
    )

    try:
        result = dispatch_webhook(webhook_event)
    except Exception as e:
        webhook_event.mark_failed(f"{type(e).__name__}: {e}")
        webhook_event.save()
        logger.exception("Webhook processing failed with exception", extra=log_context)
        raise

    if result.success:
        webhook_event.mark_processed()
        webhook_event.save()
        logger.info("Webhook processed successfully", extra=log_context)
        return {
            "status": "processed",
            "webhook_event_id": str(webhook_event.id),
            "stripe_event_id": webhook_event.stripe_event_id,
        }

    error_msg = result.error or "Handler returned failure"
    webhook_event.mark_failed(error_msg)
    webhook_event.save()
    logger.warning(
        "Webhook handler failed",
        extra={**log_context, "error": error_msg, "error_code": result.error_code},
    )
    return {
        "status": "handler_failed",
        "webhook_event_id": str(webhook_event.id),
        "error": error_msg,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Re-queue failed webhook events below the retry limit.

    Scheduled by celery-beat every 5 minutes.
    """
    failed_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__lt=MAX_WEBHOOK_RETRIES,
    ).order_by("created_at")[:100]

    queued_count = 0
    for webhook in failed_webhooks:
        process_webhook_event.delay(str(webhook.id))
        queued_count += 1
        logger.info(
            "Queued failed webhook for retry",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
                "retry_count": webhook.retry_count,
            },
        )

    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Reset webhook events left in PROCESSING by a crashed worker.

    They are marked FAILED so retry_failed_webhooks picks them up.
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)
    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save()
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
            },
        )

    return {"reset_count": reset_count}


# =============================================================================
# Re-exported Worker Tasks
# =============================================================================
# Defined in payments.workers; re-exported so autodiscovery finds them.

from payments.workers import (  # noqa: E402, F401
    reconcile_released_escrows,
    run_auto_release_sweep,
)
