"""
Stripe webhook endpoint.

Signature check, idempotent storage and a Celery hand-off; the event
itself is handled in payments.tasks.process_webhook_event so Stripe gets
its 2xx quickly.
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import StripeAdapter
from payments.exceptions import StripeInvalidRequestError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook_view(request: HttpRequest) -> HttpResponse:
    """
    Accept a signed Stripe event.

    Returns:
        200 when the event is stored (or was already processed),
        400 for a missing or invalid signature or a malformed event
    """
    signature = request.headers.get("Stripe-Signature", "")
    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    try:
        event_data = StripeAdapter.verify_webhook_signature(request.body, signature)
    except StripeInvalidRequestError as e:
        logger.warning("Webhook signature verification failed", extra={"error": str(e)})
        return HttpResponse("Invalid signature", status=400)

    stripe_event_id = event_data.get("id")
    event_type = event_data.get("type")
    if not stripe_event_id or not event_type:
        logger.warning("Webhook missing id or type")
        return HttpResponse("Invalid event", status=400)

    log_context = {"stripe_event_id": stripe_event_id, "event_type": event_type}

    webhook_event, created = WebhookEvent.objects.get_or_create(
        stripe_event_id=stripe_event_id,
        defaults={
            "event_type": event_type,
            "payload": event_data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    if not created and webhook_event.is_processed:
        logger.info("Webhook already processed", extra=log_context)
        return HttpResponse("Already processed", status=200)

    from payments.tasks import process_webhook_event

    try:
        process_webhook_event.delay(str(webhook_event.id))
    except Exception:
        # Stored as pending; retry_failed_webhooks or Stripe's redelivery picks it up
        logger.error("Failed to queue webhook", extra=log_context, exc_info=True)
    else:
        logger.info(
            "Webhook queued for processing",
            extra={**log_context, "webhook_event_id": str(webhook_event.id)},
        )

    return HttpResponse("Accepted", status=200)
