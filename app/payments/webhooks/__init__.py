"""
Stripe webhook intake and handlers.

Usage:
    from payments.webhooks.views import stripe_webhook_view

    urlpatterns = [
        path("payments/webhooks/stripe/", stripe_webhook_view, name="stripe-webhook"),
    ]
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.views import stripe_webhook_view

__all__ = [
    "dispatch_webhook",
    "register_handler",
    "stripe_webhook_view",
]
