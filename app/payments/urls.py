"""
URL configuration for the payments app.

Routes (prefixed with /api/v1/ in config/urls.py):
    - POST escrow/release/
    - POST escrow/auto-release-sweep/
    - POST escrow/refund/
    - POST checkout/create/
    - POST checkout/verify/
    - POST payments/webhooks/stripe/
"""

from django.urls import path

from payments import views
from payments.webhooks.views import stripe_webhook_view

app_name = "payments"

urlpatterns = [
    path("escrow/release/", views.ReleaseEscrowView.as_view(), name="escrow-release"),
    path(
        "escrow/auto-release-sweep/",
        views.AutoReleaseSweepView.as_view(),
        name="escrow-auto-release-sweep",
    ),
    path("escrow/refund/", views.RefundEscrowView.as_view(), name="escrow-refund"),
    path("checkout/create/", views.CreateCheckoutView.as_view(), name="checkout-create"),
    path("checkout/verify/", views.VerifyCheckoutView.as_view(), name="checkout-verify"),
    # Webhook endpoints
    path("payments/webhooks/stripe/", stripe_webhook_view, name="stripe-webhook"),
]
