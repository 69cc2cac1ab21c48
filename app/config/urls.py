"""
URL configuration for the escrow payments backend.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin (booking "Release escrow" action)
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - Obtain JWT pair (simplejwt)
    /api/v1/auth/token/refresh/    - Refresh JWT
    /api/v1/escrow/release/        - Release escrow to host (POST)
    /api/v1/escrow/auto-release-sweep/ - Run auto-release sweep (POST, internal)
    /api/v1/escrow/refund/         - Refund escrow to guest (POST, staff)
    /api/v1/checkout/create/       - Create Checkout Session (POST)
    /api/v1/checkout/verify/       - Verify Checkout Session (POST)
    /api/v1/payments/webhooks/stripe/ - Stripe webhook endpoint (POST)
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Escrow Payments Admin"
admin.site.site_title = "Escrow Payments"
admin.site.index_title = "Bookings and payments"
