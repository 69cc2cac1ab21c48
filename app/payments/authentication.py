"""
Internal service credential for system callers.

The auto-release trigger and other machine-to-machine calls authenticate
with an ``X-Internal-Token`` header compared in constant time against
ESCROW_INTERNAL_API_TOKEN. An empty setting disables the credential.
"""

from __future__ import annotations

import hmac

from django.conf import settings
from rest_framework import exceptions, permissions
from rest_framework.authentication import BaseAuthentication

INTERNAL_TOKEN_HEADER = "X-Internal-Token"


class InternalServicePrincipal:
    """request.user for calls made with the internal credential."""

    pk = None
    id = None
    is_authenticated = True
    is_anonymous = False
    is_active = True
    is_staff = False
    is_internal_service = True

    def __str__(self) -> str:
        return "internal-service"


class InternalServiceAuthentication(BaseAuthentication):
    """
    Authenticate requests carrying the internal service token.

    Requests without the header fall through to the next authenticator.
    """

    def authenticate(self, request):
        token = request.headers.get(INTERNAL_TOKEN_HEADER)
        if not token:
            return None

        expected = getattr(settings, "ESCROW_INTERNAL_API_TOKEN", "")
        if not expected or not hmac.compare_digest(token.encode(), expected.encode()):
            raise exceptions.AuthenticationFailed("Invalid internal token.")

        return (InternalServicePrincipal(), None)

    def authenticate_header(self, request) -> str:
        return INTERNAL_TOKEN_HEADER


class IsInternalService(permissions.BasePermission):
    """Allows access only to the internal service principal."""

    message = "Internal service credential required."

    def has_permission(self, request, view) -> bool:
        return bool(getattr(request.user, "is_internal_service", False))
