"""
Payments app: escrowed booking payments on Stripe Connect.

This app handles:
- Checkout session creation with the commission split
- Confirmation of paid sessions (webhook and client redirect)
- Escrow release to the host, by guest, administrator or the auto-release sweep
- Escrow refunds and reconciliation of partially applied releases

Related apps:
    - bookings: Booking and Property the payments are for
    - notifications: Release and refund notifications

Usage:
    from payments.services import EscrowReleaseService, ReleaseActor

    result = EscrowReleaseService().release(
        booking_id, ReleaseReason.GUEST_CONFIRMED, ReleaseActor.from_user(request.user)
    )
"""
