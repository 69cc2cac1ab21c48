"""
Payment services.

This module provides:
- CheckoutService: Opens Checkout Sessions for booking payments
- PaymentConfirmationService: Applies paid/failed sessions to local state
- EscrowReleaseService: Transfers escrowed funds to the host
- EscrowRefundService: Returns escrowed funds to the guest
- EscrowReconciliationService: Completes bookings left behind by a release

Usage:
    from payments.services import EscrowReleaseService, ReleaseActor
    from payments.state_machines import ReleaseReason

    result = EscrowReleaseService().release(
        booking_id,
        ReleaseReason.GUEST_CONFIRMED,
        ReleaseActor.from_user(request.user),
    )
"""

from payments.services.checkout import (
    CheckoutResult,
    CheckoutService,
    CreateCheckoutParams,
)
from payments.services.confirmation import PaymentConfirmationService
from payments.services.escrow_refund import EscrowRefundService, RefundOutcome
from payments.services.escrow_release import (
    EscrowReleaseService,
    ReleaseActor,
    ReleaseOutcome,
)
from payments.services.reconciliation import (
    EscrowReconciliationService,
    ReconciliationSummary,
)

__all__ = [
    "CheckoutResult",
    "CheckoutService",
    "CreateCheckoutParams",
    "EscrowReconciliationService",
    "EscrowRefundService",
    "EscrowReleaseService",
    "PaymentConfirmationService",
    "ReconciliationSummary",
    "RefundOutcome",
    "ReleaseActor",
    "ReleaseOutcome",
]
