"""
State enums for payment models.

These are Django TextChoices used both for database storage and as
django-fsm states.

State Machines Overview:

PaymentRecord.status:
    pending → completed
    pending → failed

PaymentRecord.escrow_status (forward only):
    none → escrowed → released
    none → escrowed → refunded
    released and refunded are terminal

CommissionTransaction.status:
    pending → completed
    pending → failed / cancelled
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    Charge status of a PaymentRecord.

    Terminal states: COMPLETED, FAILED
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class EscrowStatus(models.TextChoices):
    """
    Escrow status of a PaymentRecord.

    Terminal states: RELEASED, REFUNDED

    State Flow:
        NONE → ESCROWED → RELEASED
        NONE → ESCROWED → REFUNDED
    """

    NONE = "none", "None"
    ESCROWED = "escrowed", "Escrowed"
    RELEASED = "released", "Released"
    REFUNDED = "refunded", "Refunded"


class PaymentKind(models.TextChoices):
    """What a PaymentRecord pays for."""

    BOOKING_FEE = "booking_fee", "Booking Fee"
    SECURITY_DEPOSIT = "security_deposit", "Security Deposit"
    RENT = "rent", "Rent"
    SALE = "sale", "Sale"


class SettlementFlow(models.TextChoices):
    """
    How funds reach the host.

    - ESCROW_TRANSFER: platform keeps the charge, transfers the payout at release
    - DESTINATION_CHARGE: processor splits fee and payout at charge time
    """

    ESCROW_TRANSFER = "escrow_transfer", "Escrow Transfer"
    DESTINATION_CHARGE = "destination_charge", "Destination Charge"


class CommissionStatus(models.TextChoices):
    """
    Status of a CommissionTransaction.

    Terminal states: COMPLETED, CANCELLED
    FAILED may still be completed by reconciliation.
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


class ReleaseReason(models.TextChoices):
    """
    Why an escrow was released.

    AUTO_RELEASE is reserved for the system caller.
    """

    GUEST_CONFIRMED = "guest_confirmed", "Guest Confirmed"
    AUTO_RELEASE = "auto_release_24h_post_checkout", "Auto Release 24h Post Checkout"
    ADMIN_RELEASE = "admin_release", "Admin Release"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "CommissionStatus",
    "EscrowStatus",
    "PaymentKind",
    "PaymentStatus",
    "ReleaseReason",
    "SettlementFlow",
    "WebhookEventStatus",
]
