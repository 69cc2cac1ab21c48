"""
State enums for booking models.

Booking States:
    pending → confirmed                 (fee-split checkout paid)
    pending → payment_escrowed          (escrow checkout paid)
    payment_escrowed → completed        (escrow released to host)
    confirmed → completed
    pending/confirmed/payment_escrowed → cancelled
"""

from django.db import models


class BookingStatus(models.TextChoices):
    """
    Lifecycle of a Booking.

    Terminal states: COMPLETED, CANCELLED
    """

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PAYMENT_ESCROWED = "payment_escrowed", "Payment Escrowed"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class PropertyCategory(models.TextChoices):
    """
    Listing category.

    Only short stays are subject to the check-out timing gate on release.
    """

    SHORT_STAY = "short-stay", "Short Stay"
    RENT = "rent", "Rent"
    SALE = "sale", "Sale"


__all__ = ["BookingStatus", "PropertyCategory"]
