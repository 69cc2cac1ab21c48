"""
Bookings application.

Holds the marketplace side of a payment: the Property being paid for and
the Booking whose lifecycle the escrow engine advances.

Usage:
    from bookings.models import Booking, Property
    from bookings.states import BookingStatus, PropertyCategory
"""
