"""
Factory Boy factories for booking models.

Usage:
    from bookings.tests.factories import BookingFactory, PropertyFactory

    listing = PropertyFactory(commission_rate=Decimal("0.10"))
    booking = BookingFactory(property=listing, guest=guest)
"""

import datetime

import factory
from django.utils import timezone

from authentication.tests.factories import UserFactory
from bookings.models import Booking, Property
from bookings.states import PropertyCategory


class PropertyFactory(factory.django.DjangoModelFactory):
    """Short-stay listing whose host can receive payouts."""

    class Meta:
        model = Property
        skip_postgeneration_save = True

    host = factory.SubFactory(UserFactory)
    title = factory.Sequence(lambda n: f"Sea view flat {n}")
    category = PropertyCategory.SHORT_STAY
    commission_rate = None
    host_payout_account_id = factory.Sequence(lambda n: f"acct_host{n:06d}")


class BookingFactory(factory.django.DjangoModelFactory):
    """
    Pending booking for a stay that ended three days ago.

    Examples:
        upcoming = BookingFactory(
            check_in_date=date.today() + timedelta(days=5),
            check_out_date=date.today() + timedelta(days=8),
        )
    """

    class Meta:
        model = Booking
        skip_postgeneration_save = True

    guest = factory.SubFactory(UserFactory)
    property = factory.SubFactory(PropertyFactory)
    check_in_date = factory.LazyFunction(
        lambda: timezone.now().date() - datetime.timedelta(days=6)
    )
    check_out_date = factory.LazyAttribute(
        lambda o: o.check_in_date + datetime.timedelta(days=3)
    )
