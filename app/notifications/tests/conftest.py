"""
Fixtures for notification tests.
"""

import pytest

from authentication.tests.factories import UserFactory


@pytest.fixture
def user(db):
    """Notification recipient."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    """A second user who must not see the first user's notifications."""
    return UserFactory()
