"""
Test configuration and fixtures for authentication tests.
"""

import pytest

from authentication.models import User
from authentication.tests.factories import UserFactory


@pytest.fixture
def user(db):
    return UserFactory(full_name="Yacine Guest")


@pytest.fixture
def superuser(db):
    return User.objects.create_superuser(email="ops@example.com", password="AdminPass123!")
