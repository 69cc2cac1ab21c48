"""
Root pytest configuration for the Django project.

App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django
import pytest

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Fast password hasher for tests
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py -> e2e (full checkout-to-release journeys)
    - test_views.py, test_services.py, test_tasks.py, etc. -> integration
    - test_models.py, test_commission.py, test_adapters.py, etc. -> unit
    - Unmatched files -> integration

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_handlers.py",
        "test_store.py",
        "test_escrow_release.py",
        "test_escrow_refund.py",
        "test_checkout.py",
        "test_confirmation.py",
        "test_reconciliation.py",
        "test_release_scheduler.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_managers.py",
        "test_commission.py",
        "test_stripe_adapter.py",
        "test_authentication.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
