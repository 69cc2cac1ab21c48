"""
Pytest fixtures for Stripe adapter tests.

Sections:
    - Mock Stripe Objects
    - Mock Stripe Error Fixtures
    - Mock Stripe Client Fixtures
"""

from dataclasses import dataclass
from typing import Any
from unittest.mock import patch

import pytest
import stripe


# =============================================================================
# Mock Stripe Objects
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with attribute access and to_dict support."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def mock_checkout_session():
    """Create a mock Checkout Session response."""

    def _create(
        id: str = "cs_test_adapter",
        status: str = "open",
        payment_status: str = "unpaid",
        payment_intent: str | dict | None = None,
        amount_total: int = 10000,
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "checkout.session",
                "url": f"https://checkout.stripe.com/c/pay/{id}",
                "status": status,
                "payment_status": payment_status,
                "payment_intent": payment_intent,
                "amount_total": amount_total,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_transfer():
    """Create a mock Transfer response."""

    def _create(
        id: str = "tr_test123456",
        amount: int = 8500,
        currency: str = "eur",
        destination: str = "acct_host123",
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "transfer",
                "amount": amount,
                "currency": currency,
                "destination": destination,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_refund():
    """Create a mock Refund response."""

    def _create(
        id: str = "re_test123456",
        amount: int = 10000,
        currency: str = "eur",
        status: str = "succeeded",
        payment_intent: str = "pi_test123456",
        metadata: dict | None = None,
    ) -> MockStripeObject:
        return MockStripeObject(
            {
                "id": id,
                "object": "refund",
                "amount": amount,
                "currency": currency,
                "status": status,
                "payment_intent": payment_intent,
                "metadata": metadata or {},
            }
        )

    return _create


# =============================================================================
# Mock Stripe Error Fixtures
# =============================================================================


@pytest.fixture
def card_error():
    error = stripe.CardError(
        message="Your card was declined.",
        param=None,
        code="card_declined",
    )
    error.decline_code = "generic_decline"
    return error


@pytest.fixture
def invalid_request_error():
    def _create(
        message: str = "No such transfer",
        param: str | None = None,
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(message=message, param=param, code=code)

    return _create


@pytest.fixture
def signature_verification_error():
    return stripe.SignatureVerificationError(
        message="Unable to verify webhook signature.",
        sig_header="bad_signature",
    )


# =============================================================================
# Mock Stripe Client Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_http_client():
    """Mock stripe.RequestsClient so no HTTP client is built."""
    with patch("stripe.RequestsClient") as mock:
        yield mock


@pytest.fixture
def mock_stripe_checkout_session(mock_stripe_http_client, mock_checkout_session):
    with patch("stripe.checkout.Session") as mock:
        mock.create.return_value = mock_checkout_session()
        mock.retrieve.return_value = mock_checkout_session(
            status="complete",
            payment_status="paid",
            payment_intent="pi_test_paid",
        )
        yield mock


@pytest.fixture
def mock_stripe_transfer(mock_stripe_http_client, mock_transfer):
    with patch("stripe.Transfer") as mock:
        mock.create.return_value = mock_transfer()
        yield mock


@pytest.fixture
def mock_stripe_refund(mock_stripe_http_client, mock_refund):
    with patch("stripe.Refund") as mock:
        mock.create.return_value = mock_refund()
        yield mock


@pytest.fixture
def mock_stripe_webhook():
    with patch("stripe.Webhook") as mock:
        mock.construct_event.return_value = MockStripeObject(
            {
                "id": "evt_test123",
                "type": "checkout.session.completed",
                "data": {"object": {"id": "cs_test123", "object": "checkout.session"}},
            }
        )
        yield mock
