"""
Tests for Stripe adapter.

Tests cover:
- CreateCheckoutSessionParams validation
- Idempotency key generation
- Retryable error classification
- Checkout Session, Transfer and Refund calls
- Error translation for each exception type
- Webhook signature verification
"""

import uuid

import pytest
import stripe
from django.test import override_settings

from payments.adapters import (
    CheckoutSessionResult,
    CreateCheckoutSessionParams,
    IdempotencyKeyGenerator,
    RefundResult,
    StripeAdapter,
    TransferResult,
    is_retryable_stripe_error,
)
from payments.exceptions import (
    StripeAPIUnavailableError,
    StripeCardDeclinedError,
    StripeInvalidAccountError,
    StripeInvalidRequestError,
    StripeRateLimitError,
    StripeTimeoutError,
)


def _params(**overrides) -> CreateCheckoutSessionParams:
    values = {
        "amount_cents": 10000,
        "currency": "eur",
        "product_name": "Sea view flat",
        "success_url": "https://holibayt.test/success",
        "cancel_url": "https://holibayt.test/cancel",
        "idempotency_key": "checkout_session:test:1:abcd1234",
    }
    values.update(overrides)
    return CreateCheckoutSessionParams(**values)


# =============================================================================
# CreateCheckoutSessionParams Tests
# =============================================================================


class TestCreateCheckoutSessionParams:
    def test_valid_params(self):
        params = _params(metadata={"booking_id": "b1"})

        assert params.amount_cents == 10000
        assert params.metadata == {"booking_id": "b1"}
        assert params.destination_account is None

    @pytest.mark.parametrize("amount", [0, -100])
    def test_amount_must_be_positive(self, amount):
        with pytest.raises(ValueError, match="amount_cents must be positive"):
            _params(amount_cents=amount)

    def test_idempotency_key_required(self):
        with pytest.raises(ValueError, match="idempotency_key is required"):
            _params(idempotency_key="")

    def test_currency_required(self):
        with pytest.raises(ValueError, match="currency is required"):
            _params(currency="")

    def test_fee_requires_destination(self):
        with pytest.raises(ValueError, match="requires destination_account"):
            _params(application_fee_amount=1500)


# =============================================================================
# IdempotencyKeyGenerator Tests
# =============================================================================


class TestIdempotencyKeyGenerator:
    def test_generate_key_format(self):
        entity_id = uuid.UUID("550e8400-e29b-41d4-a716-446655440000")

        key = IdempotencyKeyGenerator.generate("escrow_release", entity_id)

        operation, entity, attempt, short_hash = key.split(":")
        assert operation == "escrow_release"
        assert entity == str(entity_id)
        assert attempt == "1"
        assert len(short_hash) == 8

    def test_same_inputs_produce_same_key(self):
        entity_id = uuid.uuid4()

        assert IdempotencyKeyGenerator.generate(
            "escrow_release", entity_id
        ) == IdempotencyKeyGenerator.generate("escrow_release", str(entity_id))

    def test_different_operations_produce_different_keys(self):
        entity_id = uuid.uuid4()

        assert IdempotencyKeyGenerator.generate(
            "escrow_release", entity_id
        ) != IdempotencyKeyGenerator.generate("escrow_refund", entity_id)

    def test_different_attempts_produce_different_keys(self):
        entity_id = uuid.uuid4()

        assert IdempotencyKeyGenerator.generate(
            "checkout_session", entity_id, attempt=1
        ) != IdempotencyKeyGenerator.generate("checkout_session", entity_id, attempt=2)


# =============================================================================
# Helper Function Tests
# =============================================================================


class TestIsRetryableStripeError:
    @pytest.mark.parametrize(
        "error_class",
        [StripeRateLimitError, StripeAPIUnavailableError, StripeTimeoutError],
    )
    def test_retryable_errors(self, error_class):
        assert is_retryable_stripe_error(error_class("transient")) is True

    @pytest.mark.parametrize(
        "error_class",
        [StripeCardDeclinedError, StripeInvalidRequestError, StripeInvalidAccountError],
    )
    def test_non_retryable_errors(self, error_class):
        assert is_retryable_stripe_error(error_class("permanent")) is False

    def test_non_stripe_errors(self):
        assert is_retryable_stripe_error(ValueError("nope")) is False


# =============================================================================
# Checkout Session Tests
# =============================================================================


class TestStripeAdapterCheckoutSession:
    def test_escrow_session_keeps_funds_on_platform(self, mock_stripe_checkout_session):
        result = StripeAdapter.create_checkout_session(
            _params(metadata={"booking_id": "b1"}, transfer_group="booking_b1")
        )

        assert isinstance(result, CheckoutSessionResult)
        assert result.id == "cs_test_adapter"
        assert result.url == "https://checkout.stripe.com/c/pay/cs_test_adapter"

        kwargs = mock_stripe_checkout_session.create.call_args.kwargs
        assert kwargs["idempotency_key"] == "checkout_session:test:1:abcd1234"
        assert kwargs["mode"] == "payment"
        assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 10000
        assert kwargs["metadata"] == {"booking_id": "b1"}
        assert kwargs["payment_intent_data"] == {
            "metadata": {"booking_id": "b1"},
            "transfer_group": "booking_b1",
        }
        assert "customer_email" not in kwargs

    def test_destination_charge_session(self, mock_stripe_checkout_session):
        StripeAdapter.create_checkout_session(
            _params(
                destination_account="acct_host",
                application_fee_amount=1500,
                customer_email="guest@example.com",
            )
        )

        kwargs = mock_stripe_checkout_session.create.call_args.kwargs
        assert kwargs["payment_intent_data"]["application_fee_amount"] == 1500
        assert kwargs["payment_intent_data"]["transfer_data"] == {"destination": "acct_host"}
        assert kwargs["customer_email"] == "guest@example.com"

    def test_retrieve_session(self, mock_stripe_checkout_session):
        result = StripeAdapter.retrieve_checkout_session("cs_test_adapter")

        mock_stripe_checkout_session.retrieve.assert_called_once_with("cs_test_adapter")
        assert result.payment_status == "paid"
        assert result.payment_intent_id == "pi_test_paid"

    def test_expire_session(self, mock_stripe_checkout_session, mock_checkout_session):
        mock_stripe_checkout_session.expire.return_value = mock_checkout_session(status="expired")

        result = StripeAdapter.expire_checkout_session("cs_test_adapter")

        mock_stripe_checkout_session.expire.assert_called_once_with("cs_test_adapter")
        assert result.status == "expired"

    def test_expire_completed_session_is_invalid_request(
        self, mock_stripe_checkout_session, invalid_request_error
    ):
        mock_stripe_checkout_session.expire.side_effect = invalid_request_error(
            message="Only Checkout Sessions with a status of open can be expired",
            code="checkout_session_not_open",
        )

        with pytest.raises(StripeInvalidRequestError):
            StripeAdapter.expire_checkout_session("cs_test_adapter")

    def test_from_stripe_expands_payment_intent(self):
        result = CheckoutSessionResult.from_stripe(
            {"id": "cs_1", "payment_intent": {"id": "pi_expanded"}, "metadata": None}
        )

        assert result.payment_intent_id == "pi_expanded"
        assert result.metadata == {}


# =============================================================================
# Transfer and Refund Tests
# =============================================================================


class TestStripeAdapterCreateTransfer:
    def test_create_transfer_success(self, mock_stripe_transfer):
        result = StripeAdapter.create_transfer(
            amount_cents=8500,
            destination_account="acct_host123",
            idempotency_key="escrow_release:b1:1:abcd1234",
            metadata={"booking_id": "b1"},
            transfer_group="booking_b1",
        )

        assert isinstance(result, TransferResult)
        assert result.id == "tr_test123456"
        assert result.amount_cents == 8500
        assert result.destination_account == "acct_host123"
        mock_stripe_transfer.create.assert_called_once_with(
            idempotency_key="escrow_release:b1:1:abcd1234",
            amount=8500,
            currency="eur",
            destination="acct_host123",
            metadata={"booking_id": "b1"},
            transfer_group="booking_b1",
        )


class TestStripeAdapterCreateRefund:
    def test_full_refund(self, mock_stripe_refund):
        result = StripeAdapter.create_refund(
            payment_intent_id="pi_test123456",
            idempotency_key="escrow_refund:b1:1:abcd1234",
        )

        assert isinstance(result, RefundResult)
        assert result.id == "re_test123456"
        kwargs = mock_stripe_refund.create.call_args.kwargs
        assert kwargs["payment_intent"] == "pi_test123456"
        assert "amount" not in kwargs

    def test_partial_refund_with_reason(self, mock_stripe_refund):
        StripeAdapter.create_refund(
            payment_intent_id="pi_test123456",
            idempotency_key="escrow_refund:b1:1:abcd1234",
            amount_cents=2500,
            reason="requested_by_customer",
        )

        kwargs = mock_stripe_refund.create.call_args.kwargs
        assert kwargs["amount"] == 2500
        assert kwargs["reason"] == "requested_by_customer"


# =============================================================================
# Error Translation Tests
# =============================================================================


def _transfer():
    return StripeAdapter.create_transfer(
        amount_cents=8500,
        destination_account="acct_host123",
        idempotency_key="escrow_release:b1:1:abcd1234",
    )


class TestStripeAdapterErrorTranslation:
    def test_card_declined_error(self, mock_stripe_checkout_session, card_error):
        mock_stripe_checkout_session.create.side_effect = card_error

        with pytest.raises(StripeCardDeclinedError) as exc_info:
            StripeAdapter.create_checkout_session(_params())

        assert exc_info.value.decline_code == "generic_decline"
        assert exc_info.value.is_retryable is False

    def test_invalid_request_error(self, mock_stripe_transfer, invalid_request_error):
        mock_stripe_transfer.create.side_effect = invalid_request_error()

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            _transfer()

        assert exc_info.value.stripe_code == "resource_missing"

    def test_invalid_account_error(self, mock_stripe_transfer, invalid_request_error):
        mock_stripe_transfer.create.side_effect = invalid_request_error(
            message="No such destination account: acct_host123",
            code="account_invalid",
        )

        with pytest.raises(StripeInvalidAccountError):
            _transfer()

    def test_rate_limit_error(self, mock_stripe_transfer):
        mock_stripe_transfer.create.side_effect = stripe.RateLimitError(
            message="Too many requests"
        )

        with pytest.raises(StripeRateLimitError) as exc_info:
            _transfer()

        assert exc_info.value.is_retryable is True

    def test_connection_timeout(self, mock_stripe_transfer):
        mock_stripe_transfer.create.side_effect = stripe.APIConnectionError(
            message="Request timed out"
        )

        with pytest.raises(StripeTimeoutError):
            _transfer()

    def test_connection_error(self, mock_stripe_transfer):
        mock_stripe_transfer.create.side_effect = stripe.APIConnectionError(
            message="Could not connect to Stripe."
        )

        with pytest.raises(StripeAPIUnavailableError):
            _transfer()

    def test_api_error(self, mock_stripe_refund):
        mock_stripe_refund.create.side_effect = stripe.APIError(message="Stripe is down")

        with pytest.raises(StripeAPIUnavailableError):
            StripeAdapter.create_refund(payment_intent_id="pi_x", idempotency_key="key")

    def test_authentication_error(self, mock_stripe_transfer):
        mock_stripe_transfer.create.side_effect = stripe.AuthenticationError(
            message="Invalid API Key provided."
        )

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            _transfer()

        assert exc_info.value.stripe_code == "authentication_error"

    def test_unknown_error(self, mock_stripe_transfer):
        mock_stripe_transfer.create.side_effect = KeyError("surprise")

        with pytest.raises(StripeAPIUnavailableError) as exc_info:
            _transfer()

        assert exc_info.value.stripe_code == "unknown_error"


# =============================================================================
# Webhook Verification Tests
# =============================================================================


class TestStripeAdapterVerifyWebhookSignature:
    def test_valid_signature(self, mock_stripe_webhook):
        result = StripeAdapter.verify_webhook_signature(
            payload=b'{"id": "evt_test"}',
            signature="test_signature",
        )

        assert result["id"] == "evt_test123"
        assert result["type"] == "checkout.session.completed"

    def test_invalid_signature(self, mock_stripe_webhook, signature_verification_error):
        mock_stripe_webhook.construct_event.side_effect = signature_verification_error

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeAdapter.verify_webhook_signature(payload=b"tampered", signature="bad")

        assert exc_info.value.stripe_code == "signature_verification_failed"

    def test_invalid_payload(self, mock_stripe_webhook):
        mock_stripe_webhook.construct_event.side_effect = ValueError("not json")

        with pytest.raises(StripeInvalidRequestError) as exc_info:
            StripeAdapter.verify_webhook_signature(payload=b"{", signature="sig")

        assert exc_info.value.stripe_code == "invalid_payload"


# =============================================================================
# Configuration Tests
# =============================================================================


class TestStripeAdapterConfiguration:
    @override_settings(STRIPE_SECRET_KEY="sk_test_custom")
    def test_uses_settings_api_key(self, mock_stripe_transfer):
        _transfer()

        assert stripe.api_key == "sk_test_custom"

    @override_settings(STRIPE_API_TIMEOUT_SECONDS=30)
    def test_uses_settings_timeout(self, mock_stripe_transfer, mock_stripe_http_client):
        _transfer()

        mock_stripe_http_client.assert_called_with(timeout=30)
