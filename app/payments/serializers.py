"""
DRF serializers for the escrow and checkout endpoints.

Request serializers validate shape only; business rules (amount limits,
commission bounds, authorization) are enforced by the services so every
caller gets the same error codes.
"""

from __future__ import annotations

from rest_framework import serializers

from payments.state_machines import PaymentKind, ReleaseReason


class ReleaseEscrowRequestSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    reason = serializers.ChoiceField(choices=ReleaseReason.choices)


class ReleaseEscrowResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    message = serializers.CharField()
    transfer_reference = serializers.CharField(allow_null=True)
    host_payout_amount = serializers.IntegerField()
    reconciliation_required = serializers.BooleanField()


class SweepResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    processed = serializers.IntegerField()
    succeeded = serializers.IntegerField()
    failed = serializers.IntegerField()
    skipped = serializers.IntegerField()
    per_booking_results = serializers.ListField(child=serializers.DictField())


class RefundEscrowRequestSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500)


class RefundEscrowResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    refund_reference = serializers.CharField()


class CreateCheckoutRequestSerializer(serializers.Serializer):
    """
    Checkout request body.

    ``gross_amount`` is in minor units (cents). ``commission_rate`` is a
    fraction; bounds are checked by CheckoutService (INVALID_RATE).
    """

    booking_id = serializers.UUIDField()
    property_id = serializers.UUIDField()
    gross_amount = serializers.IntegerField()
    commission_rate = serializers.DecimalField(
        max_digits=6, decimal_places=4, required=False, allow_null=True
    )
    kind = serializers.ChoiceField(choices=PaymentKind.choices, default=PaymentKind.BOOKING_FEE)


class CreateCheckoutResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    checkout_url = serializers.URLField(allow_null=True)
    session_id = serializers.CharField()
    payment_id = serializers.UUIDField()


class VerifyCheckoutRequestSerializer(serializers.Serializer):
    session_id = serializers.CharField(max_length=255)


class VerifyCheckoutResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    payment_id = serializers.UUIDField()
    status = serializers.CharField()
    escrow_status = serializers.CharField()


class ErrorResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField(default=False)
    error = serializers.CharField()
    error_code = serializers.CharField()
    details = serializers.DictField(required=False)
