"""
DRF views for the escrow and checkout endpoints.

Related files:
    - services/: CheckoutService, PaymentConfirmationService,
      EscrowReleaseService, EscrowRefundService
    - workers/release_scheduler.py: AutoReleaseScheduler
    - serializers.py: Request/response serializers
    - urls.py: URL routing

Endpoints:
    POST /api/v1/escrow/release/ - Release an escrowed payment to the host
    POST /api/v1/escrow/auto-release-sweep/ - Run the auto-release sweep (internal)
    POST /api/v1/escrow/refund/ - Refund an escrowed payment (staff)
    POST /api/v1/checkout/create/ - Open a Checkout Session for a booking
    POST /api/v1/checkout/verify/ - Confirm a session after the client redirect

Security:
    - Guests and staff authenticate with a JWT bearer token
    - The sweep and system releases use the X-Internal-Token credential
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.authentication import JWTAuthentication

from core.services import ServiceResult
from payments.authentication import InternalServiceAuthentication, IsInternalService
from payments.exceptions import EscrowErrorCode
from payments.serializers import (
    CreateCheckoutRequestSerializer,
    CreateCheckoutResponseSerializer,
    ErrorResponseSerializer,
    RefundEscrowRequestSerializer,
    RefundEscrowResponseSerializer,
    ReleaseEscrowRequestSerializer,
    ReleaseEscrowResponseSerializer,
    SweepResponseSerializer,
    VerifyCheckoutRequestSerializer,
    VerifyCheckoutResponseSerializer,
)
from payments.services import (
    CheckoutService,
    CreateCheckoutParams,
    EscrowRefundService,
    EscrowReleaseService,
    PaymentConfirmationService,
    ReleaseActor,
)
from payments.workers import AutoReleaseScheduler

logger = logging.getLogger(__name__)


ERROR_STATUS = {
    EscrowErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    EscrowErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    EscrowErrorCode.INVALID_STATE: status.HTTP_409_CONFLICT,
    EscrowErrorCode.TOO_EARLY: status.HTTP_409_CONFLICT,
    EscrowErrorCode.INVALID_AMOUNT: status.HTTP_400_BAD_REQUEST,
    EscrowErrorCode.INVALID_RATE: status.HTTP_400_BAD_REQUEST,
    EscrowErrorCode.OWNER_ACCOUNT_NOT_FOUND: status.HTTP_400_BAD_REQUEST,
    EscrowErrorCode.TRANSFER_FAILED: status.HTTP_502_BAD_GATEWAY,
    EscrowErrorCode.REFUND_FAILED: status.HTTP_502_BAD_GATEWAY,
    EscrowErrorCode.RECONCILIATION_REQUIRED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    EscrowErrorCode.UNKNOWN: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

GENERIC_ERROR_MESSAGE = "Something went wrong, please try again"

# Codes whose internal message is replaced before it reaches the client
MASKED_ERROR_CODES = {
    EscrowErrorCode.TRANSFER_FAILED,
    EscrowErrorCode.REFUND_FAILED,
    EscrowErrorCode.RECONCILIATION_REQUIRED,
    EscrowErrorCode.UNKNOWN,
}


def error_response(result: ServiceResult) -> Response:
    """Render a failed ServiceResult with the status for its error code."""
    body = result.to_response()
    if result.error_code in MASKED_ERROR_CODES:
        body["error"] = GENERIC_ERROR_MESSAGE
    return Response(
        body,
        status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
    )


class ReleaseEscrowView(APIView):
    """
    Release an escrowed booking payment to the host.

    POST /api/v1/escrow/release/

    Request body:
        {"booking_id": "<uuid>", "reason": "guest_confirmed"}
    """

    authentication_classes = [InternalServiceAuthentication, JWTAuthentication]
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Release escrow",
        tags=["Escrow"],
        request=ReleaseEscrowRequestSerializer,
        responses={200: ReleaseEscrowResponseSerializer, 409: ErrorResponseSerializer},
    )
    def post(self, request):
        serializer = ReleaseEscrowRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = EscrowReleaseService().release(
            serializer.validated_data["booking_id"],
            serializer.validated_data["reason"],
            ReleaseActor.from_user(request.user),
        )
        if not result.success:
            return error_response(result)

        outcome = result.data
        return Response(
            {
                "success": True,
                "message": "Payment released to host",
                "transfer_reference": outcome.transfer_reference,
                "host_payout_amount": outcome.host_payout_amount,
                "reconciliation_required": outcome.reconciliation_required,
            }
        )


class AutoReleaseSweepView(APIView):
    """
    Run one auto-release sweep synchronously.

    POST /api/v1/escrow/auto-release-sweep/
    """

    authentication_classes = [InternalServiceAuthentication]
    permission_classes = [IsInternalService]

    @extend_schema(
        summary="Run auto-release sweep",
        tags=["Escrow"],
        request=None,
        responses={200: SweepResponseSerializer},
    )
    def post(self, request):
        summary = AutoReleaseScheduler().sweep()
        return Response(
            {
                "success": True,
                "processed": summary.attempted,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "skipped": summary.skipped,
                "per_booking_results": summary.results,
            }
        )


class RefundEscrowView(APIView):
    """
    Refund an escrowed payment to the guest and cancel the booking.

    POST /api/v1/escrow/refund/
    """

    authentication_classes = [JWTAuthentication]
    permission_classes = [IsAdminUser]

    @extend_schema(
        summary="Refund escrow",
        tags=["Escrow"],
        request=RefundEscrowRequestSerializer,
        responses={200: RefundEscrowResponseSerializer, 409: ErrorResponseSerializer},
    )
    def post(self, request):
        serializer = RefundEscrowRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = EscrowRefundService().refund(
            serializer.validated_data["booking_id"],
            ReleaseActor.from_user(request.user),
            reason=serializer.validated_data.get("reason") or None,
        )
        if not result.success:
            return error_response(result)

        return Response({"success": True, "refund_reference": result.data.refund_reference})


class CreateCheckoutView(APIView):
    """
    Open a Stripe Checkout Session for a booking.

    POST /api/v1/checkout/create/

    Request body:
        {
            "booking_id": "<uuid>",
            "property_id": "<uuid>",
            "gross_amount": 10000,
            "commission_rate": "0.15",   // optional
            "kind": "booking_fee"        // optional
        }
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Create checkout session",
        tags=["Checkout"],
        request=CreateCheckoutRequestSerializer,
        responses={201: CreateCheckoutResponseSerializer, 400: ErrorResponseSerializer},
    )
    def post(self, request):
        serializer = CreateCheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = CheckoutService().create_checkout(
            CreateCheckoutParams(
                booking_id=data["booking_id"],
                property_id=data["property_id"],
                gross_amount=data["gross_amount"],
                payer=request.user,
                commission_rate=data.get("commission_rate"),
                kind=data["kind"],
            )
        )
        if not result.success:
            return error_response(result)

        return Response(
            {
                "success": True,
                "checkout_url": result.data.checkout_url,
                "session_id": result.data.session_id,
                "payment_id": result.data.payment_id,
            },
            status=status.HTTP_201_CREATED,
        )


class VerifyCheckoutView(APIView):
    """
    Confirm a Checkout Session the guest was redirected back from.

    POST /api/v1/checkout/verify/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Verify checkout session",
        tags=["Checkout"],
        request=VerifyCheckoutRequestSerializer,
        responses={200: VerifyCheckoutResponseSerializer, 404: ErrorResponseSerializer},
    )
    def post(self, request):
        serializer = VerifyCheckoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PaymentConfirmationService().verify_session(
            serializer.validated_data["session_id"],
            request.user,
        )
        if not result.success:
            return error_response(result)

        payment = result.data
        return Response(
            {
                "success": True,
                "payment_id": str(payment.id),
                "status": payment.status,
                "escrow_status": payment.escrow_status,
            }
        )
