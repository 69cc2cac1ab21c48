"""
Checkout service: start a guest payment for a booking.

CheckoutService.create_checkout() validates the request, records a pending
PaymentRecord with its CommissionTransaction and opens a Stripe Checkout
Session. Nothing is sent to Stripe unless every check passes.

Settlement flows:
    ESCROW_TRANSFER     platform keeps the charge; EscrowReleaseService
                        transfers the host payout later
    DESTINATION_CHARGE  Stripe splits the application fee and the host payout
                        at charge time (kinds in PAYMENT_DESTINATION_CHARGE_KINDS)

Usage:
    from payments.services import CheckoutService, CreateCheckoutParams

    result = CheckoutService().create_checkout(
        CreateCheckoutParams(
            booking_id=booking.id,
            property_id=booking.property_id,
            gross_amount=10_000,
            payer=request.user,
        )
    )
    if result.success:
        redirect(result.data.checkout_url)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.utils import timezone

from bookings.states import BookingStatus
from core.services import BaseService, ServiceResult
from payments.adapters import (
    CreateCheckoutSessionParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
)
from payments.commission import is_valid_rate, quantize_rate, resolve_rate, split
from payments.exceptions import EscrowErrorCode, StripeError, StripeInvalidRequestError
from payments.models import CommissionTransaction, PaymentRecord
from payments.state_machines import (
    CommissionStatus,
    EscrowStatus,
    PaymentKind,
    PaymentStatus,
    SettlementFlow,
)
from payments.store import EscrowStore

if TYPE_CHECKING:
    from bookings.models import Booking, Property

logger = logging.getLogger(__name__)


@dataclass
class CreateCheckoutParams:
    """
    Checkout request.

    Attributes:
        booking_id: Booking being paid for
        property_id: Must be the booking's property
        gross_amount: Amount charged to the guest, in minor units
        payer: Authenticated user (must be the booking's guest)
        commission_rate: Overrides the property/platform rate when given
        kind: PaymentKind value
    """

    booking_id: Any
    property_id: Any
    gross_amount: int
    payer: Any
    commission_rate: Decimal | float | str | None = None
    kind: str = PaymentKind.BOOKING_FEE


@dataclass
class CheckoutResult:
    checkout_url: str | None
    session_id: str
    payment_id: str
    application_fee_amount: int
    host_payout_amount: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class CheckoutService(BaseService):
    """Creates Checkout Sessions for booking payments."""

    def __init__(self, store: EscrowStore | None = None, stripe_adapter=None):
        self.store = store or EscrowStore()
        self.stripe_adapter = stripe_adapter or StripeAdapter

    @staticmethod
    def destination_charge_kinds() -> set[str]:
        kinds = getattr(settings, "PAYMENT_DESTINATION_CHARGE_KINDS", [PaymentKind.SECURITY_DEPOSIT])
        return set(kinds)

    def create_checkout(self, params: CreateCheckoutParams) -> ServiceResult[CheckoutResult]:
        log_context = {
            "booking_id": str(params.booking_id),
            "property_id": str(params.property_id),
            "gross_amount": params.gross_amount,
            "kind": params.kind,
        }

        invalid = self._validate_amount(params.gross_amount)
        if invalid:
            return invalid

        booking = self.store.get_booking(params.booking_id)
        listing = booking.property if booking else self.store.get_property(params.property_id)

        try:
            rate_candidate = quantize_rate(
                resolve_rate(
                    params.commission_rate,
                    listing.commission_rate if listing else None,
                )
            )
        except ValueError:
            rate_candidate = None
        if not is_valid_rate(rate_candidate):
            return ServiceResult.failure(
                "Commission rate must be strictly between 0 and 1",
                EscrowErrorCode.INVALID_RATE,
                details={"commission_rate": str(params.commission_rate)},
            )

        checked = self._check_booking(booking, params)
        if checked:
            logger.info(
                "Checkout rejected",
                extra={**log_context, "error_code": checked.error_code},
            )
            return checked

        superseded = self._expire_superseded_session(booking, log_context)
        if superseded:
            return superseded

        listing = booking.property
        destination = listing.host_payout_account_id
        amounts = split(params.gross_amount, rate_candidate)
        flow = (
            SettlementFlow.DESTINATION_CHARGE
            if params.kind in self.destination_charge_kinds()
            else SettlementFlow.ESCROW_TRANSFER
        )
        currency = getattr(settings, "PAYMENT_DEFAULT_CURRENCY", "eur")

        log_context.update(
            {
                "commission_rate": str(rate_candidate),
                "commission_amount": amounts.commission_amount,
                "settlement_flow": flow,
            }
        )

        try:
            with self.atomic():
                payment = self._create_records(
                    booking, params, rate_candidate, amounts, flow, currency, destination
                )
                log_context["payment_id"] = str(payment.id)

                session = self.stripe_adapter.create_checkout_session(
                    self._session_params(booking, payment, amounts, flow, currency, destination),
                )

                PaymentRecord.objects.filter(pk=payment.pk).update(
                    stripe_checkout_session_id=session.id,
                    updated_at=timezone.now(),
                )
        except StripeError as e:
            logger.warning(
                "Checkout session creation failed",
                extra={**log_context, "error": str(e), "stripe_error": e.error_code},
            )
            return ServiceResult.failure(
                "Something went wrong, please try again",
                EscrowErrorCode.UNKNOWN,
                details={
                    "retry_safe": True,
                    "stripe_error": e.error_code,
                },
            )
        except Exception as e:
            return self.handle_exception(
                e,
                "Unexpected error during checkout",
                EscrowErrorCode.UNKNOWN,
                details={"retry_safe": True, **log_context},
            )

        logger.info(
            "Checkout session created",
            extra={**log_context, "session_id": session.id},
        )

        return ServiceResult.success(
            CheckoutResult(
                checkout_url=session.url,
                session_id=session.id,
                payment_id=str(payment.id),
                application_fee_amount=amounts.commission_amount,
                host_payout_amount=amounts.host_payout,
            )
        )

    # =========================================================================
    # Validation
    # =========================================================================

    @staticmethod
    def _validate_amount(gross_amount) -> ServiceResult | None:
        minimum = getattr(settings, "CHECKOUT_MIN_AMOUNT_CENTS", 50)
        maximum = getattr(settings, "CHECKOUT_MAX_AMOUNT_CENTS", 50_000_000)
        if (
            isinstance(gross_amount, bool)
            or not isinstance(gross_amount, int)
            or gross_amount < minimum
            or gross_amount > maximum
        ):
            return ServiceResult.failure(
                f"Amount must be between {minimum} and {maximum} minor units",
                EscrowErrorCode.INVALID_AMOUNT,
                details={"minimum": minimum, "maximum": maximum},
            )
        return None

    def _check_booking(
        self, booking: Booking | None, params: CreateCheckoutParams
    ) -> ServiceResult | None:
        if booking is None or str(booking.property_id) != str(params.property_id):
            return ServiceResult.failure(
                "Booking not found",
                EscrowErrorCode.NOT_FOUND,
            )

        if getattr(params.payer, "pk", None) != booking.guest_id:
            return ServiceResult.failure(
                "Only the guest can pay for this booking",
                EscrowErrorCode.UNAUTHORIZED,
            )

        if booking.status != BookingStatus.PENDING:
            return ServiceResult.failure(
                f"Booking is {booking.status}, not pending",
                EscrowErrorCode.INVALID_STATE,
                details={"booking_status": booking.status},
            )

        current = (
            self.store.get_payment_record(booking.payment_id) if booking.payment_id else None
        )
        if current is not None and (
            current.status == PaymentStatus.COMPLETED
            or current.escrow_status != EscrowStatus.NONE
        ):
            return ServiceResult.failure(
                "Booking already has a confirmed payment",
                EscrowErrorCode.INVALID_STATE,
                details={"payment_id": str(current.id)},
            )

        if not booking.property.host_payout_account_id:
            return ServiceResult.failure(
                "Host has not set up a payout account",
                EscrowErrorCode.OWNER_ACCOUNT_NOT_FOUND,
            )
        return None

    def _expire_superseded_session(
        self, booking: Booking, log_context: dict[str, Any]
    ) -> ServiceResult | None:
        """
        Close the booking's earlier, still pending Checkout Session.

        The earlier session must be expired at Stripe before a new one
        replaces it, otherwise the guest could still pay it and the charge
        would land on a payment the booking no longer points to. A session
        that cannot be expired because it already completed means a payment
        is in flight and no new checkout is opened.
        """
        current = (
            self.store.get_payment_record(booking.payment_id) if booking.payment_id else None
        )
        if (
            current is None
            or current.status != PaymentStatus.PENDING
            or not current.stripe_checkout_session_id
        ):
            return None

        session_id = current.stripe_checkout_session_id
        log_context = {**log_context, "superseded_session_id": session_id}
        try:
            try:
                session = self.stripe_adapter.expire_checkout_session(session_id)
            except StripeInvalidRequestError:
                # Not open any more; find out how it ended
                session = self.stripe_adapter.retrieve_checkout_session(session_id)
        except StripeError as e:
            logger.warning(
                "Could not expire earlier checkout session",
                extra={**log_context, "error": str(e), "stripe_error": e.error_code},
            )
            return ServiceResult.failure(
                "Something went wrong, please try again",
                EscrowErrorCode.UNKNOWN,
                details={"retry_safe": True, "stripe_error": e.error_code},
            )

        if session.status != "expired":
            logger.warning(
                "Earlier checkout session is no longer open",
                extra={**log_context, "session_status": session.status},
            )
            return ServiceResult.failure(
                "A payment for this booking is already in progress",
                EscrowErrorCode.INVALID_STATE,
                details={"session_id": session_id, "session_status": session.status},
            )

        logger.info("Expired earlier checkout session", extra=log_context)
        return None

    # =========================================================================
    # Records
    # =========================================================================

    def _create_records(
        self,
        booking: Booking,
        params: CreateCheckoutParams,
        rate: Decimal,
        amounts,
        flow: str,
        currency: str,
        destination: str,
    ) -> PaymentRecord:
        listing: Property = booking.property
        payment = PaymentRecord.objects.create(
            payer=params.payer,
            amount_cents=params.gross_amount,
            currency=currency,
            kind=params.kind,
            settlement_flow=flow,
            commission_rate=rate,
            destination_account_id=destination,
            metadata={
                "booking_id": str(booking.id),
                "property_id": str(listing.id),
                "kind": params.kind,
            },
        )
        CommissionTransaction.objects.create(
            payment=payment,
            booking=booking,
            host=listing.host,
            commission_rate=rate,
            gross_amount_cents=amounts.gross_amount,
            commission_amount_cents=amounts.commission_amount,
            host_payout_cents=amounts.host_payout,
            status=CommissionStatus.PENDING,
        )

        # An abandoned earlier checkout for this booking can no longer be paid
        if booking.payment_id:
            now = timezone.now()
            superseded_ids = list(
                PaymentRecord.objects.filter(
                    pk=booking.payment_id,
                    status=PaymentStatus.PENDING,
                    escrow_status=EscrowStatus.NONE,
                ).values_list("pk", flat=True)
            )
            PaymentRecord.objects.filter(pk__in=superseded_ids).update(
                status=PaymentStatus.FAILED,
                failed_at=now,
                failure_reason="Superseded by a new checkout",
                updated_at=now,
            )
            CommissionTransaction.objects.filter(
                payment_id__in=superseded_ids,
                status=CommissionStatus.PENDING,
            ).update(status=CommissionStatus.CANCELLED, updated_at=now)

        self.store.update_booking(booking.id, {"payment": payment})
        return payment

    @staticmethod
    def _session_params(
        booking: Booking,
        payment: PaymentRecord,
        amounts,
        flow: str,
        currency: str,
        destination: str,
    ) -> CreateCheckoutSessionParams:
        app_url = getattr(settings, "APP_URL", "http://localhost:3000").rstrip("/")
        is_destination_charge = flow == SettlementFlow.DESTINATION_CHARGE

        return CreateCheckoutSessionParams(
            amount_cents=payment.amount_cents,
            currency=currency,
            product_name=booking.property.title,
            success_url=(
                f"{app_url}/booking/success?bookingId={booking.id}"
                "&session_id={CHECKOUT_SESSION_ID}"
            ),
            cancel_url=f"{app_url}/booking/cancel?bookingId={booking.id}",
            idempotency_key=IdempotencyKeyGenerator.generate("checkout_session", payment.id),
            metadata={
                "booking_id": str(booking.id),
                "property_id": str(booking.property_id),
                "payment_id": str(payment.id),
                "kind": payment.kind,
                "destination_account": destination,
                "commission_rate": str(payment.commission_rate),
                "commission_amount": str(amounts.commission_amount),
            },
            customer_email=getattr(payment.payer, "email", None),
            application_fee_amount=amounts.commission_amount if is_destination_charge else None,
            destination_account=destination if is_destination_charge else None,
            transfer_group=None if is_destination_charge else f"booking_{booking.id}",
        )
