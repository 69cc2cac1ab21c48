"""
Commission split between the platform and the host.

Both charge-time fee splitting (destination charges) and release-time
transfers (escrow) compute amounts here, so the application fee taken at
checkout and the payout sent at release always agree.

Rules:
    commission = round_half_up(gross * rate)
    host_payout = gross - commission
    commission is clamped to [0, gross - 1] so a non-zero charge always
    leaves the host at least one minor unit

Usage:
    from payments.commission import split

    amounts = split(10_000, "0.15")
    amounts.commission_amount  # 1500
    amounts.host_payout        # 8500
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings

DEFAULT_COMMISSION_RATE = Decimal("0.15")

# Rates are stored as DecimalField(max_digits=5, decimal_places=4)
RATE_PRECISION = Decimal("0.0001")


@dataclass(frozen=True)
class CommissionSplit:
    """Amounts in minor currency units."""

    gross_amount: int
    commission_amount: int
    host_payout: int


def to_rate(value: Decimal | float | str | int) -> Decimal:
    """
    Normalize a commission rate to Decimal.

    Floats go through ``str()`` first so 0.15 becomes exactly Decimal("0.15").

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid commission rate: {value!r}")
    if isinstance(value, float):
        value = str(value)
    try:
        rate = Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid commission rate: {value!r}") from e
    if not rate.is_finite():
        raise ValueError(f"Invalid commission rate: {value!r}")
    return rate


def quantize_rate(value: Decimal | float | str | int) -> Decimal:
    """
    Round a rate to the precision it is stored with.

    Checkout splits with the stored rate so the fee charged then and the
    payout recomputed at release come from the same number.

    Raises:
        ValueError: If the value is not a finite number
    """
    try:
        return to_rate(value).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"Invalid commission rate: {value!r}") from e


def is_valid_rate(value: Decimal | float | str | int | None) -> bool:
    """True when ``value`` is a number strictly between 0 and 1."""
    if value is None:
        return False
    try:
        rate = to_rate(value)
    except ValueError:
        return False
    return Decimal("0") < rate < Decimal("1")


def default_rate() -> Decimal:
    """Platform default rate from PLATFORM_DEFAULT_COMMISSION_RATE."""
    return to_rate(getattr(settings, "PLATFORM_DEFAULT_COMMISSION_RATE", DEFAULT_COMMISSION_RATE))


def resolve_rate(*candidates: Decimal | float | str | None) -> Decimal:
    """
    First non-null candidate, else the platform default.

    Example:
        rate = resolve_rate(payment.commission_rate, property.commission_rate)
    """
    for candidate in candidates:
        if candidate is not None:
            return to_rate(candidate)
    return default_rate()


def split(gross_amount: int, commission_rate: Decimal | float | str) -> CommissionSplit:
    """
    Split ``gross_amount`` into platform commission and host payout.

    Degenerate rates are not rejected here; the commission is clamped so
    the host payout stays positive. Callers that must refuse such rates
    (checkout) check is_valid_rate() first.

    Raises:
        TypeError: If gross_amount is not an int
        ValueError: If gross_amount is negative or the rate is not a number
    """
    if isinstance(gross_amount, bool) or not isinstance(gross_amount, int):
        raise TypeError("gross_amount must be an integer amount of minor units")
    if gross_amount < 0:
        raise ValueError("gross_amount must not be negative")

    rate = to_rate(commission_rate)
    if gross_amount == 0:
        return CommissionSplit(gross_amount=0, commission_amount=0, host_payout=0)

    commission = int((Decimal(gross_amount) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    commission = max(0, min(commission, gross_amount - 1))

    return CommissionSplit(
        gross_amount=gross_amount,
        commission_amount=commission,
        host_payout=gross_amount - commission,
    )


__all__ = [
    "CommissionSplit",
    "DEFAULT_COMMISSION_RATE",
    "RATE_PRECISION",
    "default_rate",
    "is_valid_rate",
    "quantize_rate",
    "resolve_rate",
    "split",
    "to_rate",
]
