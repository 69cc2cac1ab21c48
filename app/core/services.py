"""
Service layer primitives shared by every app.

- ServiceResult: explicit success/failure value returned by services
- BaseService: logger and transaction helpers for service classes

Expected failures (a booking that is not escrowed yet, a rate outside the
allowed range, a transfer the processor declined) come back as
ServiceResult.failure(...) so callers can branch on ``error_code``.
Programming errors and infrastructure faults are raised as exceptions
(see core.exceptions).

Usage:
    from core.services import BaseService, ServiceResult

    class RefundService(BaseService):
        def refund(self, booking_id) -> ServiceResult[Outcome]:
            booking = self.store.get_booking(booking_id)
            if booking is None:
                return ServiceResult.failure("Booking not found", "NOT_FOUND")
            ...
            return ServiceResult.success(outcome)

    result = RefundService().refund(booking_id)
    if not result:
        return Response(result.to_response(), status=409)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a service call.

    Attributes:
        success: Whether the operation succeeded
        data: Result payload on success
        error: Human-readable message on failure
        error_code: Machine-readable code the HTTP layer maps to a status
        errors: Field-level validation errors
        details: Extra failure context (ids, retry hints)
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    details: dict[str, Any] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        details: dict[str, Any] | None = None,
    ) -> ServiceResult[T]:
        """
        Build a failed result.

        Example:
            return ServiceResult.failure(
                "Transfer to host failed",
                error_code="TRANSFER_FAILED",
                details={"retry_safe": True},
            )
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
            details=details,
        )

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ServiceResult[T]:
        """Build a failed result from a caught exception."""
        return cls(
            success=False,
            error=str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
            details=details,
        )

    @property
    def retry_safe(self) -> bool:
        """True when a failed call left no state behind and may be repeated."""
        return bool(self.details and self.details.get("retry_safe"))

    def to_response(self) -> dict[str, Any]:
        """Serialize into the API envelope used by the views."""
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        if self.details:
            response["details"] = self.details
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for services.

    Services hold their collaborators (store, processor adapter, notifier)
    as instance attributes injected through ``__init__`` so tests can swap
    them for fakes. Business state lives in the database, never on the
    service instance.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the concrete service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Run the enclosed block in a database transaction.

        Example:
            with self.atomic():
                payment = PaymentRecord.objects.create(...)
                CommissionTransaction.objects.create(payment=payment, ...)
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        error_code: str | None = None,
        log_level: int = logging.ERROR,
        details: dict[str, Any] | None = None,
    ) -> ServiceResult:
        """
        Log an unexpected exception and turn it into a failed result.

        Example:
            except Exception as e:
                return self.handle_exception(e, "escrow release", "UNKNOWN")
        """
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(log_level, message, exc_info=True, extra=details or {})
        return ServiceResult.from_exception(exc, error_code, details=details)

