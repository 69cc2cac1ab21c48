"""
Abstract base model shared by every domain model.

    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class PaymentRecord(UUIDPrimaryKeyMixin, BaseModel):
        amount_cents = models.PositiveIntegerField()

Mixins go before BaseModel in the bases list.
"""

from __future__ import annotations

from django.db import models


class BaseModel(models.Model):
    """
    Adds creation and modification timestamps.

    Note:
        ``updated_at`` uses auto_now, which only fires on save().
        Conditional updates issued through QuerySet.update() must set it
        explicitly (payments.store.EscrowStore does).
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"
