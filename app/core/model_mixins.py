"""
Reusable abstract model mixins.

UUIDPrimaryKeyMixin:
    UUID primary key. Booking, payment and commission ids appear in
    URLs, processor metadata and idempotency keys, so they must not be
    guessable or reveal record counts.
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """Use a random UUID as primary key."""

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
