"""
Authentication models.

- User: email-based account used by guests, hosts and staff administrators

Roles are not modelled separately. A guest is whoever a Booking points at,
a host is whoever owns the Property, and ``is_staff`` marks administrators
allowed to release or refund any escrow.

Related files:
    - managers.py: Custom user manager for email-based creation
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Usage:
        guest = User.objects.create_user(email="guest@example.com", password="...")
        admin = User.objects.create_superuser(email="ops@example.com", password="...")
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    full_name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Display name used in notifications",
    )

    # Account status flags
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user is a platform administrator.",
    )

    # Timestamps
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.full_name or self.email

    def get_short_name(self):
        return self.full_name.split(" ")[0] if self.full_name else self.email
