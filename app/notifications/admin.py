"""
Django admin configuration for notifications.
"""

from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    """Read-mostly admin for in-app notifications."""

    list_display = ["recipient", "notification_type", "title", "related_id", "is_read", "created_at"]
    list_filter = ["notification_type", "is_read"]
    search_fields = ["recipient__email", "title", "related_id"]
    readonly_fields = ["idempotency_key", "created_at", "updated_at"]
    raw_id_fields = ["recipient"]
