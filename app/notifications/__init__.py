"""
Notifications app: in-app messages shown to guests and hosts.

Usage:
    from notifications.services import NotificationService

    NotificationService.create_notification(
        recipient=booking.guest,
        notification_type="payment_released",
        title="Payment Released",
        message="...",
        related_id=booking.id,
    )
"""
