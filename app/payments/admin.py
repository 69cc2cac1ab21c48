"""
Payment admin configuration.

Records are read-only here; money moves only through the services (the
"Release escrow" action lives on the booking admin).
"""

from django.contrib import admin

from payments.models import CommissionTransaction, PaymentRecord, WebhookEvent


@admin.register(PaymentRecord)
class PaymentRecordAdmin(admin.ModelAdmin):
    """Visibility into payment and escrow states."""

    list_display = [
        "id",
        "payer",
        "amount_display",
        "kind",
        "status",
        "escrow_status",
        "settlement_flow",
        "created_at",
    ]
    list_filter = ["status", "escrow_status", "kind", "settlement_flow", "created_at"]
    search_fields = [
        "id",
        "payer__email",
        "stripe_checkout_session_id",
        "stripe_payment_intent_id",
        "stripe_transfer_id",
    ]
    readonly_fields = [
        "id",
        "status",
        "escrow_status",
        "version",
        "escrowed_at",
        "escrow_released_at",
        "escrow_release_reason",
        "completed_at",
        "failed_at",
        "refunded_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "payer", "kind", "settlement_flow")}),
        ("Amount", {"fields": ("amount_cents", "currency", "commission_rate")}),
        ("State", {"fields": ("status", "escrow_status", "escrow_release_reason")}),
        (
            "Stripe",
            {
                "fields": (
                    "destination_account_id",
                    "stripe_checkout_session_id",
                    "stripe_payment_intent_id",
                    "stripe_transfer_id",
                    "stripe_refund_id",
                ),
            },
        ),
        (
            "State Timestamps",
            {
                "fields": (
                    "escrowed_at",
                    "escrow_released_at",
                    "completed_at",
                    "failed_at",
                    "refunded_at",
                ),
                "classes": ("collapse",),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata", "failure_reason", "version"),
                "classes": ("collapse",),
            },
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    def amount_display(self, obj: PaymentRecord) -> str:
        return f"{obj.amount_cents / 100:.2f} {obj.currency.upper()}"

    amount_display.short_description = "Amount"

    def has_delete_permission(self, request, obj=None) -> bool:
        """Payment records are kept for audit."""
        return False


@admin.register(CommissionTransaction)
class CommissionTransactionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "booking",
        "host",
        "gross_amount_cents",
        "commission_amount_cents",
        "host_payout_cents",
        "status",
        "created_at",
    ]
    list_filter = ["status", "created_at"]
    search_fields = ["id", "booking__id", "host__email", "stripe_transfer_id"]
    readonly_fields = [
        "id",
        "payment",
        "booking",
        "host",
        "commission_rate",
        "gross_amount_cents",
        "commission_amount_cents",
        "host_payout_cents",
        "stripe_transfer_id",
        "escrow_released_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """Webhook processing status; events are immutable once received."""

    list_display = [
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["stripe_event_id", "event_type"]
    readonly_fields = [
        "id",
        "stripe_event_id",
        "event_type",
        "payload",
        "processed_at",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False
