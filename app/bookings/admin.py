"""
Booking admin configuration.

The "Release escrow" action is the administrator release path: it calls
EscrowReleaseService with ReleaseReason.ADMIN_RELEASE for each selected
booking and reports per-booking results.
"""

from django.contrib import admin, messages

from bookings.models import Booking, Property


@admin.register(Property)
class PropertyAdmin(admin.ModelAdmin):
    list_display = ["id", "title", "host", "category", "commission_rate", "host_payout_account_id"]
    list_filter = ["category"]
    search_fields = ["id", "title", "host__email", "host_payout_account_id"]
    readonly_fields = ["id", "created_at", "updated_at"]


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "guest",
        "property",
        "check_in_date",
        "check_out_date",
        "status",
        "escrow_release_eligible_at",
        "auto_release_scheduled",
    ]
    list_filter = ["status", "auto_release_scheduled", "property__category"]
    search_fields = ["id", "guest__email", "property__title"]
    readonly_fields = [
        "id",
        "status",
        "payment",
        "escrow_release_eligible_at",
        "auto_release_scheduled",
        "guest_confirmed_completion",
        "completed_at",
        "cancelled_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "check_out_date"
    actions = ["release_escrow"]

    @admin.action(description="Release escrow")
    def release_escrow(self, request, queryset):
        # Imported here; payments depends on bookings
        from payments.services import EscrowReleaseService, ReleaseActor
        from payments.state_machines import ReleaseReason

        service = EscrowReleaseService()
        actor = ReleaseActor.from_user(request.user)

        for booking_id in queryset.values_list("id", flat=True):
            result = service.release(booking_id, ReleaseReason.ADMIN_RELEASE, actor)
            if result.success:
                self.message_user(
                    request,
                    f"Booking {booking_id}: released {result.data.host_payout_amount} to host",
                    messages.SUCCESS,
                )
            else:
                self.message_user(
                    request,
                    f"Booking {booking_id}: {result.error_code} {result.error}",
                    messages.ERROR,
                )
