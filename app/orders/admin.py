"""
Order admin configuration.

Fulfilment status is moved through admin actions so every change goes
through the FSM transitions. Escrow can only be released by the buyer or
the inspection-period sweep, never from the admin.
"""

from django.contrib import admin, messages
from django_fsm import TransitionNotAllowed

from orders.models import Order, ShipmentRequest


class ShipmentRequestInline(admin.StackedInline):
    model = ShipmentRequest
    extra = 0
    can_delete = False
    readonly_fields = [
        "status",
        "attempts",
        "last_error",
        "next_attempt_at",
        "dispatched_at",
        "payload",
    ]

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "reference",
        "buyer",
        "seller",
        "total_amount",
        "status",
        "escrow_state",
        "inspection_deadline",
        "created_at",
    ]
    list_filter = ["status", "escrow_state", "shipping_method", "verification_level"]
    search_fields = ["id", "reference", "buyer__email", "seller__email", "tracking_code"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [ShipmentRequestInline]
    actions = ["mark_shipped", "mark_delivered", "cancel"]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def _apply_transition(self, request, queryset, transition: str) -> None:
        changed = 0
        for order in queryset:
            try:
                getattr(order, transition)()
            except TransitionNotAllowed:
                self.message_user(
                    request,
                    f"Order {order.id} cannot move from '{order.status}'",
                    level=messages.WARNING,
                )
                continue
            order.save()
            changed += 1
        self.message_user(request, f"Updated {changed} orders")

    @admin.action(description="Mark selected orders as shipped")
    def mark_shipped(self, request, queryset):
        self._apply_transition(request, queryset, "mark_shipped")

    @admin.action(description="Mark selected orders as delivered")
    def mark_delivered(self, request, queryset):
        self._apply_transition(request, queryset, "mark_delivered")

    @admin.action(description="Cancel selected orders")
    def cancel(self, request, queryset):
        self._apply_transition(request, queryset, "cancel")
