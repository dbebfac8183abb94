"""
Payment admin configuration.

Payment intents, webhook events and wallet transactions are audit records:
they can be inspected but not added or deleted through the admin.
"""

from django.contrib import admin, messages

from payments.models import PaymentIntent, WalletTransaction, WebhookEvent
from payments.services import PaymentOrchestrator


class ReadOnlyAuditAdmin(admin.ModelAdmin):
    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        return False


# =============================================================================
# Payment Intent Admin
# =============================================================================


@admin.register(PaymentIntent)
class PaymentIntentAdmin(ReadOnlyAuditAdmin):
    """
    Admin configuration for PaymentIntent.

    requires_reconciliation is the filter support staff work from.
    """

    list_display = [
        "reference",
        "user",
        "method",
        "purpose",
        "status",
        "amount",
        "wallet_portion",
        "requires_reconciliation",
        "created_at",
    ]
    list_filter = ["status", "method", "purpose", "requires_reconciliation"]
    search_fields = ["reference", "user__email"]
    readonly_fields = [
        "id",
        "reference",
        "user",
        "amount",
        "currency",
        "method",
        "purpose",
        "status",
        "service_fee_amount",
        "shipping_fee_amount",
        "insurance_fee_amount",
        "wallet_portion",
        "authorization_url",
        "gateway_response",
        "paid_at",
        "failure_reason",
        "metadata",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["check_with_gateway"]

    fieldsets = (
        (None, {"fields": ("id", "reference", "user", "method", "purpose", "status")}),
        (
            "Amounts",
            {
                "fields": (
                    "amount",
                    "currency",
                    "wallet_portion",
                    "service_fee_amount",
                    "shipping_fee_amount",
                    "insurance_fee_amount",
                ),
            },
        ),
        ("Gateway", {"fields": ("authorization_url", "paid_at", "failure_reason", "gateway_response")}),
        ("Reconciliation", {"fields": ("requires_reconciliation", "reconciliation_note")}),
        ("Cart Snapshot", {"fields": ("metadata",), "classes": ("collapse",)}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    @admin.action(description="Check selected payments with the gateway")
    def check_with_gateway(self, request, queryset):
        """Record the gateway's view of each payment on its reconciliation note."""
        orchestrator = PaymentOrchestrator()
        for intent in queryset:
            result = orchestrator.check_with_gateway(intent.reference)
            if not result.success:
                self.message_user(request, f"{intent.reference}: {result.error}", level=messages.ERROR)
                continue
            summary = result.data
            self.message_user(
                request,
                f"{intent.reference}: gateway {summary['gateway_status']}, "
                f"{summary['gateway_amount']} (recorded {summary['intent_amount']})",
                level=messages.INFO if summary["amount_matches"] else messages.WARNING,
            )


# =============================================================================
# Webhook Event Admin
# =============================================================================


@admin.register(WebhookEvent)
class WebhookEventAdmin(ReadOnlyAuditAdmin):
    """Webhook deliveries; only status and error can be edited for a retry."""

    list_display = [
        "event_key",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["event_key", "reference"]
    readonly_fields = [
        "id",
        "event_key",
        "event_type",
        "reference",
        "payload",
        "processed_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "event_key", "event_type", "reference", "status")}),
        ("Processing", {"fields": ("processed_at", "retry_count")}),
        ("Error Info", {"fields": ("error_message",), "classes": ("collapse",)}),
        ("Payload", {"fields": ("payload",), "classes": ("collapse",)}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )


# =============================================================================
# Wallet Transaction Admin
# =============================================================================


@admin.register(WalletTransaction)
class WalletTransactionAdmin(ReadOnlyAuditAdmin):
    list_display = [
        "reference",
        "user",
        "direction",
        "kind",
        "amount",
        "balance_after",
        "created_at",
    ]
    list_filter = ["direction", "kind"]
    search_fields = ["reference", "user__email"]
    ordering = ["-created_at"]

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]
