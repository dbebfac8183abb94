import uuid
from decimal import Decimal

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentIntent",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(blank=True, default=dict, help_text="Free-form metadata"),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True, help_text="Timestamp when this record was last modified"
                    ),
                ),
                (
                    "reference",
                    models.CharField(
                        db_index=True,
                        help_text="Unique payment reference shared with the gateway and orders",
                        max_length=100,
                        unique=True,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Amount this intent collects (card portion for hybrid payments)",
                        max_digits=14,
                    ),
                ),
                (
                    "currency",
                    models.CharField(default="NGN", help_text="ISO 4217 currency code", max_length=3),
                ),
                (
                    "method",
                    models.CharField(
                        choices=[("wallet", "Wallet"), ("card", "Card"), ("hybrid", "Wallet + Card")],
                        help_text="Payment path (wallet, card, hybrid)",
                        max_length=10,
                    ),
                ),
                (
                    "purpose",
                    models.CharField(
                        choices=[
                            ("cart_payment", "Cart Payment"),
                            ("hybrid_payment", "Hybrid Payment"),
                            ("swap_payment", "Swap Payment"),
                            ("advertisement_payment", "Advertisement Payment"),
                        ],
                        default="cart_payment",
                        help_text="What this payment is for",
                        max_length=30,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[("pending", "Pending"), ("success", "Success"), ("failed", "Failed")],
                        db_index=True,
                        default="pending",
                        help_text="Current status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "service_fee_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Marketplace service fee included in this payment",
                        max_digits=14,
                    ),
                ),
                (
                    "shipping_fee_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Shipping fee passed through to the carrier",
                        max_digits=14,
                    ),
                ),
                (
                    "insurance_fee_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Insurance fee passed through",
                        max_digits=14,
                    ),
                ),
                (
                    "wallet_portion",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Wallet leg of a hybrid payment (debited only after card confirmation)",
                        max_digits=14,
                    ),
                ),
                (
                    "authorization_url",
                    models.URLField(
                        blank=True,
                        default="",
                        help_text="Hosted payment page URL returned by the gateway",
                        max_length=500,
                    ),
                ),
                (
                    "gateway_response",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Last gateway payload associated with this intent",
                    ),
                ),
                (
                    "paid_at",
                    models.DateTimeField(blank=True, help_text="When funds were confirmed", null=True),
                ),
                (
                    "failure_reason",
                    models.TextField(blank=True, default="", help_text="Why the payment failed"),
                ),
                (
                    "requires_reconciliation",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Money movement and records disagree; needs manual review",
                    ),
                ),
                (
                    "reconciliation_note",
                    models.TextField(blank=True, default="", help_text="What needs reconciling"),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User making the payment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payment_intents",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Intent",
                "verbose_name_plural": "Payment Intents",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "status"], name="payments_pa_user_id_5e1c0a_idx"),
                    models.Index(fields=["status", "created_at"], name="payments_pa_status_8b2d4f_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=0),
                        name="payment_intent_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(wallet_portion__gte=0),
                        name="payment_intent_wallet_portion_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True, help_text="Timestamp when this record was last modified"
                    ),
                ),
                (
                    "event_key",
                    models.CharField(
                        db_index=True,
                        help_text="'{event}:{reference}' - unique per gateway event",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Gateway event type (e.g., 'charge.success')",
                        max_length=100,
                    ),
                ),
                (
                    "reference",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Payment reference the event refers to",
                        max_length=100,
                    ),
                ),
                ("payload", models.JSONField(help_text="Full webhook payload from the gateway")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True, help_text="When event was successfully processed", null=True
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True, help_text="Error message if processing failed", null=True
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Number of processing attempts"
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="payments_we_status_3a9c71_idx"),
                    models.Index(fields=["status", "retry_count"], name="payments_we_status_c04e2b_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WalletTransaction",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier (UUID v4)",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True, help_text="Timestamp when this record was last modified"
                    ),
                ),
                (
                    "reference",
                    models.CharField(
                        db_index=True,
                        help_text="Unique idempotency key for this mutation",
                        max_length=150,
                        unique=True,
                    ),
                ),
                (
                    "direction",
                    models.CharField(
                        choices=[("debit", "Debit"), ("credit", "Credit")],
                        help_text="Debit or credit",
                        max_length=6,
                    ),
                ),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("payment", "Payment"),
                            ("escrow_release", "Escrow Release"),
                            ("refund", "Refund"),
                            ("topup", "Top-up"),
                        ],
                        help_text="Reason for the mutation",
                        max_length=20,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2, help_text="Amount moved (always positive)", max_digits=14
                    ),
                ),
                (
                    "balance_after",
                    models.DecimalField(
                        decimal_places=2, help_text="Wallet balance after this mutation", max_digits=14
                    ),
                ),
                (
                    "narration",
                    models.CharField(
                        blank=True, default="", help_text="Human-readable description", max_length=255
                    ),
                ),
                (
                    "payment_intent",
                    models.ForeignKey(
                        blank=True,
                        help_text="Payment this debit funds",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="wallet_transactions",
                        to="payments.paymentintent",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        help_text="Wallet owner",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="wallet_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Wallet Transaction",
                "verbose_name_plural": "Wallet Transactions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "created_at"], name="payments_wa_user_id_7f3e19_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=0),
                        name="wallet_transaction_amount_positive",
                    ),
                ],
            },
        ),
    ]
