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
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
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
                    "product_id",
                    models.CharField(db_index=True, help_text="Catalog product identifier", max_length=64),
                ),
                (
                    "product_title",
                    models.CharField(
                        blank=True, default="", help_text="Product title at purchase time", max_length=255
                    ),
                ),
                ("quantity", models.PositiveIntegerField(default=1, help_text="Units purchased")),
                (
                    "unit_price",
                    models.DecimalField(
                        decimal_places=2, help_text="Price per unit at purchase time", max_digits=14
                    ),
                ),
                (
                    "total_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="unit_price * quantity + shipping share + insurance share",
                        max_digits=14,
                    ),
                ),
                (
                    "service_fee",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="This order's share of the marketplace service fee",
                        max_digits=14,
                    ),
                ),
                (
                    "shipping_fee",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="This order's share of the shipping fee",
                        max_digits=14,
                    ),
                ),
                (
                    "insurance_fee",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="This order's share of the insurance fee",
                        max_digits=14,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        choices=[("wallet", "Wallet"), ("card", "Card"), ("hybrid", "Wallet + Card")],
                        help_text="How the checkout was paid",
                        max_length=10,
                    ),
                ),
                (
                    "reference",
                    models.CharField(
                        db_index=True,
                        help_text="Payment reference shared by all orders of one checkout",
                        max_length=100,
                    ),
                ),
                ("paid_at", models.DateTimeField(help_text="When the payment was confirmed")),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("paid", "Paid"),
                            ("shipped", "Shipped"),
                            ("delivered", "Delivered"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="paid",
                        help_text="Fulfilment status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "shipping_method",
                    models.CharField(
                        choices=[("self-arranged", "Self-arranged"), ("carrier", "Carrier")],
                        help_text="Self-arranged or carrier delivery",
                        max_length=20,
                    ),
                ),
                (
                    "verification_level",
                    models.CharField(
                        choices=[
                            ("self-arranged", "Self-arranged"),
                            ("basic", "Basic"),
                            ("premium", "Premium"),
                        ],
                        default="basic",
                        help_text="Verification tier chosen at checkout",
                        max_length=20,
                    ),
                ),
                (
                    "ship_to_address",
                    models.JSONField(blank=True, default=dict, help_text="Delivery address snapshot"),
                ),
                (
                    "ship_from_address",
                    models.JSONField(blank=True, default=dict, help_text="Dispatch address snapshot"),
                ),
                (
                    "shipment_id",
                    models.CharField(
                        blank=True, default="", help_text="Carrier shipment identifier", max_length=100
                    ),
                ),
                (
                    "tracking_code",
                    models.CharField(
                        blank=True, default="", help_text="Carrier tracking code", max_length=100
                    ),
                ),
                (
                    "tracking_url",
                    models.URLField(
                        blank=True, default="", help_text="Carrier tracking page", max_length=500
                    ),
                ),
                (
                    "escrow_state",
                    django_fsm.FSMField(
                        choices=[("in_escrow", "In Escrow"), ("released", "Released")],
                        db_index=True,
                        default="in_escrow",
                        help_text="Escrow state (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "inspection_deadline",
                    models.DateTimeField(
                        db_index=True, help_text="Escrow auto-releases after this time"
                    ),
                ),
                (
                    "escrow_released_at",
                    models.DateTimeField(blank=True, help_text="When escrow was released", null=True),
                ),
                (
                    "escrow_released_via",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("confirmed", "Buyer Confirmed"),
                            ("timed_out", "Inspection Period Expired"),
                            ("not_held", "Not Held"),
                        ],
                        default="",
                        help_text="How escrow was released",
                        max_length=20,
                    ),
                ),
                (
                    "quality_rating",
                    models.PositiveSmallIntegerField(
                        blank=True, help_text="Buyer's 1-5 quality rating", null=True
                    ),
                ),
                (
                    "quality_notes",
                    models.TextField(blank=True, default="", help_text="Buyer's quality notes"),
                ),
                (
                    "buyer",
                    models.ForeignKey(
                        help_text="User who paid for the order",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="purchases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "seller",
                    models.ForeignKey(
                        help_text="User who receives the proceeds",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sales",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "payment_intent",
                    models.ForeignKey(
                        help_text="Payment that funded this order",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="payments.paymentintent",
                    ),
                ),
            ],
            options={
                "verbose_name": "Order",
                "verbose_name_plural": "Orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["escrow_state", "inspection_deadline"], name="orders_escrow_deadline_idx"
                    ),
                    models.Index(fields=["buyer", "created_at"], name="orders_buyer_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(quality_rating__isnull=True)
                        | models.Q(quality_rating__gte=1, quality_rating__lte=5),
                        name="order_quality_rating_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ShipmentRequest",
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
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("dispatched", "Dispatched"), ("failed", "Failed")],
                        db_index=True,
                        default="pending",
                        help_text="Dispatch status",
                        max_length=20,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(
                        default=dict, help_text="from / to / package / service sent to the carrier"
                    ),
                ),
                (
                    "attempts",
                    models.PositiveSmallIntegerField(default=0, help_text="Dispatch attempts so far"),
                ),
                (
                    "last_error",
                    models.TextField(
                        blank=True, default="", help_text="Error from the last failed attempt"
                    ),
                ),
                (
                    "next_attempt_at",
                    models.DateTimeField(
                        blank=True, db_index=True, help_text="Earliest time for the next retry", null=True
                    ),
                ),
                (
                    "dispatched_at",
                    models.DateTimeField(
                        blank=True, help_text="When the carrier accepted the shipment", null=True
                    ),
                ),
                (
                    "order",
                    models.OneToOneField(
                        help_text="Order to ship",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="shipment_request",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "verbose_name": "Shipment Request",
                "verbose_name_plural": "Shipment Requests",
                "ordering": ["-created_at"],
            },
        ),
    ]
