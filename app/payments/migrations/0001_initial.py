import uuid
from decimal import Decimal

import django.db.models.deletion
import django_fsm
from django.db import migrations, models

ORDER_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("processing", "Processing"),
    ("paid", "Paid"),
    ("cancelled", "Cancelled"),
    ("refunded", "Refunded"),
    ("failed", "Failed"),
]

PAYMENT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("approved", "Approved"),
    ("authorized", "Authorized"),
    ("in_process", "In Process"),
    ("in_mediation", "In Mediation"),
    ("rejected", "Rejected"),
    ("cancelled", "Cancelled"),
    ("refunded", "Refunded"),
    ("charged_back", "Charged Back"),
]


def _id_field():
    return models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
        primary_key=True,
        serialize=False,
    )


def _timestamps():
    return [
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
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                *_timestamps(),
                ("id", _id_field()),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=ORDER_STATUS_CHOICES,
                        db_index=True,
                        default="pending",
                        help_text="Current state of the order (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "previous_status",
                    models.CharField(
                        blank=True,
                        choices=ORDER_STATUS_CHOICES,
                        help_text="State before the most recent transition",
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "total_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Order total (sum of item totals)",
                        max_digits=10,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default="ARS", help_text="ISO 4217 currency code", max_length=3
                    ),
                ),
                (
                    "external_preference_id",
                    models.CharField(
                        blank=True,
                        help_text="Gateway checkout preference id",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "customer_email",
                    models.EmailField(help_text="Buyer email address", max_length=255),
                ),
                (
                    "customer_name",
                    models.CharField(
                        blank=True, default="", help_text="Buyer full name", max_length=255
                    ),
                ),
                (
                    "customer_phone",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Buyer phone number as entered",
                        max_length=50,
                    ),
                ),
                (
                    "notes",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Free-form notes attached by the buyer",
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON metadata supplied with the order",
                    ),
                ),
                (
                    "paid_at",
                    models.DateTimeField(
                        blank=True, help_text="When the order was first paid", null=True
                    ),
                ),
                (
                    "cancelled_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the order was first cancelled",
                        null=True,
                    ),
                ),
                (
                    "refunded_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the order was first refunded",
                        null=True,
                    ),
                ),
                (
                    "failure_reason",
                    models.CharField(
                        blank=True,
                        help_text="Reason the order failed or was cancelled",
                        max_length=500,
                        null=True,
                    ),
                ),
            ],
            options={
                "verbose_name": "Order",
                "verbose_name_plural": "Orders",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["customer_email", "created_at"],
                        name="payments_or_custome_5a1f0e_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total_amount__gt", 0)),
                        name="order_total_amount_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                *_timestamps(),
                ("id", _id_field()),
                (
                    "title",
                    models.CharField(
                        help_text="Product title shown at checkout", max_length=255
                    ),
                ),
                (
                    "description",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Product description",
                        max_length=500,
                    ),
                ),
                (
                    "product_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Merchant product identifier",
                        max_length=255,
                    ),
                ),
                (
                    "picture_url",
                    models.URLField(
                        blank=True,
                        default="",
                        help_text="Product image shown at checkout",
                        max_length=500,
                    ),
                ),
                (
                    "category_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Gateway item category (e.g. electronics, others)",
                        max_length=50,
                    ),
                ),
                ("quantity", models.PositiveIntegerField(help_text="Units ordered")),
                (
                    "unit_price",
                    models.DecimalField(
                        decimal_places=2, help_text="Price per unit", max_digits=10
                    ),
                ),
                (
                    "total_price",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="quantity * unit_price, fixed at creation",
                        max_digits=10,
                    ),
                ),
                (
                    "position",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Zero-based position of the line in the order",
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON metadata supplied with the item",
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        help_text="Order this line belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="payments.order",
                    ),
                ),
            ],
            options={
                "verbose_name": "Order Item",
                "verbose_name_plural": "Order Items",
                "ordering": ["position", "created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 1)),
                        name="order_item_quantity_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                *_timestamps(),
                ("id", _id_field()),
                (
                    "external_payment_id",
                    models.CharField(
                        help_text="Gateway payment id", max_length=64, unique=True
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=PAYMENT_STATUS_CHOICES,
                        db_index=True,
                        default="pending",
                        help_text="Current gateway payment status (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "previous_status",
                    models.CharField(
                        blank=True,
                        choices=PAYMENT_STATUS_CHOICES,
                        help_text="Status before the most recent change",
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "status_detail",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Gateway status detail (e.g. cc_rejected_other_reason)",
                        max_length=255,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2, help_text="Transaction amount", max_digits=10
                    ),
                ),
                (
                    "refunded_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Amount refunded so far",
                        max_digits=10,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="ISO 4217 currency code",
                        max_length=3,
                    ),
                ),
                (
                    "payment_method_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Gateway payment method (e.g. visa, account_money)",
                        max_length=50,
                    ),
                ),
                (
                    "payment_type_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Gateway payment type (e.g. credit_card, ticket)",
                        max_length=50,
                    ),
                ),
                (
                    "transaction_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Acquirer transaction id from transaction_details",
                        max_length=255,
                    ),
                ),
                (
                    "description",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Payment description reported by the gateway",
                        max_length=500,
                    ),
                ),
                (
                    "payer_email",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Payer email reported by the gateway",
                        max_length=255,
                    ),
                ),
                (
                    "payer_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Gateway payer id",
                        max_length=64,
                    ),
                ),
                (
                    "raw_payload",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Gateway payment record as last received",
                    ),
                ),
                (
                    "webhook_attempts",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Reconciliations that changed this payment's status",
                    ),
                ),
                (
                    "last_webhook_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When reconciliation last changed this payment",
                        null=True,
                    ),
                ),
                (
                    "approved_at",
                    models.DateTimeField(
                        blank=True, help_text="Gateway date_approved", null=True
                    ),
                ),
                (
                    "gateway_created_at",
                    models.DateTimeField(
                        blank=True, help_text="Gateway date_created", null=True
                    ),
                ),
                (
                    "gateway_updated_at",
                    models.DateTimeField(
                        blank=True, help_text="Gateway date_last_updated", null=True
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        help_text="Order this payment pays for",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="payments.order",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["order", "created_at"],
                        name="payments_pa_order_i_3c9d2b_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("refunded_amount__gte", 0)),
                        name="payment_refunded_amount_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("refunded_amount__lte", models.F("amount"))
                        ),
                        name="payment_refunded_amount_within_amount",
                    ),
                ],
            },
        ),
    ]
