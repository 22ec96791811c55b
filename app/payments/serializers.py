"""
DRF serializers for the payments app.

Provides:
- CreatePreferenceSerializer: Checkout request (order, items and payer)
- PreferenceResponseSerializer: Created preference and order id
- OrderSerializer / OrderItemSerializer / PaymentSerializer: Read projections
- OrderStatusSerializer: Order status projection
- CancelOrderSerializer / RefundRequestSerializer: Command bodies
- RefundOutcomeSerializer: Refund result

Related files:
    - models/: Order, OrderItem, Payment
    - views.py: Payment API views
"""

from __future__ import annotations

from decimal import Decimal

from drf_spectacular.utils import OpenApiExample, extend_schema_serializer
from rest_framework import serializers

from payments.models import Order, OrderItem, Payment
from payments.services import MAX_AMOUNT, order_total

MAX_ITEM_QUANTITY = 10000


# =============================================================================
# Checkout Requests
# =============================================================================


class OrderItemInputSerializer(serializers.Serializer):
    """One line of a checkout request."""

    title = serializers.CharField(min_length=1, max_length=255)
    description = serializers.CharField(
        max_length=500, required=False, allow_blank=True, default=""
    )
    product_id = serializers.CharField(
        max_length=255, required=False, allow_blank=True, default=""
    )
    quantity = serializers.IntegerField(min_value=1, max_value=MAX_ITEM_QUANTITY)
    unit_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0.01")
    )
    picture_url = serializers.URLField(
        max_length=500, required=False, allow_blank=True, default=""
    )
    category_id = serializers.CharField(
        max_length=50, required=False, allow_blank=True, default=""
    )
    metadata = serializers.JSONField(required=False, default=dict)


class CustomerAddressSerializer(serializers.Serializer):
    street_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    street_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    zip_code = serializers.CharField(max_length=20, required=False, allow_blank=True)


@extend_schema_serializer(
    examples=[
        OpenApiExample(
            "Two items",
            value={
                "items": [
                    {"title": "Coffee mug", "quantity": 2, "unit_price": "10.00"},
                    {"title": "Sticker", "quantity": 1, "unit_price": "5.00"},
                ],
                "customer_email": "buyer@example.com",
                "customer_name": "Ana Pérez",
                "customer_phone": "+54 351 1234567",
            },
            request_only=True,
        ),
    ]
)
class CreatePreferenceSerializer(serializers.Serializer):
    """
    Checkout request: the order lines and who is paying.

    Validates:
    - At least one item
    - Positive quantities and unit prices
    - Line totals and the order total fit the order amount columns
    - Installment cap between 1 and 12
    """

    items = OrderItemInputSerializer(many=True, allow_empty=False)
    customer_email = serializers.EmailField(max_length=255)
    customer_name = serializers.CharField(
        max_length=255, required=False, allow_blank=True
    )
    customer_first_name = serializers.CharField(
        max_length=255, required=False, allow_blank=True
    )
    customer_last_name = serializers.CharField(
        max_length=255, required=False, allow_blank=True
    )
    customer_phone = serializers.CharField(
        max_length=50, required=False, allow_blank=True
    )
    customer_identification_type = serializers.CharField(
        max_length=20, required=False, allow_blank=True
    )
    customer_identification_number = serializers.CharField(
        max_length=50, required=False, allow_blank=True
    )
    customer_address = CustomerAddressSerializer(required=False)
    shipment_amount = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0"), required=False
    )
    max_installments = serializers.IntegerField(
        min_value=1, max_value=12, required=False
    )
    notes = serializers.CharField(required=False, allow_blank=True)
    metadata = serializers.JSONField(required=False)

    def validate(self, attrs):
        for index, item in enumerate(attrs["items"]):
            if item["unit_price"] * item["quantity"] > MAX_AMOUNT:
                raise serializers.ValidationError(
                    {"items": f"Item {index} total exceeds {MAX_AMOUNT}"}
                )
        if order_total(attrs["items"]) > MAX_AMOUNT:
            raise serializers.ValidationError(
                {"items": f"Order total exceeds {MAX_AMOUNT}"}
            )
        return attrs


class PreferenceResponseSerializer(serializers.Serializer):
    preference_id = serializers.CharField()
    init_point = serializers.URLField()
    sandbox_init_point = serializers.URLField(allow_null=True)
    order_id = serializers.UUIDField()


# =============================================================================
# Read Projections
# =============================================================================


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "title",
            "description",
            "product_id",
            "quantity",
            "unit_price",
            "total_price",
            "picture_url",
            "category_id",
            "metadata",
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """
    Read-only serializer for Payment.

    The raw gateway payload is left out; it is kept for audit only.
    """

    order_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "external_payment_id",
            "order_id",
            "status",
            "previous_status",
            "status_detail",
            "amount",
            "refunded_amount",
            "currency",
            "payment_method_id",
            "payment_type_id",
            "transaction_id",
            "payer_email",
            "webhook_attempts",
            "last_webhook_at",
            "approved_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read-only serializer for Order with its items and payments."""

    items = OrderItemSerializer(many=True, read_only=True)
    payments = PaymentSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "status",
            "previous_status",
            "total_amount",
            "currency",
            "external_preference_id",
            "customer_email",
            "customer_name",
            "customer_phone",
            "notes",
            "metadata",
            "paid_at",
            "cancelled_at",
            "refunded_at",
            "failure_reason",
            "items",
            "payments",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class OrderStatusSerializer(serializers.Serializer):
    """Serializes an OrderStatusView."""

    order_id = serializers.UUIDField(source="order.id")
    status = serializers.CharField()
    is_paid = serializers.BooleanField()
    can_retry = serializers.BooleanField()
    message = serializers.CharField()
    total_amount = serializers.DecimalField(
        source="order.total_amount", max_digits=10, decimal_places=2
    )
    currency = serializers.CharField(source="order.currency")
    payments = PaymentSerializer(many=True)


# =============================================================================
# Commands
# =============================================================================


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True)


class RefundRequestSerializer(serializers.Serializer):
    """Omit amount for a full refund of the remaining balance."""

    amount = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal("0.01"),
        required=False,
        allow_null=True,
    )


class RefundOutcomeSerializer(serializers.Serializer):
    refund_id = serializers.CharField()
    status = serializers.CharField()
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    payment_id = serializers.CharField()
