"""
Payment admin configuration.

Registers Order (with its items inline) and Payment with the Django
admin. Status fields are read-only: state changes go through the
service layer, not the admin.
"""

from django.contrib import admin

from payments.models import Order, OrderItem, Payment


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    fields = ["position", "title", "product_id", "quantity", "unit_price", "total_price"]
    readonly_fields = fields


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    can_delete = False
    fields = ["external_payment_id", "status", "amount", "refunded_amount", "last_webhook_at"]
    readonly_fields = fields
    show_change_link = True


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """
    Admin configuration for Order.

    Provides visibility into orders, their items and payments.
    """

    list_display = [
        "id",
        "customer_email",
        "total_amount",
        "currency",
        "status",
        "created_at",
    ]
    list_filter = ["status", "currency", "created_at"]
    search_fields = ["id", "customer_email", "customer_name", "external_preference_id"]
    readonly_fields = [
        "id",
        "status",
        "previous_status",
        "total_amount",
        "external_preference_id",
        "paid_at",
        "cancelled_at",
        "refunded_at",
        "failure_reason",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [OrderItemInline, PaymentInline]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "status", "previous_status", "failure_reason"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("total_amount", "currency", "external_preference_id"),
            },
        ),
        (
            "Customer",
            {
                "fields": ("customer_email", "customer_name", "customer_phone", "notes"),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("metadata",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("paid_at", "cancelled_at", "refunded_at", "created_at", "updated_at"),
            },
        ),
    )


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Payments are written by reconciliation and refunds only.
    """

    list_display = [
        "external_payment_id",
        "order",
        "status",
        "amount",
        "refunded_amount",
        "webhook_attempts",
        "last_webhook_at",
    ]
    list_filter = ["status", "payment_type_id", "created_at"]
    search_fields = ["external_payment_id", "order__id", "payer_email", "transaction_id"]
    readonly_fields = [field.name for field in Payment._meta.fields]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def has_add_permission(self, request):
        return False
