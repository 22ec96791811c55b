"""
Order and OrderItem models for checkout.

An Order is created PENDING together with its items when a checkout
preference is requested. From then on its status follows the most
recently reconciled Payment (see payments.state_machines.mapping), except
for explicit cancellation and the refund cascade.

Usage:
    from payments.models import Order
    from payments.state_machines import OrderStatus

    order = Order.objects.create(total_amount=Decimal("25.00"), customer_email="a@b.c")

    # State transitions using django-fsm
    order.mark_paid()  # any -> paid, stamps paid_at
    order.save()

    # Driven by a payment status
    order.transition_to(OrderStatus.FAILED, detail="cc_rejected_insufficient_amount")
    order.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import OrderStatus

DEFAULT_REJECTED_REASON = "rejected"
DEFAULT_CANCELLED_REASON = "cancelled by user"
USER_CANCELLED_REASON = "Cancelled by user"

# Statuses an order may be cancelled from on request
CANCELLABLE_STATUSES = [
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.FAILED,
    OrderStatus.REFUNDED,
]


class Order(UUIDPrimaryKeyMixin, BaseModel):
    """
    A purchase order paid through a gateway checkout preference.

    Fields:
        status: Current FSM state
        previous_status: State before the last transition
        total_amount: Sum of item totals, fixed at creation
        currency: ISO 4217 currency code
        external_preference_id: Gateway preference id (set after creation)
        customer_*: Buyer contact details
        paid_at / cancelled_at / refunded_at: Stamped on first entry into the state
        failure_reason: Why the order failed or was cancelled

    Related:
        items: OrderItem rows (owned)
        payments: Payment rows reconciled from the gateway
    """

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=OrderStatus.PENDING,
        choices=OrderStatus.choices,
        db_index=True,
        help_text="Current state of the order (managed by FSM)",
    )

    previous_status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
        help_text="State before the most recent transition",
    )

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    total_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Order total (sum of item totals)",
    )

    currency = models.CharField(
        max_length=3,
        default="ARS",
        help_text="ISO 4217 currency code",
    )

    # ==========================================================================
    # Gateway Integration
    # ==========================================================================

    external_preference_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Gateway checkout preference id",
    )

    # ==========================================================================
    # Customer
    # ==========================================================================

    customer_email = models.EmailField(
        max_length=255,
        help_text="Buyer email address",
    )

    customer_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Buyer full name",
    )

    customer_phone = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Buyer phone number as entered",
    )

    notes = models.TextField(
        blank=True,
        default="",
        help_text="Free-form notes attached by the buyer",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata supplied with the order",
    )

    # ==========================================================================
    # State Timestamps & Error Info
    # ==========================================================================

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the order was first paid",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the order was first cancelled",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the order was first refunded",
    )

    failure_reason = models.CharField(
        max_length=500,
        null=True,
        blank=True,
        help_text="Reason the order failed or was cancelled",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Order"
        verbose_name_plural = "Orders"
        indexes = [
            models.Index(
                fields=["customer_email", "created_at"],
                name="payments_or_custome_5a1f0e_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_amount__gt=0),
                name="order_total_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Order({self.id}, {self.status}, {self.total_amount} {self.currency})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source="*", target=OrderStatus.PENDING)
    def mark_pending(self):
        """Payment is waiting for approval."""
        self.previous_status = self.status

    @transition(field=status, source="*", target=OrderStatus.PROCESSING)
    def mark_processing(self):
        """Payment is being reviewed or is in mediation."""
        self.previous_status = self.status

    @transition(field=status, source="*", target=OrderStatus.PAID)
    def mark_paid(self):
        """Payment approved or authorized."""
        self.previous_status = self.status
        if self.paid_at is None:
            self.paid_at = timezone.now()

    @transition(field=status, source="*", target=OrderStatus.FAILED)
    def mark_failed(self, reason: str | None = None):
        """
        Payment rejected.

        Args:
            reason: Gateway status detail, defaults to "rejected"
        """
        self.previous_status = self.status
        self.failure_reason = reason or DEFAULT_REJECTED_REASON

    @transition(field=status, source="*", target=OrderStatus.CANCELLED)
    def mark_cancelled(self, reason: str | None = None):
        """
        Payment cancelled at the gateway.

        Args:
            reason: Gateway status detail, defaults to "cancelled by user"
        """
        self.previous_status = self.status
        if self.cancelled_at is None:
            self.cancelled_at = timezone.now()
        self.failure_reason = reason or DEFAULT_CANCELLED_REASON

    @transition(field=status, source="*", target=OrderStatus.REFUNDED)
    def mark_refunded(self):
        """Payment refunded or charged back."""
        self.previous_status = self.status
        if self.refunded_at is None:
            self.refunded_at = timezone.now()

    @transition(field=status, source=CANCELLABLE_STATUSES, target=OrderStatus.CANCELLED)
    def cancel(self, reason: str | None = None):
        """
        Cancel the order on the buyer's or an operator's request.

        Transition: PENDING/PROCESSING/FAILED/REFUNDED -> CANCELLED

        Paid orders must be refunded instead.
        """
        self.previous_status = self.status
        if self.cancelled_at is None:
            self.cancelled_at = timezone.now()
        self.failure_reason = reason or USER_CANCELLED_REASON

    def transition_to(self, target: OrderStatus | str, detail: str | None = None) -> None:
        """
        Move to the order status implied by a payment status.

        Args:
            target: Order status from order_status_for()
            detail: Gateway status detail, used as failure_reason where relevant
        """
        target = OrderStatus(target)
        if target == OrderStatus.PAID:
            self.mark_paid()
        elif target == OrderStatus.FAILED:
            self.mark_failed(reason=detail)
        elif target == OrderStatus.CANCELLED:
            self.mark_cancelled(reason=detail)
        elif target == OrderStatus.REFUNDED:
            self.mark_refunded()
        elif target == OrderStatus.PROCESSING:
            self.mark_processing()
        else:
            self.mark_pending()

    @property
    def is_paid(self) -> bool:
        return self.status == OrderStatus.PAID

    @property
    def can_retry(self) -> bool:
        """Whether the buyer may start a new checkout for this order."""
        return self.status in (
            OrderStatus.FAILED,
            OrderStatus.CANCELLED,
            OrderStatus.PENDING,
        )


class OrderItem(UUIDPrimaryKeyMixin, BaseModel):
    """
    A line of an Order.

    total_price is computed as quantity * unit_price when the item is
    first saved and is not recomputed afterwards.
    """

    order = models.ForeignKey(
        "payments.Order",
        on_delete=models.CASCADE,
        related_name="items",
        help_text="Order this line belongs to",
    )

    # ==========================================================================
    # Product
    # ==========================================================================

    title = models.CharField(
        max_length=255,
        help_text="Product title shown at checkout",
    )

    description = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Product description",
    )

    product_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Merchant product identifier",
    )

    picture_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Product image shown at checkout",
    )

    category_id = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Gateway item category (e.g. electronics, others)",
    )

    # ==========================================================================
    # Pricing
    # ==========================================================================

    quantity = models.PositiveIntegerField(
        help_text="Units ordered",
    )

    unit_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Price per unit",
    )

    total_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="quantity * unit_price, fixed at creation",
    )

    position = models.PositiveIntegerField(
        default=0,
        help_text="Zero-based position of the line in the order",
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata supplied with the item",
    )

    class Meta:
        ordering = ["position", "created_at"]
        verbose_name = "Order Item"
        verbose_name_plural = "Order Items"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_item_quantity_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"OrderItem({self.title} x{self.quantity})"

    def save(self, *args, **kwargs):
        if self._state.adding:
            self.total_price = Decimal(str(self.unit_price)) * self.quantity
        super().save(*args, **kwargs)
