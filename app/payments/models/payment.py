"""
Payment model for gateway payments reconciled against orders.

A Payment row mirrors one gateway payment. It is created and updated by
reconciliation when a notification (or an explicit verification) reports
the payment's current state, and by refunds issued from this service.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentStatus

    payment = Payment.objects.get(external_payment_id="1234567890")

    # Status reported by the gateway
    payment.record_status(PaymentStatus.APPROVED)
    payment.save()

    # Fully refunded from this service
    payment.mark_refunded()  # approved -> refunded
    payment.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models

from django_fsm import RETURN_VALUE, FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import PaymentStatus


class Payment(UUIDPrimaryKeyMixin, BaseModel):
    """
    A gateway payment attached to an Order.

    external_payment_id is the gateway's payment id and the idempotency
    key for reconciliation: each gateway payment maps to at most one row.

    Invariant: 0 <= refunded_amount <= amount (enforced by check constraints).

    Fields:
        external_payment_id: Gateway payment id
        order: Order referenced by the payment's external_reference
        status / previous_status: Mapped gateway status and the one before it
        amount / refunded_amount: Transaction and refunded amounts
        webhook_attempts: Number of reconciliations that changed the status
        last_webhook_at: When the status last changed through reconciliation
        raw_payload: Gateway record stored verbatim for audit
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    order = models.ForeignKey(
        "payments.Order",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Order this payment pays for",
    )

    # ==========================================================================
    # Gateway Identity & State
    # ==========================================================================

    external_payment_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="Gateway payment id",
    )

    status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        help_text="Current gateway payment status (managed by FSM)",
    )

    previous_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        null=True,
        blank=True,
        help_text="Status before the most recent change",
    )

    status_detail = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Gateway status detail (e.g. cc_rejected_other_reason)",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Transaction amount",
    )

    refunded_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Amount refunded so far",
    )

    currency = models.CharField(
        max_length=3,
        blank=True,
        default="",
        help_text="ISO 4217 currency code",
    )

    # ==========================================================================
    # Payment Method & Payer
    # ==========================================================================

    payment_method_id = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Gateway payment method (e.g. visa, account_money)",
    )

    payment_type_id = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Gateway payment type (e.g. credit_card, ticket)",
    )

    transaction_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Acquirer transaction id from transaction_details",
    )

    description = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Payment description reported by the gateway",
    )

    payer_email = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Payer email reported by the gateway",
    )

    payer_id = models.CharField(
        max_length=64,
        blank=True,
        default="",
        help_text="Gateway payer id",
    )

    # ==========================================================================
    # Reconciliation Tracking
    # ==========================================================================

    raw_payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Gateway payment record as last received",
    )

    webhook_attempts = models.PositiveIntegerField(
        default=0,
        help_text="Reconciliations that changed this payment's status",
    )

    last_webhook_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When reconciliation last changed this payment",
    )

    # ==========================================================================
    # Gateway Timestamps
    # ==========================================================================

    approved_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Gateway date_approved",
    )

    gateway_created_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Gateway date_created",
    )

    gateway_updated_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Gateway date_last_updated",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="payments_pa_order_i_3c9d2b_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(refunded_amount__gte=0),
                name="payment_refunded_amount_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(refunded_amount__lte=models.F("amount")),
                name="payment_refunded_amount_within_amount",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.external_payment_id}, {self.status}, {self.amount})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(field=status, source="*", target=RETURN_VALUE(*PaymentStatus.values))
    def record_status(self, new_status: PaymentStatus | str) -> str:
        """
        Move to the status the gateway reports.

        Transition: any -> new_status
        """
        self.previous_status = self.status
        return PaymentStatus(new_status).value

    @transition(field=status, source=PaymentStatus.APPROVED, target=PaymentStatus.REFUNDED)
    def mark_refunded(self):
        """
        Mark as fully refunded from this service.

        Transition: APPROVED -> REFUNDED
        """
        self.previous_status = self.status

    @property
    def refundable_amount(self) -> Decimal:
        """Amount that can still be refunded."""
        return self.amount - self.refunded_amount
