"""
State enums for order and payment models.

These are Django TextChoices for database storage and admin integration,
used by the FSM fields on Order and Payment.

State Machines Overview:

Order States:
    pending → processing → paid → refunded
    pending/processing → failed / cancelled
    Any state follows the most recently reconciled payment status
    (see payments.state_machines.mapping). Explicit cancellation is
    refused for paid and cancelled orders.

Payment States:
    Mirrors the gateway's payment status values. A payment moves between
    them as notifications arrive; a local refund moves APPROVED → REFUNDED.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    """
    States for the Order model lifecycle.

    Timestamp fields are stamped when the matching state is first entered:
        PAID → paid_at
        CANCELLED → cancelled_at
        REFUNDED → refunded_at
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PAID = "paid", "Paid"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"
    FAILED = "failed", "Failed"


class PaymentStatus(models.TextChoices):
    """
    States for the Payment model, one per gateway payment status.

    Unrecognized gateway values are stored as PENDING.
    """

    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    AUTHORIZED = "authorized", "Authorized"
    IN_PROCESS = "in_process", "In Process"
    IN_MEDIATION = "in_mediation", "In Mediation"
    REJECTED = "rejected", "Rejected"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"
    CHARGED_BACK = "charged_back", "Charged Back"


__all__ = [
    "OrderStatus",
    "PaymentStatus",
]
