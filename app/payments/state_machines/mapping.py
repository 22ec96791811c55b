"""
Status mapping between the payment gateway, payments and orders.

Two total functions drive reconciliation:

    map_gateway_status("approved")        -> PaymentStatus.APPROVED
    map_gateway_status("something_new")   -> PaymentStatus.PENDING
    order_status_for(PaymentStatus.APPROVED) -> OrderStatus.PAID

Payment status          Order status
--------------          ------------
approved, authorized    paid
rejected                failed
cancelled               cancelled
refunded, charged_back  refunded
in_process, in_mediation processing
pending                 pending
"""

from __future__ import annotations

from payments.state_machines.states import OrderStatus, PaymentStatus

ORDER_STATUS_BY_PAYMENT_STATUS: dict[PaymentStatus, OrderStatus] = {
    PaymentStatus.APPROVED: OrderStatus.PAID,
    PaymentStatus.AUTHORIZED: OrderStatus.PAID,
    PaymentStatus.REJECTED: OrderStatus.FAILED,
    PaymentStatus.CANCELLED: OrderStatus.CANCELLED,
    PaymentStatus.REFUNDED: OrderStatus.REFUNDED,
    PaymentStatus.CHARGED_BACK: OrderStatus.REFUNDED,
    PaymentStatus.IN_PROCESS: OrderStatus.PROCESSING,
    PaymentStatus.IN_MEDIATION: OrderStatus.PROCESSING,
    PaymentStatus.PENDING: OrderStatus.PENDING,
}


def map_gateway_status(raw_status: str | None) -> PaymentStatus:
    """
    Map a gateway status string to a PaymentStatus.

    Unknown or missing values fold to PENDING instead of failing.
    """
    try:
        return PaymentStatus(raw_status)
    except ValueError:
        return PaymentStatus.PENDING


def order_status_for(payment_status: PaymentStatus | str) -> OrderStatus:
    """Return the order status implied by a payment status."""
    return ORDER_STATUS_BY_PAYMENT_STATUS.get(
        map_gateway_status(payment_status), OrderStatus.PENDING
    )


__all__ = [
    "ORDER_STATUS_BY_PAYMENT_STATUS",
    "map_gateway_status",
    "order_status_for",
]
