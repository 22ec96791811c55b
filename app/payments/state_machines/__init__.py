"""
State machine enums and helpers for order and payment models.

This module defines the state enums used with django-fsm and the
gateway → payment → order status mapping used by reconciliation.
"""

from payments.state_machines.mapping import (
    ORDER_STATUS_BY_PAYMENT_STATUS,
    map_gateway_status,
    order_status_for,
)
from payments.state_machines.states import OrderStatus, PaymentStatus

__all__ = [
    "ORDER_STATUS_BY_PAYMENT_STATUS",
    "OrderStatus",
    "PaymentStatus",
    "map_gateway_status",
    "order_status_for",
]
