"""
Payment domain models.

This package contains the models for checkout and reconciliation:
- Order: Purchase order paid through a gateway checkout preference
- OrderItem: Line of an order
- Payment: Gateway payment reconciled against an order
"""

from payments.models.order import Order, OrderItem
from payments.models.payment import Payment

__all__ = [
    "Order",
    "OrderItem",
    "Payment",
]
