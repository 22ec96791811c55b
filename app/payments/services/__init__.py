"""
Payment services for coordinating order and payment operations.

This module provides:
- ReconciliationService: Applies gateway payment records to orders
- RefundService: Processes full and partial refunds
- PreferenceService: Creates orders and their checkout preferences
- OrderService: Order read projections, cancellation and verification
- OrderTransitionHook: No-op extension point for order status changes

Usage:
    from payments.services import ReconciliationService

    payment = ReconciliationService().reconcile(gateway_payment)

    # Refund part of an approved payment
    from payments.services import RefundService

    outcome = RefundService().refund("1234567890", amount=Decimal("40.00"))

    # Create an order and its checkout preference
    from payments.services import PreferenceService

    outcome = PreferenceService().create_order(validated_data)
"""

from payments.services.hooks import OrderTransitionHook
from payments.services.order_service import (
    OrderService,
    OrderStatusView,
    status_message,
)
from payments.services.preference_service import (
    MAX_AMOUNT,
    PreferenceOutcome,
    PreferenceService,
    build_items,
    build_payer,
    order_total,
    parse_phone,
)
from payments.services.reconciliation_service import ReconciliationService
from payments.services.refund_service import RefundOutcome, RefundService

__all__ = [
    "MAX_AMOUNT",
    "OrderService",
    "OrderStatusView",
    "OrderTransitionHook",
    "PreferenceOutcome",
    "PreferenceService",
    "ReconciliationService",
    "RefundOutcome",
    "RefundService",
    "build_items",
    "build_payer",
    "order_total",
    "parse_phone",
    "status_message",
]
