"""
Order service for order read projections, cancellation and verification.

Usage:
    from payments.services import OrderService

    service = OrderService()
    view = service.get_order_status(order_id)
    if view.can_retry:
        ...

    service.cancel_order(order_id, reason="Changed my mind")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from core.services import BaseService

from payments.adapters import get_gateway_adapter
from payments.exceptions import InvalidStateTransitionError
from payments.repositories import OrderStore, PaymentStore
from payments.services.hooks import OrderTransitionHook
from payments.services.reconciliation_service import ReconciliationService
from payments.state_machines import OrderStatus

if TYPE_CHECKING:
    from payments.adapters import MercadoPagoAdapter
    from payments.models import Order, Payment


STATUS_MESSAGES = {
    OrderStatus.PAID: "Payment approved",
    OrderStatus.PENDING: "Payment pending approval",
    OrderStatus.PROCESSING: "Payment is being verified",
    OrderStatus.CANCELLED: "Order cancelled",
    OrderStatus.REFUNDED: "Payment refunded",
}


def status_message(order: Order) -> str:
    """Buyer-facing description of an order's status."""
    if order.status == OrderStatus.FAILED:
        return f"Payment rejected: {order.failure_reason or 'unknown'}"
    return STATUS_MESSAGES.get(order.status, "")


@dataclass
class OrderStatusView:
    """
    Status projection of an order.

    Attributes:
        order: The order
        payments: Its payments, newest first
        status: Current order status
        is_paid: Whether the order is paid
        can_retry: Whether the buyer may start a new checkout
        message: Buyer-facing status description
    """

    order: Order
    payments: list[Payment]
    status: str
    is_paid: bool
    can_retry: bool
    message: str


class OrderService(BaseService):
    """
    Service for reading, cancelling and verifying orders.

    Args:
        gateway: Gateway adapter used by verify_payment()
        hook: Post-transition hook; defaults to the no-op OrderTransitionHook
        logger: Logger; defaults to one named after this class
    """

    def __init__(
        self,
        gateway: MercadoPagoAdapter | None = None,
        hook: OrderTransitionHook | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(logger=logger)
        self._gateway = gateway
        self.hook = hook or OrderTransitionHook()

    @property
    def gateway(self) -> MercadoPagoAdapter:
        return self._gateway or get_gateway_adapter()

    # =========================================================================
    # Read Projections
    # =========================================================================

    def get_order(self, order_id: Any) -> Order:
        """
        Raises:
            OrderNotFoundError: Unknown id, or an id that is not a UUID
        """
        return OrderStore.get(order_id)

    def get_order_payments(self, order_id: Any) -> list[Payment]:
        """Payments of an existing order, newest first."""
        order = OrderStore.get(order_id)
        return PaymentStore.for_order(order.id)

    def get_order_status(self, order_id: Any) -> OrderStatusView:
        order = OrderStore.get(order_id)
        return OrderStatusView(
            order=order,
            payments=PaymentStore.for_order(order.id),
            status=order.status,
            is_paid=order.is_paid,
            can_retry=order.can_retry,
            message=status_message(order),
        )

    # =========================================================================
    # Commands
    # =========================================================================

    def cancel_order(self, order_id: Any, reason: str | None = None) -> Order:
        """
        Cancel an order that is not paid and not already cancelled.

        Raises:
            OrderNotFoundError: Unknown order
            InvalidStateTransitionError: Order is paid or already cancelled
        """
        with self.atomic():
            order = OrderStore.load_for_update(order_id)

            if order.status == OrderStatus.PAID:
                raise InvalidStateTransitionError(
                    "Cannot cancel a paid order. Request a refund instead.",
                    details={"order_id": str(order.id), "status": order.status},
                )
            if order.status == OrderStatus.CANCELLED:
                raise InvalidStateTransitionError(
                    "Order is already cancelled",
                    details={"order_id": str(order.id), "status": order.status},
                )

            previous_status = order.status
            order.cancel(reason=reason)
            OrderStore.save(order)
            self.hook.on_transition(order, previous_status, order.status)

        self.logger.info(
            "Order cancelled",
            extra={
                "order_id": str(order.id),
                "previous_status": previous_status,
                "reason": order.failure_reason,
            },
        )
        return order

    def verify_payment(self, payment_id: str) -> Payment:
        """
        Re-fetch a payment from the gateway and reconcile it.

        Raises:
            GatewayError: The gateway call failed
            ReferenceMissingError / OrderNotFoundError: See ReconciliationService
        """
        self.logger.info("Verifying payment", extra={"payment_id": str(payment_id)})
        reconciler = ReconciliationService(
            gateway=self.gateway, hook=self.hook, logger=self.logger
        )
        return reconciler.verify(payment_id)
