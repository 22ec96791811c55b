"""
Post-transition extension point for order status changes.

Services call the hook after an order changes status and the new status
has been saved, still inside the transaction. Inventory release,
customer emails and accounting exports belong in a subclass; the default
implementation only logs.

Usage:
    class InventoryHook(OrderTransitionHook):
        def on_transition(self, order, previous_status, new_status):
            if new_status == OrderStatus.CANCELLED:
                release_stock(order)

    ReconciliationService(hook=InventoryHook())

Note:
    A hook that raises rolls back the transaction it runs in.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from payments.models import Order

logger = logging.getLogger(__name__)


class OrderTransitionHook:
    """No-op hook invoked on every order status change."""

    def on_transition(
        self,
        order: Order,
        previous_status: str | None,
        new_status: str,
    ) -> None:
        logger.debug(
            "Order transitioned",
            extra={
                "order_id": str(order.id),
                "previous_status": previous_status,
                "new_status": new_status,
            },
        )
