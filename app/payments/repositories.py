"""
Persistence layer for orders and payments.

OrderStore and PaymentStore are the unit-of-work boundary the services
talk to. Each public service operation opens one transaction
(BaseService.atomic) and calls these stores inside it:

    load_for_update  - read a row and hold its lock until commit
    insert           - create a new row
    save             - write back a row loaded in the same transaction

Locks come from select_for_update(), so on Postgres concurrent
reconciliations of the same payment serialize on the order row and
then on the payment row.

Usage:
    from payments.repositories import OrderStore, PaymentStore

    with transaction.atomic():
        order = OrderStore.load_for_update(order_id)
        payment = PaymentStore.load_for_update(external_payment_id)
        ...
        PaymentStore.save(payment)
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from payments.exceptions import OrderNotFoundError
from payments.models import Order, OrderItem, Payment

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any


def _parse_order_id(order_id: Any) -> uuid.UUID | None:
    if isinstance(order_id, uuid.UUID):
        return order_id
    try:
        return uuid.UUID(str(order_id))
    except (TypeError, ValueError):
        return None


class OrderStore:
    """Data access for Order and OrderItem rows."""

    @staticmethod
    def get(order_id: Any) -> Order:
        """
        Load an order with its items and payments.

        Raises:
            OrderNotFoundError: Unknown id, or an id that is not a UUID
        """
        pk = _parse_order_id(order_id)
        order = (
            Order.objects.prefetch_related("items", "payments").filter(pk=pk).first()
            if pk is not None
            else None
        )
        if order is None:
            raise OrderNotFoundError(
                f"Order not found: {order_id}",
                details={"order_id": str(order_id)},
            )
        return order

    @staticmethod
    def load_for_update(order_id: Any) -> Order:
        """
        Load an order and lock its row until the transaction ends.

        Must be called inside transaction.atomic().

        Raises:
            OrderNotFoundError: Unknown id, or an id that is not a UUID
        """
        pk = _parse_order_id(order_id)
        order = (
            Order.objects.select_for_update().filter(pk=pk).first()
            if pk is not None
            else None
        )
        if order is None:
            raise OrderNotFoundError(
                f"Order not found: {order_id}",
                details={"order_id": str(order_id)},
            )
        return order

    @staticmethod
    def insert(items: Iterable[dict[str, Any]], **fields: Any) -> Order:
        """
        Create an order and its items.

        Args:
            items: Item field dicts (title, quantity, unit_price, ...) in order
            **fields: Order fields

        Returns:
            The saved Order
        """
        order = Order.objects.create(**fields)
        for position, item in enumerate(items):
            OrderItem.objects.create(order=order, position=position, **item)
        return order

    @staticmethod
    def save(order: Order, update_fields: list[str] | None = None) -> Order:
        order.save(update_fields=update_fields)
        return order


class PaymentStore:
    """Data access for Payment rows."""

    @staticmethod
    def get(external_payment_id: str) -> Payment | None:
        return (
            Payment.objects.select_related("order")
            .filter(external_payment_id=str(external_payment_id))
            .first()
        )

    @staticmethod
    def load_for_update(external_payment_id: str) -> Payment | None:
        """
        Load a payment by gateway id and lock its row.

        Must be called inside transaction.atomic().

        Returns:
            The Payment, or None if the gateway id is not known yet
        """
        return (
            Payment.objects.select_for_update()
            .filter(external_payment_id=str(external_payment_id))
            .first()
        )

    @staticmethod
    def insert(**fields: Any) -> Payment:
        return Payment.objects.create(**fields)

    @staticmethod
    def save(payment: Payment) -> Payment:
        payment.save()
        return payment

    @staticmethod
    def for_order(order_id: Any) -> list[Payment]:
        """Payments of an order, newest first."""
        pk = _parse_order_id(order_id)
        if pk is None:
            return []
        return list(Payment.objects.filter(order_id=pk).order_by("-created_at"))


__all__ = [
    "OrderStore",
    "PaymentStore",
]
