"""
Factory Boy factories for payment test data.

This module provides factories for the checkout models and a builder for
gateway payment records as MercadoPago returns them from
GET /v1/payments/{id}.

Usage:
    from payments.tests.factories import (
        OrderFactory,
        OrderItemFactory,
        PaymentFactory,
        gateway_payment_record,
    )

    # A pending order for 100.00 ARS
    order = OrderFactory()

    # An approved payment on that order
    payment = PaymentFactory(order=order, status=PaymentStatus.APPROVED)

    # The gateway's view of a payment for that order
    record = gateway_payment_record(order, payment_id="123", status="approved")
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import factory

from payments.models import Order, OrderItem, Payment
from payments.state_machines import PaymentStatus


class OrderFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating Order instances.

    Default creates a PENDING order for 100.00 ARS.

    Example:
        order = OrderFactory(total_amount=Decimal("25.00"))
    """

    class Meta:
        model = Order
        skip_postgeneration_save = True

    total_amount = Decimal("100.00")
    currency = "ARS"
    customer_email = factory.Sequence(lambda n: f"buyer{n}@example.com")
    customer_name = factory.Faker("name")
    # Note: status is managed by FSM, default is PENDING
    metadata = factory.LazyFunction(dict)


class OrderItemFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating OrderItem instances.

    total_price is computed by OrderItem.save().
    """

    class Meta:
        model = OrderItem
        skip_postgeneration_save = True

    order = factory.SubFactory(OrderFactory)
    title = factory.Sequence(lambda n: f"Product {n}")
    quantity = 1
    unit_price = Decimal("10.00")
    position = factory.Sequence(lambda n: n)
    metadata = factory.LazyFunction(dict)


class PaymentFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating Payment instances.

    Default creates an APPROVED payment for 100.00 ARS seen by one
    reconciliation.

    Example:
        payment = PaymentFactory(order=order, amount=Decimal("100.00"))
    """

    class Meta:
        model = Payment
        skip_postgeneration_save = True

    order = factory.SubFactory(OrderFactory)
    external_payment_id = factory.Sequence(lambda n: str(1_000_000 + n))
    status = PaymentStatus.APPROVED
    amount = Decimal("100.00")
    refunded_amount = Decimal("0.00")
    currency = "ARS"
    payment_method_id = "visa"
    payment_type_id = "credit_card"
    webhook_attempts = 1
    raw_payload = factory.LazyFunction(dict)


def gateway_payment_record(
    order: Order | None,
    payment_id: str | int = "123456789",
    status: str = "approved",
    **overrides: Any,
) -> dict[str, Any]:
    """
    Build a MercadoPago payment JSON object for an order.

    Pass order=None for a record without external_reference.
    """
    record: dict[str, Any] = {
        "id": payment_id,
        "status": status,
        "status_detail": "accredited" if status == "approved" else "",
        "external_reference": str(order.id) if order is not None else None,
        "transaction_amount": float(order.total_amount) if order is not None else 100.0,
        "transaction_amount_refunded": 0,
        "currency_id": "ARS",
        "payment_method_id": "visa",
        "payment_type_id": "credit_card",
        "description": "Checkout",
        "transaction_details": {"transaction_id": f"txn-{payment_id}"},
        "payer": {"id": "778899", "email": "payer@example.com"},
        "date_created": "2024-05-01T10:00:00.000-03:00",
        "date_approved": "2024-05-01T10:00:05.000-03:00" if status == "approved" else None,
        "date_last_updated": "2024-05-01T10:00:05.000-03:00",
    }
    record.update(overrides)
    return record
