"""
Pytest fixtures for payment tests.

This module provides fixtures for orders and payments in various states,
a mocked Redis connection for refund locks and a fake gateway adapter.

Usage:
    def test_refund(approved_payment, fake_gateway, mock_redis_lock):
        fake_gateway.create_refund.return_value = RefundResult(...)
        RefundService(gateway=fake_gateway).refund(approved_payment.external_payment_id)
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from rest_framework.test import APIClient

from payments.adapters import (
    MercadoPagoAdapter,
    PreferenceResult,
    RefundResult,
    set_gateway_adapter,
)
from payments.state_machines import PaymentStatus
from payments.tests.factories import OrderFactory, OrderItemFactory, PaymentFactory


# =============================================================================
# Infrastructure Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture
def mock_redis_lock():
    """Mock Redis for distributed locking."""
    mock_redis = MagicMock()
    mock_redis.set.return_value = True
    mock_redis.get.return_value = None
    mock_redis.delete.return_value = 1
    mock_redis.eval.return_value = 1

    with patch("payments.locks.get_redis_connection", return_value=mock_redis):
        yield mock_redis


@pytest.fixture
def fake_gateway():
    """
    Gateway adapter double installed as the process-wide adapter.

    Defaults return a preference and an approved full refund; tests
    override return values as needed.
    """
    gateway = MagicMock(spec=MercadoPagoAdapter)
    gateway.create_preference.return_value = PreferenceResult(
        id="pref-123",
        init_point="https://www.mercadopago.com.ar/checkout/v1/redirect?pref_id=pref-123",
        sandbox_init_point="https://sandbox.mercadopago.com.ar/checkout/v1/redirect?pref_id=pref-123",
        raw_response={},
    )
    gateway.create_refund.return_value = RefundResult(
        id="refund-1",
        status="approved",
        amount=None,
        payment_id="",
        raw_response={},
    )
    set_gateway_adapter(gateway)
    yield gateway
    set_gateway_adapter(None)


@pytest.fixture
def recording_hook():
    """Post-transition hook that records its calls."""
    return MagicMock()


# =============================================================================
# Order Fixtures
# =============================================================================


@pytest.fixture
def pending_order(db):
    """Create a pending order for 100.00 with one item."""
    order = OrderFactory(total_amount=Decimal("100.00"))
    OrderItemFactory(order=order, quantity=1, unit_price=Decimal("100.00"), position=0)
    return order


@pytest.fixture
def paid_order(db):
    """Create a paid order."""
    order = OrderFactory()
    order.mark_paid()
    order.save()
    return order


@pytest.fixture
def failed_order(db):
    """Create an order whose payment was rejected."""
    order = OrderFactory()
    order.mark_failed(reason="cc_rejected_other_reason")
    order.save()
    return order


@pytest.fixture
def cancelled_order(db):
    """Create a cancelled order."""
    order = OrderFactory()
    order.cancel()
    order.save()
    return order


# =============================================================================
# Payment Fixtures
# =============================================================================


@pytest.fixture
def approved_payment(db):
    """Create an approved 100.00 payment on a paid order."""
    order = OrderFactory(total_amount=Decimal("100.00"))
    order.mark_paid()
    order.save()
    return PaymentFactory(
        order=order,
        status=PaymentStatus.APPROVED,
        amount=Decimal("100.00"),
    )


@pytest.fixture
def pending_payment(db, pending_order):
    """Create a pending payment on a pending order."""
    return PaymentFactory(order=pending_order, status=PaymentStatus.PENDING)

