"""
Tests for RefundService.

The tests cover:
1. Partial refunds accumulate and keep the payment approved
2. Reaching the full amount refunds the payment and cascades to the order
3. Validation (unknown payment, wrong status, bad amounts) changes nothing
4. Gateway failures leave state untouched
5. The per-payment distributed lock
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from payments.adapters import RefundResult
from payments.exceptions import (
    GatewayUnavailableError,
    InvalidAmountError,
    InvalidStateTransitionError,
    LockAcquisitionError,
    PaymentNotFoundError,
)
from payments.services import RefundService
from payments.state_machines import OrderStatus, PaymentStatus
from payments.tests.factories import PaymentFactory


def refund_result(refund_id="refund-1", amount=None, status="approved"):
    return RefundResult(
        id=refund_id,
        status=status,
        amount=amount,
        payment_id="",
        raw_response={},
    )


@pytest.fixture
def service(fake_gateway, recording_hook, mock_redis_lock):
    return RefundService(gateway=fake_gateway, hook=recording_hook)


# =============================================================================
# Refund Completion
# =============================================================================


@pytest.mark.django_db
class TestRefundCompletion:
    """Partial then full refund of a 100.00 payment."""

    def test_partial_then_remaining_refund(self, service, approved_payment, fake_gateway, recording_hook):
        payment_id = approved_payment.external_payment_id

        fake_gateway.create_refund.return_value = refund_result("r-1", Decimal("40.00"))
        first = service.refund(payment_id, amount=Decimal("40.00"))

        approved_payment.refresh_from_db()
        assert first.amount == Decimal("40.00")
        assert approved_payment.refunded_amount == Decimal("40.00")
        assert approved_payment.status == PaymentStatus.APPROVED
        recording_hook.on_transition.assert_not_called()

        fake_gateway.create_refund.return_value = refund_result("r-2", Decimal("60.00"))
        second = service.refund(payment_id, amount=Decimal("60.00"))

        approved_payment.refresh_from_db()
        order = approved_payment.order
        order.refresh_from_db()
        assert second.refund_id == "r-2"
        assert approved_payment.refunded_amount == Decimal("100.00")
        assert approved_payment.status == PaymentStatus.REFUNDED
        assert approved_payment.previous_status == PaymentStatus.APPROVED
        assert order.status == OrderStatus.REFUNDED
        assert order.previous_status == OrderStatus.PAID
        assert order.refunded_at is not None
        recording_hook.on_transition.assert_called_once()

    def test_full_refund_without_amount(self, service, approved_payment, fake_gateway):
        outcome = service.refund(approved_payment.external_payment_id)

        _, kwargs = fake_gateway.create_refund.call_args
        assert kwargs["amount"] is None
        assert outcome.amount == Decimal("100.00")
        assert outcome.status == "approved"
        assert outcome.payment_id == approved_payment.external_payment_id

        approved_payment.refresh_from_db()
        assert approved_payment.refunded_amount == Decimal("100.00")
        assert approved_payment.status == PaymentStatus.REFUNDED

    def test_remaining_refund_reports_balance(self, service, approved_payment, fake_gateway):
        payment_id = approved_payment.external_payment_id
        fake_gateway.create_refund.return_value = refund_result("r-1", Decimal("40.00"))
        service.refund(payment_id, amount=Decimal("40.00"))

        fake_gateway.create_refund.return_value = refund_result("r-2", amount=None)
        outcome = service.refund(payment_id)

        assert outcome.amount == Decimal("60.00")
        approved_payment.refresh_from_db()
        assert approved_payment.refunded_amount == Decimal("100.00")
        assert approved_payment.status == PaymentStatus.REFUNDED

    def test_missing_gateway_status_reported_as_approved(self, service, approved_payment, fake_gateway):
        fake_gateway.create_refund.return_value = refund_result(status=None)

        outcome = service.refund(approved_payment.external_payment_id, amount="10.00")

        assert outcome.status == "approved"
        assert outcome.amount == Decimal("10.00")

    def test_refunded_amount_capped_at_amount(self, service, approved_payment, fake_gateway):
        fake_gateway.create_refund.return_value = refund_result(amount=Decimal("150.00"))

        service.refund(approved_payment.external_payment_id, amount=Decimal("100.00"))

        approved_payment.refresh_from_db()
        assert approved_payment.refunded_amount == Decimal("100.00")

    def test_idempotency_key_reflects_refund_state(self, service, approved_payment, fake_gateway):
        fake_gateway.create_refund.return_value = refund_result(amount=Decimal("40.00"))
        service.refund(approved_payment.external_payment_id, amount=Decimal("40.00"))
        service.refund(approved_payment.external_payment_id, amount=Decimal("40.00"))

        keys = [c.kwargs["idempotency_key"] for c in fake_gateway.create_refund.call_args_list]
        assert len(set(keys)) == 2


# =============================================================================
# Validation
# =============================================================================


@pytest.mark.django_db
class TestRefundValidation:
    """Refunds rejected before the gateway is called."""

    def test_unknown_payment(self, service, fake_gateway):
        with pytest.raises(PaymentNotFoundError):
            service.refund("does-not-exist")

        fake_gateway.create_refund.assert_not_called()

    @pytest.mark.parametrize(
        "status",
        [PaymentStatus.PENDING, PaymentStatus.REJECTED, PaymentStatus.REFUNDED],
    )
    def test_payment_must_be_approved(self, service, fake_gateway, status):
        payment = PaymentFactory(status=status)

        with pytest.raises(InvalidStateTransitionError):
            service.refund(payment.external_payment_id, amount=Decimal("1.00"))

        fake_gateway.create_refund.assert_not_called()

    def test_amount_over_balance_leaves_state_unchanged(self, service, fake_gateway):
        payment = PaymentFactory(
            amount=Decimal("100.00"), refunded_amount=Decimal("40.00")
        )

        with pytest.raises(InvalidAmountError) as exc_info:
            service.refund(payment.external_payment_id, amount=Decimal("60.01"))

        assert exc_info.value.details["refundable_amount"] == "60.00"
        fake_gateway.create_refund.assert_not_called()
        payment.refresh_from_db()
        assert payment.refunded_amount == Decimal("40.00")
        assert payment.status == PaymentStatus.APPROVED

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00"), "abc", "NaN", "Infinity"])
    def test_amount_must_be_positive_number(self, service, approved_payment, fake_gateway, amount):
        with pytest.raises(InvalidAmountError):
            service.refund(approved_payment.external_payment_id, amount=amount)

        fake_gateway.create_refund.assert_not_called()


# =============================================================================
# Gateway & Locking
# =============================================================================


@pytest.mark.django_db
class TestRefundFailures:
    """Gateway errors and lock contention."""

    def test_gateway_error_leaves_state_unchanged(self, service, approved_payment, fake_gateway):
        fake_gateway.create_refund.side_effect = GatewayUnavailableError("down")

        with pytest.raises(GatewayUnavailableError):
            service.refund(approved_payment.external_payment_id, amount=Decimal("10.00"))

        approved_payment.refresh_from_db()
        assert approved_payment.refunded_amount == Decimal("0.00")
        assert approved_payment.status == PaymentStatus.APPROVED

    def test_lock_is_taken_per_payment(self, service, approved_payment, mock_redis_lock):
        service.refund(approved_payment.external_payment_id, amount=Decimal("10.00"))

        args, _ = mock_redis_lock.set.call_args
        assert args[0] == f"lock:refund:{approved_payment.external_payment_id}"
        mock_redis_lock.eval.assert_called_once()

    def test_lock_contention_raises(self, service, approved_payment, fake_gateway, mock_redis_lock, settings):
        settings.REFUND_LOCK_TIMEOUT_SECONDS = 0.01
        mock_redis_lock.set.return_value = False

        with pytest.raises(LockAcquisitionError):
            service.refund(approved_payment.external_payment_id)

        fake_gateway.create_refund.assert_not_called()


# =============================================================================
# Refund Queries
# =============================================================================


class TestRefundQueries:
    """list_refunds / get_refund proxy the gateway."""

    def test_list_refunds(self, fake_gateway):
        fake_gateway.list_refunds.return_value = [{"id": 1}, {"id": 2}]

        refunds = RefundService(gateway=fake_gateway).list_refunds(123)

        assert refunds == [{"id": 1}, {"id": 2}]
        fake_gateway.list_refunds.assert_called_once_with("123")

    def test_get_refund(self, fake_gateway):
        fake_gateway.get_refund.return_value = {"id": 9, "amount": 10.0}

        refund = RefundService(gateway=fake_gateway).get_refund("123", 9)

        assert refund["id"] == 9
        fake_gateway.get_refund.assert_called_once_with("123", "9")
