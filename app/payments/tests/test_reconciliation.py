"""
Tests for ReconciliationService.

The tests cover:
1. First notification inserts the payment and moves the order
2. Duplicate notifications are no-ops (idempotence)
3. Status changes count attempts and keep the previous status
4. The payment → order transition table for every gateway status
5. Missing references and unknown orders roll back cleanly
6. The post-transition hook runs inside the transaction
7. Row locks and a racing duplicate insert
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.db import IntegrityError
from django.db.models import QuerySet

from payments.adapters import GatewayPayment
from payments.exceptions import (
    OrderNotFoundError,
    PaymentValidationError,
    ReferenceMissingError,
)
from payments.models import Order, Payment
from payments.repositories import PaymentStore
from payments.services import ReconciliationService
from payments.state_machines import OrderStatus, PaymentStatus
from payments.tests.factories import OrderFactory, PaymentFactory, gateway_payment_record


@pytest.fixture
def service(recording_hook):
    return ReconciliationService(hook=recording_hook)


# =============================================================================
# First Notification
# =============================================================================


@pytest.mark.django_db
class TestInsert:
    """Tests for the first reconciliation of a payment."""

    def test_inserts_payment_and_marks_order_paid(self, service, pending_order, recording_hook):
        record = gateway_payment_record(pending_order, payment_id=123456, status="approved")

        payment = service.reconcile(record)

        assert payment.external_payment_id == "123456"
        assert payment.status == PaymentStatus.APPROVED
        assert payment.previous_status is None
        assert payment.webhook_attempts == 1
        assert payment.last_webhook_at is not None
        assert payment.amount == Decimal("100.00")
        assert payment.refunded_amount == Decimal("0.00")
        assert payment.transaction_id == "txn-123456"
        assert payment.payer_email == "payer@example.com"
        assert payment.raw_payload == record

        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.PAID
        assert pending_order.previous_status == OrderStatus.PENDING
        assert pending_order.paid_at is not None

        recording_hook.on_transition.assert_called_once()
        _, previous, new = recording_hook.on_transition.call_args[0]
        assert (previous, new) == (OrderStatus.PENDING, OrderStatus.PAID)

    def test_accepts_typed_record(self, service, pending_order):
        record = GatewayPayment.from_dict(
            gateway_payment_record(pending_order, payment_id="42", status="in_process")
        )

        payment = service.reconcile(record)

        assert payment.status == PaymentStatus.IN_PROCESS
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.PROCESSING

    def test_refunded_amount_taken_from_gateway(self, service, pending_order):
        record = gateway_payment_record(
            pending_order, status="approved", transaction_amount_refunded=30
        )

        payment = service.reconcile(record)

        assert payment.refunded_amount == Decimal("30.00")

    def test_unknown_status_stored_as_pending(self, service, pending_order, recording_hook):
        record = gateway_payment_record(pending_order, status="brand_new_status")

        payment = service.reconcile(record)

        assert payment.status == PaymentStatus.PENDING
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.PENDING
        recording_hook.on_transition.assert_not_called()


# =============================================================================
# Idempotence & Updates
# =============================================================================


@pytest.mark.django_db
class TestIdempotence:
    """Tests for duplicate and changed notifications."""

    def test_duplicate_notification_is_noop(self, service, pending_order, recording_hook):
        record = gateway_payment_record(pending_order, payment_id="777", status="approved")
        service.reconcile(record)
        before = Payment.objects.get(external_payment_id="777")
        pending_order.refresh_from_db()
        order_updated_at = pending_order.updated_at

        again = service.reconcile(record)

        after = Payment.objects.get(external_payment_id="777")
        assert again.pk == before.pk
        assert after.webhook_attempts == 1
        assert after.last_webhook_at == before.last_webhook_at
        assert after.updated_at == before.updated_at
        pending_order.refresh_from_db()
        assert pending_order.updated_at == order_updated_at
        assert recording_hook.on_transition.call_count == 1

    def test_status_change_increments_attempts(self, service, pending_order):
        service.reconcile(gateway_payment_record(pending_order, payment_id="9", status="pending"))
        first = Payment.objects.get(external_payment_id="9")

        payment = service.reconcile(
            gateway_payment_record(pending_order, payment_id="9", status="approved")
        )

        assert payment.webhook_attempts == 2
        assert payment.previous_status == PaymentStatus.PENDING
        assert payment.status == PaymentStatus.APPROVED
        assert payment.last_webhook_at >= first.last_webhook_at
        assert Payment.objects.filter(external_payment_id="9").count() == 1

    def test_update_refreshes_gateway_fields(self, service, pending_order):
        service.reconcile(gateway_payment_record(pending_order, payment_id="9", status="approved"))

        payment = service.reconcile(
            gateway_payment_record(
                pending_order,
                payment_id="9",
                status="refunded",
                status_detail="refunded",
                transaction_amount_refunded=100,
            )
        )

        assert payment.refunded_amount == Decimal("100.00")
        assert payment.status_detail == "refunded"
        assert payment.raw_payload["status"] == "refunded"
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.REFUNDED
        assert pending_order.refunded_at is not None

    def test_order_not_saved_when_status_unchanged(self, service, recording_hook):
        order = OrderFactory()
        order.mark_paid()
        order.save()
        PaymentFactory(order=order, external_payment_id="1", status=PaymentStatus.AUTHORIZED)

        service.reconcile(gateway_payment_record(order, payment_id="1", status="approved"))

        order.refresh_from_db()
        assert order.status == OrderStatus.PAID
        recording_hook.on_transition.assert_not_called()


# =============================================================================
# Transition Table
# =============================================================================


@pytest.mark.django_db
class TestTransitionTable:
    """Order outcome for each of the nine gateway statuses."""

    @pytest.mark.parametrize(
        "gateway_status,order_status,timestamp_field",
        [
            ("approved", OrderStatus.PAID, "paid_at"),
            ("authorized", OrderStatus.PAID, "paid_at"),
            ("rejected", OrderStatus.FAILED, None),
            ("cancelled", OrderStatus.CANCELLED, "cancelled_at"),
            ("refunded", OrderStatus.REFUNDED, "refunded_at"),
            ("charged_back", OrderStatus.REFUNDED, "refunded_at"),
            ("in_process", OrderStatus.PROCESSING, None),
            ("in_mediation", OrderStatus.PROCESSING, None),
        ],
    )
    def test_order_follows_payment(self, service, pending_order, gateway_status, order_status, timestamp_field):
        service.reconcile(gateway_payment_record(pending_order, status=gateway_status))

        pending_order.refresh_from_db()
        assert pending_order.status == order_status
        if timestamp_field:
            assert getattr(pending_order, timestamp_field) is not None

    def test_pending_keeps_order_pending(self, service, pending_order):
        payment = service.reconcile(gateway_payment_record(pending_order, status="pending"))

        assert payment.status == PaymentStatus.PENDING
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.PENDING
        assert pending_order.previous_status is None

    def test_rejected_uses_status_detail(self, service, pending_order):
        service.reconcile(
            gateway_payment_record(
                pending_order, status="rejected", status_detail="cc_rejected_bad_filled_date"
            )
        )

        pending_order.refresh_from_db()
        assert pending_order.failure_reason == "cc_rejected_bad_filled_date"

    def test_rejected_without_detail_defaults(self, service, pending_order):
        service.reconcile(gateway_payment_record(pending_order, status="rejected"))

        pending_order.refresh_from_db()
        assert pending_order.failure_reason == "rejected"

    def test_cancelled_without_detail_defaults(self, service, pending_order):
        service.reconcile(gateway_payment_record(pending_order, status="cancelled"))

        pending_order.refresh_from_db()
        assert pending_order.failure_reason == "cancelled by user"


# =============================================================================
# Failures
# =============================================================================


@pytest.mark.django_db
class TestFailures:
    """Tests for records that cannot be reconciled."""

    def test_missing_external_reference(self, service):
        record = gateway_payment_record(None, payment_id="55")

        with pytest.raises(ReferenceMissingError) as exc_info:
            service.reconcile(record)

        assert exc_info.value.error_code == "EXTERNAL_REFERENCE_MISSING"
        assert not Payment.objects.exists()

    def test_unknown_order(self, service, pending_order):
        record = gateway_payment_record(pending_order)
        record["external_reference"] = str(uuid.uuid4())

        with pytest.raises(OrderNotFoundError):
            service.reconcile(record)

        assert not Payment.objects.exists()

    def test_reference_that_is_not_a_uuid(self, service, pending_order):
        record = gateway_payment_record(pending_order, external_reference="order-17")

        with pytest.raises(OrderNotFoundError):
            service.reconcile(record)

    def test_record_without_id(self, service, pending_order):
        record = gateway_payment_record(pending_order)
        del record["id"]

        with pytest.raises(PaymentValidationError):
            service.reconcile(record)

    def test_hook_failure_rolls_back(self, pending_order):
        hook = MagicMock()
        hook.on_transition.side_effect = RuntimeError("inventory down")
        service = ReconciliationService(hook=hook)

        with pytest.raises(RuntimeError, match="inventory down"):
            service.reconcile(gateway_payment_record(pending_order, status="approved"))

        assert not Payment.objects.exists()
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.PENDING
        assert pending_order.paid_at is None


# =============================================================================
# Concurrency
# =============================================================================


@pytest.mark.django_db
class TestConcurrentNotifications:
    """Per-payment serialization of reconciliations."""

    def test_rows_locked_order_first(self, service, pending_order):
        locked = []
        original = QuerySet.select_for_update

        def record_lock(queryset, *args, **kwargs):
            locked.append(queryset.model)
            return original(queryset, *args, **kwargs)

        with patch.object(QuerySet, "select_for_update", autospec=True, side_effect=record_lock):
            service.reconcile(gateway_payment_record(pending_order, payment_id="777"))

        assert locked == [Order, Payment]

    def test_racing_insert_rolls_back(self, service, pending_order, recording_hook):
        service.reconcile(
            gateway_payment_record(pending_order, payment_id="777", status="pending")
        )
        recording_hook.reset_mock()

        # A second delivery that read "no row" before the first one committed
        with patch.object(PaymentStore, "load_for_update", return_value=None):
            with pytest.raises(IntegrityError):
                service.reconcile(
                    gateway_payment_record(pending_order, payment_id="777", status="approved")
                )

        payment = Payment.objects.get(external_payment_id="777")
        assert Payment.objects.count() == 1
        assert payment.status == PaymentStatus.PENDING
        assert payment.webhook_attempts == 1
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.PENDING
        assert pending_order.paid_at is None
        recording_hook.on_transition.assert_not_called()


# =============================================================================
# Verification
# =============================================================================


@pytest.mark.django_db
class TestVerify:
    """Tests for ReconciliationService.verify()."""

    def test_fetches_and_reconciles(self, pending_order, fake_gateway):
        fake_gateway.get_payment.return_value = GatewayPayment.from_dict(
            gateway_payment_record(pending_order, payment_id="321", status="approved")
        )

        payment = ReconciliationService(gateway=fake_gateway).verify(321)

        fake_gateway.get_payment.assert_called_once_with("321")
        assert payment.external_payment_id == "321"
        pending_order.refresh_from_db()
        assert pending_order.status == OrderStatus.PAID
