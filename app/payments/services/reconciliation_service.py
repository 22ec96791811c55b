"""
Reconciliation service for applying gateway payment records.

This module provides the ReconciliationService which folds a gateway
payment record into local state. Notifications arrive duplicated, out of
order and concurrently, so every call is one idempotent transaction:

    1. Lock the referenced Order, then the Payment (if it exists)
    2. Map the gateway status to a PaymentStatus
    3. If the stored status already matches, return without writing
    4. Insert or update the Payment, counting the attempt
    5. Move the Order to the status implied by the payment, then run the hook

Any exception rolls back the whole transaction and propagates unchanged.

Usage:
    from payments.services import ReconciliationService

    gateway_payment = gateway.get_payment(payment_id)
    payment = ReconciliationService().reconcile(gateway_payment)
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.utils import timezone

from core.services import BaseService

from payments.adapters import GatewayPayment, get_gateway_adapter
from payments.exceptions import PaymentValidationError, ReferenceMissingError
from payments.repositories import OrderStore, PaymentStore
from payments.services.hooks import OrderTransitionHook
from payments.state_machines import map_gateway_status, order_status_for

if TYPE_CHECKING:
    from payments.adapters import MercadoPagoAdapter
    from payments.models import Order, Payment


class ReconciliationService(BaseService):
    """
    Service that reconciles gateway payment records with orders.

    Args:
        gateway: Adapter used by verify(); defaults to the process-wide adapter
        hook: Post-transition hook; defaults to the no-op OrderTransitionHook
        logger: Logger; defaults to one named after this class

    Concurrency:
        Two reconciliations of the same payment serialize on the order row
        lock taken first, so neither can observe "no payment yet" while the
        other inserts. The unique external_payment_id constraint backs this
        up on databases without row locks.
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
    # Public API
    # =========================================================================

    def reconcile(self, record: GatewayPayment | dict[str, Any]) -> Payment:
        """
        Apply a gateway payment record.

        Args:
            record: GatewayPayment, or the raw gateway JSON object

        Returns:
            The stored Payment (unchanged if the status had not changed)

        Raises:
            PaymentValidationError: The record has no id
            ReferenceMissingError: The record has no external_reference
            OrderNotFoundError: The referenced order does not exist
        """
        record = self._coerce_record(record)

        if not record.external_reference:
            self.logger.error(
                "Payment record has no external reference",
                extra={"payment_id": record.id, "status": record.status},
            )
            raise ReferenceMissingError(
                f"Payment {record.id} has no external_reference",
                details={"payment_id": record.id},
            )

        target_status = map_gateway_status(record.status)
        log_context = {
            "payment_id": record.id,
            "order_id": record.external_reference,
            "gateway_status": record.status,
            "target_status": target_status.value,
        }
        self.logger.info("Reconciling payment", extra=log_context)

        with self.atomic():
            order = OrderStore.load_for_update(record.external_reference)
            payment = PaymentStore.load_for_update(record.id)

            if payment is not None and payment.status == target_status:
                self.logger.info(
                    "Payment status unchanged, skipping",
                    extra={**log_context, "webhook_attempts": payment.webhook_attempts},
                )
                return payment

            now = timezone.now()
            if payment is None:
                payment = self._insert_payment(order, record, target_status, now)
            else:
                payment = self._update_payment(payment, record, target_status, now)

            self._apply_to_order(order, payment, record.status_detail)

        self.logger.info(
            "Payment reconciled",
            extra={
                **log_context,
                "previous_status": payment.previous_status,
                "webhook_attempts": payment.webhook_attempts,
                "order_status": order.status,
            },
        )
        return payment

    def verify(self, payment_id: str) -> Payment:
        """Fetch a payment from the gateway and reconcile it."""
        return self.reconcile(self.gateway.get_payment(str(payment_id)))

    # =========================================================================
    # Steps
    # =========================================================================

    def _coerce_record(self, record: GatewayPayment | dict[str, Any]) -> GatewayPayment:
        if isinstance(record, GatewayPayment):
            return record
        try:
            return GatewayPayment.from_dict(record)
        except ValueError as e:
            raise PaymentValidationError(str(e)) from e

    def _insert_payment(self, order, record, target_status, now) -> Payment:
        amount = record.transaction_amount or Decimal("0.00")
        refunded = min(record.transaction_amount_refunded or Decimal("0.00"), amount)

        return PaymentStore.insert(
            order=order,
            external_payment_id=record.id,
            status=target_status.value,
            status_detail=record.status_detail,
            amount=amount,
            refunded_amount=refunded,
            currency=record.currency_id,
            payment_method_id=record.payment_method_id,
            payment_type_id=record.payment_type_id,
            transaction_id=record.transaction_id,
            description=record.description,
            payer_email=record.payer_email,
            payer_id=record.payer_id,
            raw_payload=record.raw,
            webhook_attempts=1,
            last_webhook_at=now,
            approved_at=record.date_approved,
            gateway_created_at=record.date_created,
            gateway_updated_at=record.date_last_updated,
        )

    def _update_payment(self, payment, record, target_status, now) -> Payment:
        payment.record_status(target_status)

        if record.transaction_amount is not None:
            payment.amount = record.transaction_amount
        if record.transaction_amount_refunded is not None:
            payment.refunded_amount = min(
                record.transaction_amount_refunded, payment.amount
            )
        payment.currency = record.currency_id or payment.currency
        payment.payment_method_id = record.payment_method_id or payment.payment_method_id
        payment.payment_type_id = record.payment_type_id or payment.payment_type_id
        payment.transaction_id = record.transaction_id or payment.transaction_id
        payment.status_detail = record.status_detail
        payment.raw_payload = record.raw
        payment.approved_at = record.date_approved or payment.approved_at
        payment.gateway_updated_at = record.date_last_updated or payment.gateway_updated_at
        payment.webhook_attempts += 1
        payment.last_webhook_at = now

        return PaymentStore.save(payment)

    def _apply_to_order(self, order: Order, payment: Payment, detail: str) -> None:
        new_status = order_status_for(payment.status)
        if order.status == new_status:
            return

        previous_status = order.status
        order.transition_to(new_status, detail=detail or None)
        OrderStore.save(order)

        self.logger.info(
            "Order status changed",
            extra={
                "order_id": str(order.id),
                "previous_status": previous_status,
                "new_status": new_status.value,
                "payment_id": payment.external_payment_id,
            },
        )
        self.hook.on_transition(order, previous_status, new_status.value)
