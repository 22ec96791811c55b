"""
Refund service for returning money on approved payments.

This module provides the RefundService class which handles full and
partial refunds following the two-phase pattern used for every gateway
write:

    1. Acquire a distributed lock on the payment
    2. Validate inside a transaction (row locked, nothing written)
    3. Call the gateway OUTSIDE the transaction
    4. Apply the result inside a second transaction

Usage:
    from payments.services import RefundService

    # Partial refund
    outcome = RefundService().refund("1234567890", amount=Decimal("40.00"))

    # Full refund of the remaining balance
    outcome = RefundService().refund("1234567890")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from django.conf import settings

from django_fsm import can_proceed

from core.services import BaseService

from payments.adapters import get_gateway_adapter
from payments.exceptions import (
    InvalidAmountError,
    InvalidStateTransitionError,
    LockAcquisitionError,
    PaymentNotFoundError,
)
from payments.locks import DistributedLock
from payments.repositories import OrderStore, PaymentStore
from payments.services.hooks import OrderTransitionHook
from payments.state_machines import OrderStatus, PaymentStatus

if TYPE_CHECKING:
    from payments.adapters import MercadoPagoAdapter, RefundResult
    from payments.models import Payment


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class RefundOutcome:
    """
    Result of a refund.

    Attributes:
        refund_id: Gateway refund id
        status: Gateway refund status ("approved" when not reported)
        amount: Amount refunded by this call
        payment_id: Gateway payment id
    """

    refund_id: str
    status: str
    amount: Decimal
    payment_id: str


# =============================================================================
# Refund Service
# =============================================================================


class RefundService(BaseService):
    """
    Service for refunding approved payments.

    Only APPROVED payments can be refunded. Partial refunds accumulate in
    Payment.refunded_amount; once it reaches the payment amount the
    payment moves to REFUNDED and its order follows.

    Safety Guarantees:
        - Distributed lock serializes refunds of the same payment
        - The gateway call never runs inside a transaction that could roll back
        - The idempotency key is derived from the refund state, so a retry
          after a timeout does not refund twice
        - 0 <= refunded_amount <= amount after every refund

    Args:
        gateway: Gateway adapter; defaults to the process-wide adapter
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
    # Refund Creation
    # =========================================================================

    def refund(self, payment_id: str, amount: Any = None) -> RefundOutcome:
        """
        Refund a payment in full or in part.

        Args:
            payment_id: Gateway payment id
            amount: Amount to refund, or None for the remaining balance

        Returns:
            RefundOutcome describing the gateway refund

        Raises:
            InvalidAmountError: Non-positive amount, or more than the refundable balance
            PaymentNotFoundError: No payment with this gateway id
            InvalidStateTransitionError: Payment is not APPROVED
            LockAcquisitionError: Another refund of this payment is in progress
            GatewayError: The gateway call failed (state unchanged)
        """
        payment_id = str(payment_id)
        amount = self._parse_amount(amount)

        self.logger.info(
            "Starting refund",
            extra={
                "payment_id": payment_id,
                "amount": str(amount) if amount is not None else None,
            },
        )

        try:
            with DistributedLock(
                f"refund:{payment_id}",
                ttl=settings.REFUND_LOCK_TTL_SECONDS,
                timeout=settings.REFUND_LOCK_TIMEOUT_SECONDS,
            ):
                return self._refund_with_lock(payment_id, amount)
        except LockAcquisitionError as e:
            self.logger.warning(
                "Failed to acquire lock for refund",
                extra={"payment_id": payment_id, "error": str(e)},
            )
            raise

    def _refund_with_lock(self, payment_id: str, amount: Decimal | None) -> RefundOutcome:
        # Phase 1: validate
        with self.atomic():
            payment = self._load_refundable(payment_id, amount)
            idempotency_key = (
                f"refund:{payment_id}:{payment.refunded_amount}:{amount or 'full'}"
            )

        # Phase 2: gateway call outside the transaction
        try:
            result = self.gateway.create_refund(
                payment_id, amount=amount, idempotency_key=idempotency_key
            )
        except Exception:
            self.logger.error(
                "Gateway refund failed",
                extra={"payment_id": payment_id},
                exc_info=True,
            )
            raise

        # Phase 3: apply
        with self.atomic():
            refunded = self._apply_refund(payment.order_id, payment_id, amount, result)

        return RefundOutcome(
            refund_id=result.id,
            status=result.status or "approved",
            amount=refunded,
            payment_id=payment_id,
        )

    def _parse_amount(self, amount: Any) -> Decimal | None:
        if amount is None:
            return None
        try:
            amount = Decimal(str(amount))
        except (InvalidOperation, ValueError) as e:
            raise InvalidAmountError(f"Invalid refund amount: {amount}") from e
        if not amount.is_finite():
            raise InvalidAmountError(
                f"Invalid refund amount: {amount}",
                details={"amount": str(amount)},
            )
        if amount <= 0:
            raise InvalidAmountError(
                "Refund amount must be positive",
                details={"amount": str(amount)},
            )
        return amount

    def _load_refundable(self, payment_id: str, amount: Decimal | None) -> Payment:
        payment = PaymentStore.load_for_update(payment_id)
        if payment is None:
            raise PaymentNotFoundError(
                f"Payment not found: {payment_id}",
                details={"payment_id": payment_id},
            )

        if payment.status != PaymentStatus.APPROVED:
            raise InvalidStateTransitionError(
                f"Only approved payments can be refunded (status: {payment.status})",
                details={"payment_id": payment_id, "status": payment.status},
            )

        refundable = payment.refundable_amount
        if amount is not None and amount > refundable:
            raise InvalidAmountError(
                f"Refund amount {amount} exceeds refundable balance {refundable}",
                details={
                    "payment_id": payment_id,
                    "amount": str(amount),
                    "refundable_amount": str(refundable),
                },
            )
        return payment

    def _apply_refund(
        self,
        order_id,
        payment_id: str,
        amount: Decimal | None,
        result: RefundResult,
    ) -> Decimal:
        # Same lock order as reconciliation: order row first
        order = OrderStore.load_for_update(order_id)
        payment = PaymentStore.load_for_update(payment_id)

        balance = payment.refundable_amount
        refunded = min(result.amount or amount or balance, balance)
        payment.refunded_amount = min(payment.refunded_amount + refunded, payment.amount)

        if payment.refunded_amount >= payment.amount and can_proceed(payment.mark_refunded):
            payment.mark_refunded()
        PaymentStore.save(payment)

        self.logger.info(
            "Refund applied",
            extra={
                "payment_id": payment_id,
                "refund_id": result.id,
                "refunded": str(refunded),
                "refunded_amount": str(payment.refunded_amount),
                "payment_status": payment.status,
            },
        )

        if payment.status == PaymentStatus.REFUNDED and order.status != OrderStatus.REFUNDED:
            previous_status = order.status
            order.mark_refunded()
            OrderStore.save(order)
            self.logger.info(
                "Order refunded",
                extra={"order_id": str(order.id), "previous_status": previous_status},
            )
            self.hook.on_transition(order, previous_status, OrderStatus.REFUNDED.value)

        return refunded

    # =========================================================================
    # Refund Queries
    # =========================================================================

    def list_refunds(self, payment_id: str) -> list[dict[str, Any]]:
        """Refunds of a payment as reported by the gateway."""
        return self.gateway.list_refunds(str(payment_id))

    def get_refund(self, payment_id: str, refund_id: str) -> dict[str, Any]:
        """One refund of a payment as reported by the gateway."""
        return self.gateway.get_refund(str(payment_id), str(refund_id))
