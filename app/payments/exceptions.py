"""
Payment-specific exceptions for checkout, reconciliation and refunds.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentValidationError - Invalid input to a payment operation
    │   ├── ReferenceMissingError - Gateway payment without external_reference
    │   └── InvalidAmountError - Non-positive total, refund above balance
    └── SignatureInvalidError - Webhook authenticity check failed

    OrderNotFoundError / PaymentNotFoundError - Lookup failures (NotFoundError)

    InvalidStateTransitionError - Operation not allowed in current state (ConflictError)
    LockAcquisitionError - Distributed lock timeout (ConflictError)

    GatewayError - Base for payment gateway failures (ExternalServiceError)
    ├── GatewayRequestError - Gateway rejected the request (permanent)
    ├── GatewayUnavailableError - Network or 5xx failure (transient, retry)
    └── GatewayTimeoutError - Request timed out (transient, retry)

Usage:
    from payments.exceptions import InvalidStateTransitionError

    raise InvalidStateTransitionError(
        "Cannot cancel a paid order. Request a refund instead.",
        details={"order_id": str(order.id), "current_status": order.status},
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for payment operations that fail on their input.

    Example:
        try:
            PreferenceService().create_order(request)
        except PaymentError as e:
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "PAYMENT_ERROR"
    http_status: int = 400


class PaymentValidationError(PaymentError):
    """
    Raised when payment data fails validation in the service layer.
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class ReferenceMissingError(PaymentValidationError):
    """
    Raised when a gateway payment record carries no external_reference.

    Without it the payment cannot be correlated to a local order.
    """

    default_error_code: str = "EXTERNAL_REFERENCE_MISSING"


class InvalidAmountError(PaymentValidationError):
    """
    Raised for amounts that break order or refund accounting.

    Use for:
    - Order totals that are zero or negative
    - Refunds larger than the remaining refundable balance
    - Refunds of zero or negative amounts
    """

    default_error_code: str = "INVALID_AMOUNT"


class SignatureInvalidError(PaymentError):
    """
    Raised when a webhook notification fails the HMAC or freshness check.

    The webhook view still answers 200 so the gateway does not retry
    forged or replayed deliveries.
    """

    default_error_code: str = "INVALID_SIGNATURE"
    http_status: int = 401


# =============================================================================
# Lookup Exceptions
# =============================================================================


class OrderNotFoundError(NotFoundError):
    """Raised when no order matches the given id or external reference."""

    default_error_code: str = "ORDER_NOT_FOUND"


class PaymentNotFoundError(NotFoundError):
    """Raised when no payment matches the given gateway payment id."""

    default_error_code: str = "PAYMENT_NOT_FOUND"


# =============================================================================
# State & Concurrency Exceptions
# =============================================================================


class InvalidStateTransitionError(ConflictError):
    """
    Raised when an operation is not allowed in the current state.

    Use for:
    - Refunding a payment that is not approved
    - Cancelling an order that is paid or already cancelled

    Example:
        if not can_proceed(order.cancel):
            raise InvalidStateTransitionError(
                "Order is already cancelled",
                details={"current_status": order.status, "target_status": "cancelled"},
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Another process holds the lock and it was not released within
    the timeout period.

    Example:
        raise LockAcquisitionError(
            "Failed to acquire lock 'refund:123' within 10s",
            details={"key": "lock:refund:123", "timeout": 10},
        )
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


# =============================================================================
# Gateway Exceptions
# =============================================================================


class GatewayError(ExternalServiceError):
    """
    Base exception for payment gateway failures.

    Attributes:
        status_code: HTTP status returned by the gateway, if any
        is_retryable: Whether the same call may succeed if repeated

    Example:
        try:
            adapter.get_payment(payment_id)
        except GatewayError as e:
            if e.is_retryable:
                ...
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code


class GatewayRequestError(GatewayError):
    """
    The gateway rejected the request (4xx).

    Covers unknown payment ids, refunds the gateway refuses and invalid
    credentials. Retrying the same request will not help.
    """

    default_error_code: str = "GATEWAY_REQUEST_REJECTED"
    is_retryable: bool = False


class GatewayUnavailableError(GatewayError):
    """
    The gateway could not be reached or answered with a server error.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True


class GatewayTimeoutError(GatewayError):
    """
    The gateway call exceeded MERCADOPAGO_API_TIMEOUT_SECONDS.

    IMPORTANT: The operation may have succeeded on the gateway's side.
    Refund calls carry an idempotency key so a retry does not refund twice.
    """

    default_error_code: str = "GATEWAY_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    "PaymentError",
    "PaymentValidationError",
    "ReferenceMissingError",
    "InvalidAmountError",
    "SignatureInvalidError",
    "OrderNotFoundError",
    "PaymentNotFoundError",
    "InvalidStateTransitionError",
    "LockAcquisitionError",
    "GatewayError",
    "GatewayRequestError",
    "GatewayUnavailableError",
    "GatewayTimeoutError",
]
