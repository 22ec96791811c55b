"""
MercadoPago API adapter for checkout, payment and refund operations.

This module provides the MercadoPagoAdapter class which encapsulates all
MercadoPago REST API interactions. All gateway calls go through this
adapter to ensure consistent error handling, timeouts and observability.

Features:
- One httpx client per adapter with bearer auth and a fixed timeout
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Idempotency keys on refund creation
- Typed records for the fields the services read, raw JSON kept alongside

Configuration (via settings):
- MERCADOPAGO_ACCESS_TOKEN: API access token
- MERCADOPAGO_API_BASE_URL: API root (default: https://api.mercadopago.com)
- MERCADOPAGO_API_TIMEOUT_SECONDS: Call timeout (default: 5)

Usage:
    from payments.adapters import get_gateway_adapter

    gateway = get_gateway_adapter()

    preference = gateway.create_preference({"items": [...], ...})
    payment = gateway.get_payment("1234567890")
    refund = gateway.create_refund("1234567890", amount=Decimal("40.00"))
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
from django.conf import settings
from django.utils.dateparse import parse_datetime

from payments.exceptions import (
    GatewayError,
    GatewayRequestError,
    GatewayTimeoutError,
    GatewayUnavailableError,
)

# =============================================================================
# Data Types
# =============================================================================


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _to_datetime(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        return None


def _to_str(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass
class GatewayPayment:
    """
    Payment record returned by GET /v1/payments/{id}.

    Only the fields reconciliation reads are typed; the full response is
    kept in `raw` and stored verbatim on the Payment row.

    Attributes:
        id: Gateway payment id (always a string)
        status: Gateway status string (approved, rejected, ...)
        status_detail: Finer-grained reason (cc_rejected_other_reason, ...)
        external_reference: Local order id set when the preference was created
        transaction_amount: Charged amount
        transaction_amount_refunded: Amount refunded at the gateway
        raw: Full gateway response
    """

    id: str
    status: str | None = None
    status_detail: str = ""
    external_reference: str | None = None
    transaction_amount: Decimal | None = None
    transaction_amount_refunded: Decimal | None = None
    currency_id: str = ""
    payment_method_id: str = ""
    payment_type_id: str = ""
    transaction_id: str = ""
    description: str = ""
    payer_email: str = ""
    payer_id: str = ""
    date_approved: datetime | None = None
    date_created: datetime | None = None
    date_last_updated: datetime | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GatewayPayment:
        """
        Build a record from a gateway payment JSON object.

        Raises:
            ValueError: If the object has no id
        """
        if data.get("id") in (None, ""):
            raise ValueError("Gateway payment record has no id")

        payer = data.get("payer") or {}
        details = data.get("transaction_details") or {}
        external_reference = data.get("external_reference")

        return cls(
            id=str(data["id"]),
            status=data.get("status"),
            status_detail=_to_str(data.get("status_detail")),
            external_reference=str(external_reference) if external_reference else None,
            transaction_amount=_to_decimal(data.get("transaction_amount")),
            transaction_amount_refunded=_to_decimal(
                data.get("transaction_amount_refunded")
            ),
            currency_id=_to_str(data.get("currency_id")),
            payment_method_id=_to_str(data.get("payment_method_id")),
            payment_type_id=_to_str(data.get("payment_type_id")),
            transaction_id=_to_str(details.get("transaction_id")),
            description=_to_str(data.get("description")),
            payer_email=_to_str(payer.get("email")),
            payer_id=_to_str(payer.get("id")),
            date_approved=_to_datetime(data.get("date_approved")),
            date_created=_to_datetime(data.get("date_created")),
            date_last_updated=_to_datetime(data.get("date_last_updated")),
            raw=dict(data),
        )


@dataclass
class PreferenceResult:
    """
    Result from POST /checkout/preferences.

    Attributes:
        id: Preference id
        init_point: Checkout URL for live credentials
        sandbox_init_point: Checkout URL for test credentials
        raw_response: Full gateway response
    """

    id: str
    init_point: str
    sandbox_init_point: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class RefundResult:
    """
    Result from POST /v1/payments/{id}/refunds.

    Attributes:
        id: Refund id
        status: Refund status (approved, in_process, rejected, ...)
        amount: Refunded amount reported by the gateway
        payment_id: Refunded gateway payment id
        raw_response: Full gateway response
    """

    id: str
    status: str | None
    amount: Decimal | None
    payment_id: str
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Adapter
# =============================================================================


class MercadoPagoAdapter:
    """
    Adapter for MercadoPago REST API operations.

    Thread-safe: httpx.Client may be shared between request threads.

    Args:
        access_token: API access token (default: settings.MERCADOPAGO_ACCESS_TOKEN)
        base_url: API root (default: settings.MERCADOPAGO_API_BASE_URL)
        timeout: Seconds per call (default: settings.MERCADOPAGO_API_TIMEOUT_SECONDS)
        transport: Optional httpx transport (tests pass httpx.MockTransport)

    Usage:
        adapter = MercadoPagoAdapter()
        payment = adapter.get_payment("1234567890")
    """

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.access_token = (
            access_token
            if access_token is not None
            else settings.MERCADOPAGO_ACCESS_TOKEN
        )
        self.base_url = base_url or settings.MERCADOPAGO_API_BASE_URL
        self.timeout = (
            timeout if timeout is not None else settings.MERCADOPAGO_API_TIMEOUT_SECONDS
        )
        self._transport = transport
        self._client: httpx.Client | None = None

    # =========================================================================
    # Configuration
    # =========================================================================

    def _get_client(self) -> httpx.Client:
        """Create the HTTP client on first use."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.access_token}",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    # =========================================================================
    # Core Operations
    # =========================================================================

    def create_preference(self, preference: dict[str, Any]) -> PreferenceResult:
        """
        Create a checkout preference.

        Args:
            preference: Preference body (items, payer, back_urls, ...)

        Returns:
            PreferenceResult with the preference id and checkout URLs

        Raises:
            GatewayRequestError: Preference rejected by the gateway
            GatewayUnavailableError: Gateway unreachable or failing
            GatewayTimeoutError: Request timed out
        """
        log_context = {
            "operation": "create_preference",
            "external_reference": preference.get("external_reference"),
            "item_count": len(preference.get("items") or []),
        }
        data = self._request("POST", "/checkout/preferences", log_context, json=preference)

        return PreferenceResult(
            id=str(data["id"]),
            init_point=data.get("init_point", ""),
            sandbox_init_point=data.get("sandbox_init_point"),
            raw_response=data,
        )

    def get_payment(self, payment_id: str) -> GatewayPayment:
        """
        Retrieve a payment by gateway id.

        Raises:
            GatewayRequestError: Unknown payment id or malformed record
            GatewayUnavailableError: Gateway unreachable or failing
            GatewayTimeoutError: Request timed out
        """
        log_context = {"operation": "get_payment", "payment_id": str(payment_id)}
        data = self._request("GET", f"/v1/payments/{payment_id}", log_context)

        try:
            return GatewayPayment.from_dict(data)
        except ValueError as e:
            self.get_logger().error(
                "Malformed payment record from gateway",
                extra={**log_context, "error": str(e)},
            )
            raise GatewayRequestError(
                f"Malformed payment record for {payment_id}",
                details={"payment_id": str(payment_id)},
            ) from e

    def create_refund(
        self,
        payment_id: str,
        amount: Decimal | None = None,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        """
        Refund a payment in full (amount=None) or in part.

        Args:
            payment_id: Gateway payment id
            amount: Partial amount, or None for a full refund
            idempotency_key: Sent as X-Idempotency-Key (generated if omitted)

        Raises:
            GatewayRequestError: Refund refused by the gateway
            GatewayUnavailableError: Gateway unreachable or failing
            GatewayTimeoutError: Request timed out
        """
        idempotency_key = idempotency_key or str(uuid.uuid4())
        log_context = {
            "operation": "create_refund",
            "payment_id": str(payment_id),
            "amount": str(amount) if amount is not None else None,
            "idempotency_key": idempotency_key,
        }
        body = {"amount": float(amount)} if amount is not None else {}
        data = self._request(
            "POST",
            f"/v1/payments/{payment_id}/refunds",
            log_context,
            json=body,
            headers={"X-Idempotency-Key": idempotency_key},
        )

        return RefundResult(
            id=str(data["id"]),
            status=data.get("status"),
            amount=_to_decimal(data.get("amount")),
            payment_id=str(data.get("payment_id") or payment_id),
            raw_response=data,
        )

    def list_refunds(self, payment_id: str) -> list[dict[str, Any]]:
        """List the refunds of a payment, as returned by the gateway."""
        log_context = {"operation": "list_refunds", "payment_id": str(payment_id)}
        data = self._request("GET", f"/v1/payments/{payment_id}/refunds", log_context)

        if isinstance(data, dict):
            return list(data.get("results") or [])
        return list(data or [])

    def get_refund(self, payment_id: str, refund_id: str) -> dict[str, Any]:
        """Retrieve one refund of a payment."""
        log_context = {
            "operation": "get_refund",
            "payment_id": str(payment_id),
            "refund_id": str(refund_id),
        }
        return self._request(
            "GET", f"/v1/payments/{payment_id}/refunds/{refund_id}", log_context
        )

    # =========================================================================
    # Transport
    # =========================================================================

    def _request(
        self,
        method: str,
        path: str,
        log_context: dict[str, Any],
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Send one request and return the decoded JSON body."""
        logger = self.get_logger()
        start_time = time.time()
        logger.info("Starting MercadoPago operation", extra=log_context)

        try:
            response = self._get_client().request(
                method, path, json=json, headers=headers
            )
            response.raise_for_status()
            data = response.json()
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self._handle_gateway_error(e, log_context, duration_ms)
            raise

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "MercadoPago operation completed",
            extra={**log_context, "duration_ms": duration_ms},
        )
        return data

    # =========================================================================
    # Error Handling
    # =========================================================================

    def _handle_gateway_error(
        self,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate httpx exceptions to domain exceptions.

        Raises:
            GatewayTimeoutError: Request timed out
            GatewayUnavailableError: Connection failure, 429 or 5xx
            GatewayRequestError: Other 4xx or an undecodable body
        """
        logger = self.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, httpx.TimeoutException):
            logger.error("MercadoPago request timed out", extra=log_context)
            raise GatewayTimeoutError(
                f"Payment gateway timed out after {self.timeout}s",
                details={"operation": log_context.get("operation")},
            ) from error

        if isinstance(error, httpx.HTTPStatusError):
            status_code = error.response.status_code
            message = _error_message(error.response)
            log_context = {**log_context, "status_code": status_code}

            if status_code == 429 or status_code >= 500:
                logger.error(
                    "MercadoPago service error",
                    extra={**log_context, "gateway_message": message},
                )
                raise GatewayUnavailableError(
                    f"Payment gateway error: {message}",
                    status_code=status_code,
                ) from error

            if status_code in (401, 403):
                logger.critical(
                    "MercadoPago authentication failed - check access token",
                    extra=log_context,
                )
            else:
                logger.warning(
                    "MercadoPago rejected request",
                    extra={**log_context, "gateway_message": message},
                )
            raise GatewayRequestError(
                f"Payment gateway rejected the request: {message}",
                status_code=status_code,
            ) from error

        if isinstance(error, httpx.TransportError):
            logger.error(
                "Connection error to MercadoPago",
                extra=log_context,
                exc_info=True,
            )
            raise GatewayUnavailableError(
                "Could not connect to the payment gateway. Please retry.",
            ) from error

        if isinstance(error, ValueError):
            logger.error("Undecodable MercadoPago response", extra=log_context)
            raise GatewayRequestError(
                "Payment gateway returned an invalid response",
            ) from error

        if isinstance(error, GatewayError):
            raise error

        logger.error(
            f"Unexpected MercadoPago error: {type(error).__name__}",
            extra=log_context,
            exc_info=True,
        )
        raise GatewayError(f"Unexpected payment gateway error: {error}") from error


def _error_message(response: httpx.Response) -> str:
    """Best-effort extraction of the gateway's error message."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


# =============================================================================
# Adapter Registry
# =============================================================================

_adapter: MercadoPagoAdapter | None = None


def get_gateway_adapter() -> MercadoPagoAdapter:
    """Return the process-wide adapter, creating it from settings on first use."""
    global _adapter
    if _adapter is None:
        _adapter = MercadoPagoAdapter()
    return _adapter


def set_gateway_adapter(adapter: MercadoPagoAdapter | None) -> None:
    """
    Replace the process-wide adapter.

    Tests install a fake; passing None resets to a settings-built adapter.
    """
    global _adapter
    _adapter = adapter
