"""
Payment adapters for external services.

This module provides the adapter for the MercadoPago REST API.
All gateway calls should go through it to ensure consistent error
handling, timeouts, idempotency, and observability.

Usage:
    from payments.adapters import get_gateway_adapter

    gateway = get_gateway_adapter()
    payment = gateway.get_payment("1234567890")
"""

from payments.adapters.mercadopago_adapter import (
    GatewayPayment,
    MercadoPagoAdapter,
    PreferenceResult,
    RefundResult,
    get_gateway_adapter,
    set_gateway_adapter,
)

__all__ = [
    "GatewayPayment",
    "MercadoPagoAdapter",
    "PreferenceResult",
    "RefundResult",
    "get_gateway_adapter",
    "set_gateway_adapter",
]
