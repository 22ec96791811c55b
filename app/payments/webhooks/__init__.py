"""
Webhook handling for MercadoPago notifications.

This module provides the notification endpoint, the checkout callback
endpoint and the x-signature validator they rely on.

Usage:
    # In urls.py
    from payments.webhooks import mercadopago_webhook, payment_callback

    urlpatterns = [
        path("webhook/", mercadopago_webhook, name="webhook"),
    ]
"""

from payments.webhooks.signature import WebhookSignatureValidator, parse_signature
from payments.webhooks.views import mercadopago_webhook, payment_callback

__all__ = [
    "WebhookSignatureValidator",
    "mercadopago_webhook",
    "parse_signature",
    "payment_callback",
]
