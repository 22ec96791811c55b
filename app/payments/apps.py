"""
Payments app configuration.

This app provides the checkout and payment reconciliation backend:
- Orders and their MercadoPago checkout preferences
- Webhook-driven payment reconciliation
- Refunds
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
