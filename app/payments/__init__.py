"""
Payments app for MercadoPago checkout.

This app handles:
- Order creation with MercadoPago checkout preferences
- Payment notifications (webhooks) and their reconciliation
- Browser callbacks after checkout
- Full and partial refunds

Usage:
    from payments.services import PreferenceService, ReconciliationService

    # Create an order and its checkout preference
    outcome = PreferenceService().create_order(validated_data)

    # Apply a gateway payment record
    payment = ReconciliationService().reconcile(gateway_payment)
"""
