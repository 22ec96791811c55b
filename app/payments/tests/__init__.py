"""
Tests for payments app.

This package contains test modules for:
- test_order_models.py: Order/Payment transitions, status mapping, constraints
- test_reconciliation.py: Webhook reconciliation and idempotence
- test_refunds.py: Partial and full refunds, locking
- test_preferences.py: Order creation and the checkout preference body
- test_order_service.py: Order projections and cancellation
- test_views.py: API endpoint tests

Usage:
    pytest payments/tests/
    pytest payments/tests/test_reconciliation.py
"""
