"""
Pytest fixtures for webhook tests.

Provides a request factory and a helper that signs notifications the way
MercadoPago does. Order and gateway fixtures are shared with
payments/tests/conftest.py.
"""

import hashlib
import hmac
import json
import time

import pytest
from django.test import RequestFactory

from payments.tests.conftest import (  # noqa: F401
    fake_gateway,
    pending_order,
)

WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture
def rf():
    """Request factory for creating test requests."""
    return RequestFactory()


@pytest.fixture
def webhook_secret(settings):
    """Configure the webhook secret for signature validation."""
    settings.MERCADOPAGO_WEBHOOK_SECRET = WEBHOOK_SECRET
    return WEBHOOK_SECRET


def sign(data_id, request_id, ts=None, secret=WEBHOOK_SECRET):
    """Build an x-signature header for a notification."""
    ts = str(ts if ts is not None else int(time.time()))
    manifest = f"id={data_id};request-id={request_id};ts={ts}"
    digest = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return f"ts={ts},v1={digest}"


def make_webhook_request(rf, payload, signature=None, request_id=None, raw_body=None):
    """Create a POST request to the webhook endpoint."""
    headers = {}
    if signature is not None:
        headers["HTTP_X_SIGNATURE"] = signature
    if request_id is not None:
        headers["HTTP_X_REQUEST_ID"] = request_id
    return rf.post(
        "/api/v1/payments/webhook/",
        data=raw_body if raw_body is not None else json.dumps(payload),
        content_type="application/json",
        **headers,
    )


def payment_notification(data_id="123456"):
    return {
        "id": 987654,
        "type": "payment",
        "action": "payment.updated",
        "live_mode": False,
        "data": {"id": data_id},
    }
