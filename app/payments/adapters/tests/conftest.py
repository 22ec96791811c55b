"""
Pytest fixtures for MercadoPago adapter tests.

The adapter talks to an httpx.MockTransport instead of the network. The
`mp_api` fixture records every request and answers from a queue of
canned responses.

Sections:
    - Mock API Fixtures
    - Test Data Fixtures
"""

import json

import httpx
import pytest

from payments.adapters import MercadoPagoAdapter

BASE_URL = "https://api.mercadopago.test"
ACCESS_TOKEN = "TEST-0000-access-token"


# =============================================================================
# Mock API Fixtures
# =============================================================================


class MockMercadoPagoAPI:
    """
    Canned MercadoPago API.

    Queue responses with `respond()` (status + JSON body) or `fail()`
    (an httpx exception); each request pops the next one.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._responses: list = []

    def respond(self, status_code=200, json_body=None, text=None):
        self._responses.append(("response", status_code, json_body, text))
        return self

    def fail(self, exception_class, message="boom"):
        self._responses.append(("error", exception_class, message, None))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        kind, first, second, third = self._responses.pop(0)
        if kind == "error":
            raise first(second, request=request)
        if third is not None:
            return httpx.Response(first, text=third)
        return httpx.Response(first, json=second)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self):
        return json.loads(self.last_request.content or b"null")


@pytest.fixture
def mp_api():
    return MockMercadoPagoAPI()


@pytest.fixture
def adapter(mp_api):
    """Adapter wired to the mock API."""
    gateway = MercadoPagoAdapter(
        access_token=ACCESS_TOKEN,
        base_url=BASE_URL,
        timeout=2.0,
        transport=httpx.MockTransport(mp_api.handler),
    )
    yield gateway
    gateway.close()


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def payment_json():
    """GET /v1/payments/{id} response for an approved card payment."""
    return {
        "id": 1234567890,
        "status": "approved",
        "status_detail": "accredited",
        "external_reference": "5b0c6a4e-58a4-4a4e-9d8a-6f1b3f0f0c11",
        "transaction_amount": 150.5,
        "transaction_amount_refunded": 0,
        "currency_id": "ARS",
        "payment_method_id": "master",
        "payment_type_id": "credit_card",
        "description": "Coffee mug",
        "transaction_details": {"transaction_id": "txn-1"},
        "payer": {"id": 4455, "email": "buyer@example.com"},
        "date_created": "2024-05-01T10:00:00.000-03:00",
        "date_approved": "2024-05-01T10:00:05.000-03:00",
        "date_last_updated": "2024-05-01T10:00:05.000-03:00",
    }
