"""
Webhook and checkout callback views for MercadoPago.

This module provides the plain Django endpoints the gateway and the
buyer's browser call:

    mercadopago_webhook  POST  Gateway notifications (always answers 200)
    payment_callback     GET   Browser return from checkout (always 302)

The webhook acknowledges every notification, including failed ones, so
the gateway does not retry indefinitely. Failures are logged and echoed
in the "error" field of the acknowledgement.

Usage:
    # In urls.py
    from payments.webhooks.views import mercadopago_webhook, payment_callback

    urlpatterns = [
        path("webhook/", mercadopago_webhook, name="webhook"),
        path("callback/<str:kind>/", payment_callback, name="callback"),
    ]
"""

from __future__ import annotations

import json
import logging
from urllib.parse import urlencode

from django.conf import settings
from django.http import Http404, HttpRequest, HttpResponseRedirect, JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from core.exceptions import BaseApplicationError

from payments.exceptions import PaymentValidationError, SignatureInvalidError
from payments.services import OrderService, ReconciliationService
from payments.webhooks.signature import WebhookSignatureValidator

logger = logging.getLogger(__name__)

CALLBACK_KINDS = ("success", "failure", "pending")


def _error_message(error: Exception) -> str:
    if isinstance(error, BaseApplicationError):
        return error.message
    return str(error) or type(error).__name__


def _acknowledge(error: str | None = None) -> JsonResponse:
    body = {"received": True, "timestamp": timezone.now().isoformat()}
    if error is not None:
        body["error"] = error
    return JsonResponse(body, status=200)


def _check_signature(request: HttpRequest, notification: dict) -> None:
    """
    Verify the notification signature when the gateway sent one.

    Raises:
        SignatureInvalidError: Signature mismatch or stale timestamp
    """
    signature = request.headers.get("x-signature")
    request_id = request.headers.get("x-request-id")

    if not (signature and request_id):
        if settings.MERCADOPAGO_WEBHOOK_SECRET:
            # Still processed: the payment is re-fetched from the gateway
            logger.error(
                "Unsigned webhook received while MERCADOPAGO_WEBHOOK_SECRET is set",
                extra={"has_signature": bool(signature), "has_request_id": bool(request_id)},
            )
        else:
            logger.warning(
                "Webhook received without signature - consider configuring "
                "MERCADOPAGO_WEBHOOK_SECRET"
            )
        return

    data_id = (notification.get("data") or {}).get("id") or notification.get("id")
    validator = WebhookSignatureValidator()

    if not validator.validate(signature, request_id, str(data_id)):
        logger.error("Invalid webhook signature - possible forgery attempt")
        raise SignatureInvalidError(
            "Invalid webhook signature",
            details={"request_id": request_id},
        )

    max_age = settings.MERCADOPAGO_WEBHOOK_MAX_AGE_SECONDS
    if max_age is not None and validator.is_too_old(
        validator.extract_timestamp(signature), max_age
    ):
        raise SignatureInvalidError(
            "Webhook notification is too old",
            details={"request_id": request_id, "max_age_seconds": max_age},
        )


@csrf_exempt
@require_POST
def mercadopago_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive a MercadoPago notification.

    Body:
        {"id": ..., "type": "payment", "action": "payment.updated", "data": {"id": "123"}}

    Processing:
    1. Verify x-signature / x-request-id when both headers are present
    2. type "payment": fetch the payment from the gateway and reconcile it
    3. type "merchant_order": log only
    4. Any other type: ignored

    Returns:
        200 {"received": true, "timestamp": ...} and "error" on failure
    """
    try:
        try:
            notification = json.loads(request.body or b"{}")
        except ValueError as e:
            raise PaymentValidationError("Invalid JSON payload") from e
        if not isinstance(notification, dict):
            raise PaymentValidationError("Notification body must be a JSON object")

        notification_type = notification.get("type")
        data_id = (notification.get("data") or {}).get("id")
        logger.info(
            "Webhook received",
            extra={
                "notification_id": notification.get("id"),
                "type": notification_type,
                "action": notification.get("action"),
                "data_id": data_id,
            },
        )

        _check_signature(request, notification)

        if notification_type == "payment":
            if not data_id:
                raise PaymentValidationError("Payment notification without data.id")
            ReconciliationService().verify(str(data_id))
        elif notification_type == "merchant_order":
            logger.info("Merchant order notification", extra={"data_id": data_id})
        else:
            logger.info(
                "Ignoring notification type",
                extra={"type": notification_type},
            )
    except Exception as e:
        logger.error(
            f"Error processing webhook: {_error_message(e)}",
            exc_info=not isinstance(e, BaseApplicationError),
        )
        return _acknowledge(error=_error_message(e))

    return _acknowledge()


@require_GET
def payment_callback(request: HttpRequest, kind: str) -> HttpResponseRedirect:
    """
    Browser return from checkout.

    Verifies the payment (when payment_id is given), reads the order
    status and redirects to the frontend:

        success/pending -> /payment/<kind>?order_id=&payment_id=&status=
        failure         -> /payment/failure?order_id=&status=&message=
        error           -> /payment/error?message=
    """
    if kind not in CALLBACK_KINDS:
        raise Http404(f"Unknown callback: {kind}")

    frontend_url = settings.FRONTEND_URL.rstrip("/")
    payment_id = request.GET.get("payment_id")
    order_id = request.GET.get("external_reference")

    logger.info(
        f"Checkout {kind} callback received",
        extra={
            "payment_id": payment_id,
            "status": request.GET.get("status"),
            "order_id": order_id,
        },
    )

    try:
        service = OrderService()
        if payment_id:
            service.verify_payment(payment_id)
        view = service.get_order_status(order_id)
    except Exception as e:
        message = _error_message(e)
        logger.error(
            f"Error in {kind} callback: {message}",
            exc_info=not isinstance(e, BaseApplicationError),
        )
        query = urlencode({"message": message})
        return HttpResponseRedirect(f"{frontend_url}/payment/error?{query}")

    if kind == "failure":
        params = {"order_id": order_id, "status": view.status, "message": view.message}
    else:
        params = {"order_id": order_id, "payment_id": payment_id or "", "status": view.status}

    return HttpResponseRedirect(f"{frontend_url}/payment/{kind}?{urlencode(params)}")
