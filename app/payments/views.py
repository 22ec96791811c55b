"""
DRF views for the payments app.

This module provides API views for:
- Checkout preference creation
- Payment verification
- Order read projections and cancellation
- Refunds and refund read projections

The gateway notification and browser callback endpoints are plain Django
views in payments.webhooks.views.

Related files:
    - services/: ReconciliationService, RefundService, PreferenceService, OrderService
    - serializers.py: Request/response serializers
    - urls.py: URL routing

Endpoints:
    POST /api/v1/payments/create-preference/ - Create order and checkout preference
    GET  /api/v1/payments/verify/<payment_id>/ - Re-fetch and reconcile a payment
    GET  /api/v1/payments/order/<id>/ - Order with items and payments
    GET  /api/v1/payments/order/<id>/status/ - Order status projection
    GET  /api/v1/payments/order/<id>/payments/ - Payments of an order
    POST /api/v1/payments/order/<id>/cancel/ - Cancel an order
    POST /api/v1/payments/payment/<payment_id>/refund/ - Full or partial refund
    GET  /api/v1/payments/payment/<payment_id>/refunds/ - Refunds from the gateway
    GET  /api/v1/payments/payment/<payment_id>/refund/<refund_id>/ - One refund

Errors:
    Service exceptions are returned as {"error", "error_code", "details"}
    with the exception's http_status (400, 404, 409 or 502).
"""

from __future__ import annotations

import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError

from payments.serializers import (
    CancelOrderSerializer,
    CreatePreferenceSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    PaymentSerializer,
    PreferenceResponseSerializer,
    RefundOutcomeSerializer,
    RefundRequestSerializer,
)
from payments.services import OrderService, PreferenceService, RefundService

logger = logging.getLogger(__name__)


def error_response(error: BaseApplicationError) -> Response:
    """Translate a service exception into an API error response."""
    return Response(error.to_dict(), status=error.http_status)


class PaymentsAPIView(APIView):
    """
    Base view for payments endpoints.

    Service exceptions raised by a handler are turned into error
    responses; anything else propagates to DRF.
    """

    permission_classes = [AllowAny]

    def handle_exception(self, exc):
        if isinstance(exc, BaseApplicationError):
            logger.warning(
                f"{self.__class__.__name__} failed: {exc.message}",
                extra={"error_code": exc.error_code, "details": exc.details},
            )
            return error_response(exc)
        return super().handle_exception(exc)


# =============================================================================
# Checkout
# =============================================================================


class CreatePreferenceView(PaymentsAPIView):
    """
    Create an order and its checkout preference.

    POST /api/v1/payments/create-preference/

    Response:
        201 Created: {"preference_id", "init_point", "sandbox_init_point", "order_id"}
        400 Bad Request: Invalid request or non-positive total
        502 Bad Gateway: Gateway failed (no order persisted)
    """

    @extend_schema(
        operation_id="create_payment_preference",
        summary="Create checkout preference",
        description=(
            "Create a PENDING order with its items and a MercadoPago checkout "
            "preference. Redirect the buyer to init_point to pay."
        ),
        request=CreatePreferenceSerializer,
        responses={
            201: OpenApiResponse(
                response=PreferenceResponseSerializer,
                description="Order and preference created",
            ),
            400: OpenApiResponse(description="Validation error or non-positive total"),
            502: OpenApiResponse(description="Payment gateway error"),
        },
        tags=["Payments - Checkout"],
    )
    def post(self, request):
        serializer = CreatePreferenceSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        logger.info("Creating payment preference")
        outcome = PreferenceService().create_order(serializer.validated_data)

        return Response(
            PreferenceResponseSerializer(outcome).data,
            status=status.HTTP_201_CREATED,
        )


class VerifyPaymentView(PaymentsAPIView):
    """
    Re-fetch a payment from the gateway and reconcile it.

    GET /api/v1/payments/verify/<payment_id>/
    GET /api/v1/payments/verify/?payment_id=<payment_id>
    """

    @extend_schema(
        operation_id="verify_payment",
        summary="Verify payment",
        description="Fetch the payment from MercadoPago and reconcile the local order.",
        parameters=[
            OpenApiParameter(
                name="payment_id",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Gateway payment id (when not in the path)",
            ),
        ],
        responses={
            200: OpenApiResponse(response=PaymentSerializer, description="Reconciled payment"),
            400: OpenApiResponse(description="Missing payment id or external reference"),
            404: OpenApiResponse(description="Referenced order not found"),
            502: OpenApiResponse(description="Payment gateway error"),
        },
        tags=["Payments - Checkout"],
    )
    def get(self, request, payment_id=None):
        payment_id = payment_id or request.query_params.get("payment_id")
        if not payment_id:
            return Response(
                {"error": "payment_id is required"},
                status=status.HTTP_400_BAD_REQUEST,
            )

        payment = OrderService().verify_payment(payment_id)
        return Response(PaymentSerializer(payment).data)


# =============================================================================
# Orders
# =============================================================================


class OrderDetailView(PaymentsAPIView):
    """GET /api/v1/payments/order/<id>/"""

    @extend_schema(
        operation_id="get_order",
        summary="Get order",
        description="Order with its items and payments.",
        responses={
            200: OpenApiResponse(response=OrderSerializer, description="Order"),
            404: OpenApiResponse(description="Order not found"),
        },
        tags=["Payments - Orders"],
    )
    def get(self, request, order_id):
        order = OrderService().get_order(order_id)
        return Response(OrderSerializer(order).data)


class OrderStatusView(PaymentsAPIView):
    """GET /api/v1/payments/order/<id>/status/"""

    @extend_schema(
        operation_id="get_order_status",
        summary="Get order status",
        description="Order status with paid/retry flags and a buyer-facing message.",
        responses={
            200: OpenApiResponse(response=OrderStatusSerializer, description="Status"),
            404: OpenApiResponse(description="Order not found"),
        },
        tags=["Payments - Orders"],
    )
    def get(self, request, order_id):
        view = OrderService().get_order_status(order_id)
        return Response(OrderStatusSerializer(view).data)


class OrderPaymentsView(PaymentsAPIView):
    """GET /api/v1/payments/order/<id>/payments/"""

    @extend_schema(
        operation_id="list_order_payments",
        summary="List order payments",
        description="Payments of an order, newest first.",
        responses={
            200: OpenApiResponse(
                response=PaymentSerializer(many=True), description="Payments"
            ),
            404: OpenApiResponse(description="Order not found"),
        },
        tags=["Payments - Orders"],
    )
    def get(self, request, order_id):
        payments = OrderService().get_order_payments(order_id)
        return Response(PaymentSerializer(payments, many=True).data)


class CancelOrderView(PaymentsAPIView):
    """
    Cancel an order.

    POST /api/v1/payments/order/<id>/cancel/

    Paid orders must be refunded instead; cancelling twice is rejected.
    """

    @extend_schema(
        operation_id="cancel_order",
        summary="Cancel order",
        description="Cancel an order that is neither paid nor already cancelled.",
        request=CancelOrderSerializer,
        responses={
            200: OpenApiResponse(response=OrderSerializer, description="Cancelled order"),
            404: OpenApiResponse(description="Order not found"),
            409: OpenApiResponse(description="Order is paid or already cancelled"),
        },
        tags=["Payments - Orders"],
    )
    def post(self, request, order_id):
        serializer = CancelOrderSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        service = OrderService()
        service.cancel_order(order_id, reason=serializer.validated_data.get("reason"))
        return Response(OrderSerializer(service.get_order(order_id)).data)


# =============================================================================
# Refunds
# =============================================================================


class RefundPaymentView(PaymentsAPIView):
    """
    Refund a payment.

    POST /api/v1/payments/payment/<payment_id>/refund/

    Request body:
        {"amount": "40.00"}  # omit for a full refund
    """

    @extend_schema(
        operation_id="refund_payment",
        summary="Refund payment",
        description=(
            "Refund an approved payment in full or in part. Once the refunded "
            "amount reaches the payment amount the payment and its order are "
            "marked refunded."
        ),
        request=RefundRequestSerializer,
        responses={
            200: OpenApiResponse(response=RefundOutcomeSerializer, description="Refund created"),
            400: OpenApiResponse(description="Invalid amount or over the refundable balance"),
            404: OpenApiResponse(description="Payment not found"),
            409: OpenApiResponse(description="Payment not approved or refund in progress"),
            502: OpenApiResponse(description="Payment gateway error"),
        },
        tags=["Payments - Refunds"],
    )
    def post(self, request, payment_id):
        serializer = RefundRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        outcome = RefundService().refund(
            payment_id, amount=serializer.validated_data.get("amount")
        )
        return Response(RefundOutcomeSerializer(outcome).data)


class PaymentRefundsView(PaymentsAPIView):
    """GET /api/v1/payments/payment/<payment_id>/refunds/"""

    @extend_schema(
        operation_id="list_payment_refunds",
        summary="List payment refunds",
        description="Refunds of a payment as reported by MercadoPago.",
        responses={
            200: OpenApiResponse(response=OpenApiTypes.OBJECT, description="Refund list"),
            502: OpenApiResponse(description="Payment gateway error"),
        },
        tags=["Payments - Refunds"],
    )
    def get(self, request, payment_id):
        return Response(RefundService().list_refunds(payment_id))


class RefundDetailView(PaymentsAPIView):
    """GET /api/v1/payments/payment/<payment_id>/refund/<refund_id>/"""

    @extend_schema(
        operation_id="get_payment_refund",
        summary="Get payment refund",
        description="One refund of a payment as reported by MercadoPago.",
        responses={
            200: OpenApiResponse(response=OpenApiTypes.OBJECT, description="Refund"),
            502: OpenApiResponse(description="Payment gateway error"),
        },
        tags=["Payments - Refunds"],
    )
    def get(self, request, payment_id, refund_id):
        return Response(RefundService().get_refund(payment_id, refund_id))
