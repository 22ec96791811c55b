"""
URL configuration for the payments app.

Routes:
    - POST create-preference/ - Create order and checkout preference
    - POST webhook/ - MercadoPago notification endpoint
    - GET callback/<success|failure|pending>/ - Browser return from checkout
    - GET verify/<payment_id>/ and verify/?payment_id= - Reconcile a payment
    - GET order/<id>/, order/<id>/status/, order/<id>/payments/ - Order projections
    - POST order/<id>/cancel/ - Cancel an order
    - POST payment/<payment_id>/refund/ - Refund a payment
    - GET payment/<payment_id>/refunds/, payment/<payment_id>/refund/<refund_id>/

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments import views
from payments.webhooks.views import mercadopago_webhook, payment_callback

app_name = "payments"

urlpatterns = [
    # Checkout
    path(
        "create-preference/",
        views.CreatePreferenceView.as_view(),
        name="create-preference",
    ),
    path("verify/", views.VerifyPaymentView.as_view(), name="verify-query"),
    path(
        "verify/<str:payment_id>/",
        views.VerifyPaymentView.as_view(),
        name="verify",
    ),
    # Gateway endpoints
    path("webhook/", mercadopago_webhook, name="webhook"),
    path("callback/<str:kind>/", payment_callback, name="callback"),
    # Orders
    path("order/<uuid:order_id>/", views.OrderDetailView.as_view(), name="order-detail"),
    path(
        "order/<uuid:order_id>/status/",
        views.OrderStatusView.as_view(),
        name="order-status",
    ),
    path(
        "order/<uuid:order_id>/payments/",
        views.OrderPaymentsView.as_view(),
        name="order-payments",
    ),
    path(
        "order/<uuid:order_id>/cancel/",
        views.CancelOrderView.as_view(),
        name="order-cancel",
    ),
    # Refunds
    path(
        "payment/<str:payment_id>/refund/",
        views.RefundPaymentView.as_view(),
        name="payment-refund",
    ),
    path(
        "payment/<str:payment_id>/refunds/",
        views.PaymentRefundsView.as_view(),
        name="payment-refunds",
    ),
    path(
        "payment/<str:payment_id>/refund/<str:refund_id>/",
        views.RefundDetailView.as_view(),
        name="payment-refund-detail",
    ),
]
