"""
URL configuration for the Django application.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/payments/              - Checkout and payment endpoints
        create-preference/         - Create order + MercadoPago preference (POST)
        webhook/                   - MercadoPago notification endpoint (POST)
        callback/{kind}/           - Browser return from checkout (GET, 302)
        verify/                    - Re-fetch and reconcile a payment (?payment_id=)
        verify/{payment_id}/       - Re-fetch and reconcile a payment
        order/{id}/                - Order with items and payments
        order/{id}/status/         - Order status projection
        order/{id}/payments/       - Payments of an order
        order/{id}/cancel/         - Cancel an unpaid order (POST)
        payment/{id}/refund/       - Full or partial refund (POST)
        payment/{id}/refunds/      - Refunds of a payment
        payment/{id}/refund/{rid}/ - Refund detail

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("payments/", include("payments.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Checkout Admin"
admin.site.site_title = "Checkout Admin Portal"
admin.site.index_title = "Orders and payments"
