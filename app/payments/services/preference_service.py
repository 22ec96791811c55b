"""
Preference service for creating orders and their checkout preferences.

This module provides the PreferenceService which turns a validated
checkout request into a PENDING Order with its items and a gateway
checkout preference the buyer is redirected to.

The order insert, the gateway call and the preference id update share one
transaction. A gateway failure rolls back the order. A commit failure
after a successful gateway call leaves an unused preference at the
gateway; it expires after PREFERENCE_EXPIRATION_DAYS.

Usage:
    from payments.services import PreferenceService

    outcome = PreferenceService().create_order({
        "items": [{"title": "Mug", "quantity": 2, "unit_price": Decimal("10.00")}],
        "customer_email": "buyer@example.com",
    })
    redirect(outcome.init_point)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.urls import reverse
from django.utils import timezone

from core.services import BaseService

from payments.adapters import get_gateway_adapter
from payments.exceptions import InvalidAmountError
from payments.repositories import OrderStore

if TYPE_CHECKING:
    from payments.adapters import MercadoPagoAdapter
    from payments.models import Order

DEFAULT_PAYER_NAME = "Cliente"
DEFAULT_IDENTIFICATION_TYPE = "DNI"
DEFAULT_CATEGORY_ID = "others"

PHONE_SEPARATORS = re.compile(r"[\s\-()]")
# Optional +54 country code, 2-3 digit area code, 6-8 digit subscriber number
AR_PHONE_PATTERN = re.compile(r"^(\+?54)?(\d{2,3})(\d{6,8})$")

CENTS = Decimal("0.01")
# Largest value a DecimalField(max_digits=10, decimal_places=2) column holds
MAX_AMOUNT = Decimal("99999999.99")


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class PreferenceOutcome:
    """
    Result of creating an order with its checkout preference.

    Attributes:
        preference_id: Gateway preference id
        init_point: Checkout URL for live credentials
        sandbox_init_point: Checkout URL for test credentials
        order_id: Local order id
    """

    preference_id: str
    init_point: str
    sandbox_init_point: str | None
    order_id: str


# =============================================================================
# Preference Builders
# =============================================================================


def parse_phone(phone: str | None) -> dict[str, str] | None:
    """
    Split a phone number into area code and subscriber number.

    Examples:
        "+54 351 1234567" -> {"area_code": "351", "number": "1234567"}
        "(11) 1234-56"    -> {"area_code": "11", "number": "123456"}
        "+15551234567"    -> {"area_code": "+1", "number": "5551234567"}
        "12345"           -> {"area_code": "", "number": "12345"}
    """
    if not phone:
        return None

    cleaned = PHONE_SEPARATORS.sub("", phone)
    match = AR_PHONE_PATTERN.match(cleaned)
    if match:
        return {"area_code": match.group(2), "number": match.group(3)}
    if len(cleaned) >= 8:
        return {"area_code": cleaned[:2], "number": cleaned[2:]}
    return {"area_code": "", "number": cleaned}


def build_payer(request: dict[str, Any]) -> dict[str, Any]:
    """Build the preference payer block from the checkout request."""
    full_name = (request.get("customer_name") or "").strip()
    name_parts = full_name.split(" ") if full_name else []

    payer: dict[str, Any] = {
        "name": request.get("customer_first_name")
        or (name_parts[0] if name_parts else "")
        or DEFAULT_PAYER_NAME,
        "surname": request.get("customer_last_name") or " ".join(name_parts[1:]),
        "email": request["customer_email"],
    }

    phone = parse_phone(request.get("customer_phone"))
    if phone:
        payer["phone"] = phone

    identification_number = request.get("customer_identification_number")
    if identification_number:
        payer["identification"] = {
            "type": request.get("customer_identification_type")
            or DEFAULT_IDENTIFICATION_TYPE,
            "number": str(identification_number),
        }

    address = request.get("customer_address")
    if address:
        payer["address"] = {
            key: value for key, value in address.items() if value not in (None, "")
        }

    return payer


def build_items(
    items: list[dict[str, Any]],
    order_id: str,
    currency: str,
) -> list[dict[str, Any]]:
    """Build the preference line items."""
    return [
        {
            "id": item.get("product_id") or f"item-{index}-{order_id}",
            "title": item["title"][:256],
            "description": (item.get("description") or "")[:256],
            "quantity": int(item["quantity"]),
            "unit_price": float(
                Decimal(str(item["unit_price"])).quantize(CENTS, rounding=ROUND_HALF_UP)
            ),
            "currency_id": currency,
            "picture_url": item.get("picture_url") or None,
            "category_id": item.get("category_id") or DEFAULT_CATEGORY_ID,
        }
        for index, item in enumerate(items)
    ]


def order_total(items: list[dict[str, Any]]) -> Decimal:
    """Sum of unit_price * quantity over the items."""
    return sum(
        (Decimal(str(item["unit_price"])) * int(item["quantity"]) for item in items),
        Decimal("0"),
    ).quantize(CENTS)


# =============================================================================
# Preference Service
# =============================================================================


class PreferenceService(BaseService):
    """
    Service that creates orders and their checkout preferences.

    Args:
        gateway: Gateway adapter; defaults to the process-wide adapter
        logger: Logger; defaults to one named after this class
    """

    def __init__(
        self,
        gateway: MercadoPagoAdapter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(logger=logger)
        self._gateway = gateway

    @property
    def gateway(self) -> MercadoPagoAdapter:
        return self._gateway or get_gateway_adapter()

    def create_order(self, request: dict[str, Any]) -> PreferenceOutcome:
        """
        Create a PENDING order, its items and a checkout preference.

        Args:
            request: Validated checkout request (see CreatePreferenceSerializer)

        Returns:
            PreferenceOutcome with the preference id and checkout URLs

        Raises:
            InvalidAmountError: Items sum to zero or less, or a line or the
                total exceeds MAX_AMOUNT
            GatewayError: Preference creation failed (nothing persisted)
        """
        items = list(request.get("items") or [])
        total = order_total(items)
        if total <= 0:
            raise InvalidAmountError(
                "Order total must be greater than zero",
                details={"total_amount": str(total)},
            )
        for index, item in enumerate(items):
            line_total = Decimal(str(item["unit_price"])) * int(item["quantity"])
            if line_total > MAX_AMOUNT:
                raise InvalidAmountError(
                    f"Item {index} total {line_total} exceeds the maximum {MAX_AMOUNT}",
                    details={"item": index, "total_price": str(line_total)},
                )
        if total > MAX_AMOUNT:
            raise InvalidAmountError(
                f"Order total {total} exceeds the maximum {MAX_AMOUNT}",
                details={"total_amount": str(total)},
            )

        currency = settings.DEFAULT_CURRENCY
        self.logger.info(
            "Creating order",
            extra={
                "customer_email": request.get("customer_email"),
                "item_count": len(items),
                "total_amount": str(total),
            },
        )

        with self.atomic():
            order = OrderStore.insert(
                items=[self._item_fields(item) for item in items],
                total_amount=total,
                currency=currency,
                customer_email=request["customer_email"],
                customer_name=request.get("customer_name") or "",
                customer_phone=request.get("customer_phone") or "",
                notes=request.get("notes") or "",
                metadata=request.get("metadata") or {},
            )

            preference = self.build_preference(order, items, request)
            result = self.gateway.create_preference(preference)

            order.external_preference_id = result.id
            OrderStore.save(order, update_fields=["external_preference_id", "updated_at"])

        self.logger.info(
            "Order created",
            extra={"order_id": str(order.id), "preference_id": result.id},
        )
        return PreferenceOutcome(
            preference_id=result.id,
            init_point=result.init_point,
            sandbox_init_point=result.sandbox_init_point,
            order_id=str(order.id),
        )

    def build_preference(
        self,
        order: Order,
        items: list[dict[str, Any]],
        request: dict[str, Any],
    ) -> dict[str, Any]:
        """Build the gateway preference body for a freshly inserted order."""
        order_id = str(order.id)
        frontend_url = settings.FRONTEND_URL.rstrip("/")
        now = timezone.now()
        expires_at = now + timedelta(days=settings.PREFERENCE_EXPIRATION_DAYS)

        preference: dict[str, Any] = {
            "items": build_items(items, order_id, order.currency),
            "payer": build_payer(request),
            "back_urls": {
                kind: f"{frontend_url}/payment/{kind}?order_id={order_id}"
                for kind in ("success", "failure", "pending")
            },
            "auto_return": "approved",
            "external_reference": order_id,
            "notification_url": settings.BACKEND_URL.rstrip("/")
            + reverse("payments:webhook"),
            "statement_descriptor": settings.STATEMENT_DESCRIPTOR,
            "binary_mode": False,
            "expires": True,
            "expiration_date_from": now.isoformat(timespec="milliseconds"),
            "expiration_date_to": expires_at.isoformat(timespec="milliseconds"),
            "metadata": {
                "order_id": order_id,
                "customer_email": order.customer_email,
                "created_at": order.created_at.isoformat(),
            },
            "payment_methods": {
                "excluded_payment_methods": [
                    {"id": method} for method in settings.EXCLUDED_PAYMENT_METHODS
                ],
                "excluded_payment_types": [
                    {"id": payment_type} for payment_type in settings.EXCLUDED_PAYMENT_TYPES
                ],
                "installments": request.get("max_installments")
                or settings.MAX_INSTALLMENTS,
            },
        }

        shipment_amount = request.get("shipment_amount")
        if shipment_amount:
            preference["shipments"] = {
                "cost": float(Decimal(str(shipment_amount))),
                "mode": "not_specified",
            }

        return preference

    @staticmethod
    def _item_fields(item: dict[str, Any]) -> dict[str, Any]:
        return {
            "title": item["title"],
            "description": item.get("description") or "",
            "product_id": item.get("product_id") or "",
            "quantity": int(item["quantity"]),
            "unit_price": Decimal(str(item["unit_price"])),
            "picture_url": item.get("picture_url") or "",
            "category_id": item.get("category_id") or "",
            "metadata": item.get("metadata") or {},
        }
