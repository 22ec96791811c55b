"""
Authenticity check for MercadoPago webhook notifications.

MercadoPago signs each notification with HMAC-SHA256 using the webhook
secret configured for the application. The x-signature header carries
the timestamp and the hex digest:

    x-signature: ts=1700000000,v1=5f2c...e1
    x-request-id: 2066ca9e-...

The signed manifest is built from the notification's data.id, the
x-request-id header and the ts value:

    id=<data.id>;request-id=<x-request-id>;ts=<ts>

Usage:
    from payments.webhooks.signature import WebhookSignatureValidator

    validator = WebhookSignatureValidator()
    if not validator.validate(x_signature, x_request_id, data_id):
        raise SignatureInvalidError("Invalid webhook signature")
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time

from django.conf import settings

DEFAULT_MAX_AGE_SECONDS = 300


def parse_signature(signature_header: str) -> dict[str, str]:
    """
    Parse an x-signature header into its key/value pairs.

    Parts are split on the first "=" and trimmed; parts without "=" are
    ignored.
    """
    pairs: dict[str, str] = {}
    for part in signature_header.split(","):
        key, sep, value = part.strip().partition("=")
        if sep:
            pairs[key.strip()] = value.strip()
    return pairs


class WebhookSignatureValidator:
    """
    Validates x-signature headers against the shared webhook secret.

    Args:
        secret: Webhook secret (default: settings.MERCADOPAGO_WEBHOOK_SECRET)
        logger: Logger; defaults to one named after this class

    Note:
        With no secret configured every signed notification is accepted
        and a warning is logged.
    """

    def __init__(
        self,
        secret: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.secret = secret if secret is not None else settings.MERCADOPAGO_WEBHOOK_SECRET
        self.logger = logger or logging.getLogger(
            f"{__name__}.{self.__class__.__name__}"
        )

    def validate(
        self,
        signature_header: str | None,
        request_id: str | None,
        data_id: str | None,
    ) -> bool:
        """
        Check a notification's signature.

        Args:
            signature_header: Raw x-signature header
            request_id: x-request-id header
            data_id: data.id from the notification body

        Returns:
            True if the signature matches (or no secret is configured),
            False otherwise. Never raises.
        """
        try:
            if not signature_header or not request_id:
                self.logger.warning("Webhook received without signature or request id")
                return False

            if not self.secret:
                self.logger.warning(
                    "MERCADOPAGO_WEBHOOK_SECRET not configured, skipping signature validation"
                )
                return True

            parts = parse_signature(signature_header)
            ts = parts.get("ts")
            received = parts.get("v1")
            if not ts or not received:
                self.logger.error("Could not parse x-signature header")
                return False

            manifest = f"id={data_id};request-id={request_id};ts={ts}"
            expected = hmac.new(
                self.secret.encode(), manifest.encode(), hashlib.sha256
            ).hexdigest()

            is_valid = hmac.compare_digest(expected.encode(), received.encode())
            if is_valid:
                self.logger.info("Webhook signature validated")
            else:
                self.logger.error(
                    "Invalid webhook signature",
                    extra={"request_id": request_id, "data_id": data_id, "ts": ts},
                )
            return is_valid
        except Exception:
            self.logger.error("Error validating webhook signature", exc_info=True)
            return False

    def extract_timestamp(self, signature_header: str | None) -> str | None:
        """Return the ts value of an x-signature header, if present."""
        if not signature_header:
            return None
        return parse_signature(signature_header).get("ts") or None

    def is_too_old(
        self,
        timestamp: str | int | None,
        max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    ) -> bool:
        """
        Whether a notification timestamp is older than max_age_seconds.

        A missing or unparseable timestamp counts as too old.
        """
        try:
            age = int(time.time()) - int(timestamp)
        except (TypeError, ValueError):
            self.logger.warning(
                "Webhook timestamp could not be parsed",
                extra={"timestamp": timestamp},
            )
            return True

        if age > max_age_seconds:
            self.logger.warning(
                "Webhook rejected: too old",
                extra={"age_seconds": age, "max_age_seconds": max_age_seconds},
            )
            return True
        return False
