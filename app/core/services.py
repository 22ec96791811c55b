"""
Base service layer patterns for business logic encapsulation.

Services encapsulate business logic separate from views and models.
Views handle HTTP concerns, models handle data, services handle logic.

Failures are raised as core.exceptions subclasses so views can translate
them into API responses in one place.

Usage:
    from core.services import BaseService

    class OrderService(BaseService):
        def cancel(self, order_id):
            with self.atomic():
                order = Order.objects.select_for_update().get(pk=order_id)
                ...
            self.logger.info("Order cancelled", extra={"order_id": str(order_id)})

Related:
    - core.exceptions: Error hierarchy raised by services
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - A logger named after the concrete service class
    - Database transaction management

    Services receive their collaborators (gateway adapter, logger, hooks)
    through the constructor so tests can swap them without patching.

    Design Notes:
        - Services hold no per-request state
        - Raise exceptions for failures
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or self.get_logger()

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get the default logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @staticmethod
    @contextmanager
    def atomic() -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation raises, all
        changes are rolled back and the exception propagates.

        Example:
            with self.atomic():
                order = Order.objects.create(...)
                OrderItem.objects.create(order=order, ...)
                # If the item insert fails, the order is rolled back too
        """
        with transaction.atomic():
            yield
