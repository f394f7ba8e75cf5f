"""Idempotency key resolver for order creation.

The payment reference is the idempotency key: the ``orders`` table holds
a unique constraint on it, so concurrent creators race on the INSERT
rather than on a read.  The loser's INSERT fails (on PostgreSQL it
blocks until the winner commits), its savepoint is rolled back and the
winner's order is returned instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

import structlog
from django.db import IntegrityError, transaction

from modules.orders.exceptions import OrderAlreadyExists

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class IdempotencyResolver:
    """Guarantees at most one order per payment reference."""

    def __init__(self, order_repository: IOrderRepository) -> None:
        self._order_repo = order_repository

    def find(self, payment_reference: str) -> Optional[Order]:
        return self._order_repo.get_by_payment_reference(payment_reference)

    def create_once(
        self, payment_reference: str, create: Callable[[], Order]
    ) -> Order:
        """Run *create* unless an order already exists for the reference.

        *create* runs inside a savepoint; everything it writes (items,
        history, side-effect jobs) is discarded if the INSERT loses the
        race.

        Raises:
            OrderAlreadyExists: an order exists, before or after the attempt.
        """
        existing = self.find(payment_reference)
        if existing is not None:
            raise OrderAlreadyExists(existing)

        try:
            with transaction.atomic():
                return create()
        except IntegrityError:
            existing = self.find(payment_reference)
            if existing is None:
                raise
            logger.info(
                "order.idempotency_race_lost",
                payment_reference=payment_reference,
                order_id=str(existing.id),
            )
            raise OrderAlreadyExists(existing) from None
