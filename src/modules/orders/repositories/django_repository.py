"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
All write operations are wrapped in ``transaction.atomic()`` to ensure
the Order aggregate (Order + OrderItems) is persisted atomically.

Concurrency control on status updates uses ``select_for_update()``
to prevent race conditions (no ``version`` field exists on the model).
Domain events collected on the aggregate are published on the in-process
event bus when the order is saved, inside the caller's transaction.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, QuerySet

from modules.orders.constants import OrderStatus
from modules.orders.models import Order, OrderEmailLog, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)

_ITEM_FIELDS = (
    "product_id",
    "title",
    "brand",
    "era",
    "size",
    "image_url",
    "unit_price",
)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    def __init__(self, bus: Any = None) -> None:
        self._bus = bus or event_bus

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        ``data`` holds the ``Order`` field values plus ``items``, a list
        of dicts carrying the snapshot fields of each line item.
        """
        fields = dict(data)
        items = fields.pop("items", [])

        order = Order(**fields)
        order.save()

        OrderItem.objects.bulk_create(
            [
                OrderItem(
                    order=order,
                    position=position,
                    **{key: item[key] for key in _ITEM_FIELDS if key in item},
                )
                for position, item in enumerate(items)
            ]
        )

        logger.info(
            "order.persisted",
            order_id=str(order.id),
            order_number=order.order_number,
            item_count=len(items),
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _base_queryset(self) -> QuerySet[Order]:
        return Order.objects.prefetch_related("items", "status_history", "email_log")

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded relations.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return self._base_queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_payment_reference(self, payment_reference: str) -> Optional[Order]:
        return self._base_queryset().filter(payment_reference=payment_reference).first()

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return (
                Order.objects.select_for_update()
                .prefetch_related("items")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet[Order]:
        """List orders, newest first, with optional ORM filters.

        Returned lazily so the API layer can paginate it.
        """
        queryset = Order.objects.prefetch_related("items")
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def count_by_status(self) -> Dict[str, int]:
        counts = {value: 0 for value in OrderStatus.values}
        rows = Order.objects.order_by().values("status").annotate(total=Count("id"))
        for row in rows:
            counts[row["status"]] = row["total"]
        return counts

    def items_of(self, order_id: Any) -> List[Dict[str, Any]]:
        return list(
            OrderItem.objects.filter(order_id=order_id)
            .order_by("position")
            .values("product_id", "title")
        )

    # ------------------------------------------------------------------
    # Save (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist an order and publish its pending domain events."""
        entity.save()

        events = entity.domain_events
        for event in events:
            self._bus.publish(event)
        entity.clear_domain_events()

        logger.info("order.saved", order_id=str(entity.id), event_count=len(events))
        return entity

    # ------------------------------------------------------------------
    # Audit trails
    # ------------------------------------------------------------------

    def add_history(
        self,
        order_id: Any,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
        user: Any = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=status,
            notes=notes,
            user=user if getattr(user, "is_authenticated", False) else None,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=status,
        )
        return history

    def add_email_log(
        self,
        order_id: Any,
        kind: str,
        recipient: str,
        status: str,
        message_id: str = "",
        error: str = "",
    ) -> OrderEmailLog:
        return OrderEmailLog.objects.create(
            order_id=order_id,
            kind=kind,
            recipient=recipient,
            status=status,
            message_id=message_id,
            error=error,
        )
