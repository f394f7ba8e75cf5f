"""Order service layer (Use Cases).

Orchestrates order creation and status management.  All write
operations are atomic: the service defines the unit-of-work boundary.

Business rules enforced:
- At most one order per payment reference (``IdempotencyResolver``).
- Orders are created already paid; ``total`` is the captured amount.
- Status transitions follow ``TRANSITIONS``; a request for the current
  status is a no-op that fires no side effects.
- History recorded on every status change.
- Side effects (inventory, notifications) are raised as domain events
  and run after commit; they never roll back the order change.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog
from django.conf import settings
from django.db import DatabaseError, transaction

from modules.orders.constants import OrderStatus
from modules.orders.events import OrderPlaced, OrderStatusChanged
from modules.orders.exceptions import (
    InvalidTransition,
    OrderAlreadyExists,
    OrderNotFound,
    OrderPersistenceFailed,
)
from modules.orders.idempotency import IdempotencyResolver

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from modules.orders.dtos import CreateOrderDTO, UpdateOrderStatusDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use-cases.

    Receives the repository via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        idempotency_resolver: Optional[IdempotencyResolver] = None,
    ) -> None:
        self._order_repo = order_repository
        self._idempotency = idempotency_resolver or IdempotencyResolver(
            order_repository
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Persist the order for a captured payment.

        Steps:
        1. Check for an existing order with the same payment reference.
        2. Persist order + items with status ``paid`` (the payment is
           already captured) and record the ``pending -> paid`` history.
        3. Raise ``OrderPlaced`` so inventory reservation and the
           confirmation email are dispatched after commit.

        Raises:
            OrderAlreadyExists: an order exists for the payment reference;
                ``exc.order`` is that order, untouched.
            OrderPersistenceFailed: the database rejected the write.
        """
        log = logger.bind(
            payment_reference=dto.payment_reference,
            source=str(dto.source),
        )
        log.info("order.creation_started", item_count=len(dto.items))

        try:
            order = self._idempotency.create_once(
                dto.payment_reference, lambda: self._place(dto)
            )
        except OrderAlreadyExists as exc:
            log.info("order.idempotency_hit", order_id=str(exc.order.id))
            raise
        except DatabaseError as exc:
            log.error("order.persistence_failed", error=str(exc))
            raise OrderPersistenceFailed(
                f"Could not persist order for payment {dto.payment_reference}."
            ) from exc

        log.info(
            "order.created",
            order_id=str(order.id),
            order_number=order.order_number,
            total=str(order.total),
        )
        return self._order_repo.get_by_id(str(order.id)) or order

    def _place(self, dto: CreateOrderDTO) -> Order:
        customer = dto.customer_info
        address = customer.address
        order = self._order_repo.create(
            {
                "payment_reference": dto.payment_reference,
                "customer_email": customer.email,
                "customer_name": customer.name,
                "shipping_street": address.street,
                "shipping_city": address.city,
                "shipping_region": address.region,
                "shipping_postal_code": address.postal_code,
                "shipping_country": address.country,
                "subtotal": dto.subtotal,
                "shipping": dto.shipping,
                "tax": dto.tax,
                "total": dto.total,
                "currency": dto.currency,
                "status": OrderStatus.PAID,
                "locale": dto.locale or settings.ORDER_DEFAULT_LOCALE,
                "source": dto.source,
                "items": [item.model_dump() for item in dto.items],
            }
        )
        self._order_repo.add_history(
            order_id=order.id,
            status=OrderStatus.PAID,
            old_status=OrderStatus.PENDING,
            notes=f"Payment captured ({dto.source})",
        )
        order.add_domain_event(
            OrderPlaced(
                aggregate_id=order.id,
                side_effects=order.placement_side_effects(),
            )
        )
        return self._order_repo.save(order)

    @transaction.atomic
    def update_status(
        self,
        order_id: str,
        dto: UpdateOrderStatusDTO,
        user: Any = None,
    ) -> Order:
        """Move an order along one edge of the state machine.

        Acquires a row-level lock (``SELECT FOR UPDATE``) on the order
        before validating the transition.  The side effects of the edge
        actually taken travel on ``OrderStatusChanged``.

        Raises:
            OrderNotFound: order does not exist.
            InvalidTransition: the edge is not in ``TRANSITIONS``.
            OrderPersistenceFailed: the database rejected the write.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(
            order_id=str(order_id),
            current_status=order.status,
            new_status=str(dto.status),
        )

        if order.status == dto.status:
            log.info("order.status_unchanged")
            return self._order_repo.get_by_id(str(order_id)) or order

        if not order.can_transition_to(dto.status):
            log.warning("order.invalid_transition")
            raise InvalidTransition(
                f"Cannot transition from {order.status} to {dto.status}."
            )

        old_status = order.status
        side_effects = order.side_effects_for(dto.status)
        order.status = dto.status
        if dto.status == OrderStatus.SHIPPED:
            order.tracking_number = dto.tracking_number
            order.carrier = dto.carrier

        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                previous_status=old_status,
                new_status=dto.status,
                side_effects=side_effects,
            )
        )

        try:
            self._order_repo.save(order)
            self._order_repo.add_history(
                order_id=order.id,
                status=dto.status,
                old_status=old_status,
                notes=dto.notes,
                user=user,
            )
        except DatabaseError as exc:
            log.error("order.persistence_failed", error=str(exc))
            raise OrderPersistenceFailed(
                f"Could not update order {order_id}."
            ) from exc

        log.info(
            "order.status_updated", side_effects=[str(e) for e in side_effects]
        )
        return self._order_repo.get_by_id(str(order_id)) or order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def get_order_by_payment_reference(self, payment_reference: str) -> Order:
        """Retrieve the order of a payment.

        A miss is not final: the caller may reconcile the order from
        the gateway record.

        Raises:
            OrderNotFound: no order exists yet for the reference.
        """
        order = self._idempotency.find(payment_reference)
        if not order:
            raise OrderNotFound(f"No order for payment {payment_reference}.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet[Order]:
        """Return orders, optionally filtered."""
        return self._order_repo.list(filters)

    def count_by_status(self) -> Dict[str, int]:
        return self._order_repo.count_by_status()
