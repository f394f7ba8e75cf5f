"""Event handlers for Orders domain events.

Handlers run synchronously inside the transaction that saved the order,
so the side-effect jobs they record commit (or roll back) with it.
"""

from __future__ import annotations

from typing import Optional

import structlog

from modules.orders.dispatcher import SideEffectDispatcher
from modules.orders.events import OrderPlaced, OrderStatusChanged
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)


class OrderPlacedHandler(IEventHandler[OrderPlaced]):
    def __init__(self, dispatcher: Optional[SideEffectDispatcher] = None) -> None:
        self._dispatcher = dispatcher or SideEffectDispatcher()

    def handle(self, event: OrderPlaced) -> None:
        logger.info("order.event.placed", order_id=str(event.aggregate_id))
        self._dispatcher.dispatch(event.aggregate_id, event.side_effects)


class OrderStatusChangedHandler(IEventHandler[OrderStatusChanged]):
    def __init__(self, dispatcher: Optional[SideEffectDispatcher] = None) -> None:
        self._dispatcher = dispatcher or SideEffectDispatcher()

    def handle(self, event: OrderStatusChanged) -> None:
        logger.info(
            "order.event.status_changed",
            order_id=str(event.aggregate_id),
            old_status=event.previous_status,
            new_status=event.new_status,
        )
        self._dispatcher.dispatch(event.aggregate_id, event.side_effects)


order_placed_handler = OrderPlacedHandler()
order_status_changed_handler = OrderStatusChangedHandler()
