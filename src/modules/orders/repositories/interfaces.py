"""Order repository interface.

Extends ``IRepository[Order]`` with methods required by the Order
aggregate: atomic creation with items, payment-reference look-up,
row locking for transitions, status history and the email log.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from modules.orders.models import Order, OrderEmailLog, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes OrderItem children, OrderStatusHistory
    records and the OrderEmailLog.  Mutations must be atomic.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        Raises ``IntegrityError`` when an order already exists for
        ``data["payment_reference"]``.
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched items and status history."""

    @abstractmethod
    def get_by_payment_reference(self, payment_reference: str) -> Optional[Order]:
        """Retrieve the order created for a gateway payment reference."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order holding a row-level lock until commit."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet[Order]:
        """List orders with optional filters."""

    @abstractmethod
    def count_by_status(self) -> Dict[str, int]:
        """Return the number of orders in every status (zero included)."""

    @abstractmethod
    def add_history(
        self,
        order_id: Any,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
        user: Any = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def add_email_log(
        self,
        order_id: Any,
        kind: str,
        recipient: str,
        status: str,
        message_id: str = "",
        error: str = "",
    ) -> OrderEmailLog:
        """Append a notification attempt to the order's email log."""

    @abstractmethod
    def items_of(self, order_id: Any) -> List[Dict[str, Any]]:
        """Return ``product_id``/``title`` of every item of an order."""
