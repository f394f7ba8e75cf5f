"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.  Input validation failures surface as
pydantic ``ValidationError`` from the DTOs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modules.orders.models import Order


class OrderNotFound(Exception):
    """The requested order does not exist."""


class OrderAlreadyExists(Exception):
    """An order already exists for the payment reference.

    Not a failure: ``order`` is the existing order and callers return it.
    """

    def __init__(self, order: Order) -> None:
        super().__init__(
            f"Order {order.order_number} already exists for payment "
            f"{order.payment_reference}."
        )
        self.order = order


class OrderPersistenceFailed(Exception):
    """The store could not complete an order write.

    Whether the order (and its side effects) exist is unknown; callers
    retry the fetch-or-reconcile sequence.
    """


class InvalidTransition(Exception):
    """The requested status change is not an edge of the state machine."""


class ReconciliationFailed(Exception):
    """An order could not be rebuilt from the gateway record (unrecoverable)."""


class GatewayRecordMissing(ReconciliationFailed):
    """The gateway has no captured payment for the reference."""


class MetadataIncomplete(ReconciliationFailed):
    """The gateway record lacks the data needed to rebuild the order."""
