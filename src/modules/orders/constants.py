"""Order domain constants.

Defines status choices, side-effect kinds and the transition table of
the order state machine.  Adding a status or an edge is a change to
``TRANSITIONS`` only; the service never branches on specific statuses.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class OrderSource(models.TextChoices):
    CHECKOUT = "checkout", "Checkout"
    RECONCILIATION = "reconciliation", "Reconciliation"
    WEBHOOK = "webhook", "Webhook fallback"


class SideEffect(models.TextChoices):
    RESERVE_INVENTORY = "reserve_inventory", "Reserve inventory"
    RELEASE_INVENTORY = "release_inventory", "Release inventory"
    NOTIFY_CONFIRMED = "notify_confirmed", "Order confirmation email"
    NOTIFY_SHIPPED = "notify_shipped", "Shipping notification email"
    NOTIFY_DELIVERED = "notify_delivered", "Delivery confirmation email"
    NOTIFY_CANCELLED = "notify_cancelled", "Cancellation email"


class EmailStatus(models.TextChoices):
    SENT = "sent", "Sent"
    FAILED = "failed", "Failed"


_CANCELLATION_EFFECTS = (SideEffect.NOTIFY_CANCELLED, SideEffect.RELEASE_INVENTORY)

# The only effects still meaningful once an order is cancelled.
CANCELLATION_SIDE_EFFECTS: frozenset[str] = frozenset(_CANCELLATION_EFFECTS)

# (current, target) -> side effects fired when that edge is taken.
# Pairs absent from the table are invalid transitions.
TRANSITIONS: dict[tuple[str, str], tuple[str, ...]] = {
    (OrderStatus.PAID, OrderStatus.SHIPPED): (SideEffect.NOTIFY_SHIPPED,),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED): (SideEffect.NOTIFY_DELIVERED,),
    (OrderStatus.PENDING, OrderStatus.CANCELLED): _CANCELLATION_EFFECTS,
    (OrderStatus.PAID, OrderStatus.CANCELLED): _CANCELLATION_EFFECTS,
    (OrderStatus.SHIPPED, OrderStatus.CANCELLED): _CANCELLATION_EFFECTS,
    (OrderStatus.DELIVERED, OrderStatus.CANCELLED): _CANCELLATION_EFFECTS,
}

# Fired once when an order is placed (checkout, reconciliation or webhook).
PLACEMENT_SIDE_EFFECTS: tuple[str, ...] = (
    SideEffect.RESERVE_INVENTORY,
    SideEffect.NOTIFY_CONFIRMED,
)

TERMINAL_STATES: frozenset[str] = frozenset(
    current
    for current in OrderStatus.values
    if not any(source == current for source, _ in TRANSITIONS)
)

INVENTORY_AVAILABILITY: dict[str, bool] = {
    SideEffect.RESERVE_INVENTORY: False,
    SideEffect.RELEASE_INVENTORY: True,
}

ORDER_NUMBER_SUFFIX_DIGITS = 3

SUPPORT_MESSAGE = (
    "We could not confirm your order. Please contact support with your "
    "payment reference."
)
