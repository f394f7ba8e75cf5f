"""Order, OrderItem, OrderStatusHistory and OrderEmailLog models.

Business rules implemented:
- At most one order per ``payment_reference`` (unique constraint; the
  idempotency key of order creation).
- ``total`` is the amount captured by the gateway, written once at
  creation and never recomputed from the items.
- Order number auto-generated as a human-readable identifier.
- OrderItem snapshots the catalog display fields and price at order time.
- Status transitions are validated against ``TRANSITIONS`` (service layer).
- Each status change generates a history record.
- Orders are never deleted by the engine; cancellation is a status.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

import structlog
from django.conf import settings
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    ORDER_NUMBER_SUFFIX_DIGITS,
    PLACEMENT_SIDE_EFFECTS,
    TERMINAL_STATES,
    TRANSITIONS,
    EmailStatus,
    OrderSource,
    OrderStatus,
)
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

_MONEY = {"max_digits": 10, "decimal_places": 2}


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``order_number`` is a human-readable identifier auto-generated on first
    save (format: ``VTG-YYYYMMDD-NNN``).  Its random suffix is not checked
    for collisions: two orders created on the same day may share a number.
    The UUIDv7 ``id`` and ``payment_reference`` are the real identifiers.
    """

    order_number: models.CharField = models.CharField(
        max_length=32, editable=False, db_index=True
    )
    payment_reference: models.CharField = models.CharField(
        max_length=255, unique=True
    )

    customer_email: models.EmailField = models.EmailField()
    customer_name: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    shipping_street: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    shipping_city: models.CharField = models.CharField(
        max_length=120, blank=True, default=""
    )
    shipping_region: models.CharField = models.CharField(
        max_length=120, blank=True, default=""
    )
    shipping_postal_code: models.CharField = models.CharField(
        max_length=20, blank=True, default=""
    )
    shipping_country: models.CharField = models.CharField(
        max_length=2, blank=True, default=""
    )

    subtotal: models.DecimalField = models.DecimalField(
        **_MONEY, default=Decimal("0.00")
    )
    shipping: models.DecimalField = models.DecimalField(
        **_MONEY, default=Decimal("0.00")
    )
    tax: models.DecimalField = models.DecimalField(**_MONEY, default=Decimal("0.00"))
    total: models.DecimalField = models.DecimalField(**_MONEY)
    currency: models.CharField = models.CharField(max_length=3, default="usd")

    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    tracking_number: models.CharField = models.CharField(
        max_length=64, blank=True, default=""
    )
    carrier: models.CharField = models.CharField(max_length=32, blank=True, default="")
    locale: models.CharField = models.CharField(max_length=10, default="en")
    source: models.CharField = models.CharField(
        max_length=20,
        choices=OrderSource.choices,
        default=OrderSource.CHECKOUT,
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["customer_email"], name="orders_email_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` if the order is in a terminal state."""
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        """Check whether *new_status* is an edge out of the current status."""
        return (self.status, new_status) in TRANSITIONS

    def side_effects_for(self, new_status: str) -> tuple[str, ...]:
        """Side effects authorized by the edge ``status -> new_status``."""
        return TRANSITIONS.get((self.status, new_status), ())

    @staticmethod
    def placement_side_effects() -> tuple[str, ...]:
        return PLACEMENT_SIDE_EFFECTS

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``VTG-YYYYMMDD-NNN``."""
        now = timezone.now()
        suffix = secrets.randbelow(10**ORDER_NUMBER_SUFFIX_DIGITS)
        return (
            f"{settings.ORDER_NUMBER_PREFIX}-{now:%Y%m%d}-"
            f"{suffix:0{ORDER_NUMBER_SUFFIX_DIGITS}d}"
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            self.order_number = self.generate_order_number()
        super().save(*args, **kwargs)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item of an order.

    Display fields and ``unit_price`` are a **snapshot** of the catalog at
    order time; later catalog edits never alter historical orders.
    ``product_id`` is an opaque catalog reference, not a foreign key.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    position: models.PositiveIntegerField = models.PositiveIntegerField(default=0)
    product_id: models.CharField = models.CharField(max_length=64)
    title: models.CharField = models.CharField(max_length=255)
    brand: models.CharField = models.CharField(max_length=120, blank=True, default="")
    era: models.CharField = models.CharField(max_length=60, blank=True, default="")
    size: models.CharField = models.CharField(max_length=30, blank=True, default="")
    image_url: models.URLField = models.URLField(
        max_length=500, blank=True, default=""
    )
    unit_price: models.DecimalField = models.DecimalField(**_MONEY)

    class Meta:
        db_table = "order_items"
        ordering = ["position"]

    def __str__(self) -> str:
        return f"{self.title} (${self.unit_price})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    ``user`` is nullable: ``None`` means the change was performed by the
    system (order placement, reconciliation, webhook).
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    user: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    notes: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["order", "-created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order} : {self.old_status} -> {self.new_status}"


class OrderEmailLog(BaseModel):
    """Append-only record of every notification attempt for an order.

    Observability only: nothing reads this log to make decisions.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="email_log",
    )
    kind: models.CharField = models.CharField(max_length=40)
    recipient: models.EmailField = models.EmailField()
    status: models.CharField = models.CharField(
        max_length=10, choices=EmailStatus.choices
    )
    message_id: models.CharField = models.CharField(
        max_length=255, blank=True, default=""
    )
    error: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_email_log"
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"{self.kind} -> {self.recipient} [{self.status}]"
