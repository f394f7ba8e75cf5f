"""Domain events for the Orders bounded context.

Each event carries the side effects its edge authorizes, so handlers
dispatch exactly what the transition table decided.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderPlaced(DomainEvent):
    """Raised when an order is persisted for a captured payment."""

    side_effects: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised when an order moves along an edge of the state machine."""

    previous_status: str = ""
    new_status: str = ""
    side_effects: Tuple[str, ...] = ()
