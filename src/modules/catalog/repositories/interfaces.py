"""Catalog store port consumed by the order engine."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ICatalogStore(ABC):
    """Availability switch for catalog products.

    Calls are best-effort from the order engine's point of view:
    implementations raise ``CatalogError`` and callers decide whether
    to log or propagate.
    """

    @abstractmethod
    def set_availability(self, product_id: str, available: bool) -> None:
        """Mark *product_id* available (``True``) or sold (``False``)."""
