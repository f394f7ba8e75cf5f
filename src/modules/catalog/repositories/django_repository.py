"""Django ORM implementation of the catalog store."""

from __future__ import annotations

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.utils import timezone

from modules.catalog.exceptions import CatalogError, ProductNotFound
from modules.catalog.models import Product
from modules.catalog.repositories.interfaces import ICatalogStore

logger = structlog.get_logger(__name__)


class ProductCatalogStore(ICatalogStore):
    """Flips ``Product.in_stock`` with a single UPDATE per call."""

    def set_availability(self, product_id: str, available: bool) -> None:
        now = timezone.now()
        try:
            updated = Product.objects.filter(id=product_id).update(
                in_stock=available,
                sold_at=None if available else now,
                updated_at=now,
            )
        except (ValueError, ValidationError):
            raise ProductNotFound(f"Product {product_id} not found.") from None
        except DatabaseError as exc:
            raise CatalogError(
                f"Could not update availability of product {product_id}: {exc}"
            ) from exc

        if not updated:
            raise ProductNotFound(f"Product {product_id} not found.")

        logger.info(
            "catalog.availability_changed",
            product_id=str(product_id),
            available=available,
        )
