"""Catalog product availability record.

The storefront sells one-of-a-kind vintage pieces, so availability is a
flag rather than a quantity.  The order engine only ever flips
``in_stock`` through ``ICatalogStore``; catalog CRUD lives elsewhere.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import BaseModel


class Product(BaseModel):
    title = models.CharField(max_length=255)
    brand = models.CharField(max_length=120, blank=True, default="")
    era = models.CharField(max_length=40, blank=True, default="")
    size = models.CharField(max_length=40, blank=True, default="")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    image_url = models.URLField(max_length=500, blank=True, default="")
    in_stock = models.BooleanField(default=True)
    sold_at = models.DateTimeField(null=True, blank=True, default=None)

    class Meta:
        db_table = "catalog_products"
        ordering = ["title"]
        indexes = [
            models.Index(fields=["in_stock"], name="catalog_in_stock_idx"),
        ]

    def __str__(self) -> str:
        availability = "available" if self.in_stock else "sold"
        return f"{self.title} ({availability})"
