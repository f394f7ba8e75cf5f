"""Unit tests for the Django catalog store."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from django.db import DatabaseError

from modules.catalog.exceptions import CatalogError, ProductNotFound
from modules.catalog.repositories import ProductCatalogStore

pytestmark = pytest.mark.unit


class TestSetAvailability:
    def test_mark_sold(self, jacket):
        ProductCatalogStore().set_availability(str(jacket.id), False)
        jacket.refresh_from_db()

        assert jacket.in_stock is False
        assert jacket.sold_at is not None

    def test_restock_clears_sold_at(self, jacket):
        store = ProductCatalogStore()
        store.set_availability(str(jacket.id), False)
        store.set_availability(str(jacket.id), True)
        jacket.refresh_from_db()

        assert jacket.in_stock is True
        assert jacket.sold_at is None

    def test_only_target_product_changes(self, jacket, tee):
        ProductCatalogStore().set_availability(str(jacket.id), False)
        tee.refresh_from_db()
        assert tee.in_stock is True

    def test_unknown_product(self):
        with pytest.raises(ProductNotFound):
            ProductCatalogStore().set_availability(
                "0190c0de-0000-7000-8000-000000000000", False
            )

    def test_malformed_product_id(self):
        with pytest.raises(ProductNotFound):
            ProductCatalogStore().set_availability("sku-42", False)

    def test_database_error(self, jacket):
        with patch(
            "modules.catalog.repositories.django_repository.Product.objects.filter",
            side_effect=DatabaseError("locked"),
        ):
            with pytest.raises(CatalogError, match="locked"):
                ProductCatalogStore().set_availability(str(jacket.id), False)

    def test_product_not_found_is_a_catalog_error(self):
        assert issubclass(ProductNotFound, CatalogError)
