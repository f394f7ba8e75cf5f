"""Catalog store package."""

from modules.catalog.repositories.django_repository import ProductCatalogStore
from modules.catalog.repositories.interfaces import ICatalogStore

__all__ = ["ICatalogStore", "ProductCatalogStore"]
