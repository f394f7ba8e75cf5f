"""Catalog store exceptions."""

from __future__ import annotations


class CatalogError(Exception):
    """The catalog store could not apply an availability change."""


class ProductNotFound(CatalogError):
    """No product exists with the given reference."""
