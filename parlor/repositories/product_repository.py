"""
Product Repository.

Data shim for the ``products`` table / products bucket.
"""

from __future__ import annotations

from parlor.models.product import Product
from parlor.repositories.entity_repository import EntityRepository
from parlor.storage import StorageKey


class ProductRepository(EntityRepository[Product]):
    """Data access layer for Product entities."""

    TABLE = "products"
    BUCKET = StorageKey.PRODUCTS
    MODEL = Product
