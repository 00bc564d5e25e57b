"""
Sale Repository.

Data shim for the ``sales`` table.  The remote table names the sale
time ``created_at``; locally it is ``timestamp``.
"""

from __future__ import annotations

from parlor.models.sale import Sale
from parlor.repositories.entity_repository import EntityRepository
from parlor.storage import StorageKey


class SaleRepository(EntityRepository[Sale]):
    """Data access layer for Sale entities."""

    TABLE = "sales"
    BUCKET = StorageKey.SALES
    MODEL = Sale
    REMOTE_COLUMNS = {"timestamp": "created_at"}
