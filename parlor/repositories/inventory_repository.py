"""
Inventory Repository.

Data shim for the ``inventory`` movement ledger.
"""

from __future__ import annotations

from parlor.models.inventory import InventoryMovement
from parlor.repositories.entity_repository import EntityRepository
from parlor.storage import StorageKey


class InventoryRepository(EntityRepository[InventoryMovement]):
    """Data access layer for InventoryMovement entities."""

    TABLE = "inventory"
    BUCKET = StorageKey.INVENTORY
    MODEL = InventoryMovement

    def fetch_by_product(self, product_id: str) -> list[InventoryMovement]:
        """Movements for one product, in the order :meth:`fetch_all` returns them."""
        return [m for m in self.fetch_all() if m.product_id == product_id]
