"""
Repository Layer.

The local/remote data shim.  Every repository tries the remote store
first and falls back to the local key-value buckets, queueing local-only
writes in the ``sync_queue`` outbox.
"""

from __future__ import annotations

from parlor.repositories.assignment_repository import AssignmentRepository
from parlor.repositories.base_repository import BaseRepository
from parlor.repositories.entity_repository import EntityRepository
from parlor.repositories.inventory_repository import InventoryRepository
from parlor.repositories.product_repository import ProductRepository
from parlor.repositories.sale_repository import SaleRepository
from parlor.repositories.user_repository import UserRepository

__all__ = [
    "AssignmentRepository",
    "BaseRepository",
    "EntityRepository",
    "InventoryRepository",
    "ProductRepository",
    "SaleRepository",
    "UserRepository",
]
