"""
Product Model.

Stock-keeping record.  Quantities are counted in bottles; crates are
converted with ``quantity_per_crate``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from parlor.utils.time_utils import utcnow


class Product(BaseModel):
    """A product on sale at the outlet."""

    id: str
    name: str
    category: str
    quantity: int = Field(default=0, ge=0)
    reorder_level: int = Field(default=0, ge=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    quantity_per_crate: int = Field(default=1, ge=1)
    last_restocked: datetime = Field(default_factory=utcnow)

    model_config = {"from_attributes": True}

    @property
    def needs_restock(self) -> bool:
        return self.quantity <= self.reorder_level
