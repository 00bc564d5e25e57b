"""
Inventory Movement Model.

Stock-in / stock-out ledger line (restocks, corrections, breakage).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from parlor.utils.time_utils import utcnow


class InventoryMovement(BaseModel):
    """Represents one stock movement."""

    id: Optional[str] = None
    product_id: str
    product_name: str
    quantity_in: int = Field(default=0, ge=0)
    quantity_out: int = Field(default=0, ge=0)
    reason: str = ""
    timestamp: datetime = Field(default_factory=utcnow)
    user_id: str

    model_config = {"from_attributes": True}
