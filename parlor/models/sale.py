"""
Sale Model.

One line sold at the point of sale.  ``timestamp`` is stored remotely
in the ``created_at`` column.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from parlor.utils.time_utils import utcnow


class Sale(BaseModel):
    """Represents a completed sale line."""

    id: Optional[str] = None
    product_id: str
    product_name: str
    quantity: int = Field(ge=0)
    unit_price: Decimal = Field(ge=0)
    total_price: Decimal = Field(ge=0)
    attendant_id: str
    attendant_name: str
    timestamp: datetime = Field(default_factory=utcnow)

    model_config = {"from_attributes": True}
