"""
Assignment Model.

Stock handed by the storekeeper to an attendant for sale.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from parlor.models.enums import AssignmentType
from parlor.utils.time_utils import utcnow


class Assignment(BaseModel):
    """Represents a stock assignment to an attendant."""

    id: Optional[str] = None
    product_id: str
    product_name: str
    attendant_id: str
    attendant_name: str
    quantity_assigned: int = Field(ge=0)
    assignment_type: AssignmentType = AssignmentType.BOTTLES
    quantity_per_crate: Optional[int] = Field(default=None, ge=1)
    assigned_at: datetime = Field(default_factory=utcnow)

    model_config = {"from_attributes": True}

    @property
    def bottles(self) -> int:
        """Assigned quantity expressed in bottles."""
        if self.assignment_type == AssignmentType.CRATES:
            return self.quantity_assigned * (self.quantity_per_crate or 1)
        return self.quantity_assigned
