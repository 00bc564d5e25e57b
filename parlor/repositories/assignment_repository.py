"""
Assignment Repository.

Data shim for the ``assignments`` table.
"""

from __future__ import annotations

from parlor.models.assignment import Assignment
from parlor.repositories.entity_repository import EntityRepository
from parlor.storage import StorageKey


class AssignmentRepository(EntityRepository[Assignment]):
    """Data access layer for Assignment entities."""

    TABLE = "assignments"
    BUCKET = StorageKey.ASSIGNMENTS
    MODEL = Assignment

    def fetch_by_attendant(self, attendant_id: str) -> list[Assignment]:
        """Assignments for one attendant.  Remote first, local on failure."""

        def _supabase() -> list[Assignment]:
            response = (
                self.supabase.table(self.TABLE)
                .select("*")
                .eq("attendant_id", attendant_id)
                .execute()
            )
            return [self._from_remote_row(row) for row in response.data or []]

        def _local() -> list[Assignment]:
            return [a for a in self._load_local() if a.attendant_id == attendant_id]

        return self._execute_with_fallback(
            supabase_op=_supabase,
            local_op=_local,
            default_factory=list,
            operation_name=f"fetch_by_attendant ({self.TABLE})",
        )
