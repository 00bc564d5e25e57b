"""
Entity Repository.

Generic data shim behind every business collection (products, sales,
assignments, inventory movements): ``fetch_all``, ``create``,
``update`` and ``delete``, each remote-first with local fallback.
"""

from __future__ import annotations

import uuid
from typing import Annotated, Optional

from pydantic import TypeAdapter, ValidationError
from pydantic_core import to_jsonable_python

from parlor.models.enums import SyncOperation
from parlor.models.sync_models import ShimResult
from parlor.repositories.base_repository import BaseRepository, E
from parlor.storage import JsonValue


class EntityRepository(BaseRepository[E]):
    """CRUD data shim for one remote table and its local bucket."""

    def fetch_all(self) -> list[E]:
        """All entities.  Remote first; the local bucket on any failure.

        A successful remote read refreshes the local bucket unless
        local-only writes for this table are still queued.
        """
        def _supabase() -> list[E]:
            response = self.supabase.table(self.TABLE).select("*").execute()
            return [self._from_remote_row(row) for row in response.data or []]

        return self._execute_with_fallback(
            supabase_op=_supabase,
            local_op=self._load_local,
            default_factory=list,
            operation_name=f"fetch_all ({self.TABLE})",
            on_supabase_success=self._warm_cache,
        )

    def create(self, entity: E) -> ShimResult[E]:
        """Insert *entity*.  An entity without an id is given one."""
        if getattr(entity, "id", None) is None:
            entity = entity.model_copy(update={"id": uuid.uuid4().hex})
        entity_id = str(entity.id)  # type: ignore[attr-defined]
        row = self._to_remote_row(entity)

        def _supabase() -> E:
            self.supabase.table(self.TABLE).insert(row).execute()
            return entity

        def _local() -> E:
            items = [item for item in self._load_local() if item.id != entity_id]  # type: ignore[attr-defined]
            items.append(entity)
            self._save_local(items)
            return entity

        return self._write_with_fallback(
            _supabase,
            _local,
            operation=SyncOperation.INSERT,
            entity_id=entity_id,
            payload=row,
            operation_name=f"create ({self.TABLE})",
        )

    def update(self, entity_id: str, changes: dict[str, object]) -> ShimResult[E]:
        """Apply a partial update.

        ``value`` is the updated entity when the responding store holds
        *entity_id*, otherwise ``None``.  Changes are validated against the
        entity's field constraints before anything is written.

        Raises
        ------
        ValueError
            If *changes* names a field the entity does not have, or a value
            the field does not accept.
        """
        changes = self._validate_changes(
            {key: value for key, value in changes.items() if key != "id"}
        )
        remote_changes: dict[str, JsonValue] = self._to_remote_columns(
            to_jsonable_python(changes)
        )

        def _supabase() -> list[dict[str, JsonValue]]:
            response = (
                self.supabase.table(self.TABLE)
                .update(remote_changes)
                .eq("id", entity_id)
                .execute()
            )
            return response.data or []

        def _from_rows(rows: list[dict[str, JsonValue]]) -> Optional[E]:
            return self._from_remote_row(rows[0]) if rows else None

        def _local() -> Optional[E]:
            items = self._load_local()
            updated: Optional[E] = None
            for index, item in enumerate(items):
                if item.id == entity_id:  # type: ignore[attr-defined]
                    updated = self.MODEL.model_validate(  # type: ignore[assignment]
                        {**item.model_dump(), **changes}
                    )
                    items[index] = updated  # type: ignore[call-overload]
                    break
            if updated is not None:
                self._save_local(items)
            return updated

        return self._write_with_fallback(
            _supabase,
            _local,
            operation=SyncOperation.UPDATE,
            entity_id=entity_id,
            payload=remote_changes,
            operation_name=f"update ({self.TABLE})",
            parse_remote=_from_rows,
        )

    def _validate_changes(self, changes: dict[str, object]) -> dict[str, object]:
        """Check each change against its field; returns the coerced values."""
        fields = self.MODEL.model_fields
        unknown = set(changes) - set(fields)
        if unknown:
            raise ValueError(
                f"Unknown field(s) for {self.MODEL.__name__}: {', '.join(sorted(unknown))}"
            )
        validated: dict[str, object] = {}
        for name, value in changes.items():
            field = fields[name]
            annotation = (
                Annotated[(field.annotation, *field.metadata)]
                if field.metadata
                else field.annotation
            )
            try:
                validated[name] = TypeAdapter(annotation).validate_python(value)
            except ValidationError as exc:
                raise ValueError(
                    f"Invalid value for {self.MODEL.__name__}.{name}: "
                    f"{exc.errors()[0]['msg']}"
                ) from exc
        return validated

    def delete(self, entity_id: str) -> ShimResult[E]:
        """Remove *entity_id*.  Deleting an absent id is not an error."""

        def _supabase() -> None:
            self.supabase.table(self.TABLE).delete().eq("id", entity_id).execute()

        def _local() -> None:
            items = self._load_local()
            remaining = [item for item in items if item.id != entity_id]  # type: ignore[attr-defined]
            if len(remaining) != len(items):
                self._save_local(remaining)

        return self._write_with_fallback(
            _supabase,
            _local,
            operation=SyncOperation.DELETE,
            entity_id=entity_id,
            payload={},
            operation_name=f"delete ({self.TABLE})",
        )

    def _warm_cache(self, items: list[E]) -> None:
        if self._has_pending_sync():
            self._logger.debug(
                "Skipping cache refresh for %s: outbox rows pending.", self.TABLE
            )
            return
        self._save_local(items)
