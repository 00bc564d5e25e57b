"""
User Repository.

Users (and their credentials) are authoritative in the local users
bucket.  The remote ``users`` table is only consulted for the attendant
roster, with the local bucket as fallback.
"""

from __future__ import annotations

from typing import Optional

from parlor.models.enums import UserRole
from parlor.models.user import User, UserProfile
from parlor.repositories.base_repository import BaseRepository
from parlor.storage import StorageKey


class UserRepository(BaseRepository[User]):
    """Data access layer for User entities."""

    TABLE = "users"
    BUCKET = StorageKey.USERS
    MODEL = User

    def exists(self) -> bool:
        """``True`` once the users bucket has been created."""
        return self._store.contains(self.BUCKET)

    def get_all(self) -> list[User]:
        return self._load_local()

    def get_by_id(self, user_id: str) -> Optional[User]:
        return next((u for u in self._load_local() if u.id == user_id), None)

    def get_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive lookup on the normalised email."""
        normalized_email = email.strip().lower()
        return next(
            (u for u in self._load_local() if u.email == normalized_email), None
        )

    def add(self, user: User) -> User:
        """Append *user*.

        Raises
        ------
        ValueError
            If the id or email is already taken.
        """
        with self._store.atomic():
            users = self._load_local()
            if any(u.id == user.id for u in users):
                raise ValueError(f"User id already exists: {user.id}")
            if any(u.email == user.email for u in users):
                raise ValueError("A user with that email already exists")
            users.append(user)
            self._save_local(users)
        return user

    def save(self, user: User) -> User:
        """Replace the stored record with the same id.

        Raises
        ------
        KeyError
            If no user with that id exists.
        """
        with self._store.atomic():
            users = self._load_local()
            for index, existing in enumerate(users):
                if existing.id == user.id:
                    users[index] = user
                    break
            else:
                raise KeyError(user.id)
            self._save_local(users)
        return user

    def delete(self, user_id: str) -> bool:
        """Remove a user.  Returns ``False`` when the id was not stored."""
        with self._store.atomic():
            users = self._load_local()
            remaining = [u for u in users if u.id != user_id]
            if len(remaining) == len(users):
                return False
            self._save_local(remaining)
        return True

    def replace_all(self, users: list[User]) -> None:
        self._save_local(users)

    def fetch_attendants(self) -> list[UserProfile]:
        """Attendant roster.  Remote ``users`` table first, local on failure."""

        def _supabase() -> list[UserProfile]:
            response = (
                self.supabase.table(self.TABLE)
                .select("*")
                .eq("role", str(UserRole.ATTENDANT))
                .execute()
            )
            profiles: list[UserProfile] = []
            for row in response.data or []:
                data = {key: value for key, value in row.items() if key != "password"}
                if not data.get("status"):
                    data["status"] = "active"
                profiles.append(UserProfile.model_validate(data))
            return profiles

        def _local() -> list[UserProfile]:
            return [
                u.to_profile() for u in self._load_local()
                if u.role == UserRole.ATTENDANT
            ]

        return self._execute_with_fallback(
            supabase_op=_supabase,
            local_op=_local,
            default_factory=list,
            operation_name="fetch_attendants (users)",
        )
