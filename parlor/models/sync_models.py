"""
Data Shim Result Models.

A write through a repository either reached the remote store or only
the local one.  ``ShimResult`` makes that explicit instead of encoding
it in a boolean whose ``False`` does not mean failure.
"""

from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

from parlor.models.enums import Durability

T = TypeVar("T")

__all__ = ["ShimResult"]


class ShimResult(BaseModel, Generic[T]):
    """Tagged outcome of a data-shim write.

    ``value`` is the affected entity (``None`` for a delete, or for an
    update of an id the store does not hold).
    """

    durability: Durability
    value: Optional[T] = None

    @property
    def remote_succeeded(self) -> bool:
        return self.durability == Durability.REMOTE

    @classmethod
    def remote(cls, value: Optional[T] = None) -> "ShimResult[T]":
        return cls(durability=Durability.REMOTE, value=value)

    @classmethod
    def local_fallback(cls, value: Optional[T] = None) -> "ShimResult[T]":
        return cls(durability=Durability.LOCAL_FALLBACK, value=value)
