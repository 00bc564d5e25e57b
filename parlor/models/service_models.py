"""
Service Layer Data Transfer Objects.

Envelope returned by service methods that are not part of the auth
contract (user administration).
"""

from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

__all__ = ["ServiceResult"]


class ServiceResult(BaseModel, Generic[T]):
    """
    Standard service return envelope.

    Generic over ``T`` so callers can annotate return types precisely
    (e.g. ``ServiceResult[list[UserProfile]]``).  Bare
    ``ServiceResult(...)`` is treated as ``ServiceResult[Any]``.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    status_code: int = 200
