"""Shared helpers for ordering, paging and profile lookups."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from pydantic import BaseModel

from app.repositories.base import ProfileRepository
from app.schemas.common import Pagination
from app.utils.errors import InvalidInputError

RowT = TypeVar("RowT", bound=BaseModel)


def newest_first(rows: Sequence[RowT], key: str = "created_at") -> list[RowT]:
    """Sort descending by ``key``; ties keep the most recently stored row first."""
    return sorted(reversed(list(rows)), key=lambda row: getattr(row, key), reverse=True)


def oldest_first(rows: Sequence[RowT], key: str = "created_at") -> list[RowT]:
    """Sort ascending by ``key``; ties keep storage order."""
    return sorted(rows, key=lambda row: getattr(row, key))


def paginate(rows: Sequence[RowT], page: int, limit: int) -> tuple[list[RowT], Pagination]:
    """Slice an already ordered list with 1-indexed ``page`` and ``limit``."""
    if page < 1:
        raise InvalidInputError("Page must be at least 1")
    if limit < 1:
        raise InvalidInputError("Limit must be at least 1")

    start = (page - 1) * limit
    return list(rows[start : start + limit]), Pagination.for_slice(page, limit, len(rows))


def display_name(profiles: ProfileRepository, user_id: str, fallback: str) -> str:
    """Return the profile name for notification copy, or ``fallback``."""
    profile = profiles.get_user(user_id)
    return profile.name if profile and profile.name else fallback
