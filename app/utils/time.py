"""Time utility helpers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta


def now_utc() -> datetime:
    """Return current timezone-aware UTC datetime."""
    return datetime.now(tz=UTC)


def days_from_now(days: int, base: datetime | None = None) -> datetime:
    """Return ``base`` (or now) shifted forward by ``days``."""
    return (base or now_utc()) + timedelta(days=days)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO timestamp (as stored by PostgREST) into an aware datetime."""
    if value is None or value == "":
        return None

    if isinstance(value, str):
        normalized = value.replace("Z", "+00:00")
        parsed = datetime.fromisoformat(normalized)
    else:
        parsed = value

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def is_past(moment: datetime | None, reference: datetime | None = None) -> bool:
    """Return True when ``moment`` lies strictly before ``reference`` (or now)."""
    if moment is None:
        return False
    return moment < (reference or now_utc())
