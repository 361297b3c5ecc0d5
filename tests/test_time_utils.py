"""Time helper tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from app.utils.time import days_from_now, is_past, parse_timestamp


def test_parse_timestamp_accepts_zulu_suffix() -> None:
    """PostgREST timestamps should parse into aware UTC datetimes."""
    result = parse_timestamp("2026-02-07T10:30:00Z")
    assert result == datetime(2026, 2, 7, 10, 30, tzinfo=UTC)


def test_parse_timestamp_makes_naive_values_aware() -> None:
    result = parse_timestamp(datetime(2026, 2, 7, 10, 30))
    assert result.tzinfo is UTC


def test_parse_timestamp_empty() -> None:
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_days_from_now_with_base() -> None:
    base = datetime(2026, 1, 1, tzinfo=UTC)
    assert days_from_now(7, base=base) == datetime(2026, 1, 8, tzinfo=UTC)


def test_is_past() -> None:
    reference = datetime(2026, 1, 1, tzinfo=UTC)
    assert is_past(reference - timedelta(seconds=1), reference) is True
    assert is_past(reference, reference) is False
    assert is_past(None) is False
