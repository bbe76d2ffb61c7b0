"""
Utilities for working with timezone-aware UTC datetimes.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return a timezone-aware datetime in UTC."""
    return datetime.now(UTC)


def utc_now_isoformat(with_z_suffix: bool = True) -> str:
    """Return an ISO 8601 timestamp for the current UTC time."""
    value = utc_now().isoformat()
    if with_z_suffix:
        return value.replace("+00:00", "Z")
    return value


def epoch_millis(value: datetime | None = None) -> int:
    """Milliseconds since the Unix epoch for *value* (default: now)."""
    value = value or utc_now()
    return int(ensure_utc(value).timestamp() * 1000)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC.

    SQLite hands timestamps back without an offset even when they were
    stored from aware values.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


__all__ = ["utc_now", "utc_now_isoformat", "epoch_millis", "ensure_utc"]
