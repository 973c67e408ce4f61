# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Retention and time-travel helpers.

Pure functions that derive snapshot expiration from a backup instant and
check that a requested point in time is readable through time travel.
All instants are handled as timezone-aware UTC datetimes.
"""

from datetime import datetime, timedelta, UTC

from bqbackup.errors import explain_invalid_timestamp, explain_time_travel_window
from bqbackup.exceptions import ValidationError

# BigQuery keeps time-travel history for 7 days
TIME_TRAVEL_WINDOW_DAYS = 7

# Default snapshot retention (roughly 3 months)
DEFAULT_EXPIRATION_DAYS = 90


def ensure_utc(instant: datetime) -> datetime:
    """Return instant as an aware UTC datetime (naive values are taken as UTC)."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


def parse_timestamp(text: str) -> datetime:
    """
    Parse an ISO 8601 timestamp into an aware UTC datetime.

    Accepts a trailing "Z". Timestamps without an offset are taken as UTC.

    Raises:
        ValidationError: If the text is not a valid ISO 8601 timestamp
    """
    value = (text or "").strip()
    if not value:
        raise ValidationError(explain_invalid_timestamp(text))
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(
            explain_invalid_timestamp(text), details={"timestamp": text}
        ) from exc
    return ensure_utc(parsed)


def compute_expiration(
    instant: datetime,
    retention_days: int | None,
) -> datetime | None:
    """
    Compute the snapshot expiration for a backup taken at instant.

    Args:
        instant: Backup instant
        retention_days: Days to keep the snapshot; 0 or None keeps it forever

    Returns:
        instant + retention_days calendar days in UTC, or None for no expiry
    """
    if not retention_days:
        return None
    if retention_days < 0:
        raise ValidationError(
            f"retention_days must be >= 0, got {retention_days}",
            details={"retention_days": retention_days},
        )
    return ensure_utc(instant) + timedelta(days=retention_days)


def validate_time_travel_instant(
    instant: datetime,
    window_days: int = TIME_TRAVEL_WINDOW_DAYS,
    now: datetime | None = None,
) -> datetime:
    """
    Check that instant can be read through time travel.

    The instant must not be in the future and must not be older than
    window_days before now.

    Returns:
        The instant normalized to UTC

    Raises:
        ValidationError: If the instant is outside the window
    """
    instant = ensure_utc(instant)
    current = ensure_utc(now) if now is not None else datetime.now(UTC)
    earliest = current - timedelta(days=window_days)

    if instant > current:
        raise ValidationError(
            f"Timestamp {instant.isoformat()} is in the future.",
            details={"timestamp": instant.isoformat(), "now": current.isoformat()},
        )

    if instant < earliest:
        raise ValidationError(
            f"Timestamp {instant.isoformat()} is outside the {window_days}-day "
            f"time travel retention period. {explain_time_travel_window(window_days)}",
            details={
                "timestamp": instant.isoformat(),
                "earliest_allowed": earliest.isoformat(),
            },
        )

    return instant
