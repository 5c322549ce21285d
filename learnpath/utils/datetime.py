# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for learnpath.

All timestamps are timezone-aware UTC. SQLite hands back naive values for
``DateTime(timezone=True)`` columns, so anything read from the database
goes through ``ensure_utc`` before it is compared or serialized.

Usage:
    from learnpath.utils.datetime import utc_now

    completed_at = utc_now()
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def format_iso(dt: datetime | None) -> str | None:
    """Format a datetime as an ISO 8601 string in UTC.

    Args:
        dt: Datetime to format, or None.

    Returns:
        ISO string or None.
    """
    dt = ensure_utc(dt)
    return dt.isoformat() if dt else None
