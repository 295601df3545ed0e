from __future__ import annotations

import calendar
from datetime import datetime
from datetime import timedelta


def _to_local(value: datetime) -> datetime:
    # Naive datetimes are taken to already be local wall-clock time.
    return value.astimezone() if value.tzinfo is not None else value


def format_time(value: datetime) -> str:
    """12-hour clock with two-digit minutes, e.g. ``9:05 AM``."""

    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"  # noqa: PLR2004
    return f"{hour}:{value.minute:02d} {meridiem}"


def format_timestamp(value: datetime, now: datetime | None = None) -> str:
    """Render ``value`` relative to ``now`` for a group header.

    Days are compared as local calendar dates, so 00:01 is "Today" even when
    it is only 00:30 now, and 23:59 the previous evening is "Yesterday".
    Older dates read like ``JANUARY 8 2024 AT 3:30 PM``.
    """

    local = _to_local(value)
    current = _to_local(now) if now is not None else datetime.now().astimezone()

    if local.date() == current.date():
        return f"Today {format_time(local)}"
    if local.date() == current.date() - timedelta(days=1):
        return f"Yesterday {format_time(local)}"

    month = calendar.month_name[local.month]
    return f"{month} {local.day} {local.year} at {format_time(local)}".upper()
