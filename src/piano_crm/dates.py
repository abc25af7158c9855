"""Human-friendly timestamps for the student list and conversation view."""

from __future__ import annotations

from datetime import date, datetime


def _calendar_day(dt: datetime, reference: datetime) -> date:
    # Compare in the reference's timezone so "today" means the viewer's today.
    if dt.tzinfo is not None and reference.tzinfo is not None:
        dt = dt.astimezone(reference.tzinfo)
    return dt.date()


def format_relative_time(dt: datetime, now: datetime | None = None) -> str:
    """Describe how long ago ``dt`` was, by calendar day.

    Args:
        dt: The timestamp to describe.
        now: Reference time. Defaults to the current time in ``dt``'s timezone.

    Returns:
        "Today", "Yesterday", "3d ago", "2w ago", "5mo ago" or "1y ago".
        Timestamps in the future read as "Today".
    """

    if now is None:
        now = datetime.now(dt.tzinfo)

    diff_days = (now.date() - _calendar_day(dt, now)).days

    if diff_days <= 0:
        return "Today"
    if diff_days == 1:
        return "Yesterday"
    if diff_days < 7:
        return f"{diff_days}d ago"
    if diff_days < 30:
        return f"{diff_days // 7}w ago"
    if diff_days < 365:
        return f"{diff_days // 30}mo ago"
    return f"{diff_days // 365}y ago"


def format_time(dt: datetime) -> str:
    """Format a clock time like ``3:05 PM``."""

    hour = dt.hour % 12 or 12
    return f"{hour}:{dt.minute:02d} {'PM' if dt.hour >= 12 else 'AM'}"
