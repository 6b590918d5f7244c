"""Date arithmetic for the notification scheduler.

Pure functions only: the notification window check, the next occurrence of a
relationship celebration and the notification instant of a daily activity.
All instants are timezone-aware UTC datetimes; naive datetimes are read as UTC.
"""

import calendar
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from database import CelebrationType


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime, convert an aware one to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_midnight(day: date) -> datetime:
    """Midnight UTC at the start of ``day``."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def is_within_window(now: datetime, candidate: datetime, lookahead: timedelta) -> bool:
    """True iff ``now < candidate <= now + lookahead``.

    The lower bound is exclusive so an instant that has already passed is not
    picked up again by later cycles.
    """
    now = ensure_utc(now)
    candidate = ensure_utc(candidate)
    return now < candidate <= now + lookahead


def _clamped_date(year: int, month: int, day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def next_celebration_date(anchor: Optional[date], celebration_type: CelebrationType, today: date) -> Optional[date]:
    """Next celebration day on or after ``today``.

    Annual celebrations fall on the anchor's month and day, monthly ones on the
    anchor's day of month. Days past the end of the target month are clamped to
    its last day, so Feb 29 becomes Feb 28 in common years and day 31 becomes
    the 30th in April.

    Returns None for a missing or default (``date.min``) anchor.
    """
    if anchor is None or anchor == date.min:
        return None

    if celebration_type == CelebrationType.ANNUAL:
        candidate = _clamped_date(today.year, anchor.month, anchor.day)
        if candidate < today:
            candidate = _clamped_date(today.year + 1, anchor.month, anchor.day)
        return candidate

    candidate = _clamped_date(today.year, today.month, anchor.day)
    if candidate < today:
        if today.month == 12:
            candidate = _clamped_date(today.year + 1, 1, anchor.day)
        else:
            candidate = _clamped_date(today.year, today.month + 1, anchor.day)
    return candidate


def next_celebration_utc(anchor: Optional[date], celebration_type: CelebrationType, now: datetime) -> Optional[datetime]:
    """Instant of the next celebration, midnight UTC, relative to the cycle's ``now``."""
    today = ensure_utc(now).date()
    next_date = next_celebration_date(anchor, celebration_type, today)
    if next_date is None:
        return None
    return utc_midnight(next_date)


def activity_notification_utc(activity_date: date, reminder_minutes: int) -> datetime:
    """Instant at which an activity's lead-time reminder becomes due.

    Activities have no time of day, so the lead-time counts back from midnight
    UTC at the start of ``activity_date``.
    """
    # TODO: shift by the owner's timezone once users carry one
    return utc_midnight(activity_date) - timedelta(minutes=reminder_minutes)
