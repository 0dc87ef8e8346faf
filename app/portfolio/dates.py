"""Reporting calendar helpers.

All functions take the reference date explicitly; only `today_in_timezone`
reads the wall clock and callers pass its result down.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo


def today_in_timezone(tz_name: str, now: datetime | None = None) -> date:
    """Calendar date in the reporting timezone."""
    tz = ZoneInfo(tz_name)
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return now.astimezone(tz).date()


def reporting_today(now: datetime | None = None) -> date:
    """Today in the configured reporting timezone."""
    from app.core.config import settings

    return today_in_timezone(settings.reporting_timezone, now)


def roll_back_to_weekday(day: date) -> date:
    """Saturday and Sunday map to the preceding Friday."""
    weekday = day.weekday()
    if weekday == 5:
        return day - timedelta(days=1)
    if weekday == 6:
        return day - timedelta(days=2)
    return day


def end_of_last_quarter(today: date) -> date:
    """Last day of the previous calendar quarter, moved off weekends."""
    if today.month <= 3:
        quarter_end = date(today.year - 1, 12, 31)
    elif today.month <= 6:
        quarter_end = date(today.year, 3, 31)
    elif today.month <= 9:
        quarter_end = date(today.year, 6, 30)
    else:
        quarter_end = date(today.year, 9, 30)
    return roll_back_to_weekday(quarter_end)


def end_of_last_year(today: date) -> date:
    """December 31 of the previous year, moved off weekends."""
    return roll_back_to_weekday(date(today.year - 1, 12, 31))

