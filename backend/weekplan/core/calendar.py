from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from weekplan.core.exceptions import ValidationError

DAYS = ("monday", "tuesday", "wednesday", "thursday", "friday")

DAY_SHORT_MAP = {
    "mon": "monday",
    "tue": "tuesday",
    "wed": "wednesday",
    "thu": "thursday",
    "fri": "friday",
}


def normalize_day(value: str) -> str:
    cleaned = (value or "").strip().lower()
    cleaned = DAY_SHORT_MAP.get(cleaned, cleaned)
    if cleaned not in DAYS:
        raise ValidationError(f"Invalid day {value!r}; expected one of {', '.join(DAYS)}")
    return cleaned


def school_today(timezone_name: str) -> date:
    return datetime.now(ZoneInfo(timezone_name)).date()


def week_start_for(value: date) -> date:
    """Monday of the ISO week containing ``value``."""
    return value - timedelta(days=value.weekday())


def week_end_for(week_start: date) -> date:
    return week_start + timedelta(days=6)


def parse_date(value: str | date | None, *, default: date | None = None) -> date:
    if value is None:
        if default is None:
            raise ValidationError("A date is required")
        return default
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"Invalid date {value!r}; expected yyyy-MM-dd") from exc


def weekday_name(value: date) -> str | None:
    index = value.weekday()
    return DAYS[index] if index < len(DAYS) else None


def minutes_to_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_time_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)
