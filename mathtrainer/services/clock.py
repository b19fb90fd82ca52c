"""UTC day helpers shared by recording and the stats projections."""
from datetime import date, datetime, time, timedelta, timezone

WEEKDAY_LABELS_RU = ("Пн", "Вт", "Ср", "Чт", "Пт", "Сб", "Вс")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands datetimes back naive; they are always stored as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def day_window(now: datetime, days: int) -> tuple[list[date], datetime, datetime]:
    """The last ``days`` UTC days ending today, with [start, end) bounds."""
    today = as_utc(now).date()
    first = today - timedelta(days=days - 1)
    days_list = [first + timedelta(days=i) for i in range(days)]
    return days_list, utc_midnight(first), utc_midnight(today + timedelta(days=1))


def weekday_label(day: date) -> str:
    return WEEKDAY_LABELS_RU[day.weekday()]
