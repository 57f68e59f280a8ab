"""Date parsing and normalization shared by the core modules."""

from datetime import date, datetime, time, tzinfo


def parse_date(value) -> date | None:
    """Parse 'YYYY-MM-DD' or an ISO timestamp to a date."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).split("T")[0])


def parse_datetime(value) -> datetime | None:
    """Parse an ISO timestamp (with optional 'Z') to a datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def to_local(value: datetime | None, tz: tzinfo | None = None) -> datetime | None:
    """
    Normalize to a naive local datetime.

    Aware values are converted to tz (or the system zone when tz is None);
    naive values are assumed to already be local.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(tz).replace(tzinfo=None)


def end_of_day(day: date) -> datetime:
    """23:59:59.999 local on the given day."""
    return datetime.combine(day, time(23, 59, 59, 999000))
