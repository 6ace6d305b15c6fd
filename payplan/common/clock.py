"""UTC time helpers.

SQLite hands back naive datetimes for `DateTime(timezone=True)` columns, so
comparisons go through `as_utc`.
"""

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def today_utc() -> date:
    return utcnow().date()
