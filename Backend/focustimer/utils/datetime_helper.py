"""Local-calendar helpers shared by analytics and the stats endpoints."""
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def as_aware(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite hands them back without tzinfo)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_local(dt: datetime, tz: tzinfo | None = None) -> datetime:
    """Convert to ``tz``, or to the host's local zone when ``tz`` is None."""
    return as_aware(dt).astimezone(tz)


def local_today(now: datetime | None = None, tz: tzinfo | None = None) -> date:
    if now is None:
        now = datetime.now(timezone.utc)
    return to_local(now, tz).date()


def date_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"


def local_date_key(dt: datetime, tz: tzinfo | None = None) -> str:
    """``YYYY-MM-DD`` built from the local calendar fields, never a UTC slice."""
    return date_key(to_local(dt, tz).date())


def resolve_timezone(name: str | None) -> tzinfo | None:
    """Map an IANA name to a tzinfo; empty means host local time.

    Raises ValueError for unknown zone names.
    """
    if not name:
        return None
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc
