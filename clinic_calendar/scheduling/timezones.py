"""IANA zone normalisation and local/UTC conversion."""

import logging
from datetime import date, datetime, time, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/Chicago"

# Abbreviations clinicians commonly have stored instead of zone names.
_ABBREVIATIONS: dict[str, str] = {
    "EST": "America/New_York",
    "EDT": "America/New_York",
    "CST": "America/Chicago",
    "CDT": "America/Chicago",
    "MST": "America/Denver",
    "MDT": "America/Denver",
    "PST": "America/Los_Angeles",
    "PDT": "America/Los_Angeles",
}


def _is_valid_zone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def ensure_iana_timezone(
    value: Union[str, list[str], None],
    default: str = DEFAULT_TIMEZONE,
) -> str:
    """Return a usable IANA zone name for *value*, falling back to *default*.

    Lists (a common shape for values read from array columns) contribute
    their first element. Blank values, unknown abbreviations and names that
    ``zoneinfo`` cannot load all resolve to *default*.
    """
    if isinstance(value, (list, tuple)):
        logger.warning("Timezone received as a list, using first element: %r", value)
        value = value[0] if value else None

    if value is None or not str(value).strip():
        return default

    name = str(value).strip()
    if name.upper() in _ABBREVIATIONS:
        return _ABBREVIATIONS[name.upper()]

    if not _is_valid_zone(name):
        logger.warning("Invalid timezone %r, using %s", name, default)
        return default
    return name


def get_zone(name: Optional[str], default: str = DEFAULT_TIMEZONE) -> ZoneInfo:
    """Load the ``ZoneInfo`` for *name* after normalisation."""
    return ZoneInfo(ensure_iana_timezone(name, default=default))


def _zone(zone: Union[str, ZoneInfo, None]) -> ZoneInfo:
    if isinstance(zone, ZoneInfo):
        return zone
    return get_zone(zone, default="UTC")


def to_utc(value: datetime, zone: Union[str, ZoneInfo, None] = None) -> datetime:
    """Convert *value* to an aware UTC datetime.

    A naive *value* is read as wall-clock time in *zone* (UTC when omitted).
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=_zone(zone))
    return value.astimezone(timezone.utc)


def from_utc(value: datetime, zone: Union[str, ZoneInfo, None]) -> datetime:
    """Express a UTC instant as wall-clock time in *zone*."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(_zone(zone))


def combine_local(
    day: date,
    wall_time: Union[time, str],
    zone: Union[str, ZoneInfo, None],
) -> datetime:
    """Build the UTC instant for a local date and ``HH:MM`` wall-clock time."""
    if isinstance(wall_time, str):
        wall_time = time.fromisoformat(wall_time)
    local = datetime.combine(day, wall_time).replace(tzinfo=_zone(zone))
    return local.astimezone(timezone.utc)


def local_date(value: datetime, zone: Union[str, ZoneInfo, None]) -> date:
    """Calendar date of *value* as seen in *zone*."""
    return from_utc(to_utc(value), zone).date()


def is_same_local_day(
    a: datetime, b: datetime, zone: Union[str, ZoneInfo, None]
) -> bool:
    return local_date(a, zone) == local_date(b, zone)
