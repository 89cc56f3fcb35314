"""Recurrence expansion for appointment series.

All calendar arithmetic happens on the naive local wall clock of the
pattern's zone; the zone is attached afterwards. An appointment defined as
09:00 in New York therefore stays at 09:00 local time on both sides of a DST
change, while its UTC instant moves by an hour.
"""

import calendar
import json
import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from clinic_calendar.errors import InvalidPatternError
from clinic_calendar.scheduling.models import (
    Appointment,
    AppointmentOccurrence,
    Frequency,
    RecurrencePattern,
)
from clinic_calendar.scheduling.timezones import ensure_iana_timezone, to_utc

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 52
BULK_MAX_OCCURRENCES = 26

_DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
_ORDINALS = ["first", "second", "third", "fourth", "fifth"]


def parse_pattern(value: Union[RecurrencePattern, dict[str, Any], str]) -> RecurrencePattern:
    """Build a ``RecurrencePattern`` from a model, mapping or JSON text.

    Raises:
        InvalidPatternError: if the rule cannot be parsed or violates a
            field constraint.
    """
    if isinstance(value, RecurrencePattern):
        return value
    try:
        if isinstance(value, str):
            return RecurrencePattern.model_validate_json(value)
        return RecurrencePattern.model_validate(value)
    except ValidationError as e:
        raise InvalidPatternError(str(e)) from e


def pattern_zone(pattern: RecurrencePattern) -> ZoneInfo:
    """Zone the pattern's wall-clock times are read in (UTC when unset)."""
    return ZoneInfo(ensure_iana_timezone(pattern.timezone, default="UTC"))


def _weekday_index(value: Union[date, datetime]) -> int:
    """Weekday with 0=Sunday..6=Saturday."""
    return (value.weekday() + 1) % 7


def _last_day(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _with_day(value: datetime, day: int) -> datetime:
    """Set the day of month, clamping to the month's last day."""
    return value.replace(day=min(day, _last_day(value.year, value.month)))


def _next_weekly(current: datetime, pattern: RecurrencePattern) -> datetime:
    days = pattern.days_of_week
    if not days:
        return current + timedelta(weeks=pattern.interval)

    candidate = current + timedelta(days=1)
    for _ in range(7):
        if _weekday_index(candidate) in days:
            return candidate
        candidate += timedelta(days=1)

    return current + timedelta(weeks=pattern.interval)


def _next_monthly(current: datetime, pattern: RecurrencePattern) -> datetime:
    target = current + relativedelta(months=pattern.interval)

    if pattern.day_of_month is not None:
        return _with_day(target, pattern.day_of_month)

    if pattern.uses_ordinal_weekday:
        first = target.replace(day=1)
        offset = (pattern.day_of_week_month - _weekday_index(first)) % 7
        first_match = first + timedelta(days=offset)
        result = first_match + timedelta(weeks=pattern.week_of_month - 1)
        if result.month != target.month:
            # "5th Monday" in a four-Monday month: use the last one
            result -= timedelta(weeks=1)
        return result

    return target


def _next_yearly(current: datetime, pattern: RecurrencePattern) -> datetime:
    target = current + relativedelta(years=pattern.interval)
    if pattern.month_of_year is not None:
        target = _with_day(target.replace(day=1, month=pattern.month_of_year), current.day)
    return target


def next_occurrence_after(current: datetime, pattern: RecurrencePattern) -> datetime:
    """Compute the wall-clock instant following *current* (both naive)."""
    if pattern.frequency == Frequency.DAILY:
        return current + timedelta(days=pattern.interval)
    if pattern.frequency == Frequency.MONTHLY:
        return _next_monthly(current, pattern)
    if pattern.frequency == Frequency.YEARLY:
        return _next_yearly(current, pattern)
    return _next_weekly(current, pattern)


def exception_dates(pattern: RecurrencePattern) -> set[date]:
    """Local calendar dates excluded by *pattern*."""
    zone = pattern_zone(pattern)
    dates: set[date] = set()
    for raw in pattern.exceptions:
        try:
            if len(raw) <= 10:
                dates.add(date.fromisoformat(raw))
                continue
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Ignoring unparsable exception date %r", raw)
            continue
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(zone)
        dates.add(parsed.date())
    return dates


def generate_recurring_dates(
    start: datetime,
    pattern: RecurrencePattern,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> list[datetime]:
    """Expand *pattern* into occurrence instants, starting with *start*.

    Args:
        start: First occurrence. Naive values are wall-clock time in the
            pattern's zone; aware values are converted into it.
        pattern: Recurrence rule.
        max_occurrences: Ceiling applied when the pattern is open-ended,
            and an upper bound on ``end_after_occurrences``.

    Returns:
        Zone-aware datetimes in the pattern's zone, chronological, with
        exception dates removed.
    """
    zone = pattern_zone(pattern)
    if start.tzinfo is None:
        local = start
    else:
        local = start.astimezone(zone).replace(tzinfo=None)

    limit = max(max_occurrences, 1)
    if pattern.end_after_occurrences:
        to_generate = min(pattern.end_after_occurrences, limit) - 1
    else:
        to_generate = limit - 1

    wall_clock = [local]
    current = local
    while len(wall_clock) - 1 < to_generate:
        nxt = next_occurrence_after(current, pattern)
        if pattern.end_date is not None and nxt.date() > pattern.end_date:
            break
        wall_clock.append(nxt)
        current = nxt

    excluded = exception_dates(pattern) if pattern.exceptions else set()
    dates = [dt.replace(tzinfo=zone) for dt in wall_clock if dt.date() not in excluded]

    logger.debug(
        "Expanded %s pattern into %d occurrences (%d excluded)",
        pattern.frequency.value,
        len(dates),
        len(wall_clock) - len(dates),
    )
    return dates


def expand_occurrences(
    series_id: str,
    start: datetime,
    end: datetime,
    pattern: RecurrencePattern,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> list[AppointmentOccurrence]:
    """Expand a template ``start``/``end`` into UTC occurrences.

    Every occurrence keeps the template's elapsed duration.
    """
    zone = pattern_zone(pattern)
    start_utc = to_utc(start, zone)
    duration = to_utc(end, zone) - start_utc

    occurrences = []
    for sequence, instant in enumerate(generate_recurring_dates(start, pattern, max_occurrences)):
        occurrence_start = to_utc(instant)
        occurrences.append(
            AppointmentOccurrence(
                series_id=series_id,
                sequence=sequence,
                start=occurrence_start,
                end=occurrence_start + duration,
            )
        )
    return occurrences


def create_recurring_appointments(
    base: Appointment,
    pattern: RecurrencePattern,
    timezone: str,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
    series_id: Optional[str] = None,
) -> list[Appointment]:
    """Materialise one appointment per occurrence of *pattern*.

    The first appointment keeps ``base.id``; later ones are ``{id}-{n}``.
    All share ``recurring_group_id`` and carry the pattern.
    """
    series_id = series_id or f"recurring-{base.id}-{uuid.uuid4().hex[:8]}"
    if pattern.timezone is None:
        pattern = pattern.model_copy(update={"timezone": timezone})

    local_start = base.start.astimezone(pattern_zone(pattern))
    occurrences = expand_occurrences(
        series_id, local_start, base.end, pattern, max_occurrences
    )

    return [
        base.model_copy(
            update={
                "id": base.id if occ.sequence == 0 else f"{base.id}-{occ.sequence}",
                "start": occ.start,
                "end": occ.end,
                "recurring_group_id": series_id,
                "recurrence": pattern,
            }
        )
        for occ in occurrences
    ]


def is_recurring_appointment(appointment: Appointment) -> bool:
    return bool(appointment.recurring_group_id) and appointment.recurrence is not None


def get_next_occurrence(
    appointment: Appointment,
    after: datetime,
    timezone: str,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> Optional[datetime]:
    """First occurrence of a recurring appointment strictly after *after*."""
    if not is_recurring_appointment(appointment):
        return None

    after_utc = to_utc(after, timezone)
    if appointment.start > after_utc:
        return appointment.start

    pattern = appointment.recurrence
    if pattern.timezone is None:
        pattern = pattern.model_copy(update={"timezone": timezone})

    for instant in generate_recurring_dates(appointment.start, pattern, max_occurrences):
        if to_utc(instant) > after_utc:
            return to_utc(instant)
    return None


def _exception_key(day: Union[date, datetime, str]) -> str:
    if isinstance(day, (date, datetime)):
        return day.isoformat()
    return day


def add_exception_to_pattern(
    pattern: RecurrencePattern, day: Union[date, datetime, str]
) -> RecurrencePattern:
    """Return a copy of *pattern* that also skips *day*."""
    return pattern.model_copy(
        update={"exceptions": [*pattern.exceptions, _exception_key(day)]}
    )


def remove_exception_from_pattern(
    pattern: RecurrencePattern, day: Union[date, datetime, str]
) -> RecurrencePattern:
    """Return a copy of *pattern* without any exception on *day*'s date."""
    if not pattern.exceptions:
        return pattern
    prefix = _exception_key(day).split("T", 1)[0]
    return pattern.model_copy(
        update={"exceptions": [ex for ex in pattern.exceptions if not ex.startswith(prefix)]}
    )


def _join_names(names: list[str]) -> str:
    if len(names) == 1:
        return names[0]
    return f"{', '.join(names[:-1])} and {names[-1]}"


def format_recurring_pattern(pattern: Optional[RecurrencePattern]) -> str:
    """Describe *pattern* for display, e.g. "Every 2 weeks on Monday"."""
    if pattern is None:
        return "No recurrence"

    units = {
        Frequency.DAILY: "day",
        Frequency.WEEKLY: "week",
        Frequency.MONTHLY: "month",
        Frequency.YEARLY: "year",
    }
    unit = units[pattern.frequency]
    if pattern.interval > 1:
        description = f"Every {pattern.interval} {unit}s"
    else:
        description = f"Every {unit}"

    if pattern.frequency == Frequency.WEEKLY and pattern.days_of_week:
        if len(pattern.days_of_week) == 7:
            description += " on every day"
        else:
            description += " on " + _join_names([_DAY_NAMES[d] for d in pattern.days_of_week])
    elif pattern.frequency == Frequency.MONTHLY:
        if pattern.day_of_month is not None:
            description += f" on day {pattern.day_of_month}"
        elif pattern.uses_ordinal_weekday:
            ordinal = _ORDINALS[pattern.week_of_month - 1]
            description += f" on the {ordinal} {_DAY_NAMES[pattern.day_of_week_month]}"
    elif pattern.frequency == Frequency.YEARLY and pattern.month_of_year is not None:
        description += f" in {calendar.month_name[pattern.month_of_year]}"

    if pattern.end_date is not None:
        end = pattern.end_date
        description += f" until {calendar.month_name[end.month]} {end.day}, {end.year}"
    elif pattern.end_after_occurrences:
        description += f", {pattern.end_after_occurrences} times"

    if pattern.exceptions:
        count = len(pattern.exceptions)
        description += f" ({count} exception{'s' if count > 1 else ''})"

    return description


def pattern_to_json(pattern: RecurrencePattern) -> str:
    """Serialise *pattern* with the camelCase keys used in storage."""
    return json.dumps(pattern.model_dump(mode="json", by_alias=True, exclude_none=True))
