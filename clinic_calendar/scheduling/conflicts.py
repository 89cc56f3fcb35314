"""Conflict classification, detection and resolution between appointments."""

import logging
from datetime import datetime, time, timedelta
from typing import Optional, Sequence, TypeVar, Union

from clinic_calendar.errors import (
    InvalidIntervalError,
    MissingParameterError,
    UnknownStrategyError,
)
from clinic_calendar.scheduling.models import (
    Appointment,
    AppointmentInterval,
    AppointmentStatus,
    Conflict,
    ConflictType,
    ResolutionParams,
    ResolutionStrategy,
)
from clinic_calendar.scheduling.recurrence import (
    DEFAULT_MAX_OCCURRENCES,
    expand_occurrences,
    is_recurring_appointment,
    pattern_zone,
)
from clinic_calendar.scheduling.timezones import from_utc, get_zone, to_utc

logger = logging.getLogger(__name__)

ADJACENCY_THRESHOLD_MINUTES = 5
BUSINESS_HOURS = (8, 17)
SAME_DAY_STEP_MINUTES = 15
NEXT_DAY_STEP_MINUTES = 30

IntervalT = TypeVar("IntervalT", bound=AppointmentInterval)

_RESOLUTIONS: dict[ConflictType, list[ResolutionStrategy]] = {
    ConflictType.OVERLAP: [
        ResolutionStrategy.RESCHEDULE,
        ResolutionStrategy.SHORTEN,
        ResolutionStrategy.CANCEL,
        ResolutionStrategy.OVERRIDE,
    ],
    ConflictType.CONTAINED: [
        ResolutionStrategy.RESCHEDULE,
        ResolutionStrategy.CANCEL,
        ResolutionStrategy.OVERRIDE,
    ],
    ConflictType.CONTAINS: [
        ResolutionStrategy.SPLIT,
        ResolutionStrategy.RESCHEDULE,
        ResolutionStrategy.CANCEL,
        ResolutionStrategy.OVERRIDE,
    ],
    ConflictType.ADJACENT: [ResolutionStrategy.RESCHEDULE, ResolutionStrategy.IGNORE],
    ConflictType.BACK_TO_BACK: [ResolutionStrategy.RESCHEDULE, ResolutionStrategy.IGNORE],
}


def validate_interval(interval: AppointmentInterval) -> None:
    """Raise ``InvalidIntervalError`` when *interval* ends before it starts."""
    if not interval.is_valid:
        raise InvalidIntervalError(
            f"Interval {interval.id!r} ends ({interval.end.isoformat()}) "
            f"before it starts ({interval.start.isoformat()})"
        )


def _minutes(delta: timedelta) -> float:
    return delta.total_seconds() / 60


def classify_conflict(
    a: AppointmentInterval,
    b: AppointmentInterval,
    adjacency_minutes: int = ADJACENCY_THRESHOLD_MINUTES,
) -> Optional[ConflictType]:
    """Classify how *a* relates to *b*; ``None`` means no conflict.

    Precedence (first match wins): identical bounds, *a* contains *b*,
    *a* contained by *b*, partial overlap, zero-gap adjacency, and a gap of
    at most *adjacency_minutes* in either direction. Inverted intervals
    are reported as no conflict.
    """
    try:
        validate_interval(a)
        validate_interval(b)
    except InvalidIntervalError as e:
        logger.debug("Skipping conflict check: %s", e)
        return None

    if a.start == b.start and a.end == b.end:
        return ConflictType.OVERLAP
    if a.start <= b.start and a.end >= b.end:
        return ConflictType.CONTAINS
    if b.start <= a.start and b.end >= a.end:
        return ConflictType.CONTAINED
    if a.start < b.end and b.start < a.end:
        return ConflictType.OVERLAP
    if a.start == b.end or a.end == b.start:
        return ConflictType.BACK_TO_BACK

    threshold = timedelta(minutes=adjacency_minutes)
    if abs(a.start - b.end) <= threshold or abs(b.start - a.end) <= threshold:
        return ConflictType.ADJACENT
    return None


def overlap_minutes(a: AppointmentInterval, b: AppointmentInterval) -> float:
    """Minutes shared by *a* and *b*, zero when they do not overlap."""
    shared = min(a.end, b.end) - max(a.start, b.start)
    return max(_minutes(shared), 0.0)


def possible_resolutions(conflict_type: Optional[ConflictType]) -> list[ResolutionStrategy]:
    """Ordered strategies a caller may offer for *conflict_type*."""
    if conflict_type is None:
        return [ResolutionStrategy.IGNORE]
    return list(_RESOLUTIONS[conflict_type])


def build_conflict(
    candidate: AppointmentInterval,
    existing: AppointmentInterval,
    adjacency_minutes: int = ADJACENCY_THRESHOLD_MINUTES,
) -> Optional[Conflict]:
    """Compare *candidate* with *existing*, returning the conflict if any."""
    conflict_type = classify_conflict(candidate, existing, adjacency_minutes)
    if conflict_type is None:
        return None
    return Conflict(
        type=conflict_type,
        candidate=candidate,
        existing=existing,
        overlap_minutes=overlap_minutes(candidate, existing),
        possible_resolutions=possible_resolutions(conflict_type),
    )


def detect_conflicts(
    candidate: AppointmentInterval,
    existing: Sequence[AppointmentInterval],
    adjacency_minutes: int = ADJACENCY_THRESHOLD_MINUTES,
) -> list[Conflict]:
    """Check *candidate* against every existing interval.

    Intervals sharing the candidate's id are skipped so an appointment can
    be checked against a list that already contains it.
    """
    conflicts: list[Conflict] = []
    for other in existing:
        if other.id == candidate.id:
            continue
        conflict = build_conflict(candidate, other, adjacency_minutes)
        if conflict is not None:
            conflicts.append(conflict)
    return conflicts


def detect_recurring_conflicts(
    candidate: Appointment,
    existing: Sequence[AppointmentInterval],
    timezone: str,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
    adjacency_minutes: int = ADJACENCY_THRESHOLD_MINUTES,
) -> list[Conflict]:
    """Batch-check every occurrence of a recurring candidate.

    Non-recurring candidates fall through to ``detect_conflicts``.
    """
    if not is_recurring_appointment(candidate):
        return detect_conflicts(candidate, existing, adjacency_minutes)

    pattern = candidate.recurrence
    if pattern.timezone is None:
        pattern = pattern.model_copy(update={"timezone": timezone})

    zone = pattern_zone(pattern)
    occurrences = expand_occurrences(
        candidate.recurring_group_id,
        candidate.start.astimezone(zone),
        candidate.end,
        pattern,
        max_occurrences,
    )

    conflicts: list[Conflict] = []
    for occurrence in occurrences:
        instance = candidate.model_copy(update={"start": occurrence.start, "end": occurrence.end})
        conflicts.extend(detect_conflicts(instance, existing, adjacency_minutes))

    logger.debug(
        "Checked %d occurrences of %s, found %d conflicts",
        len(occurrences),
        candidate.id,
        len(conflicts),
    )
    return conflicts


def _require(strategy: ResolutionStrategy, params: ResolutionParams, *fields: str) -> None:
    missing = [f for f in fields if getattr(params, f) is None]
    if missing:
        raise MissingParameterError(strategy.value, missing)


def _checked(interval: IntervalT) -> IntervalT:
    validate_interval(interval)
    return interval


def _cancelled(candidate: AppointmentInterval, reason: Optional[str]) -> Appointment:
    if not isinstance(candidate, Appointment):
        candidate = Appointment.model_validate(candidate.model_dump())
    note = f"Cancelled: {reason or 'scheduling conflict'}"
    notes = f"{candidate.notes}\n{note}" if candidate.notes else note
    return candidate.model_copy(update={"status": AppointmentStatus.CANCELLED, "notes": notes})


def resolve_conflict(
    conflict: Conflict,
    strategy: Union[ResolutionStrategy, str],
    params: Optional[ResolutionParams] = None,
) -> Union[AppointmentInterval, list[AppointmentInterval]]:
    """Apply *strategy* to the conflict's candidate and return the result.

    ``split`` returns two intervals; every other strategy returns one. The
    input conflict is never modified.

    Raises:
        MissingParameterError: ``reschedule``/``split`` without both new
            times, or ``shorten`` without a new end time.
        InvalidIntervalError: the new times would end an interval before
            it starts.
        UnknownStrategyError: *strategy* is not a known strategy name.
    """
    try:
        strategy = ResolutionStrategy(strategy)
    except ValueError as e:
        raise UnknownStrategyError(f"Unknown resolution strategy: {strategy!r}") from e

    params = params or ResolutionParams()
    candidate = conflict.candidate

    if strategy == ResolutionStrategy.RESCHEDULE:
        _require(strategy, params, "new_start_time", "new_end_time")
        return _checked(
            candidate.model_copy(update={"start": params.new_start_time, "end": params.new_end_time})
        )

    if strategy == ResolutionStrategy.SHORTEN:
        _require(strategy, params, "new_end_time")
        return _checked(candidate.model_copy(update={"end": params.new_end_time}))

    if strategy == ResolutionStrategy.SPLIT:
        _require(strategy, params, "new_start_time", "new_end_time")
        first = candidate.model_copy(update={"id": f"{candidate.id}-1", "end": params.new_end_time})
        second = candidate.model_copy(
            update={"id": f"{candidate.id}-2", "start": params.new_start_time}
        )
        return [_checked(first), _checked(second)]

    if strategy == ResolutionStrategy.CANCEL:
        return _cancelled(candidate, params.cancel_reason)

    # override and ignore keep the appointment as booked
    return candidate


def _scan_day(
    appointment: IntervalT,
    existing: Sequence[AppointmentInterval],
    day_start: datetime,
    day_end: datetime,
    step: timedelta,
    duration: timedelta,
    limit: int,
    adjacency_minutes: int,
    skip: Optional[datetime] = None,
) -> list[IntervalT]:
    found: list[IntervalT] = []
    slot = day_start
    while slot < day_end and len(found) < limit:
        slot_end = slot + duration
        if slot != skip and slot_end <= day_end:
            proposal = appointment.model_copy(
                update={"start": to_utc(slot), "end": to_utc(slot_end)}
            )
            if not detect_conflicts(proposal, existing, adjacency_minutes):
                found.append(proposal)
        slot += step
    return found


def suggest_alternative_times(
    appointment: IntervalT,
    existing: Sequence[AppointmentInterval],
    timezone: str,
    max_suggestions: int = 5,
    business_hours: tuple[int, int] = BUSINESS_HOURS,
    adjacency_minutes: int = ADJACENCY_THRESHOLD_MINUTES,
) -> list[IntervalT]:
    """Propose conflict-free copies of *appointment*.

    Scans the original local day in 15-minute steps within business hours,
    skipping the original start, then the following day in 30-minute steps.
    Suggestions must end within business hours and produce no conflict of
    any type, adjacency included.
    """
    zone = get_zone(timezone)
    local_start = from_utc(appointment.start, zone)
    duration = appointment.duration
    open_hour, close_hour = business_hours

    suggestions: list[IntervalT] = []
    for offset, step_minutes in ((0, SAME_DAY_STEP_MINUTES), (1, NEXT_DAY_STEP_MINUTES)):
        if len(suggestions) >= max_suggestions:
            break
        day = local_start.date() + timedelta(days=offset)
        day_start = datetime.combine(day, time(open_hour), tzinfo=zone)
        day_end = datetime.combine(day, time(0), tzinfo=zone) + timedelta(hours=close_hour)
        found = _scan_day(
            appointment,
            existing,
            day_start,
            day_end,
            timedelta(minutes=step_minutes),
            duration,
            max_suggestions - len(suggestions),
            adjacency_minutes,
            skip=local_start if offset == 0 else None,
        )
        suggestions.extend(found)

    logger.debug("Suggested %d alternatives for %s", len(suggestions), appointment.id)
    return suggestions
