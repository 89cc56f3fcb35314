"""Calendar service: recurrence and conflict checks against stored calendars."""

from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional, Union

from clinic_calendar.cache import TTLCache
from clinic_calendar.config import Settings, get_settings
from clinic_calendar.observability import (
    CalendarEvent,
    CalendarLogger,
    ConflictCheckEvent,
    EventType,
    ExpansionEvent,
    RepositoryEvent,
    ResolutionEvent,
)
from clinic_calendar.retry import RetryPolicy
from clinic_calendar.scheduling.blocked_time import find_blocked_time_conflict
from clinic_calendar.scheduling.conflicts import (
    detect_recurring_conflicts,
    overlap_minutes,
    resolve_conflict,
    suggest_alternative_times,
)
from clinic_calendar.scheduling.models import (
    Appointment,
    AppointmentInterval,
    AppointmentStatus,
    AvailabilitySlot,
    Conflict,
    DayOfWeek,
    RecurrencePattern,
    ResolutionParams,
    ResolutionStrategy,
)
from clinic_calendar.scheduling.recurrence import (
    create_recurring_appointments,
    expand_occurrences,
    is_recurring_appointment,
)
from clinic_calendar.scheduling.repository import AppointmentRepository
from clinic_calendar.scheduling.timezones import combine_local, ensure_iana_timezone, from_utc

_INACTIVE = (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)


class CalendarService:
    """Runs recurrence and conflict checks against a clinician's calendar.

    The scheduling functions stay pure; this class owns the collaborators
    around them: the repository (read through a retry policy and a TTL
    cache) and the calendar logger.
    """

    def __init__(
        self,
        repository: AppointmentRepository,
        settings: Optional[Settings] = None,
        cal_logger: Optional[CalendarLogger] = None,
        cache: Optional[TTLCache[list[Appointment]]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.repository = repository
        self.settings = settings or get_settings()
        self.log = cal_logger or CalendarLogger.from_settings(self.settings)
        self.cache = cache if cache is not None else TTLCache(
            namespace="appointments",
            max_size=self.settings.cache_max_size,
            default_ttl=self.settings.cache_ttl_seconds,
        )
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Repository access
    # ------------------------------------------------------------------

    def _zone(self, timezone: Optional[str]) -> str:
        return ensure_iana_timezone(timezone, default=self.settings.default_timezone)

    def fetch_appointments(
        self,
        clinician_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Appointment]:
        """Return the clinician's appointments in ``[start, end)``, cached."""
        key = TTLCache.make_key(clinician_id, start, end)
        cached = self.cache.get(key)
        if cached is not None:
            self.log.record(
                RepositoryEvent(
                    clinician_id=clinician_id,
                    window_start=start,
                    window_end=end,
                    cache_hit=True,
                    results_count=len(cached),
                )
            )
            return list(cached)

        with self.log.operation(
            RepositoryEvent(clinician_id=clinician_id, window_start=start, window_end=end),
            EventType.REPOSITORY_ERROR,
        ) as event:
            appointments = self.retry_policy.call(
                self.repository.list_appointments, clinician_id, start, end, sleep=self._sleep
            )
            event.results_count = len(appointments)

        self.cache.set(key, appointments)
        return list(appointments)

    def _active_appointments(
        self, clinician_id: str, start: datetime, end: datetime
    ) -> list[Appointment]:
        return [
            appt
            for appt in self.fetch_appointments(clinician_id, start, end)
            if appt.status not in _INACTIVE
        ]

    def invalidate(self, clinician_id: Optional[str] = None) -> None:
        """Drop cached calendars for one clinician, or for everyone."""
        if clinician_id is None:
            self.cache.clear()
        else:
            self.cache.delete_prefix(f"{clinician_id}:")

    # ------------------------------------------------------------------
    # Conflict checks
    # ------------------------------------------------------------------

    @staticmethod
    def _require_clinician(appointment: Appointment) -> str:
        if not appointment.clinician_id:
            raise ValueError(f"Appointment {appointment.id!r} has no clinician_id")
        return appointment.clinician_id

    def _check_window(self, candidate: Appointment, zone: str) -> tuple[datetime, datetime]:
        """Span covering the candidate (or its whole series) plus adjacency slack."""
        slack = timedelta(minutes=self.settings.adjacency_threshold_minutes)
        if not is_recurring_appointment(candidate):
            return candidate.start - slack, candidate.end + slack

        pattern = candidate.recurrence
        if pattern.timezone is None:
            pattern = pattern.model_copy(update={"timezone": zone})
        occurrences = expand_occurrences(
            candidate.recurring_group_id,
            from_utc(candidate.start, pattern.timezone),
            candidate.end,
            pattern,
            self.settings.max_occurrences,
        )
        if not occurrences:
            return candidate.start - slack, candidate.end + slack
        return occurrences[0].start - slack, occurrences[-1].end + slack

    def check_appointment(
        self,
        candidate: Appointment,
        timezone: Optional[str] = None,
    ) -> list[Conflict]:
        """Conflicts between *candidate* (every occurrence, if recurring) and
        the clinician's active appointments."""
        clinician_id = self._require_clinician(candidate)
        zone = self._zone(timezone)
        window_start, window_end = self._check_window(candidate, zone)
        existing = self._active_appointments(clinician_id, window_start, window_end)

        with self.log.operation(
            ConflictCheckEvent(
                appointment_id=candidate.id,
                clinician_id=clinician_id,
                recurring=is_recurring_appointment(candidate),
                compared=len(existing),
            ),
            EventType.CONFLICT_CHECK_ERROR,
        ) as event:
            conflicts = detect_recurring_conflicts(
                candidate,
                existing,
                zone,
                max_occurrences=self.settings.max_occurrences,
                adjacency_minutes=self.settings.adjacency_threshold_minutes,
            )
            event.conflicts = len(conflicts)
            event.conflict_types = sorted({c.type.value for c in conflicts})

        if conflicts:
            self.log.info(
                "conflicts", "%d conflicts for appointment %s", len(conflicts), candidate.id
            )
        return conflicts

    def check_blocked_time(self, candidate: Appointment) -> Optional[Appointment]:
        """First blocked-time entry overlapping *candidate*, if any."""
        clinician_id = self._require_clinician(candidate)
        blocked = [
            appt
            for appt in self._active_appointments(clinician_id, candidate.start, candidate.end)
            if appt.is_blocked_time
        ]
        return find_blocked_time_conflict(candidate, blocked)

    def suggest_times(
        self,
        candidate: Appointment,
        timezone: Optional[str] = None,
        max_suggestions: Optional[int] = None,
    ) -> list[Appointment]:
        """Conflict-free copies of *candidate* on its day or the next."""
        clinician_id = self._require_clinician(candidate)
        zone = self._zone(timezone)
        day = from_utc(candidate.start, zone).date()
        existing = self._active_appointments(
            clinician_id,
            combine_local(day, time(0), zone),
            combine_local(day + timedelta(days=2), time(0), zone),
        )

        suggestions = suggest_alternative_times(
            candidate,
            existing,
            zone,
            max_suggestions=max_suggestions or self.settings.max_suggestions,
            business_hours=self.settings.business_hours,
            adjacency_minutes=self.settings.adjacency_threshold_minutes,
        )
        self.log.record(
            CalendarEvent(
                event_type=EventType.ALTERNATIVES_SUGGESTED,
                component="conflicts",
                metadata={"appointment_id": candidate.id, "suggestions": len(suggestions)},
            )
        )
        return suggestions

    def resolve(
        self,
        conflict: Conflict,
        strategy: Union[ResolutionStrategy, str],
        params: Optional[ResolutionParams] = None,
    ) -> Union[AppointmentInterval, list[AppointmentInterval]]:
        """Apply *strategy* to *conflict* and log the outcome."""
        with self.log.operation(
            ResolutionEvent(
                appointment_id=conflict.candidate_id,
                conflict_type=conflict.type.value,
                strategy=getattr(strategy, "value", str(strategy)),
            ),
            EventType.RESOLUTION_ERROR,
        ) as event:
            result = resolve_conflict(conflict, strategy, params)
            event.results = len(result) if isinstance(result, list) else 1
        return result

    # ------------------------------------------------------------------
    # Series and availability
    # ------------------------------------------------------------------

    def create_series(
        self,
        base: Appointment,
        pattern: RecurrencePattern,
        timezone: Optional[str] = None,
        series_id: Optional[str] = None,
    ) -> list[Appointment]:
        """Expand *base* into a stored series (bulk ceiling applies)."""
        zone = self._zone(timezone)
        with self.log.operation(
            ExpansionEvent(frequency=pattern.frequency.value, series_id=series_id),
            EventType.RECURRENCE_ERROR,
        ) as event:
            appointments = create_recurring_appointments(
                base,
                pattern,
                zone,
                max_occurrences=self.settings.bulk_max_occurrences,
                series_id=series_id,
            )
            event.occurrences = len(appointments)
            if appointments:
                event.series_id = appointments[0].recurring_group_id

        if not appointments:
            self.log.info("recurrence", "pattern for %s produced no occurrences", base.id)
            return appointments

        self.retry_policy.call(self.repository.save_appointments, appointments, sleep=self._sleep)
        if base.clinician_id:
            self.invalidate(base.clinician_id)
        return appointments

    def generate_slots(
        self,
        clinician_id: str,
        day: date,
        rule: AvailabilitySlot,
        slot_minutes: Optional[int] = None,
    ) -> list[AppointmentInterval]:
        """Carve one availability window on *day* into fixed-length slots."""
        slot_minutes = slot_minutes or self.settings.default_slot_minutes
        zone = self._zone(rule.timezone)
        current = combine_local(day, rule.start_time, zone)
        end = combine_local(day, rule.end_time, zone)
        delta = timedelta(minutes=slot_minutes)

        slots: list[AppointmentInterval] = []
        while current + delta <= end:
            slots.append(
                AppointmentInterval(
                    id=f"{clinician_id}-{current:%Y%m%dT%H%MZ}",
                    start=current,
                    end=current + delta,
                )
            )
            current += delta
        return slots

    def find_open_slots(
        self,
        clinician_id: str,
        start_date: date,
        end_date: date,
        slot_minutes: Optional[int] = None,
    ) -> list[AppointmentInterval]:
        """Open slots from weekly availability after removing booked and
        blocked time. Dates are read in the clinician's default zone."""
        availability = self.retry_policy.call(
            self.repository.get_availability, clinician_id, sleep=self._sleep
        )
        rules_by_day: dict[DayOfWeek, list[AvailabilitySlot]] = defaultdict(list)
        for rule in availability:
            if rule.is_available:
                rules_by_day[rule.day_of_week].append(rule)

        zone = self._zone(None)
        booked = self._active_appointments(
            clinician_id,
            combine_local(start_date, time(0), zone) - timedelta(days=1),
            combine_local(end_date, time(0), zone) + timedelta(days=2),
        )

        available: list[AppointmentInterval] = []
        current = start_date
        while current <= end_date:
            for rule in rules_by_day.get(DayOfWeek.from_date(current), []):
                for slot in self.generate_slots(clinician_id, current, rule, slot_minutes):
                    if not any(overlap_minutes(slot, appt) > 0 for appt in booked):
                        available.append(slot)
            current += timedelta(days=1)
        return available
