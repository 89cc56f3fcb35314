"""Recurrence expansion and conflict detection for clinician calendars."""

from clinic_calendar.scheduling.models import (
    Appointment,
    AppointmentInterval,
    AppointmentOccurrence,
    AppointmentStatus,
    AppointmentType,
    AvailabilitySlot,
    Conflict,
    ConflictType,
    DayOfWeek,
    Frequency,
    RecurrencePattern,
    ResolutionParams,
    ResolutionStrategy,
)
from clinic_calendar.scheduling.recurrence import (
    create_recurring_appointments,
    format_recurring_pattern,
    generate_recurring_dates,
    get_next_occurrence,
    parse_pattern,
)
from clinic_calendar.scheduling.conflicts import (
    classify_conflict,
    detect_conflicts,
    detect_recurring_conflicts,
    resolve_conflict,
    suggest_alternative_times,
)
from clinic_calendar.scheduling.repository import (
    AppointmentRepository,
    InMemoryAppointmentRepository,
)
from clinic_calendar.scheduling.service import CalendarService

__all__ = [
    "Appointment",
    "AppointmentInterval",
    "AppointmentOccurrence",
    "AppointmentRepository",
    "AppointmentStatus",
    "AppointmentType",
    "AvailabilitySlot",
    "CalendarService",
    "Conflict",
    "ConflictType",
    "DayOfWeek",
    "Frequency",
    "InMemoryAppointmentRepository",
    "RecurrencePattern",
    "ResolutionParams",
    "ResolutionStrategy",
    "classify_conflict",
    "create_recurring_appointments",
    "detect_conflicts",
    "detect_recurring_conflicts",
    "format_recurring_pattern",
    "generate_recurring_dates",
    "get_next_occurrence",
    "parse_pattern",
    "resolve_conflict",
    "suggest_alternative_times",
]
