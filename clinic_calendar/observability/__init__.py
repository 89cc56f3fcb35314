"""Structured logging for the calendar service."""

from clinic_calendar.observability.events import (
    CalendarEvent,
    ConflictCheckEvent,
    EventType,
    ExpansionEvent,
    RepositoryEvent,
    ResolutionEvent,
)
from clinic_calendar.observability.logger import CalendarLogger, LogFilterConfig

__all__ = [
    "CalendarEvent",
    "CalendarLogger",
    "ConflictCheckEvent",
    "EventType",
    "ExpansionEvent",
    "LogFilterConfig",
    "RepositoryEvent",
    "ResolutionEvent",
]
