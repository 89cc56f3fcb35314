"""Structured events emitted by the calendar service."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of calendar events."""

    RECURRENCE_EXPANDED = "recurrence_expanded"
    RECURRENCE_ERROR = "recurrence_error"
    CONFLICT_CHECK_SUCCESS = "conflict_check_success"
    CONFLICT_CHECK_ERROR = "conflict_check_error"
    CONFLICT_RESOLVED = "conflict_resolved"
    RESOLUTION_ERROR = "resolution_error"
    ALTERNATIVES_SUGGESTED = "alternatives_suggested"
    REPOSITORY_FETCH = "repository_fetch"
    REPOSITORY_ERROR = "repository_error"


class CalendarEvent(BaseModel):
    """Base class for all calendar events."""

    event_type: EventType
    component: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: Optional[str] = None
    duration_ms: Optional[float] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    # Error fields (populated on error)
    error_type: Optional[str] = None
    error_message: Optional[str] = None


class ExpansionEvent(CalendarEvent):
    """A recurrence pattern was expanded into a series."""

    event_type: EventType = EventType.RECURRENCE_EXPANDED
    component: str = "recurrence"
    frequency: str
    occurrences: int = 0
    series_id: Optional[str] = None


class ConflictCheckEvent(CalendarEvent):
    """A candidate appointment was checked against a calendar."""

    event_type: EventType = EventType.CONFLICT_CHECK_SUCCESS
    component: str = "conflicts"
    appointment_id: str
    clinician_id: Optional[str] = None
    recurring: bool = False
    compared: int = 0
    conflicts: int = 0
    conflict_types: list[str] = Field(default_factory=list)


class ResolutionEvent(CalendarEvent):
    """A resolution strategy was applied to a conflict."""

    event_type: EventType = EventType.CONFLICT_RESOLVED
    component: str = "conflicts"
    appointment_id: str
    conflict_type: str
    strategy: str
    results: int = 1


class RepositoryEvent(CalendarEvent):
    """A read from the appointment repository."""

    event_type: EventType = EventType.REPOSITORY_FETCH
    component: str = "repository"
    clinician_id: str
    window_start: datetime
    window_end: datetime
    cache_hit: bool = False
    results_count: int = 0
