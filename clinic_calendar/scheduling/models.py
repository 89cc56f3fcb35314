"""Pydantic models for recurrence and conflict detection."""

import json
import logging
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SerializeAsAny,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise to aware UTC; naive values are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Frequency(str, Enum):
    """Recurrence frequencies."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class DayOfWeek(str, Enum):
    """Weekday names as stored on availability rows."""

    SUNDAY = "sunday"
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"

    @property
    def sunday_index(self) -> int:
        """0=Sunday..6=Saturday."""
        return list(DayOfWeek).index(self)

    @classmethod
    def from_date(cls, day: date) -> "DayOfWeek":
        return list(cls)[(day.weekday() + 1) % 7]


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class AppointmentType(str, Enum):
    """Kinds of calendar entries."""

    APPOINTMENT = "appointment"
    BLOCKED_TIME = "blocked_time"


class ConflictType(str, Enum):
    """Relationship between two intervals that needs attention."""

    OVERLAP = "overlap"
    ADJACENT = "adjacent"
    CONTAINED = "contained"
    CONTAINS = "contains"
    BACK_TO_BACK = "back_to_back"


class ResolutionStrategy(str, Enum):
    """Ways a conflict can be resolved."""

    RESCHEDULE = "reschedule"
    SHORTEN = "shorten"
    SPLIT = "split"
    CANCEL = "cancel"
    OVERRIDE = "override"
    IGNORE = "ignore"


class RecurrencePattern(BaseModel):
    """How a single appointment template repeats.

    Accepts both snake_case names and the camelCase keys found in stored
    patterns (``daysOfWeek``, ``endAfterOccurrences``, ...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    frequency: Frequency = Frequency.WEEKLY
    interval: int = Field(default=1, ge=1)

    # Weekly: 0=Sunday..6=Saturday
    days_of_week: Optional[list[int]] = None

    # Monthly by date, or by ordinal weekday ("2nd Tuesday")
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    week_of_month: Optional[int] = Field(default=None, ge=1, le=5)
    day_of_week_month: Optional[int] = Field(default=None, ge=0, le=6)

    # Yearly
    month_of_year: Optional[int] = Field(default=None, ge=1, le=12)

    # Bounds
    end_date: Optional[date] = None
    end_after_occurrences: Optional[int] = Field(default=None, ge=1)

    exceptions: list[str] = Field(default_factory=list)
    timezone: Optional[str] = None

    @field_validator("frequency", mode="before")
    @classmethod
    def _lenient_frequency(cls, value: Any) -> Any:
        if isinstance(value, Frequency):
            return value
        if isinstance(value, str) and value.lower() in {f.value for f in Frequency}:
            return value.lower()
        logger.warning("Unrecognised frequency %r, treating as weekly", value)
        return Frequency.WEEKLY

    @field_validator("days_of_week")
    @classmethod
    def _check_days(cls, value: Optional[list[int]]) -> Optional[list[int]]:
        if not value:
            return None
        bad = [d for d in value if not 0 <= d <= 6]
        if bad:
            raise ValueError(f"days_of_week must be within 0..6, got {bad}")
        return sorted(set(value))

    @field_validator("end_date", mode="before")
    @classmethod
    def _date_only(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value

    @model_validator(mode="after")
    def _exclusive_monthly_rules(self) -> "RecurrencePattern":
        if self.day_of_month is not None and self.week_of_month is not None:
            raise ValueError("day_of_month and week_of_month are mutually exclusive")
        return self

    @property
    def uses_ordinal_weekday(self) -> bool:
        return self.week_of_month is not None and self.day_of_week_month is not None


class AppointmentInterval(BaseModel):
    """The minimal shape conflict detection reads: an id and two instants."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    start: datetime = Field(validation_alias=AliasChoices("start", "start_at"))
    end: datetime = Field(validation_alias=AliasChoices("end", "end_at"))

    @field_validator("start", "end")
    @classmethod
    def _normalise(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def is_valid(self) -> bool:
        return self.end >= self.start


class Appointment(AppointmentInterval):
    """A stored calendar entry."""

    clinician_id: Optional[str] = None
    client_id: Optional[str] = None
    title: Optional[str] = None
    appointment_type: AppointmentType = Field(
        default=AppointmentType.APPOINTMENT,
        validation_alias=AliasChoices("appointment_type", "type"),
    )
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = None
    recurring_group_id: Optional[str] = None
    recurrence: Optional[RecurrencePattern] = Field(
        default=None,
        validation_alias=AliasChoices("recurrence", "appointment_recurring"),
    )

    @field_validator("recurrence", mode="before")
    @classmethod
    def _decode_pattern(cls, value: Any) -> Any:
        # Patterns are stored as JSON text in older rows
        if isinstance(value, str):
            return json.loads(value) if value.strip() else None
        return value

    @property
    def is_blocked_time(self) -> bool:
        return self.appointment_type == AppointmentType.BLOCKED_TIME


class AppointmentOccurrence(BaseModel):
    """One generated instance of a recurring series."""

    series_id: str
    sequence: int = Field(ge=0)
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _normalise(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


class Conflict(BaseModel):
    """Outcome of comparing a candidate interval with an existing one."""

    type: ConflictType
    candidate: SerializeAsAny[AppointmentInterval]
    existing: SerializeAsAny[AppointmentInterval]
    overlap_minutes: float = 0.0
    possible_resolutions: list[ResolutionStrategy] = Field(default_factory=list)

    @property
    def candidate_id(self) -> str:
        return self.candidate.id

    @property
    def existing_id(self) -> str:
        return self.existing.id


class ResolutionParams(BaseModel):
    """Strategy-specific inputs for ``resolve_conflict``."""

    new_start_time: Optional[datetime] = None
    new_end_time: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    @field_validator("new_start_time", "new_end_time")
    @classmethod
    def _normalise(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class AvailabilitySlot(BaseModel):
    """A clinician's weekly availability window in local wall-clock time."""

    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    timezone: Optional[str] = None
    is_available: bool = True

    @field_validator("day_of_week", mode="before")
    @classmethod
    def _lower_day(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.lower()
        return value

    @model_validator(mode="after")
    def _ordered_times(self) -> "AvailabilitySlot":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self
