"""Checks of proposed slots against a clinician's blocked time."""

from datetime import datetime
from typing import Optional, Sequence, TypeVar

from clinic_calendar.scheduling.models import Appointment, AppointmentInterval
from clinic_calendar.scheduling.timezones import from_utc

SlotT = TypeVar("SlotT", bound=AppointmentInterval)


def find_blocked_time_conflict(
    proposed: AppointmentInterval,
    blocked: Sequence[Appointment],
) -> Optional[Appointment]:
    """Return the first blocked-time entry overlapping *proposed*.

    Entries that are not blocked time are ignored, and touching ends do not
    count as overlap.
    """
    for entry in blocked:
        if not entry.is_blocked_time:
            continue
        if proposed.start < entry.end and proposed.end > entry.start:
            return entry
    return None


def _clock(value: datetime) -> str:
    return value.strftime("%I:%M %p").lstrip("0")


def blocked_time_conflict_message(entry: Appointment, timezone: str) -> str:
    """User-facing explanation of why a slot cannot be booked."""
    start = from_utc(entry.start, timezone)
    end = from_utc(entry.end, timezone)
    title = entry.title or "Blocked time"
    day = f"{start.strftime('%b')} {start.day}, {start.year}"
    return (
        f'This time conflicts with blocked time "{title}" on {day} '
        f"from {_clock(start)} to {_clock(end)}. Please choose a different time slot."
    )


def filter_slots_by_blocked_time(
    slots: Sequence[SlotT],
    blocked: Sequence[Appointment],
) -> list[SlotT]:
    """Drop every slot that overlaps blocked time."""
    return [slot for slot in slots if find_blocked_time_conflict(slot, blocked) is None]
