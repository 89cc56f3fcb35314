"""Appointment and availability storage used by the calendar service."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Sequence

from clinic_calendar.scheduling.models import Appointment, AvailabilitySlot


class AppointmentRepository(ABC):
    """Storage the calendar service reads appointments and availability from.

    Implementations raise ``RepositoryUnavailableError`` for failures that
    are worth retrying (timeouts, dropped connections).
    """

    @abstractmethod
    def list_appointments(
        self,
        clinician_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Appointment]:
        """Return the clinician's appointments intersecting ``[start, end)``."""
        pass

    @abstractmethod
    def save_appointments(self, appointments: Sequence[Appointment]) -> None:
        """Insert or replace *appointments* by id."""
        pass

    @abstractmethod
    def get_availability(self, clinician_id: str) -> list[AvailabilitySlot]:
        """Return the clinician's weekly availability."""
        pass

    @abstractmethod
    def set_availability(self, clinician_id: str, slots: Sequence[AvailabilitySlot]) -> None:
        """Replace the clinician's weekly availability."""
        pass


class InMemoryAppointmentRepository(AppointmentRepository):
    """Dict-backed repository for tests and the command-line tool."""

    def __init__(self) -> None:
        self._appointments: dict[str, Appointment] = {}
        self._availability: dict[str, list[AvailabilitySlot]] = {}

    def list_appointments(
        self,
        clinician_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Appointment]:
        return sorted(
            (
                appt
                for appt in self._appointments.values()
                if appt.clinician_id == clinician_id and appt.start < end and appt.end > start
            ),
            key=lambda appt: appt.start,
        )

    def save_appointments(self, appointments: Sequence[Appointment]) -> None:
        for appt in appointments:
            self._appointments[appt.id] = appt

    def get_availability(self, clinician_id: str) -> list[AvailabilitySlot]:
        return list(self._availability.get(clinician_id, []))

    def set_availability(self, clinician_id: str, slots: Sequence[AvailabilitySlot]) -> None:
        self._availability[clinician_id] = list(slots)
