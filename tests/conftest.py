"""Pytest configuration and fixtures."""

import pytest

from clinic_calendar.config import Settings
from clinic_calendar.observability import CalendarEvent, CalendarLogger
from clinic_calendar.scheduling.repository import InMemoryAppointmentRepository
from clinic_calendar.scheduling.service import CalendarService


@pytest.fixture
def settings():
    """Settings isolated from any local .env file, with instant retries."""
    return Settings(
        _env_file=None,
        default_timezone="America/Chicago",
        retry_max_attempts=3,
        retry_base_delay=0,
        retry_jitter=0,
        log_dir=None,
    )


@pytest.fixture
def repo():
    return InMemoryAppointmentRepository()


@pytest.fixture
def recorded_events():
    """Events captured through a logger callback."""
    return []


@pytest.fixture
def cal_logger(recorded_events):
    cal_log = CalendarLogger()

    def _capture(event: CalendarEvent) -> None:
        recorded_events.append(event)

    cal_log.add_callback(_capture)
    return cal_log


@pytest.fixture
def service(repo, settings, cal_logger):
    return CalendarService(repo, settings=settings, cal_logger=cal_logger, sleep=lambda _: None)
