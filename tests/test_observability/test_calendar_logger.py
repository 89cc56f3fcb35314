"""Tests for the calendar logger."""

import json
import logging

import pytest
from pydantic import ValidationError

from clinic_calendar.config import Settings
from clinic_calendar.observability import (
    CalendarLogger,
    ConflictCheckEvent,
    EventType,
    ExpansionEvent,
    LogFilterConfig,
)


@pytest.fixture
def temp_log_dir(tmp_path):
    """Create temporary log directory."""
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    return log_dir


@pytest.fixture
def cal_log(temp_log_dir):
    return CalendarLogger(log_dir=temp_log_dir)


class TestLogFilterConfig:
    def test_levels_normalised(self):
        config = LogFilterConfig(default_level="warning", component_levels={"recurrence": "debug"})
        assert config.default_level == "WARNING"
        assert config.threshold("recurrence") == logging.DEBUG
        assert config.threshold("conflicts") == logging.WARNING

    def test_unknown_level_rejected(self):
        with pytest.raises(ValidationError):
            LogFilterConfig(default_level="LOUD")
        with pytest.raises(ValidationError):
            LogFilterConfig(component_levels={"recurrence": "chatty"})

    def test_from_settings(self):
        settings = Settings(_env_file=None, log_level="ERROR", component_log_levels={"cache": "DEBUG"})
        config = LogFilterConfig.from_settings(settings)
        assert config.default_level == "ERROR"
        assert config.threshold("cache") == logging.DEBUG


class TestMessageFiltering:
    def test_forwards_to_component_logger(self, caplog):
        cal_log = CalendarLogger()
        with caplog.at_level(logging.DEBUG, logger="clinic_calendar.conflicts"):
            cal_log.info("conflicts", "found %d conflicts", 2)

        assert [r.name for r in caplog.records] == ["clinic_calendar.conflicts"]
        assert caplog.records[0].getMessage() == "found 2 conflicts"

    def test_below_threshold_dropped(self, caplog):
        cal_log = CalendarLogger(LogFilterConfig(default_level="INFO"))
        with caplog.at_level(logging.DEBUG, logger="clinic_calendar.recurrence"):
            cal_log.debug("recurrence", "expanding")
        assert caplog.records == []

    def test_component_override(self, caplog):
        cal_log = CalendarLogger(LogFilterConfig(component_levels={"recurrence": "DEBUG"}))
        with caplog.at_level(logging.DEBUG, logger="clinic_calendar.recurrence"):
            cal_log.debug("recurrence", "expanding")
        assert len(caplog.records) == 1

    def test_disabled_component(self):
        cal_log = CalendarLogger(LogFilterConfig(disabled_components={"cache"}))
        assert not cal_log.is_enabled_for("cache", logging.ERROR)
        assert cal_log.is_enabled_for("conflicts", logging.ERROR)

    def test_master_switch(self):
        cal_log = CalendarLogger(enabled=False)
        assert not cal_log.is_enabled_for("conflicts", logging.CRITICAL)


class TestEvents:
    def test_init_creates_log_directory(self, tmp_path):
        log_dir = tmp_path / "new_logs"
        CalendarLogger(log_dir=log_dir)
        assert log_dir.exists()

    def test_record_writes_component_file(self, cal_log, temp_log_dir):
        cal_log.record(ExpansionEvent(frequency="weekly", occurrences=4, series_id="grp-1"))

        lines = (temp_log_dir / "recurrence.jsonl").read_text().splitlines()
        data = json.loads(lines[0])
        assert data["event_type"] == "recurrence_expanded"
        assert data["occurrences"] == 4

    def test_no_files_without_log_dir(self, tmp_path):
        cal_log = CalendarLogger()
        cal_log.record(ExpansionEvent(frequency="daily"))
        assert cal_log.get_recent_events("recurrence") == []

    def test_disabled_logger_writes_nothing(self, temp_log_dir):
        cal_log = CalendarLogger(log_dir=temp_log_dir, enabled=False)
        cal_log.record(ExpansionEvent(frequency="daily"))
        assert not (temp_log_dir / "recurrence.jsonl").exists()

    def test_operation_success(self, cal_log):
        with cal_log.operation(
            ConflictCheckEvent(appointment_id="a1"), EventType.CONFLICT_CHECK_ERROR
        ) as event:
            event.conflicts = 2

        [recorded] = cal_log.get_recent_events("conflicts")
        assert recorded["event_type"] == "conflict_check_success"
        assert recorded["conflicts"] == 2
        assert recorded["duration_ms"] >= 0
        assert len(recorded["request_id"]) == 8

    def test_operation_error(self, cal_log):
        with pytest.raises(ValueError):
            with cal_log.operation(
                ConflictCheckEvent(appointment_id="a1"), EventType.CONFLICT_CHECK_ERROR
            ):
                raise ValueError("boom")

        [recorded] = cal_log.get_recent_events("conflicts")
        assert recorded["event_type"] == "conflict_check_error"
        assert recorded["error_type"] == "ValueError"
        assert recorded["error_message"] == "boom"

    def test_callbacks(self, cal_log):
        seen = []
        cal_log.add_callback(seen.append)
        cal_log.record(ExpansionEvent(frequency="daily"))
        assert [e.event_type for e in seen] == [EventType.RECURRENCE_EXPANDED]

    def test_failing_callback_does_not_break_recording(self, cal_log, temp_log_dir):
        def broken(event):
            raise RuntimeError("callback failed")

        cal_log.add_callback(broken)
        cal_log.record(ExpansionEvent(frequency="daily"))
        assert (temp_log_dir / "recurrence.jsonl").exists()

    def test_recent_events_limit(self, cal_log):
        for i in range(5):
            cal_log.record(ExpansionEvent(frequency="daily", occurrences=i))
        recent = cal_log.get_recent_events("recurrence", limit=2)
        assert [e["occurrences"] for e in recent] == [3, 4]
