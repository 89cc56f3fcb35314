"""Tests for time zone normalisation and conversion."""

from datetime import date, datetime, time, timezone

import pytest

from clinic_calendar.scheduling.timezones import (
    DEFAULT_TIMEZONE,
    combine_local,
    ensure_iana_timezone,
    from_utc,
    get_zone,
    is_same_local_day,
    local_date,
    to_utc,
)

UTC = timezone.utc


class TestEnsureIanaTimezone:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("EST", "America/New_York"),
            ("cdt", "America/Chicago"),
            ("MST", "America/Denver"),
            ("PDT", "America/Los_Angeles"),
            ("Europe/London", "Europe/London"),
            (" America/Denver ", "America/Denver"),
        ],
    )
    def test_known_values(self, value, expected):
        assert ensure_iana_timezone(value) == expected

    def test_list_uses_first_element(self):
        assert ensure_iana_timezone(["America/Denver", "UTC"]) == "America/Denver"

    @pytest.mark.parametrize("value", [None, "", "   ", []])
    def test_blank_values_use_default(self, value):
        assert ensure_iana_timezone(value) == DEFAULT_TIMEZONE

    def test_invalid_name_uses_default(self, caplog):
        assert ensure_iana_timezone("Mars/Olympus_Mons", default="UTC") == "UTC"
        assert "Invalid timezone" in caplog.text

    def test_get_zone(self):
        assert get_zone("PST").key == "America/Los_Angeles"
        assert get_zone(None).key == DEFAULT_TIMEZONE


class TestConversions:
    def test_naive_read_in_zone(self):
        assert to_utc(datetime(2024, 1, 8, 9, 0), "America/Chicago") == datetime(
            2024, 1, 8, 15, 0, tzinfo=UTC
        )

    def test_naive_without_zone_is_utc(self):
        assert to_utc(datetime(2024, 1, 8, 9, 0)) == datetime(2024, 1, 8, 9, 0, tzinfo=UTC)

    def test_from_utc(self):
        local = from_utc(datetime(2024, 7, 1, 14, 0, tzinfo=UTC), "America/Chicago")
        assert (local.hour, local.utcoffset().total_seconds()) == (9, -5 * 3600)

    def test_combine_local_respects_dst(self):
        assert combine_local(date(2024, 1, 8), "09:00", "America/Chicago") == datetime(
            2024, 1, 8, 15, 0, tzinfo=UTC
        )
        assert combine_local(date(2024, 7, 1), time(9, 0), "America/Chicago") == datetime(
            2024, 7, 1, 14, 0, tzinfo=UTC
        )

    def test_local_date(self):
        late_evening = datetime(2024, 1, 9, 3, 0, tzinfo=UTC)
        assert local_date(late_evening, "America/Chicago") == date(2024, 1, 8)
        assert local_date(late_evening, "UTC") == date(2024, 1, 9)

    def test_is_same_local_day(self):
        a = datetime(2024, 1, 8, 15, 0, tzinfo=UTC)
        b = datetime(2024, 1, 9, 3, 0, tzinfo=UTC)
        assert is_same_local_day(a, b, "America/Chicago")
        assert not is_same_local_day(a, b, "UTC")
