"""Tests for CLI commands."""

import json

import pytest
from typer.testing import CliRunner

from clinic_calendar.cli.commands import app


runner = CliRunner()


@pytest.fixture
def pattern_file(tmp_path):
    path = tmp_path / "pattern.json"
    path.write_text(json.dumps({"frequency": "weekly", "daysOfWeek": [1, 3], "endAfterOccurrences": 4}))
    return path


@pytest.fixture
def calendar_files(tmp_path):
    """A proposed 09:30 visit and a booked 09:00 visit, in UTC."""
    candidate = tmp_path / "candidate.json"
    candidate.write_text(
        json.dumps(
            {
                "id": "new",
                "clinician_id": "clin-1",
                "start_at": "2024-01-08T09:30:00Z",
                "end_at": "2024-01-08T10:30:00Z",
            }
        )
    )
    existing = tmp_path / "existing.json"
    existing.write_text(
        json.dumps(
            [
                {
                    "id": "booked",
                    "clinician_id": "clin-1",
                    "start_at": "2024-01-08T09:00:00Z",
                    "end_at": "2024-01-08T10:00:00Z",
                }
            ]
        )
    )
    return candidate, existing


class TestExpand:
    def test_json_output(self, pattern_file):
        result = runner.invoke(
            app, ["expand", str(pattern_file), "--start", "2024-01-01T09:00", "--tz", "America/New_York", "--json"]
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout) == [
            "2024-01-01T09:00:00-05:00",
            "2024-01-03T09:00:00-05:00",
            "2024-01-08T09:00:00-05:00",
            "2024-01-10T09:00:00-05:00",
        ]

    def test_table_output(self, pattern_file):
        result = runner.invoke(app, ["expand", str(pattern_file), "--start", "2024-01-01T09:00", "--tz", "UTC"])

        assert result.exit_code == 0
        assert "2024-01-10" in result.stdout

    def test_max_occurrences(self, tmp_path):
        path = tmp_path / "daily.json"
        path.write_text(json.dumps({"frequency": "daily"}))

        result = runner.invoke(
            app, ["expand", str(path), "--start", "2024-01-01T09:00", "--tz", "UTC", "--max", "3", "--json"]
        )

        assert len(json.loads(result.stdout)) == 3

    def test_invalid_pattern(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"frequency": "monthly", "dayOfMonth": 40}))

        result = runner.invoke(app, ["expand", str(path), "--start", "2024-01-01T09:00"])

        assert result.exit_code == 1
        assert "Invalid pattern" in result.stdout

    def test_invalid_start(self, pattern_file):
        result = runner.invoke(app, ["expand", str(pattern_file), "--start", "next tuesday"])
        assert result.exit_code == 1
        assert "Invalid start time" in result.stdout

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["expand", str(tmp_path / "nope.json"), "--start", "2024-01-01T09:00"])
        assert result.exit_code == 1
        assert "File not found" in result.stdout


class TestDescribe:
    def test_describe(self, pattern_file):
        result = runner.invoke(app, ["describe", str(pattern_file)])
        assert result.exit_code == 0
        assert "Every week on Monday and Wednesday, 4 times" in result.stdout

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{frequency: weekly")
        result = runner.invoke(app, ["describe", str(path)])
        assert result.exit_code == 1
        assert "Invalid JSON" in result.stdout


class TestConflicts:
    def test_json_output(self, calendar_files):
        candidate, existing = calendar_files
        result = runner.invoke(app, ["conflicts", str(candidate), str(existing), "--tz", "UTC", "--json"])

        assert result.exit_code == 0
        [conflict] = json.loads(result.stdout)
        assert conflict["type"] == "overlap"
        assert conflict["overlap_minutes"] == 30
        assert conflict["existing"]["id"] == "booked"

    def test_table_output(self, calendar_files):
        candidate, existing = calendar_files
        result = runner.invoke(app, ["conflicts", str(candidate), str(existing), "--tz", "UTC"])

        assert result.exit_code == 0
        assert "overlap" in result.stdout

    def test_no_conflicts(self, tmp_path, calendar_files):
        candidate, _ = calendar_files
        empty = tmp_path / "empty.json"
        empty.write_text("[]")

        result = runner.invoke(app, ["conflicts", str(candidate), str(empty)])

        assert result.exit_code == 0
        assert "No conflicts" in result.stdout

    def test_existing_must_be_list(self, tmp_path, calendar_files):
        candidate, _ = calendar_files
        not_a_list = tmp_path / "object.json"
        not_a_list.write_text("{}")

        result = runner.invoke(app, ["conflicts", str(candidate), str(not_a_list)])

        assert result.exit_code == 1

    def test_invalid_appointment(self, tmp_path, calendar_files):
        _, existing = calendar_files
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"id": "x"}))

        result = runner.invoke(app, ["conflicts", str(bad), str(existing)])

        assert result.exit_code == 1
        assert "Invalid appointment" in result.stdout


class TestSuggest:
    def test_json_output(self, tmp_path, calendar_files):
        _, existing = calendar_files
        candidate = tmp_path / "same-slot.json"
        candidate.write_text(
            json.dumps({"id": "new", "start": "2024-01-08T09:00:00Z", "end": "2024-01-08T10:00:00Z"})
        )

        result = runner.invoke(
            app, ["suggest", str(candidate), str(existing), "--tz", "UTC", "--count", "2", "--json"]
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout) == [
            {"start": "2024-01-08T10:15:00+00:00", "end": "2024-01-08T11:15:00+00:00"},
            {"start": "2024-01-08T10:30:00+00:00", "end": "2024-01-08T11:30:00+00:00"},
        ]

    def test_table_output(self, calendar_files):
        candidate, existing = calendar_files
        result = runner.invoke(app, ["suggest", str(candidate), str(existing), "--tz", "UTC"])

        assert result.exit_code == 0
        assert "Suggested times" in result.stdout


class TestVersion:
    def test_version(self):
        from clinic_calendar import __version__

        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout
