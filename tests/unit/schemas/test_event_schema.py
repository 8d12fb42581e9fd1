"""
Unit tests for the event_schema module.

Tests for PreResolutionEvent validation and its wire shape.
"""

import pytest
from pydantic import ValidationError

from hareline.schemas.event import PreResolutionEvent


class TestPreResolutionEvent:
    """Tests for PreResolutionEvent validation."""

    def test_minimal_event(self):
        """Should accept a date and a group tag."""
        event = PreResolutionEvent(date="2026-02-19", group_tag="EWH3")
        assert event.run_number is None
        assert event.to_wire() == {"date": "2026-02-19", "groupTag": "EWH3"}

    def test_camel_case_input(self):
        """Should accept wire names as input."""
        event = PreResolutionEvent.model_validate(
            {"date": "2026-02-19", "groupTag": "EWH3", "runNumber": "1506", "peopleText": "Alice", "startTime": "18:45"}
        )
        assert event.run_number == 1506
        assert event.people == "Alice"
        assert event.start_time == "18:45"

    @pytest.mark.parametrize("value", ["2026-2-19", "2026-02-30", "Feb 19", ""])
    def test_invalid_dates(self, value):
        """Should reject anything but a real YYYY-MM-DD date."""
        with pytest.raises(ValidationError):
            PreResolutionEvent(date=value, group_tag="EWH3")

    @pytest.mark.parametrize("value", ["6:45", "24:00", "18:45:00", "6pm"])
    def test_invalid_start_times(self, value):
        """Should require a 24-hour HH:MM start time."""
        with pytest.raises(ValidationError):
            PreResolutionEvent(date="2026-02-19", group_tag="EWH3", start_time=value)

    def test_blank_start_time_becomes_none(self):
        """Should store an empty start time as None."""
        assert PreResolutionEvent(date="2026-02-19", group_tag="EWH3", start_time="").start_time is None

    def test_blank_group_tag(self):
        """Should reject an empty or whitespace group tag."""
        with pytest.raises(ValidationError):
            PreResolutionEvent(date="2026-02-19", group_tag="   ")

    @pytest.mark.parametrize("value,expected", [(1506, 1506), (1499.5, 1499.5), ("12", 12), (12.0, 12)])
    def test_run_numbers(self, value, expected):
        """Should keep whole and half run numbers."""
        assert PreResolutionEvent(date="2026-02-19", group_tag="EWH3", run_number=value).run_number == expected

    @pytest.mark.parametrize("value", [1499.25, float("nan"), True])
    def test_bad_run_numbers(self, value):
        """Should reject quarter, non-finite and boolean run numbers."""
        with pytest.raises(ValidationError):
            PreResolutionEvent(date="2026-02-19", group_tag="EWH3", run_number=value)

    def test_empty_strings_become_none(self):
        """Should normalize blank optional text to None."""
        event = PreResolutionEvent(date="2026-02-19", group_tag="EWH3", title="  ", location="")
        assert event.title is None
        assert event.location is None
