"""
Assignment validator tests.

Covers:
    - rule order (first failing rule wins)
    - availability-notes heuristic, including the "any" wildcard
    - helper cap
    - blank names and unparseable dates
"""

import pytest

from woodbank.services.assignment import (
    MSG_NO_ASSIGNEE,
    MSG_NO_DATE,
    notes_mark_unavailable,
    validate_assignment,
    weekday_token,
)

TUESDAY = "2024-03-05"
WEDNESDAY = "2024-03-06"

POOL = [
    {"name": "Dana Driver", "username": "dana", "availability_notes": "off on tue"},
    {"name": "Rob Ready", "username": "rob", "availability_notes": "Mornings only"},
    {"name": "Ann Anyday", "username": "ann", "availability_notes": "Unavailable any weekend"},
]


class TestRequiredAssignment:
    @pytest.mark.parametrize("status", ["scheduled", "in_progress", "completed"])
    def test_no_assignee_rejected(self, status):
        result = validate_assignment(status, TUESDAY, [], [], POOL)
        assert not result.ok
        assert result.reason == MSG_NO_ASSIGNEE

    def test_missing_assignee_reported_before_missing_date(self):
        result = validate_assignment("scheduled", None, [], [], POOL)
        assert result.reason == MSG_NO_ASSIGNEE

    def test_no_date_rejected(self):
        result = validate_assignment("scheduled", "", ["Rob Ready"], [], POOL)
        assert result.reason == MSG_NO_DATE

    def test_blank_names_do_not_count(self):
        result = validate_assignment("scheduled", TUESDAY, ["  ", ""], [], POOL)
        assert result.reason == MSG_NO_ASSIGNEE

    def test_received_needs_no_driver(self):
        assert validate_assignment("received", None, [], [], POOL).ok


class TestAvailabilityNotes:
    def test_driver_off_on_tuesday_rejected(self):
        result = validate_assignment("scheduled", TUESDAY, ["Dana Driver"], [], POOL)
        assert not result.ok
        assert "Dana Driver" in result.reason
        assert result.details["unavailable_drivers"] == ["Dana Driver"]

    def test_same_driver_on_wednesday_accepted(self):
        assert validate_assignment("scheduled", WEDNESDAY, ["Dana Driver"], [], POOL).ok

    def test_any_wildcard_flags_every_day(self):
        result = validate_assignment("scheduled", WEDNESDAY, ["Ann Anyday"], [], POOL)
        assert not result.ok

    def test_names_all_offending_drivers(self):
        result = validate_assignment("in_progress", TUESDAY, ["Dana Driver", "Rob Ready", "Ann Anyday"], [], POOL)
        assert result.details["unavailable_drivers"] == ["Dana Driver", "Ann Anyday"]

    def test_match_by_username_case_insensitive(self):
        assert not validate_assignment("scheduled", TUESDAY, ["DANA"], [], POOL).ok

    def test_unknown_driver_not_flagged(self):
        assert validate_assignment("scheduled", TUESDAY, ["Someone New"], [], POOL).ok

    def test_datetime_string_accepted(self):
        assert not validate_assignment("scheduled", "2024-03-05T09:30:00Z", ["Dana Driver"], [], POOL).ok

    def test_unparseable_date_rejected(self):
        result = validate_assignment("scheduled", "next tuesday", ["Rob Ready"], [], POOL)
        assert not result.ok
        assert "not a valid date" in result.reason

    def test_heuristic_requires_both_tokens(self):
        assert notes_mark_unavailable("tue evenings", "tue") is False
        assert notes_mark_unavailable("OFF TUE", "tue") is True
        assert notes_mark_unavailable(None, "tue") is False

    def test_weekday_token_is_locale_independent(self):
        assert weekday_token(TUESDAY) == "tue"
        assert weekday_token("2024-03-10") == "sun"


class TestHelperCap:
    def test_four_helpers_allowed(self):
        helpers = ["H1", "H2", "H3", "H4"]
        assert validate_assignment("scheduled", WEDNESDAY, ["Rob Ready"], helpers, POOL).ok

    def test_five_helpers_rejected(self):
        helpers = ["H1", "H2", "H3", "H4", "H5"]
        result = validate_assignment("scheduled", WEDNESDAY, ["Rob Ready"], helpers, POOL)
        assert not result.ok
        assert "at most 4 helpers" in result.reason

    def test_availability_checked_before_helper_cap(self):
        helpers = ["H1", "H2", "H3", "H4", "H5"]
        result = validate_assignment("scheduled", TUESDAY, ["Dana Driver"], helpers, POOL)
        assert "Dana Driver" in result.reason
