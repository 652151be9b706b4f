"""
Tests for appointment booking windows used by the reference validator
"""
from datetime import datetime, timezone

import pytest

from thorbis.lifecycle import EntitySnapshot
from thorbis.services.references import booked_window


def _appointment(**fields):
    return EntitySnapshot(id="apt-1", entity_type="appointment", status="scheduled", fields=fields)


@pytest.mark.unit
class TestBookedWindow:
    def test_duration_defaults_to_an_hour(self):
        start, end = booked_window(_appointment(scheduled_start="2026-11-02T09:00:00Z"))
        assert start == datetime(2026, 11, 2, 9, tzinfo=timezone.utc)
        assert end == datetime(2026, 11, 2, 10, tzinfo=timezone.utc)

    def test_estimated_duration_in_minutes(self):
        _, end = booked_window(_appointment(scheduled_start="2026-11-02T09:00:00Z", estimated_duration=90))
        assert end == datetime(2026, 11, 2, 10, 30, tzinfo=timezone.utc)

    def test_explicit_end_wins(self):
        _, end = booked_window(
            _appointment(
                scheduled_start="2026-11-02T09:00:00Z",
                scheduled_end="2026-11-02T09:15:00Z",
                estimated_duration=90,
            )
        )
        assert end == datetime(2026, 11, 2, 9, 15, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "fields",
        [
            {},
            {"scheduled_start": "next tuesday"},
            {"scheduled_start": "2026-11-02T09:00:00"},
        ],
    )
    def test_unscheduled(self, fields):
        assert booked_window(_appointment(**fields)) is None
