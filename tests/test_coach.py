"""Tests for the session CLI helpers."""

from coach import session_timeout


def test_no_minutes_runs_until_stopped():
    assert session_timeout(None) is None


def test_zero_minutes_stops_immediately():
    assert session_timeout(0) == 0.0


def test_minutes_become_seconds():
    assert session_timeout(1.5) == 90.0
    assert session_timeout(-3) == 0.0
