from datetime import datetime, timedelta

import pytest

from commandx.domain.timeclock.geofence import haversine_miles, lunch_minutes, worked_hours


def test_same_point_is_zero_miles():
    assert haversine_miles(40.0, -75.0, 40.0, -75.0) == 0


def test_one_degree_of_latitude_is_about_69_miles():
    assert haversine_miles(40.0, -75.0, 41.0, -75.0) == pytest.approx(69.1, abs=0.1)


def test_distance_is_symmetric():
    a = haversine_miles(40.0, -75.0, 40.01, -75.02)
    b = haversine_miles(40.01, -75.02, 40.0, -75.0)
    assert a == pytest.approx(b)


def test_worked_hours_subtracts_lunch():
    start = datetime(2026, 3, 2, 8, 0)
    assert worked_hours(start, start + timedelta(hours=8, minutes=30), 30) == 8.0


def test_worked_hours_never_negative():
    start = datetime(2026, 3, 2, 8, 0)
    assert worked_hours(start, start + timedelta(minutes=10), 60) == 0.0


def test_worked_hours_rounds_to_four_places():
    start = datetime(2026, 3, 2, 8, 0)
    assert worked_hours(start, start + timedelta(minutes=20), None) == 0.3333


def test_lunch_minutes_rounds():
    start = datetime(2026, 3, 2, 12, 0)
    assert lunch_minutes(start, start + timedelta(minutes=29, seconds=40)) == 30
