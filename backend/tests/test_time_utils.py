from datetime import datetime

import pytest

from pos_ledger.time_utils import parse_iso_datetime, to_utc_z, window_start


NOW = datetime(2024, 3, 31, 15, 45, 12)


def test_today_starts_at_utc_midnight():
    assert window_start("today", NOW) == datetime(2024, 3, 31)


def test_week_is_seven_days_back():
    assert window_start("week", NOW) == datetime(2024, 3, 24, 15, 45, 12)


def test_month_clamps_to_end_of_shorter_month():
    assert window_start("month", NOW) == datetime(2024, 2, 29, 15, 45, 12)
    assert window_start("month", datetime(2024, 1, 15)) == datetime(2023, 12, 15)


def test_year_back_from_leap_day():
    assert window_start("year", datetime(2024, 2, 29, 8)) == datetime(2023, 2, 28, 8)


def test_unknown_window():
    with pytest.raises(ValueError):
        window_start("quarter", NOW)


def test_parse_offsets_to_utc_naive():
    assert parse_iso_datetime("2024-03-31T10:00:00+02:00") == datetime(2024, 3, 31, 8)
    assert parse_iso_datetime("2024-03-31T10:00:00Z") == datetime(2024, 3, 31, 10)
    assert parse_iso_datetime("  ") is None


def test_to_utc_z_drops_microseconds():
    assert to_utc_z(datetime(2024, 3, 31, 10, 0, 0, 999)) == "2024-03-31T10:00:00Z"
    assert to_utc_z(None) is None
