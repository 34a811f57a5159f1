"""
Tests for date helpers.
"""

import datetime as dt

import pytest

from leave_portal.utils.dates import (
    calculate_days,
    format_date,
    is_date_in_range,
    next_business_day,
    parse_date,
)


class TestDates:
    def test_parse_date(self):
        assert parse_date("2025-03-10") == dt.date(2025, 3, 10)
        assert parse_date("2025-03-10T08:30:00Z") == dt.date(2025, 3, 10)
        assert parse_date(dt.datetime(2025, 3, 10, 8, 30)) == dt.date(2025, 3, 10)

    def test_parse_date_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_date("10/03/2025")

    def test_format_date(self):
        assert format_date("2025-03-10") == "Mar 10, 2025"
        assert format_date(dt.date(2025, 3, 10), "%Y/%m/%d") == "2025/03/10"

    @pytest.mark.parametrize(
        "start, end, expected",
        [
            ("2025-03-10", "2025-03-12", 3),
            ("2025-03-10", "2025-03-10", 1),
            ("2024-02-28", "2024-03-01", 3),
            ("2025-03-12", "2025-03-10", -1),
        ],
    )
    def test_calculate_days_inclusive(self, start, end, expected):
        assert calculate_days(start, end) == expected

    def test_is_date_in_range(self):
        assert is_date_in_range("2025-03-10", "2025-03-10", "2025-03-12")
        assert is_date_in_range("2025-03-12", "2025-03-10", "2025-03-12")
        assert not is_date_in_range("2025-03-13", "2025-03-10", "2025-03-12")

    def test_next_business_day_skips_weekend(self):
        assert next_business_day("2025-03-07") == dt.date(2025, 3, 10)
        assert next_business_day("2025-03-10") == dt.date(2025, 3, 11)
