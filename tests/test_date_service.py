"""Tests for DD.MM.YYYY date handling."""

import pytest
from datetime import date, datetime

from freshtrack.services.date_service import DateService

NOW = datetime(2025, 6, 15, 10, 0)


class TestParse:
    """Tests for DateService.parse."""

    def test_parse_zero_padded(self):
        assert DateService.parse("05.03.2025") == date(2025, 3, 5)

    def test_parse_single_digit_day_and_month(self):
        assert DateService.parse("1.2.2025") == date(2025, 2, 1)

    def test_parse_strips_whitespace(self):
        assert DateService.parse(" 31.12.2025 ") == date(2025, 12, 31)

    @pytest.mark.parametrize("text", [
        "",
        None,
        "31.02.2025",
        "29.02.2025",
        "00.01.2025",
        "01.13.2025",
        "01.01.1899",
        "01.01.2101",
        "2025-02-31",
        "1.1.25",
        "abc",
    ])
    def test_parse_rejects_invalid(self, text):
        """Malformed, out-of-range and impossible dates yield None."""
        assert DateService.parse(text) is None

    def test_parse_leap_day(self):
        assert DateService.parse("29.02.2024") == date(2024, 2, 29)


class TestFormat:
    """Tests for DateService.format."""

    def test_format_pads(self):
        assert DateService.format(date(2025, 3, 5)) == "05.03.2025"

    def test_format_accepts_datetime(self):
        assert DateService.format(NOW) == "15.06.2025"

    @pytest.mark.parametrize("value", [
        date(1900, 1, 1),
        date(2024, 2, 29),
        date(2025, 12, 31),
        date(2100, 12, 31),
    ])
    def test_parse_reads_formatted_dates(self, value):
        assert DateService.parse(DateService.format(value)) == value


class TestValidation:
    """Tests for entry-form validation and range checks."""

    def test_empty_is_valid_by_default(self):
        assert DateService.is_valid("") is True

    def test_empty_can_be_required(self):
        assert DateService.is_valid("", allow_empty=False) is False

    def test_invalid_text(self):
        assert DateService.is_valid("31.02.2025") is False

    def test_within_range(self):
        assert DateService.is_within_range(date(2025, 6, 15), date(2025, 6, 1), date(2025, 6, 30))

    def test_outside_range_is_disabled(self):
        assert DateService.is_disabled(date(2025, 7, 1), max_date=date(2025, 6, 30))
        assert DateService.is_disabled(date(2025, 5, 31), min_date=date(2025, 6, 1))

    def test_no_bounds_never_disabled(self):
        assert not DateService.is_disabled(date(1950, 1, 1))


class TestDaysUntil:
    """Tests for DateService.days_until."""

    @pytest.mark.parametrize("target, expected", [
        (date(2025, 6, 14), -1),
        (date(2025, 6, 15), 0),
        (date(2025, 6, 16), 1),
        (date(2025, 6, 18), 3),
        (date(2025, 6, 19), 4),
    ])
    def test_rounds_up_partial_days(self, target, expected):
        assert DateService.days_until(target, NOW) == expected

    def test_at_midnight(self):
        assert DateService.days_until(date(2025, 6, 16), datetime(2025, 6, 15)) == 1


class TestDateOptions:
    """Tests for DateService.date_options."""

    def test_starts_today(self):
        options = DateService.date_options(date(2025, 6, 15), count=3)
        assert options == ["15.06.2025", "16.06.2025", "17.06.2025"]

    def test_respects_bounds(self):
        options = DateService.date_options(
            date(2025, 6, 15),
            count=10,
            min_date=date(2025, 6, 17),
            max_date=date(2025, 6, 18),
        )
        assert options == ["17.06.2025", "18.06.2025"]
