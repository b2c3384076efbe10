"""Parsing and formatting of DD.MM.YYYY dates."""

import math
import re
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Union

DATE_PATTERN = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
MIN_YEAR = 1900
MAX_YEAR = 2100
SECONDS_PER_DAY = 24 * 3600


class DateService:
    """Stateless helpers for the numeric day.month.year format."""

    @staticmethod
    def format(value: Union[date, datetime]) -> str:
        """Render a date as zero-padded DD.MM.YYYY."""
        return f"{value.day:02d}.{value.month:02d}.{value.year:04d}"

    @staticmethod
    def parse(text: Optional[str]) -> Optional[date]:
        """
        Parse DD.MM.YYYY text.

        Args:
            text: Date text, day and month may have one or two digits

        Returns:
            The date, or None when the text is empty, malformed, outside
            1900-2100 or not a real calendar day (e.g. 31.02.2025)
        """
        if not text:
            return None

        match = DATE_PATTERN.match(text.strip())
        if not match:
            return None

        day, month, year = (int(group) for group in match.groups())
        if year < MIN_YEAR or year > MAX_YEAR:
            return None

        try:
            parsed = date(year, month, day)
        except ValueError:
            return None

        if (parsed.day, parsed.month, parsed.year) != (day, month, year):
            return None
        return parsed

    @classmethod
    def is_valid(cls, text: Optional[str], allow_empty: bool = True) -> bool:
        """Check entry-form input; an empty value means "no date"."""
        if not text:
            return allow_empty
        return cls.parse(text) is not None

    @staticmethod
    def is_within_range(
        value: date,
        min_date: Optional[date] = None,
        max_date: Optional[date] = None
    ) -> bool:
        """True unless a given bound is violated."""
        if min_date is not None and value < min_date:
            return False
        if max_date is not None and value > max_date:
            return False
        return True

    @classmethod
    def is_disabled(
        cls,
        value: date,
        min_date: Optional[date] = None,
        max_date: Optional[date] = None
    ) -> bool:
        """Whether a date picker should grey out this day."""
        return not cls.is_within_range(value, min_date, max_date)

    @staticmethod
    def days_until(value: date, now: datetime) -> int:
        """Whole days from ``now`` to the start of ``value``, rounded up.

        Any remaining part of a day counts as a full day, so a date later
        today yields 0 rather than a negative number.
        """
        target = datetime.combine(value, time.min)
        if now.tzinfo is not None:
            now = now.replace(tzinfo=None)
        seconds = (target - now).total_seconds()
        return math.ceil(seconds / SECONDS_PER_DAY)

    @classmethod
    def date_options(
        cls,
        today: date,
        count: int = 365,
        min_date: Optional[date] = None,
        max_date: Optional[date] = None
    ) -> List[str]:
        """Formatted selectable dates starting at ``today``, skipping disabled days."""
        options = []
        for offset in range(count):
            candidate = today + timedelta(days=offset)
            if max_date is not None and candidate > max_date:
                break
            if min_date is not None and candidate < min_date:
                continue
            options.append(cls.format(candidate))
        return options
