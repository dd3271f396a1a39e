"""Working-day calendar used by scheduling and date edits."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Set

# Monday=0 ... Sunday=6
WEEKDAYS = frozenset({0, 1, 2, 3, 4})
ALL_DAYS = frozenset(range(7))


@dataclass
class WorkingCalendar:
    """Defines which dates are working days.

    Extra working days override holidays and weekends; holidays override
    the weekly pattern.
    """
    working_weekdays: Set[int] = field(default_factory=lambda: set(WEEKDAYS))
    holidays: Set[date] = field(default_factory=set)
    extra_working_days: Set[date] = field(default_factory=set)

    @classmethod
    def standard(cls) -> "WorkingCalendar":
        """Monday to Friday, no holidays."""
        return cls()

    @classmethod
    def continuous(cls) -> "WorkingCalendar":
        """Every day is a working day."""
        return cls(working_weekdays=set(ALL_DAYS))

    def is_working_day(self, day: date) -> bool:
        if day in self.extra_working_days:
            return True
        if day in self.holidays:
            return False
        return day.weekday() in self.working_weekdays

    def snap_to_working_day(self, day: date) -> date:
        """Next working day on or after ``day``."""
        if not self.working_weekdays:
            later = sorted(d for d in self.extra_working_days if d >= day)
            return later[0] if later else day
        while not self.is_working_day(day):
            day += timedelta(days=1)
        return day

    def previous_working_day(self, day: date) -> date:
        """Last working day on or before ``day``."""
        if not self.working_weekdays:
            earlier = sorted(d for d in self.extra_working_days if d <= day)
            return earlier[-1] if earlier else day
        while not self.is_working_day(day):
            day -= timedelta(days=1)
        return day

    def add_working_days(self, start: date, working_days: int) -> date:
        """Date of the last day of a span of ``working_days``, counting the start."""
        if working_days <= 0:
            return start
        current = self.snap_to_working_day(start)
        counted = 1
        while counted < working_days:
            current += timedelta(days=1)
            if self.is_working_day(current):
                counted += 1
        return current

    def count_working_days(self, start: date, end: date) -> int:
        """Working days between two dates, both inclusive."""
        if end < start:
            return 0
        count = 0
        current = start
        while current <= end:
            if self.is_working_day(current):
                count += 1
            current += timedelta(days=1)
        return count

    def add_holidays(self, days: Iterable[date]) -> None:
        self.holidays.update(days)

    def add_holiday_range(self, start: date, end: date) -> None:
        current = start
        while current <= end:
            self.holidays.add(current)
            current += timedelta(days=1)
