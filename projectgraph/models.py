"""Type-safe configuration models with validation."""
from __future__ import annotations
from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from .calendar import WorkingCalendar


class CalendarConfig(BaseModel):
    """Working-day definition, Monday=0 ... Sunday=6."""
    working_weekdays: list[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4])
    holidays: list[date] = []
    extra_working_days: list[date] = []

    @field_validator("working_weekdays")
    @classmethod
    def check_weekdays(cls, v: list[int]) -> list[int]:
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError(f"weekday out of range: {day}")
        return sorted(set(v))

    def build(self) -> WorkingCalendar:
        return WorkingCalendar(
            working_weekdays=set(self.working_weekdays),
            holidays=set(self.holidays),
            extra_working_days=set(self.extra_working_days),
        )


class SchedulerConfig(BaseModel):
    reject_cycles: bool = False
    # Passes allowed per closure node before giving up on convergence
    pass_budget_factor: int = Field(default=2, ge=1, le=10)


class LevelingConfig(BaseModel):
    """Resource-leveling solver options."""
    respect_dependencies: bool = True
    completed_tasks_locked: bool = True
    max_passes: int = Field(default=1000, ge=1)
    timeout_seconds: float = Field(default=30.0, gt=0)


class ProjectGraphConfig(BaseModel):
    """Working-directory configuration (.projectgraphrc)."""
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    leveling: LevelingConfig = Field(default_factory=LevelingConfig)
    log_level: Literal["debug", "info", "warning", "error"] = "warning"
    output_format: Literal["rich", "json", "plain"] = "rich"
