"""Routine Value Objects — patterns, time blocks, conflicts and slot suggestions.

Invariants:
    - TimeBlock is a half-open hour interval in the owner's local civil time:
      0 <= start_hour < end_hour <= 24 (constructor raises otherwise)
    - Scores live in [0, 1]; clamping happens in routine_rules, not here
    - ConflictAssessment.has_conflict is False iff conflicting_habits is empty
    - All objects are request-scoped and never persisted

Design Decisions:
    - Frozen dataclasses: value semantics, shareable between pure functions
    - ProposedSchedule.weekdays returns None for "unknown" (e.g. weekly without
      explicit days) so the severity rule can tell unknown apart from "no days"
"""

import datetime as dt
from dataclasses import dataclass

from orbit.core.domain_types import (
    ConfidenceTier, FrequencyUnit, HabitId, SeverityTier, Weekday,
)


@dataclass(frozen=True)
class RoutinePolicy:
    """Gating thresholds — injectable, defaults match Settings."""
    min_history_days: int = 7
    min_logs_per_habit: int = 5
    analysis_window_days: int = 60


@dataclass(frozen=True)
class TimeBlock:
    day: Weekday
    start_hour: int
    end_hour: int

    def __post_init__(self):
        if not is_valid_hour_range(self.start_hour, self.end_hour):
            raise ValueError(
                f"Invalid time block {self.day.value} "
                f"{self.start_hour}-{self.end_hour}: need 0 <= start < end <= 24"
            )

    @property
    def label(self) -> str:
        return f"{self.day.value} {self.start_hour:02d}:00-{self.end_hour:02d}:00"


def is_valid_hour_range(start_hour: int, end_hour: int) -> bool:
    return 0 <= start_hour < end_hour <= 24


@dataclass(frozen=True)
class RoutinePattern:
    habit_id: HabitId
    habit_title: str
    description: str
    consistency_score: float
    confidence: ConfidenceTier
    time_blocks: tuple[TimeBlock, ...] = ()

    @property
    def days(self) -> frozenset[Weekday]:
        return frozenset(b.day for b in self.time_blocks)


@dataclass(frozen=True)
class ConflictingHabit:
    habit_id: HabitId
    habit_title: str
    description: str
    severity: SeverityTier | None = None


@dataclass(frozen=True)
class ConflictAssessment:
    has_conflict: bool
    conflicting_habits: tuple[ConflictingHabit, ...] = ()
    severity: SeverityTier | None = None
    recommendation: str | None = None


@dataclass(frozen=True)
class TimeSlotSuggestion:
    description: str
    time_blocks: tuple[TimeBlock, ...]
    rationale: str
    score: float


@dataclass(frozen=True)
class ProposedSchedule:
    """Schedule being checked for conflicts — hours optional."""
    frequency_unit: FrequencyUnit | None = None
    frequency_quantity: int | None = None
    days: tuple[Weekday, ...] = ()
    start_hour: int | None = None
    end_hour: int | None = None

    @property
    def has_hours(self) -> bool:
        return self.start_hour is not None and self.end_hour is not None

    @property
    def weekdays(self) -> frozenset[Weekday] | None:
        """Weekdays the schedule occupies, or None when they cannot be known."""
        if self.days:
            return frozenset(self.days)
        if self.frequency_unit == FrequencyUnit.DAY and (self.frequency_quantity or 1) == 1:
            return frozenset(Weekday)
        return None

    @property
    def frequency_label(self) -> str:
        if self.frequency_unit is None:
            return "one-time"
        return f"{self.frequency_unit.value} / {self.frequency_quantity or 1}"


@dataclass(frozen=True)
class LocalizedLog:
    """A log occurrence already converted to the owner's civil time."""
    habit_id: HabitId
    habit_title: str
    local_time: dt.datetime
    frequency_label: str = "One-time"
