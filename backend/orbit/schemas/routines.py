"""Routine Schemas — HTTP request/response models for routine analysis.

Invariants:
    - Hours are given together or not at all, with 0 <= start_hour < end_hour <= 24
    - days only with frequency_quantity 1 (or unset)
    - Responses are built from core dataclasses via from_attributes

Design Decisions:
    - Request models convert to core ProposedSchedule in one method so routes
      stay free of field plumbing
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from orbit.core.domain_types import (
    ConfidenceTier, FrequencyUnit, SeverityTier, Weekday,
)
from orbit.core.routines import ProposedSchedule


class ProposedScheduleRequest(BaseModel):
    frequency_unit: FrequencyUnit | None = None
    frequency_quantity: int | None = Field(None, ge=1)
    days: list[Weekday] = Field(default_factory=list)
    start_hour: int | None = Field(None, ge=0, le=23)
    end_hour: int | None = Field(None, ge=1, le=24)

    @model_validator(mode="after")
    def validate_schedule(self):
        if (self.start_hour is None) != (self.end_hour is None):
            raise ValueError("start_hour and end_hour must be given together")
        if self.start_hour is not None and self.start_hour >= self.end_hour:
            raise ValueError("start_hour must be before end_hour")
        if self.days and (self.frequency_quantity or 1) != 1:
            raise ValueError("days can only be set when frequency_quantity is 1")
        return self

    def to_domain(self) -> ProposedSchedule:
        return ProposedSchedule(
            frequency_unit=self.frequency_unit,
            frequency_quantity=self.frequency_quantity,
            days=tuple(self.days),
            start_hour=self.start_hour,
            end_hour=self.end_hour,
        )


class SlotSuggestionRequest(ProposedScheduleRequest):
    habit_title: str = Field(min_length=1, max_length=200)


class TimeBlockResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: Weekday
    start_hour: int
    end_hour: int


class RoutinePatternResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    habit_id: UUID
    habit_title: str
    description: str
    consistency_score: float
    confidence: ConfidenceTier
    time_blocks: list[TimeBlockResponse]


class ConflictingHabitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    habit_id: UUID
    habit_title: str
    description: str
    severity: SeverityTier | None = None


class ConflictResponse(BaseModel):
    """Conflict assessment; has_conflict False with no habits means "no conflict"."""
    model_config = ConfigDict(from_attributes=True)

    has_conflict: bool
    conflicting_habits: list[ConflictingHabitResponse] = Field(default_factory=list)
    severity: SeverityTier | None = None
    recommendation: str | None = None


class TimeSlotSuggestionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    description: str
    time_blocks: list[TimeBlockResponse]
    rationale: str
    score: float
