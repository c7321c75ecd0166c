"""Provider Payload Schemas — the JSON shapes the completion provider is asked to return.

Invariants:
    - Property names match case-insensitively ("habitId", "HabitId", "habit_id")
    - Enum values match case-insensitively (CaseInsensitiveEnum._missing_)
    - Unknown properties are ignored; missing optional ones default to None/[]
    - These models are syntactic only: ids stay strings, domain checks live in core

Design Decisions:
    - ActionPayload is a flat record (the provider's natural output); the plan
      validator turns it into the action sum type and rejects foreign fields
    - Key folding in a before-validator instead of per-field aliases: one rule
      covers every casing the provider produces
"""

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from orbit.core.domain_types import (
    ActionType, ConfidenceTier, FrequencyUnit, SeverityTier, Weekday,
)


def _fold(key: str) -> str:
    return key.replace("_", "").replace("-", "").lower()


class ProviderModel(BaseModel):
    """Base for provider payloads — case-insensitive property matching."""
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def match_keys_case_insensitively(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        names = {_fold(name): name for name in cls.model_fields}
        return {
            (names.get(_fold(k), k) if isinstance(k, str) else k): v
            for k, v in data.items()
        }


# ─── Action plan ─────────────────────────────────────────────────

class ActionPayload(ProviderModel):
    """One proposed action — flat, every variant field optional."""
    type: ActionType
    ref: str | None = None
    habit_id: str | None = None
    habit_ref: str | None = None
    title: str | None = None
    description: str | None = None
    frequency_unit: FrequencyUnit | None = None
    frequency_quantity: int | None = None
    days: list[Weekday] | None = None
    is_negative: bool | None = None
    due_date: dt.date | None = None
    note: str | None = None
    value: float | None = None
    date: dt.date | None = None
    sub_habits: list[str] | None = None
    tag_ids: list[str] | None = None

    def populated_fields(self) -> set[str]:
        """Names of variant fields the provider actually filled in."""
        return {
            name for name in type(self).model_fields
            if name != "type" and getattr(self, name) is not None
        }


class ActionPlanPayload(ProviderModel):
    actions: list[ActionPayload] = Field(default_factory=list)
    ai_message: str = ""


# ─── Routine analysis ────────────────────────────────────────────

class TimeBlockPayload(ProviderModel):
    day_of_week: Weekday
    start_hour: int
    end_hour: int


class RoutinePatternPayload(ProviderModel):
    habit_id: str
    habit_title: str = ""
    description: str = ""
    consistency_score: float = 0.0
    confidence: ConfidenceTier | None = None
    time_blocks: list[TimeBlockPayload] = Field(default_factory=list)


class RoutineAnalysisPayload(ProviderModel):
    patterns: list[RoutinePatternPayload] = Field(default_factory=list)


class ConflictingHabitPayload(ProviderModel):
    habit_id: str
    habit_title: str = ""
    conflict_description: str = ""


class ConflictPayload(ProviderModel):
    has_conflict: bool = False
    conflicting_habits: list[ConflictingHabitPayload] = Field(default_factory=list)
    severity: SeverityTier | None = None
    recommendation: str | None = None


class SlotSuggestionPayload(ProviderModel):
    description: str
    time_blocks: list[TimeBlockPayload] = Field(default_factory=list)
    rationale: str = ""
    score: float = 0.0


class SlotSuggestionsPayload(ProviderModel):
    suggestions: list[SlotSuggestionPayload] = Field(default_factory=list)


# ─── Fact extraction ─────────────────────────────────────────────

class FactCandidatePayload(ProviderModel):
    fact_text: str
    category: str | None = None


class ExtractedFactsPayload(ProviderModel):
    facts: list[FactCandidatePayload] = Field(default_factory=list)
