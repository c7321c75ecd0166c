"""Domain Snapshot — authorization-scoped, read-only view of one user's habit world.

Invariants:
    - A snapshot is produced once per request by the SnapshotProvider and never mutated
    - Every entity carries its owner_id so ownership can be re-checked in pure code
    - `today` is the owner's local civil date — pure code never reads a clock

Design Decisions:
    - Frozen dataclasses with tuples: hashable, safe to share across pure functions
    - Lookup helpers build dicts lazily per call (snapshots are small and short-lived)
"""

import datetime as dt
from dataclasses import dataclass, field
from uuid import UUID

from orbit.core.domain_types import (
    FactId, FrequencyUnit, HabitId, OwnerId, TagId, Weekday, frequency_label,
)


@dataclass(frozen=True)
class HabitSummary:
    id: HabitId
    owner_id: OwnerId
    title: str
    description: str | None = None
    frequency_unit: FrequencyUnit | None = None
    frequency_quantity: int | None = None
    days: tuple[Weekday, ...] = ()
    is_negative: bool = False
    is_completed: bool = False
    due_date: dt.date | None = None
    parent_id: HabitId | None = None
    tag_ids: tuple[TagId, ...] = ()

    @property
    def frequency_label(self) -> str:
        return frequency_label(self.frequency_unit, self.frequency_quantity)


@dataclass(frozen=True)
class TagSummary:
    id: TagId
    owner_id: OwnerId
    name: str
    color: str = "#888888"


@dataclass(frozen=True)
class FactSummary:
    id: FactId
    owner_id: OwnerId
    text: str
    category: str | None = None


@dataclass(frozen=True)
class DomainSnapshot:
    """Everything the prompt and the plan validator may know about the owner."""
    owner_id: OwnerId
    today: dt.date
    habits: tuple[HabitSummary, ...] = ()
    tags: tuple[TagSummary, ...] = ()
    facts: tuple[FactSummary, ...] = ()
    timezone: str | None = field(default=None)

    def find_habit(self, habit_id: UUID) -> HabitSummary | None:
        return next((h for h in self.habits if h.id == habit_id), None)

    def find_tag(self, tag_id: UUID) -> TagSummary | None:
        return next((t for t in self.tags if t.id == tag_id), None)
