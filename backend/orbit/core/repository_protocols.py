"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Implementations provided by shell via dependency injection
    - A commit never raises for a domain rejection: it returns a failed MutationResult

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: boundary methods are async because implementations do IO,
      but core pure functions never await — the services orchestrate IO around them
    - Mutation as a tagged record (kind + target + fields) so the commit boundary
      does not depend on the action sum type, and facts share the same door
"""

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from orbit.core.domain_types import (
    FrequencyUnit, HabitId, MutationKind, OwnerId,
)
from orbit.core.snapshot import DomainSnapshot


# ─── Mutation records ────────────────────────────────────────────

@dataclass(frozen=True)
class Mutation:
    """One unit of change handed to the CommitBoundary."""
    kind: MutationKind
    owner_id: OwnerId
    target_id: UUID | None = None
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MutationResult:
    ok: bool
    entity_id: UUID | None = None
    error: str | None = None

    @classmethod
    def success(cls, entity_id: UUID | None = None) -> "MutationResult":
        return cls(True, entity_id=entity_id)

    @classmethod
    def failure(cls, error: str) -> "MutationResult":
        return cls(False, error=error)


# ─── History records ─────────────────────────────────────────────

@dataclass(frozen=True)
class LogRecord:
    """One habit occurrence as stored: UTC instant plus its habit's schedule."""
    habit_id: HabitId
    habit_title: str
    logged_at: dt.datetime
    frequency_unit: FrequencyUnit | None = None
    frequency_quantity: int | None = None


# ─── Protocols ───────────────────────────────────────────────────

class SnapshotProvider(Protocol):
    """Produces the authorization-scoped view of one owner's data."""
    async def get_snapshot(self, owner_id: OwnerId) -> DomainSnapshot: ...


class CommitBoundary(Protocol):
    """Applies one mutation atomically on behalf of its owner."""
    async def commit(self, mutation: Mutation) -> MutationResult: ...


class HabitLogHistory(Protocol):
    """Read access to an owner's occurrence history."""
    async def logs_since(
        self, owner_id: OwnerId, since: dt.datetime,
    ) -> list[LogRecord]: ...


class TimezoneResolver(Protocol):
    """Maps UTC instants into an owner's civil time (UTC when the owner has no zone)."""
    async def localize(
        self, instant: dt.datetime, owner_id: OwnerId,
    ) -> dt.datetime: ...


class Clock(Protocol):
    def now(self) -> dt.datetime: ...
