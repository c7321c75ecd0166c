"""Action Sum Type — validated action variants, outcomes, and the plan reference arena.

Invariants:
    - Each variant carries exactly its own fields (no "which fields are non-null" guessing)
    - A HabitRef is either a real HabitId (UUID) or a PlanRef to an earlier CreateHabit
    - ValidatedPlan.actions order is execution order
    - ReferenceArena is request-scoped: one instance per executed plan, never shared

Design Decisions:
    - Frozen dataclasses + Union over a flat record with nullable fields: a `match`
      on the variant is exhaustive and the executor never inspects optional fields
      to decide what an action "is" (ADR: genuine sum type)
    - PlanRef as its own type so isinstance() separates placeholders from UUIDs
    - Implicit "step-N" refs for every CreateHabit plus optional explicit refs:
      the provider can point at an earlier step without inventing a label
"""

import datetime as dt
from dataclasses import dataclass, field
from typing import Union
from uuid import UUID

from orbit.core.domain_types import (
    ActionStatus, ActionType, FrequencyUnit, HabitId, OwnerId, TagId, Weekday,
)


@dataclass(frozen=True)
class PlanRef:
    """Placeholder for a habit created earlier in the same plan."""
    name: str

    def __str__(self) -> str:
        return f"ref:{self.name}"


HabitRef = Union[HabitId, PlanRef]


def step_ref(index: int) -> PlanRef:
    """Implicit reference to the action at 0-based `index` ("step-1" is the first)."""
    return PlanRef(f"step-{index + 1}")


# ─── Variants ────────────────────────────────────────────────────

@dataclass(frozen=True)
class CreateHabit:
    title: str
    description: str | None = None
    frequency_unit: FrequencyUnit | None = None
    frequency_quantity: int | None = None
    days: tuple[Weekday, ...] = ()
    is_negative: bool = False
    due_date: dt.date | None = None
    sub_habits: tuple[str, ...] = ()
    tag_ids: tuple[TagId, ...] = ()
    ref: PlanRef | None = None

    action_type = ActionType.CREATE_HABIT

    @property
    def has_schedule(self) -> bool:
        return self.frequency_unit is not None or bool(self.days)


@dataclass(frozen=True)
class LogHabit:
    habit: HabitRef
    note: str | None = None
    value: float | None = None
    date: dt.date | None = None

    action_type = ActionType.LOG_HABIT


@dataclass(frozen=True)
class UpdateHabit:
    habit: HabitRef
    title: str | None = None
    description: str | None = None
    frequency_unit: FrequencyUnit | None = None
    frequency_quantity: int | None = None
    days: tuple[Weekday, ...] | None = None
    due_date: dt.date | None = None

    action_type = ActionType.UPDATE_HABIT

    @property
    def has_schedule(self) -> bool:
        return self.frequency_unit is not None or bool(self.days)


@dataclass(frozen=True)
class DeleteHabit:
    habit: HabitRef

    action_type = ActionType.DELETE_HABIT


@dataclass(frozen=True)
class AssignTag:
    habit: HabitRef
    tag_ids: tuple[TagId, ...]

    action_type = ActionType.ASSIGN_TAG


Action = Union[CreateHabit, LogHabit, UpdateHabit, DeleteHabit, AssignTag]


@dataclass(frozen=True)
class ValidatedPlan:
    """Plan that passed every semantic check — safe to hand to the executor."""
    owner_id: OwnerId
    actions: tuple[Action, ...]
    summary_message: str


# ─── Outcomes ────────────────────────────────────────────────────

@dataclass(frozen=True)
class ActionOutcome:
    """Result of one action, reported in input order."""
    index: int
    action_type: ActionType
    status: ActionStatus
    entity_id: UUID | None = None
    error: str | None = None
    warning: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == ActionStatus.SUCCEEDED

    @classmethod
    def success(
        cls, index: int, action_type: ActionType, entity_id: UUID | None,
    ) -> "ActionOutcome":
        return cls(index, action_type, ActionStatus.SUCCEEDED, entity_id=entity_id)

    @classmethod
    def failure(
        cls, index: int, action_type: ActionType, error: str,
        entity_id: UUID | None = None,
    ) -> "ActionOutcome":
        return cls(
            index, action_type, ActionStatus.FAILED,
            entity_id=entity_id, error=error,
        )

    def with_warning(self, warning: str) -> "ActionOutcome":
        return ActionOutcome(
            self.index, self.action_type, self.status,
            self.entity_id, self.error, warning,
        )


# ─── Reference arena ─────────────────────────────────────────────

@dataclass
class ReferenceArena:
    """Request-scoped map from plan-local refs to the ids they committed as."""
    _bindings: dict[PlanRef, HabitId] = field(default_factory=dict)

    def bind(self, ref: PlanRef, habit_id: HabitId) -> None:
        self._bindings[ref] = habit_id

    def resolve(self, habit: HabitRef) -> HabitId | None:
        """Real id for `habit`; None when it is a ref whose creator never committed."""
        if isinstance(habit, PlanRef):
            return self._bindings.get(habit)
        return habit

    def __len__(self) -> int:
        return len(self._bindings)
