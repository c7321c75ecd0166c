"""Action Plan Validation — semantic checks between provider output and execution.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - check_* functions return a list of reasons ([] means the rule holds)
    - validate_plan is all-or-nothing: any reason rejects the whole plan and
      nothing executes; every reason found is reported, not just the first
    - A plan-local ref is only valid if an EARLIER CreateHabit declared it

Design Decisions:
    - Input is structural (ProposedAction Protocol), so core never imports the
      provider schemas that happen to satisfy it
    - Output is the action sum type: the executor never guesses a variant from
      which optional fields are set
    - Every CreateHabit is referable as "step-N", N being its 1-based position in
      the whole plan, even without an explicit ref
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol
from uuid import UUID

from orbit.core.actions import (
    Action, AssignTag, CreateHabit, DeleteHabit, HabitRef, LogHabit, PlanRef,
    UpdateHabit, ValidatedPlan, step_ref,
)
from orbit.core.domain_types import (
    ActionType, DESTRUCTIVE_ACTIONS, HabitId, OwnerId, TagId,
)
from orbit.core.errors import ErrorContext, PlanValidationError
from orbit.core.snapshot import DomainSnapshot


class ProposedAction(Protocol):
    """Structural contract for one provider-proposed action (flat record)."""
    type: ActionType

    def populated_fields(self) -> set[str]: ...


class ProposedPlan(Protocol):
    actions: Sequence[Any]
    ai_message: str


@dataclass(frozen=True)
class PlanLimits:
    max_actions: int = 20
    max_destructive_actions: int = 3


# ─── Variant field rules ─────────────────────────────────────────

_TARGET = {"habit_id", "habit_ref"}

ALLOWED_FIELDS: dict[ActionType, frozenset[str]] = {
    ActionType.CREATE_HABIT: frozenset({
        "title", "description", "frequency_unit", "frequency_quantity", "days",
        "is_negative", "due_date", "sub_habits", "tag_ids", "ref",
    }),
    ActionType.LOG_HABIT: frozenset(_TARGET | {"note", "value", "date"}),
    ActionType.UPDATE_HABIT: frozenset(_TARGET | {
        "title", "description", "frequency_unit", "frequency_quantity",
        "days", "due_date",
    }),
    ActionType.DELETE_HABIT: frozenset({"habit_id"}),
    ActionType.ASSIGN_TAG: frozenset(_TARGET | {"tag_ids"}),
}

_UPDATABLE = ALLOWED_FIELDS[ActionType.UPDATE_HABIT] - _TARGET


def check_fields(action: ProposedAction) -> list[str]:
    """Variant well-formedness: required fields present, no foreign fields."""
    reasons: list[str] = []
    populated = action.populated_fields()
    foreign = populated - ALLOWED_FIELDS[action.type]
    if foreign:
        reasons.append(f"unexpected fields {sorted(foreign)}")

    if action.type == ActionType.CREATE_HABIT:
        if not (getattr(action, "title", None) or "").strip():
            reasons.append("title is required")
    else:
        targets = populated & _TARGET
        if len(targets) != 1:
            reasons.append("exactly one of habitId or habitRef is required")

    if action.type == ActionType.UPDATE_HABIT and not (populated & _UPDATABLE):
        reasons.append("nothing to update")
    if action.type == ActionType.ASSIGN_TAG and not getattr(action, "tag_ids", None):
        reasons.append("tagIds must not be empty")

    reasons.extend(check_schedule(action, populated))
    return reasons


def check_schedule(action: ProposedAction, populated: set[str]) -> list[str]:
    """Frequency/day combination rules (days only when quantity is 1)."""
    reasons: list[str] = []
    unit = getattr(action, "frequency_unit", None)
    quantity = getattr(action, "frequency_quantity", None)
    if quantity is not None and quantity < 1:
        reasons.append("frequencyQuantity must be at least 1")
    if quantity is not None and unit is None and action.type == ActionType.CREATE_HABIT:
        reasons.append("frequencyQuantity requires frequencyUnit")
    if "days" in populated and getattr(action, "days", None):
        if action.type == ActionType.CREATE_HABIT and unit is None:
            reasons.append("days require a recurring frequency")
        elif (quantity or 1) != 1:
            reasons.append("days can only be set when frequencyQuantity is 1")
    return reasons


# ─── Reference rules ─────────────────────────────────────────────

def parse_uuid(raw: str | None) -> UUID | None:
    try:
        return UUID(str(raw).strip())
    except (TypeError, ValueError, AttributeError):
        return None


def check_habit_target(
    action: ProposedAction,
    owner_id: OwnerId,
    snapshot: DomainSnapshot,
    declared: set[PlanRef],
) -> tuple[HabitRef | None, list[str]]:
    """Resolve the habit an action points at: owned snapshot id or earlier ref."""
    raw_ref = getattr(action, "habit_ref", None)
    if raw_ref is not None:
        ref = PlanRef(raw_ref.strip())
        if ref not in declared:
            return None, [f"habitRef '{ref.name}' is not declared by an earlier CreateHabit"]
        return ref, []

    raw_id = getattr(action, "habit_id", None)
    if raw_id is None:
        return None, []
    habit_id = parse_uuid(raw_id)
    if habit_id is None:
        return None, [f"habitId '{raw_id}' is not a valid id"]
    habit = snapshot.find_habit(habit_id)
    if habit is None or habit.owner_id != owner_id:
        return None, [f"habit '{raw_id}' does not exist"]
    return HabitId(habit_id), []


def check_tags(
    raw_ids: Sequence[str] | None, owner_id: OwnerId, snapshot: DomainSnapshot,
) -> tuple[tuple[TagId, ...], list[str]]:
    tag_ids: list[TagId] = []
    reasons: list[str] = []
    for raw in raw_ids or ():
        tag_id = parse_uuid(raw)
        tag = snapshot.find_tag(tag_id) if tag_id else None
        if tag is None or tag.owner_id != owner_id:
            reasons.append(f"tag '{raw}' does not exist")
            continue
        if tag.id not in tag_ids:
            tag_ids.append(TagId(tag.id))
    return tuple(tag_ids), reasons


def check_limits(actions: Sequence[ProposedAction], limits: PlanLimits) -> list[str]:
    reasons: list[str] = []
    if len(actions) > limits.max_actions:
        reasons.append(
            f"plan has {len(actions)} actions (max {limits.max_actions})"
        )
    destructive = sum(1 for a in actions if a.type in DESTRUCTIVE_ACTIONS)
    if destructive > limits.max_destructive_actions:
        reasons.append(
            f"plan has {destructive} destructive actions "
            f"(max {limits.max_destructive_actions})"
        )
    return reasons


# ─── Conversion ──────────────────────────────────────────────────

def _to_action(
    action: Any, index: int, target: HabitRef | None, tag_ids: tuple[TagId, ...],
) -> Action:
    match action.type:
        case ActionType.CREATE_HABIT:
            explicit = action.ref.strip() if action.ref else None
            return CreateHabit(
                title=action.title.strip(),
                description=action.description,
                frequency_unit=action.frequency_unit,
                frequency_quantity=(
                    (action.frequency_quantity or 1) if action.frequency_unit else None
                ),
                days=tuple(action.days or ()),
                is_negative=bool(action.is_negative),
                due_date=action.due_date,
                sub_habits=tuple(t.strip() for t in action.sub_habits or () if t.strip()),
                tag_ids=tag_ids,
                ref=PlanRef(explicit) if explicit else step_ref(index),
            )
        case ActionType.LOG_HABIT:
            return LogHabit(
                habit=target, note=action.note, value=action.value, date=action.date,
            )
        case ActionType.UPDATE_HABIT:
            return UpdateHabit(
                habit=target,
                title=action.title.strip() if action.title else None,
                description=action.description,
                frequency_unit=action.frequency_unit,
                frequency_quantity=action.frequency_quantity,
                days=tuple(action.days) if action.days is not None else None,
                due_date=action.due_date,
            )
        case ActionType.DELETE_HABIT:
            return DeleteHabit(habit=target)
        case ActionType.ASSIGN_TAG:
            return AssignTag(habit=target, tag_ids=tag_ids)
    raise ValueError(f"Unhandled action type: {action.type}")


def validate_plan(
    plan: ProposedPlan,
    owner_id: OwnerId,
    snapshot: DomainSnapshot,
    limits: PlanLimits = PlanLimits(),
) -> ValidatedPlan:
    """Check every action and the plan as a whole. Raises PlanValidationError."""
    reasons: list[str] = check_limits(plan.actions, limits)
    declared: set[PlanRef] = set()
    validated: list[Action] = []

    for index, action in enumerate(plan.actions):
        label = f"action {index + 1} ({action.type.value})"
        problems = check_fields(action)

        target: HabitRef | None = None
        if action.type != ActionType.CREATE_HABIT:
            target, target_problems = check_habit_target(
                action, owner_id, snapshot, declared,
            )
            problems.extend(target_problems)

        tag_ids, tag_problems = check_tags(
            getattr(action, "tag_ids", None), owner_id, snapshot,
        )
        problems.extend(tag_problems)

        if action.type == ActionType.CREATE_HABIT:
            implicit = step_ref(index)
            explicit = (action.ref or "").strip()
            if implicit in declared:
                problems.append(f"ref '{implicit.name}' is declared more than once")
            declared.add(implicit)
            if explicit and explicit != implicit.name:
                if PlanRef(explicit) in declared:
                    problems.append(f"ref '{explicit}' is declared more than once")
                declared.add(PlanRef(explicit))

        if problems:
            reasons.extend(f"{label}: {p}" for p in problems)
        elif not reasons:
            validated.append(_to_action(action, index, target, tag_ids))

    if reasons:
        raise PlanValidationError(
            reasons, ErrorContext(owner_id=str(owner_id), operation="validate_plan"),
        )
    return ValidatedPlan(
        owner_id=owner_id,
        actions=tuple(validated),
        summary_message=plan.ai_message,
    )
