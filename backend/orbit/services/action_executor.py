"""Action Executor — sequential, independently-committing execution of a validated plan.

Invariants:
    - Exactly one ActionOutcome per action, in plan order
    - Each action commits on its own: a failure on action i neither stops i+1..n
      nor rolls back 1..i-1
    - Plan-local refs resolve through a request-scoped ReferenceArena; a ref whose
      creator failed yields a Failed outcome for the dependent action only
    - Conflict enrichment runs only after a successful schedule-carrying
      CreateHabit/UpdateHabit, inside a timeout fence; it can add a warning but
      never turns Succeeded into Failed
    - The habit being scheduled is never reported as conflicting with itself
    - A timed-out or failed check calls on_enrichment_abort before the next
      action commits (the check may share the commit session)
    - execute() never raises for domain failures; task cancellation propagates

Design Decisions:
    - Explicit dict from variant class to mutation builder: every mapping visible
    - No retries here: the only retry in the system is the provider 429 backoff
    - Enrichment is injected as a callable so the executor does not depend on the
      routine analyzer's construction (and tests can pass a stub)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from orbit.core.actions import (
    Action, ActionOutcome, AssignTag, CreateHabit, DeleteHabit, LogHabit,
    PlanRef, ReferenceArena, UpdateHabit, ValidatedPlan, step_ref,
)
from orbit.core.domain_types import (
    SCHEDULE_ACTIONS, HabitId, MutationKind, OwnerId,
)
from orbit.core.errors import OrbitError
from orbit.core.repository_protocols import CommitBoundary, Mutation
from orbit.core.routines import ConflictAssessment, ProposedSchedule

logger = logging.getLogger(__name__)

ConflictCheck = Callable[
    [OwnerId, ProposedSchedule, HabitId | None], Awaitable[ConflictAssessment | None],
]


def format_conflict_warning(conflict: ConflictAssessment) -> str:
    titles = ", ".join(h.habit_title for h in conflict.conflicting_habits)
    severity = conflict.severity.value if conflict.severity else "UNKNOWN"
    message = f"Possible schedule conflict ({severity}) with {titles}."
    if conflict.recommendation:
        message += f" {conflict.recommendation}"
    return message


class ActionExecutor:
    """Runs a ValidatedPlan action by action through the commit boundary."""

    def __init__(
        self,
        commits: CommitBoundary,
        conflict_check: ConflictCheck | None = None,
        enrichment_timeout: float = 20.0,
        on_enrichment_abort: Callable[[], Awaitable[None]] | None = None,
    ):
        self.commits = commits
        self.conflict_check = conflict_check
        self.enrichment_timeout = enrichment_timeout
        self.on_enrichment_abort = on_enrichment_abort
        self._builders: dict[type, Callable[[OwnerId, Action, HabitId | None], Mutation]] = {
            CreateHabit: self._create_habit,
            LogHabit: self._log_habit,
            UpdateHabit: self._update_habit,
            DeleteHabit: self._delete_habit,
            AssignTag: self._assign_tag,
        }

    async def execute(self, plan: ValidatedPlan) -> list[ActionOutcome]:
        arena = ReferenceArena()
        outcomes: list[ActionOutcome] = []
        for index, action in enumerate(plan.actions):
            outcome = await self._execute_one(plan.owner_id, index, action, arena)
            if outcome.succeeded and self._needs_enrichment(action):
                outcome = await self._enrich(plan.owner_id, index, action, outcome)
            outcomes.append(outcome)
        return outcomes

    async def _execute_one(
        self, owner_id: OwnerId, index: int, action: Action, arena: ReferenceArena,
    ) -> ActionOutcome:
        log_extra = {
            "owner_id": str(owner_id),
            "action_type": action.action_type.value,
            "action_index": index,
        }
        target: HabitId | None = None
        if not isinstance(action, CreateHabit):
            target = arena.resolve(action.habit)
            if target is None:
                name = action.habit.name if isinstance(action.habit, PlanRef) else action.habit
                logger.warning(f"Unresolved ref '{name}'", extra=log_extra)
                return ActionOutcome.failure(
                    index, action.action_type,
                    f"The habit '{name}' from an earlier step was not created.",
                )

        mutation = self._builders[type(action)](owner_id, action, target)
        try:
            result = await self.commits.commit(mutation)
        except OrbitError as e:
            logger.error(
                f"Commit failed: {e.message}",
                extra={**log_extra, "error_code": e.code},
            )
            return ActionOutcome.failure(index, action.action_type, e.user_message)

        if not result.ok:
            logger.info(f"Action rejected: {result.error}", extra=log_extra)
            return ActionOutcome.failure(
                index, action.action_type, result.error or "Action failed.",
            )

        if isinstance(action, CreateHabit) and result.entity_id is not None:
            arena.bind(step_ref(index), HabitId(result.entity_id))
            if action.ref is not None:
                arena.bind(action.ref, HabitId(result.entity_id))
        logger.info("Action committed", extra=log_extra)
        return ActionOutcome.success(index, action.action_type, result.entity_id)

    # ─── Enrichment ──────────────────────────────────────────────

    def _needs_enrichment(self, action: Action) -> bool:
        return (
            self.conflict_check is not None
            and action.action_type in SCHEDULE_ACTIONS
            and action.has_schedule
        )

    async def _enrich(
        self, owner_id: OwnerId, index: int, action: Action, outcome: ActionOutcome,
    ) -> ActionOutcome:
        proposed = ProposedSchedule(
            frequency_unit=action.frequency_unit,
            frequency_quantity=action.frequency_quantity,
            days=tuple(action.days or ()),
        )
        log_extra = {
            "owner_id": str(owner_id),
            "action_type": action.action_type.value,
            "action_index": index,
        }
        scheduled = HabitId(outcome.entity_id) if outcome.entity_id else None
        try:
            conflict = await asyncio.wait_for(
                self.conflict_check(owner_id, proposed, scheduled),
                timeout=self.enrichment_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Conflict check timed out", extra=log_extra)
            await self._abort_enrichment(log_extra)
            return outcome
        except Exception as e:
            logger.warning(f"Conflict check failed: {e}", extra=log_extra)
            await self._abort_enrichment(log_extra)
            return outcome

        if conflict is None or not conflict.has_conflict:
            return outcome
        return outcome.with_warning(format_conflict_warning(conflict))

    async def _abort_enrichment(self, log_extra: dict) -> None:
        if self.on_enrichment_abort is None:
            return
        try:
            await self.on_enrichment_abort()
        except OrbitError as e:
            logger.error(
                f"Reset after conflict check failed: {e.message}",
                extra={**log_extra, "error_code": e.code},
            )

    # ─── Mutation builders ───────────────────────────────────────

    def _create_habit(self, owner_id, action: CreateHabit, target) -> Mutation:
        return Mutation(MutationKind.CREATE_HABIT, owner_id, fields={
            "title": action.title,
            "description": action.description,
            "frequency_unit": action.frequency_unit,
            "frequency_quantity": action.frequency_quantity,
            "days": action.days,
            "is_negative": action.is_negative,
            "due_date": action.due_date,
            "sub_habits": action.sub_habits,
            "tag_ids": action.tag_ids,
        })

    def _log_habit(self, owner_id, action: LogHabit, target) -> Mutation:
        return Mutation(MutationKind.LOG_HABIT, owner_id, target, {
            "date": action.date, "value": action.value, "note": action.note,
        })

    def _update_habit(self, owner_id, action: UpdateHabit, target) -> Mutation:
        return Mutation(MutationKind.UPDATE_HABIT, owner_id, target, {
            "title": action.title,
            "description": action.description,
            "frequency_unit": action.frequency_unit,
            "frequency_quantity": action.frequency_quantity,
            "days": action.days,
            "due_date": action.due_date,
        })

    def _delete_habit(self, owner_id, action: DeleteHabit, target) -> Mutation:
        return Mutation(MutationKind.DELETE_HABIT, owner_id, target)

    def _assign_tag(self, owner_id, action: AssignTag, target) -> Mutation:
        return Mutation(MutationKind.ASSIGN_TAGS, owner_id, target, {
            "tag_ids": action.tag_ids,
        })
