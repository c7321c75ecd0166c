"""Routine Analyzer — gated, provider-delegated pattern, conflict and slot analysis.

Invariants:
    - No provider call unless the history passes the gate (span + per-habit count)
    - Only gated habits reach the prompt, and only their patterns come back
    - Timestamps are converted to the owner's civil time before prompting
    - assess_conflict returns None ("no conflict") only from evidence; any provider
      failure raises instead
    - assess_conflict never compares the excluded habit with itself
    - suggest_slots without patterns returns the 3 fixed fallbacks, zero provider calls
    - Nothing is cached or persisted: every call recomputes from history

Design Decisions:
    - Provider output is sanitized here (blocks dropped, scores clamped, severity
      recomputed) with the pure rules in core.routine_rules
    - Empty pattern output is benign (no patterns); empty conflict or slot output
      is an error because an answer was required
"""

import logging
from datetime import datetime, timezone

from orbit.core.domain_types import (
    CompletionStatus, HabitId, OwnerId, frequency_label,
)
from orbit.core.errors import ErrorContext, MalformedProviderOutputError
from orbit.core.prompt_assembler import (
    build_conflict_prompt, build_routine_prompt, build_slot_prompt,
)
from orbit.core.repository_protocols import (
    Clock, HabitLogHistory, LogRecord, TimezoneResolver,
)
from orbit.core.routine_rules import (
    EXPECTED_SUGGESTION_COUNT, FALLBACK_SUGGESTIONS, clamp_score, confidence_for,
    gate_history, overall_severity, rank_suggestions, reconcile_conflicts,
    valid_time_blocks, window_start,
)
from orbit.core.routines import (
    ConflictAssessment, ConflictingHabit, LocalizedLog, ProposedSchedule,
    RoutinePattern, RoutinePolicy, TimeSlotSuggestion,
)
from orbit.core.validate_plan import parse_uuid
from orbit.infrastructure.completion_client import StructuredCompletionClient
from orbit.schemas.provider import (
    ConflictPayload, RoutineAnalysisPayload, RoutinePatternPayload,
    SlotSuggestionsPayload,
)

logger = logging.getLogger(__name__)


def utc_offset_label(local: datetime, now: datetime) -> str:
    """'UTC+02:00' style label from a naive local time and the aware instant it came from."""
    utc_naive = now.astimezone(timezone.utc).replace(tzinfo=None)
    minutes = round((local - utc_naive).total_seconds() / 60)
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"UTC{sign}{hours:02d}:{mins:02d}"


class RoutineAnalyzer:
    """Routine patterns, conflict assessment and slot suggestions for one owner."""

    def __init__(
        self,
        client: StructuredCompletionClient,
        history: HabitLogHistory,
        timezones: TimezoneResolver,
        clock: Clock,
        policy: RoutinePolicy = RoutinePolicy(),
    ):
        self.client = client
        self.history = history
        self.timezones = timezones
        self.clock = clock
        self.policy = policy

    # ─── Patterns ────────────────────────────────────────────────

    async def analyze_routines(self, owner_id: OwnerId) -> list[RoutinePattern]:
        now = self.clock.now()
        logs = await self.history.logs_since(owner_id, window_start(now, self.policy))
        eligible = gate_history(logs, now, self.policy)
        if not eligible:
            logger.info(
                "Routine gate not met, skipping analysis",
                extra={"owner_id": str(owner_id), "log_count": len(logs)},
            )
            return []

        localized = [await self._localize(log, owner_id) for log in eligible]
        local_now = await self.timezones.localize(now, owner_id)
        prompt = build_routine_prompt(
            localized,
            today=local_now.date(),
            timezone_name=utc_offset_label(local_now, now),
            window_days=self.policy.analysis_window_days,
        )
        context = ErrorContext(owner_id=str(owner_id), operation="analyze_routines")
        completion = await self.client.complete(
            prompt, RoutineAnalysisPayload, context=context,
        )
        if completion.status == CompletionStatus.EMPTY:
            return []
        if not completion.is_ok:
            raise MalformedProviderOutputError(completion.reason or "unknown", context)

        titles = {log.habit_id: log.habit_title for log in eligible}
        patterns = self._to_patterns(completion.value.patterns, titles)
        logger.info(
            "Routine analysis completed",
            extra={"owner_id": str(owner_id), "pattern_count": len(patterns)},
        )
        return patterns

    async def _localize(self, log: LogRecord, owner_id: OwnerId) -> LocalizedLog:
        return LocalizedLog(
            habit_id=log.habit_id,
            habit_title=log.habit_title,
            local_time=await self.timezones.localize(log.logged_at, owner_id),
            frequency_label=frequency_label(log.frequency_unit, log.frequency_quantity),
        )

    def _to_patterns(
        self, payloads: list[RoutinePatternPayload], titles: dict[HabitId, str],
    ) -> list[RoutinePattern]:
        patterns: list[RoutinePattern] = []
        seen: set[HabitId] = set()
        for payload in payloads:
            habit_id = parse_uuid(payload.habit_id)
            if habit_id not in titles or habit_id in seen:
                logger.warning(f"Dropping pattern for ungated habit '{payload.habit_id}'")
                continue
            blocks, dropped = valid_time_blocks(
                (b.day_of_week, b.start_hour, b.end_hour) for b in payload.time_blocks
            )
            if dropped:
                logger.warning(f"Dropped {dropped} invalid time blocks for '{payload.habit_id}'")
            score = clamp_score(payload.consistency_score)
            seen.add(habit_id)
            patterns.append(RoutinePattern(
                habit_id=HabitId(habit_id),
                habit_title=titles[habit_id],
                description=payload.description,
                consistency_score=score,
                confidence=payload.confidence or confidence_for(score),
                time_blocks=blocks,
            ))
        return patterns

    # ─── Conflicts ───────────────────────────────────────────────

    async def assess_conflict(
        self,
        owner_id: OwnerId,
        proposed: ProposedSchedule,
        exclude: HabitId | None = None,
    ) -> ConflictAssessment | None:
        """`exclude` is the habit being scheduled: its own pattern is not a conflict."""
        patterns = [
            p for p in await self.analyze_routines(owner_id) if p.habit_id != exclude
        ]
        if not patterns:
            logger.info(
                "No patterns detected, no conflict warning",
                extra={"owner_id": str(owner_id)},
            )
            return None

        context = ErrorContext(owner_id=str(owner_id), operation="assess_conflict")
        completion = await self.client.complete(
            build_conflict_prompt(proposed, patterns), ConflictPayload, context=context,
        )
        payload = completion.unwrap("conflict assessment", context)
        if not payload.has_conflict:
            return None

        claimed = []
        for habit in payload.conflicting_habits:
            habit_id = parse_uuid(habit.habit_id)
            if habit_id is None:
                continue
            claimed.append((
                ConflictingHabit(HabitId(habit_id), habit.habit_title, habit.conflict_description),
                payload.severity,
            ))
        kept = reconcile_conflicts(proposed, patterns, claimed)
        if not kept:
            logger.info(
                "Provider conflict claims did not hold, no conflict warning",
                extra={"owner_id": str(owner_id)},
            )
            return None
        return ConflictAssessment(
            has_conflict=True,
            conflicting_habits=tuple(kept),
            severity=overall_severity(kept),
            recommendation=payload.recommendation,
        )

    # ─── Suggestions ─────────────────────────────────────────────

    async def suggest_slots(
        self, owner_id: OwnerId, habit_title: str, proposed: ProposedSchedule,
    ) -> list[TimeSlotSuggestion]:
        patterns = await self.analyze_routines(owner_id)
        if not patterns:
            logger.info(
                "No patterns detected, returning generic suggestions",
                extra={"owner_id": str(owner_id)},
            )
            return list(FALLBACK_SUGGESTIONS)

        context = ErrorContext(owner_id=str(owner_id), operation="suggest_slots")
        completion = await self.client.complete(
            build_slot_prompt(habit_title, proposed, patterns),
            SlotSuggestionsPayload,
            context=context,
        )
        payload = completion.unwrap("time slot suggestions", context)

        suggestions = []
        for item in payload.suggestions:
            blocks, dropped = valid_time_blocks(
                (b.day_of_week, b.start_hour, b.end_hour) for b in item.time_blocks
            )
            if dropped and not blocks:
                logger.warning(f"Dropping suggestion '{item.description}': no valid time blocks")
                continue
            suggestions.append(TimeSlotSuggestion(
                description=item.description,
                time_blocks=blocks,
                rationale=item.rationale,
                score=clamp_score(item.score),
            ))
        if len(suggestions) != EXPECTED_SUGGESTION_COUNT:
            logger.warning(
                f"Expected {EXPECTED_SUGGESTION_COUNT} suggestions, got {len(suggestions)}",
                extra={"owner_id": str(owner_id)},
            )
        return rank_suggestions(suggestions)
