"""Routine Rules — eligibility gate, time-block hygiene, severity classification, fallbacks.

Invariants:
    - All functions are PURE: no IO, no async, no clock reads (callers pass `now`)
    - gate_history returns [] when the history is too short or no habit is dense
      enough — callers must skip the provider call entirely in that case
    - Habits below min_logs_per_habit are excluded, never "partially" analyzed
    - Severity: HIGH = shared weekday AND hours overlap or are within 1 hour;
      MEDIUM = shared weekday, hours further apart; LOW = no shared weekday,
      hours within 1 hour; anything else is not a conflict
    - FALLBACK_SUGGESTIONS has exactly 3 entries, already in descending score order

Design Decisions:
    - Provider claims are re-derived here instead of trusted: the provider
      extracts, deterministic code decides what is reported
    - Where the proposed schedule lacks hours or weekdays, the unverifiable half
      of the rule defers to the provider's tier, bounded by the verifiable half
    - "Within 1 hour" uses the gap between half-open intervals:
      gap = max(starts) - min(ends); overlap < 0, touching == 0, within iff gap <= 1
"""

from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from orbit.core.domain_types import (
    ConfidenceTier, SeverityTier, Weekday, WEEKDAYS,
)
from orbit.core.repository_protocols import LogRecord
from orbit.core.routines import (
    ConflictingHabit, ProposedSchedule, RoutinePattern, RoutinePolicy,
    TimeBlock, TimeSlotSuggestion, is_valid_hour_range,
)


# ─── Gate ────────────────────────────────────────────────────────

def window_start(now: datetime, policy: RoutinePolicy) -> datetime:
    return now - timedelta(days=policy.analysis_window_days)


def gate_history(
    logs: Sequence[LogRecord], now: datetime, policy: RoutinePolicy,
) -> list[LogRecord]:
    """Logs eligible for pattern extraction, or [] when the gate fails.

    The history must span at least `min_history_days` (earliest windowed log
    to `now`) and a habit needs `min_logs_per_habit` windowed logs to stay in.
    """
    start = window_start(now, policy)
    windowed = [log for log in logs if start <= log.logged_at <= now]
    if not windowed:
        return []

    earliest = min(log.logged_at for log in windowed)
    if (now - earliest).days < policy.min_history_days:
        return []

    counts = Counter(log.habit_id for log in windowed)
    eligible = {
        habit_id for habit_id, count in counts.items()
        if count >= policy.min_logs_per_habit
    }
    return sorted(
        (log for log in windowed if log.habit_id in eligible),
        key=lambda log: log.logged_at,
    )


# ─── Pattern hygiene ─────────────────────────────────────────────

def clamp_score(score: float) -> float:
    return min(1.0, max(0.0, float(score)))


def valid_time_blocks(
    raw: Iterable[tuple[Weekday, int, int]],
) -> tuple[tuple[TimeBlock, ...], int]:
    """Build TimeBlocks from (day, start, end) triples. Returns (blocks, dropped)."""
    blocks: list[TimeBlock] = []
    dropped = 0
    for day, start, end in raw:
        if is_valid_hour_range(start, end):
            blocks.append(TimeBlock(day, start, end))
        else:
            dropped += 1
    return tuple(blocks), dropped


# ─── Severity ────────────────────────────────────────────────────

def hour_gap(a_start: int, a_end: int, b_start: int, b_end: int) -> int:
    """Hours between two half-open intervals (negative when they overlap)."""
    return max(a_start, b_start) - min(a_end, b_end)


def _within_one_hour(proposed: ProposedSchedule, blocks: Iterable[TimeBlock]) -> bool:
    return any(
        hour_gap(proposed.start_hour, proposed.end_hour, b.start_hour, b.end_hour) <= 1
        for b in blocks
    )


def classify_severity(
    proposed: ProposedSchedule,
    pattern: RoutinePattern,
    provider_tier: SeverityTier | None,
) -> SeverityTier | None:
    """Deterministic severity for one habit, or None when it is no conflict."""
    proposed_days = proposed.weekdays

    if proposed.has_hours:
        if proposed_days is None:
            if _within_one_hour(proposed, pattern.time_blocks):
                return SeverityTier.HIGH if provider_tier == SeverityTier.HIGH else SeverityTier.LOW
            if provider_tier in (SeverityTier.HIGH, SeverityTier.MEDIUM):
                return SeverityTier.MEDIUM
            return None

        shared_blocks = [b for b in pattern.time_blocks if b.day in proposed_days]
        if shared_blocks:
            if _within_one_hour(proposed, shared_blocks):
                return SeverityTier.HIGH
            return SeverityTier.MEDIUM
        if _within_one_hour(proposed, pattern.time_blocks):
            return SeverityTier.LOW
        return None

    if proposed_days is None:
        return provider_tier or SeverityTier.MEDIUM
    if proposed_days & pattern.days:
        if provider_tier in (SeverityTier.HIGH, SeverityTier.MEDIUM):
            return provider_tier
        return SeverityTier.MEDIUM
    return SeverityTier.LOW


def reconcile_conflicts(
    proposed: ProposedSchedule,
    patterns: Sequence[RoutinePattern],
    claimed: Iterable[tuple[ConflictingHabit, SeverityTier | None]],
) -> list[ConflictingHabit]:
    """Keep only claimed habits that exist in `patterns` and still classify as a conflict."""
    by_id = {p.habit_id: p for p in patterns}
    kept: list[ConflictingHabit] = []
    seen = set()
    for habit, provider_tier in claimed:
        pattern = by_id.get(habit.habit_id)
        if pattern is None or habit.habit_id in seen:
            continue
        severity = classify_severity(proposed, pattern, provider_tier)
        if severity is None:
            continue
        seen.add(habit.habit_id)
        kept.append(ConflictingHabit(
            habit_id=pattern.habit_id,
            habit_title=pattern.habit_title,
            description=habit.description,
            severity=severity,
        ))
    return kept


def overall_severity(habits: Iterable[ConflictingHabit]) -> SeverityTier | None:
    tiers = [h.severity for h in habits if h.severity is not None]
    if not tiers:
        return None
    return max(tiers, key=lambda t: t.rank())


def confidence_for(score: float) -> ConfidenceTier:
    """Tier implied by a consistency score when the provider omits one."""
    if score >= 0.8:
        return ConfidenceTier.HIGH
    if score >= 0.6:
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


# ─── Suggestions ─────────────────────────────────────────────────

def _weekday_blocks(start_hour: int, end_hour: int) -> tuple[TimeBlock, ...]:
    return tuple(TimeBlock(day, start_hour, end_hour) for day in WEEKDAYS)


FALLBACK_SUGGESTIONS: tuple[TimeSlotSuggestion, ...] = (
    TimeSlotSuggestion(
        description="Morning (7-8 AM)",
        time_blocks=_weekday_blocks(7, 8),
        rationale="No routine data yet - morning is a common time for building new habits",
        score=0.50,
    ),
    TimeSlotSuggestion(
        description="Afternoon (12-1 PM)",
        time_blocks=_weekday_blocks(12, 13),
        rationale="No routine data yet - midday provides a consistent schedule anchor",
        score=0.40,
    ),
    TimeSlotSuggestion(
        description="Evening (6-7 PM)",
        time_blocks=_weekday_blocks(18, 19),
        rationale="No routine data yet - evening allows for post-work activities",
        score=0.35,
    ),
)

EXPECTED_SUGGESTION_COUNT = 3


def rank_suggestions(
    suggestions: Iterable[TimeSlotSuggestion],
) -> list[TimeSlotSuggestion]:
    """Descending score; ties keep provider order."""
    return sorted(suggestions, key=lambda s: s.score, reverse=True)
