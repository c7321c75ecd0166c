"""Routine Rules — gate, block hygiene, severity classification, fallbacks.

Invariants:
    - The gate needs both a 7-day span and 5 logs per habit
    - Severity is derived from weekdays and hours, not taken from the provider
    - Fallback suggestions are exactly three, best first
"""

import datetime as dt
import uuid

import pytest

from orbit.core.domain_types import (
    ConfidenceTier, FrequencyUnit, HabitId, SeverityTier, Weekday, WEEKDAYS,
)
from orbit.core.repository_protocols import LogRecord
from orbit.core.routine_rules import (
    FALLBACK_SUGGESTIONS, clamp_score, classify_severity, confidence_for,
    gate_history, hour_gap, overall_severity, rank_suggestions,
    reconcile_conflicts, valid_time_blocks,
)
from orbit.core.routines import (
    ConflictingHabit, ProposedSchedule, RoutinePattern, RoutinePolicy,
    TimeBlock, TimeSlotSuggestion,
)

NOW = dt.datetime(2026, 3, 16, 12, 0, tzinfo=dt.timezone.utc)
POLICY = RoutinePolicy()
RUN = HabitId(uuid.uuid4())
READ = HabitId(uuid.uuid4())


def _logs(habit_id, days_ago, title="Run"):
    return [
        LogRecord(habit_id, title, NOW - dt.timedelta(days=d, hours=1))
        for d in days_ago
    ]


def _pattern(habit_id, blocks, title="Gym"):
    return RoutinePattern(
        habit_id=habit_id, habit_title=title, description="",
        consistency_score=0.8, confidence=ConfidenceTier.HIGH,
        time_blocks=tuple(TimeBlock(day, s, e) for day, s, e in blocks),
    )


# ==============================================================================
# Gate
# ==============================================================================


def test_gate_passes_with_span_and_enough_logs():
    logs = _logs(RUN, [10, 8, 6, 4, 2])
    assert gate_history(logs, NOW, POLICY) == sorted(logs, key=lambda l: l.logged_at)


def test_gate_fails_when_history_too_short():
    logs = _logs(RUN, [5, 4, 3, 2, 1, 0])
    assert gate_history(logs, NOW, POLICY) == []


def test_gate_excludes_sparse_habits():
    logs = _logs(RUN, [10, 8, 6, 4, 2]) + _logs(READ, [9, 3], title="Read")
    eligible = gate_history(logs, NOW, POLICY)
    assert {log.habit_id for log in eligible} == {RUN}


def test_gate_fails_when_no_habit_is_dense_enough():
    logs = _logs(RUN, [10, 2]) + _logs(READ, [9, 3], title="Read")
    assert gate_history(logs, NOW, POLICY) == []


def test_gate_ignores_logs_outside_window():
    logs = _logs(RUN, [90, 80, 70, 65, 2])
    assert gate_history(logs, NOW, POLICY) == []


def test_gate_thresholds_are_injectable():
    logs = _logs(RUN, [3, 2])
    policy = RoutinePolicy(min_history_days=2, min_logs_per_habit=2)
    assert len(gate_history(logs, NOW, policy)) == 2


# ==============================================================================
# Hygiene
# ==============================================================================


def test_invalid_time_blocks_are_dropped():
    blocks, dropped = valid_time_blocks([
        (Weekday.MONDAY, 7, 8),
        (Weekday.MONDAY, 9, 9),
        (Weekday.TUESDAY, 23, 25),
        (Weekday.FRIDAY, 23, 24),
    ])
    assert [b.label for b in blocks] == ["Monday 07:00-08:00", "Friday 23:00-24:00"]
    assert dropped == 2


def test_time_block_constructor_rejects_bad_range():
    with pytest.raises(ValueError):
        TimeBlock(Weekday.MONDAY, 10, 9)


def test_scores_are_clamped():
    assert clamp_score(1.7) == 1.0
    assert clamp_score(-0.2) == 0.0
    assert clamp_score(0.42) == 0.42


def test_confidence_fallback_tiers():
    assert confidence_for(0.9) == ConfidenceTier.HIGH
    assert confidence_for(0.6) == ConfidenceTier.MEDIUM
    assert confidence_for(0.3) == ConfidenceTier.LOW


def test_hour_gap():
    assert hour_gap(7, 8, 7, 9) < 0
    assert hour_gap(7, 8, 8, 9) == 0
    assert hour_gap(7, 8, 9, 10) == 1
    assert hour_gap(7, 8, 12, 13) == 4


# ==============================================================================
# Severity
# ==============================================================================

GYM = _pattern(RUN, [(Weekday.MONDAY, 7, 8), (Weekday.WEDNESDAY, 7, 8)])


def test_shared_day_overlapping_hours_is_high():
    proposed = ProposedSchedule(days=(Weekday.MONDAY,), start_hour=7, end_hour=8)
    assert classify_severity(proposed, GYM, SeverityTier.LOW) == SeverityTier.HIGH


def test_shared_day_within_one_hour_is_high():
    proposed = ProposedSchedule(days=(Weekday.MONDAY,), start_hour=9, end_hour=10)
    assert classify_severity(proposed, GYM, None) == SeverityTier.HIGH


def test_shared_day_far_apart_is_medium():
    proposed = ProposedSchedule(days=(Weekday.WEDNESDAY,), start_hour=18, end_hour=19)
    assert classify_severity(proposed, GYM, SeverityTier.HIGH) == SeverityTier.MEDIUM


def test_other_day_close_hours_is_low():
    proposed = ProposedSchedule(days=(Weekday.SATURDAY,), start_hour=7, end_hour=8)
    assert classify_severity(proposed, GYM, SeverityTier.HIGH) == SeverityTier.LOW


def test_other_day_far_hours_is_no_conflict():
    proposed = ProposedSchedule(days=(Weekday.SATURDAY,), start_hour=18, end_hour=19)
    assert classify_severity(proposed, GYM, SeverityTier.HIGH) is None


def test_daily_schedule_occupies_every_weekday():
    proposed = ProposedSchedule(
        frequency_unit=FrequencyUnit.DAY, frequency_quantity=1, start_hour=7, end_hour=8,
    )
    assert classify_severity(proposed, GYM, None) == SeverityTier.HIGH


def test_unknown_days_close_hours_capped_by_provider():
    proposed = ProposedSchedule(
        frequency_unit=FrequencyUnit.WEEK, frequency_quantity=1, start_hour=7, end_hour=8,
    )
    assert classify_severity(proposed, GYM, SeverityTier.HIGH) == SeverityTier.HIGH
    assert classify_severity(proposed, GYM, SeverityTier.MEDIUM) == SeverityTier.LOW


def test_no_hours_shared_days_keeps_provider_tier():
    proposed = ProposedSchedule(
        frequency_unit=FrequencyUnit.DAY, frequency_quantity=1, days=(Weekday.MONDAY,),
    )
    assert classify_severity(proposed, GYM, SeverityTier.HIGH) == SeverityTier.HIGH
    assert classify_severity(proposed, GYM, SeverityTier.LOW) == SeverityTier.MEDIUM


def test_no_hours_different_days_is_low():
    proposed = ProposedSchedule(
        frequency_unit=FrequencyUnit.DAY, frequency_quantity=1, days=(Weekday.SUNDAY,),
    )
    assert classify_severity(proposed, GYM, SeverityTier.HIGH) == SeverityTier.LOW


def test_reconcile_drops_unknown_and_duplicate_habits():
    proposed = ProposedSchedule(days=(Weekday.MONDAY,), start_hour=7, end_hour=8)
    stranger = HabitId(uuid.uuid4())
    claimed = [
        (ConflictingHabit(RUN, "wrong title", "same slot"), SeverityTier.LOW),
        (ConflictingHabit(RUN, "again", "dup"), SeverityTier.LOW),
        (ConflictingHabit(stranger, "phantom", "?"), SeverityTier.HIGH),
    ]

    kept = reconcile_conflicts(proposed, [GYM], claimed)

    assert len(kept) == 1
    assert kept[0].habit_title == "Gym"
    assert kept[0].severity == SeverityTier.HIGH


def test_overall_severity_is_max():
    habits = [
        ConflictingHabit(RUN, "a", "", SeverityTier.LOW),
        ConflictingHabit(READ, "b", "", SeverityTier.MEDIUM),
    ]
    assert overall_severity(habits) == SeverityTier.MEDIUM
    assert overall_severity([]) is None


# ==============================================================================
# Suggestions
# ==============================================================================


def test_fallbacks_are_three_weekday_slots_best_first():
    assert len(FALLBACK_SUGGESTIONS) == 3
    assert [s.score for s in FALLBACK_SUGGESTIONS] == [0.50, 0.40, 0.35]
    assert [(s.time_blocks[0].start_hour, s.time_blocks[0].end_hour)
            for s in FALLBACK_SUGGESTIONS] == [(7, 8), (12, 13), (18, 19)]
    for suggestion in FALLBACK_SUGGESTIONS:
        assert tuple(b.day for b in suggestion.time_blocks) == WEEKDAYS


def test_rank_is_descending_and_stable():
    a = TimeSlotSuggestion("a", (), "", 0.5)
    b = TimeSlotSuggestion("b", (), "", 0.9)
    c = TimeSlotSuggestion("c", (), "", 0.5)
    assert [s.description for s in rank_suggestions([a, b, c])] == ["b", "a", "c"]
