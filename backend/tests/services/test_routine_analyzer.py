"""Routine Analyzer — gated pattern extraction, conflict checks, slot suggestions.

Invariants:
    - No provider call below the gate; fallbacks need no provider at all
    - Provider claims are sanitized: ungated habits, bad blocks and wrong
      severities never reach the caller
    - Provider failures raise; they are never reported as "no conflict"
"""

import datetime as dt
import json
import uuid

import pytest

from orbit.core.domain_types import (
    ConfidenceTier, FrequencyUnit, HabitId, SeverityTier, Weekday,
)
from orbit.core.errors import (
    EmptyProviderOutputError, MalformedProviderOutputError, ProviderUnavailableError,
)
from orbit.core.repository_protocols import LogRecord
from orbit.core.routine_rules import FALLBACK_SUGGESTIONS
from orbit.core.routines import ProposedSchedule
from orbit.services.routine_analyzer import RoutineAnalyzer, utc_offset_label

from tests.services.fakes import NOW, FakeHistory, FakeTimezones, FixedClock
from tests.services.mock_anthropic import (
    empty_response, make_completion_client, status_error, text_response,
)

RUN = HabitId(uuid.UUID("aaaaaaaa-0000-0000-0000-000000000001"))
READ = HabitId(uuid.UUID("aaaaaaaa-0000-0000-0000-000000000002"))

MONDAY_MORNING = ProposedSchedule(
    frequency_unit=FrequencyUnit.DAY, frequency_quantity=1,
    days=(Weekday.MONDAY,), start_hour=9, end_hour=10,
)


def _logs(habit_id, title, days_ago, hour_utc=7):
    return [
        LogRecord(
            habit_id, title,
            (NOW - dt.timedelta(days=d)).replace(hour=hour_utc, minute=0),
            FrequencyUnit.DAY, 1,
        )
        for d in days_ago
    ]


def _gated_history():
    return FakeHistory(
        _logs(RUN, "Run", [10, 8, 6, 4, 2]) + _logs(READ, "Read", [9, 1]),
    )


def _patterns_json(*patterns):
    return text_response(json.dumps({"patterns": list(patterns)}))


RUN_PATTERN = {
    "habitId": str(RUN),
    "habitTitle": "Run",
    "description": "Runs on Monday mornings",
    "consistencyScore": 0.85,
    "confidence": "HIGH",
    "timeBlocks": [{"dayOfWeek": "Monday", "startHour": 9, "endHour": 10}],
}


def _analyzer(responses, history=None, offset_hours=2):
    client = make_completion_client(responses)
    analyzer = RoutineAnalyzer(
        client, history or _gated_history(), FakeTimezones(offset_hours), FixedClock(),
    )
    return analyzer, client.client


# ==============================================================================
# Patterns
# ==============================================================================


async def test_below_gate_returns_empty_without_provider_call(owner_id):
    analyzer, mock = _analyzer([], history=FakeHistory(_logs(RUN, "Run", [3, 2, 1, 0])))

    assert await analyzer.analyze_routines(owner_id) == []
    assert mock.calls == []


async def test_prompt_uses_local_time_and_only_gated_habits(owner_id):
    analyzer, mock = _analyzer([_patterns_json(RUN_PATTERN)])

    await analyzer.analyze_routines(owner_id)

    prompt = mock.calls[0]["messages"][0]["content"][0]["text"]
    assert "User timezone: UTC+02:00" in prompt
    assert "09:00" in prompt
    assert "Run" in prompt
    assert str(READ) not in prompt


async def test_patterns_are_sanitized(owner_id):
    analyzer, _ = _analyzer([_patterns_json(
        {**RUN_PATTERN, "consistencyScore": 1.4, "confidence": None, "timeBlocks": [
            {"dayOfWeek": "Monday", "startHour": 9, "endHour": 10},
            {"dayOfWeek": "Tuesday", "startHour": 22, "endHour": 26},
        ]},
        {**RUN_PATTERN, "description": "duplicate"},
        {**RUN_PATTERN, "habitId": str(READ)},
        {**RUN_PATTERN, "habitId": "not-a-uuid"},
    )])

    patterns = await analyzer.analyze_routines(owner_id)

    assert len(patterns) == 1
    pattern = patterns[0]
    assert pattern.habit_id == RUN
    assert pattern.consistency_score == 1.0
    assert pattern.confidence == ConfidenceTier.HIGH
    assert [b.label for b in pattern.time_blocks] == ["Monday 09:00-10:00"]


async def test_weekly_morning_routine_yields_one_high_confidence_pattern(owner_id):
    history = FakeHistory(_logs(RUN, "Run", [14, 12, 10, 7, 5, 3]))
    analyzer, mock = _analyzer([_patterns_json({
        **RUN_PATTERN,
        "description": "Runs Mon/Wed/Fri around 7am",
        "timeBlocks": [
            {"dayOfWeek": day, "startHour": 7, "endHour": 8}
            for day in ("Monday", "Wednesday", "Friday")
        ],
    })], history=history, offset_hours=0)

    patterns = await analyzer.analyze_routines(owner_id)

    assert len(mock.calls) == 1
    assert len(patterns) == 1
    assert patterns[0].confidence == ConfidenceTier.HIGH
    assert [b.label for b in patterns[0].time_blocks] == [
        "Monday 07:00-08:00", "Wednesday 07:00-08:00", "Friday 07:00-08:00",
    ]


async def test_empty_pattern_output_means_no_patterns(owner_id):
    analyzer, _ = _analyzer([empty_response()])
    assert await analyzer.analyze_routines(owner_id) == []


async def test_malformed_pattern_output_raises(owner_id):
    analyzer, _ = _analyzer([text_response("no json here")])
    with pytest.raises(MalformedProviderOutputError):
        await analyzer.analyze_routines(owner_id)


def test_utc_offset_label():
    local = dt.datetime(2026, 3, 16, 6, 30)
    assert utc_offset_label(local, NOW) == "UTC-05:30"


# ==============================================================================
# Conflicts
# ==============================================================================


async def test_no_patterns_means_no_conflict_and_no_calls(owner_id):
    analyzer, mock = _analyzer([], history=FakeHistory())

    assert await analyzer.assess_conflict(owner_id, MONDAY_MORNING) is None
    assert mock.calls == []


async def test_conflict_severity_is_recomputed(owner_id):
    analyzer, mock = _analyzer([
        _patterns_json(RUN_PATTERN),
        text_response(json.dumps({
            "hasConflict": True,
            "conflictingHabits": [
                {"habitId": str(RUN), "habitTitle": "Running", "conflictDescription": "same slot"},
                {"habitId": str(uuid.uuid4()), "habitTitle": "Phantom", "conflictDescription": "?"},
            ],
            "severity": "LOW",
            "recommendation": "Move it to the evening.",
        })),
    ])

    assessment = await analyzer.assess_conflict(owner_id, MONDAY_MORNING)

    assert len(mock.calls) == 2
    assert assessment.has_conflict
    assert [h.habit_title for h in assessment.conflicting_habits] == ["Run"]
    assert assessment.severity == SeverityTier.HIGH
    assert assessment.recommendation == "Move it to the evening."


async def test_provider_says_no_conflict(owner_id):
    analyzer, _ = _analyzer([
        _patterns_json(RUN_PATTERN),
        text_response('{"hasConflict": false, "conflictingHabits": []}'),
    ])
    assert await analyzer.assess_conflict(owner_id, MONDAY_MORNING) is None


async def test_unfounded_conflict_claims_are_discarded(owner_id):
    saturday_evening = ProposedSchedule(days=(Weekday.SATURDAY,), start_hour=19, end_hour=20)
    analyzer, _ = _analyzer([
        _patterns_json(RUN_PATTERN),
        text_response(json.dumps({
            "hasConflict": True,
            "conflictingHabits": [{"habitId": str(RUN), "conflictDescription": "?"}],
            "severity": "HIGH",
        })),
    ])
    assert await analyzer.assess_conflict(owner_id, saturday_evening) is None


async def test_scheduled_habit_is_not_its_own_conflict(owner_id):
    analyzer, mock = _analyzer([
        _patterns_json(RUN_PATTERN),
        text_response(json.dumps({
            "hasConflict": True,
            "conflictingHabits": [{"habitId": str(RUN), "conflictDescription": "same slot"}],
            "severity": "HIGH",
        })),
    ])

    assert await analyzer.assess_conflict(owner_id, MONDAY_MORNING, exclude=RUN) is None
    assert len(mock.calls) == 1


async def test_excluded_habit_is_dropped_from_conflicts(owner_id):
    history = FakeHistory(
        _logs(RUN, "Run", [10, 8, 6, 4, 2]) + _logs(READ, "Read", [9, 7, 5, 3, 1]),
    )
    read_pattern = {**RUN_PATTERN, "habitId": str(READ), "habitTitle": "Read"}
    analyzer, _ = _analyzer([
        _patterns_json(RUN_PATTERN, read_pattern),
        text_response(json.dumps({
            "hasConflict": True,
            "conflictingHabits": [
                {"habitId": str(RUN), "conflictDescription": "same slot"},
                {"habitId": str(READ), "conflictDescription": "same slot"},
            ],
            "severity": "HIGH",
        })),
    ], history=history)

    assessment = await analyzer.assess_conflict(owner_id, MONDAY_MORNING, exclude=RUN)

    assert [h.habit_id for h in assessment.conflicting_habits] == [READ]
    assert assessment.severity == SeverityTier.HIGH


async def test_provider_failure_is_not_no_conflict(owner_id):
    analyzer, _ = _analyzer([_patterns_json(RUN_PATTERN), status_error(503)])
    with pytest.raises(ProviderUnavailableError):
        await analyzer.assess_conflict(owner_id, MONDAY_MORNING)


async def test_empty_conflict_output_raises(owner_id):
    analyzer, _ = _analyzer([_patterns_json(RUN_PATTERN), empty_response()])
    with pytest.raises(EmptyProviderOutputError):
        await analyzer.assess_conflict(owner_id, MONDAY_MORNING)


# ==============================================================================
# Suggestions
# ==============================================================================


async def test_no_patterns_returns_fallbacks_without_calls(owner_id):
    analyzer, mock = _analyzer([], history=FakeHistory())

    suggestions = await analyzer.suggest_slots(owner_id, "Read", MONDAY_MORNING)

    assert suggestions == list(FALLBACK_SUGGESTIONS)
    assert mock.calls == []


async def test_suggestions_are_ranked_and_cleaned(owner_id):
    def slot(description, score, start, end):
        return {
            "description": description, "rationale": "fits", "score": score,
            "timeBlocks": [{"dayOfWeek": "Tuesday", "startHour": start, "endHour": end}],
        }

    analyzer, _ = _analyzer([
        _patterns_json(RUN_PATTERN),
        text_response(json.dumps({"suggestions": [
            slot("Lunch", 0.4, 12, 13),
            slot("Evening", 1.3, 18, 19),
            slot("Broken", 0.9, 20, 19),
            slot("Morning", 0.7, 7, 8),
        ]})),
    ])

    suggestions = await analyzer.suggest_slots(owner_id, "Read", MONDAY_MORNING)

    assert [s.description for s in suggestions] == ["Evening", "Morning", "Lunch"]
    assert suggestions[0].score == 1.0


async def test_wrong_suggestion_count_is_still_returned(owner_id):
    analyzer, _ = _analyzer([
        _patterns_json(RUN_PATTERN),
        text_response(json.dumps({"suggestions": [
            {"description": "Only one", "rationale": "r", "score": 0.5,
             "timeBlocks": [{"dayOfWeek": "Friday", "startHour": 6, "endHour": 7}]},
        ]})),
    ])

    suggestions = await analyzer.suggest_slots(owner_id, "Read", MONDAY_MORNING)

    assert len(suggestions) == 1


async def test_empty_suggestion_output_raises(owner_id):
    analyzer, _ = _analyzer([_patterns_json(RUN_PATTERN), empty_response()])
    with pytest.raises(EmptyProviderOutputError):
        await analyzer.suggest_slots(owner_id, "Read", MONDAY_MORNING)
