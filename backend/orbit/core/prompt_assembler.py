"""Prompt Assembler — pure serialization of domain state into provider input text.

Invariants:
    - All functions are PURE: identical inputs produce byte-identical output
    - No clock reads: "today" always comes from the snapshot or the caller
    - Every free-form user value is wrapped by untrusted(); marker text inside a
      value is neutralized so it cannot close the block early
    - Lists are bounded by PromptLimits; overflow is summarized, never silently cut

Design Decisions:
    - Plain string building over a template engine: sections are static, only
      the data blocks vary (see prompt_sections)
    - Sub-habits render indented under their parent and count toward the habit bound
"""

import datetime as dt
import re
from collections.abc import Sequence
from dataclasses import dataclass

from orbit.core import prompt_sections as sections
from orbit.core.routines import LocalizedLog, ProposedSchedule, RoutinePattern
from orbit.core.snapshot import DomainSnapshot, FactSummary, HabitSummary

_MARKER = re.compile(r"<\s*/?\s*untrusted\s*>", re.IGNORECASE)


@dataclass(frozen=True)
class PromptLimits:
    max_habits: int = 50
    max_tags: int = 30
    max_facts: int = 30


def untrusted(value: str | None) -> str:
    """Wrap a user-provided value in <untrusted> markers."""
    cleaned = _MARKER.sub("[untrusted-marker]", value or "")
    return f"<untrusted>{cleaned}</untrusted>"


def _overflow(hidden: int) -> list[str]:
    return [f"… {hidden} more not shown"] if hidden > 0 else []


# ─── Snapshot blocks ─────────────────────────────────────────────

def _ordered_habits(habits: Sequence[HabitSummary]) -> list[tuple[HabitSummary, int]]:
    """Parents in snapshot order, each followed by its children (depth 1)."""
    ids = {h.id for h in habits}
    children: dict = {}
    for h in habits:
        if h.parent_id is not None and h.parent_id in ids:
            children.setdefault(h.parent_id, []).append(h)
    ordered: list[tuple[HabitSummary, int]] = []
    for h in habits:
        if h.parent_id is not None and h.parent_id in ids:
            continue
        ordered.append((h, 0))
        ordered.extend((c, 1) for c in children.get(h.id, []))
    return ordered


def _habit_line(habit: HabitSummary, depth: int) -> str:
    if depth:
        done = " (done)" if habit.is_completed else ""
        return f"  - {untrusted(habit.title)} | ID: {habit.id}{done}"
    parts = [
        f"- {untrusted(habit.title)}",
        f"ID: {habit.id}",
        f"Frequency: {habit.frequency_label}",
    ]
    if habit.days:
        parts.append(f"Days: {', '.join(d.value for d in habit.days)}")
    if habit.due_date:
        parts.append(f"Due: {habit.due_date.isoformat()}")
    if habit.description:
        parts.append(f"Description: {untrusted(habit.description)}")
    if habit.is_negative:
        parts.append("NEGATIVE (tracking to avoid)")
    if habit.is_completed:
        parts.append("COMPLETED")
    return " | ".join(parts)


def format_habits(habits: Sequence[HabitSummary], limit: int) -> str:
    lines = ["## User's Active Habits"]
    ordered = _ordered_habits(habits)
    if not ordered:
        lines.append("(none)")
        return "\n".join(lines)
    lines.extend(_habit_line(h, depth) for h, depth in ordered[:limit])
    lines.extend(_overflow(len(ordered) - limit))
    return "\n".join(lines)


def format_tags(snapshot: DomainSnapshot, limit: int) -> str:
    lines = ["## User's Tags"]
    if not snapshot.tags:
        lines.append("(none - user hasn't created tags yet)")
        return "\n".join(lines)
    lines.extend(
        f"- {untrusted(t.name)} | ID: {t.id} | Color: {t.color}"
        for t in snapshot.tags[:limit]
    )
    lines.extend(_overflow(len(snapshot.tags) - limit))
    return "\n".join(lines)


def format_facts(facts: Sequence[FactSummary], limit: int) -> str:
    lines = ["## What You Know About the User"]
    if not facts:
        lines.append("(nothing yet)")
        return "\n".join(lines)
    for fact in facts[:limit]:
        category = f" ({fact.category})" if fact.category else ""
        lines.append(f"- {untrusted(fact.text)}{category}")
    lines.extend(_overflow(len(facts) - limit))
    return "\n".join(lines)


def build_action_prompt(
    snapshot: DomainSnapshot,
    user_message: str,
    limits: PromptLimits = PromptLimits(),
    has_image: bool = False,
) -> str:
    """Full action-plan prompt: rules, bounded snapshot, examples, then the utterance."""
    blocks = [
        sections.ACTION_IDENTITY,
        sections.UNTRUSTED_NOTICE,
        sections.ACTION_RULES,
        sections.ACTION_FIELDS,
        format_habits(snapshot.habits, limits.max_habits),
        format_tags(snapshot, limits.max_tags),
        format_facts(snapshot.facts, limits.max_facts),
        f"## Today's Date: {snapshot.today.isoformat()}",
        sections.ACTION_EXAMPLES,
        sections.ACTION_SCHEMA,
        "## User Message\n" + untrusted(user_message),
    ]
    if has_image:
        blocks.append("(An image is attached to this message.)")
    return "\n\n".join(blocks)


# ─── Routine blocks ──────────────────────────────────────────────

def format_patterns(patterns: Sequence[RoutinePattern]) -> str:
    lines = []
    for p in patterns:
        blocks = ", ".join(b.label for b in p.time_blocks) or "no fixed time"
        lines.append(
            f"- habitId: {p.habit_id} | {untrusted(p.habit_title)} | "
            f"consistency {p.consistency_score:.2f} | {p.confidence.value} | {blocks}"
        )
    return "\n".join(lines) or "(none)"


def format_proposed(proposed: ProposedSchedule) -> str:
    days = ", ".join(d.value for d in proposed.days) if proposed.days else "not specified"
    lines = [
        f"- Frequency: {proposed.frequency_label}",
        f"- Days: {days}",
    ]
    if proposed.has_hours:
        lines.append(f"- Time: {proposed.start_hour:02d}:00-{proposed.end_hour:02d}:00")
    return "\n".join(lines)


def build_routine_prompt(
    logs: Sequence[LocalizedLog],
    today: dt.date,
    timezone_name: str,
    window_days: int,
) -> str:
    by_habit: dict = {}
    for log in logs:
        by_habit.setdefault(log.habit_id, []).append(log)
    habit_blocks = []
    for habit_id, habit_logs in by_habit.items():
        first = habit_logs[0]
        stamps = "\n".join(
            f"  - {log.local_time.strftime('%Y-%m-%d %A %H:%M')}" for log in habit_logs
        )
        habit_blocks.append(
            f"- habitId: {habit_id} | {untrusted(first.habit_title)} | "
            f"Frequency: {first.frequency_label}\n{stamps}"
        )
    return "\n\n".join([
        sections.ROUTINE_TASK,
        sections.UNTRUSTED_NOTICE,
        f"User timezone: {timezone_name}\nCurrent date: {today.isoformat()}\n"
        f"Analysis window: last {window_days} days",
        "Habit logs (local time):\n" + "\n".join(habit_blocks),
        sections.ROUTINE_SCHEMA,
    ])


def build_conflict_prompt(
    proposed: ProposedSchedule, patterns: Sequence[RoutinePattern],
) -> str:
    return "\n\n".join([
        sections.CONFLICT_TASK,
        sections.UNTRUSTED_NOTICE,
        "New habit:\n" + format_proposed(proposed),
        "Existing routine patterns:\n" + format_patterns(patterns),
        sections.CONFLICT_SCHEMA,
    ])


def build_slot_prompt(
    habit_title: str,
    proposed: ProposedSchedule,
    patterns: Sequence[RoutinePattern],
) -> str:
    return "\n\n".join([
        sections.SLOT_TASK,
        sections.UNTRUSTED_NOTICE,
        f"New habit:\n- Title: {untrusted(habit_title)}\n" + format_proposed(proposed),
        "Existing routine patterns:\n" + format_patterns(patterns),
        sections.SLOT_SCHEMA,
    ])


def build_fact_prompt(
    user_message: str,
    summary_message: str | None,
    existing_facts: Sequence[FactSummary],
    limit: int = 30,
) -> str:
    return "\n\n".join([
        sections.FACT_TASK,
        sections.UNTRUSTED_NOTICE,
        f"**User message:** {untrusted(user_message)}",
        f"**AI response:** {untrusted(summary_message or '(no response yet)')}",
        format_facts(existing_facts, limit).replace(
            "## What You Know About the User", "## Already Known Facts",
        ),
        sections.FACT_SCHEMA,
    ])
