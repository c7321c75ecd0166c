"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - OwnerId, HabitId, TagId, FactId wrap UUIDs — never use bare UUID in domain logic
    - All valid states encoded as Enums — no raw string matching
    - Every Enum accepts its value in any casing ("monday", "MONDAY", "Monday")

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders (provider payloads are JSON)
    - Case-insensitive _missing_: provider output casing is not under our control
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

OwnerId = NewType("OwnerId", UUID)
HabitId = NewType("HabitId", UUID)
TagId = NewType("TagId", UUID)
FactId = NewType("FactId", UUID)


class CaseInsensitiveEnum(str, Enum):
    """str Enum whose lookup ignores casing, underscores and spaces."""

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, str):
            return None
        wanted = _fold(value)
        for member in cls:
            if _fold(member.value) == wanted or _fold(member.name) == wanted:
                return member
        return None


def _fold(text: str) -> str:
    return text.replace("_", "").replace(" ", "").replace("-", "").lower()


# ─── Enums ───────────────────────────────────────────────────────

class ActionType(CaseInsensitiveEnum):
    """Action plan variants the provider may propose."""
    CREATE_HABIT = "CreateHabit"
    LOG_HABIT = "LogHabit"
    UPDATE_HABIT = "UpdateHabit"
    DELETE_HABIT = "DeleteHabit"
    ASSIGN_TAG = "AssignTag"


DESTRUCTIVE_ACTIONS = frozenset({ActionType.DELETE_HABIT})
SCHEDULE_ACTIONS = frozenset({ActionType.CREATE_HABIT, ActionType.UPDATE_HABIT})


class FrequencyUnit(CaseInsensitiveEnum):
    DAY = "Day"
    WEEK = "Week"
    MONTH = "Month"
    YEAR = "Year"


class Weekday(CaseInsensitiveEnum):
    """Day of week — ordered Monday-first to match datetime.weekday()."""
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"

    @classmethod
    def from_ordinal(cls, ordinal: int) -> "Weekday":
        return list(cls)[ordinal]

    @property
    def ordinal(self) -> int:
        return list(type(self)).index(self)


WEEKDAYS = (
    Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY,
    Weekday.THURSDAY, Weekday.FRIDAY,
)


class ConfidenceTier(CaseInsensitiveEnum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class SeverityTier(CaseInsensitiveEnum):
    """Conflict severity — ordered by rank() for max() comparisons."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    def rank(self) -> int:
        return {"HIGH": 3, "MEDIUM": 2, "LOW": 1}[self.value]


class ActionStatus(str, Enum):
    """Terminal state of one executed action."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CompletionStatus(str, Enum):
    """Terminal state of one provider completion that reached a 2xx response."""
    OK = "ok"
    MALFORMED = "malformed"
    EMPTY = "empty"


class MutationKind(str, Enum):
    """Mutations the commit boundary understands — one per action or fact."""
    CREATE_HABIT = "create_habit"
    LOG_HABIT = "log_habit"
    UPDATE_HABIT = "update_habit"
    DELETE_HABIT = "delete_habit"
    ASSIGN_TAGS = "assign_tags"
    CREATE_FACT = "create_fact"


def frequency_label(unit: FrequencyUnit | None, quantity: int | None) -> str:
    """Human label for a schedule: "One-time", "Every day", "Every 2 weeks"."""
    if unit is None:
        return "One-time"
    name = unit.value.lower()
    if (quantity or 1) == 1:
        return f"Every {name}"
    return f"Every {quantity} {name}s"
