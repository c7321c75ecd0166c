"""Service test fixtures — owner identity, snapshots and a recorded sleep.

Invariants:
    - Every test gets its own owner and snapshot (no shared mutable state)
    - `sleeps` replaces asyncio.sleep so backoff tests never wait
"""

import asyncio
import datetime as dt
import uuid

import pytest

from orbit.core.domain_types import FrequencyUnit, HabitId, OwnerId, TagId
from orbit.core.snapshot import DomainSnapshot, HabitSummary, TagSummary


@pytest.fixture
def owner_id():
    return OwnerId(uuid.uuid4())


@pytest.fixture
def habit_id():
    return HabitId(uuid.uuid4())


@pytest.fixture
def tag_id():
    return TagId(uuid.uuid4())


@pytest.fixture
def snapshot(owner_id, habit_id, tag_id):
    return DomainSnapshot(
        owner_id=owner_id,
        today=dt.date(2026, 3, 16),
        habits=(
            HabitSummary(
                id=habit_id, owner_id=owner_id, title="Drink water",
                frequency_unit=FrequencyUnit.DAY, frequency_quantity=1,
            ),
        ),
        tags=(TagSummary(id=tag_id, owner_id=owner_id, name="health"),),
    )


@pytest.fixture
def sleeps(monkeypatch):
    """Record requested sleep durations instead of sleeping."""
    recorded = []

    async def _fake_sleep(seconds):
        recorded.append(seconds)

    monkeypatch.setattr(asyncio, "sleep", _fake_sleep)
    return recorded
