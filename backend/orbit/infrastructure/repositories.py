"""SQL Repositories — SQLAlchemy implementations of the core boundary protocols.

Invariants:
    - Every query is filtered by owner: another user's rows are "not found"
    - commit() applies exactly one Mutation and commits it on its own
    - Uniqueness violations become failed MutationResults, never exceptions
    - Other SQLAlchemy failures roll back and raise DatabaseError
    - Instants returned to core are timezone-aware UTC (SQLite drops tzinfo)

Design Decisions:
    - One repository object per request session implements all four protocols:
      they share the session and the per-request owner timezone cache
    - Mutation dispatch via dict of handlers, same shape as the action executor
    - Unknown or missing owner timezone resolves to UTC (logged once per request)
"""

import datetime as dt
import logging
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orbit.core.domain_types import (
    FactId, FrequencyUnit, HabitId, MutationKind, OwnerId, TagId, Weekday,
)
from orbit.core.errors import DatabaseError
from orbit.core.repository_protocols import LogRecord, Mutation, MutationResult
from orbit.core.snapshot import (
    DomainSnapshot, FactSummary, HabitSummary, TagSummary,
)
from orbit.models import Habit, HabitLog, Tag, User, UserFact

logger = logging.getLogger(__name__)

UTC = dt.timezone.utc


class SystemClock:
    def now(self) -> dt.datetime:
        return dt.datetime.now(UTC)


def _aware(value: dt.datetime) -> dt.datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _habit_summary(habit: Habit) -> HabitSummary:
    return HabitSummary(
        id=HabitId(habit.id),
        owner_id=OwnerId(habit.user_id),
        title=habit.title,
        description=habit.description,
        frequency_unit=FrequencyUnit(habit.frequency_unit) if habit.frequency_unit else None,
        frequency_quantity=habit.frequency_quantity,
        days=tuple(Weekday(d) for d in habit.days or ()),
        is_negative=habit.is_negative,
        is_completed=habit.is_completed,
        due_date=habit.due_date,
        parent_id=HabitId(habit.parent_habit_id) if habit.parent_habit_id else None,
        tag_ids=tuple(TagId(t.id) for t in habit.tags),
    )


class SqlRepository:
    """SnapshotProvider + CommitBoundary + HabitLogHistory + TimezoneResolver."""

    def __init__(self, db: AsyncSession, clock=None):
        self.db = db
        self.clock = clock or SystemClock()
        self._zones: dict[UUID, dt.tzinfo] = {}
        self._handlers = {
            MutationKind.CREATE_HABIT: self._create_habit,
            MutationKind.LOG_HABIT: self._log_habit,
            MutationKind.UPDATE_HABIT: self._update_habit,
            MutationKind.DELETE_HABIT: self._delete_habit,
            MutationKind.ASSIGN_TAGS: self._assign_tags,
            MutationKind.CREATE_FACT: self._create_fact,
        }

    # ─── TimezoneResolver ────────────────────────────────────────

    async def zone_for(self, owner_id: OwnerId) -> dt.tzinfo:
        if owner_id in self._zones:
            return self._zones[owner_id]
        user = await self.db.get(User, owner_id)
        zone: dt.tzinfo = UTC
        if user is not None and user.time_zone:
            try:
                zone = ZoneInfo(user.time_zone)
            except (ZoneInfoNotFoundError, ValueError):
                logger.warning(
                    f"Unknown time zone '{user.time_zone}', using UTC",
                    extra={"owner_id": str(owner_id)},
                )
        self._zones[owner_id] = zone
        return zone

    async def localize(self, instant: dt.datetime, owner_id: OwnerId) -> dt.datetime:
        """Naive local civil time of `instant` for the owner."""
        zone = await self.zone_for(owner_id)
        return _aware(instant).astimezone(zone).replace(tzinfo=None)

    async def today_for(self, owner_id: OwnerId) -> dt.date:
        zone = await self.zone_for(owner_id)
        return self.clock.now().astimezone(zone).date()

    # ─── SnapshotProvider ────────────────────────────────────────

    async def get_snapshot(self, owner_id: OwnerId) -> DomainSnapshot:
        habits = (await self.db.execute(
            select(Habit).where(Habit.user_id == owner_id).order_by(Habit.created_at)
        )).scalars().all()
        tags = (await self.db.execute(
            select(Tag).where(Tag.user_id == owner_id).order_by(Tag.name)
        )).scalars().all()
        facts = (await self.db.execute(
            select(UserFact).where(UserFact.user_id == owner_id)
            .order_by(UserFact.extracted_at)
        )).scalars().all()
        zone = await self.zone_for(owner_id)
        return DomainSnapshot(
            owner_id=owner_id,
            today=await self.today_for(owner_id),
            habits=tuple(_habit_summary(h) for h in habits),
            tags=tuple(
                TagSummary(TagId(t.id), OwnerId(t.user_id), t.name, t.color)
                for t in tags
            ),
            facts=tuple(
                FactSummary(FactId(f.id), OwnerId(f.user_id), f.fact_text, f.category)
                for f in facts
            ),
            timezone=str(zone),
        )

    # ─── HabitLogHistory ─────────────────────────────────────────

    async def logs_since(
        self, owner_id: OwnerId, since: dt.datetime,
    ) -> list[LogRecord]:
        rows = (await self.db.execute(
            select(HabitLog, Habit)
            .join(Habit, HabitLog.habit_id == Habit.id)
            .where(Habit.user_id == owner_id, HabitLog.created_at_utc >= since)
            .order_by(HabitLog.created_at_utc)
        )).all()
        return [
            LogRecord(
                habit_id=HabitId(habit.id),
                habit_title=habit.title,
                logged_at=_aware(log.created_at_utc),
                frequency_unit=(
                    FrequencyUnit(habit.frequency_unit) if habit.frequency_unit else None
                ),
                frequency_quantity=habit.frequency_quantity,
            )
            for log, habit in rows
        ]

    # ─── CommitBoundary ──────────────────────────────────────────

    async def commit(self, mutation: Mutation) -> MutationResult:
        handler = self._handlers[mutation.kind]
        try:
            result = await handler(mutation)
            if result.ok:
                await self.db.commit()
            else:
                await self.db.rollback()
            return result
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                f"Integrity violation on {mutation.kind.value}: {e.orig}",
                extra={"owner_id": str(mutation.owner_id), "error_code": "INTEGRITY"},
            )
            return MutationResult.failure("That conflicts with something that already exists.")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"DB error on {mutation.kind.value}: {e}")
            raise DatabaseError(str(e), mutation.kind.value)

    async def discard_pending(self) -> None:
        """Roll back whatever an interrupted read left open on the session."""
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Session reset failed: {e}")
            raise DatabaseError(str(e), "rollback")

    async def _owned_habit(self, owner_id: OwnerId, habit_id: UUID | None) -> Habit | None:
        if habit_id is None:
            return None
        habit = await self.db.get(Habit, habit_id)
        if habit is None or habit.user_id != owner_id:
            return None
        return habit

    async def _owned_tags(self, owner_id: OwnerId, tag_ids) -> list[Tag]:
        if not tag_ids:
            return []
        return list((await self.db.execute(
            select(Tag).where(Tag.user_id == owner_id, Tag.id.in_(list(tag_ids)))
        )).scalars().all())

    async def _create_habit(self, m: Mutation) -> MutationResult:
        f = m.fields
        unit = f.get("frequency_unit")
        habit = Habit(
            user_id=m.owner_id,
            title=f["title"],
            description=f.get("description"),
            frequency_unit=unit.value if unit else None,
            frequency_quantity=f.get("frequency_quantity"),
            days=[d.value for d in f.get("days") or ()],
            is_negative=bool(f.get("is_negative")),
            due_date=f.get("due_date") or await self.today_for(m.owner_id),
        )
        habit.tags = await self._owned_tags(m.owner_id, f.get("tag_ids"))
        self.db.add(habit)
        await self.db.flush()
        for title in f.get("sub_habits") or ():
            self.db.add(Habit(
                user_id=m.owner_id,
                parent_habit_id=habit.id,
                title=title,
                frequency_unit=habit.frequency_unit,
                frequency_quantity=habit.frequency_quantity,
                days=list(habit.days),
                due_date=habit.due_date,
                tags=[],
            ))
        await self.db.flush()
        return MutationResult.success(habit.id)

    async def _log_habit(self, m: Mutation) -> MutationResult:
        habit = await self._owned_habit(m.owner_id, m.target_id)
        if habit is None:
            return MutationResult.failure("Habit not found.")
        f = m.fields
        log = HabitLog(
            habit_id=habit.id,
            date=f.get("date") or await self.today_for(m.owner_id),
            value=f.get("value"),
            note=f.get("note"),
            created_at_utc=self.clock.now(),
        )
        self.db.add(log)
        if habit.frequency_unit is None:
            habit.is_completed = True
        await self.db.flush()
        return MutationResult.success(log.id)

    async def _update_habit(self, m: Mutation) -> MutationResult:
        habit = await self._owned_habit(m.owner_id, m.target_id)
        if habit is None:
            return MutationResult.failure("Habit not found.")
        f = m.fields
        if f.get("title"):
            habit.title = f["title"]
        if f.get("description") is not None:
            habit.description = f["description"]
        if f.get("frequency_unit") is not None:
            habit.frequency_unit = f["frequency_unit"].value
            habit.frequency_quantity = f.get("frequency_quantity") or 1
        elif f.get("frequency_quantity") is not None:
            habit.frequency_quantity = f["frequency_quantity"]
        if f.get("days") is not None:
            habit.days = [d.value for d in f["days"]]
        if (habit.frequency_quantity or 1) != 1 and habit.days:
            return MutationResult.failure("Days can only be set when the frequency quantity is 1.")
        if f.get("due_date") is not None:
            habit.due_date = f["due_date"]
        await self.db.flush()
        return MutationResult.success(habit.id)

    async def _delete_habit(self, m: Mutation) -> MutationResult:
        habit = await self._owned_habit(m.owner_id, m.target_id)
        if habit is None:
            return MutationResult.failure("Habit not found.")
        await self.db.delete(habit)
        await self.db.flush()
        return MutationResult.success(m.target_id)

    async def _assign_tags(self, m: Mutation) -> MutationResult:
        habit = await self._owned_habit(m.owner_id, m.target_id)
        if habit is None:
            return MutationResult.failure("Habit not found.")
        tags = await self._owned_tags(m.owner_id, m.fields.get("tag_ids"))
        if not tags:
            return MutationResult.failure("Tag not found.")
        current = {t.id for t in habit.tags}
        habit.tags.extend(t for t in tags if t.id not in current)
        await self.db.flush()
        return MutationResult.success(habit.id)

    async def _create_fact(self, m: Mutation) -> MutationResult:
        fact = UserFact(
            user_id=m.owner_id,
            fact_text=m.fields["fact_text"],
            category=m.fields.get("category"),
        )
        self.db.add(fact)
        await self.db.flush()
        return MutationResult.success(fact.id)
