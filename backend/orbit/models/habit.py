"""Habit ORM — a schedulable (or one-time) activity owned by a user.

Invariants:
    - frequency_unit NULL means one-time task; frequency_quantity is NULL with it
    - days is a JSON list of weekday names, only meaningful when quantity is 1
    - parent_habit_id links sub-habits to their parent (one level deep)

Design Decisions:
    - Enums stored as strings: readable rows, no database enum migrations
    - tags loaded with selectin: snapshots always need them
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Integer, JSON, String, Text, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orbit.db.base import Base
from orbit.models.tag import habit_tags


class Habit(Base):
    __tablename__ = "habits"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    parent_habit_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("habits.id", ondelete="CASCADE"), nullable=True,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    frequency_unit: Mapped[str | None] = mapped_column(String(10), nullable=True)
    frequency_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    days: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_negative: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    tags: Mapped[list["Tag"]] = relationship(
        "Tag", secondary=habit_tags, lazy="selectin",
    )
    logs: Mapped[list["HabitLog"]] = relationship(
        "HabitLog", back_populates="habit",
        cascade="all, delete-orphan", passive_deletes=True,
    )
