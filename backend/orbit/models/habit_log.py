"""HabitLog ORM — one recorded occurrence of a habit.

Invariants:
    - created_at_utc is the instant of logging (UTC); routine analysis reads it
    - date is the civil date the occurrence counts for
"""

import datetime as dt
import uuid

from sqlalchemy import Date, DateTime, Float, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from orbit.db.base import Base


class HabitLog(Base):
    __tablename__ = "habit_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    habit_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("habits.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    value: Mapped[float | None] = mapped_column(Float, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at_utc: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: dt.datetime.now(dt.timezone.utc),
    )

    habit: Mapped["Habit"] = relationship("Habit", back_populates="logs")
