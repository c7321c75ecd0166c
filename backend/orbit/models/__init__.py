"""ORM Models — SQLAlchemy declarative models for the habit domain.

Invariants:
    - All models inherit from Base (db/base.py)
    - User is the owner root; every other entity is scoped by user_id

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from orbit.models.user import User  # noqa: F401
from orbit.models.tag import Tag, habit_tags  # noqa: F401
from orbit.models.habit import Habit  # noqa: F401
from orbit.models.habit_log import HabitLog  # noqa: F401
from orbit.models.user_fact import UserFact  # noqa: F401
