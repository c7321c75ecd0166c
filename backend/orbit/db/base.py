"""SQLAlchemy Declarative Base — shared base class for all Orbit ORM models.

Invariants:
    - All models inherit from Base
    - Base.metadata is the single source of truth for the habit-tracking schema

Design Decisions:
    - Separate file for Base: avoids circular imports between models
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for habits, logs, tags, facts and users."""
    pass
