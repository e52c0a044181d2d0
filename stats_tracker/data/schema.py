"""SQLAlchemy base class and mixins for database models.

Example:
    >>> from stats_tracker.data.schema import Base, CounterMixin
    >>> class MyStats(CounterMixin, Base):
    ...     __tablename__ = "my_stats"
    ...     id: Mapped[int] = mapped_column(primary_key=True)
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import MetaData, event, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Named constraints keep SQLite and Postgres migrations stable
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns.

    Attributes:
        created_at: Timestamp when record was created.
        updated_at: Timestamp when record was last updated.
    """

    created_at: Mapped[datetime] = mapped_column(
        default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class ShootingMixin:
    """Counter columns shared by every box score shape, plus read-time ratios.

    Percentages are computed from the stored made/attempted counters on
    every read and are never persisted.
    """

    field_goals_made: Mapped[int] = mapped_column(default=0, nullable=False)
    field_goals_attempted: Mapped[int] = mapped_column(default=0, nullable=False)
    three_pointers_made: Mapped[int] = mapped_column(default=0, nullable=False)
    three_pointers_attempted: Mapped[int] = mapped_column(default=0, nullable=False)
    free_throws_made: Mapped[int] = mapped_column(default=0, nullable=False)
    free_throws_attempted: Mapped[int] = mapped_column(default=0, nullable=False)
    rebounds_offensive: Mapped[int] = mapped_column(default=0, nullable=False)
    rebounds_defensive: Mapped[int] = mapped_column(default=0, nullable=False)
    fouls_personal: Mapped[int] = mapped_column(default=0, nullable=False)
    fouls_technical: Mapped[int] = mapped_column(default=0, nullable=False)

    @property
    def total_rebounds(self) -> int:
        return (self.rebounds_offensive or 0) + (self.rebounds_defensive or 0)

    @property
    def field_goal_percentage(self) -> float:
        return _ratio(self.field_goals_made, self.field_goals_attempted)

    @property
    def three_point_percentage(self) -> float:
        return _ratio(self.three_pointers_made, self.three_pointers_attempted)

    @property
    def free_throw_percentage(self) -> float:
        return _ratio(self.free_throws_made, self.free_throws_attempted)


class CounterMixin(ShootingMixin):
    """Per-game counters used by team and player game rows.

    Attribute names match the field names produced by the event classifier,
    so a delta can be applied with ``setattr``.
    """

    points: Mapped[int] = mapped_column(default=0, nullable=False)
    assists: Mapped[int] = mapped_column(default=0, nullable=False)
    steals: Mapped[int] = mapped_column(default=0, nullable=False)
    blocks: Mapped[int] = mapped_column(default=0, nullable=False)
    turnovers: Mapped[int] = mapped_column(default=0, nullable=False)
    time_played_seconds: Mapped[int] = mapped_column(default=0, nullable=False)


# Counter attributes that can be targeted by a stats delta
COUNTER_FIELDS: tuple[str, ...] = (
    "points",
    "field_goals_made",
    "field_goals_attempted",
    "three_pointers_made",
    "three_pointers_attempted",
    "free_throws_made",
    "free_throws_attempted",
    "rebounds_offensive",
    "rebounds_defensive",
    "assists",
    "steals",
    "blocks",
    "turnovers",
    "fouls_personal",
    "fouls_technical",
    "time_played_seconds",
)


def _ratio(made: int | None, attempted: int | None) -> float:
    if not attempted:
        return 0.0
    return (made or 0) / attempted


def _set_updated_at(
    mapper: Any,
    connection: Any,
    target: Any,
) -> None:
    """Event listener to update updated_at on modification."""
    if hasattr(target, "updated_at"):
        target.updated_at = datetime.now()


event.listen(Base, "before_update", _set_updated_at, propagate=True)
