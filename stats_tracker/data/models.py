"""SQLAlchemy ORM models for basketball game tracking.

Models are organized into categories:
- Reference: Team, Player, TeamPlayer
- Recording: Game, GameEvent
- Aggregates: GameStats, PlayerGameStats, PlayerSeasonStats
- Bookkeeping: AppliedEvent (processing ledger), SeasonRollupEntry

Aggregate rows store raw counters only. Shooting percentages and
per-game averages are properties evaluated from those counters.

Example:
    >>> from stats_tracker.data.models import GameStats
    >>> from stats_tracker.data.db import session_scope
    >>> with session_scope(factory) as session:
    ...     row = session.query(GameStats).filter_by(game_id=1, quarter=None).first()
    ...     print(row.field_goal_percentage)
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stats_tracker.data.schema import (
    Base,
    CounterMixin,
    ShootingMixin,
    TimestampMixin,
)
from stats_tracker.types import (
    GameEventType,
    GameStatus,
    GameTeamSide,
    PlayerRole,
    TrackingMode,
)


def _enum(enum_cls: type) -> Enum:
    return Enum(enum_cls, native_enum=False, length=32, validate_strings=True)


def _default_season_year(context: Any) -> int | None:
    params = context.get_current_parameters()
    game_date = params.get("game_date", params.get("date"))
    return game_date.year if game_date is not None else None


# =============================================================================
# Reference Models
# =============================================================================


class Team(Base):
    """A basketball team.

    Attributes:
        id: Auto-increment primary key.
        name: Team name.
    """

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name!r})>"


class Player(Base):
    """An individual player.

    Attributes:
        id: Auto-increment primary key.
        first_name: Given name.
        last_name: Family name.
        height_cm: Height in centimetres.
        wingspan_cm: Wingspan in centimetres.
        date_of_birth: Date of birth.
    """

    __tablename__ = "players"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    height_cm: Mapped[int | None] = mapped_column(nullable=True)
    wingspan_cm: Mapped[int | None] = mapped_column(nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Player(id={self.id}, name={self.full_name!r})>"


class TeamPlayer(Base):
    """Roster membership of a player on a team.

    The role is consulted by the season rollup to credit games started.

    Attributes:
        id: Auto-increment primary key.
        player_id: Foreign key to players.
        team_id: Foreign key to teams.
        jersey_num: Jersey number.
        role: STARTER, BENCH, COACH or OTHER.
    """

    __tablename__ = "team_players"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    team_id: Mapped[int] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    jersey_num: Mapped[int | None] = mapped_column(nullable=True)
    role: Mapped[PlayerRole | None] = mapped_column(_enum(PlayerRole), nullable=True)

    __table_args__ = (
        UniqueConstraint("player_id", "team_id", name="uq_team_player"),
        Index("idx_team_players_team", "team_id"),
    )

    def __repr__(self) -> str:
        return f"<TeamPlayer(player_id={self.player_id}, team_id={self.team_id}, role={self.role})>"


# =============================================================================
# Recording Models
# =============================================================================


class Game(Base):
    """A game between two teams.

    Attributes:
        id: Auto-increment primary key.
        home_team_id: Foreign key to the home team.
        away_team_id: Foreign key to the away team.
        game_date: Date the game was played.
        place: Venue description.
        season_year: Season the game counts toward.
        home_tracking_mode: BY_PLAYER or BY_TEAM for the home side.
        away_tracking_mode: BY_PLAYER or BY_TEAM for the away side.
        status: RECORDING, COMPLETED or ROLLED_UP.
    """

    __tablename__ = "games"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    home_team_id: Mapped[int] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    away_team_id: Mapped[int] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    game_date: Mapped[date] = mapped_column("date", nullable=False)
    place: Mapped[str | None] = mapped_column(String(100), nullable=True)
    season_year: Mapped[int | None] = mapped_column(
        nullable=True, default=_default_season_year
    )
    home_tracking_mode: Mapped[TrackingMode] = mapped_column(
        _enum(TrackingMode), nullable=False, default=TrackingMode.BY_PLAYER
    )
    away_tracking_mode: Mapped[TrackingMode] = mapped_column(
        _enum(TrackingMode), nullable=False, default=TrackingMode.BY_PLAYER
    )
    status: Mapped[GameStatus] = mapped_column(
        _enum(GameStatus), nullable=False, default=GameStatus.RECORDING
    )

    home_team: Mapped[Team] = relationship(foreign_keys=[home_team_id])
    away_team: Mapped[Team] = relationship(foreign_keys=[away_team_id])

    __table_args__ = (
        Index("idx_games_date", "date"),
        Index("idx_games_season", "season_year"),
    )

    @property
    def effective_season_year(self) -> int:
        """Season year, falling back to the calendar year of the game date."""
        return self.season_year if self.season_year is not None else self.game_date.year

    def team_id_for(self, side: GameTeamSide) -> int:
        return self.home_team_id if side == GameTeamSide.HOME else self.away_team_id

    def tracking_mode_for(self, side: GameTeamSide) -> TrackingMode:
        if side == GameTeamSide.HOME:
            return self.home_tracking_mode
        return self.away_tracking_mode

    def side_for_team(self, team_id: int) -> GameTeamSide | None:
        if team_id == self.home_team_id:
            return GameTeamSide.HOME
        if team_id == self.away_team_id:
            return GameTeamSide.AWAY
        return None

    def __repr__(self) -> str:
        return f"<Game(id={self.id}, game_date={self.game_date}, status={self.status})>"


class GameEvent(Base):
    """A single recorded occurrence during a game.

    The auto-increment id doubles as insertion order, which breaks ties
    between events sharing a timestamp.

    Attributes:
        id: Auto-increment primary key.
        game_id: Foreign key to games.
        player_id: Acting player; None for team-only events.
        team: Side the event is credited to.
        timestamp: Seconds from game start.
        event_type: One of GameEventType.
        quarter: Period number (1-based), None when not recorded.
        location_x: Court X coordinate (0-1).
        location_y: Court Y coordinate (0-1).
        shot_distance: Distance from the basket in feet.
        shot_result: 'made', 'missed' or 'blocked'.
        assist_player_id: Passer credited on a made shot.
        foul_type: 'personal', 'technical' or 'flagrant'.
        rebound_type: 'offensive' or 'defensive'.
        points_value: Explicit point value overriding the type's value.
    """

    __tablename__ = "game_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int | None] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=True
    )
    team: Mapped[GameTeamSide] = mapped_column(_enum(GameTeamSide), nullable=False)
    timestamp: Mapped[int] = mapped_column(nullable=False)
    event_type: Mapped[GameEventType] = mapped_column(
        _enum(GameEventType), nullable=False
    )
    quarter: Mapped[int | None] = mapped_column(nullable=True)

    # Shot tracking and analytics
    location_x: Mapped[float | None] = mapped_column(nullable=True)
    location_y: Mapped[float | None] = mapped_column(nullable=True)
    shot_distance: Mapped[float | None] = mapped_column(nullable=True)
    shot_result: Mapped[str | None] = mapped_column(String(20), nullable=True)
    assist_player_id: Mapped[int | None] = mapped_column(
        ForeignKey("players.id", ondelete="SET NULL"), nullable=True
    )
    foul_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    rebound_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    points_value: Mapped[int | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index("idx_game_events_game", "game_id"),
        Index("idx_game_events_player", "player_id"),
        Index("idx_game_events_game_timestamp", "game_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<GameEvent(id={self.id}, game_id={self.game_id}, "
            f"type={self.event_type}, t={self.timestamp})>"
        )


# =============================================================================
# Aggregate Models
# =============================================================================


class GameStats(Base, CounterMixin, TimestampMixin):
    """Team-level statistics for a game, full game or one quarter.

    Attributes:
        id: Auto-increment primary key.
        game_id: Foreign key to games.
        team_id: Team the row belongs to; None is the whole-game placeholder.
        quarter: Quarter number; None for the full-game row.
    """

    __tablename__ = "game_stats"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    team_id: Mapped[int | None] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"), nullable=True
    )
    quarter: Mapped[int | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("game_id", "team_id", "quarter", name="uq_game_team_quarter"),
        # NULLs are distinct in unique constraints; full-game rows need their own index
        Index(
            "uq_game_team_full_game",
            "game_id",
            "team_id",
            unique=True,
            sqlite_where=text("quarter IS NULL"),
            postgresql_where=text("quarter IS NULL"),
        ),
        Index("idx_game_stats_game", "game_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<GameStats(game_id={self.game_id}, team_id={self.team_id}, "
            f"quarter={self.quarter}, points={self.points})>"
        )


class PlayerGameStats(Base, CounterMixin, TimestampMixin):
    """Player-level statistics for a game, full game or one quarter.

    Attributes:
        id: Auto-increment primary key.
        game_id: Foreign key to games.
        player_id: Foreign key to players.
        team_id: Team the player played for in this game.
        quarter: Quarter number; None for the full-game row.
        plus_minus: Plus/minus for the game.
        shot_chart_data: Opaque JSON payload, never touched by aggregation.
    """

    __tablename__ = "player_game_stats"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    team_id: Mapped[int] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    quarter: Mapped[int | None] = mapped_column(nullable=True)
    plus_minus: Mapped[int] = mapped_column(default=0, nullable=False)
    shot_chart_data: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "game_id", "player_id", "quarter", name="uq_player_game_quarter"
        ),
        Index(
            "uq_player_game_full_game",
            "game_id",
            "player_id",
            unique=True,
            sqlite_where=text("quarter IS NULL"),
            postgresql_where=text("quarter IS NULL"),
        ),
        Index("idx_player_game_stats_game", "game_id"),
        Index("idx_player_game_stats_player", "player_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<PlayerGameStats(game_id={self.game_id}, player_id={self.player_id}, "
            f"quarter={self.quarter}, points={self.points})>"
        )


class PlayerSeasonStats(Base, ShootingMixin, TimestampMixin):
    """Cumulative player statistics for one season and team grouping.

    Attributes:
        id: Auto-increment primary key.
        player_id: Foreign key to players.
        team_id: Team grouping; None aggregates across teams.
        season_year: Season, e.g. 2024.
        games_played: Games rolled into this record.
        games_started: Games the player started.
        total_minutes_played: Whole minutes played.
        points_total: Total points.
        assists_total: Total assists.
        steals_total: Total steals.
        blocks_total: Total blocks.
        turnovers_total: Total turnovers.
        plus_minus_total: Summed plus/minus.
    """

    __tablename__ = "player_season_stats"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    team_id: Mapped[int | None] = mapped_column(
        ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )
    season_year: Mapped[int] = mapped_column(nullable=False)

    games_played: Mapped[int] = mapped_column(default=0, nullable=False)
    games_started: Mapped[int] = mapped_column(default=0, nullable=False)
    total_minutes_played: Mapped[int] = mapped_column(default=0, nullable=False)
    points_total: Mapped[int] = mapped_column(default=0, nullable=False)
    assists_total: Mapped[int] = mapped_column(default=0, nullable=False)
    steals_total: Mapped[int] = mapped_column(default=0, nullable=False)
    blocks_total: Mapped[int] = mapped_column(default=0, nullable=False)
    turnovers_total: Mapped[int] = mapped_column(default=0, nullable=False)
    plus_minus_total: Mapped[int] = mapped_column(default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "player_id", "team_id", "season_year", name="uq_player_team_season"
        ),
        Index(
            "uq_player_season_no_team",
            "player_id",
            "season_year",
            unique=True,
            sqlite_where=text("team_id IS NULL"),
            postgresql_where=text("team_id IS NULL"),
        ),
        Index("idx_player_season_stats_season", "season_year"),
    )

    def _per_game(self, total: int | None) -> float:
        if not self.games_played:
            return 0.0
        return (total or 0) / self.games_played

    @property
    def points_per_game(self) -> float:
        return self._per_game(self.points_total)

    @property
    def rebounds_per_game(self) -> float:
        return self._per_game(self.total_rebounds)

    @property
    def assists_per_game(self) -> float:
        return self._per_game(self.assists_total)

    @property
    def steals_per_game(self) -> float:
        return self._per_game(self.steals_total)

    @property
    def blocks_per_game(self) -> float:
        return self._per_game(self.blocks_total)

    @property
    def minutes_per_game(self) -> float:
        return self._per_game(self.total_minutes_played)

    def __repr__(self) -> str:
        return (
            f"<PlayerSeasonStats(player_id={self.player_id}, team_id={self.team_id}, "
            f"season_year={self.season_year}, games_played={self.games_played})>"
        )


# =============================================================================
# Bookkeeping Models
# =============================================================================


class AppliedEvent(Base):
    """Processing ledger: one row per event folded into the game aggregates.

    Attributes:
        id: Auto-increment primary key.
        event_id: Foreign key to game_events (unique).
        game_id: Foreign key to games.
        applied_at: When the event was applied.
    """

    __tablename__ = "applied_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        ForeignKey("game_events.id", ondelete="CASCADE"), nullable=False
    )
    game_id: Mapped[int] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    applied_at: Mapped[datetime] = mapped_column(default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("event_id", name="uq_applied_event"),
        Index("idx_applied_events_game", "game_id"),
    )

    def __repr__(self) -> str:
        return f"<AppliedEvent(event_id={self.event_id}, game_id={self.game_id})>"


class SeasonRollupEntry(Base):
    """Marker recording that a player's game was folded into a season record.

    Attributes:
        id: Auto-increment primary key.
        player_id: Foreign key to players.
        game_id: Foreign key to games.
        season_stats_id: Season record the game was added to.
        season_year: Season of that record.
        started: Whether the game counted as a start.
    """

    __tablename__ = "season_rollup_entries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    game_id: Mapped[int] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    season_stats_id: Mapped[int] = mapped_column(
        ForeignKey("player_season_stats.id", ondelete="CASCADE"), nullable=False
    )
    season_year: Mapped[int] = mapped_column(nullable=False)
    started: Mapped[bool] = mapped_column(default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("player_id", "game_id", name="uq_rollup_player_game"),
        Index("idx_rollup_entries_season", "season_year"),
    )

    def __repr__(self) -> str:
        return (
            f"<SeasonRollupEntry(player_id={self.player_id}, game_id={self.game_id}, "
            f"season_year={self.season_year})>"
        )


# Game-row counter -> season-row counter
SEASON_FIELD_MAP: dict[str, str] = {
    "points": "points_total",
    "field_goals_made": "field_goals_made",
    "field_goals_attempted": "field_goals_attempted",
    "three_pointers_made": "three_pointers_made",
    "three_pointers_attempted": "three_pointers_attempted",
    "free_throws_made": "free_throws_made",
    "free_throws_attempted": "free_throws_attempted",
    "rebounds_offensive": "rebounds_offensive",
    "rebounds_defensive": "rebounds_defensive",
    "assists": "assists_total",
    "steals": "steals_total",
    "blocks": "blocks_total",
    "turnovers": "turnovers_total",
    "fouls_personal": "fouls_personal",
    "fouls_technical": "fouls_technical",
    "plus_minus": "plus_minus_total",
}


__all__ = [
    "AppliedEvent",
    "Game",
    "GameEvent",
    "GameStats",
    "Player",
    "PlayerGameStats",
    "PlayerSeasonStats",
    "SEASON_FIELD_MAP",
    "SeasonRollupEntry",
    "Team",
    "TeamPlayer",
]
