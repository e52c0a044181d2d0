"""Read access to aggregate statistics.

``StatsQueryService`` is the surface reporting code and the CLI read
from. It never writes; derived values come from the record properties.

Example:
    >>> from stats_tracker.stats.queries import StatsQueryService
    >>> with session_scope(factory) as session:
    ...     queries = StatsQueryService(session)
    ...     row = queries.get_player_stats(game_id=12, player_id=7)
    ...     print(row.points, row.field_goal_percentage)
"""
from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Literal

from sqlalchemy import select

from stats_tracker.data.models import (
    SEASON_FIELD_MAP,
    Game,
    GameStats,
    PlayerGameStats,
    PlayerSeasonStats,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


SeasonStat = Literal[
    "points",
    "rebounds",
    "assists",
    "steals",
    "blocks",
    "field_goal_percentage",
    "three_point_percentage",
    "free_throw_percentage",
]
GameStat = Literal["points", "rebounds", "assists", "steals", "blocks"]

# Leaderboard stat -> (season total or ratio, attempts counter, default minimum attempts)
_SEASON_LEADER_KEYS = {
    "points": (lambda s: s.points_total, None, 0),
    "rebounds": (lambda s: s.total_rebounds, None, 0),
    "assists": (lambda s: s.assists_total, None, 0),
    "steals": (lambda s: s.steals_total, None, 0),
    "blocks": (lambda s: s.blocks_total, None, 0),
    "field_goal_percentage": (
        lambda s: s.field_goal_percentage,
        "field_goals_attempted",
        50,
    ),
    "three_point_percentage": (
        lambda s: s.three_point_percentage,
        "three_pointers_attempted",
        25,
    ),
    "free_throw_percentage": (
        lambda s: s.free_throw_percentage,
        "free_throws_attempted",
        25,
    ),
}


def _quarter_filter(column, quarter: int | None):
    return column.is_(None) if quarter is None else column == quarter


class StatsQueryService:
    """Queries over game, player and season aggregates."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # -------------------------------------------------------------------------
    # Team / game level
    # -------------------------------------------------------------------------

    def get_team_stats(
        self, game_id: int, team_id: int, quarter: int | None = None
    ) -> GameStats | None:
        """Team row for a game; ``quarter=None`` is the full-game row."""
        stmt = select(GameStats).where(
            GameStats.game_id == game_id,
            GameStats.team_id == team_id,
            _quarter_filter(GameStats.quarter, quarter),
        )
        return self.session.scalars(stmt).first()

    def get_game_overall_stats(self, game_id: int) -> GameStats | None:
        """The whole-game placeholder row (team and quarter both unset)."""
        stmt = select(GameStats).where(
            GameStats.game_id == game_id,
            GameStats.team_id.is_(None),
            GameStats.quarter.is_(None),
        )
        return self.session.scalars(stmt).first()

    def get_team_quarter_stats(self, game_id: int, team_id: int) -> list[GameStats]:
        stmt = (
            select(GameStats)
            .where(
                GameStats.game_id == game_id,
                GameStats.team_id == team_id,
                GameStats.quarter.is_not(None),
            )
            .order_by(GameStats.quarter)
        )
        return list(self.session.scalars(stmt))

    def get_all_team_stats_for_game(self, game_id: int) -> list[GameStats]:
        """Every team row of a game, full-game rows first."""
        stmt = (
            select(GameStats)
            .where(GameStats.game_id == game_id)
            .order_by(
                GameStats.team_id,
                GameStats.quarter.is_not(None),
                GameStats.quarter,
            )
        )
        return list(self.session.scalars(stmt))

    # -------------------------------------------------------------------------
    # Player / game level
    # -------------------------------------------------------------------------

    def get_player_stats(
        self, game_id: int, player_id: int, quarter: int | None = None
    ) -> PlayerGameStats | None:
        stmt = select(PlayerGameStats).where(
            PlayerGameStats.game_id == game_id,
            PlayerGameStats.player_id == player_id,
            _quarter_filter(PlayerGameStats.quarter, quarter),
        )
        return self.session.scalars(stmt).first()

    def get_player_quarter_stats(
        self, game_id: int, player_id: int
    ) -> list[PlayerGameStats]:
        stmt = (
            select(PlayerGameStats)
            .where(
                PlayerGameStats.game_id == game_id,
                PlayerGameStats.player_id == player_id,
                PlayerGameStats.quarter.is_not(None),
            )
            .order_by(PlayerGameStats.quarter)
        )
        return list(self.session.scalars(stmt))

    def get_all_player_stats_for_game(
        self,
        game_id: int,
        team_id: int | None = None,
        quarter: int | None = None,
    ) -> list[PlayerGameStats]:
        """Box score rows of a game, highest scorers first.

        Args:
            game_id: Game to read.
            team_id: Restrict to one team.
            quarter: Quarter rows instead of full-game rows.
        """
        stmt = select(PlayerGameStats).where(
            PlayerGameStats.game_id == game_id,
            _quarter_filter(PlayerGameStats.quarter, quarter),
        )
        if team_id is not None:
            stmt = stmt.where(PlayerGameStats.team_id == team_id)
        stmt = stmt.order_by(
            PlayerGameStats.team_id,
            PlayerGameStats.points.desc(),
            PlayerGameStats.player_id,
        )
        return list(self.session.scalars(stmt))

    def get_player_game_log(
        self, player_id: int, team_id: int | None = None
    ) -> list[PlayerGameStats]:
        """Full-game rows of a player, most recent game first."""
        stmt = (
            select(PlayerGameStats)
            .join(Game, Game.id == PlayerGameStats.game_id)
            .where(
                PlayerGameStats.player_id == player_id,
                PlayerGameStats.quarter.is_(None),
            )
        )
        if team_id is not None:
            stmt = stmt.where(PlayerGameStats.team_id == team_id)
        stmt = stmt.order_by(Game.game_date.desc(), Game.id.desc())
        return list(self.session.scalars(stmt))

    def get_game_leaders(
        self, game_id: int, stat: GameStat = "points", limit: int = 5
    ) -> list[PlayerGameStats]:
        """Top full-game player rows of a game for one counter."""
        rows = self.get_all_player_stats_for_game(game_id)
        if stat == "rebounds":
            rows.sort(key=lambda r: r.total_rebounds, reverse=True)
        else:
            rows.sort(key=lambda r: getattr(r, stat) or 0, reverse=True)
        return rows[:limit]

    # -------------------------------------------------------------------------
    # Season level
    # -------------------------------------------------------------------------

    def get_season_stats(
        self,
        player_id: int,
        season_year: int,
        team_id: int | None = None,
    ) -> PlayerSeasonStats | None:
        """Season record of a player.

        With ``team_id`` the record of that team grouping is returned. Without
        it, a player with a single record gets that record and a player who
        moved teams gets a detached combined record with ``team_id=None``.
        """
        stmt = select(PlayerSeasonStats).where(
            PlayerSeasonStats.player_id == player_id,
            PlayerSeasonStats.season_year == season_year,
        )
        if team_id is not None:
            return self.session.scalars(
                stmt.where(PlayerSeasonStats.team_id == team_id)
            ).first()

        records = list(self.session.scalars(stmt.order_by(PlayerSeasonStats.id)))
        if not records:
            return None
        if len(records) == 1:
            return records[0]
        return combine_season_records(records)

    def get_player_career_stats(self, player_id: int) -> list[PlayerSeasonStats]:
        stmt = (
            select(PlayerSeasonStats)
            .where(PlayerSeasonStats.player_id == player_id)
            .order_by(PlayerSeasonStats.season_year, PlayerSeasonStats.team_id)
        )
        return list(self.session.scalars(stmt))

    def get_team_season_stats(
        self, team_id: int, season_year: int
    ) -> list[PlayerSeasonStats]:
        stmt = (
            select(PlayerSeasonStats)
            .where(
                PlayerSeasonStats.team_id == team_id,
                PlayerSeasonStats.season_year == season_year,
            )
            .order_by(PlayerSeasonStats.points_total.desc())
        )
        return list(self.session.scalars(stmt))

    def get_available_seasons(self) -> list[int]:
        stmt = (
            select(PlayerSeasonStats.season_year)
            .distinct()
            .order_by(PlayerSeasonStats.season_year.desc())
        )
        return list(self.session.scalars(stmt))

    def get_season_leaders(
        self,
        season_year: int,
        stat: SeasonStat = "points",
        limit: int = 10,
        min_attempts: int | None = None,
    ) -> list[PlayerSeasonStats]:
        """Season leaderboard ranked by season total or shooting ratio.

        Args:
            season_year: Season to rank.
            stat: Season counter or percentage to rank by.
            limit: Maximum number of rows.
            min_attempts: For percentages, minimum attempts to qualify. None
                uses 50 field goal or 25 three point and free throw attempts.

        Raises:
            ValueError: If ``stat`` is not a leaderboard stat.
        """
        if stat not in _SEASON_LEADER_KEYS:
            raise ValueError(
                f"Unknown leaderboard stat {stat!r}; "
                f"expected one of {sorted(_SEASON_LEADER_KEYS)}"
            )
        value_of, attempts_field, default_min = _SEASON_LEADER_KEYS[stat]
        if min_attempts is None:
            min_attempts = default_min

        stmt = select(PlayerSeasonStats).where(
            PlayerSeasonStats.season_year == season_year,
            PlayerSeasonStats.games_played > 0,
        )
        records = list(self.session.scalars(stmt))
        if attempts_field is not None:
            records = [
                r for r in records if (getattr(r, attempts_field) or 0) >= min_attempts
            ]
        records.sort(key=lambda r: (-value_of(r), r.player_id))
        return records[:limit]


def combine_season_records(
    records: Sequence[PlayerSeasonStats],
) -> PlayerSeasonStats:
    """Sum several season records of one player into a detached record."""
    first = records[0]
    combined = PlayerSeasonStats(
        player_id=first.player_id, team_id=None, season_year=first.season_year
    )
    names = (
        *SEASON_FIELD_MAP.values(),
        "games_played",
        "games_started",
        "total_minutes_played",
    )
    for name in names:
        setattr(combined, name, sum(getattr(r, name) or 0 for r in records))
    return combined
