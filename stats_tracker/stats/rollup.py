"""Season rollup: folding finished games into player season records.

A rollup adds a player's full-game ``player_game_stats`` row to the
matching ``player_season_stats`` record and leaves a
``season_rollup_entries`` marker behind, so the same (player, game) pair
can never be counted twice. Season records only ever grow; the one way to
shrink them is ``rebuild_season``, which starts the season over from its
games.

Example:
    >>> from stats_tracker.stats.rollup import SeasonRollup
    >>> with session_scope(factory) as session:
    ...     rollup = SeasonRollup(session)
    ...     season = rollup.rollup_game(player_id=7, game_id=12, season_year=2024)
    ...     print(season.games_played, season.points_total)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from stats_tracker.data.models import (
    SEASON_FIELD_MAP,
    PlayerGameStats,
    PlayerSeasonStats,
    SeasonRollupEntry,
    TeamPlayer,
)
from stats_tracker.data.repositories import GameRepository
from stats_tracker.logging import SUCCESS, get_logger
from stats_tracker.types import (
    AggregationError,
    AlreadyRolledUp,
    GameStateError,
    GameStatus,
    NotFound,
    PlayerRole,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = get_logger(__name__)

# Season counters that are not plain sums of a game-row counter
_SEASON_BOOKKEEPING = ("games_played", "games_started", "total_minutes_played")


@dataclass
class RollupResult:
    """Outcome of rolling up one or more games.

    Attributes:
        season_year: Season the games were rolled into.
        games: Games processed.
        players_rolled_up: (player_id, game_id) pairs newly added.
        players_skipped: Pairs that already had a marker.
    """

    season_year: int
    games: list[int] = field(default_factory=list)
    players_rolled_up: list[tuple[int, int]] = field(default_factory=list)
    players_skipped: list[tuple[int, int]] = field(default_factory=list)


def _zeroed_season(player_id: int, team_id: int | None, season_year: int) -> PlayerSeasonStats:
    record = PlayerSeasonStats(
        player_id=player_id, team_id=team_id, season_year=season_year
    )
    for name in (*SEASON_FIELD_MAP.values(), *_SEASON_BOOKKEEPING):
        setattr(record, name, 0)
    return record


class SeasonRollup:
    """Maintains ``player_season_stats`` from finished games."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.games = GameRepository(session)

    def is_rolled_up(self, player_id: int, game_id: int) -> bool:
        stmt = select(SeasonRollupEntry.id).where(
            SeasonRollupEntry.player_id == player_id,
            SeasonRollupEntry.game_id == game_id,
        )
        return self.session.scalar(stmt) is not None

    def is_starter(self, player_id: int, team_id: int) -> bool:
        """Whether the roster lists the player as a starter for the team."""
        stmt = select(TeamPlayer.role).where(
            TeamPlayer.player_id == player_id,
            TeamPlayer.team_id == team_id,
        )
        return self.session.scalar(stmt) == PlayerRole.STARTER

    def get_or_create_season(
        self, player_id: int, team_id: int | None, season_year: int
    ) -> PlayerSeasonStats:
        stmt = select(PlayerSeasonStats).where(
            PlayerSeasonStats.player_id == player_id,
            PlayerSeasonStats.season_year == season_year,
        )
        if team_id is None:
            stmt = stmt.where(PlayerSeasonStats.team_id.is_(None))
        else:
            stmt = stmt.where(PlayerSeasonStats.team_id == team_id)

        record = self.session.scalars(stmt).first()
        if record is None:
            record = _zeroed_season(player_id, team_id, season_year)
            self.session.add(record)
            self.session.flush()
        return record

    def rollup_game(
        self,
        player_id: int,
        game_id: int,
        season_year: int,
        started: bool | None = None,
    ) -> PlayerSeasonStats:
        """Fold a player's full-game row into their season record.

        Args:
            player_id: Player to roll up.
            game_id: Finished game.
            season_year: Season the game counts toward.
            started: Whether the player started; None reads the roster role.

        Returns:
            The updated season record.

        Raises:
            NotFound: If the game or the player's full-game row is missing.
            GameStateError: If the game is still recording.
            AlreadyRolledUp: If this (player, game) pair was rolled up before.
            AggregationError: If the storage update fails.
        """
        game = self.games.require_game(game_id)
        if game.status == GameStatus.RECORDING:
            raise GameStateError(f"Game {game_id} is still recording; complete it first")

        if self.is_rolled_up(player_id, game_id):
            raise AlreadyRolledUp(player_id, game_id)

        row = self.session.scalars(
            select(PlayerGameStats).where(
                PlayerGameStats.game_id == game_id,
                PlayerGameStats.player_id == player_id,
                PlayerGameStats.quarter.is_(None),
            )
        ).first()
        if row is None:
            raise NotFound("PlayerGameStats", (game_id, player_id))

        if started is None:
            started = self.is_starter(player_id, row.team_id)

        try:
            with self.session.begin_nested():
                season = self.get_or_create_season(player_id, row.team_id, season_year)
                season.games_played += 1
                season.games_started += int(started)
                season.total_minutes_played += (row.time_played_seconds or 0) // 60
                for game_field, season_field in SEASON_FIELD_MAP.items():
                    current = getattr(season, season_field) or 0
                    setattr(season, season_field, current + (getattr(row, game_field) or 0))

                self.session.add(
                    SeasonRollupEntry(
                        player_id=player_id,
                        game_id=game_id,
                        season_stats_id=season.id,
                        season_year=season_year,
                        started=bool(started),
                    )
                )
                self.session.flush()
        except SQLAlchemyError as e:
            raise AggregationError(
                f"Rollup of game {game_id} for player {player_id} failed"
            ) from e

        logger.debug(
            f"Rolled game {game_id} into season {season_year} for player {player_id}"
        )
        return season

    def rollup_completed_game(
        self, game_id: int, season_year: int | None = None
    ) -> RollupResult:
        """Roll up every player of a finished game and mark it ROLLED_UP.

        Players that already have a marker for the game are skipped, so the
        call can resume a partially rolled-up game.

        Raises:
            NotFound: If the game does not exist.
            GameStateError: If the game is still recording.
        """
        game = self.games.require_game(game_id)
        if game.status == GameStatus.RECORDING:
            raise GameStateError(f"Game {game_id} is still recording; complete it first")

        year = season_year if season_year is not None else game.effective_season_year
        result = RollupResult(season_year=year, games=[game_id])

        player_ids = self.session.scalars(
            select(PlayerGameStats.player_id)
            .where(
                PlayerGameStats.game_id == game_id,
                PlayerGameStats.quarter.is_(None),
            )
            .order_by(PlayerGameStats.player_id)
        ).all()

        for player_id in player_ids:
            if self.is_rolled_up(player_id, game_id):
                result.players_skipped.append((player_id, game_id))
                continue
            self.rollup_game(player_id, game_id, year)
            result.players_rolled_up.append((player_id, game_id))

        self.games.set_status(game_id, GameStatus.ROLLED_UP)
        logger.info(
            f"{SUCCESS} Game {game_id} rolled into season {year}: "
            f"{len(result.players_rolled_up)} players"
        )
        return result

    def rebuild_season(self, season_year: int) -> RollupResult:
        """Discard a season's records and roll its finished games up again.

        Returns:
            RollupResult covering every game of the season.
        """
        self.session.execute(
            delete(SeasonRollupEntry).where(SeasonRollupEntry.season_year == season_year)
        )
        self.session.execute(
            delete(PlayerSeasonStats).where(PlayerSeasonStats.season_year == season_year)
        )
        self.session.expire_all()

        result = RollupResult(season_year=season_year)
        games = self.games.get_games_for_season(
            season_year, statuses=[GameStatus.COMPLETED, GameStatus.ROLLED_UP]
        )
        for game in games:
            game_result = self.rollup_completed_game(game.id, season_year)
            result.games.append(game.id)
            result.players_rolled_up.extend(game_result.players_rolled_up)

        logger.info(
            f"{SUCCESS} Season {season_year} rebuilt from {len(result.games)} games"
        )
        return result
