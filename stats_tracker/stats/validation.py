"""Consistency checks over stored aggregates.

The aggregation engine maintains several invariants incrementally; this
module re-checks them against the database so drift can be detected
after imports, crashes or manual edits.

Example:
    >>> from stats_tracker.stats.validation import StatsValidator
    >>> validator = StatsValidator()
    >>> result = validator.validate_game(session, 12)
    >>> if not result.valid:
    ...     print(f"Errors: {result.errors}")
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import func

from stats_tracker.config import get_settings
from stats_tracker.data.models import (
    SEASON_FIELD_MAP,
    AppliedEvent,
    Game,
    GameEvent,
    GameStats,
    PlayerGameStats,
    PlayerSeasonStats,
    SeasonRollupEntry,
)
from stats_tracker.data.schema import COUNTER_FIELDS
from stats_tracker.types import GameTeamSide, TrackingMode

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# Counters fed by events; time played is bookkept separately
EVENT_COUNTERS = tuple(name for name in COUNTER_FIELDS if name != "time_played_seconds")


@dataclass
class ValidationResult:
    """Result of a consistency check.

    Attributes:
        valid: Whether validation passed.
        errors: Invariant violations.
        warnings: Conditions that prevented a check or look suspicious.
    """

    valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add an error and mark as invalid."""
        self.errors.append(message)
        self.valid = False

    def add_warning(self, message: str) -> None:
        """Add a warning (does not affect validity)."""
        self.warnings.append(message)

    def merge(self, other: ValidationResult) -> None:
        """Merge another validation result into this one."""
        if not other.valid:
            self.valid = False
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)


def _field_sums(rows, names) -> dict[str, int]:
    return {name: sum(getattr(r, name) or 0 for r in rows) for name in names}


def _diff(expected: dict[str, int], actual: dict[str, int]) -> list[str]:
    return [
        f"{name}: {actual[name]} != {expected[name]}"
        for name in expected
        if expected[name] != actual[name]
    ]


class StatsValidator:
    """Checks stored aggregates against the invariants they must satisfy.

    Provides methods to validate a game's quarter sums, box score
    reconciliation and ledger coverage, and a season record's totals.
    """

    def __init__(self, regulation_quarters: int | None = None) -> None:
        """Initialize validator.

        Args:
            regulation_quarters: Quarters a game must cover before quarter
                sums are compared; defaults to the configured value.
        """
        if regulation_quarters is None:
            regulation_quarters = get_settings().regulation_quarters
        self.regulation_quarters = regulation_quarters
        self.logger = logging.getLogger(self.__class__.__name__)

    def validate_game(self, session: Session, game_id: int) -> ValidationResult:
        """Validate every game-level invariant.

        Checks:
        - Every event is in the processing ledger
        - Full-game team rows equal the sum of their quarter rows
        - Player rows reconcile with team rows for BY_PLAYER sides

        Args:
            session: Database session.
            game_id: Game to validate.

        Returns:
            ValidationResult with any errors or warnings.
        """
        result = ValidationResult()

        game = session.get(Game, game_id)
        if game is None:
            result.add_error(f"Game {game_id} not found")
            return result

        result.merge(self.validate_ledger(session, game_id))
        result.merge(self.validate_quarter_sums(session, game))
        result.merge(self.validate_box_score(session, game))

        if result.valid:
            self.logger.debug(f"Game {game_id} passed validation")
        else:
            self.logger.warning(
                f"Game {game_id} failed validation with {len(result.errors)} errors"
            )
        return result

    def validate_ledger(self, session: Session, game_id: int) -> ValidationResult:
        """Check that every event of the game has been applied."""
        result = ValidationResult()

        event_count = (
            session.query(func.count(GameEvent.id))
            .filter(GameEvent.game_id == game_id)
            .scalar()
        )
        applied_count = (
            session.query(func.count(AppliedEvent.id))
            .filter(AppliedEvent.game_id == game_id)
            .scalar()
        )
        if applied_count < event_count:
            result.add_error(
                f"Game {game_id} has {event_count - applied_count} unapplied events"
            )
        elif applied_count > event_count:
            result.add_error(
                f"Game {game_id} ledger has {applied_count - event_count} stale entries"
            )
        return result

    def validate_quarter_sums(self, session: Session, game: Game) -> ValidationResult:
        """Check the quarter sum invariant for both teams.

        Skipped with a warning when any event lacks a quarter, since the
        full-game row then legitimately exceeds the quarter rows.
        """
        result = ValidationResult()

        missing_quarter = (
            session.query(func.count(GameEvent.id))
            .filter(GameEvent.game_id == game.id, GameEvent.quarter.is_(None))
            .scalar()
        )
        if missing_quarter:
            result.add_warning(
                f"Game {game.id}: {missing_quarter} events without quarter, "
                "quarter sums not checked"
            )
            return result

        max_quarter = (
            session.query(func.max(GameEvent.quarter))
            .filter(GameEvent.game_id == game.id)
            .scalar()
        )
        if max_quarter is not None and max_quarter < self.regulation_quarters:
            result.add_warning(
                f"Game {game.id} only covers {max_quarter} of "
                f"{self.regulation_quarters} quarters"
            )

        for team_id in (game.home_team_id, game.away_team_id):
            rows = (
                session.query(GameStats)
                .filter(GameStats.game_id == game.id, GameStats.team_id == team_id)
                .all()
            )
            full = [r for r in rows if r.quarter is None]
            quarters = [r for r in rows if r.quarter is not None]
            if not full:
                if quarters:
                    result.add_error(
                        f"Game {game.id} team {team_id} has quarter rows but no full-game row"
                    )
                continue

            mismatches = _diff(
                _field_sums(full, EVENT_COUNTERS), _field_sums(quarters, EVENT_COUNTERS)
            )
            if mismatches:
                result.add_error(
                    f"Game {game.id} team {team_id} quarter sums differ from full game: "
                    + ", ".join(mismatches)
                )
        return result

    def validate_box_score(self, session: Session, game: Game) -> ValidationResult:
        """Check that player rows add up to the team row for BY_PLAYER sides."""
        result = ValidationResult()

        for side in GameTeamSide:
            if game.tracking_mode_for(side) != TrackingMode.BY_PLAYER:
                continue
            team_id = game.team_id_for(side)

            team_row = (
                session.query(GameStats)
                .filter(
                    GameStats.game_id == game.id,
                    GameStats.team_id == team_id,
                    GameStats.quarter.is_(None),
                )
                .first()
            )
            player_rows = (
                session.query(PlayerGameStats)
                .filter(
                    PlayerGameStats.game_id == game.id,
                    PlayerGameStats.team_id == team_id,
                    PlayerGameStats.quarter.is_(None),
                )
                .all()
            )
            if team_row is None:
                if player_rows:
                    result.add_error(
                        f"Game {game.id} team {team_id} has player rows but no team row"
                    )
                continue

            mismatches = _diff(
                _field_sums([team_row], EVENT_COUNTERS),
                _field_sums(player_rows, EVENT_COUNTERS),
            )
            if mismatches:
                result.add_error(
                    f"Game {game.id} team {team_id} box score does not reconcile: "
                    + ", ".join(mismatches)
                )
        return result

    def validate_season(
        self,
        session: Session,
        player_id: int,
        season_year: int,
        team_id: int | None = None,
    ) -> ValidationResult:
        """Check a season record against the games rolled into it.

        Args:
            session: Database session.
            player_id: Player of the record.
            season_year: Season of the record.
            team_id: Team grouping of the record.

        Returns:
            ValidationResult with any errors.
        """
        result = ValidationResult()

        query = session.query(PlayerSeasonStats).filter(
            PlayerSeasonStats.player_id == player_id,
            PlayerSeasonStats.season_year == season_year,
        )
        if team_id is None:
            query = query.filter(PlayerSeasonStats.team_id.is_(None))
        else:
            query = query.filter(PlayerSeasonStats.team_id == team_id)
        record = query.first()
        if record is None:
            result.add_error(
                f"No season record for player {player_id}, team {team_id}, {season_year}"
            )
            return result

        entries = (
            session.query(SeasonRollupEntry)
            .filter(SeasonRollupEntry.season_stats_id == record.id)
            .all()
        )
        game_rows = (
            session.query(PlayerGameStats)
            .filter(
                PlayerGameStats.player_id == player_id,
                PlayerGameStats.quarter.is_(None),
                PlayerGameStats.game_id.in_([e.game_id for e in entries]),
            )
            .all()
        )

        if record.games_played != len(entries):
            result.add_error(
                f"Season record has games_played={record.games_played} "
                f"but {len(entries)} games were rolled up"
            )
        started = sum(1 for e in entries if e.started)
        if record.games_started != started:
            result.add_error(
                f"Season record has games_started={record.games_started}, expected {started}"
            )

        expected = {
            SEASON_FIELD_MAP[name]: total
            for name, total in _field_sums(game_rows, SEASON_FIELD_MAP).items()
        }
        actual = _field_sums([record], expected)
        mismatches = _diff(expected, actual)
        if mismatches:
            result.add_error(
                f"Season record for player {player_id} ({season_year}) differs from "
                "its games: " + ", ".join(mismatches)
            )
        return result
