"""Tests for aggregate consistency checks."""
from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from stats_tracker.data.models import GameStats, PlayerGameStats, PlayerSeasonStats
from stats_tracker.data.repositories import GameRepository
from stats_tracker.stats.aggregator import AggregationEngine
from stats_tracker.stats.rollup import SeasonRollup
from stats_tracker.stats.validation import StatsValidator, ValidationResult


@pytest.fixture
def validator() -> StatsValidator:
    return StatsValidator(regulation_quarters=4)


@pytest.fixture
def applied_game(db_session: Session, league, add_event, test_settings):
    """Four quarters of events applied to ``league.game_id``."""
    engine = AggregationEngine(db_session, test_settings)
    for quarter, (event_type, team, player) in enumerate(
        [
            ("TWO_POINTER_MADE", "HOME", league.home_starter),
            ("THREE_POINTER_MADE", "AWAY", league.away_starter),
            ("FREE_THROW_MADE", "HOME", league.home_bench),
            ("STEAL", "AWAY", league.away_bench),
        ],
        start=1,
    ):
        engine.apply_event(add_event(league.game_id, event_type, team=team, player_id=player, quarter=quarter))
    return league


def _home_row(session: Session, league, model, quarter=None):
    query = session.query(model).filter(model.game_id == league.game_id, model.team_id == league.home_team)
    if model is PlayerGameStats:
        query = query.filter(model.player_id == league.home_starter)
    if quarter is None:
        return query.filter(model.quarter.is_(None)).one()
    return query.filter(model.quarter == quarter).one()


class TestValidationResult:
    """Tests for ValidationResult."""

    def test_merge(self) -> None:
        first = ValidationResult()
        second = ValidationResult()
        second.add_error("broken")
        second.add_warning("odd")

        first.merge(second)

        assert first.valid is False
        assert first.errors == ["broken"]
        assert first.warnings == ["odd"]

    def test_warning_keeps_valid(self) -> None:
        result = ValidationResult()
        result.add_warning("only a warning")

        assert result.valid is True


class TestValidateGame:
    """Tests for StatsValidator.validate_game."""

    def test_consistent_game(self, db_session: Session, applied_game, validator) -> None:
        result = validator.validate_game(db_session, applied_game.game_id)

        assert result.valid, result.errors
        assert result.warnings == []

    def test_missing_game(self, db_session: Session, league, validator) -> None:
        result = validator.validate_game(db_session, 9999)

        assert result.valid is False

    def test_unapplied_event(self, db_session: Session, applied_game, add_event, validator) -> None:
        add_event(applied_game.game_id, "BLOCK", player_id=applied_game.home_starter)

        result = validator.validate_ledger(db_session, applied_game.game_id)

        assert result.valid is False
        assert "1 unapplied events" in result.errors[0]

    def test_quarter_drift_detected(self, db_session: Session, applied_game, validator) -> None:
        _home_row(db_session, applied_game, GameStats, quarter=1).points += 1
        db_session.flush()

        result = validator.validate_game(db_session, applied_game.game_id)

        assert result.valid is False
        assert any("quarter sums" in e for e in result.errors)

    def test_box_score_drift_detected(self, db_session: Session, applied_game, validator) -> None:
        _home_row(db_session, applied_game, PlayerGameStats).assists += 1
        db_session.flush()

        result = validator.validate_game(db_session, applied_game.game_id)

        assert any("does not reconcile" in e for e in result.errors)

    def test_short_game_warns(self, db_session: Session, league, add_event, test_settings, validator) -> None:
        engine = AggregationEngine(db_session, test_settings)
        engine.apply_event(add_event(league.game_id, "STEAL", player_id=league.home_starter, quarter=1))

        result = validator.validate_game(db_session, league.game_id)

        assert result.valid
        assert any("only covers 1 of 4" in w for w in result.warnings)

    def test_events_without_quarter_skip_sums(
        self, db_session: Session, league, add_event, test_settings, validator
    ) -> None:
        engine = AggregationEngine(db_session, test_settings)
        engine.apply_event(add_event(league.game_id, "STEAL", player_id=league.home_starter, quarter=None))

        result = validator.validate_quarter_sums(db_session, GameRepository(db_session).require_game(league.game_id))

        assert result.valid
        assert len(result.warnings) == 1

    def test_by_team_side_not_reconciled(
        self, db_session: Session, league, add_event, test_settings, validator
    ) -> None:
        engine = AggregationEngine(db_session, test_settings)
        engine.apply_event(
            add_event(league.mixed_game_id, "TWO_POINTER_MADE", team="AWAY", player_id=None)
        )

        result = validator.validate_box_score(
            db_session, GameRepository(db_session).require_game(league.mixed_game_id)
        )

        assert result.valid


class TestValidateSeason:
    """Tests for StatsValidator.validate_season."""

    def test_consistent_season(self, db_session: Session, applied_game, validator) -> None:
        GameRepository(db_session).complete_game(applied_game.game_id)
        SeasonRollup(db_session).rollup_completed_game(applied_game.game_id)

        result = validator.validate_season(
            db_session, applied_game.home_starter, 2024, applied_game.home_team
        )

        assert result.valid, result.errors

    def test_drifted_season(self, db_session: Session, applied_game, validator) -> None:
        GameRepository(db_session).complete_game(applied_game.game_id)
        season = SeasonRollup(db_session).rollup_game(applied_game.home_starter, applied_game.game_id, 2024)
        season.points_total += 5
        season.games_played += 1
        db_session.flush()

        result = validator.validate_season(
            db_session, applied_game.home_starter, 2024, applied_game.home_team
        )

        assert result.valid is False
        assert len(result.errors) == 2

    def test_missing_record(self, db_session: Session, league, validator) -> None:
        result = validator.validate_season(db_session, league.home_starter, 2024, league.home_team)

        assert result.valid is False
        assert db_session.query(PlayerSeasonStats).count() == 0
