"""Tests for season rollup."""
from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from stats_tracker.data.models import PlayerGameStats, PlayerSeasonStats, SeasonRollupEntry
from stats_tracker.data.repositories import GameRepository
from stats_tracker.stats.aggregator import AggregationEngine
from stats_tracker.stats.rollup import RollupResult, SeasonRollup
from stats_tracker.types import AlreadyRolledUp, GameStateError, GameStatus, NotFound


@pytest.fixture
def scored_game(db_session: Session, league, add_event, test_settings):
    """Apply a few events to ``league.game_id`` and complete it."""
    engine = AggregationEngine(db_session, test_settings)
    for event in (
        add_event(league.game_id, "THREE_POINTER_MADE", player_id=league.home_starter),
        add_event(league.game_id, "FREE_THROW_MISSED", player_id=league.home_starter),
        add_event(league.game_id, "STEAL", player_id=league.home_bench),
        add_event(league.game_id, "TWO_POINTER_MADE", team="AWAY", player_id=league.away_starter),
    ):
        engine.apply_event(event)
    GameRepository(db_session).complete_game(league.game_id)
    return league


def _full_row(session: Session, game_id: int, player_id: int) -> PlayerGameStats:
    return (
        session.query(PlayerGameStats)
        .filter_by(game_id=game_id, player_id=player_id)
        .filter(PlayerGameStats.quarter.is_(None))
        .one()
    )


class TestRollupGame:
    """Tests for SeasonRollup.rollup_game."""

    def test_adds_game_totals(self, db_session: Session, scored_game) -> None:
        season = SeasonRollup(db_session).rollup_game(
            scored_game.home_starter, scored_game.game_id, 2024
        )

        assert season.games_played == 1
        assert season.games_started == 1
        assert season.points_total == 3
        assert season.three_pointers_made == 1
        assert season.free_throws_attempted == 1
        assert season.team_id == scored_game.home_team

    def test_bench_player_not_counted_as_starter(self, db_session: Session, scored_game) -> None:
        season = SeasonRollup(db_session).rollup_game(
            scored_game.home_bench, scored_game.game_id, 2024
        )

        assert season.games_started == 0
        assert season.steals_total == 1

    def test_explicit_started_flag(self, db_session: Session, scored_game) -> None:
        season = SeasonRollup(db_session).rollup_game(
            scored_game.home_bench, scored_game.game_id, 2024, started=True
        )

        assert season.games_started == 1

    def test_minutes_truncate_seconds(self, db_session: Session, scored_game) -> None:
        _full_row(db_session, scored_game.game_id, scored_game.home_starter).time_played_seconds = 1799
        db_session.flush()

        season = SeasonRollup(db_session).rollup_game(
            scored_game.home_starter, scored_game.game_id, 2024
        )

        assert season.total_minutes_played == 29

    def test_second_rollup_rejected(self, db_session: Session, scored_game) -> None:
        rollup = SeasonRollup(db_session)
        rollup.rollup_game(scored_game.home_starter, scored_game.game_id, 2024)

        with pytest.raises(AlreadyRolledUp):
            rollup.rollup_game(scored_game.home_starter, scored_game.game_id, 2024)

        season = rollup.get_or_create_season(scored_game.home_starter, scored_game.home_team, 2024)
        assert season.games_played == 1
        assert season.points_total == 3

    def test_recording_game_rejected(self, db_session: Session, league, add_event, test_settings) -> None:
        AggregationEngine(db_session, test_settings).apply_event(
            add_event(league.game_id, "STEAL", player_id=league.home_starter)
        )

        with pytest.raises(GameStateError):
            SeasonRollup(db_session).rollup_game(league.home_starter, league.game_id, 2024)

    def test_player_without_row(self, db_session: Session, scored_game) -> None:
        with pytest.raises(NotFound):
            SeasonRollup(db_session).rollup_game(scored_game.away_bench, scored_game.game_id, 2024)

    def test_writes_marker(self, db_session: Session, scored_game) -> None:
        rollup = SeasonRollup(db_session)
        rollup.rollup_game(scored_game.home_starter, scored_game.game_id, 2024)

        assert rollup.is_rolled_up(scored_game.home_starter, scored_game.game_id)
        entry = db_session.query(SeasonRollupEntry).one()
        assert entry.started is True
        assert entry.season_year == 2024


class TestRollupCompletedGame:
    """Tests for SeasonRollup.rollup_completed_game."""

    def test_rolls_every_player_and_marks_game(self, db_session: Session, scored_game) -> None:
        result = SeasonRollup(db_session).rollup_completed_game(scored_game.game_id)

        assert isinstance(result, RollupResult)
        assert result.season_year == 2024
        assert sorted(pid for pid, _ in result.players_rolled_up) == sorted(
            [scored_game.home_starter, scored_game.home_bench, scored_game.away_starter]
        )
        assert GameRepository(db_session).require_game(scored_game.game_id).status == GameStatus.ROLLED_UP

    def test_resumes_partial_rollup(self, db_session: Session, scored_game) -> None:
        rollup = SeasonRollup(db_session)
        rollup.rollup_game(scored_game.home_starter, scored_game.game_id, 2024)

        result = rollup.rollup_completed_game(scored_game.game_id)

        assert result.players_skipped == [(scored_game.home_starter, scored_game.game_id)]
        assert len(result.players_rolled_up) == 2


class TestRebuildSeason:
    """Tests for SeasonRollup.rebuild_season."""

    def test_rebuild_matches_first_rollup(self, db_session: Session, scored_game) -> None:
        rollup = SeasonRollup(db_session)
        rollup.rollup_completed_game(scored_game.game_id)
        before = {
            (r.player_id, r.team_id): (r.games_played, r.points_total, r.steals_total)
            for r in db_session.query(PlayerSeasonStats)
        }

        result = rollup.rebuild_season(2024)

        after = {
            (r.player_id, r.team_id): (r.games_played, r.points_total, r.steals_total)
            for r in db_session.query(PlayerSeasonStats)
        }
        assert result.games == [scored_game.game_id]
        assert after == before

    def test_rebuild_ignores_recording_games(self, db_session: Session, league) -> None:
        result = SeasonRollup(db_session).rebuild_season(2024)

        assert result.games == []
        assert db_session.query(PlayerSeasonStats).count() == 0
