"""Tests for the stats query service."""
from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from stats_tracker.data.models import GameStats, PlayerGameStats, PlayerSeasonStats
from stats_tracker.stats.queries import StatsQueryService, combine_season_records


def _player_row(league, player_id, team_id, game_id=None, quarter=None, **counters):
    return PlayerGameStats(
        game_id=game_id or league.game_id,
        player_id=player_id,
        team_id=team_id,
        quarter=quarter,
        **counters,
    )


@pytest.fixture
def box_rows(db_session: Session, league):
    """Full-game and quarter rows for the first game."""
    db_session.add_all(
        [
            GameStats(game_id=league.game_id, team_id=league.home_team, points=12),
            GameStats(game_id=league.game_id, team_id=league.home_team, quarter=2, points=5),
            GameStats(game_id=league.game_id, team_id=league.home_team, quarter=1, points=7),
            GameStats(game_id=league.game_id, team_id=league.away_team, points=9),
            _player_row(league, league.home_starter, league.home_team, points=8, rebounds_defensive=1),
            _player_row(league, league.home_bench, league.home_team, points=4, rebounds_offensive=3),
            _player_row(league, league.home_starter, league.home_team, quarter=1, points=6),
            _player_row(league, league.away_starter, league.away_team, points=9, assists=4),
            _player_row(
                league, league.home_starter, league.home_team,
                game_id=league.second_game_id, points=20,
            ),
        ]
    )
    db_session.flush()
    return league


class TestGameQueries:
    """Team and player queries for one game."""

    def test_team_stats(self, db_session: Session, box_rows) -> None:
        queries = StatsQueryService(db_session)

        assert queries.get_team_stats(box_rows.game_id, box_rows.home_team).points == 12
        assert queries.get_team_stats(box_rows.game_id, box_rows.home_team, quarter=1).points == 7
        assert queries.get_team_stats(box_rows.game_id, box_rows.home_team, quarter=4) is None

    def test_team_quarter_stats_ordered(self, db_session: Session, box_rows) -> None:
        rows = StatsQueryService(db_session).get_team_quarter_stats(
            box_rows.game_id, box_rows.home_team
        )

        assert [r.quarter for r in rows] == [1, 2]

    def test_all_team_stats_full_game_first(self, db_session: Session, box_rows) -> None:
        rows = StatsQueryService(db_session).get_all_team_stats_for_game(box_rows.game_id)
        home = [r.quarter for r in rows if r.team_id == box_rows.home_team]

        assert home == [None, 1, 2]
        assert len(rows) == 4

    def test_game_overall_stats_absent(self, db_session: Session, box_rows) -> None:
        assert StatsQueryService(db_session).get_game_overall_stats(box_rows.game_id) is None

    def test_player_stats(self, db_session: Session, box_rows) -> None:
        queries = StatsQueryService(db_session)

        assert queries.get_player_stats(box_rows.game_id, box_rows.home_starter).points == 8
        assert [r.points for r in queries.get_player_quarter_stats(box_rows.game_id, box_rows.home_starter)] == [6]

    def test_box_score_rows(self, db_session: Session, box_rows) -> None:
        queries = StatsQueryService(db_session)

        rows = queries.get_all_player_stats_for_game(box_rows.game_id)
        home_only = queries.get_all_player_stats_for_game(box_rows.game_id, team_id=box_rows.home_team)
        first_quarter = queries.get_all_player_stats_for_game(box_rows.game_id, quarter=1)

        assert len(rows) == 3
        assert [r.player_id for r in home_only] == [box_rows.home_starter, box_rows.home_bench]
        assert [r.points for r in first_quarter] == [6]

    def test_game_log_most_recent_first(self, db_session: Session, box_rows) -> None:
        log = StatsQueryService(db_session).get_player_game_log(box_rows.home_starter)

        assert [r.game_id for r in log] == [box_rows.second_game_id, box_rows.game_id]

    def test_game_leaders(self, db_session: Session, box_rows) -> None:
        queries = StatsQueryService(db_session)

        scorers = queries.get_game_leaders(box_rows.game_id, "points", limit=2)
        rebounders = queries.get_game_leaders(box_rows.game_id, "rebounds", limit=1)

        assert [r.points for r in scorers] == [9, 8]
        assert rebounders[0].player_id == box_rows.home_bench


@pytest.fixture
def season_rows(db_session: Session, league):
    db_session.add_all(
        [
            PlayerSeasonStats(
                player_id=league.home_starter, team_id=league.home_team, season_year=2024,
                games_played=2, points_total=30, field_goals_made=10, field_goals_attempted=20,
            ),
            PlayerSeasonStats(
                player_id=league.home_starter, team_id=league.away_team, season_year=2024,
                games_played=1, points_total=12, field_goals_made=5, field_goals_attempted=6,
            ),
            PlayerSeasonStats(
                player_id=league.away_starter, team_id=league.away_team, season_year=2024,
                games_played=3, points_total=30, field_goals_made=1, field_goals_attempted=1,
            ),
            PlayerSeasonStats(
                player_id=league.away_starter, team_id=league.away_team, season_year=2023,
                games_played=1, points_total=2,
            ),
        ]
    )
    db_session.flush()
    return league


class TestSeasonQueries:
    """Season-level reads."""

    def test_season_stats_for_team(self, db_session: Session, season_rows) -> None:
        record = StatsQueryService(db_session).get_season_stats(
            season_rows.home_starter, 2024, team_id=season_rows.away_team
        )

        assert record.points_total == 12

    def test_season_stats_single_record(self, db_session: Session, season_rows) -> None:
        record = StatsQueryService(db_session).get_season_stats(season_rows.away_starter, 2023)

        assert record.points_total == 2
        assert record.team_id == season_rows.away_team

    def test_season_stats_combined_across_teams(self, db_session: Session, season_rows) -> None:
        record = StatsQueryService(db_session).get_season_stats(season_rows.home_starter, 2024)

        assert record.team_id is None
        assert record.games_played == 3
        assert record.points_total == 42
        assert record.points_per_game == pytest.approx(14.0)
        assert record.field_goal_percentage == pytest.approx(15 / 26)

    def test_season_stats_missing(self, db_session: Session, season_rows) -> None:
        assert StatsQueryService(db_session).get_season_stats(season_rows.home_bench, 2024) is None

    def test_career_and_team_views(self, db_session: Session, season_rows) -> None:
        queries = StatsQueryService(db_session)

        career = queries.get_player_career_stats(season_rows.away_starter)
        roster = queries.get_team_season_stats(season_rows.away_team, 2024)

        assert [r.season_year for r in career] == [2023, 2024]
        assert [r.points_total for r in roster] == [30, 12]
        assert queries.get_available_seasons() == [2024, 2023]

    def test_season_leaders_rank_by_totals(self, db_session: Session, season_rows) -> None:
        leaders = StatsQueryService(db_session).get_season_leaders(2024, "points")

        assert [r.points_total for r in leaders] == [30, 30, 12]
        assert [r.player_id for r in leaders[:2]] == [
            season_rows.home_starter,
            season_rows.away_starter,
        ]

    def test_season_leaders_default_min_attempts(self, db_session: Session, season_rows) -> None:
        queries = StatsQueryService(db_session)

        assert queries.get_season_leaders(2024, "field_goal_percentage") == []
        assert len(queries.get_season_leaders(2024, "field_goal_percentage", min_attempts=0)) == 3

    def test_season_leaders_min_attempts(self, db_session: Session, season_rows) -> None:
        leaders = StatsQueryService(db_session).get_season_leaders(
            2024, "field_goal_percentage", min_attempts=5
        )

        assert all(r.field_goals_attempted >= 5 for r in leaders)
        assert leaders[0].field_goal_percentage == pytest.approx(5 / 6)

    def test_season_leaders_unknown_stat(self, db_session: Session, season_rows) -> None:
        with pytest.raises(ValueError):
            StatsQueryService(db_session).get_season_leaders(2024, "dunks")

    def test_combine_records_is_detached(self, db_session: Session, season_rows) -> None:
        records = StatsQueryService(db_session).get_team_season_stats(season_rows.away_team, 2024)

        combined = combine_season_records(records)

        assert combined not in db_session
