"""Tests for the event and game repositories."""
from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from stats_tracker.data.models import AppliedEvent, Game
from stats_tracker.data.repositories import EventRepository, GameRepository
from stats_tracker.types import (
    GameEventType,
    GameStatus,
    GameTeamSide,
    NotFound,
    TrackingMode,
)


class TestEventRepository:
    """Tests for EventRepository."""

    def test_add_event_assigns_id(self, db_session: Session, league) -> None:
        repo = EventRepository(db_session)
        event = repo.add_event(
            game_id=league.game_id,
            team=GameTeamSide.HOME,
            timestamp=5,
            event_type=GameEventType.STEAL,
            player_id=league.home_starter,
        )

        assert event.id is not None
        assert repo.get_event(event.id) is event

    def test_events_ordered_by_timestamp_then_insertion(
        self, db_session: Session, league, add_event
    ) -> None:
        late = add_event(league.game_id, "STEAL", player_id=league.home_starter, timestamp=50)
        tie_a = add_event(league.game_id, "BLOCK", player_id=league.home_starter, timestamp=20)
        tie_b = add_event(league.game_id, "TURNOVER", player_id=league.home_starter, timestamp=20)
        early = add_event(league.game_id, "ASSIST", player_id=league.home_starter, timestamp=1)

        events = EventRepository(db_session).get_events_for_game(league.game_id)

        assert [e.id for e in events] == [early.id, tie_a.id, tie_b.id, late.id]

    def test_events_for_player(self, db_session: Session, league, add_event) -> None:
        add_event(league.game_id, "STEAL", player_id=league.home_starter)
        add_event(league.game_id, "STEAL", player_id=league.home_bench)
        add_event(league.game_id, "BLOCK", player_id=league.home_starter)

        events = EventRepository(db_session).get_events_for_player_in_game(
            league.game_id, league.home_starter
        )

        assert [e.event_type for e in events] == [GameEventType.STEAL, GameEventType.BLOCK]

    def test_pending_events_exclude_ledger(self, db_session: Session, league, add_event) -> None:
        applied = add_event(league.game_id, "STEAL", player_id=league.home_starter)
        pending = add_event(league.game_id, "BLOCK", player_id=league.home_starter)
        db_session.add(AppliedEvent(event_id=applied.id, game_id=league.game_id))
        db_session.flush()

        events = EventRepository(db_session).get_pending_events(league.game_id)

        assert [e.id for e in events] == [pending.id]

    def test_last_event(self, db_session: Session, league, add_event) -> None:
        repo = EventRepository(db_session)
        assert repo.get_last_event(league.game_id) is None

        add_event(league.game_id, "STEAL", player_id=league.home_starter, timestamp=30)
        last = add_event(league.game_id, "BLOCK", player_id=league.home_starter, timestamp=30)
        add_event(league.game_id, "ASSIST", player_id=league.home_starter, timestamp=10)

        assert repo.get_last_event(league.game_id).id == last.id

    def test_counts_by_type(self, db_session: Session, league, add_event) -> None:
        add_event(league.game_id, "STEAL", player_id=league.home_starter)
        add_event(league.game_id, "STEAL", player_id=league.away_starter, team="AWAY")
        add_event(league.game_id, "TURNOVER", player_id=league.home_starter)

        counts = EventRepository(db_session).get_event_counts_by_type(league.game_id)

        assert counts[GameEventType.STEAL] == 2
        assert counts[GameEventType.TURNOVER] == 1

    def test_delete_event_removes_ledger_entry(
        self, db_session: Session, league, add_event
    ) -> None:
        event = add_event(league.game_id, "STEAL", player_id=league.home_starter)
        db_session.add(AppliedEvent(event_id=event.id, game_id=league.game_id))
        db_session.flush()
        event_id = event.id

        EventRepository(db_session).delete_event(event_id)

        assert EventRepository(db_session).get_event(event_id) is None
        assert db_session.query(AppliedEvent).filter_by(event_id=event_id).count() == 0

    def test_require_missing_event(self, db_session: Session, league) -> None:
        with pytest.raises(NotFound) as exc_info:
            EventRepository(db_session).require_event(9999)

        assert exc_info.value.entity == "GameEvent"
        assert exc_info.value.key == 9999


class TestGameRepository:
    """Tests for GameRepository."""

    def test_require_missing_game(self, db_session: Session, league) -> None:
        with pytest.raises(NotFound):
            GameRepository(db_session).require_game(9999)

    def test_tracking_mode(self, db_session: Session, league) -> None:
        repo = GameRepository(db_session)

        assert repo.get_tracking_mode(league.mixed_game_id, GameTeamSide.HOME) == TrackingMode.BY_PLAYER
        assert repo.get_tracking_mode(league.mixed_game_id, GameTeamSide.AWAY) == TrackingMode.BY_TEAM

    def test_games_for_season(self, db_session: Session, league) -> None:
        repo = GameRepository(db_session)

        games = repo.get_games_for_season(2024)

        assert [g.id for g in games] == [
            league.game_id,
            league.mixed_game_id,
            league.second_game_id,
        ]
        assert repo.get_games_for_season(2023) == []

    def test_games_for_season_filtered_by_status(self, db_session: Session, league) -> None:
        repo = GameRepository(db_session)
        repo.complete_game(league.second_game_id)

        games = repo.get_games_for_season(2024, statuses=[GameStatus.COMPLETED])

        assert [g.id for g in games] == [league.second_game_id]

    def test_complete_game_only_moves_forward(self, db_session: Session, league) -> None:
        repo = GameRepository(db_session)
        repo.set_status(league.game_id, GameStatus.ROLLED_UP)

        game = repo.complete_game(league.game_id)

        assert game.status == GameStatus.ROLLED_UP

    def test_complete_game(self, db_session: Session, league) -> None:
        GameRepository(db_session).complete_game(league.game_id)

        assert db_session.get(Game, league.game_id).status == GameStatus.COMPLETED
