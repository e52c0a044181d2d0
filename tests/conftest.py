"""Shared pytest fixtures for stats tracker tests.

This module contains fixtures used across multiple test modules:
- Configuration fixtures (test settings)
- Database fixtures (file-backed SQLite engine, session factory, session)
- Sample data fixtures (teams, players, rosters, games)
- Event helpers

Example:
    def test_something(db_session, league, add_event):
        event = add_event(league.game_id, "TWO_POINTER_MADE", player_id=league.home_starter)
"""
from __future__ import annotations

import os
from collections.abc import Callable, Generator
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from stats_tracker.config import Settings, reset_settings
from stats_tracker.data.db import create_db_engine, create_session_factory, init_db
from stats_tracker.data.models import Game, GameEvent, Player, Team, TeamPlayer
from stats_tracker.data.repositories import EventRepository
from stats_tracker.types import PlayerRole, TrackingMode

# =============================================================================
# Paths
# =============================================================================


@pytest.fixture
def tmp_data_dir(tmp_path: Path) -> Path:
    """Create and return temporary data directory."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return data_dir


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def test_settings(tmp_data_dir: Path) -> Generator[Settings, None, None]:
    """Provide test settings with temporary directories.

    Automatically resets settings singleton after test.
    """
    os.environ["STATS_DB_PATH"] = str(tmp_data_dir / "test.db")
    os.environ["LOG_DIR"] = str(tmp_data_dir / "logs")
    os.environ["LOG_LEVEL"] = "DEBUG"

    reset_settings()
    from stats_tracker.config import get_settings

    settings = get_settings()
    settings.ensure_directories()

    yield settings

    # Cleanup
    reset_settings()
    for key in ["STATS_DB_PATH", "LOG_DIR", "LOG_LEVEL"]:
        os.environ.pop(key, None)


@pytest.fixture
def inline_settings(test_settings: Settings) -> Settings:
    """Settings that credit assists from assist_player_id on made shots."""
    return test_settings.model_copy(update={"assist_source": "inline"})


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine(test_settings: Settings) -> Generator[Engine, None, None]:
    """File-backed SQLite engine with the schema created."""
    db_engine = create_db_engine(test_settings.db_url)
    init_db(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Session for a single test; uncommitted work is rolled back."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Sample Data
# =============================================================================


@dataclass
class League:
    """Ids of the seeded sample data.

    Two teams with two players each. ``game_id`` is tracked BY_PLAYER on
    both sides; ``mixed_game_id`` tracks the away side BY_TEAM.
    """

    home_team: int
    away_team: int
    home_starter: int
    home_bench: int
    away_starter: int
    away_bench: int
    game_id: int
    mixed_game_id: int
    second_game_id: int


def seed_league(session: Session) -> League:
    """Insert two teams, four players, their rosters and three games."""
    hawks = Team(name="Harbor Hawks")
    bears = Team(name="Valley Bears")
    session.add_all([hawks, bears])
    session.flush()

    players = [
        Player(first_name="Ada", last_name="Guard"),
        Player(first_name="Ben", last_name="Wing"),
        Player(first_name="Cy", last_name="Center"),
        Player(first_name="Dee", last_name="Forward"),
    ]
    session.add_all(players)
    session.flush()
    home_starter, home_bench, away_starter, away_bench = players

    session.add_all(
        [
            TeamPlayer(player_id=home_starter.id, team_id=hawks.id, jersey_num=1, role=PlayerRole.STARTER),
            TeamPlayer(player_id=home_bench.id, team_id=hawks.id, jersey_num=6, role=PlayerRole.BENCH),
            TeamPlayer(player_id=away_starter.id, team_id=bears.id, jersey_num=11, role=PlayerRole.STARTER),
            TeamPlayer(player_id=away_bench.id, team_id=bears.id, jersey_num=23, role=PlayerRole.BENCH),
        ]
    )

    game = Game(
        home_team_id=hawks.id,
        away_team_id=bears.id,
        game_date=date(2024, 1, 15),
        place="Harbor Arena",
    )
    mixed = Game(
        home_team_id=hawks.id,
        away_team_id=bears.id,
        game_date=date(2024, 1, 22),
        away_tracking_mode=TrackingMode.BY_TEAM,
    )
    second = Game(
        home_team_id=bears.id,
        away_team_id=hawks.id,
        game_date=date(2024, 2, 3),
    )
    session.add_all([game, mixed, second])
    session.flush()

    return League(
        home_team=hawks.id,
        away_team=bears.id,
        home_starter=home_starter.id,
        home_bench=home_bench.id,
        away_starter=away_starter.id,
        away_bench=away_bench.id,
        game_id=game.id,
        mixed_game_id=mixed.id,
        second_game_id=second.id,
    )


@pytest.fixture
def league(db_session: Session) -> League:
    """Seeded sample data, flushed into ``db_session``."""
    return seed_league(db_session)


@pytest.fixture
def committed_league(session_factory: sessionmaker[Session]) -> League:
    """Seeded sample data committed for tests that open their own sessions."""
    session = session_factory()
    try:
        seeded = seed_league(session)
        session.commit()
    finally:
        session.close()
    return seeded


# =============================================================================
# Event Helpers
# =============================================================================


@pytest.fixture
def add_event(db_session: Session) -> Callable[..., GameEvent]:
    """Return a helper that stores an event in ``db_session``.

    Timestamps default to an increasing counter so insertion order and
    time order agree unless a test says otherwise.
    """
    repo = EventRepository(db_session)
    clock = {"t": 0}

    def _add(
        game_id: int,
        event_type: str,
        team: str = "HOME",
        **fields: Any,
    ) -> GameEvent:
        if "timestamp" not in fields:
            clock["t"] += 10
            fields["timestamp"] = clock["t"]
        fields.setdefault("quarter", 1)
        return repo.add_event(game_id=game_id, team=team, event_type=event_type, **fields)

    return _add


# =============================================================================
# Marker Helpers
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
