"""Data layer for the stats tracker.

This module provides storage and retrieval functionality including
database engine/session management, SQLAlchemy ORM models, repositories
over games and events, and validation of externally supplied events.

Submodules:
    db: Database engine and session management
    schema: SQLAlchemy base class and mixins
    models: SQLAlchemy ORM model definitions
    repositories: Event store and game metadata access
    payloads: Pydantic models for incoming event records

Example:
    >>> from stats_tracker.data import create_db_engine, init_db, session_scope
    >>> engine = create_db_engine("sqlite:///data/stats.db")
    >>> init_db(engine)
"""
from __future__ import annotations

from stats_tracker.data.db import (
    create_db_engine,
    create_session_factory,
    engine_from_settings,
    init_db,
    session_scope,
    verify_foreign_keys_enabled,
)
from stats_tracker.data.models import (
    AppliedEvent,
    Game,
    GameEvent,
    GameStats,
    Player,
    PlayerGameStats,
    PlayerSeasonStats,
    SeasonRollupEntry,
    Team,
    TeamPlayer,
)
from stats_tracker.data.payloads import EventBatch, GameEventPayload, load_event_file
from stats_tracker.data.repositories import EventRepository, GameRepository
from stats_tracker.data.schema import Base, CounterMixin, ShootingMixin, TimestampMixin

__all__ = [
    # Database
    "create_db_engine",
    "create_session_factory",
    "engine_from_settings",
    "init_db",
    "session_scope",
    "verify_foreign_keys_enabled",
    # Schema
    "Base",
    "CounterMixin",
    "ShootingMixin",
    "TimestampMixin",
    # Models
    "AppliedEvent",
    "Game",
    "GameEvent",
    "GameStats",
    "Player",
    "PlayerGameStats",
    "PlayerSeasonStats",
    "SeasonRollupEntry",
    "Team",
    "TeamPlayer",
    # Repositories
    "EventRepository",
    "GameRepository",
    # Payloads
    "EventBatch",
    "GameEventPayload",
    "load_event_file",
]
