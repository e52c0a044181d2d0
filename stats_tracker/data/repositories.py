"""Session-bound data access for games and events.

``EventRepository`` is the event store consumed by the aggregation engine
and the recalculation driver. ``GameRepository`` answers tracking-mode and
lifecycle questions about a game.

Example:
    >>> from stats_tracker.data.repositories import EventRepository
    >>> with session_scope(factory) as session:
    ...     events = EventRepository(session).get_events_for_game(12)
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from stats_tracker.data.models import AppliedEvent, Game, GameEvent
from stats_tracker.types import (
    GameEventType,
    GameStatus,
    GameTeamSide,
    NotFound,
    TrackingMode,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class EventRepository:
    """Read/write access to the ``game_events`` table.

    Ordering contract: events of a game are returned by timestamp ascending
    with ties broken by insertion order (the auto-increment id).
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def add_event(self, **fields: Any) -> GameEvent:
        """Insert a new event and flush it so it receives an id."""
        event = GameEvent(**fields)
        self.session.add(event)
        self.session.flush()
        logger.debug(f"Recorded event {event.id} in game {event.game_id}")
        return event

    def get_event(self, event_id: int) -> GameEvent | None:
        return self.session.get(GameEvent, event_id)

    def require_event(self, event_id: int) -> GameEvent:
        event = self.get_event(event_id)
        if event is None:
            raise NotFound("GameEvent", event_id)
        return event

    def get_events_for_game(self, game_id: int) -> list[GameEvent]:
        stmt = (
            select(GameEvent)
            .where(GameEvent.game_id == game_id)
            .order_by(GameEvent.timestamp.asc(), GameEvent.id.asc())
        )
        return list(self.session.scalars(stmt))

    def get_events_for_player_in_game(
        self, game_id: int, player_id: int
    ) -> list[GameEvent]:
        stmt = (
            select(GameEvent)
            .where(GameEvent.game_id == game_id, GameEvent.player_id == player_id)
            .order_by(GameEvent.timestamp.asc(), GameEvent.id.asc())
        )
        return list(self.session.scalars(stmt))

    def get_pending_events(self, game_id: int) -> list[GameEvent]:
        """Events of a game that have no processing ledger entry yet."""
        applied = select(AppliedEvent.event_id).where(AppliedEvent.game_id == game_id)
        stmt = (
            select(GameEvent)
            .where(GameEvent.game_id == game_id, GameEvent.id.not_in(applied))
            .order_by(GameEvent.timestamp.asc(), GameEvent.id.asc())
        )
        return list(self.session.scalars(stmt))

    def get_last_event(self, game_id: int) -> GameEvent | None:
        """Latest event of a game in canonical order."""
        stmt = (
            select(GameEvent)
            .where(GameEvent.game_id == game_id)
            .order_by(GameEvent.timestamp.desc(), GameEvent.id.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def get_event_counts_by_type(self, game_id: int) -> dict[GameEventType, int]:
        stmt = (
            select(GameEvent.event_type, func.count(GameEvent.id))
            .where(GameEvent.game_id == game_id)
            .group_by(GameEvent.event_type)
        )
        return {event_type: count for event_type, count in self.session.execute(stmt)}

    def delete_event(self, event_id: int) -> GameEvent:
        """Delete an event. Its game must be recalculated afterwards."""
        event = self.require_event(event_id)
        self.session.query(AppliedEvent).filter(
            AppliedEvent.event_id == event_id
        ).delete(synchronize_session=False)
        self.session.delete(event)
        self.session.flush()
        logger.debug(f"Deleted event {event_id} from game {event.game_id}")
        return event


class GameRepository:
    """Game metadata lookups and lifecycle transitions."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_game(self, game_id: int) -> Game | None:
        return self.session.get(Game, game_id)

    def require_game(self, game_id: int) -> Game:
        game = self.get_game(game_id)
        if game is None:
            raise NotFound("Game", game_id)
        return game

    def get_tracking_mode(self, game_id: int, side: GameTeamSide) -> TrackingMode:
        return self.require_game(game_id).tracking_mode_for(side)

    def get_games_for_season(
        self,
        season_year: int,
        statuses: Sequence[GameStatus] | None = None,
    ) -> list[Game]:
        """Games counted toward a season, ordered by date then id."""
        stmt = select(Game).where(Game.season_year == season_year)
        if statuses:
            stmt = stmt.where(Game.status.in_(list(statuses)))
        stmt = stmt.order_by(Game.game_date.asc(), Game.id.asc())
        return list(self.session.scalars(stmt))

    def complete_game(self, game_id: int) -> Game:
        """Move a game from RECORDING to COMPLETED. No-op if already past it."""
        game = self.require_game(game_id)
        if game.status == GameStatus.RECORDING:
            game.status = GameStatus.COMPLETED
            self.session.flush()
            logger.info(f"Game {game_id} marked completed")
        return game

    def set_status(self, game_id: int, status: GameStatus) -> Game:
        game = self.require_game(game_id)
        game.status = status
        self.session.flush()
        return game
