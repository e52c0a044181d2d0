"""Service facade: the mutation entry points of the stats engine.

``StatsService`` owns no database state of its own. It is handed a session
factory, runs every operation as one unit of work, serializes writers per
game and publishes a change notification once the unit has committed.

Example:
    >>> from stats_tracker.data.db import create_db_engine, create_session_factory
    >>> from stats_tracker.stats.service import StatsService
    >>> service = StatsService(create_session_factory(create_db_engine(url)))
    >>> event = service.record_event(
    ...     game_id=12, team="HOME", player_id=7, timestamp=10,
    ...     event_type="TWO_POINTER_MADE", quarter=1,
    ... )
    >>> service.complete_game(12)
    >>> service.rollup_completed_game(12)
"""
from __future__ import annotations

import threading
from collections import defaultdict
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from stats_tracker.config import Settings, get_settings
from stats_tracker.data.db import session_scope
from stats_tracker.data.payloads import GameEventPayload
from stats_tracker.data.repositories import EventRepository, GameRepository
from stats_tracker.logging import FAIL, SUCCESS, get_logger
from stats_tracker.stats.aggregator import AggregationEngine
from stats_tracker.stats.notifier import ChangeKind, StatsChange, StatsNotifier
from stats_tracker.stats.recalculation import RecalculationDriver, RecalculationResult
from stats_tracker.stats.rollup import RollupResult, SeasonRollup
from stats_tracker.types import InvalidEvent

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

    from stats_tracker.data.models import Game, GameEvent, PlayerSeasonStats

logger = get_logger(__name__)


class StatsService:
    """Serialized, transactional access to every stats mutation.

    Writers for the same game are serialized by a per-game lock; unrelated
    games never contend. Season rebuilds take a separate season lock.

    Attributes:
        session_factory: Factory producing sessions for each unit of work.
        settings: Aggregation settings.
        notifier: Receives a StatsChange after each committed write.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: Settings | None = None,
        notifier: StatsNotifier | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.notifier = notifier or StatsNotifier()
        self._game_locks: dict[int, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._season_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def game_lock(self, game_id: int) -> threading.Lock:
        """Return the writer lock of a game, creating it on first use."""
        with self._registry_lock:
            lock = self._game_locks.get(game_id)
            if lock is None:
                lock = self._game_locks[game_id] = threading.Lock()
            return lock

    @contextmanager
    def _unit(self, game_id: int) -> Generator[Session, None, None]:
        with self.game_lock(game_id), session_scope(self.session_factory) as session:
            yield session

    def _engine(self, session: Session) -> AggregationEngine:
        return AggregationEngine(session, self.settings)

    def _driver(self, session: Session) -> RecalculationDriver:
        return RecalculationDriver(session, self._engine(session))

    def _game_id_for_event(self, event_id: int) -> int:
        with session_scope(self.session_factory) as session:
            return EventRepository(session).require_event(event_id).game_id

    def _publish(self, change: StatsChange) -> None:
        self.notifier.publish(change)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def record_event(self, **fields: Any) -> GameEvent:
        """Store a new event and apply it in the same unit of work.

        Args:
            **fields: GameEvent fields, validated by ``GameEventPayload``.

        Returns:
            The stored event.

        Raises:
            pydantic.ValidationError: If the fields are malformed.
            InvalidEvent: If the event cannot be classified; nothing is stored.
            NotFound: If the game does not exist.
            GameStateError: If the game, or the credited player in it, is rolled up.
        """
        payload = GameEventPayload.model_validate(fields)
        with self._unit(payload.game_id) as session:
            event = EventRepository(session).add_event(**payload.to_model_fields())
            self._engine(session).apply_event(event)

        self._publish(
            StatsChange(
                ChangeKind.EVENT_APPLIED,
                game_id=event.game_id,
                player_id=event.player_id,
                event_id=event.id,
            )
        )
        return event

    def apply_event(self, event_id: int) -> bool:
        """Apply an already stored event. Returns False if it was applied before."""
        game_id = self._game_id_for_event(event_id)
        with self._unit(game_id) as session:
            event = EventRepository(session).require_event(event_id)
            applied = self._engine(session).apply_event(event)

        if applied:
            self._publish(
                StatsChange(ChangeKind.EVENT_APPLIED, game_id=game_id, event_id=event_id)
            )
        return applied

    def apply_pending(self, game_id: int) -> int:
        """Apply every stored event of a game that is not in the ledger yet."""
        with self._unit(game_id) as session:
            pending = EventRepository(session).get_pending_events(game_id)
            applied = self._engine(session).apply_events(pending)

        if applied:
            self._publish(StatsChange(ChangeKind.EVENT_APPLIED, game_id=game_id))
        return applied

    def delete_event(self, event_id: int) -> RecalculationResult:
        """Delete an event and rebuild its game's aggregates."""
        game_id = self._game_id_for_event(event_id)
        with self.game_lock(game_id):
            with session_scope(self.session_factory) as session:
                EventRepository(session).delete_event(event_id)
                self._driver(session).clear(game_id)
            result = self._replay(game_id)

        self._publish(
            StatsChange(ChangeKind.EVENT_DELETED, game_id=game_id, event_id=event_id)
        )
        return result

    def undo_last_event(self, game_id: int) -> GameEvent | None:
        """Delete the latest event of a game and recalculate.

        Returns:
            The deleted event, or None if the game has no events.
        """
        with session_scope(self.session_factory) as session:
            GameRepository(session).require_game(game_id)
            last = EventRepository(session).get_last_event(game_id)
        if last is None:
            logger.info(f"Game {game_id} has no events to undo")
            return None

        self.delete_event(last.id)
        logger.info(f"{SUCCESS} Undid event {last.id} ({last.event_type.value}) in game {game_id}")
        return last

    # -------------------------------------------------------------------------
    # Games
    # -------------------------------------------------------------------------

    def _replay(self, game_id: int) -> RecalculationResult:
        try:
            with session_scope(self.session_factory) as session:
                return self._driver(session).replay(game_id)
        except InvalidEvent as e:
            logger.error(
                f"{FAIL} Replay of game {game_id} failed at event {e.event_id}; "
                "its stats stay cleared until the event is fixed"
            )
            raise

    def recalculate(self, game_id: int) -> RecalculationResult:
        """Rebuild a game's aggregates from its events.

        The deletion is committed before the replay. If the replay hits an
        invalid event the game is left without stats and the error is raised.
        """
        with self.game_lock(game_id):
            with session_scope(self.session_factory) as session:
                self._driver(session).clear(game_id)
            result = self._replay(game_id)

        logger.info(
            f"{SUCCESS} Game {game_id} recalculated: "
            f"{result.events_replayed} events, {result.rows_written} rows"
        )
        self._publish(StatsChange(ChangeKind.GAME_RECALCULATED, game_id=game_id))
        return result

    def complete_game(self, game_id: int) -> Game:
        """Mark a game as finished recording."""
        with self._unit(game_id) as session:
            game = GameRepository(session).complete_game(game_id)

        self._publish(StatsChange(ChangeKind.GAME_COMPLETED, game_id=game_id))
        return game

    # -------------------------------------------------------------------------
    # Seasons
    # -------------------------------------------------------------------------

    def rollup_game(
        self,
        player_id: int,
        game_id: int,
        season_year: int,
        started: bool | None = None,
    ) -> PlayerSeasonStats:
        """Fold one player's game into their season record."""
        with self._season_lock, self._unit(game_id) as session:
            season = SeasonRollup(session).rollup_game(
                player_id, game_id, season_year, started
            )

        self._publish(
            StatsChange(
                ChangeKind.SEASON_UPDATED,
                game_id=game_id,
                season_year=season_year,
                player_id=player_id,
            )
        )
        return season

    def rollup_completed_game(
        self, game_id: int, season_year: int | None = None
    ) -> RollupResult:
        """Roll up every player of a completed game and mark it ROLLED_UP."""
        with self._season_lock, self._unit(game_id) as session:
            result = SeasonRollup(session).rollup_completed_game(game_id, season_year)

        self._publish(
            StatsChange(
                ChangeKind.SEASON_UPDATED,
                game_id=game_id,
                season_year=result.season_year,
            )
        )
        return result

    def rebuild_season(self, season_year: int) -> RollupResult:
        """Recompute every season record of a season from its games."""
        with self._season_lock, session_scope(self.session_factory) as session:
            result = SeasonRollup(session).rebuild_season(season_year)

        self._publish(StatsChange(ChangeKind.SEASON_UPDATED, season_year=season_year))
        return result

    # -------------------------------------------------------------------------
    # Bulk import
    # -------------------------------------------------------------------------

    def import_events(
        self, payloads: Iterable[GameEventPayload]
    ) -> dict[int, RecalculationResult]:
        """Store validated events and rebuild every game they touch.

        Each game is imported as one unit of work: if any of its events
        cannot be classified, none of that game's events are stored.

        Returns:
            Recalculation result per game id.

        Raises:
            InvalidEvent: For the first game containing an invalid event.
                Games imported before it stay committed.
        """
        by_game: dict[int, list[GameEventPayload]] = defaultdict(list)
        for payload in payloads:
            by_game[payload.game_id].append(payload)

        results: dict[int, RecalculationResult] = {}
        for game_id, game_payloads in by_game.items():
            with self._unit(game_id) as session:
                GameRepository(session).require_game(game_id)
                repo = EventRepository(session)
                for payload in game_payloads:
                    repo.add_event(**payload.to_model_fields())
                results[game_id] = self._driver(session).recalculate(game_id)

            logger.info(
                f"{SUCCESS} Imported {len(game_payloads)} events into game {game_id}"
            )
            self._publish(StatsChange(ChangeKind.GAME_RECALCULATED, game_id=game_id))
        return results
