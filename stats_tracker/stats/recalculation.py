"""Rebuild-from-scratch of a game's aggregates.

Recalculation discards every derived row of a game and replays the game's
events in canonical order. It is the correctness backstop for the
incremental path: after a bulk import, an event deletion or any suspected
drift, ``recalculate`` yields the same rows correct incremental application
would have produced.

Example:
    >>> from stats_tracker.stats.recalculation import RecalculationDriver
    >>> with session_scope(factory) as session:
    ...     result = RecalculationDriver(session).recalculate(12)
    ...     print(result.events_replayed)
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select

from stats_tracker.data.models import AppliedEvent, GameStats, PlayerGameStats
from stats_tracker.data.repositories import EventRepository, GameRepository
from stats_tracker.logging import SUCCESS, WARN, get_logger
from stats_tracker.stats.aggregator import AggregationEngine
from stats_tracker.types import EventSource, GameStatus, InvalidEvent

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = get_logger(__name__)


@dataclass
class RecalculationResult:
    """Outcome of a game recalculation.

    Attributes:
        game_id: Recalculated game.
        events_replayed: Events applied during the replay.
        team_rows: ``game_stats`` rows present after the replay.
        player_rows: ``player_game_stats`` rows present after the replay.
        warnings: Data-quality warnings raised while replaying.
        duration_seconds: Wall-clock time of the replay.
    """

    game_id: int
    events_replayed: int = 0
    team_rows: int = 0
    player_rows: int = 0
    warnings: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def rows_written(self) -> int:
        return self.team_rows + self.player_rows


class RecalculationDriver:
    """Deletes and rebuilds a game's ``game_stats`` and ``player_game_stats``.

    The driver works inside the caller's transaction. ``clear`` and
    ``replay`` are exposed separately so a caller can commit the deletion
    before replaying; ``recalculate`` runs both.
    """

    def __init__(
        self,
        session: Session,
        engine: AggregationEngine | None = None,
        events: EventSource | None = None,
    ) -> None:
        """Initialize driver.

        Args:
            session: Database session.
            engine: Aggregation engine bound to the same session.
            events: Event source; defaults to the ``game_events`` table.
        """
        self.session = session
        self.engine = engine or AggregationEngine(session)
        self.events = events or EventRepository(session)
        self.games = GameRepository(session)

    def clear(self, game_id: int) -> int:
        """Delete every aggregate row and ledger entry of a game.

        Returns:
            Number of aggregate rows deleted.

        Raises:
            NotFound: If the game does not exist.
        """
        game = self.games.require_game(game_id)
        if game.status == GameStatus.ROLLED_UP:
            logger.warning(
                f"{WARN} Game {game_id} is already rolled up; "
                f"rebuild season {game.effective_season_year} after recalculating"
            )

        deleted = 0
        for model in (PlayerGameStats, GameStats):
            result = self.session.execute(
                delete(model).where(model.game_id == game_id)
            )
            deleted += result.rowcount or 0
        self.session.execute(delete(AppliedEvent).where(AppliedEvent.game_id == game_id))
        # Bulk deletes bypass the identity map
        self.session.expire_all()

        logger.debug(f"Cleared {deleted} aggregate rows for game {game_id}")
        return deleted

    def replay(self, game_id: int) -> RecalculationResult:
        """Replay every event of a game in (timestamp, id) order.

        Raises:
            NotFound: If the game does not exist.
            InvalidEvent: On the first event that cannot be classified,
                carrying that event's id.
        """
        start = time.time()
        self.games.require_game(game_id)
        result = RecalculationResult(game_id=game_id)
        self.engine.warnings.clear()

        for event in self.events.get_events_for_game(game_id):
            try:
                if self.engine.apply_event(event, replay=True):
                    result.events_replayed += 1
            except InvalidEvent as e:
                logger.error(f"Recalculation of game {game_id} aborted: {e}")
                if e.event_id is None:
                    raise InvalidEvent(str(e), event.id) from e
                raise

        result.warnings = list(self.engine.warnings)
        result.team_rows = self._count(GameStats, game_id)
        result.player_rows = self._count(PlayerGameStats, game_id)
        result.duration_seconds = time.time() - start
        return result

    def recalculate(self, game_id: int) -> RecalculationResult:
        """Delete a game's aggregates and rebuild them from its events.

        Args:
            game_id: Game to rebuild.

        Returns:
            RecalculationResult with replay counts and warnings.

        Raises:
            NotFound: If the game does not exist.
            InvalidEvent: If an event cannot be classified. The caller's
                transaction decides whether the deletion survives.
        """
        self.clear(game_id)
        result = self.replay(game_id)
        logger.info(
            f"{SUCCESS} Game {game_id} recalculated: "
            f"{result.events_replayed} events, {result.rows_written} rows"
        )
        return result

    def _count(self, model: type[GameStats] | type[PlayerGameStats], game_id: int) -> int:
        stmt = select(func.count(model.id)).where(model.game_id == game_id)
        return self.session.scalar(stmt) or 0
