"""Aggregation engine: applying classified events to the stats tables.

The engine folds one event at a time into ``game_stats`` and
``player_game_stats``. Every target row of an event is updated together
with the event's processing ledger row inside a single SAVEPOINT, so an
event is either fully applied or not applied at all, and an event that is
already in the ledger is never applied a second time.

Example:
    >>> from stats_tracker.stats.aggregator import AggregationEngine
    >>> with session_scope(factory) as session:
    ...     engine = AggregationEngine(session)
    ...     engine.apply_event(event)
    True
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from stats_tracker.config import Settings, get_settings
from stats_tracker.data.models import (
    AppliedEvent,
    GameStats,
    PlayerGameStats,
    SeasonRollupEntry,
)
from stats_tracker.data.repositories import GameRepository
from stats_tracker.data.schema import COUNTER_FIELDS
from stats_tracker.logging import get_logger
from stats_tracker.stats.classifier import (
    AggregationKey,
    EventClassification,
    KeyScope,
    classify_event,
)
from stats_tracker.types import (
    AggregationError,
    GameEventType,
    GameStateError,
    GameStatus,
    GameTeamSide,
    InvalidEvent,
    TrackingModeSource,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from stats_tracker.data.models import Game, GameEvent

logger = get_logger(__name__)

StatsRow = GameStats | PlayerGameStats


def _zeroed(model: type[StatsRow], **key_fields: object) -> StatsRow:
    row = model(**key_fields)
    for name in COUNTER_FIELDS:
        setattr(row, name, 0)
    if model is PlayerGameStats:
        row.plus_minus = 0
    return row


class AggregationEngine:
    """Upsert-with-increment of event deltas into game aggregates.

    The engine is bound to one session and never commits it; the caller
    owns the transaction. Derived values (percentages, averages) are
    never written.

    Attributes:
        session: Session all reads and writes go through.
        settings: Classification settings (assist source, rebound strictness).
        warnings: Data-quality warnings collected from applied events.
    """

    def __init__(
        self,
        session: Session,
        settings: Settings | None = None,
        tracking_modes: TrackingModeSource | None = None,
    ) -> None:
        """Initialize engine.

        Args:
            session: Database session.
            settings: Settings; defaults to the process settings.
            tracking_modes: Tracking mode lookup; defaults to the game table.
        """
        self.session = session
        self.settings = settings or get_settings()
        self.games = GameRepository(session)
        self.tracking_modes = tracking_modes or self.games
        self.warnings: list[str] = []

    def rolled_up_players(self, game_id: int, player_ids: Iterable[int]) -> list[int]:
        """Return the players of ``player_ids`` already folded into a season for the game."""
        ids = sorted(set(player_ids))
        if not ids:
            return []
        stmt = select(SeasonRollupEntry.player_id).where(
            SeasonRollupEntry.game_id == game_id,
            SeasonRollupEntry.player_id.in_(ids),
        )
        return sorted(self.session.scalars(stmt))

    def is_applied(self, event_id: int) -> bool:
        """Return True if the event is already in the processing ledger."""
        stmt = select(AppliedEvent.id).where(AppliedEvent.event_id == event_id)
        return self.session.scalar(stmt) is not None

    def classify(self, event: GameEvent, game: Game) -> EventClassification:
        """Classify an event in the context of its game."""
        side = GameTeamSide(event.team)
        return classify_event(
            event,
            self.tracking_modes.get_tracking_mode(event.game_id, side),
            home_team_id=game.home_team_id,
            away_team_id=game.away_team_id,
            assist_source=self.settings.assist_source,
            strict_rebound_kind=self.settings.strict_rebound_kind,
        )

    def apply_event(self, event: GameEvent, *, replay: bool = False) -> bool:
        """Apply one stored event to every aggregate row it affects.

        Args:
            event: Persisted event (must have an id).
            replay: Set by recalculation, which may rebuild ROLLED_UP games.

        Returns:
            True if the event was applied, False if it was already applied.

        Raises:
            InvalidEvent: If the event cannot be classified; nothing is written.
            NotFound: If the event's game does not exist.
            GameStateError: If the game is ROLLED_UP, or a player the event
                credits is already rolled up for it, and this is not a replay.
            AggregationError: If the storage update fails; nothing is written.
        """
        if event.id is None:
            raise InvalidEvent("event must be stored before it is aggregated")

        game = self.games.require_game(event.game_id)
        if game.status == GameStatus.ROLLED_UP and not replay:
            raise GameStateError(
                f"Game {game.id} is rolled up; recalculate and rebuild the season instead"
            )

        if self.is_applied(event.id):
            logger.debug(f"Event {event.id} already applied, skipping")
            return False

        classification = self.classify(event, game)

        if not replay:
            rolled_up = self.rolled_up_players(
                event.game_id,
                (key.player_id for key in classification.keys() if key.scope == KeyScope.PLAYER),
            )
            if rolled_up:
                raise GameStateError(
                    f"Players {rolled_up} of game {game.id} are already rolled up; "
                    "recalculate and rebuild the season instead"
                )

        try:
            with self.session.begin_nested():
                for delta in classification.deltas:
                    for key in delta.keys:
                        self._increment(key, delta.fields)
                self.session.add(AppliedEvent(event_id=event.id, game_id=event.game_id))
                self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to apply event {event.id} to game {event.game_id}: {e}")
            raise AggregationError(
                f"Event {event.id} could not be applied to game {event.game_id}"
            ) from e

        self.warnings.extend(classification.warnings)
        logger.debug(
            f"Applied event {event.id} ({GameEventType(event.event_type).value}) "
            f"to {len(classification.keys())} rows"
        )
        return True

    def apply_events(self, events: Iterable[GameEvent], *, replay: bool = False) -> int:
        """Apply events in canonical (timestamp, id) order.

        Returns:
            Number of events newly applied.
        """
        ordered = sorted(events, key=lambda e: (e.timestamp, e.id))
        applied = 0
        for event in ordered:
            if self.apply_event(event, replay=replay):
                applied += 1
        return applied

    def _find_row(self, key: AggregationKey) -> StatsRow | None:
        if key.scope == KeyScope.TEAM:
            stmt = select(GameStats).where(
                GameStats.game_id == key.game_id,
                GameStats.team_id == key.team_id,
            )
            quarter_col = GameStats.quarter
        else:
            stmt = select(PlayerGameStats).where(
                PlayerGameStats.game_id == key.game_id,
                PlayerGameStats.player_id == key.player_id,
            )
            quarter_col = PlayerGameStats.quarter

        if key.quarter is None:
            stmt = stmt.where(quarter_col.is_(None))
        else:
            stmt = stmt.where(quarter_col == key.quarter)
        return self.session.scalars(stmt).first()

    def _increment(self, key: AggregationKey, fields: dict[str, int]) -> StatsRow:
        row = self._find_row(key)
        if row is None:
            if key.scope == KeyScope.TEAM:
                row = _zeroed(
                    GameStats,
                    game_id=key.game_id,
                    team_id=key.team_id,
                    quarter=key.quarter,
                )
            else:
                row = _zeroed(
                    PlayerGameStats,
                    game_id=key.game_id,
                    player_id=key.player_id,
                    team_id=key.team_id,
                    quarter=key.quarter,
                )
            self.session.add(row)

        for name, amount in fields.items():
            setattr(row, name, (getattr(row, name) or 0) + amount)
        return row
