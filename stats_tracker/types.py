"""Type definitions, enumerations, protocols and exceptions.

This module defines the vocabulary shared by the data layer and the
aggregation engine: identifier aliases, the closed enumerations recorded
on games and events, the collaborator protocols the engine consumes, and
the error taxonomy it raises.

Example:
    >>> from stats_tracker.types import GameEventType, TrackingMode
    >>> GameEventType.THREE_POINTER_MADE.is_made_shot
    True
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from stats_tracker.data.models import GameEvent

# =============================================================================
# Type Aliases
# =============================================================================

PlayerId = int
TeamId = int
GameId = int
EventId = int
SeasonYear = int


# =============================================================================
# Enumerations
# =============================================================================


class GameTeamSide(str, Enum):
    """Team designation in a game context."""

    HOME = "HOME"
    AWAY = "AWAY"


class TrackingMode(str, Enum):
    """How statistics are recorded for one team in one game."""

    BY_PLAYER = "BY_PLAYER"
    BY_TEAM = "BY_TEAM"


class PlayerRole(str, Enum):
    """Player's role on a team."""

    STARTER = "STARTER"
    BENCH = "BENCH"
    COACH = "COACH"
    OTHER = "OTHER"


class GameStatus(str, Enum):
    """Lifecycle of a game with respect to aggregation."""

    RECORDING = "RECORDING"
    COMPLETED = "COMPLETED"
    ROLLED_UP = "ROLLED_UP"


class ReboundKind(str, Enum):
    """Offensive/defensive discriminator carried on REBOUND events."""

    OFFENSIVE = "offensive"
    DEFENSIVE = "defensive"


class FoulType(str, Enum):
    """Foul subtypes recorded on FOUL events."""

    PERSONAL = "personal"
    TECHNICAL = "technical"
    FLAGRANT = "flagrant"


class GameEventType(str, Enum):
    """Types of events that can occur during a basketball game."""

    TWO_POINTER_MADE = "TWO_POINTER_MADE"
    TWO_POINTER_MISSED = "TWO_POINTER_MISSED"
    THREE_POINTER_MADE = "THREE_POINTER_MADE"
    THREE_POINTER_MISSED = "THREE_POINTER_MISSED"
    FREE_THROW_MADE = "FREE_THROW_MADE"
    FREE_THROW_MISSED = "FREE_THROW_MISSED"
    REBOUND = "REBOUND"
    ASSIST = "ASSIST"
    STEAL = "STEAL"
    BLOCK = "BLOCK"
    TURNOVER = "TURNOVER"
    FOUL = "FOUL"
    SUBSTITUTION = "SUBSTITUTION"

    @property
    def is_shot(self) -> bool:
        """True for made and missed shots of any value."""
        return self in _SHOT_POINTS

    @property
    def is_made_shot(self) -> bool:
        """True for made shots of any value."""
        return self.is_shot and self.name.endswith("_MADE")

    @property
    def is_field_goal(self) -> bool:
        """True for two and three point attempts (not free throws)."""
        return self.is_shot and not self.name.startswith("FREE_THROW")

    @property
    def shot_points(self) -> int:
        """Point value implied by the shot type (0 for non-shots)."""
        return _SHOT_POINTS.get(self, 0)


_SHOT_POINTS: dict[GameEventType, int] = {
    GameEventType.TWO_POINTER_MADE: 2,
    GameEventType.TWO_POINTER_MISSED: 2,
    GameEventType.THREE_POINTER_MADE: 3,
    GameEventType.THREE_POINTER_MISSED: 3,
    GameEventType.FREE_THROW_MADE: 1,
    GameEventType.FREE_THROW_MISSED: 1,
}


# =============================================================================
# Protocols (collaborator contracts)
# =============================================================================


class EventSource(Protocol):
    """Read access to recorded game events."""

    def get_events_for_game(self, game_id: GameId) -> Sequence[GameEvent]:
        """Return a game's events ordered by timestamp, then insertion order."""
        ...

    def get_event(self, event_id: EventId) -> GameEvent | None:
        """Return a single event or None."""
        ...


class TrackingModeSource(Protocol):
    """Per-game, per-side tracking mode lookup."""

    def get_tracking_mode(self, game_id: GameId, side: GameTeamSide) -> TrackingMode:
        """Return how the given side of the game is being recorded."""
        ...


# =============================================================================
# Exceptions
# =============================================================================


class StatsTrackerError(Exception):
    """Base exception for stats tracker errors."""


class InvalidEvent(StatsTrackerError):
    """An event cannot be resolved into statistical deltas.

    Attributes:
        event_id: Id of the offending event, when it has one.
    """

    def __init__(self, message: str, event_id: EventId | None = None) -> None:
        self.event_id = event_id
        if event_id is not None:
            message = f"Event {event_id}: {message}"
        super().__init__(message)


class NotFound(StatsTrackerError):
    """A referenced game, player, event or stats record does not exist.

    Attributes:
        entity: Kind of record that was looked up.
        key: Identifier (or composite key) used in the lookup.
    """

    def __init__(self, entity: str, key: object) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class AlreadyRolledUp(StatsTrackerError):
    """A (player, game) pair has already been folded into a season record."""

    def __init__(self, player_id: PlayerId, game_id: GameId) -> None:
        self.player_id = player_id
        self.game_id = game_id
        super().__init__(
            f"Game {game_id} already rolled up into season stats for player {player_id}"
        )


class AggregationError(StatsTrackerError):
    """A multi-record stats update could not be completed.

    Raised with the underlying storage error chained; nothing from the
    failed unit is committed, so retrying the same event is safe.
    """


class GameStateError(StatsTrackerError):
    """An operation is not allowed in the game's current lifecycle state."""
