"""Event classification: mapping one game event to statistical deltas.

Classification is pure computation. Given an event, the tracking mode of
the side it belongs to and the game's team ids, it returns the counter
increments the event contributes and the aggregate rows they apply to:

- the team full-game row, always;
- the team quarter row, when the event carries a quarter;
- the player full-game and quarter rows, when a player is attached and
  the side is tracked BY_PLAYER.

Mapping (counter names match the ``game_stats`` columns):

    TWO_POINTER_MADE      points+2, field_goals_made+1, field_goals_attempted+1
    TWO_POINTER_MISSED    field_goals_attempted+1
    THREE_POINTER_MADE    points+3, field goals and three pointers made/attempted+1
    THREE_POINTER_MISSED  field_goals_attempted+1, three_pointers_attempted+1
    FREE_THROW_MADE       points+1, free_throws_made+1, free_throws_attempted+1
    FREE_THROW_MISSED     free_throws_attempted+1
    REBOUND               rebounds_offensive+1 or rebounds_defensive+1
    ASSIST                assists+1 (assist_source="event")
    STEAL/BLOCK/TURNOVER  steals/blocks/turnovers+1
    FOUL                  fouls_technical+1 for technicals, else fouls_personal+1
    SUBSTITUTION          nothing

Example:
    >>> result = classify_event(event, TrackingMode.BY_PLAYER,
    ...                         home_team_id=1, away_team_id=2)
    >>> result.deltas[0].fields
    {'points': 2, 'field_goals_made': 1, 'field_goals_attempted': 1}
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Literal

from stats_tracker.logging import WARN, get_logger
from stats_tracker.types import (
    FoulType,
    GameEventType,
    GameTeamSide,
    InvalidEvent,
    ReboundKind,
    TrackingMode,
)

if TYPE_CHECKING:
    from stats_tracker.data.models import GameEvent

logger = get_logger(__name__)

AssistSource = Literal["event", "inline"]

VALID_POINT_VALUES = (1, 2, 3)

# Events that describe an individual player's action
PLAYER_SCOPED_EVENTS = frozenset(
    {
        GameEventType.TWO_POINTER_MADE,
        GameEventType.TWO_POINTER_MISSED,
        GameEventType.THREE_POINTER_MADE,
        GameEventType.THREE_POINTER_MISSED,
        GameEventType.FREE_THROW_MADE,
        GameEventType.FREE_THROW_MISSED,
        GameEventType.REBOUND,
        GameEventType.ASSIST,
        GameEventType.STEAL,
        GameEventType.BLOCK,
        GameEventType.TURNOVER,
        GameEventType.FOUL,
    }
)

_SINGLE_COUNTER: dict[GameEventType, str] = {
    GameEventType.STEAL: "steals",
    GameEventType.BLOCK: "blocks",
    GameEventType.TURNOVER: "turnovers",
}


class KeyScope(str, Enum):
    """Granularity of an aggregate row."""

    TEAM = "team"
    PLAYER = "player"


@dataclass(frozen=True)
class AggregationKey:
    """Composite key of one aggregate row.

    Attributes:
        scope: TEAM for ``game_stats``, PLAYER for ``player_game_stats``.
        game_id: Game the row belongs to.
        team_id: Team of the row (the player's team for player rows).
        player_id: Player of the row; None for team rows.
        quarter: Quarter of the row; None for the full-game row.
    """

    scope: KeyScope
    game_id: int
    team_id: int
    player_id: int | None = None
    quarter: int | None = None

    @property
    def is_full_game(self) -> bool:
        return self.quarter is None


@dataclass
class StatDelta:
    """Counter increments and the rows they apply to."""

    fields: dict[str, int]
    keys: list[AggregationKey] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.fields or not self.keys


@dataclass
class EventClassification:
    """Everything one event contributes.

    Attributes:
        event_id: Classified event.
        deltas: Increments with their target rows.
        warnings: Data-quality notes (e.g. defaulted rebound kind).
    """

    event_id: int | None
    deltas: list[StatDelta] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return all(delta.is_empty for delta in self.deltas)

    def keys(self) -> list[AggregationKey]:
        return [key for delta in self.deltas for key in delta.keys]


def shot_fields(event_type: GameEventType, points_value: int | None = None) -> dict[str, int]:
    """Counter increments for a made or missed shot.

    Args:
        event_type: A shot event type.
        points_value: Explicit point value for made shots.

    Returns:
        Mapping of counter name to increment.
    """
    fields: dict[str, int] = {}
    made = event_type.is_made_shot

    if event_type.is_field_goal:
        fields["field_goals_attempted"] = 1
        if made:
            fields["field_goals_made"] = 1
        if event_type.shot_points == 3:
            fields["three_pointers_attempted"] = 1
            if made:
                fields["three_pointers_made"] = 1
    else:
        fields["free_throws_attempted"] = 1
        if made:
            fields["free_throws_made"] = 1

    if made:
        fields["points"] = points_value if points_value is not None else event_type.shot_points

    return fields


def _resolve_points(event: GameEvent) -> int | None:
    """Validate shot point semantics and return the override, if any."""
    event_type = GameEventType(event.event_type)
    result = (event.shot_result or "").lower() or None

    if result is not None:
        if event_type.is_made_shot and result != "made":
            raise InvalidEvent(
                f"{event_type.value} recorded with shot_result={result!r}", event.id
            )
        if not event_type.is_made_shot and result == "made":
            raise InvalidEvent(
                f"{event_type.value} recorded with shot_result='made'", event.id
            )

    if event.points_value is None:
        return None
    if event.points_value not in VALID_POINT_VALUES:
        raise InvalidEvent(
            f"points_value={event.points_value} is not one of {VALID_POINT_VALUES}",
            event.id,
        )
    return event.points_value if event_type.is_made_shot else None


def _rebound_fields(
    event: GameEvent, strict: bool, warnings: list[str]
) -> dict[str, int]:
    kind = (event.rebound_type or "").lower() or None
    if kind == ReboundKind.OFFENSIVE.value:
        return {"rebounds_offensive": 1}
    if kind == ReboundKind.DEFENSIVE.value:
        return {"rebounds_defensive": 1}
    if kind is not None:
        raise InvalidEvent(f"unknown rebound_type {event.rebound_type!r}", event.id)
    if strict:
        raise InvalidEvent("rebound recorded without rebound_type", event.id)
    warnings.append(
        f"Event {event.id}: rebound without rebound_type counted as defensive"
    )
    return {"rebounds_defensive": 1}


def _foul_fields(event: GameEvent, warnings: list[str]) -> dict[str, int]:
    subtype = (event.foul_type or "").lower() or None
    if subtype == FoulType.TECHNICAL.value:
        return {"fouls_technical": 1}
    if subtype not in (None, FoulType.PERSONAL.value, FoulType.FLAGRANT.value):
        warnings.append(
            f"Event {event.id}: unknown foul_type {event.foul_type!r} counted as personal"
        )
    return {"fouls_personal": 1}


def _keys_for(
    game_id: int,
    team_id: int,
    quarter: int | None,
    player_id: int | None,
) -> list[AggregationKey]:
    keys = [AggregationKey(KeyScope.TEAM, game_id, team_id, None, None)]
    if quarter is not None:
        keys.append(AggregationKey(KeyScope.TEAM, game_id, team_id, None, quarter))
    if player_id is not None:
        keys.append(AggregationKey(KeyScope.PLAYER, game_id, team_id, player_id, None))
        if quarter is not None:
            keys.append(
                AggregationKey(KeyScope.PLAYER, game_id, team_id, player_id, quarter)
            )
    return keys


def classify_event(
    event: GameEvent,
    tracking_mode: TrackingMode,
    *,
    home_team_id: int,
    away_team_id: int,
    assist_source: AssistSource = "event",
    strict_rebound_kind: bool = False,
) -> EventClassification:
    """Resolve an event into the deltas it contributes.

    Args:
        event: Event to classify.
        tracking_mode: Tracking mode of the side the event belongs to.
        home_team_id: Home team of the event's game.
        away_team_id: Away team of the event's game.
        assist_source: "event" credits standalone ASSIST events; "inline"
            credits ``assist_player_id`` on made field goals instead.
        strict_rebound_kind: Reject rebounds without ``rebound_type``.

    Returns:
        EventClassification with deltas and data-quality warnings.

    Raises:
        InvalidEvent: If the event cannot be resolved.
    """
    event_type = GameEventType(event.event_type)
    side = GameTeamSide(event.team)
    team_id = home_team_id if side == GameTeamSide.HOME else away_team_id
    result = EventClassification(event_id=event.id)

    if event.timestamp is None or event.timestamp < 0:
        raise InvalidEvent(f"timestamp {event.timestamp} must be >= 0", event.id)
    if event.quarter is not None and event.quarter < 1:
        raise InvalidEvent(f"quarter {event.quarter} must be >= 1", event.id)

    by_player = TrackingMode(tracking_mode) == TrackingMode.BY_PLAYER
    if by_player and event_type in PLAYER_SCOPED_EVENTS and event.player_id is None:
        raise InvalidEvent(
            f"{event_type.value} has no player but {side.value} is tracked BY_PLAYER",
            event.id,
        )
    player_id = event.player_id if by_player else None

    fields: dict[str, int] = {}
    if event_type.is_shot:
        fields = shot_fields(event_type, _resolve_points(event))
    elif event_type == GameEventType.REBOUND:
        fields = _rebound_fields(event, strict_rebound_kind, result.warnings)
    elif event_type == GameEventType.ASSIST:
        if assist_source == "event":
            fields = {"assists": 1}
        else:
            result.warnings.append(
                f"Event {event.id}: standalone ASSIST ignored, assists are credited "
                "from assist_player_id on made shots"
            )
    elif event_type == GameEventType.FOUL:
        fields = _foul_fields(event, result.warnings)
    elif event_type in _SINGLE_COUNTER:
        fields = {_SINGLE_COUNTER[event_type]: 1}
    # SUBSTITUTION only affects time-played bookkeeping

    if fields:
        result.deltas.append(
            StatDelta(fields, _keys_for(event.game_id, team_id, event.quarter, player_id))
        )

    if (
        assist_source == "inline"
        and event_type.is_made_shot
        and event_type.is_field_goal
        and event.assist_player_id is not None
    ):
        if event.assist_player_id == event.player_id:
            raise InvalidEvent("a shooter cannot assist their own basket", event.id)
        passer = event.assist_player_id if by_player else None
        result.deltas.append(
            StatDelta(
                {"assists": 1},
                _keys_for(event.game_id, team_id, event.quarter, passer),
            )
        )

    for warning in result.warnings:
        logger.warning(f"{WARN} {warning}")

    return result
