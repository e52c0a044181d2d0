"""Pydantic models for event records arriving from outside the process.

Bulk imports and the CLI validate raw dictionaries with these models
before anything touches the database.

Example:
    >>> payload = GameEventPayload.model_validate(
    ...     {"game_id": 1, "team": "HOME", "timestamp": 10,
    ...      "event_type": "TWO_POINTER_MADE", "player_id": 7, "quarter": 1}
    ... )
    >>> payload.to_model_fields()["event_type"]
    <GameEventType.TWO_POINTER_MADE: 'TWO_POINTER_MADE'>
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stats_tracker.types import GameEventType, GameTeamSide, ReboundKind


class GameEventPayload(BaseModel):
    """One externally supplied game event."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    game_id: int = Field(gt=0)
    team: GameTeamSide
    timestamp: int = Field(ge=0, description="Seconds from game start")
    event_type: GameEventType
    player_id: int | None = Field(default=None, gt=0)
    quarter: int | None = Field(default=None, ge=1)
    location_x: float | None = Field(default=None, ge=0.0, le=1.0)
    location_y: float | None = Field(default=None, ge=0.0, le=1.0)
    shot_distance: float | None = Field(default=None, ge=0.0)
    shot_result: Literal["made", "missed", "blocked"] | None = None
    assist_player_id: int | None = Field(default=None, gt=0)
    foul_type: str | None = None
    rebound_type: ReboundKind | None = None
    points_value: int | None = None

    @field_validator("team", "event_type", mode="before")
    @classmethod
    def upper_enum_names(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("foul_type", "shot_result", "rebound_type", mode="before")
    @classmethod
    def lower_subtypes(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.lower()
        return v

    def to_model_fields(self) -> dict[str, Any]:
        """Keyword arguments for constructing a ``GameEvent``."""
        fields = self.model_dump()
        if self.rebound_type is not None:
            fields["rebound_type"] = self.rebound_type.value
        return fields


class EventBatch(BaseModel):
    """A JSON document holding a list of events."""

    events: list[GameEventPayload]


def load_event_file(path: Path) -> list[GameEventPayload]:
    """Read and validate an events JSON file.

    Accepts either ``{"events": [...]}`` or a bare list.

    Raises:
        pydantic.ValidationError: If any record is malformed.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(raw, list):
        raw = {"events": raw}
    return EventBatch.model_validate(raw).events
