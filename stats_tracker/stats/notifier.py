"""Change notification for stats consumers.

Readers that want live updates (a scoreboard, a report refresher)
subscribe to a ``StatsNotifier``. The service publishes a ``StatsChange``
after each committed write; subscribers then re-read through the query
service. Notification is decoupled from the write path: a failing
subscriber is logged and never affects the write that triggered it.

Example:
    >>> notifier = StatsNotifier()
    >>> sub = notifier.subscribe(lambda change: print(change), game_id=12)
    >>> notifier.publish(StatsChange(ChangeKind.EVENT_APPLIED, game_id=12))
    >>> sub.cancel()
"""
from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from stats_tracker.logging import get_logger

logger = get_logger(__name__)


class ChangeKind(str, Enum):
    """What kind of write produced a change."""

    EVENT_APPLIED = "event_applied"
    EVENT_DELETED = "event_deleted"
    GAME_RECALCULATED = "game_recalculated"
    GAME_COMPLETED = "game_completed"
    SEASON_UPDATED = "season_updated"


@dataclass(frozen=True)
class StatsChange:
    """A committed change to aggregate statistics.

    Attributes:
        kind: Type of write.
        game_id: Affected game, if any.
        season_year: Affected season, for rollups.
        player_id: Affected player, when a single player changed.
        event_id: Event that triggered the change.
    """

    kind: ChangeKind
    game_id: int | None = None
    season_year: int | None = None
    player_id: int | None = None
    event_id: int | None = None


Callback = Callable[[StatsChange], None]


class Subscription:
    """Handle returned by ``StatsNotifier.subscribe``."""

    def __init__(
        self, notifier: StatsNotifier, callback: Callback, game_id: int | None
    ) -> None:
        self._notifier = notifier
        self.callback = callback
        self.game_id = game_id
        self.active = True

    def matches(self, change: StatsChange) -> bool:
        return self.game_id is None or change.game_id == self.game_id

    def cancel(self) -> None:
        """Stop receiving changes. Safe to call more than once."""
        if self.active:
            self.active = False
            self._notifier._remove(self)


class StatsNotifier:
    """Thread-safe publish/subscribe hub for ``StatsChange`` messages."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callback, game_id: int | None = None) -> Subscription:
        """Register a callback.

        Args:
            callback: Called with each matching change.
            game_id: Only deliver changes for this game; None delivers all.

        Returns:
            Subscription that can be cancelled.
        """
        subscription = Subscription(self, callback, game_id)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, change: StatsChange) -> int:
        """Deliver a change to every matching subscriber.

        Returns:
            Number of subscribers that received the change without error.
        """
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(change)]

        delivered = 0
        for subscription in targets:
            try:
                subscription.callback(change)
                delivered += 1
            except Exception:
                logger.exception(
                    f"Stats subscriber failed on {change.kind.value} "
                    f"for game {change.game_id}"
                )
        return delivered
