"""Aggregation engine for game, player and season statistics.

Submodules:
    classifier: Event to delta mapping
    aggregator: Incremental application of deltas
    recalculation: Rebuild of a game from its events
    rollup: Season records from finished games
    queries: Read access to aggregates
    validation: Invariant checks over stored aggregates
    reports: pandas box scores and season tables
    notifier: Change subscriptions
    service: Serialized mutation entry points

Example:
    >>> from stats_tracker.stats import StatsService
    >>> service = StatsService(session_factory)
    >>> service.recalculate(12)
"""
from __future__ import annotations

from stats_tracker.stats.aggregator import AggregationEngine
from stats_tracker.stats.classifier import (
    AggregationKey,
    EventClassification,
    KeyScope,
    StatDelta,
    classify_event,
)
from stats_tracker.stats.notifier import (
    ChangeKind,
    StatsChange,
    StatsNotifier,
    Subscription,
)
from stats_tracker.stats.queries import StatsQueryService
from stats_tracker.stats.recalculation import RecalculationDriver, RecalculationResult
from stats_tracker.stats.rollup import RollupResult, SeasonRollup
from stats_tracker.stats.service import StatsService
from stats_tracker.stats.validation import StatsValidator, ValidationResult

__all__ = [
    "AggregationEngine",
    "AggregationKey",
    "ChangeKind",
    "EventClassification",
    "KeyScope",
    "RecalculationDriver",
    "RecalculationResult",
    "RollupResult",
    "SeasonRollup",
    "StatDelta",
    "StatsChange",
    "StatsNotifier",
    "StatsQueryService",
    "StatsService",
    "StatsValidator",
    "Subscription",
    "ValidationResult",
    "classify_event",
]
