"""Basketball statistics aggregation engine.

Ingests discrete game events and maintains consistent team, player and
season statistics with quarter-level granularity and incremental updates.

Example:
    >>> from stats_tracker.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.db_path)
"""

from __future__ import annotations

__version__ = "0.1.0"
__author__ = "Stats Tracker Team"

# Public API exports
from stats_tracker.config import Settings, get_settings

__all__ = [
    "Settings",
    "__author__",
    "__version__",
    "get_settings",
]
