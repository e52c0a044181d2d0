"""Tabular reports built from the aggregate tables.

Box scores and season tables are returned as pandas DataFrames so they can
be printed, filtered or exported. Percentages are computed from the
counter columns when the frame is built; they are never read from storage.

Example:
    >>> from stats_tracker.stats.reports import box_score_frame
    >>> df = box_score_frame(session, game_id=12)
    >>> df[["player", "PTS", "FG%"]].head()
"""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from stats_tracker.data.models import Player, PlayerSeasonStats, Team
from stats_tracker.logging import get_logger
from stats_tracker.stats.queries import StatsQueryService

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = get_logger(__name__)

# Counter column -> box score heading
BOX_SCORE_COLUMNS: dict[str, str] = {
    "points": "PTS",
    "field_goals_made": "FGM",
    "field_goals_attempted": "FGA",
    "three_pointers_made": "3PM",
    "three_pointers_attempted": "3PA",
    "free_throws_made": "FTM",
    "free_throws_attempted": "FTA",
    "rebounds_offensive": "OREB",
    "rebounds_defensive": "DREB",
    "assists": "AST",
    "steals": "STL",
    "blocks": "BLK",
    "turnovers": "TOV",
    "fouls_personal": "PF",
    "fouls_technical": "TF",
}

SEASON_COLUMNS: dict[str, str] = {
    "games_played": "GP",
    "games_started": "GS",
    "total_minutes_played": "MIN",
    "points_total": "PTS",
    "field_goals_made": "FGM",
    "field_goals_attempted": "FGA",
    "three_pointers_made": "3PM",
    "three_pointers_attempted": "3PA",
    "free_throws_made": "FTM",
    "free_throws_attempted": "FTA",
    "rebounds_offensive": "OREB",
    "rebounds_defensive": "DREB",
    "assists_total": "AST",
    "steals_total": "STL",
    "blocks_total": "BLK",
    "turnovers_total": "TOV",
}


def _pct(made: pd.Series, attempted: pd.Series) -> pd.Series:
    """Ratio that is 0.0 where nothing was attempted."""
    ratio = made / attempted.replace(0, np.nan)
    return ratio.fillna(0.0).round(3)


def add_derived_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Add REB and shooting percentage columns to a box score frame."""
    if df.empty:
        return df
    df["REB"] = df["OREB"] + df["DREB"]
    df["FG%"] = _pct(df["FGM"], df["FGA"])
    df["3P%"] = _pct(df["3PM"], df["3PA"])
    df["FT%"] = _pct(df["FTM"], df["FTA"])
    return df


def _names(session: Session, model: type, ids: set[int]) -> dict[int, str]:
    if not ids:
        return {}
    rows = session.query(model).filter(model.id.in_(ids)).all()
    if model is Player:
        return {r.id: r.full_name for r in rows}
    return {r.id: r.name for r in rows}


def box_score_frame(
    session: Session, game_id: int, quarter: int | None = None
) -> pd.DataFrame:
    """Player box score of a game.

    Args:
        session: Database session.
        game_id: Game to report.
        quarter: Quarter to report; None for the full game.

    Returns:
        One row per player with counters, REB and shooting percentages,
        ordered by team and points.
    """
    rows = StatsQueryService(session).get_all_player_stats_for_game(
        game_id, quarter=quarter
    )
    players = _names(session, Player, {r.player_id for r in rows})
    teams = _names(session, Team, {r.team_id for r in rows})

    records = [
        {
            "player_id": r.player_id,
            "player": players.get(r.player_id, str(r.player_id)),
            "team": teams.get(r.team_id, str(r.team_id)),
            **{heading: getattr(r, name) or 0 for name, heading in BOX_SCORE_COLUMNS.items()},
            "+/-": r.plus_minus or 0,
        }
        for r in rows
    ]
    df = pd.DataFrame(
        records,
        columns=["player_id", "player", "team", *BOX_SCORE_COLUMNS.values(), "+/-"],
    )
    return add_derived_columns(df)


def team_totals_frame(
    session: Session, game_id: int, quarter: int | None = None
) -> pd.DataFrame:
    """Team rows of a game, one per team."""
    queries = StatsQueryService(session)
    rows = [
        r
        for r in queries.get_all_team_stats_for_game(game_id)
        if r.team_id is not None and r.quarter == quarter
    ]
    teams = _names(session, Team, {r.team_id for r in rows})

    records = [
        {
            "team_id": r.team_id,
            "team": teams.get(r.team_id, str(r.team_id)),
            **{heading: getattr(r, name) or 0 for name, heading in BOX_SCORE_COLUMNS.items()},
        }
        for r in rows
    ]
    df = pd.DataFrame(records, columns=["team_id", "team", *BOX_SCORE_COLUMNS.values()])
    return add_derived_columns(df)


def season_frame(
    session: Session, season_year: int, team_id: int | None = None
) -> pd.DataFrame:
    """Season table with totals and per-game averages.

    Args:
        session: Database session.
        season_year: Season to report.
        team_id: Restrict to one team.

    Returns:
        One row per season record, highest scoring average first.
    """
    query = session.query(PlayerSeasonStats).filter(
        PlayerSeasonStats.season_year == season_year
    )
    if team_id is not None:
        query = query.filter(PlayerSeasonStats.team_id == team_id)
    records_in = query.all()

    players = _names(session, Player, {r.player_id for r in records_in})
    teams = _names(session, Team, {r.team_id for r in records_in if r.team_id is not None})

    records = [
        {
            "player_id": r.player_id,
            "player": players.get(r.player_id, str(r.player_id)),
            "team": teams.get(r.team_id, "") if r.team_id is not None else "",
            **{heading: getattr(r, name) or 0 for name, heading in SEASON_COLUMNS.items()},
        }
        for r in records_in
    ]
    df = pd.DataFrame(
        records, columns=["player_id", "player", "team", *SEASON_COLUMNS.values()]
    )
    if df.empty:
        return df

    df = add_derived_columns(df)
    games = df["GP"].replace(0, np.nan)
    for column in ("PTS", "REB", "AST", "MIN"):
        df[f"{column}/G"] = (df[column] / games).fillna(0.0).round(1)
    return df.sort_values(["PTS/G", "player_id"], ascending=[False, True]).reset_index(
        drop=True
    )


def export_box_score_csv(
    session: Session,
    game_id: int,
    path: Path,
    quarter: int | None = None,
) -> Path:
    """Write a game's box score to CSV and return the path written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = box_score_frame(session, game_id, quarter)
    df.to_csv(path, index=False)
    logger.info(f"Exported box score of game {game_id} ({len(df)} rows) to {path}")
    return path
