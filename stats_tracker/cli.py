"""CLI entrypoint using Typer.

This module defines the command-line interface for the stats tracker.
Commands are organized into subcommand groups for database setup, event
import and correction, game statistics, and season statistics.

Example:
    $ stats-tracker --help
    $ stats-tracker events import events.json
    $ stats-tracker stats box-score 12 --quarter 2
    $ stats-tracker season leaders 2024 --stat assists
"""

from __future__ import annotations

import json
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from stats_tracker import __version__
from stats_tracker.config import get_settings
from stats_tracker.logging import setup_logging
from stats_tracker.types import StatsTrackerError

if TYPE_CHECKING:
    import pandas as pd
    from sqlalchemy.orm import Session, sessionmaker

# Initialize console for rich output
console = Console()

# Create main app
app = typer.Typer(
    name="stats-tracker",
    help="Basketball statistics aggregation CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Create subcommand groups
db_app = typer.Typer(
    name="db",
    help="Database management commands",
    no_args_is_help=True,
)
events_app = typer.Typer(
    name="events",
    help="Event import and correction commands",
    no_args_is_help=True,
)
stats_app = typer.Typer(
    name="stats",
    help="Game statistics commands",
    no_args_is_help=True,
)
season_app = typer.Typer(
    name="season",
    help="Season rollup and reporting commands",
    no_args_is_help=True,
)

# Register subcommand groups
app.add_typer(db_app, name="db")
app.add_typer(events_app, name="events")
app.add_typer(stats_app, name="stats")
app.add_typer(season_app, name="season")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]stats-tracker[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-V",
            help="Enable verbose output",
        ),
    ] = False,
) -> None:
    """Basketball statistics aggregation CLI.

    Imports game events, maintains team, player and season statistics,
    and prints box scores and leaderboards.
    """
    settings = get_settings()
    log_level = "DEBUG" if verbose else settings.log_level
    setup_logging(level=log_level, log_dir=settings.log_dir_obj)


# =============================================================================
# Helpers
# =============================================================================


def _open_database() -> sessionmaker[Session]:
    """Create the configured database if needed and return a session factory."""
    from stats_tracker.data import create_session_factory, engine_from_settings, init_db

    settings = get_settings()
    settings.ensure_directories()
    engine = engine_from_settings(settings)
    init_db(engine)
    return create_session_factory(engine)


def _service():
    from stats_tracker.stats.service import StatsService

    return StatsService(_open_database(), get_settings())


@contextmanager
def _fail_on_error() -> Generator[None, None, None]:
    """Turn domain and validation errors into a red message and exit code 1."""
    try:
        yield
    except (StatsTrackerError, ValidationError, json.JSONDecodeError) as e:
        console.print(f"[red]\\[FAIL] {escape(str(e))}[/red]")
        raise typer.Exit(1) from e


def _print_frame(df: pd.DataFrame, title: str, columns: list[str]) -> None:
    table = Table(title=title)
    for i, column in enumerate(columns):
        if i == 0:
            table.add_column(column, style="cyan")
        else:
            table.add_column(column, justify="right")
    for _, row in df.iterrows():
        cells = []
        for column in columns:
            value = row[column]
            cells.append(f"{value:.3f}" if isinstance(value, float) else str(value))
        table.add_row(*cells)
    console.print(table)


# =============================================================================
# Database Commands
# =============================================================================


@db_app.command("init")
def db_init() -> None:
    """Create the database and all tables."""
    from stats_tracker.data import engine_from_settings, verify_foreign_keys_enabled

    settings = get_settings()
    _open_database()
    fk = verify_foreign_keys_enabled(engine_from_settings(settings))

    console.print(
        Panel(
            f"[bold]Database:[/bold] {settings.db_path}\n"
            f"[bold]Foreign keys:[/bold] {'on' if fk else '[yellow]off[/yellow]'}",
            title="Database Initialized",
        )
    )


# =============================================================================
# Event Commands
# =============================================================================


@events_app.command("import")
def events_import(
    file: Annotated[
        Path,
        typer.Argument(help="JSON file with an events list", exists=True, dir_okay=False),
    ],
) -> None:
    """Import events from a JSON file and recalculate the games they touch."""
    from stats_tracker.data import load_event_file

    with _fail_on_error():
        payloads = load_event_file(file)
        results = _service().import_events(payloads)

    table = Table(title=f"Imported {len(payloads)} events")
    table.add_column("Game", style="cyan")
    table.add_column("Events", justify="right")
    table.add_column("Rows", justify="right")
    table.add_column("Warnings", justify="right")
    for game_id, result in results.items():
        table.add_row(
            str(game_id),
            str(result.events_replayed),
            str(result.rows_written),
            str(len(result.warnings)),
        )
    console.print(table)

    for result in results.values():
        for warning in result.warnings[:10]:
            console.print(f"[yellow]  - {escape(warning)}[/yellow]")


@events_app.command("undo")
def events_undo(
    game_id: Annotated[int, typer.Argument(help="Game to undo the last event of")],
) -> None:
    """Delete the latest event of a game and recalculate it."""
    with _fail_on_error():
        event = _service().undo_last_event(game_id)

    if event is None:
        console.print(f"[yellow]Game {game_id} has no events[/yellow]")
        return
    console.print(
        f"[green]Removed event {event.id}[/green] "
        f"({event.event_type.value} at t={event.timestamp}s)"
    )


# =============================================================================
# Game Statistics Commands
# =============================================================================


@stats_app.command("recalc")
def stats_recalc(
    game_id: Annotated[int, typer.Argument(help="Game to recalculate")],
) -> None:
    """Rebuild a game's statistics from its events."""
    with _fail_on_error():
        result = _service().recalculate(game_id)

    console.print(f"[green]Game {game_id} recalculated[/green]")
    console.print(f"Events replayed: {result.events_replayed}")
    console.print(f"Rows written: {result.rows_written}")
    console.print(f"Duration: {result.duration_seconds:.2f}s")
    if result.warnings:
        console.print(f"\n[yellow]Warnings ({len(result.warnings)}):[/yellow]")
        for warning in result.warnings[:10]:
            console.print(f"  - {escape(warning)}")
        if len(result.warnings) > 10:
            console.print(f"  ... and {len(result.warnings) - 10} more")


@stats_app.command("box-score")
def stats_box_score(
    game_id: Annotated[int, typer.Argument(help="Game to show")],
    quarter: Annotated[
        int | None,
        typer.Option("--quarter", "-q", help="Show one quarter", min=1),
    ] = None,
    csv: Annotated[
        Path | None,
        typer.Option("--csv", help="Also write the box score to this CSV file"),
    ] = None,
) -> None:
    """Print a game's player and team box score."""
    from stats_tracker.data import GameRepository, session_scope
    from stats_tracker.stats.reports import (
        box_score_frame,
        export_box_score_csv,
        team_totals_frame,
    )

    factory = _open_database()
    with _fail_on_error(), session_scope(factory) as session:
        GameRepository(session).require_game(game_id)
        players = box_score_frame(session, game_id, quarter)
        teams = team_totals_frame(session, game_id, quarter)
        if csv is not None:
            export_box_score_csv(session, game_id, csv, quarter)

    label = f"Q{quarter}" if quarter is not None else "Full game"
    if players.empty and teams.empty:
        console.print(f"[yellow]No statistics for game {game_id} ({label})[/yellow]")
        return

    columns = [
        "PTS", "FGM", "FGA", "FG%", "3PM", "3PA", "FTM", "FTA",
        "REB", "AST", "STL", "BLK", "TOV", "PF",
    ]
    if not players.empty:
        _print_frame(players, f"Game {game_id} - {label}", ["player", "team", *columns])
    _print_frame(teams, "Team totals", ["team", *columns])
    if csv is not None:
        console.print(f"[green]Box score written to {csv}[/green]")


@stats_app.command("verify")
def stats_verify(
    game_id: Annotated[int, typer.Argument(help="Game to verify")],
) -> None:
    """Check a game's statistics against their invariants."""
    from stats_tracker.data import session_scope
    from stats_tracker.stats.validation import StatsValidator

    factory = _open_database()
    with session_scope(factory) as session:
        result = StatsValidator(get_settings().regulation_quarters).validate_game(
            session, game_id
        )

    for warning in result.warnings:
        console.print(f"[yellow]  - {escape(warning)}[/yellow]")
    if not result.valid:
        for error in result.errors:
            console.print(f"[red]\\[FAIL] {escape(error)}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Game {game_id} statistics are consistent[/green]")


# =============================================================================
# Season Commands
# =============================================================================


@season_app.command("complete")
def season_complete(
    game_id: Annotated[int, typer.Argument(help="Game that finished recording")],
) -> None:
    """Mark a game as completed so it can be rolled up."""
    with _fail_on_error():
        game = _service().complete_game(game_id)
    console.print(f"[green]Game {game_id} is {game.status.value}[/green]")


@season_app.command("rollup")
def season_rollup(
    game_id: Annotated[int, typer.Argument(help="Completed game to roll up")],
    season: Annotated[
        int | None,
        typer.Option("--season", "-s", help="Season year (defaults to the game's)"),
    ] = None,
) -> None:
    """Fold every player of a completed game into their season records."""
    with _fail_on_error():
        result = _service().rollup_completed_game(game_id, season)

    console.print(
        f"[green]Game {game_id} rolled into season {result.season_year}[/green]: "
        f"{len(result.players_rolled_up)} players, "
        f"{len(result.players_skipped)} already rolled up"
    )


@season_app.command("rebuild")
def season_rebuild(
    season_year: Annotated[int, typer.Argument(help="Season year to rebuild")],
) -> None:
    """Recompute a season's records from its finished games."""
    with _fail_on_error():
        result = _service().rebuild_season(season_year)

    console.print(
        f"[green]Season {season_year} rebuilt[/green] from {len(result.games)} games "
        f"({len(result.players_rolled_up)} player games)"
    )


@season_app.command("show")
def season_show(
    player_id: Annotated[int, typer.Argument(help="Player id")],
    season_year: Annotated[int, typer.Argument(help="Season year")],
    team: Annotated[
        int | None,
        typer.Option("--team", "-t", help="Team grouping (all teams if omitted)"),
    ] = None,
) -> None:
    """Show a player's season totals and averages."""
    from stats_tracker.data import session_scope
    from stats_tracker.stats.queries import StatsQueryService

    factory = _open_database()
    with session_scope(factory) as session:
        record = StatsQueryService(session).get_season_stats(player_id, season_year, team)

    if record is None:
        console.print(
            f"[red]\\[FAIL] No season statistics for player {player_id} in {season_year}[/red]"
        )
        raise typer.Exit(1)

    table = Table(title=f"Player {player_id} - {season_year}")
    table.add_column("Stat", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Games played", str(record.games_played))
    table.add_row("Games started", str(record.games_started))
    table.add_row("Minutes", str(record.total_minutes_played))
    table.add_row("Points", str(record.points_total))
    table.add_row("Rebounds", str(record.total_rebounds))
    table.add_row("Assists", str(record.assists_total))
    table.add_row("PPG", f"{record.points_per_game:.1f}")
    table.add_row("RPG", f"{record.rebounds_per_game:.1f}")
    table.add_row("APG", f"{record.assists_per_game:.1f}")
    table.add_row("FG%", f"{record.field_goal_percentage:.3f}")
    table.add_row("3P%", f"{record.three_point_percentage:.3f}")
    table.add_row("FT%", f"{record.free_throw_percentage:.3f}")
    console.print(table)


@season_app.command("leaders")
def season_leaders(
    season_year: Annotated[int, typer.Argument(help="Season year")],
    stat: Annotated[
        str,
        typer.Option(
            "--stat",
            "-s",
            help="points, rebounds, assists, steals, blocks or a percentage",
        ),
    ] = "points",
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", help="Rows to show", min=1),
    ] = None,
    min_attempts: Annotated[
        int | None,
        typer.Option(
            "--min-attempts",
            help="Minimum attempts for percentage leaders (default 50 FG, 25 3P/FT)",
            min=0,
        ),
    ] = None,
) -> None:
    """Show the season leaderboard for one stat."""
    from stats_tracker.data import Player, session_scope
    from stats_tracker.stats.queries import StatsQueryService

    factory = _open_database()
    limit = limit or get_settings().leaderboard_limit
    try:
        with session_scope(factory) as session:
            leaders = StatsQueryService(session).get_season_leaders(
                season_year, stat, limit, min_attempts
            )
            names = {
                p.id: p.full_name
                for p in session.query(Player).filter(
                    Player.id.in_([r.player_id for r in leaders])
                )
            }
    except ValueError as e:
        console.print(f"[red]\\[FAIL] {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    if not leaders:
        console.print(f"[yellow]No season statistics for {season_year}[/yellow]")
        return

    percentage = stat.endswith("percentage")
    table = Table(title=f"{season_year} leaders - {stat}")
    table.add_column("#", justify="right")
    table.add_column("Player", style="cyan")
    table.add_column("GP", justify="right")
    table.add_column("Value", justify="right")
    for rank, record in enumerate(leaders, start=1):
        value = {
            "points": record.points_total,
            "rebounds": record.total_rebounds,
            "assists": record.assists_total,
            "steals": record.steals_total,
            "blocks": record.blocks_total,
            "field_goal_percentage": record.field_goal_percentage,
            "three_point_percentage": record.three_point_percentage,
            "free_throw_percentage": record.free_throw_percentage,
        }[stat]
        table.add_row(
            str(rank),
            names.get(record.player_id, str(record.player_id)),
            str(record.games_played),
            f"{value:.3f}" if percentage else str(value),
        )
    console.print(table)


if __name__ == "__main__":
    app()
