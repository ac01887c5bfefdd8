"""
Trainer CLI - validate catalogs and replay learner sessions.

Usage:
    trainer validate catalog.json            # Check a catalog (pipeline mode)
    trainer validate catalog.json --strict   # Exit 1 on any issue
    trainer replay catalog.json script.json  # Replay a learner script
    trainer summary outputs/analytics/x.json # Show an exported document
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import Settings, get_settings

from .catalog import DialogueScenario, load_catalog_file
from .clock import TickClock
from .context import TrainingContext
from .errors import TrainerError
from .replay import ReplayPlayer, load_script
from .session import ScenarioProgressionEngine
from .sinks import JsonFileSink

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="trainer",
    help="Scenario Trainer - sequence training scenarios and export session analytics",
    add_completion=True,
    rich_markup_mode="rich",
)

console = Console()


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    """Route loguru output to stderr (and optionally a rotating file)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=5)


def _summary_table(summary: dict) -> Table:
    table = Table(title="Session Summary", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in summary.items():
        table.add_row(key, str(value))
    return table


# =============================================================================
# Commands
# =============================================================================


@app.command()
def validate(
    catalog_path: Annotated[Path, typer.Argument(help="Scenario catalog (JSON)")],
    strict: Annotated[
        bool, typer.Option("--strict", help="Exit with code 1 on any issue")
    ] = False,
) -> None:
    """
    Validate a scenario catalog.

    Lists every parsed scenario, quarantined entries, and dialogue graph issues.
    """
    try:
        catalog = load_catalog_file(catalog_path)
    except TrainerError as e:
        console.print(f"[red]✗ {e}[/]")
        raise typer.Exit(1)

    table = Table(title=f"Catalog: {catalog.training_id}", show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Subtype")
    table.add_column("Key")
    for number, scenario in enumerate(catalog, start=1):
        table.add_row(str(number), scenario.id, scenario.type, scenario.subtype, scenario.content_key)
    console.print(table)

    issues = 0
    for entry in catalog.quarantined:
        issues += 1
        console.print(f"[yellow]⚠ Quarantined #{entry.index} ({entry.scenario_id}): {entry.reason}[/]")

    for scenario in catalog:
        if isinstance(scenario, DialogueScenario):
            for issue in scenario.graph().validate():
                issues += 1
                console.print(f"[yellow]⚠ Dialogue {scenario.id}: {issue.describe()}[/]")

    if not len(catalog):
        issues += 1
        console.print("[red]✗ Catalog has no valid scenarios[/]")

    if issues:
        console.print(f"[yellow]{issues} issue(s) found[/]")
        if strict:
            raise typer.Exit(1)
    else:
        console.print("[green]✓ Catalog is valid[/]")


@app.command()
def replay(
    catalog_path: Annotated[Path, typer.Argument(help="Scenario catalog (JSON)")],
    script_path: Annotated[Path, typer.Argument(help="Learner event script (JSON)")],
    out: Annotated[
        Path | None, typer.Option("--out", "-o", help="Export directory (overrides config)")
    ] = None,
    training_id: Annotated[
        str | None, typer.Option("--training-id", help="Override the catalog's training id")
    ] = None,
    auto_advance: Annotated[
        bool, typer.Option("--auto-advance/--no-auto-advance", help="Advance after each completed scenario")
    ] = True,
    print_json: Annotated[
        bool, typer.Option("--print", help="Print the exported document")
    ] = False,
) -> None:
    """
    Replay a learner script on a deterministic clock and export the session.

    Examples:
        trainer replay catalog.json script.json
        trainer replay catalog.json script.json --out ./exports --print
    """
    settings = get_settings()
    try:
        catalog = load_catalog_file(catalog_path, training_id)
        script = load_script(script_path)
    except TrainerError as e:
        console.print(f"[red]✗ {e}[/]")
        raise typer.Exit(1)

    sink = JsonFileSink(out or settings.export_dir)
    context = TrainingContext.create(settings=settings, clock=TickClock(), sink=sink)
    engine = ScenarioProgressionEngine(context)

    try:
        report = ReplayPlayer(engine, auto_advance=auto_advance).play(catalog, script)
    except TrainerError as e:
        console.print(f"[red]✗ {e}[/]")
        raise typer.Exit(1)

    for outcome in report.rejected:
        console.print(f"[yellow]⚠ step {outcome.index} ({outcome.action}): {outcome.message}[/]")

    export = report.export or engine.deliver()
    console.print(
        Panel(
            f"Session: {report.session.session_id}\n"
            f"Status: {report.session.status.value}\n"
            f"Engine: {report.final_state.value}",
            title=f"Replay: {catalog.training_id}",
            border_style="cyan",
        )
    )
    console.print(_summary_table(export.document["summary"]))
    if sink.last_path:
        console.print(f"[green]✓ Written to {sink.last_path}[/]")
    if print_json:
        console.print_json(export.payload)


@app.command()
def summary(
    document_path: Annotated[Path, typer.Argument(help="Exported session document (JSON)")],
) -> None:
    """Show the summary and per-interaction scores of an exported session."""
    try:
        with open(document_path, encoding="utf-8") as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]✗ Cannot read {document_path}: {e}[/]")
        raise typer.Exit(1)

    console.print(
        Panel(
            f"Training: {document.get('trainingId')}\n"
            f"Status: {document.get('completionStatus')}\n"
            f"Duration: {document.get('totalDuration')}s",
            title=f"Session {document.get('sessionId')}",
            border_style="cyan",
        )
    )

    table = Table(title="Interactions", show_header=True)
    table.add_column("Object", style="cyan")
    table.add_column("Type")
    table.add_column("Attempts", justify="right")
    table.add_column("Success")
    table.add_column("Score", justify="right")
    for interaction in document.get("interactions", []):
        table.add_row(
            str(interaction.get("objectId")),
            f"{interaction.get('type')}/{interaction.get('subtype')}",
            str(interaction.get("attempts")),
            "[green]yes[/]" if interaction.get("success") else "[red]no[/]",
            str(interaction.get("data", {}).get("finalScore")),
        )
    console.print(table)
    console.print(_summary_table(document.get("summary", {})))


# =============================================================================
# Entry Point
# =============================================================================


@app.callback()
def callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Verbose output")
    ] = False,
) -> None:
    """
    Scenario Trainer - sequence training scenarios and export session analytics

    \b
    Quick Start:
      trainer validate catalog.json
      trainer replay catalog.json script.json
      trainer summary outputs/analytics/<file>.json
    """
    configure_logging(get_settings(), verbose)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
