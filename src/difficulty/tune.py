# ABOUTME: Provides the CLI entrypoint for tuning difficulty weights from recorded sessions.
# ABOUTME: Loads configs and records, runs the grid search, and writes analysis artifacts.

import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn

from src.common.records import load_evaluations, load_exercises
from src.common.schemas import EvaluationRecord, ExerciseRecord, OptimizationProgress, OptimizationResult
from src.common.settings_store import UserSettingsStore

from .config import RunConfig, load_run_config
from .export import export_analysis, write_optimization_result
from .optimizer import grid_search

console = Console()
app = typer.Typer(help="Tune and export the synthetic difficulty model.")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def _load_config(config: Path) -> RunConfig:
    try:
        return load_run_config(config)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def load_records(run_config: RunConfig) -> Tuple[List[ExerciseRecord], List[EvaluationRecord]]:
    if run_config.exercises_path is None:
        raise ValueError("Config is missing data.exercises_path.")
    exercises = load_exercises(run_config.exercises_path)
    evaluations = load_evaluations(run_config.evaluations_path) if run_config.evaluations_path else []
    return exercises, evaluations


@app.command()
def tune(
    config: Path = typer.Option(..., "--config", exists=True, dir_okay=False, help="Path to analysis config YAML."),
    save_weights: bool = typer.Option(False, "--save-weights", help="Store the best weights for the configured user."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    """Grid-search weights and write optimization.json into the reports directory."""
    configure_logging(verbose)
    run_config = _load_config(config)
    try:
        result = tune_weights(run_config)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc

    console.print(f"[bold green]Best weights:[/bold green] {result.weights.as_dict()}")
    console.print(f"[bold]Composite score:[/bold] {result.composite_score:.4f}")
    console.print(f"[dim]Correlations: {result.correlations.as_dict()}[/dim]")

    if save_weights:
        if run_config.settings_store_path is None or run_config.user_id is None:
            raise typer.BadParameter(
                "settings.store_path and settings.user_id must be set to save weights.", param_hint="--config"
            )
        store = UserSettingsStore(run_config.settings_store_path)
        store.save_difficulty_weights(run_config.user_id, result.weights)
        console.print(f"[green]Saved weights for user {run_config.user_id} to {run_config.settings_store_path}[/green]")


@app.command()
def export(
    config: Path = typer.Option(..., "--config", exists=True, dir_okay=False, help="Path to analysis config YAML."),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", help="Directory to write exports."),
    use_saved_weights: bool = typer.Option(
        False, "--use-saved-weights", help="Score with the configured user's stored weights."
    ),
) -> None:
    """Export the exercise report and correlation summary."""
    configure_logging()
    run_config = _load_config(config)
    try:
        exercises, evaluations = load_records(run_config)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc

    analysis = run_config.analysis
    if use_saved_weights and run_config.settings_store_path is not None and run_config.user_id is not None:
        store = UserSettingsStore(run_config.settings_store_path)
        analysis = replace(analysis, weights=store.load_difficulty_weights(run_config.user_id))

    written = export_analysis(exercises, evaluations, analysis, output_dir or run_config.reports_dir)
    for name, path in written.items():
        console.print(f"[green]{name}[/green] → {path}")


def tune_weights(run_config: RunConfig) -> OptimizationResult:
    """
    Programmatic entrypoint mirrored by the Typer CLI.

    Raises ValueError when the config does not point at an exercise table.
    """

    exercises, evaluations = load_records(run_config)

    analysis = run_config.analysis
    optimizer = run_config.optimizer

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Searching weights...", total=optimizer.grid.size)

        def on_progress(update: OptimizationProgress) -> None:
            progress.update(task, completed=update.current)

        result = asyncio.run(
            grid_search(
                exercises,
                evaluations,
                analysis.mode_filter,
                analysis.detect_outliers,
                analysis.outlier_sensitivity,
                on_progress,
                grid=optimizer.grid,
                yield_every=optimizer.yield_every,
                skip_failed_cells=optimizer.skip_failed_cells,
            )
        )

    write_optimization_result(result, run_config.reports_dir / "optimization.json")
    return result


if __name__ == "__main__":
    app()
