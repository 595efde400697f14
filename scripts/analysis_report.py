# ABOUTME: Provides a CLI that prints difficulty correlation reports for exported sessions.
# ABOUTME: Renders metric tables, success-rate buckets, and per-exercise feature breakdowns.

"""
Difficulty Analysis Report

Reads exported exercise and evaluation tables and prints how well the
synthetic difficulty score tracks solve time, effort ratings, and input
accuracy.

Usage:
    python scripts/analysis_report.py report --exercises-path data/exports/exercises.parquet
    python scripts/analysis_report.py buckets --mode serious
    python scripts/analysis_report.py score --a 345 --b 78
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from src.common.records import load_evaluations, load_exercises
from src.common.schemas import EXERCISE_MODES, MODE_ALL, DifficultyWeights
from src.difficulty.builder import (
    METRIC_DIFFICULTY_CORRECTNESS,
    METRIC_RATING_CORRECTNESS,
    analyze_all_metrics,
    build_metric_points,
    difficulty_success_buckets,
    rating_success_buckets,
)
from src.difficulty.config import AnalysisConfig
from src.difficulty.scoring import extract_features, score_operands

console = Console()
app = typer.Typer(help="Inspect how synthetic difficulty relates to observed outcomes.")


def _analysis_config(
    mode: str, digits: float, carryovers: float, zeros: float, detect_outliers: bool, sensitivity: float
) -> AnalysisConfig:
    normalized = mode.strip().lower()
    if normalized != MODE_ALL and normalized not in EXERCISE_MODES:
        raise typer.BadParameter(f"Unsupported mode '{mode}'.", param_hint="--mode")
    return AnalysisConfig(
        weights=DifficultyWeights(digits=digits, carryovers=carryovers, zeros=zeros),
        mode_filter=normalized,
        detect_outliers=detect_outliers,
        outlier_sensitivity=sensitivity,
    )


def _load(exercises_path: Path, evaluations_path: Optional[Path]):
    if not exercises_path.exists():
        console.print(f"[red]Exercises file not found: {exercises_path}[/red]")
        raise typer.Exit(code=1)
    exercises = load_exercises(exercises_path)
    evaluations = []
    if evaluations_path is not None:
        if not evaluations_path.exists():
            console.print(f"[red]Evaluations file not found: {evaluations_path}[/red]")
            raise typer.Exit(code=1)
        evaluations = load_evaluations(evaluations_path)
    console.print(f"[dim]Loaded {len(exercises):,} exercises and {len(evaluations):,} evaluations[/dim]")
    return exercises, evaluations


def _fmt(value: Optional[float]) -> str:
    return "n/a" if value is None else f"{value:+.3f}"


@app.command()
def report(
    exercises_path: Path = typer.Option(Path("data/exports/exercises.parquet"), "--exercises-path", help="Exercise table."),
    evaluations_path: Optional[Path] = typer.Option(
        None, "--evaluations-path", help="Evaluation table; rating metrics stay empty without it."
    ),
    mode: str = typer.Option(MODE_ALL, "--mode", help="Session mode filter: all, trial, or serious."),
    digits: float = typer.Option(1.0, "--digits", help="Digit-count weight."),
    carryovers: float = typer.Option(2.5, "--carryovers", help="Carry-count weight."),
    zeros: float = typer.Option(0.5, "--zeros", help="Zero-count weight."),
    detect_outliers: bool = typer.Option(True, "--detect-outliers/--keep-outliers", help="Drop IQR outliers."),
    sensitivity: float = typer.Option(1.5, "--sensitivity", help="IQR multiplier for outlier bounds."),
) -> None:
    """
    Print correlation, R², and strength for every metric pair.
    """
    config = _analysis_config(mode, digits, carryovers, zeros, detect_outliers, sensitivity)
    exercises, evaluations = _load(exercises_path, evaluations_path)

    console.rule("[bold blue]Difficulty Correlations[/bold blue]")
    console.print(f"[bold]Weights:[/] {config.weights.as_dict()}  [bold]Mode:[/] {config.mode_filter}")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric")
    table.add_column("r")
    table.add_column("R²")
    table.add_column("Strength")
    table.add_column("N")
    table.add_column("Outliers")
    for summary in analyze_all_metrics(exercises, evaluations, config):
        name = f"{summary.metric} (pb)" if summary.point_biserial else summary.metric
        table.add_row(
            name,
            _fmt(summary.correlation),
            _fmt(summary.r_squared),
            summary.strength,
            str(summary.sample_size),
            str(summary.outlier_count),
        )
    console.print(table)


@app.command()
def buckets(
    exercises_path: Path = typer.Option(Path("data/exports/exercises.parquet"), "--exercises-path", help="Exercise table."),
    evaluations_path: Optional[Path] = typer.Option(
        None, "--evaluations-path", help="Evaluation table; rating metrics stay empty without it."
    ),
    mode: str = typer.Option(MODE_ALL, "--mode", help="Session mode filter: all, trial, or serious."),
    digits: float = typer.Option(1.0, "--digits", help="Digit-count weight."),
    carryovers: float = typer.Option(2.5, "--carryovers", help="Carry-count weight."),
    zeros: float = typer.Option(0.5, "--zeros", help="Zero-count weight."),
) -> None:
    """
    Print ideal-input success rates by difficulty bucket and by rating.
    """
    config = _analysis_config(mode, digits, carryovers, zeros, False, 1.5)
    exercises, evaluations = _load(exercises_path, evaluations_path)

    difficulty_points = build_metric_points(METRIC_DIFFICULTY_CORRECTNESS, exercises, evaluations, config)
    rating_points = build_metric_points(METRIC_RATING_CORRECTNESS, exercises, evaluations, config)

    for title, frame in (
        ("Success rate by difficulty", difficulty_success_buckets(difficulty_points)),
        ("Success rate by rating", rating_success_buckets(rating_points)),
    ):
        console.print()
        console.print(f"[bold yellow]{title}[/bold yellow]")
        if frame.empty:
            console.print("[yellow]No qualifying samples.[/yellow]")
            continue
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Bucket")
        table.add_column("Success %")
        table.add_column("N")
        for row in frame.itertuples(index=False):
            table.add_row(row.label, f"{row.success_rate:.1f}", str(row.sample_size))
        console.print(table)


@app.command()
def score(
    a: int = typer.Option(..., "--a", min=0, help="First operand."),
    b: int = typer.Option(..., "--b", min=0, help="Second operand."),
    digits: float = typer.Option(1.0, "--digits", help="Digit-count weight."),
    carryovers: float = typer.Option(2.5, "--carryovers", help="Carry-count weight."),
    zeros: float = typer.Option(0.5, "--zeros", help="Zero-count weight."),
) -> None:
    """
    Show the feature breakdown and raw difficulty of a single exercise.
    """
    weights = DifficultyWeights(digits=digits, carryovers=carryovers, zeros=zeros)
    features = extract_features(a, b)
    console.print(f"[bold]{a} + {b} = {a + b}[/bold]")
    console.print(f"  total digits: {features.total_digits}")
    console.print(f"  carryovers:   {features.carryovers}")
    console.print(f"  zeros:        {features.zeros}")
    console.print(f"  raw score:    {score_operands(a, b, weights):.2f}")


if __name__ == "__main__":
    app()
