# ABOUTME: Builds per-exercise and per-metric report tables from scored records.
# ABOUTME: Writes parquet and JSON artifacts consumed by dashboards and the report CLI.

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from src.common.schemas import MODE_ALL, DifficultyWeights, EvaluationRecord, ExerciseRecord, OptimizationResult

from .builder import analyze_all_metrics, collect_ratings_by_exercise, keystroke_efficiency, solve_time_seconds
from .config import AnalysisConfig
from .correlation import CorrelationSummary
from .scoring import calculate_difficulty_range, extract_features, matches_mode, normalize_difficulty, score_operands

EXERCISE_REPORT_COLUMNS = [
    "exercise_id",
    "operand_a",
    "operand_b",
    "answer",
    "mode",
    "total_digits",
    "carryovers",
    "zeros",
    "raw_difficulty",
    "difficulty",
    "solve_time_s",
    "keystroke_efficiency",
    "avg_rating",
    "rating_count",
]
CORRELATION_REPORT_COLUMNS = [
    "metric",
    "correlation",
    "r_squared",
    "strength",
    "sample_size",
    "outlier_count",
    "point_biserial",
]


def build_exercise_report(
    exercises: Sequence[ExerciseRecord],
    evaluations: Iterable[EvaluationRecord],
    weights: DifficultyWeights,
    mode_filter: str = MODE_ALL,
) -> pd.DataFrame:
    """
    One row per mode-matching exercise with its features and outcomes.

    ``avg_rating`` averages every valid rating that references the exercise;
    gated-out solve times and efficiencies are left as NaN.
    """

    difficulty_range = calculate_difficulty_range(exercises, weights, mode_filter)
    ratings = collect_ratings_by_exercise(evaluations, mode_filter)

    rows = []
    for exercise in exercises:
        if not matches_mode(exercise.mode, mode_filter):
            continue
        features = extract_features(exercise.operand_a, exercise.operand_b)
        raw = score_operands(exercise.operand_a, exercise.operand_b, weights)
        exercise_ratings = ratings.get(exercise.id, []) if exercise.id is not None else []
        solve_time = solve_time_seconds(exercise)
        efficiency = keystroke_efficiency(exercise)
        rows.append(
            {
                "exercise_id": exercise.id,
                "operand_a": exercise.operand_a,
                "operand_b": exercise.operand_b,
                "answer": exercise.answer,
                "mode": exercise.mode,
                "total_digits": features.total_digits,
                "carryovers": features.carryovers,
                "zeros": features.zeros,
                "raw_difficulty": raw,
                "difficulty": normalize_difficulty(raw, difficulty_range),
                "solve_time_s": np.nan if solve_time is None else solve_time,
                "keystroke_efficiency": np.nan if efficiency is None else efficiency,
                "avg_rating": float(np.mean(exercise_ratings)) if exercise_ratings else np.nan,
                "rating_count": len(exercise_ratings),
            }
        )

    if not rows:
        return pd.DataFrame(columns=EXERCISE_REPORT_COLUMNS)
    df = pd.DataFrame(rows, columns=EXERCISE_REPORT_COLUMNS)
    df["exercise_id"] = df["exercise_id"].astype("Int64")
    return df


def _summary_row(summary: CorrelationSummary) -> Dict:
    return {
        "metric": summary.metric,
        "correlation": summary.correlation,
        "r_squared": summary.r_squared,
        "strength": summary.strength,
        "sample_size": summary.sample_size,
        "outlier_count": summary.outlier_count,
        "point_biserial": summary.point_biserial,
    }


def build_correlation_report(summaries: Iterable[CorrelationSummary]) -> pd.DataFrame:
    rows = [_summary_row(summary) for summary in summaries]
    return pd.DataFrame(rows, columns=CORRELATION_REPORT_COLUMNS)


def write_optimization_result(result: OptimizationResult, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(result.as_dict(), indent=2), encoding="utf-8")


def export_analysis(
    exercises: Sequence[ExerciseRecord],
    evaluations: Sequence[EvaluationRecord],
    config: AnalysisConfig,
    output_dir: Path,
    optimization: Optional[OptimizationResult] = None,
) -> Dict[str, Path]:
    """
    Write the exercise report, correlation summary, and optional optimizer result.

    Returns the written artifact paths keyed by artifact name.
    """

    output_dir.mkdir(parents=True, exist_ok=True)
    written: Dict[str, Path] = {}

    exercise_report = build_exercise_report(exercises, evaluations, config.weights, config.mode_filter)
    exercise_path = output_dir / "exercise_report.parquet"
    exercise_report.to_parquet(exercise_path, index=False)
    written["exercise_report"] = exercise_path

    summaries = analyze_all_metrics(exercises, evaluations, config)
    correlations: List[Dict] = [_summary_row(summary) for summary in summaries]
    correlations_path = output_dir / "correlations.json"
    correlations_path.write_text(
        json.dumps(
            {
                "weights": config.weights.as_dict(),
                "mode_filter": config.mode_filter,
                "detect_outliers": config.detect_outliers,
                "outlier_sensitivity": config.outlier_sensitivity,
                "metrics": correlations,
            },
            indent=2,
        ),
        encoding="utf-8",
    )
    written["correlations"] = correlations_path

    if optimization is not None:
        optimization_path = output_dir / "optimization.json"
        write_optimization_result(optimization, optimization_path)
        written["optimization"] = optimization_path

    return written
