# ABOUTME: Turns raw exercise and evaluation collections into filtered correlation point sets.
# ABOUTME: Applies mode, rating, solve-time, and keystroke gates and reports bucketed success rates.

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from src.common.schemas import (
    MAX_RATING,
    MIN_RATING,
    MODE_ALL,
    DataPoint,
    DifficultyRange,
    DifficultyWeights,
    EvaluationRecord,
    ExerciseRecord,
)

from .config import AnalysisConfig
from .correlation import CorrelationSummary, summarize_points
from .scoring import calculate_difficulty_range, calculate_difficulty_score, matches_mode, normalize_difficulty

logger = logging.getLogger(__name__)

METRIC_DIFFICULTY_TIME = "difficulty_time"
METRIC_DIFFICULTY_RATING = "difficulty_rating"
METRIC_DIFFICULTY_CORRECTNESS = "difficulty_correctness"
METRIC_RATING_CORRECTNESS = "rating_correctness"
METRIC_EFFICIENCY_RATING = "efficiency_rating"
METRIC_TIME_RATING = "time_rating"
METRICS = (
    METRIC_DIFFICULTY_TIME,
    METRIC_DIFFICULTY_RATING,
    METRIC_DIFFICULTY_CORRECTNESS,
    METRIC_RATING_CORRECTNESS,
    METRIC_EFFICIENCY_RATING,
    METRIC_TIME_RATING,
)
BINARY_METRICS = {METRIC_DIFFICULTY_CORRECTNESS, METRIC_RATING_CORRECTNESS}

MIN_SOLVE_SECONDS = 0.5
MAX_SOLVE_SECONDS = 120.0
MIN_EFFICIENCY = 100.0
MAX_EFFICIENCY = 500.0
IDEAL_EFFICIENCY = 100.0
DIFFICULTY_BUCKETS = 20

BUCKET_COLUMNS = ["bucket", "lower", "upper", "label", "success_rate", "sample_size"]


def is_valid_rating(rating: float) -> bool:
    return MIN_RATING <= rating <= MAX_RATING


def solve_time_seconds(exercise: ExerciseRecord) -> Optional[float]:
    """Seconds from display to solve, or None when unsolved or outside 0.5-120s."""

    if exercise.solved_at is None:
        return None
    duration = (exercise.solved_at - exercise.displayed_at) / 1000
    if duration < MIN_SOLVE_SECONDS or duration > MAX_SOLVE_SECONDS:
        return None
    return duration


def keystroke_efficiency(exercise: ExerciseRecord) -> Optional[float]:
    """Keystrokes as a percentage of the answer's digit count; None outside 100-500."""

    if exercise.keystroke_count is None:
        return None
    efficiency = (exercise.keystroke_count / len(str(exercise.answer))) * 100
    if efficiency < MIN_EFFICIENCY or efficiency > MAX_EFFICIENCY:
        return None
    return efficiency


def is_ideal_input(efficiency: float) -> int:
    # Zero wasted keystrokes stands in for "correct".
    return 1 if efficiency == IDEAL_EFFICIENCY else 0


def collect_ratings_by_exercise(
    evaluations: Iterable[EvaluationRecord], mode_filter: str = MODE_ALL
) -> Dict[int, List[float]]:
    ratings: Dict[int, List[float]] = defaultdict(list)
    for evaluation in evaluations:
        if not matches_mode(evaluation.mode, mode_filter) or not is_valid_rating(evaluation.rating):
            continue
        for exercise_id in evaluation.exercise_ids:
            ratings[exercise_id].append(float(evaluation.rating))
    return dict(ratings)


def average_rating_by_exercise(
    evaluations: Iterable[EvaluationRecord], mode_filter: str = MODE_ALL
) -> Dict[int, float]:
    return {
        exercise_id: sum(values) / len(values)
        for exercise_id, values in collect_ratings_by_exercise(evaluations, mode_filter).items()
    }


def _resolve_range(
    exercises: Sequence[ExerciseRecord],
    weights: DifficultyWeights,
    mode_filter: str,
    difficulty_range: Optional[DifficultyRange],
) -> DifficultyRange:
    if difficulty_range is not None:
        return difficulty_range
    return calculate_difficulty_range(exercises, weights, mode_filter)


def _difficulty(exercise: ExerciseRecord, weights: DifficultyWeights, difficulty_range: DifficultyRange) -> float:
    return normalize_difficulty(calculate_difficulty_score(exercise, weights), difficulty_range)


def _log_drops(metric: str, kept: int, drops: Counter) -> None:
    if drops:
        logger.debug("%s: kept %d points, dropped %s", metric, kept, dict(drops))


def build_difficulty_time_points(
    exercises: Sequence[ExerciseRecord],
    weights: DifficultyWeights,
    mode_filter: str = MODE_ALL,
    difficulty_range: Optional[DifficultyRange] = None,
) -> List[DataPoint]:
    difficulty_range = _resolve_range(exercises, weights, mode_filter, difficulty_range)
    points: List[DataPoint] = []
    drops: Counter = Counter()
    for exercise in exercises:
        if exercise.id is None:
            drops["no_id"] += 1
            continue
        if not matches_mode(exercise.mode, mode_filter):
            drops["mode"] += 1
            continue
        duration = solve_time_seconds(exercise)
        if duration is None:
            drops["solve_time"] += 1
            continue
        points.append(DataPoint(x=_difficulty(exercise, weights, difficulty_range), y=duration))
    _log_drops(METRIC_DIFFICULTY_TIME, len(points), drops)
    return points


def build_difficulty_rating_points(
    exercises: Sequence[ExerciseRecord],
    evaluations: Iterable[EvaluationRecord],
    weights: DifficultyWeights,
    mode_filter: str = MODE_ALL,
    difficulty_range: Optional[DifficultyRange] = None,
    average_ratings: Optional[Mapping[int, float]] = None,
) -> List[DataPoint]:
    """One point per rated exercise; repeated ratings are averaged first."""

    difficulty_range = _resolve_range(exercises, weights, mode_filter, difficulty_range)
    if average_ratings is None:
        average_ratings = average_rating_by_exercise(evaluations, mode_filter)

    points: List[DataPoint] = []
    for exercise in exercises:
        if exercise.id is None or exercise.id not in average_ratings:
            continue
        points.append(
            DataPoint(x=_difficulty(exercise, weights, difficulty_range), y=average_ratings[exercise.id])
        )
    return points


def build_difficulty_correctness_points(
    exercises: Sequence[ExerciseRecord],
    weights: DifficultyWeights,
    mode_filter: str = MODE_ALL,
    difficulty_range: Optional[DifficultyRange] = None,
) -> List[DataPoint]:
    difficulty_range = _resolve_range(exercises, weights, mode_filter, difficulty_range)
    points: List[DataPoint] = []
    drops: Counter = Counter()
    for exercise in exercises:
        if exercise.id is None:
            drops["no_id"] += 1
            continue
        if not matches_mode(exercise.mode, mode_filter):
            drops["mode"] += 1
            continue
        efficiency = keystroke_efficiency(exercise)
        if efficiency is None:
            drops["efficiency"] += 1
            continue
        points.append(
            DataPoint(x=_difficulty(exercise, weights, difficulty_range), y=float(is_ideal_input(efficiency)))
        )
    _log_drops(METRIC_DIFFICULTY_CORRECTNESS, len(points), drops)
    return points


def _fan_out(
    metric: str,
    exercises: Sequence[ExerciseRecord],
    evaluations: Iterable[EvaluationRecord],
    mode_filter: str,
    exercise_value: Callable[[ExerciseRecord], Optional[float]],
    rating_on_x: bool,
) -> List[DataPoint]:
    """
    One point per (evaluation, linked exercise) pair that passes both gates.

    ``exercise_value`` maps an exercise to its measured value or None when the
    exercise fails its own gate.
    """

    by_id = {exercise.id: exercise for exercise in exercises if exercise.id is not None}
    points: List[DataPoint] = []
    drops: Counter = Counter()
    for evaluation in evaluations:
        if not matches_mode(evaluation.mode, mode_filter):
            drops["mode"] += 1
            continue
        if not is_valid_rating(evaluation.rating):
            drops["rating"] += 1
            continue
        rating = float(evaluation.rating)
        for exercise_id in evaluation.exercise_ids:
            exercise = by_id.get(exercise_id)
            if exercise is None:
                drops["unknown_exercise"] += 1
                continue
            value = exercise_value(exercise)
            if value is None:
                drops["exercise_gate"] += 1
                continue
            if rating_on_x:
                points.append(DataPoint(x=rating, y=float(value)))
            else:
                points.append(DataPoint(x=float(value), y=rating))
    _log_drops(metric, len(points), drops)
    return points


def _ideal_input_flag(exercise: ExerciseRecord) -> Optional[int]:
    efficiency = keystroke_efficiency(exercise)
    return None if efficiency is None else is_ideal_input(efficiency)


def build_rating_correctness_points(
    exercises: Sequence[ExerciseRecord],
    evaluations: Iterable[EvaluationRecord],
    mode_filter: str = MODE_ALL,
) -> List[DataPoint]:
    return _fan_out(METRIC_RATING_CORRECTNESS, exercises, evaluations, mode_filter, _ideal_input_flag, True)


def build_efficiency_rating_points(
    exercises: Sequence[ExerciseRecord],
    evaluations: Iterable[EvaluationRecord],
    mode_filter: str = MODE_ALL,
) -> List[DataPoint]:
    return _fan_out(METRIC_EFFICIENCY_RATING, exercises, evaluations, mode_filter, keystroke_efficiency, False)


def build_time_rating_points(
    exercises: Sequence[ExerciseRecord],
    evaluations: Iterable[EvaluationRecord],
    mode_filter: str = MODE_ALL,
) -> List[DataPoint]:
    return _fan_out(METRIC_TIME_RATING, exercises, evaluations, mode_filter, solve_time_seconds, False)


def build_metric_points(
    metric: str,
    exercises: Sequence[ExerciseRecord],
    evaluations: Sequence[EvaluationRecord],
    config: AnalysisConfig,
) -> List[DataPoint]:
    normalized = metric.strip().lower()
    if normalized == METRIC_DIFFICULTY_TIME:
        return build_difficulty_time_points(exercises, config.weights, config.mode_filter)
    if normalized == METRIC_DIFFICULTY_RATING:
        return build_difficulty_rating_points(exercises, evaluations, config.weights, config.mode_filter)
    if normalized == METRIC_DIFFICULTY_CORRECTNESS:
        return build_difficulty_correctness_points(exercises, config.weights, config.mode_filter)
    if normalized == METRIC_RATING_CORRECTNESS:
        return build_rating_correctness_points(exercises, evaluations, config.mode_filter)
    if normalized == METRIC_EFFICIENCY_RATING:
        return build_efficiency_rating_points(exercises, evaluations, config.mode_filter)
    if normalized == METRIC_TIME_RATING:
        return build_time_rating_points(exercises, evaluations, config.mode_filter)
    raise ValueError(f"Unsupported metric '{metric}'. Expected one of: {', '.join(METRICS)}.")


def analyze_metric(
    metric: str,
    exercises: Sequence[ExerciseRecord],
    evaluations: Sequence[EvaluationRecord],
    config: AnalysisConfig,
) -> CorrelationSummary:
    points = build_metric_points(metric, exercises, evaluations, config)
    return summarize_points(
        metric,
        points,
        detect_outliers=config.detect_outliers,
        sensitivity=config.outlier_sensitivity,
        binary_y=metric.strip().lower() in BINARY_METRICS,
    )


def analyze_all_metrics(
    exercises: Sequence[ExerciseRecord],
    evaluations: Sequence[EvaluationRecord],
    config: AnalysisConfig,
) -> List[CorrelationSummary]:
    return [analyze_metric(metric, exercises, evaluations, config) for metric in METRICS]


def _success_table(bucket_ids: np.ndarray, outcomes: np.ndarray, bounds) -> pd.DataFrame:
    if len(outcomes) == 0:
        return pd.DataFrame(columns=BUCKET_COLUMNS)

    frame = pd.DataFrame({"bucket": bucket_ids, "outcome": outcomes})
    grouped = (
        frame.groupby("bucket")
        .agg(success_rate=("outcome", "mean"), sample_size=("outcome", "count"))
        .reset_index()
        .sort_values("bucket", kind="mergesort")
    )
    grouped["success_rate"] = grouped["success_rate"] * 100
    grouped["lower"] = [bounds(int(b))[0] for b in grouped["bucket"]]
    grouped["upper"] = [bounds(int(b))[1] for b in grouped["bucket"]]
    grouped["label"] = [bounds(int(b))[2] for b in grouped["bucket"]]
    grouped["bucket"] = grouped["bucket"].astype("int64")
    grouped["sample_size"] = grouped["sample_size"].astype("int64")
    return grouped[BUCKET_COLUMNS].reset_index(drop=True)


def difficulty_success_buckets(points: Sequence[DataPoint], bucket_count: int = DIFFICULTY_BUCKETS) -> pd.DataFrame:
    """
    Success rate per equal-width difficulty bucket over 0-100.

    Difficulty 100 lands in the last bucket; buckets without samples are
    omitted.
    """

    width = 100.0 / bucket_count
    difficulties = np.array([p.x for p in points], dtype=float)
    outcomes = np.array([p.y for p in points], dtype=float)
    bucket_ids = np.clip(np.floor(difficulties / width), 0, bucket_count - 1).astype(int)

    def bounds(bucket: int):
        lower = bucket * width
        upper = lower + width
        return lower, upper, f"{lower:g}-{upper:g}"

    return _success_table(bucket_ids, outcomes, bounds)


def rating_success_buckets(points: Sequence[DataPoint]) -> pd.DataFrame:
    """Success rate per integer rating 1..9 (ratings on the x axis)."""

    ratings = np.array([p.x for p in points], dtype=float)
    outcomes = np.array([p.y for p in points], dtype=float)
    bucket_ids = np.clip(np.rint(ratings), MIN_RATING, MAX_RATING).astype(int)

    def bounds(bucket: int):
        return float(bucket), float(bucket), str(bucket)

    return _success_table(bucket_ids, outcomes, bounds)
