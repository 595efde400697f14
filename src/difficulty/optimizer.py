# ABOUTME: Grid-searches difficulty weights to maximize agreement with observed outcomes.
# ABOUTME: Runs cooperatively under asyncio, reporting progress and honoring cancellation.

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterator, Mapping, Optional, Sequence, Tuple

from src.common.schemas import (
    MODE_ALL,
    DifficultyWeights,
    EvaluationRecord,
    ExerciseRecord,
    MetricCorrelations,
    OptimizationProgress,
    OptimizationResult,
)

from .builder import (
    average_rating_by_exercise,
    build_difficulty_correctness_points,
    build_difficulty_rating_points,
    build_difficulty_time_points,
)
from .config import WeightGrid
from .correlation import calculate_correlation
from .outliers import DEFAULT_SENSITIVITY, apply_outlier_detection, filter_outliers
from .scoring import calculate_difficulty_range

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[OptimizationProgress], None]


def calculate_composite_score(correlations: MetricCorrelations) -> float:
    """
    Mean of the available correlations.

    Time and rating correlations count with their sign; correctness counts by
    magnitude. With nothing available the score is 0.
    """

    values = []
    if correlations.cl is not None:
        values.append(correlations.cl)
    if correlations.time is not None:
        values.append(correlations.time)
    if correlations.correctness is not None:
        values.append(abs(correlations.correctness))
    return sum(values) / len(values) if values else 0.0


def calculate_correlations_for_weights(
    weights: DifficultyWeights,
    exercises: Sequence[ExerciseRecord],
    evaluations: Sequence[EvaluationRecord],
    mode_filter: str = MODE_ALL,
    detect_outliers: bool = True,
    outlier_sensitivity: float = DEFAULT_SENSITIVITY,
    average_ratings: Optional[Mapping[int, float]] = None,
) -> MetricCorrelations:
    difficulty_range = calculate_difficulty_range(exercises, weights, mode_filter)

    time_points = build_difficulty_time_points(exercises, weights, mode_filter, difficulty_range)
    rating_points = build_difficulty_rating_points(
        exercises, evaluations, weights, mode_filter, difficulty_range, average_ratings
    )
    correctness_points = build_difficulty_correctness_points(exercises, weights, mode_filter, difficulty_range)

    def correlate(points, detect_y: bool = True) -> Optional[float]:
        marked = apply_outlier_detection(points, outlier_sensitivity, detect_outliers, detect_y=detect_y)
        return calculate_correlation(filter_outliers(marked))

    return MetricCorrelations(
        cl=correlate(rating_points),
        time=correlate(time_points),
        correctness=correlate(correctness_points, detect_y=False),
    )


def iter_weight_grid(grid: WeightGrid) -> Iterator[DifficultyWeights]:
    """Enumerate digits (outer), carryovers (middle), zeros (inner)."""

    carryover_values = grid.carryovers.values()
    zero_values = grid.zeros.values()
    for digits in grid.digits.values():
        for carryovers in carryover_values:
            for zeros in zero_values:
                yield DifficultyWeights(digits=digits, carryovers=carryovers, zeros=zeros)


async def grid_search(
    exercises: Sequence[ExerciseRecord],
    evaluations: Sequence[EvaluationRecord],
    mode_filter: str = MODE_ALL,
    detect_outliers: bool = True,
    outlier_sensitivity: float = DEFAULT_SENSITIVITY,
    on_progress: Optional[ProgressCallback] = None,
    *,
    grid: Optional[WeightGrid] = None,
    yield_every: int = 100,
    should_cancel: Optional[Callable[[], bool]] = None,
    skip_failed_cells: bool = False,
) -> OptimizationResult:
    """
    Exhaustively score every weight triple in ``grid`` and keep the best.

    Only a strictly greater composite score replaces the incumbent, so ties go
    to the earliest enumerated triple. Every ``yield_every`` combinations the
    coroutine reports progress, checks ``should_cancel`` and yields to the
    event loop. A cancelled search returns the best result found so far with
    ``cancelled=True``.

    With ``skip_failed_cells`` a cell that raises is logged and skipped;
    otherwise the exception propagates to the caller.
    """

    grid = grid or WeightGrid()
    total = grid.size
    exercises = list(exercises)
    evaluations = list(evaluations)
    average_ratings = average_rating_by_exercise(evaluations, mode_filter)

    logger.info(
        "Starting weight grid search: %d combinations, %d exercises, %d evaluations, mode=%s",
        total,
        len(exercises),
        len(evaluations),
        mode_filter,
    )

    best: Tuple[DifficultyWeights, MetricCorrelations, float] = (
        DifficultyWeights(),
        MetricCorrelations(),
        float("-inf"),
    )
    current = 0
    failed_cells = 0
    cancelled = False

    for weights in iter_weight_grid(grid):
        try:
            correlations = calculate_correlations_for_weights(
                weights,
                exercises,
                evaluations,
                mode_filter,
                detect_outliers,
                outlier_sensitivity,
                average_ratings,
            )
        except Exception:
            if not skip_failed_cells:
                raise
            failed_cells += 1
            logger.warning("Skipping weight cell %s after error", weights.as_dict(), exc_info=True)
            correlations = None

        if correlations is not None:
            composite = calculate_composite_score(correlations)
            if composite > best[2]:
                best = (weights, correlations, composite)

        current += 1
        if current % yield_every == 0:
            progress = OptimizationProgress(current=current, total=total, percentage=current / total * 100)
            logger.debug("Grid search progress %d/%d", current, total)
            if on_progress is not None:
                on_progress(progress)
            await asyncio.sleep(0)
            if should_cancel is not None and should_cancel():
                cancelled = True
                break

    if on_progress is not None and not cancelled:
        on_progress(OptimizationProgress(current=total, total=total, percentage=100.0))

    weights, correlations, composite = best
    if composite == float("-inf"):
        # Nothing was scored (cancelled before the first cell or every cell failed).
        composite = 0.0

    logger.info(
        "Grid search %s after %d/%d combinations: best=%s composite=%.4f",
        "cancelled" if cancelled else "finished",
        current,
        total,
        weights.as_dict(),
        composite,
    )
    return OptimizationResult(
        weights=weights,
        correlations=correlations,
        composite_score=composite,
        evaluated=current,
        total=total,
        cancelled=cancelled,
        failed_cells=failed_cells,
    )


def grid_search_sync(
    exercises: Sequence[ExerciseRecord],
    evaluations: Sequence[EvaluationRecord],
    mode_filter: str = MODE_ALL,
    detect_outliers: bool = True,
    outlier_sensitivity: float = DEFAULT_SENSITIVITY,
    on_progress: Optional[ProgressCallback] = None,
    **kwargs,
) -> OptimizationResult:
    """Synchronous wrapper for grid_search."""
    return asyncio.run(
        grid_search(
            exercises,
            evaluations,
            mode_filter,
            detect_outliers,
            outlier_sensitivity,
            on_progress,
            **kwargs,
        )
    )
