# ABOUTME: Flags univariate IQR outliers on the x and y axes of point sets.
# ABOUTME: Provides helpers to count and drop flagged points before correlation.

from __future__ import annotations

from dataclasses import replace
from typing import List, Sequence, Set

from src.common.schemas import DataPoint

DEFAULT_SENSITIVITY = 1.5
MIN_OUTLIER_SAMPLES = 4


def detect_outliers_iqr(values: Sequence[float], sensitivity: float = DEFAULT_SENSITIVITY) -> Set[int]:
    """
    Return indices of values strictly outside [Q1 - k*IQR, Q3 + k*IQR].

    Quartiles are plain order statistics (sorted[floor(0.25 * n)] and
    sorted[floor(0.75 * n)]), not interpolated. Fewer than four values never
    produce outliers.
    """

    n = len(values)
    if n < MIN_OUTLIER_SAMPLES:
        return set()

    ordered = sorted(values)
    q1 = ordered[int(n * 0.25)]
    q3 = ordered[int(n * 0.75)]
    iqr = q3 - q1
    lower = q1 - sensitivity * iqr
    upper = q3 + sensitivity * iqr

    return {idx for idx, value in enumerate(values) if value < lower or value > upper}


def apply_outlier_detection(
    points: Sequence[DataPoint],
    sensitivity: float = DEFAULT_SENSITIVITY,
    enabled: bool = True,
    detect_y: bool = True,
) -> List[DataPoint]:
    """
    Return copies of ``points`` with ``is_outlier`` recomputed.

    A point is an outlier when either axis flags it. Pass ``detect_y=False``
    for binary (0/1) outcomes so only the x axis is tested.
    """

    if not enabled or len(points) < MIN_OUTLIER_SAMPLES:
        return [replace(point, is_outlier=False) for point in points]

    flagged = detect_outliers_iqr([point.x for point in points], sensitivity)
    if detect_y:
        flagged |= detect_outliers_iqr([point.y for point in points], sensitivity)

    return [replace(point, is_outlier=idx in flagged) for idx, point in enumerate(points)]


def count_outliers(points: Sequence[DataPoint]) -> int:
    return sum(1 for point in points if point.is_outlier)


def filter_outliers(points: Sequence[DataPoint], exclude: bool = True) -> List[DataPoint]:
    if not exclude:
        return list(points)
    return [point for point in points if not point.is_outlier]
