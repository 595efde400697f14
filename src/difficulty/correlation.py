# ABOUTME: Computes Pearson / point-biserial correlation and R-squared over point sets.
# ABOUTME: Labels correlation strength and bundles per-metric summaries for reports.

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from src.common.schemas import DataPoint

from .outliers import DEFAULT_SENSITIVITY, apply_outlier_detection, count_outliers, filter_outliers

STRENGTH_UNKNOWN = "Unknown"
STRENGTH_WEAK = "Weak"
STRENGTH_MODERATE = "Moderate"
STRENGTH_STRONG = "Strong"


@dataclass(frozen=True)
class CorrelationSummary:
    metric: str
    correlation: Optional[float]
    r_squared: Optional[float]
    strength: str
    sample_size: int
    outlier_count: int
    point_biserial: bool = False
    points: List[DataPoint] = field(default_factory=list, repr=False)


def calculate_correlation(points: Sequence[DataPoint]) -> Optional[float]:
    """
    Pearson's r from running sums.

    With a 0/1 y axis this is the point-biserial correlation. Returns None for
    fewer than two points or when either axis has no variance.
    """

    n = len(points)
    if n < 2:
        return None

    sum_x = sum(p.x for p in points)
    sum_y = sum(p.y for p in points)
    sum_xy = sum(p.x * p.y for p in points)
    sum_x2 = sum(p.x * p.x for p in points)
    sum_y2 = sum(p.y * p.y for p in points)

    numerator = n * sum_xy - sum_x * sum_y
    variance_product = (n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y)
    if variance_product <= 0:
        return None
    return numerator / math.sqrt(variance_product)


def calculate_r_squared(points: Sequence[DataPoint]) -> Optional[float]:
    """Coefficient of determination of the least-squares line through the points."""

    n = len(points)
    if n < 2:
        return None

    mean_y = sum(p.y for p in points) / n
    ss_tot = sum((p.y - mean_y) ** 2 for p in points)
    if ss_tot == 0:
        return None

    mean_x = sum(p.x for p in points) / n
    s_xy = sum((p.x - mean_x) * (p.y - mean_y) for p in points)
    s_xx = sum((p.x - mean_x) ** 2 for p in points)
    if s_xx == 0:
        return None

    slope = s_xy / s_xx
    intercept = mean_y - slope * mean_x
    ss_res = sum((p.y - (slope * p.x + intercept)) ** 2 for p in points)
    return 1 - ss_res / ss_tot


def get_correlation_strength(correlation: Optional[float]) -> str:
    if correlation is None:
        return STRENGTH_UNKNOWN
    magnitude = abs(correlation)
    if magnitude < 0.3:
        return STRENGTH_WEAK
    if magnitude < 0.7:
        return STRENGTH_MODERATE
    return STRENGTH_STRONG


def summarize_points(
    metric: str,
    points: Sequence[DataPoint],
    detect_outliers: bool = True,
    sensitivity: float = DEFAULT_SENSITIVITY,
    binary_y: bool = False,
) -> CorrelationSummary:
    """Mark outliers, then correlate the remaining points."""

    marked = apply_outlier_detection(points, sensitivity, detect_outliers, detect_y=not binary_y)
    kept = filter_outliers(marked)
    correlation = calculate_correlation(kept)
    return CorrelationSummary(
        metric=metric,
        correlation=correlation,
        r_squared=calculate_r_squared(kept),
        strength=get_correlation_strength(correlation),
        sample_size=len(kept),
        outlier_count=count_outliers(marked),
        point_biserial=binary_y,
        points=marked,
    )
