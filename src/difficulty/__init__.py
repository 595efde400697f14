# ABOUTME: Exposes the difficulty scoring, correlation, and weight tuning entrypoints.
# ABOUTME: Groups the scorer, outlier detector, correlation builder, optimizer, and exporters.

from .scoring import calculate_difficulty_range, calculate_difficulty_score, normalize_difficulty
from .builder import analyze_all_metrics, build_metric_points
from .optimizer import grid_search, grid_search_sync
from .export import export_analysis

__all__ = [
    "calculate_difficulty_range",
    "calculate_difficulty_score",
    "normalize_difficulty",
    "analyze_all_metrics",
    "build_metric_points",
    "grid_search",
    "grid_search_sync",
    "export_analysis",
]
