# ABOUTME: Tests Pearson / point-biserial correlation, R-squared, and strength labels.
# ABOUTME: Checks degenerate inputs return None instead of raising.

import numpy as np
import pytest

from src.common.schemas import DataPoint
from src.difficulty.correlation import (
    calculate_correlation,
    calculate_r_squared,
    get_correlation_strength,
    summarize_points,
)


def _points(xs, ys):
    return [DataPoint(x=float(x), y=float(y)) for x, y in zip(xs, ys)]


def test_perfect_linear_relationships():
    assert calculate_correlation(_points([1, 2, 3, 4], [2, 4, 6, 8])) == pytest.approx(1.0)
    assert calculate_correlation(_points([1, 2, 3, 4], [8, 6, 4, 2])) == pytest.approx(-1.0)


def test_correlation_matches_numpy_and_is_symmetric():
    xs = [12.0, 40.0, 55.0, 63.0, 80.0, 97.0]
    ys = [3.1, 4.0, 7.9, 6.2, 9.5, 12.4]
    expected = float(np.corrcoef(xs, ys)[0, 1])

    forward = calculate_correlation(_points(xs, ys))
    swapped = calculate_correlation(_points(ys, xs))
    assert forward == pytest.approx(expected)
    assert swapped == pytest.approx(forward)


def test_point_biserial_uses_same_formula():
    xs = [10, 20, 30, 40, 50, 60]
    ys = [1, 1, 1, 0, 1, 0]
    expected = float(np.corrcoef(xs, ys)[0, 1])
    assert calculate_correlation(_points(xs, ys)) == pytest.approx(expected)


def test_insufficient_or_degenerate_data_returns_none():
    assert calculate_correlation([]) is None
    assert calculate_correlation(_points([1], [1])) is None
    assert calculate_correlation(_points([1, 1, 1], [1, 2, 3])) is None
    assert calculate_correlation(_points([1, 2, 3], [5, 5, 5])) is None


def test_r_squared_on_perfect_line_is_one():
    points = _points([1, 2, 3, 4, 5], [2, 4, 6, 8, 10])
    assert calculate_r_squared(points) == pytest.approx(1.0)


def test_r_squared_equals_r_squared_of_pearson():
    xs = [1, 2, 3, 4, 5, 6]
    ys = [1.5, 1.9, 3.7, 3.2, 5.8, 5.1]
    r = calculate_correlation(_points(xs, ys))
    assert calculate_r_squared(_points(xs, ys)) == pytest.approx(r * r)


def test_r_squared_degenerate_cases():
    assert calculate_r_squared(_points([1], [2])) is None
    assert calculate_r_squared(_points([1, 2, 3], [4, 4, 4])) is None
    assert calculate_r_squared(_points([2, 2, 2], [1, 2, 3])) is None


@pytest.mark.parametrize(
    "value,label",
    [
        (None, "Unknown"),
        (0.0, "Weak"),
        (0.29, "Weak"),
        (-0.29, "Weak"),
        (0.3, "Moderate"),
        (-0.69, "Moderate"),
        (0.7, "Strong"),
        (-0.95, "Strong"),
    ],
)
def test_correlation_strength_labels(value, label):
    assert get_correlation_strength(value) == label


def test_summarize_points_excludes_outliers_before_correlating():
    points = _points([1, 2, 3, 4, 5, 6, 7, 4], [1, 2, 3, 4, 5, 6, 7, 500])
    summary = summarize_points("difficulty_time", points, detect_outliers=True, sensitivity=1.5)
    assert summary.outlier_count == 1
    assert summary.sample_size == 7
    assert summary.correlation == pytest.approx(1.0)
    assert summary.strength == "Strong"
    assert len(summary.points) == 8

    kept_all = summarize_points("difficulty_time", points, detect_outliers=False)
    assert kept_all.outlier_count == 0
    assert kept_all.sample_size == 8


def test_summarize_binary_outcome_skips_y_axis():
    points = _points([1, 2, 3, 4, 5, 6, 7, 8], [1, 1, 1, 1, 1, 1, 1, 0])
    summary = summarize_points("difficulty_correctness", points, binary_y=True)
    assert summary.outlier_count == 0
    assert summary.point_biserial is True
    assert summary.correlation is not None
