# ABOUTME: Tests point-set construction for every metric pair and its data-quality gates.
# ABOUTME: Covers rating averaging, evaluation fan-out, and success-rate buckets.

import pytest

from src.common.schemas import DataPoint, DifficultyWeights, EvaluationRecord, ExerciseRecord
from src.difficulty.builder import (
    METRICS,
    analyze_all_metrics,
    average_rating_by_exercise,
    build_difficulty_correctness_points,
    build_difficulty_rating_points,
    build_difficulty_time_points,
    build_efficiency_rating_points,
    build_metric_points,
    build_rating_correctness_points,
    build_time_rating_points,
    difficulty_success_buckets,
    keystroke_efficiency,
    rating_success_buckets,
    solve_time_seconds,
)
from src.difficulty.config import AnalysisConfig

DISPLAYED_AT = 1_700_000_000_000


def _exercise(exercise_id, a, b, solve_s=None, keys=None, mode="serious"):
    return ExerciseRecord(
        id=exercise_id,
        user_id=1,
        operand_a=a,
        operand_b=b,
        displayed_at=DISPLAYED_AT,
        solved_at=None if solve_s is None else DISPLAYED_AT + int(solve_s * 1000),
        keystroke_count=keys,
        mode=mode,
    )


def _evaluation(evaluation_id, rating, exercise_ids, mode="serious"):
    return EvaluationRecord(
        id=evaluation_id,
        user_id=1,
        scope="the last three exercises",
        rating=rating,
        exercise_ids=tuple(exercise_ids),
        mode=mode,
    )


def test_solve_time_gate_bounds():
    assert solve_time_seconds(_exercise(1, 2, 3)) is None
    assert solve_time_seconds(_exercise(1, 2, 3, solve_s=0.4)) is None
    assert solve_time_seconds(_exercise(1, 2, 3, solve_s=0.5)) == pytest.approx(0.5)
    assert solve_time_seconds(_exercise(1, 2, 3, solve_s=120)) == pytest.approx(120.0)
    assert solve_time_seconds(_exercise(1, 2, 3, solve_s=121)) is None


def test_keystroke_efficiency_gate_bounds():
    # 345 + 78 = 423 needs three keystrokes.
    assert keystroke_efficiency(_exercise(1, 345, 78)) is None
    assert keystroke_efficiency(_exercise(1, 345, 78, keys=2)) is None
    assert keystroke_efficiency(_exercise(1, 345, 78, keys=3)) == pytest.approx(100.0)
    assert keystroke_efficiency(_exercise(1, 345, 78, keys=15)) == pytest.approx(500.0)
    assert keystroke_efficiency(_exercise(1, 345, 78, keys=16)) is None


def test_difficulty_time_points_apply_gates_and_mode_filter():
    exercises = [
        _exercise(1, 345, 78, solve_s=6.0),
        _exercise(2, 1000, 1, solve_s=2.0),
        _exercise(3, 12, 13, solve_s=300.0),
        _exercise(4, 56, 78, solve_s=4.0, mode="trial"),
        _exercise(None, 56, 78, solve_s=4.0),
    ]
    points = build_difficulty_time_points(exercises, DifficultyWeights(), "serious")
    assert [p.y for p in points] == pytest.approx([6.0, 2.0])
    # Range is taken over all serious exercises, including the gated-out one.
    assert all(0.0 <= p.x <= 100.0 for p in points)
    assert points[0].x == pytest.approx(100.0)

    everything = build_difficulty_time_points(exercises, DifficultyWeights(), "all")
    assert len(everything) == 3


def test_difficulty_rating_points_average_repeated_ratings():
    exercises = [_exercise(7, 345, 78), _exercise(8, 1000, 1)]
    evaluations = [
        _evaluation(1, 4, [7]),
        _evaluation(2, 8, [7, 8]),
        _evaluation(3, 12, [8]),
    ]
    assert average_rating_by_exercise(evaluations) == {7: 6.0, 8: 8.0}

    points = build_difficulty_rating_points(exercises, evaluations, DifficultyWeights())
    by_rating = sorted(p.y for p in points)
    assert by_rating == [6.0, 8.0]
    assert len(points) == 2


def test_difficulty_rating_points_respect_evaluation_mode():
    exercises = [_exercise(7, 345, 78)]
    evaluations = [_evaluation(1, 4, [7], mode="trial"), _evaluation(2, 8, [7])]
    points = build_difficulty_rating_points(exercises, evaluations, DifficultyWeights(), "serious")
    assert [p.y for p in points] == [8.0]


def test_difficulty_correctness_points_flag_ideal_input():
    exercises = [
        _exercise(1, 345, 78, keys=3),
        _exercise(2, 1000, 1, keys=6),
        _exercise(3, 12, 13, keys=1),
        _exercise(4, 12, 13),
    ]
    points = build_difficulty_correctness_points(exercises, DifficultyWeights())
    assert [p.y for p in points] == [1.0, 0.0]


def test_rating_pairs_fan_out_across_linked_exercises():
    exercises = [
        _exercise(1, 345, 78, solve_s=5.0, keys=3),
        _exercise(2, 1000, 1, solve_s=3.0, keys=8),
        _exercise(3, 12, 13, solve_s=500.0, keys=1),
    ]
    evaluations = [_evaluation(1, 7, [1, 2, 3, 99]), _evaluation(2, 0, [1])]

    time_points = build_time_rating_points(exercises, evaluations)
    assert [(p.x, p.y) for p in time_points] == [(5.0, 7.0), (3.0, 7.0)]

    efficiency_points = build_efficiency_rating_points(exercises, evaluations)
    assert [p.y for p in efficiency_points] == [7.0, 7.0]
    assert efficiency_points[1].x == pytest.approx(200.0)

    correctness_points = build_rating_correctness_points(exercises, evaluations)
    assert [(p.x, p.y) for p in correctness_points] == [(7.0, 1.0), (7.0, 0.0)]


def test_build_metric_points_rejects_unknown_metric():
    with pytest.raises(ValueError):
        build_metric_points("difficulty_mood", [], [], AnalysisConfig())


def test_analyze_all_metrics_returns_one_summary_per_metric():
    exercises = [_exercise(i, 10 * i + 5, 7 * i, solve_s=1.0 + i, keys=3 + i % 2) for i in range(1, 13)]
    evaluations = [_evaluation(i, 1 + i % 9, [i, i + 1]) for i in range(1, 12)]

    summaries = analyze_all_metrics(exercises, evaluations, AnalysisConfig())
    assert [s.metric for s in summaries] == list(METRICS)
    assert {s.metric for s in summaries if s.point_biserial} == {"difficulty_correctness", "rating_correctness"}
    for summary in summaries:
        assert summary.sample_size > 0


def test_difficulty_success_buckets_omit_empty_bins():
    points = [
        DataPoint(x=0.0, y=1.0),
        DataPoint(x=3.0, y=0.0),
        DataPoint(x=50.0, y=1.0),
        DataPoint(x=99.0, y=1.0),
        DataPoint(x=100.0, y=0.0),
    ]
    table = difficulty_success_buckets(points)
    assert table["bucket"].tolist() == [0, 10, 19]
    assert table["success_rate"].tolist() == pytest.approx([50.0, 100.0, 50.0])
    assert table["sample_size"].tolist() == [2, 1, 2]
    assert table["label"].tolist() == ["0-5", "50-55", "95-100"]


def test_rating_success_buckets_group_by_integer_rating():
    points = [DataPoint(x=3.0, y=1.0), DataPoint(x=3.0, y=0.0), DataPoint(x=9.0, y=1.0)]
    table = rating_success_buckets(points)
    assert table["bucket"].tolist() == [3, 9]
    assert table["success_rate"].tolist() == pytest.approx([50.0, 100.0])


def test_success_buckets_handle_empty_input():
    assert difficulty_success_buckets([]).empty
    assert rating_success_buckets([]).empty
