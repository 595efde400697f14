# ABOUTME: Tests digit, carry, and zero feature extraction and raw difficulty scores.
# ABOUTME: Covers population range computation and 0-100 normalization.

import pytest

from src.common.schemas import DifficultyRange, DifficultyWeights, ExerciseRecord, merge_difficulty_weights
from src.difficulty.scoring import (
    FALLBACK_RANGE,
    calculate_difficulty_range,
    calculate_difficulty_score,
    count_carryovers,
    count_total_digits,
    count_zeros,
    normalize_difficulty,
)


def _exercise(exercise_id: int, a: int, b: int, mode: str = "serious") -> ExerciseRecord:
    return ExerciseRecord(id=exercise_id, user_id=1, operand_a=a, operand_b=b, displayed_at=0, mode=mode)


def test_scores_three_digit_plus_two_digit_with_two_carries():
    assert count_total_digits(345, 78) == 5
    assert count_carryovers(345, 78) == 2
    assert count_zeros(345, 78) == 0
    assert calculate_difficulty_score(_exercise(1, 345, 78), DifficultyWeights()) == pytest.approx(10.0)


def test_zeros_lower_the_score():
    assert count_total_digits(1000, 1) == 5
    assert count_carryovers(1000, 1) == 0
    assert count_zeros(1000, 1) == -3
    assert calculate_difficulty_score(_exercise(1, 1000, 1), DifficultyWeights()) == pytest.approx(3.5)


def test_carry_chain_does_not_count_final_overflow_separately():
    # 999 + 1: every column carries, the overflow into a fourth column is not an extra count.
    assert count_carryovers(999, 1) == 3
    assert count_carryovers(5, 5) == 1
    assert count_carryovers(0, 0) == 0


@pytest.mark.parametrize("a,b", [(345, 78), (1000, 1), (999, 1), (58, 67), (7, 0), (1234, 8766)])
def test_features_are_commutative(a, b):
    assert count_carryovers(a, b) == count_carryovers(b, a)
    assert count_total_digits(a, b) == count_total_digits(b, a)
    assert count_zeros(a, b) == count_zeros(b, a)


def test_range_uses_mode_filtered_population():
    exercises = [_exercise(1, 345, 78), _exercise(2, 1000, 1), _exercise(3, 9999, 9999, mode="trial")]
    weights = DifficultyWeights()

    serious = calculate_difficulty_range(exercises, weights, "serious")
    assert serious == DifficultyRange(min=3.5, max=10.0)

    everything = calculate_difficulty_range(exercises, weights, "all")
    assert everything.max > serious.max


def test_range_fallbacks():
    weights = DifficultyWeights()
    assert calculate_difficulty_range([], weights) == FALLBACK_RANGE
    assert calculate_difficulty_range([_exercise(1, 2, 3, mode="trial")], weights, "serious") == FALLBACK_RANGE

    single = calculate_difficulty_range([_exercise(1, 345, 78), _exercise(2, 78, 345)], weights)
    assert single == DifficultyRange(min=9.0, max=11.0)
    assert normalize_difficulty(10.0, single) == pytest.approx(50.0)


def test_normalize_maps_range_bounds_to_0_and_100():
    difficulty_range = DifficultyRange(min=3.5, max=10.0)
    assert normalize_difficulty(difficulty_range.min, difficulty_range) == pytest.approx(0.0)
    assert normalize_difficulty(difficulty_range.max, difficulty_range) == pytest.approx(100.0)


def test_merge_weights_fills_missing_entries_from_defaults():
    merged = merge_difficulty_weights({"carryovers": 4.0, "zeros": None})
    assert merged == DifficultyWeights(digits=1.0, carryovers=4.0, zeros=0.5)
    assert merge_difficulty_weights(None) == DifficultyWeights()
