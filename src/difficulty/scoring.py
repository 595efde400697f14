# ABOUTME: Extracts digit, carry, and zero features from addition exercises.
# ABOUTME: Combines them into raw difficulty scores and normalizes against a population.

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable

from src.common.schemas import MODE_ALL, DifficultyRange, DifficultyWeights, ExerciseRecord

FALLBACK_RANGE = DifficultyRange(min=0.0, max=100.0)


@dataclass(frozen=True)
class ExerciseFeatures:
    total_digits: int
    carryovers: int
    zeros: int  # stored negative: more zeros means an easier exercise


def count_total_digits(operand_a: int, operand_b: int) -> int:
    return len(str(operand_a)) + len(str(operand_b))


def count_zeros(operand_a: int, operand_b: int) -> int:
    """Negative count of '0' digits across both operands."""
    return -(str(operand_a).count("0") + str(operand_b).count("0"))


def count_carryovers(operand_a: int, operand_b: int) -> int:
    """
    Count carry operations in column addition, least-significant digit first.

    The final overflow carry out of the most significant column is not counted
    separately.
    """

    digits_a = str(operand_a)[::-1]
    digits_b = str(operand_b)[::-1]

    carryovers = 0
    carry = 0
    for position in range(max(len(digits_a), len(digits_b))):
        digit_a = int(digits_a[position]) if position < len(digits_a) else 0
        digit_b = int(digits_b[position]) if position < len(digits_b) else 0
        if digit_a + digit_b + carry >= 10:
            carryovers += 1
            carry = 1
        else:
            carry = 0
    return carryovers


@lru_cache(maxsize=65536)
def extract_features(operand_a: int, operand_b: int) -> ExerciseFeatures:
    return ExerciseFeatures(
        total_digits=count_total_digits(operand_a, operand_b),
        carryovers=count_carryovers(operand_a, operand_b),
        zeros=count_zeros(operand_a, operand_b),
    )


def score_operands(operand_a: int, operand_b: int, weights: DifficultyWeights) -> float:
    features = extract_features(operand_a, operand_b)
    return (
        weights.digits * features.total_digits
        + weights.carryovers * features.carryovers
        + weights.zeros * features.zeros
    )


def calculate_difficulty_score(exercise: ExerciseRecord, weights: DifficultyWeights) -> float:
    return score_operands(exercise.operand_a, exercise.operand_b, weights)


def matches_mode(mode: str, mode_filter: str) -> bool:
    return mode_filter == MODE_ALL or mode == mode_filter


def calculate_difficulty_range(
    exercises: Iterable[ExerciseRecord],
    weights: DifficultyWeights,
    mode_filter: str = MODE_ALL,
) -> DifficultyRange:
    """
    Min/max raw score over the mode-filtered population.

    Empty populations fall back to 0..100; a single distinct score is widened
    by one on each side.
    """

    scores = [
        calculate_difficulty_score(exercise, weights)
        for exercise in exercises
        if matches_mode(exercise.mode, mode_filter)
    ]
    if not scores:
        return FALLBACK_RANGE

    low = min(scores)
    high = max(scores)
    if low == high:
        return DifficultyRange(min=low - 1, max=low + 1)
    return DifficultyRange(min=low, max=high)


def normalize_difficulty(raw_score: float, difficulty_range: DifficultyRange) -> float:
    # Range must come from the same weights and mode filter as raw_score.
    return ((raw_score - difficulty_range.min) / (difficulty_range.max - difficulty_range.min)) * 100
