# ABOUTME: Defines canonical data structures shared by the analytics engine.
# ABOUTME: Centralizes exercise, evaluation, weight, and correlation point schemas.

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Mapping, Optional, Tuple

MODE_TRIAL = "trial"
MODE_SERIOUS = "serious"
MODE_ALL = "all"
EXERCISE_MODES = (MODE_TRIAL, MODE_SERIOUS)

EVALUATION_SCOPES = (
    "this task",
    "the last exercise",
    "the last three exercises",
    "the last five exercises",
    "the last 10 exercises",
)

MIN_RATING = 1
MAX_RATING = 9


@dataclass(frozen=True)
class ExerciseRecord:
    """One addition exercise as shown to (and possibly solved by) a user."""

    id: Optional[int]
    user_id: int
    operand_a: int
    operand_b: int
    displayed_at: int
    solved_at: Optional[int] = None
    keystroke_count: Optional[int] = None
    mode: str = MODE_SERIOUS
    evaluation_id: Optional[int] = None
    timed_out: Optional[bool] = None

    @property
    def answer(self) -> int:
        return self.operand_a + self.operand_b


@dataclass(frozen=True)
class EvaluationRecord:
    """Self-reported effort rating covering one or more recent exercises."""

    id: Optional[int]
    user_id: int
    scope: str
    rating: float
    exercise_ids: Tuple[int, ...]
    mode: str = MODE_SERIOUS
    created_at: Optional[int] = None


@dataclass(frozen=True)
class DifficultyWeights:
    """Scalar weights for the digit, carry, and zero difficulty features."""

    digits: float = 1.0
    carryovers: float = 2.5
    zeros: float = 0.5

    @classmethod
    def merge(cls, overrides: Optional[Mapping[str, Optional[float]]] = None) -> "DifficultyWeights":
        defaults = cls()
        overrides = overrides or {}
        values = {}
        for name in ("digits", "carryovers", "zeros"):
            value = overrides.get(name)
            values[name] = float(getattr(defaults, name) if value is None else value)
        return cls(**values)

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


DEFAULT_DIFFICULTY_WEIGHTS = DifficultyWeights()


def merge_difficulty_weights(overrides: Optional[Mapping[str, Optional[float]]] = None) -> DifficultyWeights:
    return DifficultyWeights.merge(overrides)


@dataclass(frozen=True)
class DifficultyRange:
    min: float
    max: float


@dataclass(frozen=True)
class DataPoint:
    x: float
    y: float
    is_outlier: bool = False


@dataclass(frozen=True)
class MetricCorrelations:
    cl: Optional[float] = None
    time: Optional[float] = None
    correctness: Optional[float] = None

    def as_dict(self) -> Dict[str, Optional[float]]:
        return asdict(self)


@dataclass(frozen=True)
class OptimizationProgress:
    current: int
    total: int
    percentage: float


@dataclass(frozen=True)
class OptimizationResult:
    """Best weight triple found by the grid search plus its correlations."""

    weights: DifficultyWeights
    correlations: MetricCorrelations
    composite_score: float
    evaluated: int = 0
    total: int = 0
    cancelled: bool = False
    failed_cells: int = 0

    def as_dict(self) -> Dict:
        return {
            "weights": self.weights.as_dict(),
            "correlations": self.correlations.as_dict(),
            "composite_score": self.composite_score,
            "evaluated": self.evaluated,
            "total": self.total,
            "cancelled": self.cancelled,
            "failed_cells": self.failed_cells,
        }


@dataclass
class UserSettingsRecord:
    """Per-user settings row; weights are optional until the user edits them."""

    user_id: int
    updated_at: int
    gradually_increase_difficulty: bool = False
    progressive_difficulty_activated_at: Optional[int] = None
    difficulty_weights: Optional[DifficultyWeights] = None
