# ABOUTME: Makes the shared common package importable across the analytics engine.
# ABOUTME: Re-exports record schemas, record loaders, and the settings store for convenience.

from .schemas import (
    DataPoint,
    DifficultyRange,
    DifficultyWeights,
    EvaluationRecord,
    ExerciseRecord,
    OptimizationResult,
)
from .records import load_evaluations, load_exercises
from .settings_store import UserSettingsStore

__all__ = [
    "DataPoint",
    "DifficultyRange",
    "DifficultyWeights",
    "EvaluationRecord",
    "ExerciseRecord",
    "OptimizationResult",
    "load_evaluations",
    "load_exercises",
    "UserSettingsStore",
]
