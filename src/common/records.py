# ABOUTME: Converts exercise and evaluation records to and from pandas DataFrames.
# ABOUTME: Loads exported record tables from parquet, CSV, or JSON files.

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from .schemas import MODE_SERIOUS, EvaluationRecord, ExerciseRecord

EXERCISE_COLUMNS = [
    "id",
    "user_id",
    "operand_a",
    "operand_b",
    "answer",
    "displayed_at",
    "solved_at",
    "keystroke_count",
    "mode",
    "evaluation_id",
    "timed_out",
]
EVALUATION_COLUMNS = ["id", "user_id", "scope", "rating", "exercise_ids", "mode", "created_at"]
SUPPORTED_SUFFIXES = (".parquet", ".csv", ".json")


def _optional_int(value) -> Optional[int]:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return int(value)


def _optional_bool(value) -> Optional[bool]:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return bool(value)


def _text(value, default: str) -> str:
    if value is None or (pd.api.types.is_scalar(value) and pd.isna(value)):
        return default
    return str(value)


def _to_id_tuple(raw_value) -> Tuple[int, ...]:
    if raw_value is None:
        return ()
    if isinstance(raw_value, str):
        text_value = raw_value.strip().strip("[]")
        parts = [part.strip() for part in text_value.replace(";", ",").split(",") if part.strip()]
        return tuple(int(part) for part in parts)
    if pd.api.types.is_scalar(raw_value):
        # A single-id cell read back from CSV arrives as a bare number.
        return () if pd.isna(raw_value) else (int(raw_value),)
    # Lists, tuples, and numpy arrays from parquet.
    return tuple(int(v) for v in raw_value)


def exercises_to_frame(exercises: Iterable[ExerciseRecord]) -> pd.DataFrame:
    rows = [
        {
            "id": ex.id,
            "user_id": ex.user_id,
            "operand_a": ex.operand_a,
            "operand_b": ex.operand_b,
            "answer": ex.answer,
            "displayed_at": ex.displayed_at,
            "solved_at": ex.solved_at,
            "keystroke_count": ex.keystroke_count,
            "mode": ex.mode,
            "evaluation_id": ex.evaluation_id,
            "timed_out": ex.timed_out,
        }
        for ex in exercises
    ]
    if not rows:
        return pd.DataFrame(columns=EXERCISE_COLUMNS)
    df = pd.DataFrame(rows, columns=EXERCISE_COLUMNS)
    for column in ("id", "solved_at", "keystroke_count", "evaluation_id"):
        df[column] = df[column].astype("Int64")
    return df


def evaluations_to_frame(evaluations: Iterable[EvaluationRecord]) -> pd.DataFrame:
    rows = [
        {
            "id": ev.id,
            "user_id": ev.user_id,
            "scope": ev.scope,
            "rating": ev.rating,
            "exercise_ids": list(ev.exercise_ids),
            "mode": ev.mode,
            "created_at": ev.created_at,
        }
        for ev in evaluations
    ]
    if not rows:
        return pd.DataFrame(columns=EVALUATION_COLUMNS)
    return pd.DataFrame(rows, columns=EVALUATION_COLUMNS)


def exercises_from_frame(df: pd.DataFrame) -> List[ExerciseRecord]:
    if df.empty:
        return []
    missing = {"operand_a", "operand_b", "displayed_at"} - set(df.columns)
    if missing:
        raise ValueError(f"Exercise table is missing required columns: {sorted(missing)}")

    records: List[ExerciseRecord] = []
    for row in df.to_dict(orient="records"):
        records.append(
            ExerciseRecord(
                id=_optional_int(row.get("id")),
                user_id=_optional_int(row.get("user_id")) or 0,
                operand_a=int(row["operand_a"]),
                operand_b=int(row["operand_b"]),
                displayed_at=int(row["displayed_at"]),
                solved_at=_optional_int(row.get("solved_at")),
                keystroke_count=_optional_int(row.get("keystroke_count")),
                mode=_text(row.get("mode"), MODE_SERIOUS),
                evaluation_id=_optional_int(row.get("evaluation_id")),
                timed_out=_optional_bool(row.get("timed_out")),
            )
        )
    return records


def evaluations_from_frame(df: pd.DataFrame) -> List[EvaluationRecord]:
    if df.empty:
        return []
    missing = {"rating", "exercise_ids"} - set(df.columns)
    if missing:
        raise ValueError(f"Evaluation table is missing required columns: {sorted(missing)}")

    records: List[EvaluationRecord] = []
    for row in df.to_dict(orient="records"):
        exercise_ids = _to_id_tuple(row.get("exercise_ids"))
        if not exercise_ids:
            continue
        records.append(
            EvaluationRecord(
                id=_optional_int(row.get("id")),
                user_id=_optional_int(row.get("user_id")) or 0,
                scope=_text(row.get("scope"), ""),
                rating=float(row["rating"]),
                exercise_ids=exercise_ids,
                mode=_text(row.get("mode"), MODE_SERIOUS),
                created_at=_optional_int(row.get("created_at")),
            )
        )
    return records


def _read_table(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".parquet":
        return pd.read_parquet(path)
    if suffix == ".csv":
        return pd.read_csv(path)
    if suffix == ".json":
        return pd.read_json(path, orient="records", convert_dates=False)
    raise ValueError(f"Unsupported file type '{suffix}'. Expected one of: {', '.join(SUPPORTED_SUFFIXES)}.")


def load_exercises(path: Path) -> List[ExerciseRecord]:
    return exercises_from_frame(_read_table(Path(path)))


def load_evaluations(path: Path) -> List[EvaluationRecord]:
    return evaluations_from_frame(_read_table(Path(path)))
