# ABOUTME: Stores per-user settings, including the chosen difficulty weights.
# ABOUTME: Upserts rows in memory and optionally persists them to a JSON file.

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Dict, Optional

from .schemas import DifficultyWeights, UserSettingsRecord


def _now_ms() -> int:
    return int(time.time() * 1000)


class UserSettingsStore:
    """
    One settings row per user.

    Writes are plain upserts: a missing row is created, an existing row only
    has the touched fields and ``updated_at`` changed. Debouncing rapid edits
    is the caller's job.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self._rows: Dict[int, UserSettingsRecord] = {}
        if self.path is not None and self.path.exists():
            self._rows = self._read(self.path)

    def get(self, user_id: int) -> Optional[UserSettingsRecord]:
        return self._rows.get(user_id)

    def load_difficulty_weights(self, user_id: int) -> DifficultyWeights:
        row = self._rows.get(user_id)
        if row is None or row.difficulty_weights is None:
            return DifficultyWeights()
        return row.difficulty_weights

    def save_difficulty_weights(
        self, user_id: int, weights: DifficultyWeights, now_ms: Optional[int] = None
    ) -> UserSettingsRecord:
        now = _now_ms() if now_ms is None else now_ms
        row = self._rows.get(user_id)
        if row is None:
            row = UserSettingsRecord(user_id=user_id, updated_at=now, difficulty_weights=weights)
            self._rows[user_id] = row
        else:
            row.difficulty_weights = weights
            row.updated_at = now
        self._flush()
        return row

    def set_gradually_increase_difficulty(
        self, user_id: int, value: bool, now_ms: Optional[int] = None
    ) -> UserSettingsRecord:
        now = _now_ms() if now_ms is None else now_ms
        activated_at = now if value else None
        row = self._rows.get(user_id)
        if row is None:
            row = UserSettingsRecord(
                user_id=user_id,
                updated_at=now,
                gradually_increase_difficulty=value,
                progressive_difficulty_activated_at=activated_at,
            )
            self._rows[user_id] = row
        else:
            row.gradually_increase_difficulty = value
            row.progressive_difficulty_activated_at = activated_at
            row.updated_at = now
        self._flush()
        return row

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [_row_to_dict(row) for row in sorted(self._rows.values(), key=lambda r: r.user_id)]
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    @staticmethod
    def _read(path: Path) -> Dict[int, UserSettingsRecord]:
        payload = json.loads(path.read_text(encoding="utf-8") or "[]")
        rows = {}
        for item in payload:
            row = _row_from_dict(item)
            rows[row.user_id] = row
        return rows


def _row_to_dict(row: UserSettingsRecord) -> Dict:
    return {
        "user_id": row.user_id,
        "updated_at": row.updated_at,
        "gradually_increase_difficulty": row.gradually_increase_difficulty,
        "progressive_difficulty_activated_at": row.progressive_difficulty_activated_at,
        "difficulty_weights": row.difficulty_weights.as_dict() if row.difficulty_weights else None,
    }


def _row_from_dict(item: Dict) -> UserSettingsRecord:
    raw_weights = item.get("difficulty_weights")
    return UserSettingsRecord(
        user_id=int(item["user_id"]),
        updated_at=int(item.get("updated_at", 0)),
        gradually_increase_difficulty=bool(item.get("gradually_increase_difficulty", False)),
        progressive_difficulty_activated_at=item.get("progressive_difficulty_activated_at"),
        difficulty_weights=DifficultyWeights.merge(raw_weights) if raw_weights is not None else None,
    )
