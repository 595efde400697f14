# ABOUTME: Declares configuration objects for analysis runs and the weight grid search.
# ABOUTME: Parses YAML run configs into validated, immutable dataclasses.

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from src.common.schemas import EXERCISE_MODES, MODE_ALL, DifficultyWeights

from .outliers import DEFAULT_SENSITIVITY


@dataclass(frozen=True)
class GridAxis:
    """Inclusive arithmetic range of candidate values for one weight."""

    start: float
    stop: float
    step: float

    def values(self) -> List[float]:
        # Integer-indexed so float drift neither drops the endpoint nor overshoots stop.
        count = int(math.floor((self.stop - self.start) / self.step + 1e-9)) + 1
        return [round(self.start + idx * self.step, 1) for idx in range(count)]


@dataclass(frozen=True)
class WeightGrid:
    digits: GridAxis = GridAxis(0.0, 5.0, 0.2)
    carryovers: GridAxis = GridAxis(0.0, 10.0, 0.4)
    zeros: GridAxis = GridAxis(0.0, 5.0, 0.2)

    @property
    def size(self) -> int:
        return len(self.digits.values()) * len(self.carryovers.values()) * len(self.zeros.values())


@dataclass(frozen=True)
class AnalysisConfig:
    """Caller-owned settings threaded through every builder and optimizer call."""

    weights: DifficultyWeights = DifficultyWeights()
    mode_filter: str = MODE_ALL
    detect_outliers: bool = True
    outlier_sensitivity: float = DEFAULT_SENSITIVITY


@dataclass(frozen=True)
class OptimizerConfig:
    grid: WeightGrid = WeightGrid()
    yield_every: int = 100
    skip_failed_cells: bool = False


@dataclass(frozen=True)
class RunConfig:
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    exercises_path: Optional[Path] = None
    evaluations_path: Optional[Path] = None
    reports_dir: Path = Path("reports")
    settings_store_path: Optional[Path] = None
    user_id: Optional[int] = None


def parse_analysis_config(section: Optional[Mapping[str, Any]]) -> AnalysisConfig:
    section = section or {}
    mode_filter = str(section.get("mode_filter", MODE_ALL)).strip().lower()
    if mode_filter != MODE_ALL and mode_filter not in EXERCISE_MODES:
        raise ValueError(
            f"Unsupported mode_filter '{mode_filter}'. Expected one of: {MODE_ALL}, {', '.join(EXERCISE_MODES)}."
        )

    sensitivity = float(section.get("outlier_sensitivity", DEFAULT_SENSITIVITY))
    if sensitivity < 0:
        raise ValueError(f"outlier_sensitivity must be non-negative, got {sensitivity}.")

    weights = DifficultyWeights.merge(section.get("weights"))
    for name, value in weights.as_dict().items():
        if value < 0:
            raise ValueError(f"Weight '{name}' must be non-negative, got {value}.")

    return AnalysisConfig(
        weights=weights,
        mode_filter=mode_filter,
        detect_outliers=bool(section.get("detect_outliers", True)),
        outlier_sensitivity=sensitivity,
    )


def _parse_axis(raw: Optional[Mapping[str, Any]], default: GridAxis, name: str) -> GridAxis:
    if not raw:
        return default
    axis = GridAxis(
        start=float(raw.get("start", default.start)),
        stop=float(raw.get("stop", default.stop)),
        step=float(raw.get("step", default.step)),
    )
    if axis.step <= 0:
        raise ValueError(f"Grid axis '{name}' needs a positive step, got {axis.step}.")
    if axis.stop < axis.start:
        raise ValueError(f"Grid axis '{name}' stop {axis.stop} is below start {axis.start}.")
    return axis


def parse_optimizer_config(section: Optional[Mapping[str, Any]]) -> OptimizerConfig:
    section = section or {}
    defaults = WeightGrid()
    grid_cfg: Dict[str, Any] = section.get("grid") or {}
    grid = WeightGrid(
        digits=_parse_axis(grid_cfg.get("digits"), defaults.digits, "digits"),
        carryovers=_parse_axis(grid_cfg.get("carryovers"), defaults.carryovers, "carryovers"),
        zeros=_parse_axis(grid_cfg.get("zeros"), defaults.zeros, "zeros"),
    )
    yield_every = int(section.get("yield_every", 100))
    if yield_every <= 0:
        raise ValueError(f"yield_every must be positive, got {yield_every}.")
    return OptimizerConfig(
        grid=grid,
        yield_every=yield_every,
        skip_failed_cells=bool(section.get("skip_failed_cells", False)),
    )


def load_run_config(config_path: Path) -> RunConfig:
    """Read a YAML run config; absent sections keep their defaults."""

    with open(config_path) as f:
        cfg = yaml.safe_load(f) or {}

    data_cfg = cfg.get("data", {}) or {}
    outputs_cfg = cfg.get("outputs", {}) or {}
    settings_cfg = cfg.get("settings", {}) or {}

    exercises_path = data_cfg.get("exercises_path")
    evaluations_path = data_cfg.get("evaluations_path")
    store_path = settings_cfg.get("store_path")
    user_id = settings_cfg.get("user_id")

    return RunConfig(
        analysis=parse_analysis_config(cfg.get("analysis")),
        optimizer=parse_optimizer_config(cfg.get("optimizer")),
        exercises_path=Path(exercises_path) if exercises_path else None,
        evaluations_path=Path(evaluations_path) if evaluations_path else None,
        reports_dir=Path(outputs_cfg.get("reports_dir", "reports")),
        settings_store_path=Path(store_path) if store_path else None,
        user_id=int(user_id) if user_id is not None else None,
    )
