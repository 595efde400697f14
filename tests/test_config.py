# ABOUTME: Tests YAML run-config parsing for analysis settings and the weight grid.
# ABOUTME: Includes a check that the shipped default config loads cleanly.

from pathlib import Path

import pytest
import yaml

from src.common.schemas import DifficultyWeights
from src.difficulty.config import (
    AnalysisConfig,
    GridAxis,
    WeightGrid,
    load_run_config,
    parse_analysis_config,
    parse_optimizer_config,
)

REPO_ROOT = Path(__file__).resolve().parents[1]


def _write(tmp_path, payload):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(payload), encoding="utf-8")
    return path


def test_empty_sections_use_defaults():
    assert parse_analysis_config(None) == AnalysisConfig()
    optimizer = parse_optimizer_config({})
    assert optimizer.grid == WeightGrid()
    assert optimizer.yield_every == 100
    assert optimizer.skip_failed_cells is False


def test_partial_weights_merge_with_defaults():
    config = parse_analysis_config({"mode_filter": "Serious", "weights": {"carryovers": 4}})
    assert config.mode_filter == "serious"
    assert config.weights == DifficultyWeights(digits=1.0, carryovers=4.0, zeros=0.5)


@pytest.mark.parametrize(
    "section",
    [
        {"mode_filter": "practice"},
        {"outlier_sensitivity": -1},
        {"weights": {"zeros": -0.5}},
    ],
)
def test_invalid_analysis_sections_raise(section):
    with pytest.raises(ValueError):
        parse_analysis_config(section)


@pytest.mark.parametrize(
    "section",
    [
        {"grid": {"digits": {"start": 0, "stop": 1, "step": 0}}},
        {"grid": {"zeros": {"start": 2, "stop": 1, "step": 0.5}}},
        {"yield_every": 0},
    ],
)
def test_invalid_optimizer_sections_raise(section):
    with pytest.raises(ValueError):
        parse_optimizer_config(section)


def test_load_run_config_reads_all_sections(tmp_path):
    path = _write(
        tmp_path,
        {
            "data": {"exercises_path": "ex.csv", "evaluations_path": "ev.csv"},
            "analysis": {"detect_outliers": False, "outlier_sensitivity": 2.0},
            "optimizer": {"yield_every": 10, "grid": {"digits": {"start": 0.0, "stop": 1.0, "step": 0.5}}},
            "outputs": {"reports_dir": "out"},
            "settings": {"store_path": "out/settings.json", "user_id": 4},
        },
    )
    run_config = load_run_config(path)
    assert run_config.exercises_path == Path("ex.csv")
    assert run_config.evaluations_path == Path("ev.csv")
    assert run_config.analysis.detect_outliers is False
    assert run_config.analysis.outlier_sensitivity == 2.0
    assert run_config.optimizer.yield_every == 10
    assert run_config.optimizer.grid.digits == GridAxis(0.0, 1.0, 0.5)
    assert run_config.optimizer.grid.size == 3 * 26 * 26
    assert run_config.reports_dir == Path("out")
    assert run_config.settings_store_path == Path("out/settings.json")
    assert run_config.user_id == 4


def test_shipped_default_config_loads():
    run_config = load_run_config(REPO_ROOT / "configs" / "difficulty_default.yaml")
    assert run_config.analysis == AnalysisConfig()
    assert run_config.optimizer.grid.size == 17576
    assert run_config.user_id == 1
