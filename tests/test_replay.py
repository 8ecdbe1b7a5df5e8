"""Test headless replay.

Tests for src.density_simulator.replay:
    - Synthetic paths (hold, sweep, circle) and unknown path names
    - Frame count and summary structure
    - Painting then leaving: density holds, then drains
    - Distance level mode and the final pointer cell
    - Artifacts: summary.yaml and heatmap.png written atomically

Run:
    pytest tests/test_replay.py -v
"""

import importlib.util
import math
from pathlib import Path

import pytest
from PIL import Image

from src.density_simulator.field import DensityField, GridLayout
from src.density_simulator.replay import PATHS, make_path, run_replay, summarize_snapshot
from src.utils import fs
from src.utils.geometry import Point
from src.utils.logging_config import pop_context, teardown_logging
from src.utils.validators import GridConfig


# ============================================================================
# Paths
# ============================================================================

def test_hold_path():
    path = make_path("hold", (800.0, 600.0))
    assert path(0.0) == Point(400.0, 300.0)
    assert path(12.3) == Point(400.0, 300.0)


def test_sweep_path_bounces():
    path = make_path("sweep", (800.0, 600.0), speed=400.0)
    assert path(0.0) == Point(0.0, 300.0)
    assert path(1.0).x == pytest.approx(400.0)
    assert path(2.0).x == pytest.approx(800.0)
    assert path(3.0).x == pytest.approx(400.0)
    assert path(4.0).x == pytest.approx(0.0)


def test_circle_path():
    path = make_path("circle", (800.0, 600.0))
    p0 = path(0.0)
    assert p0.x == pytest.approx(600.0)
    assert p0.y == pytest.approx(300.0)
    for t in (0.1, 0.7, 2.0):
        p = path(t)
        assert math.hypot(p.x - 400.0, p.y - 300.0) == pytest.approx(200.0)


def test_unknown_path():
    with pytest.raises(ValueError, match="Unknown path"):
        make_path("zigzag", (800.0, 600.0))


# ============================================================================
# Summaries
# ============================================================================

def test_summarize_blank_field():
    layout = GridLayout.from_viewport(800.0, 600.0, GridConfig())
    summary = summarize_snapshot(DensityField(layout).snapshot, 8)

    assert summary['columns'] == 10
    assert summary['rows'] == 25
    assert summary['max_density'] == 0.0
    assert summary['painted_cells'] == 0
    assert summary['level_histogram'] == [250, 0, 0, 0, 0, 0, 0, 0, 0]
    assert summary['leaf_rectangles'] == 250


@pytest.mark.parametrize("path", PATHS)
def test_run_replay_summary(path):
    summary = run_replay(path=path, duration=1.0, paint_seconds=None, fps=60.0)

    assert summary['path'] == path
    assert summary['frames'] == 61
    assert summary['field']['max_density'] > 0.0
    assert summary['field']['max_density'] <= 1.0
    assert sum(summary['field']['level_histogram']) == 250
    assert summary['config']['density.increase_rate'] == 0.4
    assert summary['frame_time_ms']['mean'] >= 0.0
    assert 'artifacts' not in summary


def test_replay_hold_then_decay():
    painted = run_replay(path="hold", duration=2.5, paint_seconds=2.5, fps=50.0)
    held = run_replay(path="hold", duration=3.5, paint_seconds=2.5, fps=50.0)
    drained = run_replay(path="hold", duration=9.0, paint_seconds=2.5, fps=50.0)

    assert held['field']['max_density'] == pytest.approx(painted['field']['max_density'])
    assert drained['field']['max_density'] == 0.0
    assert drained['field']['painted_cells'] == 0


def test_replay_empty_viewport():
    summary = run_replay(viewport=(0.0, 0.0), path="hold", duration=0.5)
    assert summary['field']['columns'] == 0
    assert summary['field']['max_density'] == 0.0
    assert summary['field']['leaf_rectangles'] == 0


def test_replay_distance_levels_follow_pointer():
    summary = run_replay(path="hold", duration=0.5, paint_seconds=None, level_mode="distance")

    assert summary['level_mode'] == "distance"
    assert summary['pointer_cell'] == [5, 12]
    histogram = summary['field']['level_histogram']
    assert sum(histogram) == 250
    # Nearest centers are 40 px away: floor(8 · (1 − 40/500)) = 7
    assert histogram[7] > 0
    assert histogram[8] == 0


def test_replay_distance_levels_after_leave():
    summary = run_replay(path="hold", duration=1.0, paint_seconds=0.5, level_mode="distance")

    assert summary['pointer_cell'] is None
    assert summary['field']['level_histogram'] == [250, 0, 0, 0, 0, 0, 0, 0, 0]
    assert summary['field']['max_density'] > 0.0


def test_replay_rejects_unknown_modes():
    with pytest.raises(ValueError, match="Unknown level mode"):
        run_replay(level_mode="speed")
    with pytest.raises(ValueError, match="Unknown falloff"):
        run_replay(level_mode="distance", falloff="cubic")

# ============================================================================
# Artifacts
# ============================================================================

def test_replay_writes_artifacts(tmp_path):
    out = tmp_path / "replay"
    summary = run_replay(path="sweep", duration=1.0, output_dir=out)

    assert (out / "summary.yaml").exists()
    assert (out / "heatmap.png").exists()
    assert summary['artifacts']['heatmap'] == str(out / "heatmap.png")

    loaded = fs.load_yaml(out / "summary.yaml")
    assert loaded['path'] == "sweep"
    assert loaded['frames'] == summary['frames']
    assert loaded['field']['columns'] == 10

    # 25 rows × 6 px, 10 columns × 20 px
    with Image.open(out / "heatmap.png") as img:
        assert img.size == (200, 150)
        assert img.mode == "RGB"

    assert not list(out.glob("*.tmp*"))


# ============================================================================
# CLI
# ============================================================================

def _load_cli():
    script = Path(__file__).parent.parent / "scripts" / "simulate.py"
    spec = importlib.util.spec_from_file_location("simulate_cli", script)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_cli_main(tmp_path, monkeypatch, capsys):
    cli = _load_cli()
    config = Path(__file__).parent.parent / "configs" / "engine_v1.yaml"
    monkeypatch.setattr("sys.argv", [
        "simulate.py",
        "--config", str(config),
        "--path", "circle",
        "--duration", "0.5",
        "--viewport", "320", "240",
        "--output", str(tmp_path / "cli"),
    ])

    try:
        assert cli.main() == 0
    finally:
        teardown_logging()
        pop_context()

    out = capsys.readouterr().out
    assert "Replay Complete" in out
    assert "Grid: 4x10 base cells" in out
    assert (tmp_path / "cli" / "summary.yaml").exists()


def test_cli_distance_mode(tmp_path, monkeypatch, capsys):
    cli = _load_cli()
    monkeypatch.setattr("sys.argv", [
        "simulate.py",
        "--config", str(tmp_path / "missing.yaml"),
        "--path", "hold",
        "--duration", "0.25",
        "--paint-seconds", "-1",
        "--level-mode", "distance",
        "--falloff", "exponential",
    ])

    try:
        assert cli.main() == 0
    finally:
        teardown_logging()
        pop_context()

    out = capsys.readouterr().out
    assert "Level mode: distance" in out
    assert "Pointer cell: [5, 12]" in out
