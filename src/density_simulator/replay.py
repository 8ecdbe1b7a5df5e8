"""Headless replay: drive the engine with a synthetic pointer path.

Runs the engine on a synthetic clock (no sleeping, fully deterministic) so
trails can be inspected without a UI. Pointer samples are generated at
``sample_hz`` and frames at ``fps``; the pointer paints for the first
``paint_seconds`` and then leaves, so the tail of the run shows the hold
window and decay.

Paths:
    - hold:   stationary at the viewport center
    - sweep:  left → right across the vertical center, bouncing at the edges
    - circle: circle around the center, radius min(w, h) / 3

Level modes:
    - density:  levels from accumulated density (the simulated trail)
    - distance: levels from the distance between each cell center and the
      final pointer position, no accumulation; all zero once the pointer
      has left

Outputs (optional output_dir):
    - summary.yaml: run parameters, final field statistics, frame timing
    - heatmap.png:  final density as a heat map, one block per base cell
"""

import logging
import math
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import numpy as np

from src.utils import color, fs, validators
from src.utils.geometry import Point
from src.utils.profiler import TimerAccumulator
from .engine import DensityEngine
from .field import FieldSnapshot
from .subdivision import FALLOFFS

logger = logging.getLogger(__name__)

PATHS = ("hold", "sweep", "circle")
LEVEL_MODES = ("density", "distance")

PathFn = Callable[[float], Point]


def make_path(kind: str, viewport: Tuple[float, float], speed: float = 600.0) -> PathFn:
    """Pointer position as a function of time for a named path.

    Parameters
    ----------
    kind : str
        One of PATHS
    viewport : tuple[float, float]
        (width, height) in px
    speed : float
        Pointer speed along the path (px/s); ignored by "hold"
    """
    width, height = viewport
    cx, cy = width / 2.0, height / 2.0

    if kind == "hold":
        return lambda t: Point(cx, cy)

    if kind == "sweep":
        span = max(width, 1.0)

        def sweep(t: float) -> Point:
            # Triangle wave over [0, width]
            phase = (t * speed) % (2.0 * span)
            x = phase if phase <= span else 2.0 * span - phase
            return Point(x, cy)
        return sweep

    if kind == "circle":
        radius = max(min(width, height) / 3.0, 1.0)
        omega = speed / radius

        def circle(t: float) -> Point:
            return Point(cx + radius * math.cos(omega * t), cy + radius * math.sin(omega * t))
        return circle

    raise ValueError(f"Unknown path: {kind}. Use one of {PATHS}.")


def summarize_snapshot(
    snapshot: FieldSnapshot,
    max_level: int,
    levels: Optional[np.ndarray] = None
) -> Dict[str, Any]:
    """Field statistics for logs and summary.yaml.

    ``levels`` overrides the snapshot's density levels (distance mode).
    """
    density = snapshot.density
    levels = snapshot.levels if levels is None else levels
    histogram = np.bincount(levels.ravel(), minlength=max_level + 1) if levels.size else np.zeros(max_level + 1)
    leaf_count = int(np.sum(np.power(2, levels, dtype=np.int64))) if levels.size else 0

    return {
        'columns': snapshot.layout.columns,
        'rows': snapshot.layout.rows,
        'max_density': float(density.max()) if density.size else 0.0,
        'mean_density': float(density.mean()) if density.size else 0.0,
        'painted_cells': int(np.count_nonzero(density > 0.0)),
        'level_histogram': [int(n) for n in histogram],
        'leaf_rectangles': leaf_count,
    }


def run_replay(
    config: Optional[validators.EngineConfigV1] = None,
    viewport: Tuple[float, float] = (800.0, 600.0),
    path: str = "sweep",
    duration: float = 6.0,
    paint_seconds: Optional[float] = 2.5,
    fps: Optional[float] = None,
    sample_hz: float = 120.0,
    speed: float = 600.0,
    output_dir: Optional[Union[str, Path]] = None,
    level_mode: str = "density",
    falloff: str = "linear",
) -> Dict[str, Any]:
    """Replay a synthetic pointer path through a fresh engine.

    Parameters
    ----------
    config : EngineConfigV1, optional
        Engine configuration (defaults if None)
    viewport : tuple[float, float]
        Grid area (width, height) in px
    path : str
        One of PATHS
    duration : float
        Simulated seconds
    paint_seconds : float, optional
        Pointer leaves after this many seconds; None keeps it present
    fps : float, optional
        Frame rate; config.frame.target_fps if None
    sample_hz : float
        Pointer sample rate
    speed : float
        Pointer speed for moving paths (px/s)
    output_dir : str or Path, optional
        Where to write summary.yaml and heatmap.png
    level_mode : str
        One of LEVEL_MODES; how the summary's level histogram is derived
    falloff : str
        One of FALLOFFS, used by the distance mode

    Returns
    -------
    dict
        Summary (also written to summary.yaml when output_dir is given)
    """
    if level_mode not in LEVEL_MODES:
        raise ValueError(f"Unknown level mode: {level_mode}. Use one of {LEVEL_MODES}.")
    if falloff not in FALLOFFS:
        raise ValueError(f"Unknown falloff: {falloff}. Use one of {FALLOFFS}.")

    config = config or validators.EngineConfigV1()
    fps = fps or config.frame.target_fps
    position = make_path(path, viewport, speed)

    sim_time = 0.0
    engine = DensityEngine(config, viewport=viewport, clock=lambda: sim_time)
    frame_timer = TimerAccumulator("frame")

    frame_dt = 1.0 / fps
    sample_dt = 1.0 / sample_hz
    next_sample = 0.0
    present = False
    last_point: Optional[Point] = None
    n_frames = int(math.floor(duration * fps)) + 1

    logger.info(
        f"Replay: path={path}, duration={duration:.2f}s, fps={fps:.0f}, "
        f"viewport={viewport[0]:.0f}x{viewport[1]:.0f}"
    )

    snapshot = engine.snapshot
    for i in range(n_frames):
        sim_time = i * frame_dt
        painting = paint_seconds is None or sim_time < paint_seconds

        if painting:
            while next_sample <= sim_time:
                p = position(next_sample)
                engine.pointer_move(p.x, p.y, timestamp=next_sample)
                last_point = p
                next_sample += sample_dt
            present = True
        elif present:
            engine.pointer_leave()
            present = False
            last_point = None

        with frame_timer.measure():
            snapshot = engine.step(sim_time)

    max_level = config.grid.max_subdivision_level
    levels = None
    if level_mode == "distance":
        if last_point is None:
            levels = np.zeros(snapshot.layout.shape, dtype=np.int64)
        else:
            levels = snapshot.layout.distance_levels(
                last_point, config.density.influence_radius, max_level, falloff
            )
    pointer_cell = None if last_point is None else snapshot.layout.cell_at(last_point)

    summary = {
        'path': path,
        'duration_s': float(duration),
        'paint_seconds': None if paint_seconds is None else float(paint_seconds),
        'fps': float(fps),
        'frames': engine.frame_count,
        'viewport': [float(viewport[0]), float(viewport[1])],
        'level_mode': level_mode,
        'pointer_cell': None if pointer_cell is None else list(pointer_cell),
        'field': summarize_snapshot(snapshot, max_level, levels),
        'frame_time_ms': {
            'mean': frame_timer.mean() * 1000.0,
            'max': frame_timer.max_time * 1000.0,
        },
        'config': validators.flatten_config(config),
    }

    logger.info(
        f"Replay done: {summary['frames']} frames, "
        f"max_density={summary['field']['max_density']:.3f}, "
        f"painted_cells={summary['field']['painted_cells']}"
    )

    if output_dir is not None:
        out = fs.ensure_dir(output_dir)
        heatmap = color.density_to_heatmap(snapshot.density)
        cell_px = (
            max(1, int(round(config.grid.base_cell_height / 4.0))),
            max(1, int(round(config.grid.base_cell_width / 4.0))),
        )
        fs.atomic_save_image(color.upscale_nearest(heatmap, cell_px), out / "heatmap.png")
        fs.atomic_yaml_dump(summary, out / "summary.yaml")
        summary['artifacts'] = {
            'summary': str(out / "summary.yaml"),
            'heatmap': str(out / "heatmap.png"),
        }
        logger.info(f"Replay artifacts written to {out}")

    return summary
