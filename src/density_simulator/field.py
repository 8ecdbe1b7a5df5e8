"""Density field: per-base-cell state and the per-frame update.

Storage is an arena of fixed-size slots indexed by (row, col): two float64
arrays, ``density`` and ``last_painted``, sized from the viewport. Slots
start at (0, −inf). When the viewport changes the overlapping region is
carried over and new slots start fresh; the base-cell set itself is never
persisted.

Every frame builds new arrays from the current snapshot and returns a new
immutable FieldSnapshot. Publishing it is a single reference swap, so a
renderer reading ``field.snapshot`` sees either the previous frame or the
next one, never a half-updated grid.

Update order per cell (all cells are independent):
    increase (mean over contact points) → refresh last_painted → decay → clamp
"""

import logging
import math
import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from src.utils.geometry import (
    DividingLine,
    Point,
    SubdividedCell,
    distances_to_centers,
    points_to_array,
)
from src.utils.validators import DensityConfig, GridConfig
from .density import decay_multiplier_field, increase_rate_field
from .subdivision import (
    density_to_level_field,
    distance_to_subdivision_level,
    subdivide_base_cell,
    subdivision_lines,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GridLayout:
    """Base grid derived from the viewport."""

    columns: int
    rows: int
    cell_width: float
    cell_height: float

    @classmethod
    def from_viewport(cls, width: float, height: float, grid_cfg: GridConfig) -> "GridLayout":
        """ceil(available / base cell size) cells per axis (0 if no space)."""
        columns = math.ceil(width / grid_cfg.base_cell_width) if width > 0 else 0
        rows = math.ceil(height / grid_cfg.base_cell_height) if height > 0 else 0
        return cls(columns, rows, grid_cfg.base_cell_width, grid_cfg.base_cell_height)

    @property
    def shape(self):
        return (self.rows, self.columns)

    @property
    def cell_count(self) -> int:
        return self.rows * self.columns

    def cell_bounds(self, col: int, row: int) -> SubdividedCell:
        return SubdividedCell(
            col * self.cell_width,
            row * self.cell_height,
            self.cell_width,
            self.cell_height,
            level=0,
            base_x=col,
            base_y=row,
        )

    def base_cells(self) -> List[SubdividedCell]:
        """All base cells in row-major order."""
        return [
            self.cell_bounds(col, row)
            for row in range(self.rows)
            for col in range(self.columns)
        ]

    def cell_centers(self) -> np.ndarray:
        """Cell centers, shape (rows, columns, 2) as (x, y)."""
        xs = (np.arange(self.columns, dtype=np.float64) + 0.5) * self.cell_width
        ys = (np.arange(self.rows, dtype=np.float64) + 0.5) * self.cell_height
        grid_x, grid_y = np.meshgrid(xs, ys)
        return np.stack([grid_x, grid_y], axis=-1)

    def cell_at(self, p: Point) -> Optional[tuple]:
        """(col, row) of the base cell containing ``p``, None outside the grid."""
        col = math.floor(p.x / self.cell_width)
        row = math.floor(p.y / self.cell_height)
        if 0 <= col < self.columns and 0 <= row < self.rows:
            return (col, row)
        return None

    def distance_levels(
        self,
        p: Point,
        max_radius: float,
        max_level: int,
        falloff: str = "linear"
    ) -> np.ndarray:
        """(rows, cols) levels from the distance of each cell center to ``p``.

        No accumulation: the grid simply follows the pointer.
        """
        centers = self.cell_centers()
        distances = np.hypot(centers[..., 0] - p.x, centers[..., 1] - p.y)
        levels = np.zeros(self.shape, dtype=np.int64)
        for (row, col), d in np.ndenumerate(distances):
            levels[row, col] = distance_to_subdivision_level(float(d), max_radius, max_level, falloff)
        return levels


def _read_only(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True, eq=False)
class FieldSnapshot:
    """Immutable per-frame output of the density field.

    Attributes
    ----------
    layout : GridLayout
        Base grid the arrays are indexed by
    density : np.ndarray
        (rows, cols) float64 in [0, 1], read-only
    last_painted : np.ndarray
        (rows, cols) float64 timestamps, −inf if never painted, read-only
    levels : np.ndarray
        (rows, cols) int64 in [0, max_level], read-only
    timestamp : float
        Frame time the snapshot was computed for
    """

    layout: GridLayout
    density: np.ndarray
    last_painted: np.ndarray
    levels: np.ndarray
    timestamp: float

    def density_at(self, col: int, row: int) -> float:
        return float(self.density[row, col])

    def level_at(self, col: int, row: int) -> int:
        return int(self.levels[row, col])

    def subdivided_cells(self) -> List[SubdividedCell]:
        """Every base cell expanded to its current level, row-major.

        Level-0 cells are returned as themselves (one rectangle each).
        """
        cells: List[SubdividedCell] = []
        for row in range(self.layout.rows):
            for col in range(self.layout.columns):
                base = self.layout.cell_bounds(col, row)
                level = int(self.levels[row, col])
                density = float(self.density[row, col])
                cells.extend(subdivide_base_cell(base, level, density))
        return cells

    def dividing_lines(self) -> List[DividingLine]:
        """Internal cut lines of all subdivided cells, ordered by level."""
        lines: List[DividingLine] = []
        for row, col in zip(*np.nonzero(self.levels)):
            base = self.layout.cell_bounds(int(col), int(row))
            lines.extend(subdivision_lines(base, int(self.levels[row, col])))
        lines.sort(key=lambda line: line.level)
        return lines


class DensityField:
    """Owner of the density arena.

    Parameters
    ----------
    layout : GridLayout
        Initial base grid
    max_level : int
        Maximum subdivision level (for the level array)
    """

    def __init__(self, layout: GridLayout, max_level: int = 8):
        self._lock = threading.Lock()
        self._centers = layout.cell_centers()
        self._snapshot = self._empty_snapshot(layout, max_level, timestamp=0.0)

    @staticmethod
    def _empty_snapshot(layout: GridLayout, max_level: int, timestamp: float) -> FieldSnapshot:
        density = np.zeros(layout.shape, dtype=np.float64)
        return FieldSnapshot(
            layout=layout,
            density=_read_only(density),
            last_painted=_read_only(np.full(layout.shape, -np.inf, dtype=np.float64)),
            levels=_read_only(density_to_level_field(density, max_level)),
            timestamp=timestamp,
        )

    @property
    def snapshot(self) -> FieldSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def layout(self) -> GridLayout:
        return self.snapshot.layout

    def commit(self, snapshot: FieldSnapshot) -> bool:
        """Publish a snapshot computed by ``advance``.

        Returns False if ``snapshot`` was built for a layout that has since
        been replaced by ``resize``; it is discarded.
        """
        with self._lock:
            if snapshot.layout != self._snapshot.layout:
                logger.debug("Discarding snapshot computed for a previous layout")
                return False
            self._snapshot = snapshot
        return True

    def resize(self, layout: GridLayout, max_level: int) -> None:
        """Switch to a new base grid, keeping the overlapping cells."""
        with self._lock:
            old = self._snapshot
            if layout == old.layout:
                return

            density = np.zeros(layout.shape, dtype=np.float64)
            last_painted = np.full(layout.shape, -np.inf, dtype=np.float64)
            rows = min(layout.rows, old.layout.rows)
            cols = min(layout.columns, old.layout.columns)
            if layout.cell_width == old.layout.cell_width and layout.cell_height == old.layout.cell_height:
                density[:rows, :cols] = old.density[:rows, :cols]
                last_painted[:rows, :cols] = old.last_painted[:rows, :cols]

            self._centers = layout.cell_centers()
            self._snapshot = FieldSnapshot(
                layout=layout,
                density=_read_only(density),
                last_painted=_read_only(last_painted),
                levels=_read_only(density_to_level_field(density, max_level)),
                timestamp=old.timestamp,
            )
        logger.info(
            f"Density grid resized: {old.layout.columns}x{old.layout.rows} -> "
            f"{layout.columns}x{layout.rows} cells"
        )

    def advance(
        self,
        contact_points: Sequence[Point],
        now: float,
        delta_time: float,
        cfg: DensityConfig,
        max_level: int,
        velocity: float = 0.0
    ) -> FieldSnapshot:
        """Compute the next frame without publishing it.

        Parameters
        ----------
        contact_points : Sequence[Point]
            This frame's raw and interpolated pointer positions (may be empty)
        now : float
            Frame timestamp (s)
        delta_time : float
            Frame duration (s), already capped by the caller
        cfg : DensityConfig
            Density parameters
        max_level : int
            Maximum subdivision level
        velocity : float
            Smoothed pointer speed (px/s)
        """
        with self._lock:
            prev = self._snapshot
            centers = self._centers

        density = prev.density.copy()
        last_painted = prev.last_painted.copy()

        if len(contact_points) > 0 and prev.layout.cell_count > 0:
            distances = distances_to_centers(points_to_array(contact_points), centers)
            rate = increase_rate_field(distances, cfg, velocity).mean(axis=0)
            painted = rate > 0.0
            density += rate * delta_time
            last_painted[painted] = now

        multiplier = decay_multiplier_field(now - last_painted, cfg)
        density -= cfg.decay_rate * cfg.decay_multiplier * multiplier * delta_time
        np.clip(density, 0.0, 1.0, out=density)

        return FieldSnapshot(
            layout=prev.layout,
            density=_read_only(density),
            last_painted=_read_only(last_painted),
            levels=_read_only(density_to_level_field(density, max_level)),
            timestamp=now,
        )

    def update(
        self,
        contact_points: Sequence[Point],
        now: float,
        delta_time: float,
        cfg: DensityConfig,
        max_level: int,
        velocity: float = 0.0
    ) -> FieldSnapshot:
        """advance() and commit() in one call."""
        snapshot = self.advance(contact_points, now, delta_time, cfg, max_level, velocity)
        self.commit(snapshot)
        return snapshot
