"""Geometric primitives for the density grid.

Provides:
    - Point / TimestampedPoint value types (grid pixel space)
    - CellBounds: axis-aligned rectangle with center and degeneracy checks
    - SubdividedCell: leaf rectangle tagged with level and owning base cell
    - DividingLine: single cut introduced by one subdivision step
    - Euclidean distance and cell-center helpers
    - Vectorized point → cell-center distances (numpy)

Used by:
    - Path interpolator: segment lengths and linear interpolation
    - Density field: distances from contact points to every base-cell center
    - Subdivision engine: rectangle splitting

All coordinates in grid pixels, top-left origin, +Y down.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np


@dataclass(frozen=True, slots=True)
class Point:
    """2-D coordinate in grid pixel space."""

    x: float
    y: float


@dataclass(frozen=True, slots=True)
class TimestampedPoint(Point):
    """Pointer sample with its capture time (monotonic seconds)."""

    timestamp: float

    def to_point(self) -> Point:
        return Point(self.x, self.y)


@dataclass(frozen=True, slots=True)
class CellBounds:
    """Axis-aligned rectangle (x, y) top-left, width/height in px.

    Notes
    -----
    Valid cells have width > 0 and height > 0. Degenerate rectangles are
    representable so that geometry code never has to raise; callers check
    ``is_degenerate`` instead.
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2.0, self.y + self.height / 2.0)

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def is_degenerate(self) -> bool:
        return not (self.width > 0.0 and self.height > 0.0)

    def contains(self, p: Point) -> bool:
        """Half-open containment test: [x, x+w) × [y, y+h)."""
        return (
            self.x <= p.x < self.x + self.width
            and self.y <= p.y < self.y + self.height
        )

    def bounds(self) -> "CellBounds":
        """Plain rectangle view (drops any subclass tags)."""
        return CellBounds(self.x, self.y, self.width, self.height)


@dataclass(frozen=True, slots=True)
class SubdividedCell(CellBounds):
    """Leaf rectangle produced by subdividing a base cell.

    Parameters
    ----------
    level : int
        Depth from the base cell (0 = unsubdivided)
    base_x, base_y : int
        Grid column/row of the owning base cell (stable across subdivision)
    density : float, optional
        Density that produced this level (heat-map coloring only)
    """

    level: int = 0
    base_x: int = 0
    base_y: int = 0
    density: Optional[float] = None


@dataclass(frozen=True, slots=True)
class DividingLine:
    """Cut plane introduced by one split.

    ``level`` is the level of the two children the cut creates, so level-1
    lines halve the base cell and level-0 is the base outline itself.
    """

    x1: float
    y1: float
    x2: float
    y2: float
    level: int

    @property
    def is_vertical(self) -> bool:
        return self.x1 == self.x2


def calculate_distance(p1: Point, p2: Point) -> float:
    """Euclidean distance between two points."""
    return math.hypot(p1.x - p2.x, p1.y - p2.y)


def get_cell_center(cell: CellBounds) -> Point:
    """Center point of a cell."""
    return cell.center


def points_to_array(points: Sequence[Point]) -> np.ndarray:
    """Stack points into a float64 array of shape (N, 2)."""
    if len(points) == 0:
        return np.zeros((0, 2), dtype=np.float64)
    return np.array([(p.x, p.y) for p in points], dtype=np.float64)


def distances_to_centers(points: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """Distances from every point to every cell center.

    Parameters
    ----------
    points : np.ndarray
        Contact points, shape (P, 2)
    centers : np.ndarray
        Cell centers, shape (R, C, 2)

    Returns
    -------
    np.ndarray
        Distances, shape (P, R, C)
    """
    diff = centers[np.newaxis, :, :, :] - points[:, np.newaxis, np.newaxis, :]
    return np.hypot(diff[..., 0], diff[..., 1])
