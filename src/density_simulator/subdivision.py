"""Subdivision engine: density → level → rectangles.

A base cell at level L is split into 2^L leaves. Each split halves the
longer side of the current rectangle (width > height → vertical cut, two
cells side by side; otherwise horizontal cut, two cells stacked). The rule
is re-evaluated after every split, so an 80×24 cell goes
80×24 → 40×24 → 20×24 → 20×12 → ... and tends toward square leaves.

Traversals:
    - subdivide_cell(): depth-first with an explicit stack, leaves in the
      same order a first-half-first recursion would produce
    - subdivision_lines(): breadth-first with a queue, one cut per split,
      ordered by level so renderers can overlay deeper (lighter) lines last

Degenerate rectangles (width or height ≤ 0) are never split further.
"""

import math
from collections import deque
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from src.utils.geometry import CellBounds, DividingLine, SubdividedCell

FALLOFFS = ("linear", "exponential")


class SubdivisionDirection(str, Enum):
    """Orientation of the cut, named after the dividing line."""

    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"


def density_to_subdivision_level(density: float, max_level: int) -> int:
    """clamp(floor(density · max_level), 0, max_level)."""
    level = math.floor(density * max_level)
    return max(0, min(max_level, level))


def density_to_level_field(density: np.ndarray, max_level: int) -> np.ndarray:
    """Vectorized density_to_subdivision_level (int array)."""
    levels = np.floor(density * max_level)
    return np.clip(levels, 0, max_level).astype(np.int64)


def distance_to_subdivision_level(
    distance: float,
    max_radius: float,
    max_level: int,
    falloff: str = "linear"
) -> int:
    """Level from pointer distance alone (no accumulation).

    Parameters
    ----------
    distance : float
        Distance from pointer to cell center (px)
    max_radius : float
        Radius beyond which cells stay at level 0
    max_level : int
        Level at distance 0
    falloff : str
        "linear": max_level · (1 − d/r); "exponential": max_level · (1 − d/r)²,
        which keeps the finest cells tighter around the pointer
    """
    if max_radius <= 0.0 or distance >= max_radius:
        return 0

    remaining = 1.0 - distance / max_radius
    if falloff == "linear":
        level = math.floor(max_level * remaining)
    elif falloff == "exponential":
        level = math.floor(max_level * remaining ** 2)
    else:
        raise ValueError(f"Unknown falloff: {falloff}. Use one of {FALLOFFS}.")
    return max(0, min(max_level, level))


def get_subdivision_direction(width: float, height: float) -> SubdivisionDirection:
    """Split across the longer side; ties split horizontally."""
    return SubdivisionDirection.VERTICAL if width > height else SubdivisionDirection.HORIZONTAL


def subdivide_cell_once(
    cell: CellBounds,
    direction: SubdivisionDirection
) -> Tuple[CellBounds, CellBounds]:
    """Halve a cell along ``direction``; first half is left/top."""
    if direction == SubdivisionDirection.VERTICAL:
        half = cell.width / 2.0
        return (
            CellBounds(cell.x, cell.y, half, cell.height),
            CellBounds(cell.x + half, cell.y, half, cell.height),
        )
    half = cell.height / 2.0
    return (
        CellBounds(cell.x, cell.y, cell.width, half),
        CellBounds(cell.x, cell.y + half, cell.width, half),
    )


def _split_line(cell: CellBounds, direction: SubdivisionDirection, level: int) -> DividingLine:
    if direction == SubdivisionDirection.VERTICAL:
        x = cell.x + cell.width / 2.0
        return DividingLine(x, cell.y, x, cell.y + cell.height, level)
    y = cell.y + cell.height / 2.0
    return DividingLine(cell.x, y, cell.x + cell.width, y, level)


def _subdivide_with_levels(cell: CellBounds, target_level: int) -> List[Tuple[CellBounds, int]]:
    leaves: List[Tuple[CellBounds, int]] = []
    stack = [(cell.bounds(), 0)]
    while stack:
        current, level = stack.pop()
        if level >= target_level or current.is_degenerate:
            leaves.append((current, level))
            continue
        first, second = subdivide_cell_once(
            current, get_subdivision_direction(current.width, current.height)
        )
        # LIFO: push second so first is expanded first
        stack.append((second, level + 1))
        stack.append((first, level + 1))
    return leaves


def subdivide_cell(cell: CellBounds, target_level: int) -> List[CellBounds]:
    """Split ``cell`` down to ``target_level``.

    Returns
    -------
    List[CellBounds]
        2^target_level leaves for a valid cell (fewer if a rectangle turns
        degenerate); ``[cell]`` for level ≤ 0.
    """
    return [leaf for leaf, _ in _subdivide_with_levels(cell, target_level)]


def subdivide_base_cell(
    cell: SubdividedCell,
    level: int,
    density: Optional[float] = None
) -> List[SubdividedCell]:
    """Leaves of a base cell tagged with level, base coordinates and density."""
    return [
        SubdividedCell(
            leaf.x, leaf.y, leaf.width, leaf.height,
            level=leaf_level,
            base_x=cell.base_x,
            base_y=cell.base_y,
            density=density,
        )
        for leaf, leaf_level in _subdivide_with_levels(cell, level)
    ]


def subdivision_lines(cell: CellBounds, target_level: int) -> List[DividingLine]:
    """Dividing lines introduced down to ``target_level``, ordered by level.

    A cell at level L has 2^L − 1 lines: one per split. The outline of the
    base cell is not included (that is level 0).
    """
    lines: List[DividingLine] = []
    queue = deque([(cell.bounds(), 0)])
    while queue:
        current, level = queue.popleft()
        if level >= target_level or current.is_degenerate:
            continue
        direction = get_subdivision_direction(current.width, current.height)
        lines.append(_split_line(current, direction, level + 1))
        first, second = subdivide_cell_once(current, direction)
        queue.append((first, level + 1))
        queue.append((second, level + 1))
    return lines
