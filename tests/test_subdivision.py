"""Test recursive cell subdivision.

Tests for src.density_simulator.subdivision:
    - Density → level mapping (floor, clamped)
    - Distance → level mapping (linear/exponential falloff)
    - Direction rule: cut across the longer side, ties horizontal
    - Leaves: 2^L count, exact partition of the parent, first-half-first order
    - 80×24 base cells tend toward square leaves
    - Dividing lines: 2^L − 1 per cell, ordered by level
    - Degenerate rectangles are terminal

Run:
    pytest tests/test_subdivision.py -v
"""

import numpy as np
import pytest

from src.density_simulator.subdivision import (
    SubdivisionDirection,
    density_to_level_field,
    density_to_subdivision_level,
    distance_to_subdivision_level,
    get_subdivision_direction,
    subdivide_base_cell,
    subdivide_cell,
    subdivide_cell_once,
    subdivision_lines,
)
from src.utils.geometry import CellBounds, Point, SubdividedCell


BASE = CellBounds(0.0, 0.0, 80.0, 24.0)


# ============================================================================
# Level mapping
# ============================================================================

@pytest.mark.parametrize("density,expected", [
    (0.0, 0),
    (0.124, 0),
    (0.125, 1),
    (0.5, 4),
    (0.99, 7),
    (1.0, 8),
    (1.5, 8),
    (-0.2, 0),
])
def test_density_to_level(density, expected):
    assert density_to_subdivision_level(density, 8) == expected


def test_density_to_level_zero_max():
    assert density_to_subdivision_level(1.0, 0) == 0


def test_density_to_level_field_matches_scalar():
    densities = np.array([[0.0, 0.13, 0.5], [0.874, 0.875, 1.0]])
    levels = density_to_level_field(densities, 8)

    assert levels.dtype == np.int64
    expected = [[density_to_subdivision_level(d, 8) for d in row] for row in densities]
    assert levels.tolist() == expected


def test_distance_to_level_linear():
    assert distance_to_subdivision_level(0.0, 100.0, 8) == 8
    assert distance_to_subdivision_level(50.0, 100.0, 8) == 4
    assert distance_to_subdivision_level(100.0, 100.0, 8) == 0
    assert distance_to_subdivision_level(250.0, 100.0, 8) == 0


def test_distance_to_level_exponential_is_tighter():
    assert distance_to_subdivision_level(50.0, 100.0, 8, falloff="exponential") == 2
    for d in (10.0, 30.0, 60.0, 90.0):
        assert (
            distance_to_subdivision_level(d, 100.0, 8, falloff="exponential")
            <= distance_to_subdivision_level(d, 100.0, 8, falloff="linear")
        )


def test_distance_to_level_unknown_falloff():
    with pytest.raises(ValueError, match="Unknown falloff"):
        distance_to_subdivision_level(10.0, 100.0, 8, falloff="cubic")


# ============================================================================
# Splitting
# ============================================================================

def test_direction_rule():
    assert get_subdivision_direction(80.0, 24.0) == SubdivisionDirection.VERTICAL
    assert get_subdivision_direction(20.0, 24.0) == SubdivisionDirection.HORIZONTAL
    assert get_subdivision_direction(24.0, 24.0) == SubdivisionDirection.HORIZONTAL


def test_subdivide_once_vertical():
    left, right = subdivide_cell_once(BASE, SubdivisionDirection.VERTICAL)
    assert left == CellBounds(0.0, 0.0, 40.0, 24.0)
    assert right == CellBounds(40.0, 0.0, 40.0, 24.0)


def test_subdivide_once_horizontal():
    top, bottom = subdivide_cell_once(CellBounds(10.0, 10.0, 20.0, 24.0), SubdivisionDirection.HORIZONTAL)
    assert top == CellBounds(10.0, 10.0, 20.0, 12.0)
    assert bottom == CellBounds(10.0, 22.0, 20.0, 12.0)


def test_level_zero_returns_cell():
    assert subdivide_cell(BASE, 0) == [BASE]


def test_level_two_order_and_sizes():
    leaves = subdivide_cell(BASE, 2)
    assert leaves == [
        CellBounds(0.0, 0.0, 20.0, 24.0),
        CellBounds(20.0, 0.0, 20.0, 24.0),
        CellBounds(40.0, 0.0, 20.0, 24.0),
        CellBounds(60.0, 0.0, 20.0, 24.0),
    ]


def test_level_three_switches_to_horizontal():
    leaves = subdivide_cell(BASE, 3)
    assert all(leaf.width == 20.0 and leaf.height == 12.0 for leaf in leaves)
    # first-half-first: both halves of the leftmost column come first
    assert leaves[0] == CellBounds(0.0, 0.0, 20.0, 12.0)
    assert leaves[1] == CellBounds(0.0, 12.0, 20.0, 12.0)


@pytest.mark.parametrize("level", range(0, 9))
def test_leaf_count_and_area(level):
    leaves = subdivide_cell(BASE, level)
    assert len(leaves) == 2 ** level
    assert sum(leaf.area for leaf in leaves) == pytest.approx(BASE.area)


def test_leaves_partition_parent():
    leaves = subdivide_cell(CellBounds(160.0, 48.0, 80.0, 24.0), 6)
    for x in np.arange(160.25, 240.0, 0.5):
        for y in np.arange(48.25, 72.0, 0.5):
            p = Point(float(x), float(y))
            assert sum(leaf.contains(p) for leaf in leaves) == 1


def test_leaves_tend_toward_square():
    for level in range(1, 9):
        for leaf in subdivide_cell(BASE, level):
            ratio = max(leaf.width, leaf.height) / min(leaf.width, leaf.height)
            assert ratio <= 2.0


def test_degenerate_cell_is_terminal():
    flat = CellBounds(0.0, 0.0, 0.0, 24.0)
    assert subdivide_cell(flat, 5) == [flat]
    assert subdivision_lines(flat, 5) == []


def test_subdivide_base_cell_tags():
    base = SubdividedCell(80.0, 24.0, 80.0, 24.0, base_x=1, base_y=1)
    leaves = subdivide_base_cell(base, 3, density=0.4)

    assert len(leaves) == 8
    for leaf in leaves:
        assert leaf.level == 3
        assert (leaf.base_x, leaf.base_y) == (1, 1)
        assert leaf.density == 0.4
        assert base.contains(leaf.center)


def test_subdivide_base_cell_level_zero():
    base = SubdividedCell(0.0, 0.0, 80.0, 24.0, base_x=0, base_y=0)
    assert subdivide_base_cell(base, 0) == [base]


# ============================================================================
# Dividing lines
# ============================================================================

@pytest.mark.parametrize("level", range(0, 9))
def test_line_count(level):
    assert len(subdivision_lines(BASE, level)) == 2 ** level - 1


def test_lines_ordered_by_level():
    lines = subdivision_lines(BASE, 5)
    levels = [line.level for line in lines]
    assert levels == sorted(levels)
    assert levels[0] == 1
    assert levels[-1] == 5


def test_first_line_halves_base_cell():
    first = subdivision_lines(BASE, 1)[0]
    assert first.is_vertical
    assert (first.x1, first.y1, first.x2, first.y2) == (40.0, 0.0, 40.0, 24.0)


def test_lines_stay_inside_cell():
    for line in subdivision_lines(BASE, 6):
        for x, y in ((line.x1, line.y1), (line.x2, line.y2)):
            assert 0.0 <= x <= 80.0
            assert 0.0 <= y <= 24.0
