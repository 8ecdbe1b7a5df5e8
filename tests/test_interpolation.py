"""Test pointer path interpolation.

Tests for src.density_simulator.interpolation:
    - Gap filling between two samples (point count, spacing, endpoints)
    - Near-stationary pointer returns only the new position
    - Recency filter
    - Step size from influence radius and paint smoothness
    - PointerTracker: chaining samples, stale samples, leave, bounded queue

Run:
    pytest tests/test_interpolation.py -v
"""

import pytest

from src.density_simulator.interpolation import (
    MIN_STEP_PX,
    PointerTracker,
    filter_recent_points,
    interpolate_points,
    interpolation_step_size,
)
from src.utils.geometry import Point, TimestampedPoint, calculate_distance
from src.utils.validators import DensityConfig


# ============================================================================
# interpolate_points
# ============================================================================

def test_interpolation_fills_gap():
    """100 px at step 20 → 5 steps → 6 points from t=0 to t=1."""
    points = interpolate_points(Point(0.0, 0.0), Point(100.0, 0.0), 20.0)

    assert len(points) == 6
    assert points[0] == Point(0.0, 0.0)
    assert points[-1] == Point(100.0, 0.0)
    for i, p in enumerate(points):
        assert p.x == pytest.approx(20.0 * i)
        assert p.y == 0.0


def test_interpolation_short_segment_returns_endpoint_only():
    points = interpolate_points(Point(0.0, 0.0), Point(3.0, 4.0), 20.0)
    assert points == [Point(3.0, 4.0)]


def test_interpolation_stationary():
    assert interpolate_points(Point(5.0, 5.0), Point(5.0, 5.0), 10.0) == [Point(5.0, 5.0)]


def test_interpolation_distance_equal_to_step():
    points = interpolate_points(Point(0.0, 0.0), Point(0.0, 20.0), 20.0)
    assert points == [Point(0.0, 0.0), Point(0.0, 20.0)]


def test_interpolation_spacing_never_exceeds_step():
    p1, p2 = Point(10.0, -5.0), Point(73.0, 48.0)
    step = 7.5
    points = interpolate_points(p1, p2, step)

    assert points[0] == p1
    assert points[-1].x == pytest.approx(p2.x)
    assert points[-1].y == pytest.approx(p2.y)
    for a, b in zip(points, points[1:]):
        assert calculate_distance(a, b) <= step + 1e-9


def test_interpolation_non_positive_step():
    assert interpolate_points(Point(0.0, 0.0), Point(100.0, 0.0), 0.0) == [Point(100.0, 0.0)]


# ============================================================================
# filter_recent_points
# ============================================================================

def test_filter_recent_points():
    points = [
        TimestampedPoint(0.0, 0.0, 0.0),
        TimestampedPoint(1.0, 0.0, 0.5),
        TimestampedPoint(2.0, 0.0, 0.9),
    ]
    recent = filter_recent_points(points, max_age=0.5, current_time=1.0)
    assert [p.x for p in recent] == [1.0, 2.0]


def test_filter_recent_points_empty():
    assert filter_recent_points([], 1.0, 10.0) == []


# ============================================================================
# Step size
# ============================================================================

def test_step_size_default():
    assert interpolation_step_size(DensityConfig()) == pytest.approx(25.0)


def test_step_size_decreases_with_smoothness():
    coarse = interpolation_step_size(DensityConfig(interpolation_density=1.0))
    fine = interpolation_step_size(DensityConfig(interpolation_density=8.0))
    assert fine < coarse


def test_step_size_floor():
    cfg = DensityConfig(influence_radius=0.0)
    assert interpolation_step_size(cfg) == MIN_STEP_PX
    cfg = DensityConfig(influence_radius=5.0, interpolation_density=10.0)
    assert interpolation_step_size(cfg) == MIN_STEP_PX


# ============================================================================
# PointerTracker
# ============================================================================

def test_tracker_absent_pointer_has_no_contacts():
    tracker = PointerTracker()
    assert tracker.contact_points(0.0, 20.0, 1.0) == []
    assert not tracker.is_present


def test_tracker_first_sample():
    tracker = PointerTracker()
    tracker.add_sample(TimestampedPoint(10.0, 20.0, 0.0))
    assert tracker.contact_points(0.0, 20.0, 1.0) == [Point(10.0, 20.0)]


def test_tracker_stationary_pointer_keeps_contact():
    tracker = PointerTracker()
    tracker.add_sample(TimestampedPoint(10.0, 20.0, 0.0))
    tracker.contact_points(0.0, 20.0, 1.0)

    assert tracker.contact_points(0.5, 20.0, 1.0) == [Point(10.0, 20.0)]


def test_tracker_interpolates_from_previous_frame():
    tracker = PointerTracker()
    tracker.add_sample(TimestampedPoint(0.0, 0.0, 0.0))
    tracker.contact_points(0.0, 20.0, 1.0)

    tracker.add_sample(TimestampedPoint(100.0, 0.0, 0.016))
    contacts = tracker.contact_points(0.016, 20.0, 1.0)

    assert len(contacts) == 6
    assert contacts[0] == Point(0.0, 0.0)
    assert contacts[-1] == Point(100.0, 0.0)


def test_tracker_chains_samples_without_duplicates():
    tracker = PointerTracker()
    tracker.add_sample(TimestampedPoint(0.0, 0.0, 0.0))
    tracker.contact_points(0.0, 20.0, 1.0)

    tracker.add_sample(TimestampedPoint(50.0, 0.0, 0.01))
    tracker.add_sample(TimestampedPoint(100.0, 0.0, 0.02))
    contacts = tracker.contact_points(0.02, 20.0, 1.0)

    # 0→50: 3 steps (4 points), 50→100: 3 steps, junction shared
    assert len(contacts) == 7
    assert contacts[0] == Point(0.0, 0.0)
    assert contacts[-1] == Point(100.0, 0.0)
    for a, b in zip(contacts, contacts[1:]):
        assert a != b


def test_tracker_drops_stale_samples_but_keeps_position():
    tracker = PointerTracker()
    tracker.add_sample(TimestampedPoint(0.0, 0.0, 0.0))
    tracker.contact_points(0.0, 20.0, 0.25)

    tracker.add_sample(TimestampedPoint(0.0, 500.0, 0.1))   # stale by frame time
    tracker.add_sample(TimestampedPoint(100.0, 0.0, 1.0))
    contacts = tracker.contact_points(1.0, 20.0, 0.25)

    assert all(p.y == 0.0 for p in contacts)
    assert contacts[-1] == Point(100.0, 0.0)


def test_tracker_all_samples_stale_still_in_contact():
    tracker = PointerTracker()
    tracker.add_sample(TimestampedPoint(30.0, 40.0, 0.0))
    assert tracker.contact_points(5.0, 20.0, 0.25) == [Point(30.0, 40.0)]


def test_tracker_leave_clears_contact():
    tracker = PointerTracker()
    tracker.add_sample(TimestampedPoint(0.0, 0.0, 0.0))
    tracker.contact_points(0.0, 20.0, 1.0)

    tracker.leave()
    assert tracker.contact_points(0.1, 20.0, 1.0) == []
    assert tracker.position is None

    # Re-entering starts a new path instead of bridging from the old position
    tracker.add_sample(TimestampedPoint(400.0, 0.0, 0.2))
    assert tracker.contact_points(0.2, 20.0, 1.0) == [Point(400.0, 0.0)]


def test_tracker_queue_bounded_without_frames():
    tracker = PointerTracker(max_age=0.25)
    for k in range(10_000):
        tracker.add_sample(TimestampedPoint(float(k % 800), 10.0, k * 0.001))

    # Only samples within 0.25 s of the newest one survive
    assert 250 <= tracker.pending_count <= 251
    assert tracker.position == Point(float(9999 % 800), 10.0)


def test_tracker_without_max_age_keeps_queue_until_frame():
    tracker = PointerTracker()
    for k in range(100):
        tracker.add_sample(TimestampedPoint(float(k), 0.0, k * 0.01))
    assert tracker.pending_count == 100

    tracker.contact_points(1.0, 20.0, 0.25)
    assert tracker.pending_count == 0
