"""Pointer path interpolation and sample recency filtering.

A pointer sampled once per event leaves gaps in the painted trail when it
moves faster than one influence step per frame. The interpolator fills the
segment between two samples with evenly spaced contact points; the tracker
chains those segments across all samples received since the previous frame.

Step size:
    step = max(MIN_STEP_PX, influence_radius / (STEP_DIVISOR * interpolation_density))

With the defaults (radius 500 px, smoothness 2.0) the step is 25 px. A
higher smoothness means a smaller step and more contact points per frame.
Contact points are averaged, not summed, by the increase model, so a denser
path does not paint harder.
"""

import logging
import math
import threading
from typing import List, Optional, Sequence

from src.utils.geometry import Point, TimestampedPoint, calculate_distance
from src.utils.validators import DensityConfig

logger = logging.getLogger(__name__)

STEP_DIVISOR = 10.0
MIN_STEP_PX = 1.0


def interpolate_points(p1: Point, p2: Point, step_size: float) -> List[Point]:
    """Evenly spaced points from p1 to p2 (both included).

    Parameters
    ----------
    p1 : Point
        Start point (previous pointer position)
    p2 : Point
        End point (new pointer position)
    step_size : float
        Target spacing in px

    Returns
    -------
    List[Point]
        ``[p2]`` when the points are closer than ``step_size`` (or the step
        is not positive); otherwise ``ceil(distance / step_size) + 1`` points
        at ``t = i / num_steps``.
    """
    distance = calculate_distance(p1, p2)
    if step_size <= 0.0 or distance < step_size:
        return [Point(p2.x, p2.y)]

    num_steps = math.ceil(distance / step_size)
    dx = p2.x - p1.x
    dy = p2.y - p1.y

    points = []
    for i in range(num_steps + 1):
        t = i / num_steps
        points.append(Point(p1.x + dx * t, p1.y + dy * t))
    return points


def filter_recent_points(
    points: Sequence[TimestampedPoint],
    max_age: float,
    current_time: float
) -> List[TimestampedPoint]:
    """Keep points captured within ``max_age`` seconds of ``current_time``."""
    return [p for p in points if (current_time - p.timestamp) <= max_age]


def interpolation_step_size(cfg: DensityConfig) -> float:
    """Contact-point spacing (px) for the current paint smoothness."""
    if cfg.influence_radius <= 0.0 or cfg.interpolation_density <= 0.0:
        return MIN_STEP_PX
    return max(MIN_STEP_PX, cfg.influence_radius / (STEP_DIVISOR * cfg.interpolation_density))


class PointerTracker:
    """Collects raw pointer samples between frames.

    ``add_sample`` and ``leave`` may be called from the host's event thread;
    ``contact_points`` is called once per frame by the engine. With
    ``max_age`` set, every new sample also drops queued samples older than
    ``max_age`` relative to it, so the queue stays bounded while no frames
    run.

    Parameters
    ----------
    max_age : float, optional
        Sample lifetime in seconds; None keeps every sample until the next
        frame

    Attributes
    ----------
    position : Point or None
        Latest known pointer position, None after leave
    """

    def __init__(self, max_age: Optional[float] = None):
        self.max_age = max_age
        self._lock = threading.Lock()
        self._pending: List[TimestampedPoint] = []
        self._position: Optional[Point] = None
        self._frame_position: Optional[Point] = None

    @property
    def position(self) -> Optional[Point]:
        with self._lock:
            return self._position

    @property
    def is_present(self) -> bool:
        return self.position is not None

    @property
    def pending_count(self) -> int:
        """Samples queued for the next frame."""
        with self._lock:
            return len(self._pending)

    def add_sample(self, sample: TimestampedPoint) -> None:
        with self._lock:
            self._pending.append(sample)
            if self.max_age is not None:
                self._pending = filter_recent_points(self._pending, self.max_age, sample.timestamp)
            self._position = sample.to_point()

    def leave(self) -> None:
        with self._lock:
            self._pending.clear()
            self._position = None
            self._frame_position = None

    def contact_points(self, now: float, step_size: float, max_age: float) -> List[Point]:
        """Consume queued samples and return this frame's contact points.

        The path starts at the position used by the previous frame, runs
        through every sample younger than ``max_age`` and ends at the
        current position. Stale samples are dropped but the pointer itself
        still counts as present at its latest position.
        """
        with self._lock:
            pending = self._pending
            self._pending = []
            position = self._position
            start = self._frame_position
            self._frame_position = position

        if position is None:
            return []

        recent = filter_recent_points(pending, max_age, now)
        if len(recent) < len(pending):
            logger.debug(f"Dropped {len(pending) - len(recent)} stale pointer samples")

        waypoints = [s.to_point() for s in recent]
        if not waypoints or waypoints[-1] != position:
            waypoints.append(position)

        if start is None:
            start = waypoints[0]

        path: List[Point] = []
        prev = start
        for waypoint in waypoints:
            segment = interpolate_points(prev, waypoint, step_size)
            if path and segment[0] == path[-1]:
                segment = segment[1:]
            path.extend(segment)
            prev = waypoint

        if not path:
            path.append(position)
        return path
