"""Smoothed pointer speed estimation.

Raw per-event speeds are noisy (event timing jitter, sub-pixel motion), so
the estimator keeps an exponential moving average:

    velocity ← smoothing · instant + (1 − smoothing) · velocity

with the default smoothing 0.3. When the pointer stops producing movement
for longer than ``idle_threshold_s`` the estimate decays multiplicatively
each frame instead of waiting for the next event. Pointer-leave resets it.

Units: px/s, timestamps in monotonic seconds.
"""

import threading
from typing import Optional

from src.utils.geometry import Point, TimestampedPoint, calculate_distance
from src.utils.validators import PointerConfig

# Below this the estimate snaps to zero
_VELOCITY_FLOOR = 1e-3


class VelocityEstimator:
    """Exponential moving average of pointer speed.

    Parameters
    ----------
    smoothing : float
        Weight of a new instantaneous sample, default 0.3
    idle_decay : float
        Per-frame multiplier once idle, default 0.7
    idle_threshold_s : float
        Time without movement before idle decay starts, default 0.05
    """

    def __init__(
        self,
        smoothing: float = 0.3,
        idle_decay: float = 0.7,
        idle_threshold_s: float = 0.05
    ):
        self.smoothing = smoothing
        self.idle_decay = idle_decay
        self.idle_threshold_s = idle_threshold_s

        self._lock = threading.Lock()
        self._velocity = 0.0
        self._prev: Optional[TimestampedPoint] = None
        self._last_move_time: Optional[float] = None

    @classmethod
    def from_config(cls, cfg: PointerConfig) -> "VelocityEstimator":
        return cls(
            smoothing=cfg.velocity_smoothing,
            idle_decay=cfg.idle_velocity_decay,
            idle_threshold_s=cfg.idle_threshold_s,
        )

    def configure(self, cfg: PointerConfig) -> None:
        """Apply new tuning without losing the current estimate."""
        with self._lock:
            self.smoothing = cfg.velocity_smoothing
            self.idle_decay = cfg.idle_velocity_decay
            self.idle_threshold_s = cfg.idle_threshold_s

    @property
    def velocity(self) -> float:
        with self._lock:
            return self._velocity

    def add_sample(self, sample: TimestampedPoint) -> float:
        """Blend the speed implied by ``sample`` into the estimate.

        Samples with a non-positive time step only move the reference
        position.
        """
        with self._lock:
            prev = self._prev
            self._prev = sample
            if prev is None:
                return self._velocity

            dt = sample.timestamp - prev.timestamp
            if dt <= 0.0:
                return self._velocity

            moved = calculate_distance(Point(prev.x, prev.y), Point(sample.x, sample.y))
            if moved > 0.0:
                self._last_move_time = sample.timestamp

            instant = moved / dt
            self._velocity = self.smoothing * instant + (1.0 - self.smoothing) * self._velocity
            return self._velocity

    def tick(self, now: float) -> float:
        """Per-frame update: decay toward zero while the pointer is idle."""
        with self._lock:
            idle = (
                self._last_move_time is None
                or (now - self._last_move_time) > self.idle_threshold_s
            )
            if idle and self._velocity > 0.0:
                self._velocity *= self.idle_decay
                if self._velocity < _VELOCITY_FLOOR:
                    self._velocity = 0.0
            return self._velocity

    def reset(self) -> None:
        """Pointer left the grid: forget the estimate and the last sample."""
        with self._lock:
            self._velocity = 0.0
            self._prev = None
            self._last_move_time = None
