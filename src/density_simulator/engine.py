"""Frame orchestration and the cancellable frame loop.

DensityEngine
    Owns the pointer tracker, the velocity estimator and the density field.
    One frame:
        pending config → delta time (capped) → velocity idle decay →
        contact points → field.advance() → commit

    ``compute_frame`` builds the next snapshot without publishing it and
    ``commit`` publishes it; ``step`` does both. Host callbacks
    (``pointer_move``, ``pointer_leave``, ``set_config``, ``set_viewport``)
    are safe to call from another thread.

FrameLoop
    Explicit scheduled-task handle around the engine: a daemon thread that
    ticks at ``frame.target_fps`` and a cancellation Event checked at the
    top of each tick and again before commit. After ``stop()`` returns no
    further snapshot is published.

Usage:
    engine = DensityEngine(load_engine_config("configs/engine_v1.yaml"), viewport=(1280, 720))
    with FrameLoop(engine, on_frame=renderer.draw):
        ...  # host forwards pointer events to engine.pointer_move / pointer_leave
"""

import logging
import threading
import time
from typing import Callable, Optional, Tuple

from src.utils.geometry import TimestampedPoint
from src.utils.profiler import TimerAccumulator
from src.utils.validators import EngineConfigV1
from .field import DensityField, FieldSnapshot, GridLayout
from .interpolation import PointerTracker, interpolation_step_size
from .velocity import VelocityEstimator

logger = logging.getLogger(__name__)


class DensityEngine:
    """Per-frame density simulation driven by pointer samples.

    Parameters
    ----------
    config : EngineConfigV1, optional
        Initial configuration (defaults if None)
    viewport : tuple[float, float]
        Grid area size (width, height) in px
    clock : callable
        Monotonic time source in seconds, default time.monotonic
    """

    def __init__(
        self,
        config: Optional[EngineConfigV1] = None,
        viewport: Tuple[float, float] = (800.0, 600.0),
        clock: Callable[[], float] = time.monotonic
    ):
        self.clock = clock
        self._lock = threading.Lock()
        self._config = config or EngineConfigV1()
        self._pending_config: Optional[EngineConfigV1] = None
        self._viewport = (float(viewport[0]), float(viewport[1]))
        self._last_frame_time: Optional[float] = None
        self.frame_count = 0

        self.tracker = PointerTracker(max_age=self._config.pointer.sample_max_age_s)
        self.velocity = VelocityEstimator.from_config(self._config.pointer)

        layout = GridLayout.from_viewport(*self._viewport, self._config.grid)
        self.field = DensityField(layout, self._config.grid.max_subdivision_level)

        logger.info(
            f"DensityEngine initialized: viewport={self._viewport[0]:.0f}x{self._viewport[1]:.0f} px, "
            f"grid={layout.columns}x{layout.rows}, max_level={self._config.grid.max_subdivision_level}"
        )

    # ------------------------------------------------------------------
    # Host inputs
    # ------------------------------------------------------------------

    @property
    def config(self) -> EngineConfigV1:
        with self._lock:
            return self._config

    @property
    def viewport(self) -> Tuple[float, float]:
        with self._lock:
            return self._viewport

    def set_config(self, config: EngineConfigV1) -> None:
        """Replace the configuration; takes effect on the next frame."""
        with self._lock:
            self._pending_config = config

    def set_viewport(self, width: float, height: float) -> None:
        """Recompute the base grid for a new viewport size."""
        with self._lock:
            self._viewport = (float(width), float(height))
            grid_cfg = (self._pending_config or self._config).grid
        layout = GridLayout.from_viewport(width, height, grid_cfg)
        self.field.resize(layout, grid_cfg.max_subdivision_level)

    def pointer_move(self, x: float, y: float, timestamp: Optional[float] = None) -> None:
        """Pointer moved to grid-local (x, y)."""
        sample = TimestampedPoint(x, y, self.clock() if timestamp is None else timestamp)
        self.tracker.add_sample(sample)
        self.velocity.add_sample(sample)

    def pointer_leave(self) -> None:
        """Pointer left the grid: no contact, velocity back to zero."""
        self.tracker.leave()
        self.velocity.reset()

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> FieldSnapshot:
        """Latest published snapshot."""
        return self.field.snapshot

    def _apply_pending_config(self) -> EngineConfigV1:
        with self._lock:
            pending = self._pending_config
            self._pending_config = None
            if pending is None:
                return self._config
            previous = self._config
            self._config = pending
            viewport = self._viewport

        if pending.grid != previous.grid:
            layout = GridLayout.from_viewport(*viewport, pending.grid)
            self.field.resize(layout, pending.grid.max_subdivision_level)
        if pending.pointer != previous.pointer:
            self.velocity.configure(pending.pointer)
            self.tracker.max_age = pending.pointer.sample_max_age_s
        logger.debug("Engine configuration replaced")
        return pending

    def compute_frame(self, now: Optional[float] = None) -> FieldSnapshot:
        """Advance the simulation to ``now`` without publishing the result."""
        now = self.clock() if now is None else now
        cfg = self._apply_pending_config()

        if self._last_frame_time is None:
            delta_time = 0.0
        else:
            delta_time = now - self._last_frame_time
        # Cap before any rate multiplication
        delta_time = min(max(delta_time, 0.0), cfg.frame.max_delta_time)
        self._last_frame_time = now

        velocity = self.velocity.tick(now)
        contacts = self.tracker.contact_points(
            now,
            interpolation_step_size(cfg.density),
            cfg.pointer.sample_max_age_s,
        )

        return self.field.advance(
            contacts,
            now,
            delta_time,
            cfg.density,
            cfg.grid.max_subdivision_level,
            velocity=velocity,
        )

    def commit(self, snapshot: FieldSnapshot) -> bool:
        """Publish a snapshot produced by ``compute_frame``.

        Returns False (and does not count the frame) when the snapshot was
        computed for a layout that has since been replaced.
        """
        published = self.field.commit(snapshot)
        if published:
            self.frame_count += 1
        return published

    def step(self, now: Optional[float] = None) -> FieldSnapshot:
        """compute_frame() and commit() in one call."""
        snapshot = self.compute_frame(now)
        self.commit(snapshot)
        return snapshot


class FrameLoop:
    """Background frame ticker with cooperative cancellation.

    Parameters
    ----------
    engine : DensityEngine
        Engine to advance
    on_frame : callable, optional
        Called with each published snapshot (from the loop thread)
    """

    def __init__(
        self,
        engine: DensityEngine,
        on_frame: Optional[Callable[[FieldSnapshot], None]] = None
    ):
        self.engine = engine
        self.on_frame = on_frame
        self.timer = TimerAccumulator("frame")
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def start(self) -> None:
        if self.is_running:
            return
        self._cancel.clear()
        self._thread = threading.Thread(target=self._run, name="density-frame-loop", daemon=True)
        self._thread.start()
        logger.info(f"Frame loop started at {self.engine.config.frame.target_fps:.0f} fps")

    def stop(self, timeout: float = 2.0) -> None:
        """Cancel the pending frame and wait for the loop thread to exit."""
        self._cancel.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Frame loop thread did not exit within %.1f s", timeout)
        logger.info(
            f"Frame loop stopped after {self.timer.count} frames "
            f"(mean {self.timer.mean() * 1000:.2f} ms, max {self.timer.max_time * 1000:.2f} ms)"
        )

    def _tick(self) -> Optional[FieldSnapshot]:
        with self.timer.measure():
            snapshot = self.engine.compute_frame()
            if self._cancel.is_set() or not self.engine.commit(snapshot):
                return None
        return snapshot

    def _run(self) -> None:
        while not self._cancel.is_set():
            interval = 1.0 / self.engine.config.frame.target_fps
            try:
                snapshot = self._tick()
                if snapshot is not None and self.on_frame is not None:
                    self.on_frame(snapshot)
            except Exception:
                logger.exception("Frame tick failed; stopping frame loop")
                self._cancel.set()
                break

            if self.timer.last_time > interval:
                logger.debug(
                    f"Frame took {self.timer.last_time * 1000:.2f} ms "
                    f"(budget {interval * 1000:.2f} ms)"
                )
            self._cancel.wait(max(0.0, interval - self.timer.last_time))

    def __enter__(self) -> "FrameLoop":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()
