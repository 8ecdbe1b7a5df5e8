"""Density grid simulator.

Cells of a base grid accumulate "paint" density near a moving pointer, hold
it for a short window, then fade. Density maps to a subdivision level and
each base cell is split into 2^level rectangles for rendering.

Modules:
    - interpolation: contact-point paths between pointer samples
    - velocity: smoothed pointer speed
    - density: increase/decay models (scalar reference + numpy arrays)
    - subdivision: density/distance → level, rectangle and line traversals
    - field: base-grid layout, density arena, per-frame update, snapshots
    - engine: DensityEngine (one frame) and FrameLoop (cancellable ticker)
    - replay: headless synthetic-pointer driver

Invariants:
    - Density in [0, 1], level in [0, max_subdivision_level]
    - Delta time capped before any rate multiplication
    - Snapshots are immutable; publishing is a single reference swap
    - Numeric core never raises for validated configs

Used by:
    - scripts/simulate.py: replay CLI
    - Hosts: forward pointer events, read engine.snapshot each frame
"""

from .engine import DensityEngine, FrameLoop
from .field import DensityField, FieldSnapshot, GridLayout

__all__ = [
    'DensityEngine',
    'DensityField',
    'FieldSnapshot',
    'FrameLoop',
    'GridLayout',
]
