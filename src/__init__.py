"""Density Grid: a grid that densifies under the pointer and fades over time.

This package contains the density-field simulation, the subdivision
geometry that turns density into rectangles, and the shared utilities they
build on.

Architecture layers (strict one-way dependency):
    scripts/ → src/density_simulator/ → src/utils/

Key invariants:
    - Geometry in grid pixels, top-left origin, +Y down
    - Time in monotonic seconds; rates per second, frame-rate independent
    - YAML-only configs validated by pydantic before reaching the engine
"""

__version__ = "1.0.0"
