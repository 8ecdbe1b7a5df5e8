"""Density heat-map coloring.

Provides:
    - density_to_heat_color(): scalar density → (r, g, b) uint8 triple
    - density_to_heatmap(): density array (R, C) → RGB image (R, C, 3) uint8

Gradient: 0.0 blue (0, 0, 255) → 0.5 yellow (255, 255, 0) → 1.0 red (255, 0, 0).
Inputs outside [0, 1] are clamped. Channel values are floored, so the scalar
and array forms agree exactly.

Used by:
    - Replay export (heatmap.png)
    - Hosts that tint cells by the ``density`` carried on SubdividedCell
"""

import math
from typing import Tuple

import numpy as np


def density_to_heat_color(density: float) -> Tuple[int, int, int]:
    """Map density in [0, 1] to an RGB heat color."""
    d = max(0.0, min(1.0, density))

    if d < 0.5:
        t = d * 2.0
        return (math.floor(255 * t), math.floor(255 * t), math.floor(255 * (1.0 - t)))

    t = (d - 0.5) * 2.0
    return (255, math.floor(255 * (1.0 - t)), 0)


def density_to_heatmap(density: np.ndarray) -> np.ndarray:
    """Vectorized density_to_heat_color.

    Parameters
    ----------
    density : np.ndarray
        Density values, shape (R, C)

    Returns
    -------
    np.ndarray
        RGB image, shape (R, C, 3), uint8
    """
    d = np.clip(np.asarray(density, dtype=np.float64), 0.0, 1.0)
    low = d < 0.5

    t_low = d * 2.0
    t_high = (d - 0.5) * 2.0

    red = np.where(low, np.floor(255 * t_low), 255.0)
    green = np.where(low, np.floor(255 * t_low), np.floor(255 * (1.0 - t_high)))
    blue = np.where(low, np.floor(255 * (1.0 - t_low)), 0.0)

    return np.stack([red, green, blue], axis=-1).astype(np.uint8)


def upscale_nearest(img: np.ndarray, cell_px: Tuple[int, int]) -> np.ndarray:
    """Repeat each cell pixel into a (h, w) block for a readable preview."""
    h, w = cell_px
    return np.repeat(np.repeat(img, max(1, h), axis=0), max(1, w), axis=1)
