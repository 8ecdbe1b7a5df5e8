"""Density increase and decay models.

Increase (pointer proximity → density/second):
    rate = increase_rate · increase_multiplier · falloff · velocity_multiplier
    falloff = 1 − distance / influence_radius     (0 at and beyond the radius)

    velocity_multiplier = 1 + (velocity_influence − 1) · clamp(v / 1000, 0, 1)³
    (fixed at 1.0 when velocity_influence ≤ 1)

Decay (time since last paint → multiplier in [0, 1)):
    0                                                 t < hold_duration
    1 − exp(−(t − hold_duration) · decay_acceleration / 2)   otherwise

Per-frame update of one cell:
    1. increase: mean rate over all contact points, × dt
    2. last_painted ← now if that mean rate is non-zero
    3. decay: decay_rate · decay_multiplier · multiplier(now − last_painted) · dt
    4. clamp to [0, 1]

Increase and decay are applied in the same update with no special-casing,
so a cell under the pointer can still lose density if decay outpaces it.

Each model comes as a scalar reference (math) and an array form (numpy)
used by the density field; the two must agree.
"""

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from src.utils.validators import DensityConfig

# Speed (px/s) at which the velocity boost saturates
REFERENCE_VELOCITY = 1000.0


@dataclass(frozen=True)
class CellDensityState:
    """Persistent state of one base cell."""

    density: float = 0.0
    last_painted_time: float = -math.inf


# ============================================================================
# SCALAR REFERENCE
# ============================================================================

def calculate_velocity_multiplier(velocity: float, cfg: DensityConfig) -> float:
    """Boost factor in [1, velocity_influence] for the pointer speed.

    Notes
    -----
    The cubic keeps slow hovering near 1.0; only fast strokes approach the
    full ``velocity_influence``.
    """
    if cfg.velocity_influence <= 1.0:
        return 1.0

    normalized = max(0.0, min(1.0, velocity / REFERENCE_VELOCITY))
    boost = normalized ** 3
    return 1.0 + (cfg.velocity_influence - 1.0) * boost


def calculate_increase_rate(
    distance: float,
    cfg: DensityConfig,
    velocity: float = 0.0
) -> float:
    """Density gain per second for a cell ``distance`` px from a contact point."""
    radius = cfg.influence_radius
    if radius <= 0.0 or distance >= radius:
        return 0.0

    falloff = 1.0 - distance / radius
    return (
        cfg.increase_rate
        * cfg.increase_multiplier
        * falloff
        * calculate_velocity_multiplier(velocity, cfg)
    )


def calculate_time_based_decay_multiplier(time_since_painted: float, cfg: DensityConfig) -> float:
    """Decay speed multiplier after the hold window (0 while holding)."""
    if time_since_painted < cfg.hold_duration or cfg.decay_acceleration <= 0.0:
        return 0.0
    elapsed = time_since_painted - cfg.hold_duration
    return 1.0 - math.exp(-elapsed * cfg.decay_acceleration / 2.0)


def update_cell_density(
    state: CellDensityState,
    distances: Sequence[float],
    now: float,
    delta_time: float,
    cfg: DensityConfig,
    velocity: float = 0.0
) -> CellDensityState:
    """Advance one cell by one frame.

    Parameters
    ----------
    state : CellDensityState
        Current cell state
    distances : Sequence[float]
        Distance from each of this frame's contact points to the cell center
        (empty when the pointer is absent)
    now : float
        Frame timestamp (s)
    delta_time : float
        Frame duration (s), already capped by the caller
    cfg : DensityConfig
        Density parameters
    velocity : float
        Smoothed pointer speed (px/s)

    Returns
    -------
    CellDensityState
        New state (density clamped to [0, 1])
    """
    density = state.density
    last_painted = state.last_painted_time

    if len(distances) > 0:
        rates = [calculate_increase_rate(d, cfg, velocity) for d in distances]
        rate = sum(rates) / len(rates)
        if rate > 0.0:
            density += rate * delta_time
            last_painted = now

    multiplier = calculate_time_based_decay_multiplier(now - last_painted, cfg)
    density -= cfg.decay_rate * cfg.decay_multiplier * multiplier * delta_time

    return CellDensityState(max(0.0, min(1.0, density)), last_painted)


# ============================================================================
# ARRAY FORMS
# ============================================================================

def increase_rate_field(
    distances: np.ndarray,
    cfg: DensityConfig,
    velocity: float = 0.0
) -> np.ndarray:
    """Vectorized calculate_increase_rate over an array of distances."""
    radius = cfg.influence_radius
    if radius <= 0.0:
        return np.zeros_like(distances, dtype=np.float64)

    falloff = np.where(distances < radius, 1.0 - distances / radius, 0.0)
    scale = cfg.increase_rate * cfg.increase_multiplier * calculate_velocity_multiplier(velocity, cfg)
    return falloff * scale


def decay_multiplier_field(time_since_painted: np.ndarray, cfg: DensityConfig) -> np.ndarray:
    """Vectorized calculate_time_based_decay_multiplier.

    Never-painted cells carry ``time_since_painted = +inf`` and decay at
    full speed.
    """
    elapsed = time_since_painted - cfg.hold_duration
    with np.errstate(invalid='ignore', over='ignore'):
        ramp = 1.0 - np.exp(-np.maximum(elapsed, 0.0) * cfg.decay_acceleration / 2.0)
    # never-painted cell with zero acceleration: inf * 0
    ramp = np.nan_to_num(ramp, nan=0.0)
    return np.where(time_since_painted < cfg.hold_duration, 0.0, ramp)
