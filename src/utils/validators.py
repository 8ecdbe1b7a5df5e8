"""YAML schema validation and config loading.

Provides centralized validation for the engine configuration using pydantic:
    - Grid schema: base cell size, maximum subdivision level
    - Density schema: increase/decay rates and multipliers, influence radius,
      velocity boost, paint smoothness, hold window, decay acceleration
    - Pointer schema: velocity smoothing, idle decay, sample recency window
    - Frame schema: target frame rate, delta-time cap
    - Engine schema (density_engine.v1): the complete snapshot read each frame

The numeric core assumes these ranges and never re-checks them; everything
that reaches the engine goes through these models first so that bad values
fail fast here with the offending key and the expected range.

Units:
    - Geometry: grid pixels (px)
    - Rates: density per second
    - Time: seconds

Usage:
    from src.utils import validators

    cfg = validators.load_engine_config("configs/engine_v1.yaml")
    density_cfg = validators.update_density_config(cfg.density, influence_radius=300)
"""

from pathlib import Path
from typing import Any, Dict, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

ENGINE_SCHEMA = "density_engine.v1"


# ============================================================================
# ENGINE SCHEMA V1
# ============================================================================

class GridConfig(BaseModel):
    """Base grid geometry."""
    model_config = ConfigDict(frozen=True)

    base_cell_width: float = Field(80.0, gt=0.0, description="Base cell width (px)")
    base_cell_height: float = Field(24.0, gt=0.0, description="Base cell height (px)")
    max_subdivision_level: int = Field(8, ge=0, le=12, description="Deepest subdivision level")


class DensityConfig(BaseModel):
    """Density accumulation and decay parameters.

    Defaults build a cell under a stationary pointer to full density in
    2.5 s (0.4/s) and drain it in about 4 s (0.25/s) once the hold window
    has passed.
    """
    model_config = ConfigDict(frozen=True)

    increase_rate: float = Field(0.4, ge=0.0, description="Density gain per second at the pointer")
    decay_rate: float = Field(0.25, ge=0.0, description="Density loss per second at full decay speed")
    influence_radius: float = Field(500.0, ge=0.0, description="Pointer influence radius (px)")
    increase_multiplier: float = Field(1.0, ge=0.0, le=3.0, description="User multiplier on increase")
    decay_multiplier: float = Field(1.0, ge=0.0, le=3.0, description="User multiplier on decay")
    velocity_influence: float = Field(3.0, ge=1.0, le=15.0, description="Max speed boost (1 = off)")
    interpolation_density: float = Field(2.0, ge=0.5, le=10.0, description="Paint smoothness")
    hold_duration: float = Field(1.5, ge=0.0, description="Seconds after painting with no decay")
    decay_acceleration: float = Field(5.0, ge=0.0, description="How fast decay ramps up after hold")


class PointerConfig(BaseModel):
    """Pointer sampling and velocity estimation."""
    model_config = ConfigDict(frozen=True)

    velocity_smoothing: float = Field(0.3, ge=0.0, le=1.0, description="EMA weight of a new sample")
    idle_velocity_decay: float = Field(0.7, ge=0.0, le=1.0, description="Per-frame factor when idle")
    idle_threshold_s: float = Field(0.05, ge=0.0, description="No-movement time before idle decay")
    sample_max_age_s: float = Field(0.25, gt=0.0, description="Max age of queued pointer samples")


class FrameConfig(BaseModel):
    """Frame loop timing."""
    model_config = ConfigDict(frozen=True)

    target_fps: float = Field(60.0, gt=0.0, le=480.0, description="Frame loop rate (Hz)")
    max_delta_time: float = Field(0.1, gt=0.0, description="Per-frame delta-time cap (s)")


class EngineConfigV1(BaseModel):
    """Complete engine configuration (density_engine.v1 schema)."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schema_version: str = Field(ENGINE_SCHEMA, alias="schema", description="Schema version")
    grid: GridConfig = Field(default_factory=GridConfig)
    density: DensityConfig = Field(default_factory=DensityConfig)
    pointer: PointerConfig = Field(default_factory=PointerConfig)
    frame: FrameConfig = Field(default_factory=FrameConfig)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != ENGINE_SCHEMA:
            raise ValueError(f"Expected schema '{ENGINE_SCHEMA}', got '{v}'")
        return v


# ============================================================================
# LOADERS
# ============================================================================

def load_engine_config(path: Union[str, Path]) -> EngineConfigV1:
    """Load and validate engine configuration.

    Parameters
    ----------
    path : Union[str, Path]
        Path to engine_v1.yaml file

    Returns
    -------
    EngineConfigV1
        Validated configuration

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    pydantic.ValidationError
        If values are missing or out of range

    Notes
    -----
    Sections omitted from the YAML fall back to their defaults. An empty
    file yields the default configuration.
    """
    from . import fs

    data = fs.load_yaml(path) or {}
    return EngineConfigV1(**data)


def update_density_config(cfg: DensityConfig, **changes: Any) -> DensityConfig:
    """Return a re-validated copy of ``cfg`` with ``changes`` applied.

    Used for slider-style updates from the host: unlike ``model_copy``
    the result is validated, so an out-of-range slider value raises here
    instead of reaching the engine.
    """
    return DensityConfig.model_validate({**cfg.model_dump(), **changes})


def update_engine_config(cfg: EngineConfigV1, **sections: Dict[str, Any]) -> EngineConfigV1:
    """Return a re-validated copy of ``cfg`` with per-section overrides.

    Examples
    --------
    >>> update_engine_config(cfg, density={"decay_multiplier": 0.5})
    """
    data = cfg.model_dump(by_alias=True)
    for name, overrides in sections.items():
        if name not in data or not isinstance(data[name], dict):
            raise KeyError(f"Unknown config section: {name}")
        data[name] = {**data[name], **overrides}
    return EngineConfigV1.model_validate(data)


def flatten_config(cfg: Union[Dict, BaseModel]) -> Dict[str, Any]:
    """Flatten a nested config to dotted keys (for summaries and logs)."""
    if isinstance(cfg, BaseModel):
        cfg = cfg.model_dump(by_alias=True)

    flat: Dict[str, Any] = {}

    def _walk(prefix: str, obj: Any) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                _walk(f"{prefix}.{k}" if prefix else str(k), v)
        else:
            flat[prefix] = obj

    _walk("", cfg)
    return flat
