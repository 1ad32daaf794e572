"""Pydantic v2 configuration system for leakage simulations.

Provides validated, typed configuration with submodels for the initial
condition, current source, shielding and diagnostics.  Supports JSON I/O
and cross-field validation.  Validation failures surface to callers as
``ConfigurationError`` through ``load_config`` / ``from_file``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, model_validator

from emleak.constants import DEFAULT_DAMPING
from emleak.core.errors import ConfigurationError


class InitialConditionConfig(BaseModel):
    """Initial electric field.

    ``zero`` leaves every grid at 0.  ``uniform`` sets E to ``amplitude``
    everywhere.  ``pulse`` places a Gaussian of ``width`` cells centred on
    ``center`` (default: grid centre).
    """

    kind: Literal["zero", "uniform", "pulse"] = Field("zero", description="Initial E profile")
    amplitude: float = Field(1.0, description="Peak electric field value")
    center: list[int] | None = Field(
        None, min_length=3, max_length=3,
        description="Pulse centre cell (default: grid centre)",
    )
    width: float = Field(1.0, gt=0, description="Pulse standard deviation [cells]")


class CurrentSourceConfig(BaseModel):
    """Constant current density inside a box ``[origin, origin + size)``."""

    origin: list[int] = Field(..., min_length=3, max_length=3, description="Lowest cell index")
    size: int = Field(1, ge=1, description="Box edge length [cells]")
    amplitude: float = Field(..., description="Current density [A/m^2]")


class ShieldingConfig(BaseModel):
    """Shielding region applied when leakage exceeds the threshold."""

    origin: list[int] = Field(..., min_length=3, max_length=3, description="Lowest cell index")
    thickness: int = Field(..., ge=1, description="Region edge length [cells]")
    damping: float = Field(
        DEFAULT_DAMPING, ge=0, lt=1,
        description="Fraction of field magnitude retained inside the shield",
    )


class DiagnosticsConfig(BaseModel):
    """Diagnostics output parameters."""

    trace_interval: int = Field(
        0, ge=0, description="Steps between boundary-leakage samples (0 = off)",
    )
    checkpoint_interval: int = Field(
        0, ge=0, description="Steps between HDF5 checkpoints (0 = off)",
    )
    checkpoint_filename: str = Field("checkpoint.h5", description="Checkpoint file path")
    output_filename: str | None = Field(None, description="HDF5 run output (None = off)")
    save_fields: bool = Field(False, description="Store final field arrays in the run output")


class SimulationConfig(BaseModel):
    """Top-level simulation configuration."""

    grid_size: int = Field(100, ge=3, description="Grid extent N on every axis")
    dt: float = Field(1e-9, gt=0, description="Timestep [s]")
    dx: float = Field(1.0, gt=0, description="Grid spacing [m]")
    steps: int = Field(1000, ge=1, description="Timesteps per run pass")
    leakage_threshold: float = Field(1.0, ge=0, description="Remediation threshold")
    max_remediations: int = Field(
        1, ge=0, description="Maximum shield-then-rerun passes",
    )
    workers: int = Field(1, ge=1, description="Threads for slab-parallel updates")

    initial_condition: InitialConditionConfig = Field(default_factory=InitialConditionConfig)
    current_source: CurrentSourceConfig | None = Field(None, description="Optional J source")
    shielding: ShieldingConfig | None = Field(None, description="Optional shielding region")
    diagnostics: DiagnosticsConfig = Field(default_factory=DiagnosticsConfig)

    @model_validator(mode="after")
    def validate_regions(self) -> SimulationConfig:
        n = self.grid_size
        if self.shielding is not None:
            sc = self.shielding
            if any(o < 0 or o + sc.thickness > n for o in sc.origin):
                raise ValueError(
                    f"shielding region {sc.origin}+{sc.thickness} exceeds grid [0, {n})"
                )
        if self.current_source is not None:
            cs = self.current_source
            if any(o < 0 or o + cs.size > n for o in cs.origin):
                raise ValueError(
                    f"current source {cs.origin}+{cs.size} exceeds grid [0, {n})"
                )
        center = self.initial_condition.center
        if center is not None and any(not 0 <= c < n for c in center):
            raise ValueError(f"pulse center {center} outside grid [0, {n})")
        return self

    # --- I/O helpers ---

    @classmethod
    def from_file(cls, path: str | Path) -> SimulationConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with path.open() as f:
            data = json.load(f)
        return load_config(data)

    def to_json(self, path: str | Path | None = None) -> str:
        """Serialize to JSON string, optionally writing to file."""
        out = self.model_dump_json(indent=2)
        if path is not None:
            Path(path).write_text(out)
        return out


def load_config(data: SimulationConfig | dict[str, Any]) -> SimulationConfig:
    """Validate ``data`` into a SimulationConfig.

    Raises:
        ConfigurationError: If validation fails.
    """
    if isinstance(data, SimulationConfig):
        return data
    try:
        return SimulationConfig(**data)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
