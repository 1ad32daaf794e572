"""Field volume — grid storage for the E, B and J fields.

Each simulation run owns exactly one ``FieldVolume``; the updater,
leakage analyzer and shielding routines receive it explicitly.
"""

from __future__ import annotations

import numbers

import numpy as np

from emleak.core.errors import ConfigurationError, PreconditionViolation

FIELD_NAMES = ("electric", "magnetic", "current_density")

# A 3-point stencil needs at least one interior cell per axis
MIN_GRID_SIZE = 3


class FieldVolume:
    """Owns the electric, magnetic and current-density grids of a cubic volume.

    All grids are ``float64`` arrays of shape ``(size, size, size)``.  The
    shape is fixed at construction; values are mutated in place.

    Args:
        size: Grid extent ``N`` along every axis (>= 3).

    Raises:
        ConfigurationError: If ``size`` is not an integer >= 3.
    """

    def __init__(self, size: int) -> None:
        if isinstance(size, bool) or not isinstance(size, numbers.Integral):
            raise ConfigurationError(f"grid size must be an integer, got {size!r}")
        if size < MIN_GRID_SIZE:
            raise ConfigurationError(
                f"grid size must be >= {MIN_GRID_SIZE} (one interior cell), got {size}"
            )
        self._size = int(size)
        shape = (self._size,) * 3

        self.electric = np.zeros(shape, dtype=np.float64)
        self.magnetic = np.zeros(shape, dtype=np.float64)
        self.current_density = np.zeros(shape, dtype=np.float64)

    @property
    def size(self) -> int:
        return self._size

    @property
    def shape(self) -> tuple[int, int, int]:
        return (self._size, self._size, self._size)

    def field(self, name: str) -> np.ndarray:
        """Return the grid called ``name`` (one of ``FIELD_NAMES``)."""
        if name not in FIELD_NAMES:
            raise KeyError(f"unknown field {name!r}; expected one of {FIELD_NAMES}")
        return getattr(self, name)

    # --- Bounds-checked cell access ---

    def _check_index(self, i: int, j: int, k: int) -> None:
        for axis, idx in zip("ijk", (i, j, k)):
            if not 0 <= idx < self._size:
                raise IndexError(
                    f"index {axis}={idx} out of range [0, {self._size})"
                )

    def read(self, name: str, i: int, j: int, k: int) -> float:
        """Read one cell of a field grid."""
        grid = self.field(name)
        self._check_index(i, j, k)
        return float(grid[i, j, k])

    def write(self, name: str, i: int, j: int, k: int, value: float) -> None:
        """Write one cell of a field grid."""
        grid = self.field(name)
        self._check_index(i, j, k)
        grid[i, j, k] = value

    # --- Invariants ---

    def check_invariants(self) -> None:
        """Verify that all grids exist with identical ``(N, N, N)`` float64 shape.

        Raises:
            PreconditionViolation: On any mismatch.
        """
        for name in FIELD_NAMES:
            grid = getattr(self, name, None)
            if not isinstance(grid, np.ndarray):
                raise PreconditionViolation(f"field '{name}' is not allocated")
            if grid.shape != self.shape:
                raise PreconditionViolation(
                    f"field '{name}' has shape {grid.shape}, expected {self.shape}"
                )
            if grid.dtype != np.float64:
                raise PreconditionViolation(
                    f"field '{name}' has dtype {grid.dtype}, expected float64"
                )

    # --- Diagnostics ---

    def max_abs(self, name: str) -> float:
        return float(np.max(np.abs(self.field(name))))

    def field_energy(self) -> float:
        """Sum of E^2 + B^2 over the volume (dimensionless grid energy)."""
        return float(np.sum(self.electric**2) + np.sum(self.magnetic**2))

    # --- Checkpoint/restart ---

    def checkpoint(self) -> dict[str, np.ndarray]:
        return {name: getattr(self, name).copy() for name in FIELD_NAMES}

    def restart(self, data: dict[str, np.ndarray]) -> None:
        """Restore all grids from ``data`` (as produced by ``checkpoint()``).

        Raises:
            PreconditionViolation: If a grid is missing or has the wrong shape.
        """
        for name in FIELD_NAMES:
            if name not in data:
                raise PreconditionViolation(f"restart data is missing field '{name}'")
            arr = np.asarray(data[name], dtype=np.float64)
            if arr.shape != self.shape:
                raise PreconditionViolation(
                    f"restart field '{name}' has shape {arr.shape}, expected {self.shape}"
                )
        for name in FIELD_NAMES:
            getattr(self, name)[...] = data[name]

    @classmethod
    def from_arrays(cls, data: dict[str, np.ndarray]) -> FieldVolume:
        """Build a volume whose size is taken from ``data['electric']``."""
        electric = np.asarray(data["electric"])
        if electric.ndim != 3 or len(set(electric.shape)) != 1:
            raise ConfigurationError(
                f"field arrays must be cubic, got shape {electric.shape}"
            )
        volume = cls(electric.shape[0])
        volume.restart(data)
        return volume

    def copy(self) -> FieldVolume:
        clone = FieldVolume(self._size)
        clone.restart(self.checkpoint())
        return clone

    def __repr__(self) -> str:
        return f"FieldVolume(size={self._size})"
