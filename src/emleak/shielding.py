"""Shielding — damp the fields inside a cubic sub-region.

A shield is modelled as absorptive material that retains only a fraction
(``damping``, default 0.1) of the electric and magnetic field magnitude
inside its region.

Usage:
    region = ShieldingRegion(origin=(10, 10, 10), thickness=10)
    apply_shielding(volume, region)
"""

from __future__ import annotations

import logging
import math
import numbers
from dataclasses import dataclass

from emleak.constants import DEFAULT_DAMPING
from emleak.core.errors import ConfigurationError
from emleak.core.field_volume import FieldVolume

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShieldingRegion:
    """Cubic sub-volume ``[origin, origin + thickness)`` on each axis.

    Attributes:
        origin: Lowest (i, j, k) cell index of the region.
        thickness: Edge length of the region in cells.
    """

    origin: tuple[int, int, int]
    thickness: int

    def validate(self, size: int, label: str = "shield") -> None:
        """Check that the region lies entirely within ``[0, size)``.

        Raises:
            ConfigurationError: If the region is malformed or out of bounds.
        """
        if len(self.origin) != 3:
            raise ConfigurationError(f"{label} origin must have 3 indices, got {self.origin!r}")
        if any(isinstance(v, bool) or not isinstance(v, numbers.Integral)
               for v in (*self.origin, self.thickness)):
            raise ConfigurationError(f"{label} origin and thickness must be integers")
        if self.thickness < 1:
            raise ConfigurationError(f"{label} thickness must be >= 1, got {self.thickness}")
        for axis, start in zip("ijk", self.origin):
            if start < 0 or start + self.thickness > size:
                raise ConfigurationError(
                    f"{label} extends outside the grid on axis {axis}: "
                    f"[{start}, {start + self.thickness}) not within [0, {size})"
                )

    def slices(self) -> tuple[slice, slice, slice]:
        return tuple(slice(start, start + self.thickness) for start in self.origin)

    @property
    def cell_count(self) -> int:
        return self.thickness**3


def validate_damping(damping: float) -> None:
    if not (math.isfinite(damping) and 0.0 <= damping < 1.0):
        raise ConfigurationError(f"damping must be in [0, 1), got {damping}")


def apply_shielding(
    volume: FieldVolume,
    region: ShieldingRegion,
    damping: float = DEFAULT_DAMPING,
) -> None:
    """Scale E and B inside ``region`` by ``damping`` (in place).

    The region and the damping factor are validated before any cell is
    touched, so a rejected call leaves the volume unchanged.

    Args:
        volume: Field volume to modify.
        region: Region to shield.
        damping: Fraction of field magnitude retained, in ``[0, 1)``.

    Raises:
        ConfigurationError: If the region is out of bounds or damping invalid.
    """
    region.validate(volume.size)
    validate_damping(damping)

    sl = region.slices()
    volume.electric[sl] *= damping
    volume.magnetic[sl] *= damping

    logger.info(
        "Applied shielding at origin=%s thickness=%d (%d cells, damping=%.3g)",
        region.origin, region.thickness, region.cell_count, damping,
    )
