"""Boundary leakage analysis.

The leakage metric is the sum of |E| over the full boundary shell of the
volume: every cell with at least one index equal to ``0`` or ``N-1``.
All functions are pure; none mutates its input.

Functions:
    boundary_mask: Boolean mask of the boundary shell.
    boundary_leakage: Sum of |E| over the shell.
    face_leakage: Sum of |E| on each of the six faces.
    analyze_leakage: Build a ``LeakageReport`` for a volume.
"""

from __future__ import annotations

import logging
from functools import lru_cache

import numpy as np

from emleak.core.bases import LeakageReport
from emleak.core.field_volume import FieldVolume

logger = logging.getLogger(__name__)

FACE_NAMES = ("x_low", "x_high", "y_low", "y_high", "z_low", "z_high")


@lru_cache(maxsize=8)
def _shell_mask(n: int) -> np.ndarray:
    mask = np.ones((n, n, n), dtype=bool)
    mask[1:-1, 1:-1, 1:-1] = False
    mask.setflags(write=False)
    return mask


def boundary_mask(n: int) -> np.ndarray:
    """Return a (read-only) boolean mask selecting the boundary shell of an N^3 grid."""
    return _shell_mask(int(n))


def boundary_leakage(electric: np.ndarray) -> float:
    """Sum of |E| over every boundary cell of a cubic grid.

    Args:
        electric: Electric field, shape ``(N, N, N)``.

    Returns:
        Non-negative leakage magnitude.
    """
    mask = boundary_mask(electric.shape[0])
    return float(np.sum(np.abs(electric[mask])))


def face_leakage(electric: np.ndarray) -> dict[str, float]:
    """Sum of |E| on each face of the cube."""
    abs_e = np.abs(electric)
    faces = (
        abs_e[0, :, :], abs_e[-1, :, :],
        abs_e[:, 0, :], abs_e[:, -1, :],
        abs_e[:, :, 0], abs_e[:, :, -1],
    )
    return {name: float(np.sum(face)) for name, face in zip(FACE_NAMES, faces)}


def analyze_leakage(volume: FieldVolume, threshold: float = 0.0) -> LeakageReport:
    """Measure boundary leakage of ``volume``'s electric field.

    Args:
        volume: Field volume (read only).
        threshold: Leakage threshold the report is compared against.

    Returns:
        LeakageReport; ``exceeds_threshold`` is ``leakage > threshold``.
    """
    electric = volume.electric
    report = LeakageReport(
        leakage=boundary_leakage(electric),
        threshold=threshold,
        faces=face_leakage(electric),
        boundary_cells=int(np.count_nonzero(boundary_mask(volume.size))),
    )
    logger.debug(
        "Leakage %.6e over %d boundary cells (threshold %.3e)",
        report.leakage, report.boundary_cells, threshold,
    )
    return report
