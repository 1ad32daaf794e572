"""Leapfrog FDTD field updates on the interior of a ``FieldVolume``.

Each update models the z-component of the curl with centred differences
along the x and y axes:

    E -= (dt/dx) * (dB/dy - dB/dx)                   (Faraday)
    B += (dt/dx) * (dE/dy - dE/dx) + dt * mu_0 * J   (Ampere + source)

where ``dF/dy = 0.5 * (F[i, j+1, k] - F[i, j-1, k])`` and likewise for x.
Only interior cells ``1..N-2`` on every axis are written; the boundary
shell is left for the leakage analysis.

Each kernel reads only the *other* field, so no value advanced within a
sweep is read by that sweep.  ``advance()`` additionally hands the magnetic
phase the pre-step electric field, so both phases of a step are computed
from the same state.

Phases can be split into disjoint x-slabs run on an executor.  Every phase
waits for all of its slabs before returning, which is the barrier between
the electric and magnetic phases of a step.

Functions:
    update_electric: Advance E by one timestep.
    update_magnetic: Advance B by one timestep.
    advance: One full leapfrog step (E phase, barrier, B phase).
    interior_slabs: Partition of the interior x-range.
"""

from __future__ import annotations

import math
from concurrent.futures import Executor

import numpy as np
from numba import njit

from emleak.constants import mu_0
from emleak.core.errors import PreconditionViolation
from emleak.core.field_volume import FieldVolume


# ============================================================
# Stencil kernels
# ============================================================

@njit(cache=True, nogil=True)
def _electric_kernel(E: np.ndarray, B: np.ndarray, coef: float, lo: int, hi: int) -> None:
    """E[i,j,k] -= coef * (dB/dy - dB/dx) for i in [lo, hi)."""
    ny = E.shape[1] - 1
    nz = E.shape[2] - 1
    for i in range(lo, hi):
        for j in range(1, ny):
            for k in range(1, nz):
                E[i, j, k] -= coef * (
                    0.5 * (B[i, j + 1, k] - B[i, j - 1, k])
                    - 0.5 * (B[i + 1, j, k] - B[i - 1, j, k])
                )


@njit(cache=True, nogil=True)
def _magnetic_kernel(
    B: np.ndarray,
    E: np.ndarray,
    J: np.ndarray,
    coef: float,
    source_coef: float,
    lo: int,
    hi: int,
) -> None:
    """B[i,j,k] += coef * (dE/dy - dE/dx) + source_coef * J for i in [lo, hi)."""
    ny = B.shape[1] - 1
    nz = B.shape[2] - 1
    for i in range(lo, hi):
        for j in range(1, ny):
            for k in range(1, nz):
                B[i, j, k] += coef * (
                    0.5 * (E[i, j + 1, k] - E[i, j - 1, k])
                    - 0.5 * (E[i + 1, j, k] - E[i - 1, j, k])
                ) + source_coef * J[i, j, k]


# ============================================================
# Partitioning
# ============================================================

def interior_slabs(size: int, partitions: int = 1) -> list[tuple[int, int]]:
    """Split the interior x-range ``[1, size-1)`` into contiguous slabs.

    Args:
        size: Grid extent N.
        partitions: Requested number of slabs (capped at N-2).

    Returns:
        List of ``(lo, hi)`` half-open ranges covering the interior exactly once.
    """
    n_interior = size - 2
    partitions = max(1, min(partitions, n_interior))
    bounds = np.linspace(1, size - 1, partitions + 1).round().astype(int)
    return [(int(lo), int(hi)) for lo, hi in zip(bounds[:-1], bounds[1:]) if hi > lo]


def _run_phase(kernel, args: tuple, slabs: list[tuple[int, int]], executor: Executor | None) -> None:
    if executor is None or len(slabs) == 1:
        for lo, hi in slabs:
            kernel(*args, lo, hi)
        return
    futures = [executor.submit(kernel, *args, lo, hi) for lo, hi in slabs]
    # Barrier: every slab of this phase finishes before the caller continues
    for fut in futures:
        fut.result()


# ============================================================
# Public API
# ============================================================

def _check_preconditions(volume: FieldVolume, dt: float, dx: float) -> None:
    if not isinstance(volume, FieldVolume):
        raise PreconditionViolation(f"expected an allocated FieldVolume, got {volume!r}")
    volume.check_invariants()
    if not (math.isfinite(dt) and dt > 0):
        raise PreconditionViolation(f"dt must be positive and finite, got {dt}")
    if not (math.isfinite(dx) and dx > 0):
        raise PreconditionViolation(f"dx must be positive and finite, got {dx}")


def update_electric(
    volume: FieldVolume,
    dt: float,
    dx: float,
    *,
    executor: Executor | None = None,
    partitions: int = 1,
) -> None:
    """Advance the electric field of ``volume`` by one timestep (in place).

    Args:
        volume: Field volume to update.
        dt: Timestep [s].
        dx: Grid spacing [m].
        executor: Optional executor for slab-parallel execution.
        partitions: Number of x-slabs when an executor is given.

    Raises:
        PreconditionViolation: Unallocated volume or non-positive ``dt``/``dx``.
    """
    _check_preconditions(volume, dt, dx)
    slabs = interior_slabs(volume.size, partitions)
    _run_phase(_electric_kernel, (volume.electric, volume.magnetic, dt / dx), slabs, executor)


def update_magnetic(
    volume: FieldVolume,
    dt: float,
    dx: float,
    *,
    electric: np.ndarray | None = None,
    executor: Executor | None = None,
    partitions: int = 1,
) -> None:
    """Advance the magnetic field of ``volume`` by one timestep (in place).

    Args:
        volume: Field volume to update.
        dt: Timestep [s].
        dx: Grid spacing [m].
        electric: Electric field to read (default: ``volume.electric``).
            ``advance()`` passes the pre-step copy here.
        executor: Optional executor for slab-parallel execution.
        partitions: Number of x-slabs when an executor is given.

    Raises:
        PreconditionViolation: Unallocated volume, non-positive ``dt``/``dx``,
            or an ``electric`` array of the wrong shape.
    """
    _check_preconditions(volume, dt, dx)
    if electric is None:
        electric = volume.electric
    elif electric.shape != volume.shape:
        raise PreconditionViolation(
            f"electric source has shape {electric.shape}, expected {volume.shape}"
        )
    slabs = interior_slabs(volume.size, partitions)
    args = (volume.magnetic, electric, volume.current_density, dt / dx, dt * mu_0)
    _run_phase(_magnetic_kernel, args, slabs, executor)


def advance(
    volume: FieldVolume,
    dt: float,
    dx: float,
    *,
    executor: Executor | None = None,
    partitions: int = 1,
) -> None:
    """Run one leapfrog step: electric phase, barrier, magnetic phase.

    The magnetic phase reads the electric field as it was before this step.
    """
    _check_preconditions(volume, dt, dx)
    electric_prev = volume.electric.copy()
    update_electric(volume, dt, dx, executor=executor, partitions=partitions)
    update_magnetic(
        volume, dt, dx,
        electric=electric_prev, executor=executor, partitions=partitions,
    )
