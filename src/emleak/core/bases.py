"""Core abstract base classes and shared data structures.

Defines the records passed between the simulation phases:
- ``StepResult`` — outcome of a single leapfrog timestep
- ``LeakageReport`` — boundary leakage measurement
- ``SimulationResult`` — outcome of a full controller run
- ``DiagnosticsBase`` — ABC for diagnostics recorders
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from emleak.core.field_volume import FieldVolume


@dataclass
class StepResult:
    """Result of a single simulation timestep.

    Attributes:
        step: Step number after this step (counted across runs).
        time: Simulation time after this step [s].
        dt: Timestep size used [s].
        max_electric: Peak |E| over the volume.
        max_magnetic: Peak |B| over the volume.
    """

    step: int = 0
    time: float = 0.0
    dt: float = 0.0
    max_electric: float = 0.0
    max_magnetic: float = 0.0


@dataclass
class LeakageReport:
    """Boundary leakage measured on the electric field.

    Attributes:
        leakage: Sum of |E| over the full boundary shell (>= 0).
        threshold: Threshold the leakage was compared against.
        faces: Per-face |E| sums keyed ``x_low`` ... ``z_high``. Edges and
            corners belong to several faces, so the face values do not add
            up to ``leakage``.
        boundary_cells: Number of cells in the boundary shell.
    """

    leakage: float = 0.0
    threshold: float = 0.0
    faces: dict[str, float] = field(default_factory=dict)
    boundary_cells: int = 0

    @property
    def exceeds_threshold(self) -> bool:
        return self.leakage > self.threshold


@dataclass
class SimulationResult:
    """Outcome of one ``SimulationController.run()``.

    Attributes:
        steps_per_run: Timesteps executed by each run pass.
        total_steps: Timesteps executed over all passes.
        runs: Number of run passes (1 + remediations).
        remediations: Shielding passes applied.
        initial_leakage: Leakage after the first pass.
        final_leakage: Leakage after the last pass.
        leakage_history: Leakage after every pass, in order.
        leakage_trace: ``(step, leakage)`` samples taken during the runs.
        shielded: True when at least one shielding pass was applied.
        cancelled: True when the run was stopped through ``cancel()``.
        final_state: Controller state when ``run()`` returned.
        wall_time_s: Wall-clock duration [s].
    """

    steps_per_run: int = 0
    total_steps: int = 0
    runs: int = 0
    remediations: int = 0
    initial_leakage: float | None = None
    final_leakage: float | None = None
    leakage_history: list[float] = field(default_factory=list)
    leakage_trace: list[tuple[int, float]] = field(default_factory=list)
    shielded: bool = False
    cancelled: bool = False
    final_state: str = "idle"
    wall_time_s: float = 0.0

    def summary(self) -> dict[str, Any]:
        """Flat dictionary of the scalar outcomes (for CLI / logging)."""
        return {
            "steps_per_run": self.steps_per_run,
            "total_steps": self.total_steps,
            "runs": self.runs,
            "remediations": self.remediations,
            "initial_leakage": self.initial_leakage,
            "final_leakage": self.final_leakage,
            "shielded": self.shielded,
            "cancelled": self.cancelled,
            "final_state": self.final_state,
            "wall_time_s": self.wall_time_s,
        }


class DiagnosticsBase(ABC):
    """Abstract base for diagnostics recorders."""

    @abstractmethod
    def record(self, volume: FieldVolume, step: int, leakage: float) -> None:
        """Record diagnostic quantities at the current timestep.

        Args:
            volume: Field volume being simulated.
            step: Current step count.
            leakage: Boundary leakage at this step.
        """

    def finalize(
        self,
        result: SimulationResult | None = None,
        volume: FieldVolume | None = None,
    ) -> None:
        """Clean up resources (close files, flush buffers).

        Args:
            result: Outcome of the finished run.
            volume: Field volume as it stands at the end of the run.
        """
