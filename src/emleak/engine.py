"""Simulation controller — orchestrates the leakage simulation loop.

Wires together: config -> field volume -> FDTD updates -> leakage analysis
-> shielding -> re-run, following the state machine

    idle -> running -> analyzing -> (remediating -> running -> analyzing) -> done

A run executes ``steps`` leapfrog steps, measures boundary leakage, and if
the leakage exceeds the configured threshold applies the shielding region
and runs the full step count again (continuing from the shielded state).
The number of shield-then-rerun passes is bounded by
``config.max_remediations`` (default 1); the analysis after the last pass
always ends the run.

All configuration is validated when the controller is built and again
when ``run()`` starts, so a ``ConfigurationError`` is raised before any
field array exists.
"""

from __future__ import annotations

import contextlib
import enum
import logging
import math
import threading
import time as wall_time
from collections.abc import Callable, Iterator
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any

import numpy as np

from emleak.config import SimulationConfig, load_config
from emleak.core.bases import DiagnosticsBase, LeakageReport, SimulationResult, StepResult
from emleak.core.errors import ConfigurationError, PreconditionViolation
from emleak.core.field_volume import FIELD_NAMES, FieldVolume
from emleak.diagnostics.checkpoint import load_checkpoint, save_checkpoint
from emleak.diagnostics.hdf5_writer import HDF5Writer
from emleak.diagnostics.leakage import analyze_leakage, boundary_leakage
from emleak.fdtd.updater import advance
from emleak.shielding import ShieldingRegion, apply_shielding, validate_damping

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class ControllerState(str, enum.Enum):
    """Lifecycle state of a simulation controller."""

    idle = "idle"
    running = "running"
    analyzing = "analyzing"
    remediating = "remediating"
    done = "done"
    cancelled = "cancelled"


class SimulationController:
    """Leakage simulation controller.

    Owns the ``FieldVolume`` of the current run; the updater, analyzer and
    shielding routines only ever receive it as an argument.

    Args:
        config: Validated SimulationConfig, or a dict to validate.
        progress_callback: Called as ``callback(completed, total)`` every
            ``ceil(steps / 10)`` completed steps and at the last step of
            a run pass, so at most about ten reports per pass.
        diagnostics: Recorder for sampled steps.  Defaults to an
            ``HDF5Writer`` when ``config.diagnostics.output_filename`` is set.

    Raises:
        ConfigurationError: If the configuration is invalid.
    """

    def __init__(
        self,
        config: SimulationConfig | dict[str, Any],
        *,
        progress_callback: ProgressCallback | None = None,
        diagnostics: DiagnosticsBase | None = None,
    ) -> None:
        self.config = load_config(config)
        self.progress_callback = progress_callback

        self.state = ControllerState.idle
        self.volume: FieldVolume | None = None
        self.step_count = 0
        self.time = 0.0

        self._cancel_event = threading.Event()
        self._executor: Executor | None = None
        self._trace: list[tuple[int, float]] = []
        self._restart: dict[str, Any] | None = None

        self.shielding_region = self._validate(self.config.steps)

        dc = self.config.diagnostics
        if diagnostics is None and dc.output_filename:
            diagnostics = HDF5Writer(dc.output_filename, save_fields=dc.save_fields)
        self.diagnostics = diagnostics

        logger.info(
            "SimulationController initialized: grid=%d^3, dt=%.2e s, dx=%.2e m, "
            "steps=%d, threshold=%.3e, shielding=%s, workers=%d",
            self.config.grid_size, self.config.dt, self.config.dx,
            self.config.steps, self.config.leakage_threshold,
            self.shielding_region, self.config.workers,
        )

    # ------------------------------------------------------------------
    # Validation and setup
    # ------------------------------------------------------------------

    def _validate(self, steps: int) -> ShieldingRegion | None:
        """Check every static parameter; return the shielding region (if any)."""
        cfg = self.config
        n = cfg.grid_size

        if isinstance(steps, bool) or not isinstance(steps, (int, np.integer)) or steps < 1:
            raise ConfigurationError(f"steps must be a positive integer, got {steps!r}")
        if n < 3:
            raise ConfigurationError(f"grid_size must be >= 3, got {n}")
        if not (cfg.dt > 0 and cfg.dx > 0):
            raise ConfigurationError(f"dt and dx must be positive, got dt={cfg.dt}, dx={cfg.dx}")
        if cfg.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {cfg.workers}")

        cs = cfg.current_source
        if cs is not None:
            ShieldingRegion(tuple(cs.origin), cs.size).validate(n, label="current source")

        center = cfg.initial_condition.center
        if center is not None and any(not 0 <= c < n for c in center):
            raise ConfigurationError(f"pulse center {center} outside grid [0, {n})")

        if self._restart is not None:
            fields = self._restart["fields"]
            missing = [name for name in FIELD_NAMES if name not in fields]
            if missing:
                raise ConfigurationError(f"checkpoint is missing field(s) {missing}")
            for name in FIELD_NAMES:
                shape = np.shape(fields[name])
                if shape != (n, n, n):
                    raise ConfigurationError(
                        f"checkpoint field '{name}' has shape {shape}, "
                        f"configured grid is {n}^3"
                    )

        if cfg.shielding is None:
            return None
        region = ShieldingRegion(tuple(cfg.shielding.origin), cfg.shielding.thickness)
        region.validate(n)
        validate_damping(cfg.shielding.damping)
        return region

    def _initial_volume(self) -> FieldVolume:
        """Create the field volume for a new run from the initial condition."""
        cfg = self.config
        n = cfg.grid_size

        if self._restart is not None:
            volume = FieldVolume.from_arrays(self._restart["fields"])
            self.step_count = self._restart["step_count"]
            self.time = self._restart["time"]
            return volume

        volume = FieldVolume(n)
        self.step_count = 0
        self.time = 0.0

        ic = cfg.initial_condition
        if ic.kind == "uniform":
            volume.electric[...] = ic.amplitude
        elif ic.kind == "pulse":
            center = ic.center if ic.center is not None else [n // 2] * 3
            idx = np.indices(volume.shape)
            r2 = sum((idx[a] - center[a]) ** 2 for a in range(3))
            volume.electric[...] = ic.amplitude * np.exp(-r2 / (2.0 * ic.width**2))

        cs = cfg.current_source
        if cs is not None:
            box = tuple(slice(o, o + cs.size) for o in cs.origin)
            volume.current_density[box] = cs.amplitude

        return volume

    @contextlib.contextmanager
    def _worker_pool(self) -> Iterator[Executor | None]:
        if self.config.workers <= 1:
            yield None
            return
        with ThreadPoolExecutor(
            max_workers=self.config.workers, thread_name_prefix="emleak-slab",
        ) as pool:
            yield pool

    # ------------------------------------------------------------------
    # Checkpoint/restart
    # ------------------------------------------------------------------

    def save_checkpoint(self, filename: str | None = None) -> None:
        """Save the current field volume to an HDF5 checkpoint file.

        Args:
            filename: Output file path (default: config checkpoint_filename).
        """
        if self.volume is None:
            raise PreconditionViolation("no field volume to checkpoint; call run() first")
        fname = filename or self.config.diagnostics.checkpoint_filename
        save_checkpoint(
            fname, self.volume.checkpoint(), self.time, self.step_count,
            self.config.model_dump_json(),
        )

    def load_from_checkpoint(self, filename: str) -> None:
        """Use the fields stored in ``filename`` as the initial state of the next run.

        Raises:
            ConfigurationError: If the checkpoint is unreadable, incomplete,
                or its grid does not match the config.
        """
        data = load_checkpoint(filename)
        previous, self._restart = self._restart, data
        try:
            self._validate(self.config.steps)
        except Exception:
            self._restart = previous
            raise
        logger.info(
            "Restart armed from checkpoint: t=%.4e s, step=%d",
            data["time"], data["step_count"],
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Request cooperative cancellation; honoured between steps."""
        self._cancel_event.set()

    def step(self) -> StepResult:
        """Advance the current volume by a single leapfrog step."""
        if self.volume is None:
            raise PreconditionViolation("field volume is not allocated")
        cfg = self.config
        advance(self.volume, cfg.dt, cfg.dx, executor=self._executor, partitions=cfg.workers)
        self.step_count += 1
        self.time += cfg.dt
        return StepResult(
            step=self.step_count,
            time=self.time,
            dt=cfg.dt,
            max_electric=self.volume.max_abs("electric"),
            max_magnetic=self.volume.max_abs("magnetic"),
        )

    def run_steps(self, steps: int) -> int:
        """Execute ``steps`` sequential leapfrog steps on the current volume.

        Returns:
            Number of steps completed (fewer than ``steps`` if cancelled).
        """
        if self.volume is None:
            raise PreconditionViolation("field volume is not allocated")
        cfg = self.config
        interval = math.ceil(steps / 10)
        logger.info("Running %d steps (t=%.4e s)", steps, self.time)

        for completed in range(steps):
            if self._cancel_event.is_set():
                logger.warning("Run cancelled after %d of %d steps", completed, steps)
                return completed
            self.step()
            done = completed + 1

            if done % interval == 0 or done == steps:
                logger.info("Simulation progress: %d%%", done * 100 // steps)
                if self.progress_callback is not None:
                    self.progress_callback(done, steps)

            dc = cfg.diagnostics
            if dc.trace_interval > 0 and self.step_count % dc.trace_interval == 0:
                leakage = boundary_leakage(self.volume.electric)
                self._trace.append((self.step_count, leakage))
                if self.diagnostics is not None:
                    self.diagnostics.record(self.volume, self.step_count, leakage)
            if dc.checkpoint_interval > 0 and self.step_count % dc.checkpoint_interval == 0:
                self.save_checkpoint()

        logger.info("Simulation pass completed: %d steps", steps)
        return steps

    def analyze(self) -> LeakageReport:
        """Measure boundary leakage of the current volume."""
        if self.volume is None:
            raise PreconditionViolation("field volume is not allocated")
        report = analyze_leakage(self.volume, self.config.leakage_threshold)
        logger.info(
            "Total EM leakage detected: %.6e (threshold %.3e)",
            report.leakage, report.threshold,
        )
        return report

    def _run_and_analyze(self, steps: int, result: SimulationResult) -> LeakageReport | None:
        self.state = ControllerState.running
        completed = self.run_steps(steps)
        result.runs += 1
        result.total_steps += completed
        if completed < steps:
            return None

        self.state = ControllerState.analyzing
        report = self.analyze()
        result.leakage_history.append(report.leakage)
        if result.initial_leakage is None:
            result.initial_leakage = report.leakage
        result.final_leakage = report.leakage
        return report

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    def run(self, steps: int | None = None) -> SimulationResult:
        """Run, analyze, and remediate until done.

        Args:
            steps: Timesteps per run pass (default: ``config.steps``).

        Returns:
            SimulationResult with pre- and post-shielding leakage.

        Raises:
            ConfigurationError: Invalid parameters; nothing is simulated.
        """
        if self.state not in (ControllerState.idle, ControllerState.done,
                              ControllerState.cancelled):
            raise RuntimeError(f"run() called while controller is {self.state.value}")

        steps = self.config.steps if steps is None else steps
        region = self._validate(steps)
        cfg = self.config

        t_wall_start = wall_time.monotonic()
        self._cancel_event.clear()
        self._trace = []
        result = SimulationResult(steps_per_run=steps)
        self.volume = self._initial_volume()
        self._restart = None

        logger.info("Starting simulation: %d steps per pass on %d^3 grid", steps, cfg.grid_size)

        with self._worker_pool() as executor:
            self._executor = executor
            try:
                report = self._run_and_analyze(steps, result)
                while (
                    report is not None
                    and report.exceeds_threshold
                    and result.remediations < cfg.max_remediations
                ):
                    if region is None:
                        logger.warning(
                            "Leakage %.6e exceeds threshold %.3e but no shielding "
                            "region is configured", report.leakage, report.threshold,
                        )
                        break
                    self.state = ControllerState.remediating
                    logger.info("Applying electromagnetic shielding...")
                    apply_shielding(self.volume, region, cfg.shielding.damping)
                    result.remediations += 1
                    result.shielded = True
                    report = self._run_and_analyze(steps, result)
            except Exception:
                self.state = ControllerState.idle
                raise
            finally:
                self._executor = None

        if report is None:
            self.state = ControllerState.cancelled
            result.cancelled = True
        else:
            self.state = ControllerState.done
            if result.shielded:
                logger.info(
                    "Total EM leakage after shielding: %.6e (was %.6e)",
                    result.final_leakage, result.initial_leakage,
                )
            if report.exceeds_threshold and result.remediations > 0:
                logger.warning(
                    "Leakage %.6e still above threshold after %d shielding pass(es)",
                    report.leakage, result.remediations,
                )

        result.leakage_trace = list(self._trace)
        result.final_state = self.state.value
        result.wall_time_s = wall_time.monotonic() - t_wall_start

        if self.diagnostics is not None:
            self.diagnostics.finalize(result, self.volume)

        logger.info(
            "Simulation complete: %d steps over %d pass(es) in %.2f s, state=%s",
            result.total_steps, result.runs, result.wall_time_s, result.final_state,
        )
        return result

    def get_field_snapshot(self) -> dict[str, np.ndarray]:
        """Return copies of the current field arrays (empty before the first run)."""
        if self.volume is None:
            return {}
        return self.volume.checkpoint()
