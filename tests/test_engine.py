"""Tests for SimulationController: run loop, analysis, remediation."""

from __future__ import annotations

import logging

import numpy as np
import pytest

import emleak.engine as engine_mod
from emleak.core.bases import DiagnosticsBase, SimulationResult
from emleak.core.errors import ConfigurationError, PreconditionViolation
from emleak.core.field_volume import FieldVolume
from emleak.engine import ControllerState, SimulationController


class TestEndToEnd:
    def test_zero_fields_zero_leakage(self, sample_config_dict):
        controller = SimulationController(sample_config_dict)
        result = controller.run()

        assert isinstance(result, SimulationResult)
        assert result.final_leakage == 0.0
        assert result.initial_leakage == 0.0
        assert result.runs == 1
        assert result.remediations == 0
        assert not result.shielded
        assert result.total_steps == 5
        assert controller.state is ControllerState.done
        assert result.final_state == "done"
        assert controller.step_count == 5
        assert controller.time == pytest.approx(5e-9)

    def test_interior_seed_does_not_leak_in_one_step(self, small_config):
        controller = SimulationController(small_config)
        controller.volume = FieldVolume(small_config.grid_size)
        controller.volume.write("electric", 6, 6, 6, 1.0)

        assert controller.run_steps(1) == 1
        assert controller.analyze().leakage == 0.0

    def test_current_source_does_not_reach_boundary(self, sample_config_dict):
        config = {
            **sample_config_dict,
            "current_source": {"origin": [5, 5, 5], "size": 2, "amplitude": 1e6},
        }
        controller = SimulationController(config)
        result = controller.run()
        assert result.final_leakage == 0.0
        assert np.any(controller.volume.magnetic)
        assert np.any(controller.volume.current_density)


class TestRemediation:
    def test_shielding_reduces_leakage(self, hot_config_dict, grid_size):
        controller = SimulationController(hot_config_dict)
        result = controller.run()

        shell = grid_size**3 - (grid_size - 2) ** 3
        assert result.initial_leakage == pytest.approx(shell)
        assert result.initial_leakage > hot_config_dict["leakage_threshold"]
        assert result.final_leakage < result.initial_leakage
        assert result.remediations == 1
        assert result.runs == 2
        assert result.shielded
        assert result.total_steps == 10
        assert result.leakage_history == [result.initial_leakage, result.final_leakage]
        assert controller.state is ControllerState.done

    def test_single_pass_by_default_even_if_still_leaking(self, hot_config_dict):
        result = SimulationController(hot_config_dict).run()
        assert result.final_leakage > hot_config_dict["leakage_threshold"]
        assert result.remediations == 1
        assert result.final_state == "done"

    def test_bounded_retry_count(self, hot_config_dict):
        config = {**hot_config_dict, "max_remediations": 3}
        result = SimulationController(config).run()
        assert result.remediations == 3
        assert result.runs == 4
        history = result.leakage_history
        assert all(b < a for a, b in zip(history, history[1:]))

    def test_stops_once_below_threshold(self, hot_config_dict, grid_size):
        config = {
            **hot_config_dict,
            "max_remediations": 5,
            "leakage_threshold": grid_size**3,
            "initial_condition": {"kind": "uniform", "amplitude": 10.0},
            "shielding": {"origin": [0, 0, 0], "thickness": grid_size, "damping": 0.1},
        }
        result = SimulationController(config).run()
        assert result.remediations == 1
        assert result.final_leakage <= config["leakage_threshold"]

    def test_no_remediation_when_disabled(self, hot_config_dict):
        result = SimulationController({**hot_config_dict, "max_remediations": 0}).run()
        assert result.remediations == 0
        assert result.runs == 1
        assert result.final_leakage == result.initial_leakage

    def test_no_remediation_below_threshold(self, hot_config_dict):
        result = SimulationController({**hot_config_dict, "leakage_threshold": 1e9}).run()
        assert result.remediations == 0
        assert not result.shielded

    def test_missing_region_warns(self, hot_config_dict, caplog):
        config = {k: v for k, v in hot_config_dict.items() if k != "shielding"}
        with caplog.at_level(logging.WARNING, logger="emleak.engine"):
            result = SimulationController(config).run()
        assert result.remediations == 0
        assert result.final_state == "done"
        assert "no shielding region" in caplog.text

    def test_state_sequence(self, hot_config_dict, monkeypatch):
        seen = []
        controller = SimulationController(
            hot_config_dict,
            progress_callback=lambda done, total: seen.append(controller.state),
        )
        original_apply = engine_mod.apply_shielding
        original_analyze = engine_mod.analyze_leakage

        def spy_apply(volume, region, damping):
            seen.append(controller.state)
            original_apply(volume, region, damping)

        def spy_analyze(volume, threshold):
            seen.append(controller.state)
            return original_analyze(volume, threshold)

        monkeypatch.setattr(engine_mod, "apply_shielding", spy_apply)
        monkeypatch.setattr(engine_mod, "analyze_leakage", spy_analyze)
        controller.run()

        compact = [s for i, s in enumerate(seen) if i == 0 or s is not seen[i - 1]]
        assert compact == [
            ControllerState.running,
            ControllerState.analyzing,
            ControllerState.remediating,
            ControllerState.running,
            ControllerState.analyzing,
        ]
        assert controller.state is ControllerState.done


class TestConfigurationErrors:
    @pytest.mark.parametrize("steps", [0, -3, 2.5, True])
    def test_bad_steps_refused(self, small_config, steps):
        controller = SimulationController(small_config)
        with pytest.raises(ConfigurationError):
            controller.run(steps)
        assert controller.state is ControllerState.idle
        assert controller.volume is None

    @pytest.mark.parametrize("override", [
        {"grid_size": 2},
        {"dt": 0.0},
        {"dx": -1.0},
        {"steps": 0},
        {"shielding": {"origin": [10, 10, 10], "thickness": 4}},
        {"shielding": {"origin": [0, 0, 0], "thickness": 2, "damping": 1.0}},
        {"current_source": {"origin": [11, 0, 0], "size": 2, "amplitude": 1.0}},
        {"initial_condition": {"kind": "pulse", "center": [0, 0, 12]}},
    ])
    def test_invalid_config_refused(self, sample_config_dict, override):
        with pytest.raises(ConfigurationError):
            SimulationController({**sample_config_dict, **override})

    def test_config_mutated_after_construction(self, hot_config_dict):
        controller = SimulationController(hot_config_dict)
        controller.config.shielding.origin = [20, 20, 20]
        with pytest.raises(ConfigurationError):
            controller.run()
        assert controller.volume is None
        assert controller.state is ControllerState.idle

    def test_phases_need_a_volume(self, small_config):
        controller = SimulationController(small_config)
        with pytest.raises(PreconditionViolation):
            controller.step()
        with pytest.raises(PreconditionViolation):
            controller.analyze()
        with pytest.raises(PreconditionViolation):
            controller.run_steps(3)


class TestProgress:
    @pytest.mark.parametrize("steps,expected_calls", [(7, 7), (25, 9), (11, 6), (100, 10), (1, 1)])
    def test_progress_reports(self, sample_config_dict, steps, expected_calls):
        calls = []
        controller = SimulationController(
            {**sample_config_dict, "grid_size": 4},
            progress_callback=lambda done, total: calls.append((done, total)),
        )
        controller.run(steps)
        assert len(calls) == expected_calls
        assert calls[-1] == (steps, steps)
        assert all(total == steps for _, total in calls)

    def test_progress_logged(self, sample_config_dict, caplog):
        with caplog.at_level(logging.INFO, logger="emleak.engine"):
            SimulationController(sample_config_dict).run(10)
        assert "Simulation progress: 100%" in caplog.text


class TestCancellation:
    def test_cancel_between_steps(self, hot_config_dict):
        def on_progress(done, total):
            if done == 3:
                controller.cancel()

        controller = SimulationController(
            {**hot_config_dict, "steps": 10}, progress_callback=on_progress,
        )
        result = controller.run()
        assert result.cancelled
        assert result.total_steps == 3
        assert result.final_leakage is None
        assert result.remediations == 0
        assert controller.state is ControllerState.cancelled

    def test_run_again_after_cancel(self, hot_config_dict):
        cancelled = []

        def on_progress(done, total):
            if not cancelled:
                cancelled.append(done)
                controller.cancel()

        controller = SimulationController(hot_config_dict, progress_callback=on_progress)
        assert controller.run().cancelled
        result = controller.run()
        assert not result.cancelled
        assert result.final_state == "done"
        assert controller.step_count == 10


class _FailingRecorder(DiagnosticsBase):
    def record(self, volume, step, leakage):
        raise RuntimeError("disk full")


class TestFailureRecovery:
    def test_checkpoint_failure_releases_controller(self, sample_config_dict, tmp_path):
        config = {
            **sample_config_dict,
            "diagnostics": {
                "checkpoint_interval": 1,
                "checkpoint_filename": str(tmp_path / "nodir" / "ckpt.h5"),
            },
        }
        controller = SimulationController(config)
        with pytest.raises(OSError):
            controller.run()
        assert controller.state is ControllerState.idle

        controller.config.diagnostics.checkpoint_interval = 0
        result = controller.run()
        assert result.final_state == "done"
        assert controller.step_count == sample_config_dict["steps"]

    def test_recorder_failure_releases_controller(self, sample_config_dict):
        controller = SimulationController(
            {**sample_config_dict, "diagnostics": {"trace_interval": 1}},
            diagnostics=_FailingRecorder(),
        )
        with pytest.raises(RuntimeError, match="disk full"):
            controller.run()
        assert controller.state is ControllerState.idle

        controller.diagnostics = None
        assert controller.run().final_state == "done"


class TestWorkers:
    def test_threaded_matches_sequential(self, sample_config_dict):
        config = {
            **sample_config_dict,
            "steps": 6,
            "initial_condition": {"kind": "pulse", "amplitude": 2.0, "width": 1.5},
            "current_source": {"origin": [4, 4, 4], "size": 3, "amplitude": 1e5},
        }
        seq = SimulationController(config)
        par = SimulationController({**config, "workers": 3})
        r_seq = seq.run()
        r_par = par.run()
        assert r_seq.final_leakage == r_par.final_leakage
        for name, arr in seq.get_field_snapshot().items():
            np.testing.assert_array_equal(arr, par.get_field_snapshot()[name])


class _Recorder(DiagnosticsBase):
    def __init__(self):
        self.records = []
        self.finalized = None
        self.final_volume = None

    def record(self, volume, step, leakage):
        self.records.append((step, leakage))

    def finalize(self, result=None, volume=None):
        self.finalized = result
        self.final_volume = volume


class TestDiagnostics:
    def test_leakage_trace(self, hot_config_dict):
        recorder = _Recorder()
        config = {**hot_config_dict, "diagnostics": {"trace_interval": 2}}
        controller = SimulationController(config, diagnostics=recorder)
        result = controller.run()

        steps = [s for s, _ in result.leakage_trace]
        assert steps == [2, 4, 6, 8, 10]
        assert recorder.records == result.leakage_trace
        assert recorder.finalized is result
        assert recorder.final_volume is controller.volume
        # Shielding happened between step 5 and step 6
        assert result.leakage_trace[2][1] < result.leakage_trace[1][1]

    def test_initial_conditions(self, sample_config_dict):
        controller = SimulationController({
            **sample_config_dict,
            "initial_condition": {"kind": "pulse", "amplitude": 3.0, "center": [4, 5, 6]},
        })
        controller.volume = controller._initial_volume()
        assert controller.volume.read("electric", 4, 5, 6) == pytest.approx(3.0)
        assert controller.volume.max_abs("electric") == pytest.approx(3.0)

    def test_snapshot_before_run(self, small_config):
        assert SimulationController(small_config).get_field_snapshot() == {}
