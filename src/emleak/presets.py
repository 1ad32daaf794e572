"""Named configuration presets.

Each preset is a dictionary that can be unpacked into SimulationConfig(**preset).
Presets provide starting points for:
- Tutorial / quick-start (small grid, fast)
- Reference run (100^3 grid, 1000 steps, shield at (10, 10, 10) x 10)
- Hot boundary (leakage above threshold, exercises the shielding pass)

Usage:
    from emleak.presets import get_preset, list_presets
    config = SimulationConfig(**get_preset("tutorial"))
"""

from __future__ import annotations

import copy
from typing import Any

_PRESETS: dict[str, dict[str, Any]] = {
    "tutorial": {
        "_meta": {
            "description": "Minimal 12^3 grid with an interior pulse, quick tests",
        },
        "grid_size": 12,
        "dt": 1e-9,
        "dx": 1.0,
        "steps": 5,
        "leakage_threshold": 1.0,
        "initial_condition": {"kind": "pulse", "amplitude": 1.0, "width": 1.0},
    },
    "reference": {
        "_meta": {
            "description": "100^3 grid, 1000 steps, threshold 1.0, 10-cell shield at (10, 10, 10)",
        },
        "grid_size": 100,
        "dt": 1e-9,
        "dx": 1.0,
        "steps": 1000,
        "leakage_threshold": 1.0,
        "shielding": {"origin": [10, 10, 10], "thickness": 10, "damping": 0.1},
    },
    "hot_boundary": {
        "_meta": {
            "description": "Uniform field touching the boundary; shield covers the whole cube",
        },
        "grid_size": 16,
        "dt": 1e-9,
        "dx": 1.0,
        "steps": 20,
        "leakage_threshold": 1.0,
        "initial_condition": {"kind": "uniform", "amplitude": 0.5},
        "current_source": {"origin": [7, 7, 7], "size": 2, "amplitude": 1e3},
        "shielding": {"origin": [0, 0, 0], "thickness": 16, "damping": 0.1},
    },
}


def list_presets() -> list[dict[str, Any]]:
    """Return summary info for all available presets.

    Returns:
        List of dicts with keys: name, description, grid_size, steps.
    """
    result = []
    for name, preset in _PRESETS.items():
        meta = preset.get("_meta", {})
        result.append({
            "name": name,
            "description": meta.get("description", ""),
            "grid_size": preset.get("grid_size"),
            "steps": preset.get("steps"),
        })
    return result


def get_preset(name: str) -> dict[str, Any]:
    """Return a preset config dict (without _meta) suitable for SimulationConfig.

    Args:
        name: Preset name.

    Returns:
        Config dict ready for ``SimulationConfig(**preset)``.

    Raises:
        KeyError: If the preset name is not found.
    """
    if name not in _PRESETS:
        available = ", ".join(_PRESETS.keys())
        raise KeyError(f"Unknown preset '{name}'. Available: {available}")
    preset = copy.deepcopy(_PRESETS[name])
    preset.pop("_meta", None)
    return preset


def get_preset_names() -> list[str]:
    """Return list of all preset names."""
    return list(_PRESETS.keys())
