"""Checkpoint/restart support for leakage simulations.

Saves and loads the field volume (E, B, J), step count and simulated time
to HDF5 files for restart capability.

Usage:
    # Save checkpoint
    save_checkpoint("checkpoint.h5", volume.checkpoint(), time, step_count, config_json)

    # Load checkpoint
    data = load_checkpoint("checkpoint.h5")
    volume = FieldVolume.from_arrays(data["fields"])
"""

from __future__ import annotations

import logging
from typing import Any

import h5py
import numpy as np

from emleak.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

CHECKPOINT_VERSION = 1


def save_checkpoint(
    filename: str,
    fields: dict[str, np.ndarray],
    time: float,
    step_count: int,
    config_json: str | None = None,
) -> None:
    """Save the field volume to an HDF5 checkpoint file.

    Args:
        filename: Output HDF5 file path.
        fields: Field arrays keyed by name (electric, magnetic, current_density).
        time: Current simulation time [s].
        step_count: Current timestep number.
        config_json: JSON string of the simulation config (for reference).
    """
    logger.info("Saving checkpoint to %s at t=%.4e s, step=%d", filename, time, step_count)

    with h5py.File(filename, "w") as f:
        f.attrs["time"] = time
        f.attrs["step_count"] = step_count
        f.attrs["checkpoint_version"] = CHECKPOINT_VERSION

        if config_json is not None:
            f.attrs["config_json"] = config_json

        grp = f.create_group("fields")
        for key, arr in fields.items():
            grp.create_dataset(key, data=arr)

    logger.info("Checkpoint saved: %s", filename)


def load_checkpoint(filename: str) -> dict[str, Any]:
    """Load field state from an HDF5 checkpoint file.

    Args:
        filename: Input HDF5 file path.

    Returns:
        Dictionary with keys:
            - "fields": dict of numpy arrays
            - "time": float (simulation time)
            - "step_count": int (timestep number)
            - "config_json": str or None (config for reference)

    Raises:
        ConfigurationError: Unsupported checkpoint version or no field data.
    """
    logger.info("Loading checkpoint from %s", filename)

    with h5py.File(filename, "r") as f:
        version = int(f.attrs.get("checkpoint_version", 0))
        if version != CHECKPOINT_VERSION:
            raise ConfigurationError(
                f"unsupported checkpoint version {version} in {filename} "
                f"(expected {CHECKPOINT_VERSION})"
            )
        time = float(f.attrs["time"])
        step_count = int(f.attrs["step_count"])

        config_json = None
        if "config_json" in f.attrs:
            config_json = str(f.attrs["config_json"])

        if "fields" not in f:
            raise ConfigurationError(f"checkpoint {filename} has no 'fields' group")
        fields = {key: np.array(f["fields"][key]) for key in f["fields"]}

    logger.info(
        "Checkpoint loaded: t=%.4e s, step=%d, fields=%s",
        time, step_count, list(fields.keys()),
    )

    return {
        "fields": fields,
        "time": time,
        "step_count": step_count,
        "config_json": config_json,
    }
