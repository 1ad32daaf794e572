"""HDF5 time-series diagnostics writer.

Records boundary leakage and field scalars at each sampled step into
an HDF5 file for post-processing.
"""

from __future__ import annotations

import logging
from typing import Any

import h5py
import numpy as np

from emleak.core.bases import DiagnosticsBase, SimulationResult
from emleak.core.field_volume import FieldVolume

logger = logging.getLogger(__name__)


class HDF5Writer(DiagnosticsBase):
    """Write simulation diagnostics to an HDF5 file.

    Creates datasets for:
    - Scalar time series: step, leakage, field_energy, max_electric, max_magnetic
    - Run summary (``finalize``): leakage_history plus summary attributes
    - Final field arrays (optional): electric, magnetic, current_density

    Args:
        filename: Output HDF5 file path.
        save_fields: Store the end-of-run field arrays.
    """

    def __init__(self, filename: str = "leakage.h5", save_fields: bool = False) -> None:
        self.filename = filename
        self.save_fields = save_fields
        self._call_count = 0
        self._scalars: dict[str, list] = {
            "step": [],
            "leakage": [],
            "field_energy": [],
            "max_electric": [],
            "max_magnetic": [],
        }

    def record(self, volume: FieldVolume, step: int, leakage: float) -> None:
        """Record diagnostics from the current field volume.

        Args:
            volume: Field volume being simulated.
            step: Current step count.
            leakage: Boundary leakage at this step.
        """
        self._call_count += 1
        self._scalars["step"].append(step)
        self._scalars["leakage"].append(leakage)
        self._scalars["field_energy"].append(volume.field_energy())
        self._scalars["max_electric"].append(volume.max_abs("electric"))
        self._scalars["max_magnetic"].append(volume.max_abs("magnetic"))

    def finalize(
        self,
        result: SimulationResult | None = None,
        volume: FieldVolume | None = None,
    ) -> None:
        """Write all accumulated data to the HDF5 file.

        Scalars are whatever was sampled through ``record`` (nothing when
        tracing is off).  The field snapshot, when enabled, is taken from
        ``volume`` so it reflects the state after the last pass.
        """
        logger.info("Writing diagnostics to %s", self.filename)
        with h5py.File(self.filename, "w") as f:
            grp = f.create_group("scalars")
            for key, values in self._scalars.items():
                grp.create_dataset(key, data=np.array(values))

            if result is not None:
                f.create_dataset("leakage_history", data=np.array(result.leakage_history))
                for key, val in result.summary().items():
                    f.attrs[key] = _attr_value(val)

            if self.save_fields and volume is not None:
                fields_grp = f.create_group("fields")
                for key, arr in volume.checkpoint().items():
                    fields_grp.create_dataset(key, data=arr)

            f.attrs["num_records"] = self._call_count

        logger.info("Wrote %d diagnostic records to %s", self._call_count, self.filename)


def _attr_value(val: Any) -> Any:
    # HDF5 attributes cannot hold None
    return "none" if val is None else val
