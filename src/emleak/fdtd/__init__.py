"""FDTD leapfrog field updates."""

from emleak.fdtd.updater import advance, interior_slabs, update_electric, update_magnetic

__all__ = [
    "advance",
    "interior_slabs",
    "update_electric",
    "update_magnetic",
]
