"""emleak — FDTD electromagnetic leakage simulator with shielding remediation."""

__version__ = "0.1.0"
