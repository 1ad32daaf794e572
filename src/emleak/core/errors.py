"""Error taxonomy for the simulator.

- ``ConfigurationError`` — invalid static parameters, raised before any
  field array is touched.
- ``PreconditionViolation`` — internal invariant breach (caller bug).
  Never caught inside the library.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid simulation parameters; the run is refused."""


class PreconditionViolation(AssertionError):
    """A programming error that would make the results meaningless."""
