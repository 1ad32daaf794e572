"""Physical constants — single source of truth for the entire codebase.

All values sourced from ``scipy.constants`` (CODATA 2018).
Import from here instead of defining local constants.
"""

import scipy.constants as _sc

# Electromagnetic
epsilon_0 = _sc.epsilon_0     # Vacuum permittivity [F/m]
mu_0 = _sc.mu_0               # Vacuum permeability [H/m]
c = _sc.c                     # Speed of light [m/s]

# Shielding
DEFAULT_DAMPING = 0.1         # Fraction of field magnitude retained inside a shield
