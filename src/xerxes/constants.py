"""Numerical constants: single source of truth for the entire codebase.

Import from here instead of defining local constants.
"""

import scipy.constants as _sc

# Mathematical
pi = _sc.pi
four_pi = 4.0 * _sc.pi
