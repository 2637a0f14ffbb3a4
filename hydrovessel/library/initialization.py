# Copyright (C) 2024 Collimator, Inc.
# SPDX-License-Identifier: AGPL-3.0-only
#
# This program is free software: you can redistribute it and/or modify it under
# the terms of the GNU Affero General Public License as published by the Free
# Software Foundation, version 3. This program is distributed in the hope that it
# will be useful, but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the GNU Affero General
# Public License for more details.  You should have received a copy of the GNU
# Affero General Public License along with this program. If not, see
# <https://www.gnu.org/licenses/>.

"""Start-time closures of a vessel's liquid state."""

import enum

from scipy.optimize import brentq

from ..framework.error import ModelInitializationError
from ..logging import logger

__all__ = [
    "InitializationPolicy",
    "EnergyDynamics",
    "solve_steady_extent",
]


class InitializationPolicy(enum.Enum):
    """Initial equation applied to the liquid extent at t0, and only then."""

    # Extent (and gas pressure/temperature) pinned to their start values.
    FIXED_INITIAL = "fixed_initial"
    # Time derivative of the extent pinned to zero, the extent is solved for.
    STEADY_STATE_INITIAL = "steady_state_initial"
    # No additional initial equation.
    FREE = "free"


class EnergyDynamics(enum.Enum):
    """Formulation of the energy balance of the cushion."""

    DYNAMIC = "dynamic"
    # Boundary work neglected, internal energy held constant.
    STEADY_STATE = "steady_state"


def solve_steady_extent(rate, start, lower, upper, system=None):
    """Find the extent at which the extent rate `rate(extent)` vanishes.

    The start value is kept if the rate already vanishes there. Otherwise the root
    is bracketed by `[lower, upper]` and located with Brent's method.

    Raises:
        ModelInitializationError: if the rate does not change sign over the bracket.
    """
    r_start = float(rate(start))
    if r_start == 0.0:
        return start

    r_lower, r_upper = float(rate(lower)), float(rate(upper))
    logger.debug(
        "Steady-state initialization: rate(%g)=%g, rate(%g)=%g, rate(%g)=%g",
        lower,
        r_lower,
        start,
        r_start,
        upper,
        r_upper,
    )
    if r_lower == 0.0:
        return lower
    if r_upper == 0.0:
        return upper
    if (r_lower > 0.0) == (r_upper > 0.0):
        raise ModelInitializationError(
            "No steady state of the liquid extent within the vessel capacity "
            f"(extent rate {r_lower:.6g} at {lower:.6g}, {r_upper:.6g} at {upper:.6g})",
            system=system,
        )

    return brentq(lambda x: float(rate(x)), lower, upper, xtol=1e-15, rtol=1e-14)
