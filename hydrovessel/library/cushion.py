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

"""Gas cushion policies of a vessel.

A vessel either has no cushion (its liquid surface is open to the ambient) or a
sealed gas cushion occupying the capacity not filled by liquid. The cushion state
is carried in the vessel's continuous state as (gas mass, gas internal energy); the
gas volume is always derived from the liquid extent.
"""

from __future__ import annotations

import dataclasses
import enum
from typing import TYPE_CHECKING

import numpy as np

from ..framework.error import BlockParameterError
from ..media import IdealGas, IdealGasNitrogen

if TYPE_CHECKING:
    from jax import Array

__all__ = [
    "CushionRegime",
    "GasCushionState",
    "NoCushion",
    "SealedGasCushion",
]


class CushionRegime(enum.IntEnum):
    """Discrete mode of a vessel with a gas cushion."""

    # Gas at its fill pressure, liquid side at ambient pressure.
    REST = 0
    # Gas absorbs the excess pressure, liquid side at gas pressure.
    COMPRESSION = 1


@dataclasses.dataclass(frozen=True)
class GasCushionState:
    """Instantaneous thermodynamic state of the gas cushion."""

    pressure: Array
    temperature: Array
    density: Array
    specific_internal_energy: Array
    mass: Array
    energy: Array
    volume: Array


class NoCushion:
    """The liquid surface is exposed to the ambient pressure."""

    has_gas = False

    def __repr__(self):
        return f"{type(self).__name__}()"


class SealedGasCushion:
    """A closed gas pocket above the liquid.

    Args:
        p_threshold:
            Fill pressure of the gas, Pa. The cushion compresses once its pressure
            exceeds this value.
        gas:
            Ideal gas medium of the cushion.
        p_gas_start:
            Start pressure of the gas, Pa. Defaults to `p_threshold`.
        T_gas_start:
            Start temperature of the gas, K. Defaults to the ambient temperature.
    """

    has_gas = True

    def __init__(
        self,
        p_threshold: float,
        gas: IdealGas = None,
        p_gas_start: float = None,
        T_gas_start: float = None,
    ):
        if gas is None:
            gas = IdealGasNitrogen()
        if not p_threshold > 0.0:
            raise BlockParameterError(
                f"Gas fill pressure must be positive, got {p_threshold}",
                parameter_name="p_threshold",
            )
        if p_gas_start is not None and not p_gas_start > 0.0:
            raise BlockParameterError(
                f"Gas start pressure must be positive, got {p_gas_start}",
                parameter_name="p_gas_start",
            )
        if T_gas_start is not None and not T_gas_start > 0.0:
            raise BlockParameterError(
                f"Gas start temperature must be above absolute zero, got {T_gas_start}",
                parameter_name="T_gas_start",
            )
        self.gas = gas
        self.p_threshold = p_threshold
        self.p_gas_start = p_threshold if p_gas_start is None else p_gas_start
        self.T_gas_start = T_gas_start

    def __repr__(self):
        return (
            f"{type(self).__name__}(gas={self.gas.name}, "
            f"p_threshold={self.p_threshold})"
        )

    def start_state(self, gas_volume, T_ambient):
        """Gas mass and internal energy at the start pressure and temperature."""
        T_start = T_ambient if self.T_gas_start is None else self.T_gas_start
        _, u, d = self.gas.get_h_u_d_ics(self.p_gas_start, T_start)
        mass = float(d * gas_volume)
        energy = float(mass * u)
        # Round-off must not lift the cushion above its start pressure, so that a
        # cushion filled to its threshold starts at rest.
        while self.eval_state(mass, energy, gas_volume).pressure > self.p_gas_start:
            energy = float(np.nextafter(energy, -np.inf))
        return mass, energy

    def eval_state(self, mass, energy, volume) -> GasCushionState:
        """Gas state from the conserved quantities and the occupied volume."""
        d = mass / volume
        u = energy / mass
        T = self.gas.temperature_from_u(u)
        p = self.gas.pressure(d, T)
        return GasCushionState(
            pressure=p,
            temperature=T,
            density=d,
            specific_internal_energy=u,
            mass=mass,
            energy=energy,
            volume=volume,
        )
