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

"""
Fluid media for vessel models: ideal gases for the cushion and incompressible
liquids for the working fluid.

Property functions are plain functions of (p, T) and have no side effects. Queries
outside the validity range of a medium raise EquationOfStateDomainError rather than
extrapolating.
"""

# some notes on the ideal gas relations used below.
# 1] p = d*R_s*T, ideal gas law in specific form
# 2] h = href + cp*T, specific enthalpy with reference at T=0
# 3] u = h - p/d = href + (cp - R_s)*T, specific internal energy

import jax.numpy as jnp

from ..framework.error import EquationOfStateDomainError

__all__ = [
    "IdealGas",
    "IdealGasAir",
    "IdealGasNitrogen",
    "IncompressibleLiquid",
    "HydraulicOil",
    "WaterLiquidSimple",
]


def _any(condition) -> bool:
    return bool(jnp.any(condition))


class IdealGas:
    """Ideal gas with constant specific heat capacity.

    Args:
        name: display name of the medium.
        R_s: specific gas constant, J/(kg*K).
        cp: specific heat capacity at constant pressure, J/(kg*K).
        href: specific enthalpy at T=0, J/kg.
        T_min, T_max: validity range of the temperature, K.
        p_min, p_max: validity range of the pressure, Pa. p_min is exclusive.
        single_state: if True, the medium is treated as having a single
            thermodynamic state, and vessels neglect the boundary work it receives.
    """

    single_state = False

    def __init__(
        self,
        name="IdealGas",
        R_s=287.052874,
        cp=1006.0,
        href=0.0,
        T_min=50.0,
        T_max=2000.0,
        p_min=0.0,
        p_max=1.0e9,
        single_state=False,
    ):
        if R_s <= 0.0 or cp <= R_s:
            raise ValueError(
                f"{name}: expected 0 < R_s < cp, got R_s={R_s}, cp={cp}"
            )
        self.name = name
        self.R_s = R_s
        self.cp = cp
        self.href = href
        self.T_min = T_min
        self.T_max = T_max
        self.p_min = p_min
        self.p_max = p_max
        self.single_state = single_state

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name})"

    @property
    def cv(self):
        return self.cp - self.R_s

    def check_temperature(self, T):
        T = jnp.asarray(T)
        if _any(~(T > 0.0)):
            raise EquationOfStateDomainError(
                f"{self.name}: temperature {T} K is not above absolute zero"
            )
        if _any((T < self.T_min) | (T > self.T_max)):
            raise EquationOfStateDomainError(
                f"{self.name}: temperature {T} K outside of validity range "
                f"[{self.T_min}, {self.T_max}]"
            )

    def check_pressure(self, p):
        p = jnp.asarray(p)
        if _any(~(p > self.p_min) | (p > self.p_max)):
            raise EquationOfStateDomainError(
                f"{self.name}: pressure {p} Pa outside of validity range "
                f"({self.p_min}, {self.p_max}]"
            )

    def check_density(self, d):
        d = jnp.asarray(d)
        if _any(~(d > 0.0)):
            raise EquationOfStateDomainError(f"{self.name}: non-positive density {d}")

    def density(self, p, T):
        self.check_pressure(p)
        self.check_temperature(T)
        return p / (self.R_s * T)

    def specific_enthalpy(self, p, T):
        self.check_pressure(p)
        self.check_temperature(T)
        return self.href + self.cp * T

    def specific_internal_energy(self, p, T):
        h, u, d = self.get_h_u_d_ics(p, T)
        return u

    def get_h_u_d_ics(self, p, T):
        """Specific enthalpy, specific internal energy and density from (p, T)."""
        d = self.density(p, T)
        h = T * self.cp + self.href
        u = h - p / d
        return h, u, d

    def temperature_from_u(self, u):
        """Inverse of the internal energy relation, u -> T."""
        T = (u - self.href) / self.cv
        self.check_temperature(T)
        return T

    def pressure(self, d, T):
        """Equation of state in the form p = d * R_s * T."""
        self.check_density(d)
        self.check_temperature(T)
        p = d * self.R_s * T
        self.check_pressure(p)
        return p


class IdealGasAir(IdealGas):
    """Ideal gas model for dry air."""

    def __init__(self, name="IdealGasAir", **kwargs):
        kwargs.setdefault("href", 274648.7)
        super().__init__(name=name, R_s=287.052874, cp=1006.0, **kwargs)


class IdealGasNitrogen(IdealGas):
    """Ideal gas model for nitrogen, the usual accumulator fill gas."""

    def __init__(self, name="IdealGasNitrogen", **kwargs):
        super().__init__(name=name, R_s=296.8, cp=1040.0, **kwargs)


class IncompressibleLiquid:
    """
    Liquid with constant density and simple state equations.

    Specific enthalpy and specific internal energy are both cp*T, which makes the
    liquid a simplified thermal fluid with a single thermodynamic state.
    """

    def __init__(
        self,
        name="IncompressibleLiquid",
        density=1000.0,
        cp=4180.0,
        T_min=200.0,
        T_max=600.0,
        single_state=True,
    ):
        if density <= 0.0:
            raise ValueError(f"{name}: density must be positive, got {density}")
        self.name = name
        self.d = density
        self.cp = cp
        self.T_min = T_min
        self.T_max = T_max
        self.single_state = single_state

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name}, density={self.d})"

    def check_temperature(self, T):
        T = jnp.asarray(T)
        if _any(~(T > 0.0)) or _any((T < self.T_min) | (T > self.T_max)):
            raise EquationOfStateDomainError(
                f"{self.name}: temperature {T} K outside of validity range "
                f"[{self.T_min}, {self.T_max}]"
            )

    def density(self, p, T):
        self.check_temperature(T)
        return self.d

    def specific_internal_energy(self, p, T):
        self.check_temperature(T)
        return T * self.cp

    def get_h_u_d_ics(self, p, T):
        self.check_temperature(T)
        d = self.d
        u = T * self.cp
        h = T * self.cp
        return h, u, d


class HydraulicOil(IncompressibleLiquid):
    """Mineral hydraulic oil, ISO VG 46 class."""

    def __init__(self, name="HydraulicOil", density=870.0, cp=1900.0, **kwargs):
        super().__init__(name=name, density=density, cp=cp, **kwargs)


class WaterLiquidSimple(IncompressibleLiquid):
    def __init__(self, name="WaterLiquid", density=997.0, cp=4180.0, **kwargs):
        super().__init__(name=name, density=density, cp=cp, **kwargs)
