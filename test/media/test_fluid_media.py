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

import pytest

import numpy as np

from hydrovessel.framework import EquationOfStateDomainError
from hydrovessel.media import (
    IdealGas,
    IdealGasAir,
    IdealGasNitrogen,
    IncompressibleLiquid,
    HydraulicOil,
    WaterLiquidSimple,
)

pytestmark = pytest.mark.minimal


def test_air_ics():
    air = IdealGasAir()
    p, T = 101325.0, 300.0
    h, u, d = air.get_h_u_d_ics(p, T)

    assert np.isclose(d, p / (287.052874 * T))
    assert np.isclose(h, T * 1006.0 + 274648.7)
    assert np.isclose(u, h - p / d)
    assert np.isclose(air.density(p, T), 1.1766125, rtol=1e-6)
    assert np.isclose(air.specific_internal_energy(p, T), u)
    assert np.isclose(air.specific_enthalpy(p, T), h)


@pytest.mark.parametrize("gas", [IdealGasAir(), IdealGasNitrogen()])
def test_gas_inverse_relations(gas):
    p, T = 5.0e6, 293.15
    _, u, d = gas.get_h_u_d_ics(p, T)

    assert np.isclose(gas.temperature_from_u(u), T, rtol=1e-12)
    assert np.isclose(gas.pressure(d, T), p, rtol=1e-12)
    assert np.isclose(gas.cv, gas.cp - gas.R_s)
    assert not gas.single_state


def test_nitrogen_constants():
    n2 = IdealGasNitrogen()
    assert n2.R_s == 296.8
    assert n2.cp == 1040.0
    assert np.isclose(n2.density(5.0e6, 293.15), 5.0e6 / (296.8 * 293.15))


@pytest.mark.parametrize(
    "T",
    [0.0, -10.0, 10.0, 5000.0],
)
def test_gas_temperature_domain(T):
    gas = IdealGasNitrogen()
    with pytest.raises(EquationOfStateDomainError):
        gas.density(1.0e5, T)


@pytest.mark.parametrize("p", [0.0, -1.0e5, 2.0e9])
def test_gas_pressure_domain(p):
    gas = IdealGasAir()
    with pytest.raises(EquationOfStateDomainError):
        gas.density(p, 300.0)


def test_gas_density_and_energy_domain():
    gas = IdealGasAir()
    with pytest.raises(EquationOfStateDomainError):
        gas.pressure(0.0, 300.0)
    with pytest.raises(EquationOfStateDomainError):
        # Internal energy below the value at absolute zero
        gas.temperature_from_u(gas.href - 1.0)


def test_invalid_gas_constants():
    with pytest.raises(ValueError):
        IdealGas(R_s=300.0, cp=200.0)


def test_single_state_gas():
    gas = IdealGasNitrogen(single_state=True)
    assert gas.single_state


def test_liquids():
    oil = HydraulicOil()
    water = WaterLiquidSimple()
    assert oil.density(1.0e7, 300.0) == 870.0
    assert water.density(1.0e5, 300.0) == 997.0
    assert oil.single_state and water.single_state

    h, u, d = water.get_h_u_d_ics(1.0e5, 300.0)
    assert d == 997.0
    assert np.isclose(u, 300.0 * 4180.0)
    assert np.isclose(h, u)

    with pytest.raises(EquationOfStateDomainError):
        water.density(1.0e5, -1.0)
    with pytest.raises(ValueError):
        IncompressibleLiquid(density=0.0)
