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

import jax.numpy as jnp
import numpy as np

import hydrovessel
from hydrovessel.library import AirCushionTank, CushionRegime

pytestmark = pytest.mark.minimal

P_AMB = 101325.0
RHO = 997.0
GAMMA = 1006.0 / (1006.0 - 287.052874)


def _orifice_flow(port, dp, density):
    """Mass flow through a port orifice for a pressure drop `dp` into the tank."""
    zeta = port.zeta_in if dp >= 0.0 else port.zeta_out
    return np.sign(dp) * np.sqrt(2.0 * density * port.area**2 * abs(dp) / zeta)


def test_at_rest():
    tank = AirCushionTank(level_start=2.0, p_threshold=2.0e5)
    tank.input_ports[0].fix_value(np.zeros(2))
    context = tank.create_context()

    assert context.mode == CushionRegime.REST
    pressures = tank.get_output_port("port_pressures").eval(context)
    assert pressures.shape == (2,)
    assert np.all(pressures == P_AMB)
    assert tank.get_output_port("gas_pressure").eval(context) == 2.0e5
    assert np.isclose(tank.get_output_port("gas_volume").eval(context), 8.0)


def test_inflow_compresses_cushion():
    tank = AirCushionTank(level_start=2.0, p_threshold=2.0e5)
    q = 0.05  # m3/s per port
    tank.input_ports[0].fix_value(np.array([RHO * q, RHO * q]))
    context = tank.create_context()

    recorded_signals = {
        name: tank.get_output_port(name)
        for name in ("liquid_level", "gas_volume", "gas_pressure", "port_pressures")
    }
    options = hydrovessel.SimulatorOptions(rtol=1e-10, atol=1e-12)
    results = hydrovessel.simulate(
        tank, context, (0.0, 5.0), options=options, recorded_signals=recorded_signals
    )
    outputs = results.outputs

    assert results.context.mode == CushionRegime.COMPRESSION
    assert np.isclose(outputs["liquid_level"][-1], 2.5, rtol=1e-10)
    assert np.allclose(outputs["liquid_level"] + outputs["gas_volume"], 10.0)
    assert outputs["port_pressures"].shape == (len(results.time), 2)

    p_gas = outputs["gas_pressure"][-1]
    assert np.isclose(p_gas, 2.0e5 * (8.0 / 7.5) ** GAMMA, rtol=1e-6)
    assert np.all(outputs["port_pressures"][-1] == p_gas)


def test_port_pressure_loss():
    tank = AirCushionTank(level_start=2.0, p_threshold=2.0e5)
    port = tank.ports[0]

    for dp in (5.0e3, -5.0e3):
        m_flow = _orifice_flow(port, dp, RHO)
        assert np.isclose(port.pressure_loss(m_flow, RHO), dp)

    # Outflow loses more than inflow for the same flow rate
    assert port.pressure_loss(-10.0, RHO) < -port.pressure_loss(10.0, RHO)


def test_fed_from_supply():
    tank = AirCushionTank(level_start=2.0, p_threshold=2.0e5)
    p_supply = 3.0e5
    k = 1.0e-3  # kg/s/Pa

    def _supply(context):
        pressures = tank.get_output_port("port_pressures").eval(context)
        return jnp.array([k * (p_supply - pressures[0]), 0.0])

    tank.input_ports[0].connect(_supply)
    context = tank.create_context()
    options = hydrovessel.SimulatorOptions(rtol=1e-8, atol=1e-10)
    results = hydrovessel.simulate(
        tank,
        context,
        (0.0, 300.0),
        options=options,
        recorded_signals={"gas_pressure": tank.get_output_port("gas_pressure")},
    )

    # The cushion is compressed until it balances the supply pressure
    level = results.context.continuous_state[0]
    V_gas = 8.0 * (2.0e5 / 3.0e5) ** (1.0 / GAMMA)
    assert results.context.mode == CushionRegime.COMPRESSION
    assert np.isclose(level, 10.0 - V_gas, rtol=1e-5)
    assert np.isclose(results.outputs["gas_pressure"][-1], p_supply, rtol=1e-6)
