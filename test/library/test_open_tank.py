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

import hydrovessel
from hydrovessel.framework import BlockParameterError, GeometryViolationError
from hydrovessel.library import (
    EXTENT_EPS,
    BoundaryCondition,
    EnergyDynamics,
    OpenTank,
    PortData,
)
from hydrovessel.media import IncompressibleLiquid

pytestmark = pytest.mark.minimal

P_AMB = 101325.0
G_N = 9.80665
RHO = 997.0

RECORDED = (
    "liquid_level",
    "liquid_volume",
    "gas_volume",
    "port_pressures",
    "liquid_pressure",
    "boundary_work",
)


def _simulate(tank, tf, m_flow, **kwargs):
    tank.input_ports[0].fix_value(np.asarray(m_flow, dtype=float))
    context = tank.create_context()
    recorded_signals = {name: tank.get_output_port(name) for name in RECORDED}
    options = hydrovessel.SimulatorOptions(rtol=1e-10, atol=1e-12, **kwargs)
    return hydrovessel.simulate(
        tank,
        context,
        (0.0, tf),
        options=options,
        recorded_signals=recorded_signals,
    )


def test_time_derivatives():
    tank = OpenTank(height=1.0, cross_area=2.0, level_start=0.5)
    tank.input_ports[0].fix_value(np.array([RHO * 0.1]))
    xcdot = tank.eval_time_derivatives(tank.create_context())
    assert xcdot.shape == (1,)
    assert np.isclose(xcdot[0], 0.05)


def test_level_at_rest():
    tank = OpenTank(height=1.0, cross_area=1.0, level_start=0.5)
    results = _simulate(tank, 10.0, [0.0])

    assert results.time[-1] == 10.0
    assert np.all(results.outputs["liquid_level"] == 0.5)
    assert np.all(results.outputs["liquid_pressure"] == P_AMB)
    assert np.allclose(
        results.outputs["port_pressures"][:, 0], 0.5 * G_N * RHO + P_AMB, rtol=1e-14
    )
    assert np.all(results.outputs["boundary_work"] == 0.0)
    assert not tank.has_gas
    assert not tank.has_mode


def test_filling():
    tank = OpenTank(height=1.0, cross_area=2.0, level_start=0.2)
    q = 0.1  # m3/s
    results = _simulate(tank, 3.0, [RHO * q])

    level = results.outputs["liquid_level"]
    assert np.allclose(level, 0.2 + q * results.time / 2.0, rtol=1e-10)
    assert np.isclose(results.context.continuous_state[0], 0.35)

    # Volume closure
    assert np.allclose(
        results.outputs["liquid_volume"] + results.outputs["gas_volume"],
        2.0,
        rtol=1e-14,
    )


def test_net_flow_of_several_ports():
    ports = [PortData(height=0.0), PortData(height=0.5)]
    tank = OpenTank(height=1.0, cross_area=1.0, level_start=0.4, ports=ports)
    results = _simulate(tank, 2.0, [RHO * 0.2, -RHO * 0.2])
    assert np.allclose(results.outputs["liquid_level"], 0.4)


def test_port_above_liquid_surface():
    ports = [PortData(height=0.0), PortData(height=0.8)]
    tank = OpenTank(height=1.0, cross_area=1.0, level_start=0.5, ports=ports)
    context = tank.create_context()
    pressures = tank.get_output_port("port_pressures").eval(context)

    assert np.isclose(pressures[0], 0.5 * G_N * RHO + P_AMB)
    # Head contribution is never negative
    assert pressures[1] == P_AMB


def test_port_with_resistance_sees_internal_pressure():
    ports = [PortData(height=0.0, diameter=0.05, zeta_in=0.5, zeta_out=0.5)]
    tank = OpenTank(height=1.0, cross_area=1.0, level_start=0.5, ports=ports)
    pressures = tank.get_output_port("port_pressures").eval(tank.create_context())
    assert pressures[0] == P_AMB


def test_boundary_condition_is_per_vessel():
    boundary = BoundaryCondition(p_ambient=2.0e5, g_n=1.62)
    tank = OpenTank(level_start=0.5, boundary=boundary)
    other = OpenTank(level_start=0.5)

    p_tank = tank.get_output_port("port_pressures").eval(tank.create_context())
    p_other = other.get_output_port("port_pressures").eval(other.create_context())
    assert np.isclose(p_tank[0], 2.0e5 + 0.5 * 1.62 * RHO)
    assert np.isclose(p_other[0], P_AMB + 0.5 * G_N * RHO)


def test_boundary_work_of_compressible_headspace():
    # With a liquid that is not single-state the work term is kept
    liquid = IncompressibleLiquid(density=1000.0, single_state=False)
    tank = OpenTank(level_start=0.5, medium=liquid)
    tank.input_ports[0].fix_value(np.array([10.0]))
    context = tank.create_context()

    Wb_flow = tank.get_output_port("boundary_work").eval(context)
    assert np.isclose(Wb_flow, -P_AMB * 10.0 / 1000.0)

    tank = OpenTank(
        level_start=0.5, medium=liquid, energy_dynamics=EnergyDynamics.STEADY_STATE
    )
    tank.input_ports[0].fix_value(np.array([10.0]))
    Wb_flow = tank.get_output_port("boundary_work").eval(tank.create_context())
    assert Wb_flow == 0.0


def test_overflow_is_fatal():
    tank = OpenTank(height=1.0, cross_area=1.0, level_start=0.5)
    with pytest.raises(GeometryViolationError) as exc:
        _simulate(tank, 10.0, [RHO * 0.1])

    assert np.isclose(exc.value.time, 5.0, atol=1e-6)
    assert np.isclose(exc.value.extent, 1.0, atol=1e-6)
    assert exc.value.capacity == 1.0


def test_draining_is_fatal():
    tank = OpenTank(height=1.0, cross_area=1.0, level_start=0.5)
    with pytest.raises(GeometryViolationError) as exc:
        _simulate(tank, 10.0, [-RHO * 0.1])
    assert np.isclose(exc.value.time, 5.0, atol=1e-6)



def test_full_tank_with_inflow_is_fatal():
    tank = OpenTank(height=1.0, cross_area=1.0, level_start=1.0)
    with pytest.raises(GeometryViolationError) as exc:
        _simulate(tank, 1.0, [RHO * 0.1])
    assert exc.value.time < 1e-6
    assert exc.value.extent > 1.0


def test_full_tank_may_drain():
    tank = OpenTank(height=1.0, cross_area=1.0, level_start=1.0)
    results = _simulate(tank, 1.0, [-RHO * 0.1])
    assert np.isclose(results.context.continuous_state[0], 0.9, rtol=1e-10)
    assert np.all(results.outputs["liquid_level"] <= 1.0)

@pytest.mark.parametrize("level_start", [-0.1, 1.5])
def test_start_outside_capacity(level_start):
    with pytest.raises(GeometryViolationError):
        OpenTank(height=1.0, cross_area=1.0, level_start=level_start)


def test_start_value_is_floored():
    tank = OpenTank(height=1.0, cross_area=1.0, level_start=0.0)
    assert tank.extent_start == EXTENT_EPS
    context = tank.create_context()
    assert context.continuous_state[0] == EXTENT_EPS

    # A full tank is admissible
    tank = OpenTank(height=1.0, cross_area=1.0, level_start=1.0)
    assert tank.extent_start == 1.0


def test_port_above_tank():
    with pytest.raises(BlockParameterError):
        OpenTank(height=1.0, ports=[PortData(height=2.0)])
