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
from hydrovessel.framework import GeometryViolationError, ModelInitializationError
from hydrovessel.library import (
    EXTENT_EPS,
    CushionRegime,
    InitializationPolicy,
    NitrogenAccumulator,
    OpenTank,
    solve_steady_extent,
)

pytestmark = pytest.mark.minimal

P_AMB = 101325.0
G_N = 9.80665
RHO = 997.0
RHO_OIL = 870.0


def _connect_reservoir(vessel, p_reservoir, k=1.0e-3):
    """Feed the first port from a reservoir through a linear conductance."""
    port_pressures = vessel.get_output_port("port_pressures")

    def _m_flow(context):
        return jnp.array([k * (p_reservoir - port_pressures.eval(context)[0])])

    vessel.input_ports[0].connect(_m_flow)


def test_fixed_initial_restores_start_value():
    tank = OpenTank(level_start=0.3)
    tank.input_ports[0].fix_value(np.array([0.0]))
    context = tank.create_context().with_continuous_state(jnp.array([0.9]))

    context = tank.initialize_state(context)
    assert np.all(context.continuous_state == 0.3)


@pytest.mark.parametrize("p_ambient", [P_AMB, 2.0e5])
def test_fixed_initial_ignores_parameters(p_ambient):
    tank = OpenTank(level_start=0.3)
    context = tank.create_context(p_ambient=p_ambient)
    context = tank.initialize_state(context)
    assert np.all(context.continuous_state == 0.3)


def test_fixed_initial_rebuilds_cushion():
    accumulator = NitrogenAccumulator(V_oil_start=1.0e-4)
    context = accumulator.create_context(T_ambient=320.0)
    context = accumulator.initialize_state(context)

    assert context.continuous_state[0] == 1.0e-4
    assert context.mode == CushionRegime.REST
    T_gas = accumulator.get_output_port("gas_temperature").eval(context)
    assert np.isclose(T_gas, 320.0, rtol=1e-12)


def test_steady_state_initial():
    tank = OpenTank(
        level_start=0.3, initialization=InitializationPolicy.STEADY_STATE_INITIAL
    )
    _connect_reservoir(tank, P_AMB + RHO * G_N * 0.8)

    context = tank.initialize_state(tank.create_context())
    assert np.isclose(context.continuous_state[0], 0.8, atol=1e-9)
    assert abs(tank.eval_time_derivatives(context)[0]) < 1e-9


def test_steady_state_initial_holds_during_simulation():
    tank = OpenTank(
        level_start=0.3, initialization=InitializationPolicy.STEADY_STATE_INITIAL
    )
    _connect_reservoir(tank, P_AMB + RHO * G_N * 0.8)

    results = hydrovessel.simulate(
        tank,
        tank.create_context(),
        (0.0, 10.0),
        recorded_signals={"level": tank.get_output_port("liquid_level")},
    )
    assert np.allclose(results.outputs["level"], 0.8, atol=1e-8)


def test_steady_state_keeps_start_value_without_flow():
    tank = OpenTank(
        level_start=0.3, initialization=InitializationPolicy.STEADY_STATE_INITIAL
    )
    tank.input_ports[0].fix_value(np.array([0.0]))
    context = tank.initialize_state(tank.create_context())
    assert context.continuous_state[0] == 0.3


def test_steady_state_without_root():
    tank = OpenTank(
        level_start=0.3, initialization=InitializationPolicy.STEADY_STATE_INITIAL
    )
    tank.input_ports[0].fix_value(np.array([1.0]))
    with pytest.raises(ModelInitializationError, match="No steady state"):
        tank.initialize_state(tank.create_context())


def test_steady_state_with_cushion():
    inner_diameter = 0.1
    area = 0.25 * np.pi * inner_diameter**2
    accumulator = NitrogenAccumulator(
        volume=1.0e-3,
        p_threshold=5.0e6,
        V_oil_start=1.0e-4,
        inner_diameter=inner_diameter,
        initialization=InitializationPolicy.STEADY_STATE_INITIAL,
    )
    _connect_reservoir(accumulator, P_AMB + RHO_OIL * G_N * 0.05, k=1.0e-6)

    context = accumulator.initialize_state(accumulator.create_context())
    assert np.isclose(context.continuous_state[0], 0.05 * area, rtol=1e-9)
    assert context.mode == CushionRegime.REST
    assert accumulator.get_output_port("gas_pressure").eval(context) == 5.0e6


def test_free_leaves_state():
    tank = OpenTank(level_start=0.3, initialization=InitializationPolicy.FREE)
    tank.input_ports[0].fix_value(np.array([0.0]))
    context = tank.create_context().with_continuous_state(jnp.array([0.6]))

    context = tank.initialize_state(context)
    assert context.continuous_state[0] == 0.6


@pytest.mark.parametrize("level", [-0.1, 1.5])
def test_free_outside_capacity(level):
    tank = OpenTank(level_start=0.3, initialization=InitializationPolicy.FREE)
    context = tank.create_context().with_continuous_state(jnp.array([level]))
    with pytest.raises(GeometryViolationError) as exc:
        tank.initialize_state(context)
    assert exc.value.extent == level
    assert exc.value.time == 0.0


def test_free_outside_capacity_stops_simulation():
    tank = OpenTank(level_start=0.3, initialization=InitializationPolicy.FREE)
    tank.input_ports[0].fix_value(np.array([0.0]))
    context = tank.create_context().with_continuous_state(jnp.array([1.5]))
    with pytest.raises(GeometryViolationError):
        hydrovessel.simulate(tank, context, (0.0, 1.0))

def test_free_selects_regime():
    accumulator = NitrogenAccumulator(
        V_oil_start=1.0e-4, initialization=InitializationPolicy.FREE
    )
    context = accumulator.create_context()
    xc = context.continuous_state

    # Raise the gas energy so that the cushion is above its fill pressure
    context = context.with_continuous_state(xc.at[2].set(1.5 * xc[2]))
    context = accumulator.initialize_state(context)
    assert context.mode == CushionRegime.COMPRESSION
    assert context.continuous_state[2] == 1.5 * xc[2]


def test_solve_steady_extent():
    assert np.isclose(
        solve_steady_extent(lambda x: 0.5 - x, 0.1, EXTENT_EPS, 1.0), 0.5
    )
    assert solve_steady_extent(lambda x: 0.0 * x, 0.1, EXTENT_EPS, 1.0) == 0.1
    assert solve_steady_extent(lambda x: 1.0 - x, 0.1, EXTENT_EPS, 1.0) == 1.0
    with pytest.raises(ModelInitializationError):
        solve_steady_extent(lambda x: 2.0 - x, 0.1, EXTENT_EPS, 1.0)
