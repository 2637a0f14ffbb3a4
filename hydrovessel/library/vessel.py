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

"""Lumped-volume balance of a hydraulic vessel.

A Vessel stores an incompressible liquid up to a liquid extent (a level or a
volume) and optionally a sealed gas cushion in the remaining capacity. Liquid
enters and leaves through ports; the mass flow of each port is an input of the
system and the static pressure presented at each port is an output.

Continuous state:
    [extent]                          without cushion
    [extent, gas_mass, gas_energy]    with a sealed gas cushion

Balance:
    d(liquid_volume)/dt = sum(m_flow) / rho_liquid
    gas_volume          = total_volume - liquid_volume
    d(gas_mass)/dt      = 0
    Wb_flow             = -p_liquid * d(liquid_volume)/dt
    d(gas_energy)/dt    = -Wb_flow

Wb_flow and d(gas_energy)/dt are zero when energy dynamics are steady-state or the
balanced medium has a single thermodynamic state.

With a cushion, the vessel switches between two regimes, see CushionRegime. The
switch is a zero-crossing of `p_gas - p_threshold`, where p_gas is the
equation-of-state pressure of the cushion. The extent leaving [0, capacity] is a
terminal event that aborts the simulation with GeometryViolationError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import jax.numpy as jnp

from ..framework import LeafSystem
from ..framework.error import BlockParameterError, GeometryViolationError
from ..logging import logdata, logger
from .cushion import CushionRegime, GasCushionState, NoCushion
from .geometry import BoundaryCondition, PortData, VesselGeometry
from .initialization import EnergyDynamics, InitializationPolicy, solve_steady_extent

if TYPE_CHECKING:
    from jax import Array
    from ..framework import LeafContext, LeafState
    from ..media import IncompressibleLiquid

__all__ = ["Vessel", "EXTENT_EPS"]


# Floor of the start extent, keeps the liquid extent strictly positive.
EXTENT_EPS = 1e-15

# Relative margin from the full capacity for the steady-state bracket of a vessel
# with a cushion, whose gas volume must stay positive.
_CAPACITY_MARGIN = 1e-9


class Vessel(LeafSystem):
    """Vessel with a liquid balance, an optional gas cushion and N ports.

    Input ports:
        (0) m_flow: mass flow of each port in kg/s, positive into the vessel. Only
            declared if the vessel has ports.

    Output ports:
        port_pressures: static pressure at each port.
        liquid_pressure: pressure of the liquid at the vessel bottom, without head.
        liquid_extent, liquid_level, liquid_volume, gas_volume, gas_pressure,
        boundary_work: see the module docstring.
        gas_temperature, gas_density, gas_mass, gas_energy, regime: only with a
            gas cushion.

    Parameters:
        p_ambient, T_ambient, g_n: from the BoundaryCondition.
        p_threshold: fill pressure of the cushion, only with a gas cushion.

    Args:
        geometry: vessel geometry, defining the liquid extent and the capacity.
        liquid: working liquid.
        cushion: NoCushion or SealedGasCushion.
        ports: geometry of the ports.
        boundary: ambient values.
        extent_start: start value of the liquid extent.
        initialization: initial equation applied at the simulation start.
        energy_dynamics: formulation of the cushion energy balance.
    """

    def __init__(
        self,
        geometry: VesselGeometry,
        liquid: IncompressibleLiquid,
        cushion=None,
        ports: list[PortData] = None,
        boundary: BoundaryCondition = None,
        extent_start: float = 0.0,
        initialization: InitializationPolicy = InitializationPolicy.FIXED_INITIAL,
        energy_dynamics: EnergyDynamics = EnergyDynamics.DYNAMIC,
        name: str = None,
    ):
        super().__init__(name=name)

        self.geometry = geometry
        self.liquid = liquid
        self.cushion = NoCushion() if cushion is None else cushion
        self.ports = tuple(ports) if ports else ()
        self.boundary = BoundaryCondition() if boundary is None else boundary
        self.initialization = InitializationPolicy(initialization)
        self.energy_dynamics = EnergyDynamics(energy_dynamics)

        self._check_config()
        self.extent_start = self._floor_start(extent_start)

        self.declare_dynamic_parameter("p_ambient", self.boundary.p_ambient)
        self.declare_dynamic_parameter("T_ambient", self.boundary.T_ambient)
        self.declare_dynamic_parameter("g_n", self.boundary.g_n)
        if self.has_gas:
            self.declare_dynamic_parameter("p_threshold", self.cushion.p_threshold)

        if self.ports:
            self.declare_input_port("m_flow")

        x0 = self._start_state(self.extent_start, self.boundary.T_ambient)
        self.declare_continuous_state(default_value=x0, ode=self._balance_ode)

        if self.has_gas:
            gas_volume = geometry.gas_volume(x0[0])
            p0 = self.cushion.eval_state(x0[1], x0[2], gas_volume).pressure
            regime = self._select_regime(p0, self.cushion.p_threshold)
            self.declare_default_mode(int(regime))

        self._declare_outputs()
        self._declare_geometry_guards()
        if self.has_gas:
            self._declare_regime_switch()

    @property
    def has_gas(self) -> bool:
        return self.cushion.has_gas

    @property
    def capacity(self) -> float:
        return self.geometry.capacity

    @property
    def neglects_work(self) -> bool:
        """True if boundary work is excluded from the energy balance."""
        medium = self.cushion.gas if self.has_gas else self.liquid
        return (
            self.energy_dynamics == EnergyDynamics.STEADY_STATE
            or medium.single_state
        )

    #
    # Construction helpers
    #
    def _check_config(self):
        if self.has_gas and self.cushion.p_threshold < self.boundary.p_ambient:
            raise BlockParameterError(
                f"Gas fill pressure {self.cushion.p_threshold} is below the ambient "
                f"pressure {self.boundary.p_ambient}",
                system=self,
                parameter_name="p_threshold",
            )
        if self.geometry.extent_is_level:
            for i, port in enumerate(self.ports):
                if port.height > self.geometry.height:
                    raise BlockParameterError(
                        f"Port height {port.height} above the vessel height "
                        f"{self.geometry.height}",
                        system=self,
                        port_index=i,
                    )

    def _check_extent(self, extent, time=None):
        if self.has_gas:
            # The cushion needs a non-zero gas volume.
            inside = 0.0 <= extent < self.capacity
        else:
            inside = 0.0 <= extent <= self.capacity
        if not inside:
            raise GeometryViolationError(
                system=self, time=time, extent=extent, capacity=self.capacity
            )

    def _floor_start(self, extent):
        extent = float(extent)
        self._check_extent(extent)
        if extent < EXTENT_EPS:
            logger.debug(
                "%s: start extent %g floored to %g",
                self.name,
                extent,
                EXTENT_EPS,
                **logdata(system=self),
            )
            extent = EXTENT_EPS
        return extent

    def _start_state(self, extent, T_ambient) -> Array:
        if not self.has_gas:
            return jnp.array([extent], dtype=float)
        gas_mass, gas_energy = self.cushion.start_state(
            self.geometry.gas_volume(extent), T_ambient
        )
        return jnp.array([extent, gas_mass, gas_energy], dtype=float)

    @staticmethod
    def _select_regime(p_gas, p_threshold) -> CushionRegime:
        if p_gas > p_threshold:
            return CushionRegime.COMPRESSION
        return CushionRegime.REST

    #
    # Algebraic relations
    #
    def gas_state(self, state: LeafState) -> GasCushionState:
        """Equation-of-state view of the cushion for a given state."""
        xc = state.continuous_state
        volume = self.geometry.gas_volume(xc[0])
        return self.cushion.eval_state(xc[1], xc[2], volume)

    def _liquid_pressure(self, state: LeafState, p_ambient, **parameters):
        if self.has_gas and state.mode == CushionRegime.COMPRESSION:
            return self.gas_state(state).pressure
        return p_ambient

    def _gas_pressure(self, state: LeafState, p_ambient, **parameters):
        if not self.has_gas:
            # Headspace of an open vessel
            return p_ambient
        if state.mode == CushionRegime.COMPRESSION:
            return self.gas_state(state).pressure
        return parameters["p_threshold"]

    def _volume_rate(self, inputs):
        if not inputs:
            return 0.0
        m_flow = jnp.reshape(jnp.asarray(inputs[0], dtype=float), (len(self.ports),))
        return jnp.sum(m_flow) / self.liquid.d

    def _boundary_work(self, p_liquid, volume_rate):
        if self.neglects_work:
            return 0.0 * volume_rate
        return -p_liquid * volume_rate

    def _balance_ode(self, time, state: LeafState, *inputs, **parameters):
        volume_rate = self._volume_rate(inputs)
        extent_rate = self.geometry.extent_rate(volume_rate)
        if not self.has_gas:
            return jnp.array([extent_rate], dtype=float)

        p_liquid = self._liquid_pressure(state, **parameters)
        Wb_flow = self._boundary_work(p_liquid, volume_rate)
        return jnp.array([extent_rate, 0.0, -Wb_flow], dtype=float)

    def _port_pressures(self, time, state: LeafState, *inputs, **parameters):
        p_liquid = self._liquid_pressure(state, **parameters)
        level = self.geometry.liquid_level(state.continuous_state[0])
        rho = self.liquid.d
        pressures = []
        for port in self.ports:
            if port.has_resistance:
                pressures.append(p_liquid)
            else:
                head = jnp.maximum(0.0, level - port.height)
                pressures.append(head * parameters["g_n"] * rho + p_liquid)
        return jnp.array(pressures, dtype=float).reshape((len(self.ports),))

    #
    # Declarations
    #
    def _declare_outputs(self):
        geometry = self.geometry

        def _extent(time, state, *inputs, **parameters):
            return state.continuous_state[0]

        def _level(time, state, *inputs, **parameters):
            return geometry.liquid_level(state.continuous_state[0])

        def _liquid_volume(time, state, *inputs, **parameters):
            return geometry.liquid_volume(state.continuous_state[0])

        def _gas_volume(time, state, *inputs, **parameters):
            return geometry.gas_volume(state.continuous_state[0])

        def _liquid_pressure(time, state, *inputs, **parameters):
            return self._liquid_pressure(state, **parameters)

        def _gas_pressure(time, state, *inputs, **parameters):
            return self._gas_pressure(state, **parameters)

        def _boundary_work(time, state, *inputs, **parameters):
            p_liquid = self._liquid_pressure(state, **parameters)
            return self._boundary_work(p_liquid, self._volume_rate(inputs))

        self.declare_output_port(
            self._port_pressures, name="port_pressures", requires_inputs=False
        )
        self.declare_output_port(
            _liquid_pressure, name="liquid_pressure", requires_inputs=False
        )
        self.declare_output_port(_extent, name="liquid_extent", requires_inputs=False)
        self.declare_output_port(_level, name="liquid_level", requires_inputs=False)
        self.declare_output_port(
            _liquid_volume, name="liquid_volume", requires_inputs=False
        )
        self.declare_output_port(_gas_volume, name="gas_volume", requires_inputs=False)
        self.declare_output_port(
            _gas_pressure, name="gas_pressure", requires_inputs=False
        )
        self.declare_output_port(_boundary_work, name="boundary_work")

        if not self.has_gas:
            return

        def _gas_property(attr):
            def _callback(time, state, *inputs, **parameters):
                return getattr(self.gas_state(state), attr)

            return _callback

        for attr, port_name in (
            ("temperature", "gas_temperature"),
            ("density", "gas_density"),
            ("mass", "gas_mass"),
            ("energy", "gas_energy"),
        ):
            self.declare_output_port(
                _gas_property(attr), name=port_name, requires_inputs=False
            )
        self.declare_mode_output(name="regime")

    def _declare_geometry_guards(self):
        capacity = self.capacity

        def _violation(time, state, *inputs, **parameters):
            raise GeometryViolationError(
                system=self,
                time=float(time),
                extent=float(state.continuous_state[0]),
                capacity=capacity,
            )

        # Positive outside [0, capacity], zero on a bound.
        def _below_empty(time, state, *inputs, **parameters):
            return -state.continuous_state[0]

        def _above_full(time, state, *inputs, **parameters):
            return state.continuous_state[0] - capacity

        self.declare_zero_crossing(
            guard=_below_empty,
            reset_map=_violation,
            direction="non_positive_then_positive",
            terminal=True,
            name="liquid_extent_empty",
        )
        self.declare_zero_crossing(
            guard=_above_full,
            reset_map=_violation,
            direction="non_positive_then_positive",
            terminal=True,
            name="liquid_extent_full",
        )

    def _declare_regime_switch(self):
        def _guard(time, state, *inputs, p_threshold, **parameters):
            return self.gas_state(state).pressure - p_threshold

        self.declare_zero_crossing(
            guard=_guard,
            start_mode=int(CushionRegime.REST),
            end_mode=int(CushionRegime.COMPRESSION),
            direction="non_positive_then_positive",
            name="cushion_compression",
        )
        self.declare_zero_crossing(
            guard=_guard,
            start_mode=int(CushionRegime.COMPRESSION),
            end_mode=int(CushionRegime.REST),
            direction="positive_then_non_positive",
            name="cushion_rest",
        )

    #
    # Initialization
    #
    def with_regime(self, context: LeafContext) -> LeafContext:
        """Select the regime of the cushion from the strict pressure comparison."""
        if not self.has_gas:
            return context
        p_gas = self.gas_state(context.state).pressure
        regime = self._select_regime(p_gas, context.parameters["p_threshold"])
        return context.with_mode(int(regime))

    def initialize_state(self, context: LeafContext) -> LeafContext:
        T_ambient = context.parameters["T_ambient"]
        policy = self.initialization

        if policy == InitializationPolicy.FIXED_INITIAL:
            xc = self._start_state(self.extent_start, T_ambient)
            context = context.with_continuous_state(xc)

        elif policy == InitializationPolicy.STEADY_STATE_INITIAL:

            def _extent_rate(extent):
                xc = self._start_state(extent, T_ambient)
                trial = self.with_regime(context.with_continuous_state(xc))
                return self.eval_time_derivatives(trial)[0]

            upper = self.capacity
            if self.has_gas:
                upper = self.capacity * (1.0 - _CAPACITY_MARGIN)
            extent = solve_steady_extent(
                _extent_rate, self.extent_start, EXTENT_EPS, upper, system=self
            )
            context = context.with_continuous_state(
                self._start_state(extent, T_ambient)
            )
        else:
            # FREE keeps the state of the context, which may lie outside the vessel.
            extent = float(context.continuous_state[0])
            self._check_extent(extent, time=float(context.time))

        context = self.with_regime(context)
        logger.debug(
            "%s initialized (%s): state=%s, mode=%s",
            self.name,
            policy.value,
            context.continuous_state,
            context.mode,
            **logdata(system=self, time=context.time),
        )
        return context
