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

"""Base class of the simulated models.

A LeafSystem declares its continuous state together with the ODE governing its time
evolution, its parameters, input and output ports, a discrete "mode" and the
zero-crossing events that switch between modes. After declaration, the LeafSystem
comprises a set of pure functions that can be evaluated given a LeafContext, which
contains the actual numeric values for time, state and parameters.

User callbacks (ODE right-hand side, outputs, guards, reset maps) all share the
signature

    callback(time, state, *inputs, **parameters)

where `state` is a LeafState, `inputs` are the current values of the input ports in
declaration order and `parameters` are the dynamic parameters of the context.
"""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Callable

import jax.numpy as jnp

from ..logging import logger
from .context import LeafContext
from .event import EventCollection, ZeroCrossingEvent, ZeroCrossingEventData
from .port import InputPort, OutputPort
from .state import LeafState

if TYPE_CHECKING:
    from jax import Array

__all__ = ["LeafSystem"]


class LeafSystem:
    """Basic building block for hybrid dynamical systems."""

    _id_counter = itertools.count()

    def __init__(self, name: str = None):
        self.system_id = next(LeafSystem._id_counter)
        if name is None:
            name = f"{type(self).__name__}_{self.system_id}"
        self.name = name

        self.dynamic_parameters: dict[str, Array] = {}
        self.input_ports: list[InputPort] = []
        self.output_ports: list[OutputPort] = []

        self._default_continuous_state: Array = None
        self._ode_callback: Callable = None
        self._default_mode: int = None
        self._zero_crossing_events: list[ZeroCrossingEvent] = []

        # Map from start mode to [(event_index, event), ...] for debugging
        self.transition_map: dict[int, list[tuple[int, ZeroCrossingEvent]]] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name}, system_id={self.system_id})"

    @property
    def has_continuous_state(self) -> bool:
        return self._default_continuous_state is not None

    @property
    def has_mode(self) -> bool:
        return self._default_mode is not None

    @property
    def has_zero_crossing_events(self) -> bool:
        return len(self._zero_crossing_events) > 0

    def get_input_port(self, name: str) -> tuple[InputPort, int]:
        """Input port called `name` and its index."""
        for i, port in enumerate(self.input_ports):
            if port.name == name:
                return port, i
        raise ValueError(
            f"System {self.name} has no input port named {name}. "
            f"Available ports: {list(map(lambda x: x.name, self.input_ports))}"
        )

    def get_output_port(self, name: str) -> OutputPort:
        """Output port called `name`."""
        for port in self.output_ports:
            if port.name == name:
                return port
        raise ValueError(f"System {self.name} has no output port named {name}")

    @property
    def zero_crossing_events(self) -> EventCollection:
        return EventCollection(self._zero_crossing_events)

    #
    # Declarations
    #
    def declare_dynamic_parameter(self, name: str, default_value, as_array=True):
        """Declare a numeric parameter passed to callbacks through the context."""
        assert (
            name not in self.dynamic_parameters
        ), f"Parameter {name} already declared in {self.name}"
        if as_array:
            default_value = jnp.asarray(default_value)
        self.dynamic_parameters[name] = default_value

    def declare_input_port(self, name: str = None) -> int:
        """Declare an input port and return its index."""
        index = len(self.input_ports)
        if name is None:
            name = f"in_{index}"
        self.input_ports.append(InputPort(system=self, index=index, name=name))
        return index

    def declare_output_port(
        self,
        callback: Callable,
        name: str = None,
        requires_inputs: bool = True,
    ) -> int:
        """Declare an output port computed by `callback` and return its index.

        Args:
            callback (Callable):
                Output function with signature
                `callback(time, state, *inputs, **parameters) -> Array`.
            name (str, optional):
                Name of the output port.
            requires_inputs (bool, optional):
                If False, the callback is evaluated without reading the input
                ports, which allows input sources to depend on this output.
        """
        index = len(self.output_ports)
        if name is None:
            name = f"out_{index}"
        port = OutputPort(
            system=self,
            index=index,
            name=name,
            callback=self.wrap_callback(callback, collect_inputs=requires_inputs),
        )
        self.output_ports.append(port)
        return index

    def declare_continuous_state(
        self,
        shape=None,
        default_value: Array = None,
        dtype=None,
        ode: Callable = None,
    ):
        """Declare a continuous state component for the system.

        The `ode` callback computes the time derivatives of the continuous state and
        has the signature `ode(time, state, *inputs, **parameters) -> Array`.
        """
        if default_value is None:
            assert shape is not None, "Must provide either shape or default_value"
            default_value = jnp.zeros(shape, dtype=dtype)
        self._default_continuous_state = jnp.asarray(default_value, dtype=dtype)
        self._ode_callback = ode

    def declare_continuous_state_output(self, name: str = None) -> int:
        def _callback(time, state: LeafState, *inputs, **parameters):
            return state.continuous_state

        return self.declare_output_port(_callback, name=name, requires_inputs=False)

    def declare_mode_output(self, name: str = None) -> int:
        def _callback(time, state: LeafState, *inputs, **parameters):
            return state.mode

        return self.declare_output_port(_callback, name=name, requires_inputs=False)

    def declare_default_mode(self, mode: int):
        self._default_mode = mode

    def declare_zero_crossing(
        self,
        guard: Callable,
        reset_map: Callable = None,
        start_mode: int = None,
        end_mode: int = None,
        direction: str = "crosses_zero",
        terminal: bool = False,
        name: str = None,
    ):
        """Add a guarded event, see ZeroCrossingEvent for the direction rules.

        With `start_mode` and `end_mode`, the guard is only evaluated while the
        system is in `start_mode` and the event switches it to `end_mode` after the
        reset. Without them the event is evaluated in every mode and keeps it.

        Both callbacks take `(time, state, *inputs, **parameters)`. The guard
        returns a float and the reset map a LeafState.

        Args:
            guard (Callable): Scalar function whose sign change is monitored.
            reset_map (Callable, optional):
                New state after a trigger, the state is kept when None. Raising
                from it aborts the simulation.
            start_mode (int, optional): Mode in which the event is active.
            end_mode (int, optional): Mode after the event. Required with start_mode.
            direction (str, optional): One of the ZeroCrossingEvent directions.
            terminal (bool, optional): Stop the simulation after this event.
            name (str, optional): Used in logs and error messages.
        """
        logger.debug(
            "Declaring zero crossing %s for %s (mode %s -> %s)",
            name,
            self.name,
            start_mode,
            end_mode,
        )

        if start_mode is not None or end_mode is not None:
            assert (
                self._default_mode is not None
            ), "Declare a default mode before declaring mode transitions"
            assert isinstance(start_mode, int) and isinstance(end_mode, int)

        def _reset_and_update_mode(time, state: LeafState, *inputs, **parameters):
            if reset_map is not None:
                state = reset_map(time, state, *inputs, **parameters)

            if start_mode is not None:
                logger.debug(
                    "Updating mode of %s from %s to %s", self.name, state.mode, end_mode
                )
                state = state.with_mode(end_mode)

            return state

        event = ZeroCrossingEvent(
            system_id=self.system_id,
            guard=self.wrap_callback(guard),
            reset_map=self.wrap_callback(_reset_and_update_mode),
            name=name,
            direction=direction,
            is_terminal=terminal,
            event_data=ZeroCrossingEventData(active=True, triggered=False),
            active_mode=start_mode,
        )

        event_index = len(self._zero_crossing_events)
        self._zero_crossing_events.append(event)

        if start_mode is not None:
            self.transition_map.setdefault(start_mode, []).append((event_index, event))

    #
    # Evaluation
    #
    def collect_inputs(self, context: LeafContext) -> tuple:
        return tuple(port.eval(context) for port in self.input_ports)

    def wrap_callback(
        self, callback: Callable, collect_inputs: bool = True
    ) -> Callable:
        """Convert a user callback into a function of the context only."""

        def _wrapped_callback(context: LeafContext):
            inputs = self.collect_inputs(context) if collect_inputs else ()
            return callback(context.time, context.state, *inputs, **context.parameters)

        return _wrapped_callback

    def eval_time_derivatives(self, context: LeafContext) -> Array:
        if self._ode_callback is None:
            return None
        return self.wrap_callback(self._ode_callback)(context)

    def determine_active_guards(self, context: LeafContext) -> EventCollection:
        """Mark events active or inactive depending on the current mode."""

        def _conditionally_activate(event: ZeroCrossingEvent) -> ZeroCrossingEvent:
            if event.active_mode is None or event.active_mode == context.mode:
                return event.mark_active()
            return event.mark_inactive()

        return self.zero_crossing_events.map(_conditionally_activate)

    def handle_zero_crossings(
        self, events: EventCollection, context: LeafContext
    ) -> LeafContext:
        """Apply the reset maps of all triggered events, in declaration order."""
        for event in events:
            if event.event_data.active and event.event_data.triggered:
                logger.debug(
                    "Handling zero crossing %s of %s at t=%s",
                    event.name,
                    self.name,
                    context.time,
                )
                context = context.with_state(event.handle(context))
        return context

    #
    # Initialization
    #
    def create_state(self) -> LeafState:
        return LeafState(
            name=self.name,
            continuous_state=self._default_continuous_state,
            mode=self._default_mode,
        )

    def create_context(self, time: float = 0.0, **parameters) -> LeafContext:
        """Create a context holding the default state and parameter values.

        Keyword arguments override the defaults of declared dynamic parameters.
        """
        context = LeafContext(
            owning_system=self,
            time=time,
            parameters=dict(self.dynamic_parameters),
            state=self.create_state(),
        )
        if parameters:
            context = context.with_parameters(parameters)
        return context

    def initialize_state(self, context: LeafContext) -> LeafContext:
        """Hook called once by the simulator at the start of a run.

        Subclasses override this to apply initial equations to the context (for
        example, pinning a state to a start value or solving for a steady state)
        and to select the initial mode.
        """
        return context
