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

"""Input and output ports of systems.

Output ports wrap a callback of the owning system and can be evaluated against any
context of that system. Input ports are the seam through which externally owned
components (flow sources, pipes, orifices) feed a system: they are either fixed to
a value or connected to a source function of the context.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable
import dataclasses

from .error import VesselError

if TYPE_CHECKING:
    from jax import Array
    from .context import LeafContext
    from .leaf_system import LeafSystem


__all__ = [
    "InputPort",
    "OutputPort",
]


@dataclasses.dataclass(eq=False)
class PortBase:
    """Base class for input and output ports."""

    system: LeafSystem
    index: int
    name: str = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.system.name}[{self.name}])"


@dataclasses.dataclass(repr=False, eq=False)
class OutputPort(PortBase):
    """Output port of a system."""

    callback: Callable[[LeafContext], Array] = None

    def eval(self, context: LeafContext) -> Array:
        """Evaluate the output of the owning system for the given context."""
        return self.callback(context)


class FixedPortManager:
    """Context manager for temporarily fixing a port to a constant value."""

    def __init__(self, port: InputPort, value):
        self.port = port
        self.value = value
        self._saved = None

    def __enter__(self):
        self._saved = (self.port._source, self.port.is_fixed)
        self.port.fix_value(self.value)

    def __exit__(self, _exc_type, _exc_value, _exc_traceback):
        self.port._source, self.port.is_fixed = self._saved


@dataclasses.dataclass(repr=False, eq=False)
class InputPort(PortBase):
    """Input port of a system."""

    is_fixed: bool = False
    _source: Callable[[LeafContext], Array] = None

    @property
    def is_connected(self) -> bool:
        return self._source is not None

    def fixed(self, value: Array) -> FixedPortManager:
        """Temporarily fix the value of this port to a constant.

        Example usage:
        ```python
        with vessel.input_ports[0].fixed(m_flow):
            xcdot = vessel.eval_time_derivatives(context)
        ```
        """
        return FixedPortManager(self, value)

    def fix_value(self, value: Array):
        """Set the value of this port to a constant."""
        self._source = lambda _: value
        self.is_fixed = True

    def connect(self, source: Callable[[LeafContext], Array]):
        """Compute the value of this port from the context of the owning system.

        The source typically evaluates output ports of the same system, for
        instance a pipe whose flow depends on the vessel's port pressures.
        Sources must not read this input port, directly or indirectly.
        """
        self._source = source
        self.is_fixed = False

    def eval(self, context: LeafContext) -> Array:
        if self._source is None:
            raise VesselError(
                "Input port is not connected to a source",
                system=self.system,
                port_name=self.name,
            )
        return self._source(context)
