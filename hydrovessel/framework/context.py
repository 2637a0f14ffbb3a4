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

"""Snapshot of the values a system is evaluated at: time, state and parameters.

Obtain one from `system.create_context()` and derive variants with the
`with_*` methods. A context is never modified in place.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Hashable, Mapping
import dataclasses

import jax.numpy as jnp

if TYPE_CHECKING:
    from jax import Array
    from .leaf_system import LeafSystem
    from .state import LeafState


__all__ = ["LeafContext"]


@dataclasses.dataclass(frozen=True)
class LeafContext:
    """Time, state and parameter values of one LeafSystem.

    Attributes:
        owning_system (LeafSystem):
            System whose callbacks are evaluated at this context.
        time (float):
            Simulation time in seconds.
        parameters (Mapping[str, Array]):
            Numeric values of the dynamic parameters declared by the system.
        state (LeafState):
            Continuous state and mode of the system.
    """

    owning_system: LeafSystem
    time: float = 0.0
    parameters: Mapping[str, Array] = None
    state: LeafState = None

    @property
    def system_id(self) -> Hashable:
        return self.owning_system.system_id

    def __repr__(self) -> str:
        return f"{type(self).__name__}(sys={self.system_id}, t={self.time})"

    def with_time(self, value: float) -> LeafContext:
        """Copy at time `value`."""
        return dataclasses.replace(self, time=value)

    def with_state(self, state: LeafState) -> LeafContext:
        return dataclasses.replace(self, state=state)

    @property
    def continuous_state(self) -> Array:
        return self.state.continuous_state

    def with_continuous_state(self, value: Array) -> LeafContext:
        return dataclasses.replace(self, state=self.state.with_continuous_state(value))

    @property
    def num_continuous_states(self) -> int:
        return self.state.num_continuous_states

    @property
    def has_continuous_state(self) -> bool:
        return self.state.has_continuous_state

    @property
    def mode(self) -> int:
        return self.state.mode

    @property
    def has_mode(self) -> bool:
        return self.state.has_mode

    def with_mode(self, value: int) -> LeafContext:
        return dataclasses.replace(self, state=self.state.with_mode(value))

    def with_parameter(self, name: str, value) -> LeafContext:
        """Copy with parameter `name` set to `value`."""
        return self.with_parameters({name: value})

    def with_parameters(self, new_parameters: Mapping[str, Array]) -> LeafContext:
        """Copy with the given parameters updated. Unknown names raise KeyError."""
        parameters = {**self.parameters}
        for name, value in new_parameters.items():
            if name not in parameters:
                raise KeyError(
                    f"System {self.owning_system.name} has no parameter '{name}'"
                )
            parameters[name] = jnp.asarray(value)
        return dataclasses.replace(self, parameters=parameters)
