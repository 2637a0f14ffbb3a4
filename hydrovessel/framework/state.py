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

"""Immutable state of a LeafSystem: a continuous part integrated by the ODE
solver and an integer mode changed only by event reset maps.

For a vessel the continuous part is the liquid extent, followed by the gas mass
and energy when it has a gas cushion. The mode is the cushion pressure regime.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
import dataclasses

import jax.numpy as jnp
from jax import tree_util

if TYPE_CHECKING:
    from jax import Array

__all__ = ["LeafState"]


@dataclasses.dataclass(frozen=True)
class LeafState:
    """State values of one system.

    Attributes:
        name (str): Name of the owning system.
        continuous_state (Array): None for systems without continuous state.
        mode (int): None for systems without discrete modes.

    Use the `with_*` methods to derive modified copies.
    """

    name: str = None
    continuous_state: Array = None
    mode: int = None

    def __repr__(self) -> str:
        states = []
        if self.continuous_state is not None:
            states.append(f"xc={self.continuous_state}")
        if self.mode is not None:
            states.append(f"s={self.mode}")
        return f"{type(self).__name__}({', '.join(states)})"

    def with_continuous_state(self, value: Array) -> LeafState:
        """Copy with a new continuous state of the same shape."""
        if value is not None and self.continuous_state is not None:
            value = jnp.reshape(jnp.asarray(value), jnp.shape(self.continuous_state))

        return dataclasses.replace(self, continuous_state=value)

    @property
    def num_continuous_states(self) -> int:
        if self.continuous_state is None:
            return 0
        return self.continuous_state.size

    @property
    def has_continuous_state(self) -> bool:
        return self.num_continuous_states > 0

    def with_mode(self, value: int) -> LeafState:
        """Copy with a new mode."""
        return dataclasses.replace(self, mode=value)

    @property
    def has_mode(self) -> bool:
        return self.mode is not None


#
# Register as custom pytree node
#    https://jax.readthedocs.io/en/latest/pytrees.html#extending-pytrees
#
def _leaf_state_flatten(state: LeafState):
    children = (state.continuous_state, state.mode)
    aux_data = (state.name,)
    return children, aux_data


def _leaf_state_unflatten(aux_data, children):
    continuous_state, mode = children
    return LeafState(name=aux_data[0], continuous_state=continuous_state, mode=mode)


tree_util.register_pytree_node(
    LeafState,
    _leaf_state_flatten,
    _leaf_state_unflatten,
)
