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

import jax
import jax.numpy as jnp
import numpy as np

from hydrovessel.framework import LeafState

pytestmark = pytest.mark.minimal


def test_with_continuous_state_keeps_shape():
    state = LeafState(name="vessel", continuous_state=jnp.zeros(3), mode=0)
    new_state = state.with_continuous_state([1.0, 2.0, 3.0])

    assert new_state.continuous_state.shape == (3,)
    assert np.allclose(new_state.continuous_state, [1.0, 2.0, 3.0])

    # The original state is unchanged
    assert np.allclose(state.continuous_state, 0.0)
    assert new_state.mode == 0
    assert new_state.name == "vessel"


def test_with_mode():
    state = LeafState(continuous_state=jnp.ones(1), mode=0)
    assert state.has_mode
    new_state = state.with_mode(1)
    assert new_state.mode == 1
    assert state.mode == 0


def test_empty_state():
    state = LeafState()
    assert not state.has_continuous_state
    assert not state.has_mode
    assert state.num_continuous_states == 0


def test_state_is_pytree():
    state = LeafState(name="vessel", continuous_state=jnp.array([1.0, 2.0]), mode=1)
    leaves, treedef = jax.tree_util.tree_flatten(state)
    assert len(leaves) == 2

    doubled = jax.tree_util.tree_map(lambda x: 2 * x, state)
    assert isinstance(doubled, LeafState)
    assert doubled.name == "vessel"
    assert np.allclose(doubled.continuous_state, [2.0, 4.0])
    assert doubled.mode == 2
