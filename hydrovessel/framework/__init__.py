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

"""Hybrid-system framework: systems, contexts, states, ports and events."""

from .context import LeafContext
from .error import (
    VesselError,
    StaticError,
    BlockParameterError,
    ModelInitializationError,
    BlockRuntimeError,
    GeometryViolationError,
    EquationOfStateDomainError,
    SimulationError,
)
from .event import (
    IntegerTime,
    ZeroCrossingEvent,
    ZeroCrossingEventData,
    EventCollection,
)
from .leaf_system import LeafSystem
from .port import InputPort, OutputPort
from .state import LeafState

__all__ = [
    "LeafContext",
    "LeafState",
    "LeafSystem",
    "InputPort",
    "OutputPort",
    "IntegerTime",
    "ZeroCrossingEvent",
    "ZeroCrossingEventData",
    "EventCollection",
    "VesselError",
    "StaticError",
    "BlockParameterError",
    "ModelInitializationError",
    "BlockRuntimeError",
    "GeometryViolationError",
    "EquationOfStateDomainError",
    "SimulationError",
]
