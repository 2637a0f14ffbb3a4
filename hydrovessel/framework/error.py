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

"""Error taxonomy for vessel models and their simulation.

Errors fall into two groups. Static errors are detected while a model is being
configured (bad parameters, inconsistent start values, no admissible initial
state). Runtime errors abort a simulation in progress: the physical model has
no solution past the point where they are raised, so they are never retried.
"""

from __future__ import annotations

import warnings
from typing import TYPE_CHECKING, Hashable

if TYPE_CHECKING:
    from .leaf_system import LeafSystem


__all__ = [
    "VesselError",
    "StaticError",
    "BlockParameterError",
    "ModelInitializationError",
    "BlockRuntimeError",
    "GeometryViolationError",
    "EquationOfStateDomainError",
    "SimulationError",
]


class VesselError(Exception):
    """Base class for all custom hydrovessel errors."""

    def __init__(
        self,
        message=None,
        *,
        system: "LeafSystem" = None,
        system_id: Hashable = None,
        name_path: list[str] = None,
        port_index: int = None,
        port_name: str = None,
        parameter_name: str = None,
        time: float = None,
    ):
        """
        Args:
            message: Error description, the class name when None.
            system: System that raised the error.
            system_id: Identifies the system when the object is not at hand.
            name_path: Names leading to the system when the object is not at hand.
            port_index: The index of the vessel port involved, if any.
            port_name: The name of the input/output port involved, if any.
            parameter_name: The name of the offending parameter, if any.
            time: Simulation time at which a runtime error was detected.
        """
        super().__init__(message)

        if system and system_id:
            warnings.warn(
                "Pass either system or system_id to a VesselError, not both"
            )

        if system:
            self.system_id = system.system_id
            self.name_path = name_path or [system.name]
        else:
            self.system_id = system_id
            self.name_path = name_path

        self.message = message
        self.port_index = port_index
        self.port_name = port_name
        self.parameter_name = parameter_name
        self.time = time

    def __str__(self):
        message = self.message or self.default_message
        return f"{message}{self._context_info()}"

    def _context_info(self) -> str:
        strbuf = []

        if self.name_path:
            strbuf.append(f" in system {'.'.join(self.name_path)}")
        elif self.system_id is not None:
            strbuf.append(f" in system {self.system_id}")

        if self.port_name:
            strbuf.append(f" at port {self.port_name}")
        elif self.port_index is not None:
            strbuf.append(f" at port {self.port_index}")
        if self.parameter_name:
            strbuf.append(f" with parameter {self.parameter_name}")
        if self.time is not None:
            strbuf.append(f" at t={self.time:.9g}")
        if self.__cause__ is not None:
            strbuf.append(f": {self.__cause__}")

        return "".join(strbuf)

    @property
    def default_message(self):
        return type(self).__name__

    def caused_by(self, exc_type: type) -> bool:
        """Whether this error, or any error in its `__cause__` chain, is an
        instance of `exc_type`."""

        def _is_or_caused_by(exc, cause_type) -> bool:
            if not exc or not cause_type:
                return False
            if isinstance(exc, cause_type):
                return True
            return _is_or_caused_by(exc.__cause__, cause_type)

        return _is_or_caused_by(self, exc_type)


class StaticError(VesselError):
    """Error detected before a simulation starts."""

    pass


class BlockParameterError(StaticError):
    """System parameters are missing or have invalid values."""

    pass


class ModelInitializationError(StaticError):
    """No admissible initial state exists for the selected initialization policy."""

    pass


class BlockRuntimeError(VesselError):
    """A system failed while being evaluated during a simulation."""

    pass


class GeometryViolationError(BlockRuntimeError):
    """Liquid extent left the admissible range [0, capacity]."""

    def __init__(self, message=None, *, extent=None, capacity=None, **kwargs):
        super().__init__(message, **kwargs)
        self.extent = extent
        self.capacity = capacity

    @property
    def default_message(self):
        if self.extent is None:
            return "Liquid extent outside of vessel capacity"
        return (
            f"Liquid extent {self.extent:.9g} outside of admissible range "
            f"[0, {self.capacity:.9g}]"
        )


class EquationOfStateDomainError(BlockRuntimeError, ValueError):
    """A property function was queried outside its range of validity."""

    pass


class SimulationError(VesselError):
    """The simulation could not be advanced to the requested end time."""

    pass
