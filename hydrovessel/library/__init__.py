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

"""Vessel models and their configuration data."""

from .cushion import CushionRegime, GasCushionState, NoCushion, SealedGasCushion
from .geometry import BoundaryCondition, PortData, VesselGeometry
from .initialization import EnergyDynamics, InitializationPolicy, solve_steady_extent
from .vessel import EXTENT_EPS, Vessel
from .vessels import AirCushionTank, NitrogenAccumulator, OpenTank

__all__ = [
    "Vessel",
    "OpenTank",
    "NitrogenAccumulator",
    "AirCushionTank",
    "PortData",
    "BoundaryCondition",
    "VesselGeometry",
    "NoCushion",
    "SealedGasCushion",
    "GasCushionState",
    "CushionRegime",
    "InitializationPolicy",
    "EnergyDynamics",
    "solve_steady_extent",
    "EXTENT_EPS",
]
