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

"""Vessel variants: open tank, nitrogen accumulator and air-cushion tank."""

from ..media import HydraulicOil, IdealGasAir, IdealGasNitrogen, WaterLiquidSimple
from .cushion import SealedGasCushion
from .geometry import PortData, VesselGeometry
from .initialization import EnergyDynamics, InitializationPolicy
from .vessel import Vessel

__all__ = [
    "OpenTank",
    "NitrogenAccumulator",
    "AirCushionTank",
]


class OpenTank(Vessel):
    """
    Tank with an open top at ambient pressure. The liquid extent is the level.

    Args:
        height (number):
            Height of the tank, m. The liquid must not overflow.
        cross_area (number):
            Horizontal cross-section of the tank, m2.
        level_start (number):
            Start value of the liquid level, m.
        ports (list[PortData]):
            Ports of the tank. Defaults to a single port at the bottom.
        medium (IncompressibleLiquid):
            Liquid stored in the tank. Defaults to water.
    """

    def __init__(
        self,
        height=1.0,
        cross_area=1.0,
        level_start=0.0,
        ports=None,
        medium=None,
        boundary=None,
        initialization=InitializationPolicy.FIXED_INITIAL,
        energy_dynamics=EnergyDynamics.DYNAMIC,
        name=None,
    ):
        super().__init__(
            geometry=VesselGeometry(height=height, cross_area=cross_area),
            liquid=WaterLiquidSimple() if medium is None else medium,
            ports=[PortData()] if ports is None else ports,
            boundary=boundary,
            extent_start=level_start,
            initialization=initialization,
            energy_dynamics=energy_dynamics,
            name=name,
        )


class NitrogenAccumulator(Vessel):
    """
    Hydraulic accumulator with a nitrogen cushion. The liquid extent is the oil
    volume.

    The gas is at its fill pressure until the oil pressure exceeds it, then the
    cushion compresses and the oil is at the gas pressure.

    Args:
        volume (number):
            Total volume of the accumulator, m3.
        p_threshold (number):
            Nitrogen fill pressure, Pa.
        V_oil_start (number):
            Start value of the oil volume, m3.
        ports (list[PortData]):
            Ports of the accumulator. Defaults to a single port at the bottom.
        inner_diameter (number):
            Inner diameter of the shell, m. Used for the oil level.
        length (number):
            Length of the shell, m. Used for the oil level if inner_diameter is
            not given.
        p_gas_start (number):
            Start pressure of the nitrogen, Pa. Defaults to p_threshold.
        T_gas_start (number):
            Start temperature of the nitrogen, K. Defaults to the ambient value.
    """

    def __init__(
        self,
        volume=1.0e-3,
        p_threshold=5.0e6,
        V_oil_start=0.0,
        ports=None,
        inner_diameter=None,
        length=None,
        p_gas_start=None,
        T_gas_start=None,
        gas=None,
        medium=None,
        boundary=None,
        initialization=InitializationPolicy.FIXED_INITIAL,
        energy_dynamics=EnergyDynamics.DYNAMIC,
        name=None,
    ):
        cushion = SealedGasCushion(
            p_threshold,
            gas=IdealGasNitrogen() if gas is None else gas,
            p_gas_start=p_gas_start,
            T_gas_start=T_gas_start,
        )
        super().__init__(
            geometry=VesselGeometry(
                volume=volume, inner_diameter=inner_diameter, length=length
            ),
            liquid=HydraulicOil() if medium is None else medium,
            cushion=cushion,
            ports=[PortData()] if ports is None else ports,
            boundary=boundary,
            extent_start=V_oil_start,
            initialization=initialization,
            energy_dynamics=energy_dynamics,
            name=name,
        )


class AirCushionTank(Vessel):
    """
    Vertical tank with a sealed air cushion above the water, as used for surge
    control. The liquid extent is the water level.

    By default the tank has two ports at the bottom carrying resistance data, so
    that the port pressures are the internal pressure and the orifice losses are
    left to the connected components (see PortData.pressure_loss).
    """

    def __init__(
        self,
        height=10.0,
        cross_area=1.0,
        level_start=0.0,
        p_threshold=2.0e5,
        ports=None,
        p_gas_start=None,
        T_gas_start=None,
        medium=None,
        boundary=None,
        initialization=InitializationPolicy.FIXED_INITIAL,
        energy_dynamics=EnergyDynamics.DYNAMIC,
        name=None,
    ):
        if ports is None:
            ports = [
                PortData(height=0.0, diameter=0.1, zeta_in=0.5, zeta_out=1.0),
                PortData(height=0.0, diameter=0.1, zeta_in=0.5, zeta_out=1.0),
            ]
        cushion = SealedGasCushion(
            p_threshold,
            gas=IdealGasAir(),
            p_gas_start=p_gas_start,
            T_gas_start=T_gas_start,
        )
        super().__init__(
            geometry=VesselGeometry(height=height, cross_area=cross_area),
            liquid=WaterLiquidSimple() if medium is None else medium,
            cushion=cushion,
            ports=ports,
            boundary=boundary,
            extent_start=level_start,
            initialization=initialization,
            energy_dynamics=energy_dynamics,
            name=name,
        )
