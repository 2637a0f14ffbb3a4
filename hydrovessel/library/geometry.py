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

"""Plain configuration data of a vessel: geometry, ports and boundary values.

These are serializable with dataclasses_json (`to_dict`, `from_dict`, `to_json`,
`from_json`) and are validated on construction.
"""

import dataclasses
import math
from typing import Optional

import jax.numpy as jnp
from dataclasses_json import dataclass_json

from ..framework.error import BlockParameterError

__all__ = [
    "BoundaryCondition",
    "PortData",
    "VesselGeometry",
]


@dataclass_json
@dataclasses.dataclass(frozen=True)
class BoundaryCondition:
    """Ambient values seen by a vessel, passed explicitly to each instance."""

    p_ambient: float = 101325.0  # Pa
    T_ambient: float = 293.15  # K
    g_n: float = 9.80665  # m/s2

    def __post_init__(self):
        if not self.p_ambient > 0.0:
            raise BlockParameterError(
                f"Ambient pressure must be positive, got {self.p_ambient}",
                parameter_name="p_ambient",
            )
        if not self.T_ambient > 0.0:
            raise BlockParameterError(
                "Ambient temperature must be above absolute zero, "
                f"got {self.T_ambient}",
                parameter_name="T_ambient",
            )
        if self.g_n < 0.0:
            raise BlockParameterError(
                f"Gravity must be non-negative, got {self.g_n}", parameter_name="g_n"
            )


@dataclass_json
@dataclasses.dataclass(frozen=True)
class PortData:
    """Geometry of a vessel port.

    Attributes:
        height: height of the port above the vessel bottom, m.
        diameter: orifice diameter, m. A port with a diameter carries resistance
            data and exposes the internal pressure directly.
        zeta_in: loss coefficient for flow into the vessel.
        zeta_out: loss coefficient for flow out of the vessel.
    """

    height: float = 0.0
    diameter: Optional[float] = None
    zeta_in: Optional[float] = None
    zeta_out: Optional[float] = None

    def __post_init__(self):
        if self.height < 0.0:
            raise BlockParameterError(
                f"Port height must be non-negative, got {self.height}",
                parameter_name="height",
            )
        if self.diameter is not None and not self.diameter > 0.0:
            raise BlockParameterError(
                f"Port diameter must be positive, got {self.diameter}",
                parameter_name="diameter",
            )
        for name in ("zeta_in", "zeta_out"):
            zeta = getattr(self, name)
            if zeta is not None and zeta < 0.0:
                raise BlockParameterError(
                    f"Loss coefficient must be non-negative, got {zeta}",
                    parameter_name=name,
                )

    @property
    def has_resistance(self) -> bool:
        return self.diameter is not None

    @property
    def area(self) -> float:
        if self.diameter is None:
            return None
        return 0.25 * math.pi * self.diameter**2

    def pressure_loss(self, m_flow, density):
        """Orifice pressure loss for a mass flow, positive into the vessel.

        The loss is `zeta * m_flow * |m_flow| / (2 * rho * A**2)`, using `zeta_in`
        for inflow and `zeta_out` for outflow, and has the sign of the flow.
        Missing coefficients count as zero.
        """
        if not self.has_resistance:
            raise BlockParameterError(
                "Port has no resistance data", parameter_name="diameter"
            )
        zeta_in = self.zeta_in or 0.0
        zeta_out = self.zeta_out or 0.0
        zeta = jnp.where(m_flow >= 0.0, zeta_in, zeta_out)
        return zeta * m_flow * jnp.abs(m_flow) / (2.0 * density * self.area**2)


@dataclass_json
@dataclasses.dataclass(frozen=True)
class VesselGeometry:
    """Vessel geometry in one of two forms.

    - `height` and `cross_area`: the liquid extent is a level in m and the
      capacity is the height.
    - `volume`: the liquid extent is a volume in m3 and the capacity is the
      volume. `inner_diameter` (or else `length`) gives the cross-section used
      for the liquid level.
    """

    height: Optional[float] = None
    cross_area: Optional[float] = None
    volume: Optional[float] = None
    inner_diameter: Optional[float] = None
    length: Optional[float] = None

    def __post_init__(self):
        level_form = self.height is not None or self.cross_area is not None
        if level_form == (self.volume is not None):
            raise BlockParameterError(
                "Vessel geometry needs either height and cross_area, or volume"
            )
        if level_form and (self.height is None or self.cross_area is None):
            raise BlockParameterError(
                "Vessel geometry needs both height and cross_area"
            )
        for name in ("height", "cross_area", "volume", "inner_diameter", "length"):
            value = getattr(self, name)
            if value is not None and not value > 0.0:
                raise BlockParameterError(
                    f"Vessel geometry must have {name}>0, got {value}",
                    parameter_name=name,
                )

    @property
    def extent_is_level(self) -> bool:
        return self.height is not None

    @property
    def capacity(self) -> float:
        """Upper bound of the liquid extent."""
        return self.height if self.extent_is_level else self.volume

    @property
    def total_volume(self) -> float:
        if self.extent_is_level:
            return self.height * self.cross_area
        return self.volume

    @property
    def section_area(self) -> float:
        """Horizontal cross-section, or None if the geometry does not define one."""
        if self.cross_area is not None:
            return self.cross_area
        if self.inner_diameter is not None:
            return 0.25 * math.pi * self.inner_diameter**2
        if self.length is not None:
            return self.volume / self.length
        return None

    def liquid_volume(self, extent):
        if self.extent_is_level:
            return extent * self.cross_area
        return extent

    def liquid_level(self, extent):
        """Height of the liquid surface above the vessel bottom.

        Zero for a volume geometry without a cross-section, in which case
        hydrostatic head is not resolved.
        """
        if self.extent_is_level:
            return extent
        area = self.section_area
        if area is None:
            return 0.0 * extent
        return extent / area

    def gas_volume(self, extent):
        return self.total_volume - self.liquid_volume(extent)

    def extent_rate(self, volume_rate):
        """Rate of change of the extent for a rate of change of liquid volume."""
        if self.extent_is_level:
            return volume_rate / self.cross_area
        return volume_rate
