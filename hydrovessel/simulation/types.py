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

"""Data types shared by the simulator and its callers."""

from __future__ import annotations

import dataclasses
from enum import IntEnum
from typing import TYPE_CHECKING, NamedTuple

import numpy as np

from .ode_solver import ODESolverOptions

if TYPE_CHECKING:
    from jax import Array
    from ..framework import EventCollection, LeafContext, OutputPort


__all__ = [
    "StepEndReason",
    "GuardIsolationData",
    "SimulatorOptions",
    "SimulationResults",
    "ResultsData",
]


class StepEndReason(IntEnum):
    """Why a major step ended."""

    NothingTriggered = 0
    GuardTriggered = 2
    TerminalEventTriggered = 4


class GuardIsolationData(NamedTuple):
    """Carry of the bisection search: integer-time bounds of the bracket, the
    events evaluated at its right end and the context there."""

    zc_before_time: int
    zc_after_time: int
    guards: EventCollection
    context: LeafContext


@dataclasses.dataclass
class SimulatorOptions:
    """Options for `simulate` and `Simulator`, including those forwarded to the
    ODE solver. See `simulate` for a description of each field.
    """

    # None: no bound on the number of major steps.
    max_major_steps: int = None

    ode_solver_method: str = "auto"
    rtol: float = 1e-6
    atol: float = 1e-8
    min_minor_step_size: float = None
    max_minor_step_size: float = None

    # Set by `simulate` from `recorded_signals`.
    save_time_series: bool = False
    recorded_signals: dict[str, OutputPort] = None

    return_context: bool = True

    # Fixed iteration count. A 1 s step is narrowed to about 1e-12 s by 40 halvings.
    zc_bisection_loop_count: int = 40

    # Resolution of IntegerTime, None keeps the picosecond default.
    int_time_scale: float = None

    @property
    def ode_options(self) -> ODESolverOptions:
        return ODESolverOptions(
            rtol=self.rtol,
            atol=self.atol,
            min_step_size=self.min_minor_step_size,
            max_step_size=self.max_minor_step_size,
            method=self.ode_solver_method,
        )

    def __repr__(self) -> str:
        fields = {
            field.name: getattr(self, field.name)
            for field in dataclasses.fields(self)
            if field.name not in ("recorded_signals", "int_time_scale")
        }
        fields["recorded_signals"] = len(self.recorded_signals or [])
        args = ", ".join(f"{key}={value}" for key, value in fields.items())
        return f"{type(self).__name__}({args})"


@dataclasses.dataclass
class ResultsData:
    """Time series of the recorded signals, extended once per saved sample."""

    source_dict: dict[str, OutputPort]
    time: Array = None
    outputs: dict[str, Array] = None

    def eval_sources(self, context: LeafContext) -> dict[str, Array]:
        return {key: port.eval(context) for key, port in self.source_dict.items()}

    def update(self, context: LeafContext) -> ResultsData:
        """Append the values of every recorded signal at the time of `context`."""
        sample = {
            key: np.asarray(value)[np.newaxis, ...]
            for key, value in self.eval_sources(context).items()
        }
        t = np.atleast_1d(np.asarray(context.time, dtype=float))

        if self.time is None:
            return dataclasses.replace(self, time=t, outputs=sample)

        outputs = {
            key: np.concatenate([self.outputs[key], value])
            for key, value in sample.items()
        }
        return dataclasses.replace(
            self, time=np.concatenate([self.time, t]), outputs=outputs
        )

    def finalize(self) -> tuple[Array, dict[str, Array]]:
        return self.time, self.outputs


class SimulationResults(NamedTuple):
    """Results of `simulate`.

    Attributes:
        context (LeafContext):
            Context at the end of the run, or None with `return_context=False`.
        time (Array):
            Sample times, None if no signals were recorded.
        outputs (dict[str, Array]):
            Recorded signals keyed as in `recorded_signals`, with the sample index
            as leading dimension. None if no signals were recorded.
    """

    context: LeafContext
    time: Array = None
    outputs: dict[str, Array] = None
