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

"""Adaptive ODE solvers used to advance continuous time between events.

The solvers wrap `scipy.integrate` one-step integrators with dense output. The
simulator treats the returned solver state as the source of truth, so a step can
be taken from any state without re-creating the solver.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Callable

import numpy as np
import scipy.integrate
from jax import tree_util
from jax.flatten_util import ravel_pytree

from ..framework.error import SimulationError

if TYPE_CHECKING:
    from jax import Array
    from scipy.integrate import DenseOutput
    from ..framework import LeafContext, LeafSystem


__all__ = [
    "ODESolverOptions",
    "ODESolverState",
    "ScipySolver",
    "ODESolver",
]


@dataclasses.dataclass
class ODESolverOptions:
    """Tolerances, step bounds and method name, as forwarded by `SimulatorOptions`."""

    rtol: float = 1e-3
    atol: float = 1e-6
    min_step_size: float = None
    max_step_size: float = None
    method: str = "auto"


@dataclasses.dataclass
class ODESolverState:
    """Snapshot of a SciPy solver after an accepted step."""

    y: Array  # flat state vector
    t: float
    f: Array  # derivative at (t, y)
    dt: float  # size of the next step
    t_prev: float = None  # start of the last step
    unravel: Callable = None  # flat vector -> state pytree
    interpolant: DenseOutput = None

    def __post_init__(self):
        if self.t_prev is None:
            self.t_prev = self.t

    def eval_interpolant(self, t_eval: float) -> Array:
        """State at `t_prev <= t_eval <= t` from the dense output of the last step."""
        return self.unravel(self.interpolant(t_eval))

    @property
    def unraveled_state(self) -> Array:
        return self.unravel(self.y)


@dataclasses.dataclass
class ScipySolver:
    """One-step driver around the integrators of `scipy.integrate`.

    Built by `ODESolver` and owned by a `Simulator`.
    """

    system: LeafSystem
    rtol: float = 1e-6
    atol: float = 1e-8
    max_step_size: float = None
    min_step_size: float = None
    method: str = "auto"

    supported_methods = {
        "auto": "RK45",
        "non-stiff": "RK45",
        "stiff": "BDF",
        "RK45": "RK45",
        "RK23": "RK23",
        "DOP853": "DOP853",
        "Radau": "Radau",
        "BDF": "BDF",
        "LSODA": "LSODA",
    }

    # One-step methods whose full state is (t, y, f, h_abs), so that a step can
    # be restarted from a stored solver state.
    _explicit_rk_methods = ("RK45", "RK23", "DOP853")

    def __post_init__(self):
        try:
            method = self.supported_methods[self.method]
        except KeyError:
            raise ValueError(
                f"Invalid method '{self.method}' for SciPy ODE solver. Must be one of "
                f"{list(self.supported_methods.keys())}"
            )

        self.options = {
            "rtol": self.rtol,
            "atol": self.atol,
            "max_step": self.max_step_size or np.inf,
        }
        if method == "LSODA":
            self.options["min_step"] = self.min_step_size or 0.0

        self._solver_cls = getattr(scipy.integrate, method)
        self._restartable = method in self._explicit_rk_methods
        self._solver = None

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(method={self._solver_cls.__name__}, "
            f"rtol={self.rtol}, atol={self.atol})"
        )

    @staticmethod
    def make_ravel(pytree):
        x, unravel = ravel_pytree(pytree)

        def ravel(x):
            return np.hstack(tree_util.tree_leaves(x)).reshape(-1)

        return np.asarray(x), ravel, unravel

    def ode_rhs(self, y: Array, t: float, context: LeafContext) -> Array:
        """Time derivatives at `(t, y)` in the mode of `context`."""
        context = context.with_time(t).with_continuous_state(y)
        return self.system.eval_time_derivatives(context)

    def flat_ode_rhs(self, y, t, context):
        xc = self._unravel(y)
        xcdot = self.ode_rhs(xc, t, context)
        return self._ravel(xcdot)

    def _make_solver(self, fun, t0, y0, t_bound, first_step):
        return self._solver_cls(
            fun, t0, y0, t_bound=t_bound, first_step=first_step, **self.options
        )

    def initialize(self, context: LeafContext, dt: float = None) -> ODESolverState:
        """Set up the solver at the time and state of `context`.

        Args:
            context: Context providing the start time and continuous state.
            dt: First step size, SciPy picks one when None.
        """
        xc0, ravel, unravel = self.make_ravel(context.continuous_state)
        t0 = float(context.time)

        self._unravel = unravel
        self._ravel = ravel

        self._solver = self._make_solver(
            lambda t, y: self.flat_ode_rhs(y, t, context), t0, xc0, np.inf, dt
        )

        return ODESolverState(
            y=self._solver.y,
            t=t0,
            f=getattr(self._solver, "f", None),
            dt=getattr(self._solver, "h_abs", None),
            unravel=unravel,
        )

    def step(
        self,
        func: Callable,
        boundary_time: float,
        solver_state: ODESolverState,
    ) -> ODESolverState:
        """Advance the solver forward one accepted step, not past `boundary_time`.

        Args:
            func: Right-hand side on the flat state, `func(y, t)`.
            boundary_time: The step is clipped so that it ends at or before this time.
            solver_state: State to step from.

        Returns:
            ODESolverState: State after the step, with the dense output of the step.
        """
        if self._restartable:
            self._solver.t_bound = boundary_time
            # Step from `solver_state`, whatever the solver last computed.
            self._solver.fun = lambda t, y: func(y, t)
            self._solver.t = solver_state.t
            self._solver.t_old = solver_state.t_prev
            self._solver.y = solver_state.y
            self._solver.f = solver_state.f
            self._solver.h_abs = solver_state.dt
        elif self._solver.t_bound != boundary_time:
            # LSODA passes the bound to its Fortran core at construction only.
            self._solver = self._make_solver(
                lambda t, y: func(y, t),
                solver_state.t,
                solver_state.y,
                boundary_time,
                _first_step(solver_state.dt, boundary_time - solver_state.t),
            )

        message = self._solver.step()
        if self._solver.status == "failed":
            raise SimulationError(f"ODE solver failed at t={self._solver.t}: {message}")

        # Reaching t_bound sets "finished", the simulator decides when to stop.
        self._solver.status = "running"

        return ODESolverState(
            y=self._solver.y,
            t=self._solver.t,
            t_prev=self._solver.t_old,
            f=getattr(self._solver, "f", None),
            dt=getattr(self._solver, "h_abs", None),
            unravel=solver_state.unravel,
            interpolant=self._solver.dense_output(),
        )


def _first_step(dt, span):
    if not dt or dt <= 0.0:
        return None
    return min(dt, span)

def ODESolver(
    system: LeafSystem,
    options: ODESolverOptions = None,
) -> ScipySolver:
    """Build the solver for the continuous state of `system`.

    Args:
        system (LeafSystem): System providing the time derivatives.
        options (ODESolverOptions, optional): Defaults to `ODESolverOptions()`.

    Returns:
        ScipySolver
    """

    if options is None:
        options = ODESolverOptions()
    options = dataclasses.asdict(options)

    return ScipySolver(system, **options)
