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

"""Hybrid simulation loop: adaptive ODE steps with zero-crossing localization.

`simulate` is the entry point. `Simulator` exposes the loop itself for callers that
need to drive it step by step, e.g. to continue a run from a returned context.
"""

from __future__ import annotations

import dataclasses
from functools import partial
from typing import TYPE_CHECKING

from ..framework import IntegerTime
from ..framework.error import SimulationError
from ..logging import logger, scope_logging
from .ode_solver import ODESolver
from .types import (
    GuardIsolationData,
    ResultsData,
    SimulationResults,
    SimulatorOptions,
    StepEndReason,
)

if TYPE_CHECKING:
    from ..framework import EventCollection, LeafContext, LeafSystem, OutputPort
    from .ode_solver import ODESolverState, ScipySolver


__all__ = [
    "simulate",
    "Simulator",
]


def _check_options(
    options: SimulatorOptions,
    tspan: tuple[float, float],
    recorded_signals: dict[str, OutputPort],
) -> SimulatorOptions:
    """Validate the time span and resolve the recording settings."""
    if options is None:
        options = SimulatorOptions()

    if recorded_signals is None:
        recorded_signals = options.recorded_signals

    t0, tf = tspan
    if tf < t0:
        raise ValueError(f"Invalid time span {tspan}: end time before start time")

    if options.int_time_scale is not None:
        IntegerTime.set_scale(options.int_time_scale)
    if tf > IntegerTime.max_float_time:
        raise SimulationError(
            f"End time {tf} exceeds the largest time representable as integer time "
            f"({IntegerTime.max_float_time}), set a coarser `int_time_scale`."
        )

    return dataclasses.replace(
        options,
        recorded_signals=recorded_signals,
        save_time_series=recorded_signals is not None,
    )


@scope_logging
def simulate(
    system: LeafSystem,
    context: LeafContext,
    tspan: tuple[float, float],
    options: SimulatorOptions = None,
    recorded_signals: dict[str, OutputPort] = None,
) -> SimulationResults:
    """Run `system` from `tspan[0]` to `tspan[1]`, starting from `context`.

    The system's `initialize_state` hook is applied to the context once, at the
    start time. Each major step is one accepted step of the ODE solver, with the
    mode held fixed. The guards of the active zero-crossing events are compared at
    both ends of the step. When one triggers, the crossing is narrowed down by
    bisection on the step's dense output, the reset maps run at the end of the
    final bracket and the solver restarts from there. A triggered terminal event
    ends the run early.

    SimulatorOptions:
        max_major_steps (int):
            Upper bound on the number of major steps, unbounded if None.
        rtol (float): Relative tolerance of the ODE solver, default 1e-6.
        atol (float): Absolute tolerance of the ODE solver, default 1e-8.
        min_minor_step_size (float): Smallest step the solver may take.
        max_minor_step_size (float): Largest step the solver may take.
        ode_solver_method (str):
            "auto"/"non-stiff" (RK45), "stiff" (BDF), or the name of a SciPy solver.
        recorded_signals (dict[str, OutputPort]):
            Output ports sampled at every major step.
        return_context (bool):
            Whether the final context is returned.
        zc_bisection_loop_count (int):
            Number of halvings of the step when localizing a crossing.

    Args:
        system (LeafSystem): The hybrid system to simulate.
        context (LeafContext): Initial state and parameter values.
        tspan (tuple[float, float]): Start and end time.
        options (SimulatorOptions): Simulator and ODE solver settings.
        recorded_signals (dict[str, OutputPort]):
            Output ports to record, overrides `options.recorded_signals`.

    Returns:
        SimulationResults: final context, sample times and recorded signals.

    Raises:
        SimulationError: if the run stops before the end time without a terminal
            event, for instance when `max_major_steps` is exhausted.
        Errors raised by the system's callbacks (a reset map reporting a geometric
        violation, an equation of state out of its domain) propagate unchanged.
    """
    options = _check_options(options, tspan, recorded_signals)

    ode_solver = ODESolver(system, options=options.ode_options)
    sim = Simulator(system, ode_solver=ode_solver, options=options)
    logger.info("Starting simulation of %s: %s, %s", system.name, options, ode_solver)

    t0, tf = tspan
    try:
        end_reason, final_context, results_data = sim.advance_to(
            tf, context.with_time(t0)
        )
    finally:
        if options.int_time_scale is not None:
            IntegerTime.set_default_scale()

    terminated = end_reason == StepEndReason.TerminalEventTriggered
    if not terminated and final_context.time < tf:
        raise SimulationError(
            f"Simulation stopped at t={final_context.time} before the end time "
            f"{tf}: failed to reach the end time within max_major_steps="
            f"{options.max_major_steps}.",
            system=system,
            time=final_context.time,
        )

    time, outputs = (None, None)
    if results_data is not None:
        time, outputs = results_data.finalize()

    return SimulationResults(
        final_context if options.return_context else None,
        time=time,
        outputs=outputs,
    )


class Simulator:
    """Major-step loop of a hybrid simulation, see `simulate`."""

    def __init__(
        self,
        system: LeafSystem,
        ode_solver: ScipySolver = None,
        options: SimulatorOptions = None,
    ):
        """
        Args:
            system (LeafSystem): The hybrid system to simulate.
            ode_solver (ScipySolver):
                Solver for the continuous state, built from `options` if None.
            options (SimulatorOptions): Loop and solver settings.
        """
        if not system.has_continuous_state:
            raise ValueError(f"System {system.name} has no continuous state")

        if options is None:
            options = SimulatorOptions()
        if ode_solver is None:
            ode_solver = ODESolver(system, options=options.ode_options)

        self.system = system
        self.ode_solver = ode_solver
        self.max_major_steps = options.max_major_steps
        self.save_time_series = options.save_time_series
        self.recorded_outputs = options.recorded_signals
        self.zc_bisection_loop_count = options.zc_bisection_loop_count

    def initialize(self, context: LeafContext) -> tuple[LeafContext, ResultsData]:
        """Apply the system's initial equations and create the results buffer."""
        logger.debug("Initializing %s at t=%s", self.system.name, context.time)
        context = self.system.initialize_state(context)
        results_data = None
        if self.save_time_series:
            results_data = ResultsData(self.recorded_outputs)
        return context, results_data

    def save_results(
        self, results_data: ResultsData, context: LeafContext
    ) -> ResultsData:
        if not self.save_time_series:
            return results_data
        return results_data.update(context)

    def _localize_zero_crossing(
        self,
        solver_state: ODESolverState,
        context_t0: LeafContext,
        context_tf: LeafContext,
        zc_events: EventCollection,
    ) -> tuple[LeafContext, EventCollection, float]:
        """Narrow the step [t0, tf] down to a bracket of the earliest crossing.

        Returns the context at the right end of the bracket, where the events have
        triggered, the events evaluated there and the midpoint of the bracket as
        the estimated crossing time.
        """
        int_t0 = IntegerTime.from_decimal(context_t0.time)
        int_t1 = IntegerTime.from_decimal(context_tf.time)
        bisect = partial(_bisection_step_fun, solver_state)

        carry = GuardIsolationData(int_t0, int_t1, zc_events, context_tf)
        for i in range(self.zc_bisection_loop_count):
            carry = bisect(i, carry)

        step_length = IntegerTime.as_decimal(int_t1) - IntegerTime.as_decimal(int_t0)
        half_bracket = step_length / 2 ** (self.zc_bisection_loop_count + 1)
        zc_time = carry.context.time - half_bracket

        logger.debug(
            "Zero crossing of %s localized at t=%s",
            carry.guards.triggered_names,
            zc_time,
        )
        return carry.context, carry.guards, zc_time

    def _guarded_step(
        self,
        solver_state: ODESolverState,
        results_data: ResultsData,
        tf: float,
        context: LeafContext,
    ) -> tuple[StepEndReason, ODESolverState, LeafContext, ResultsData]:
        """One major step: an ODE step, cut short at the first zero crossing."""
        system = self.system
        solver = self.ode_solver

        # The mode of `context` stays fixed for the whole step.
        def _func(y, t):
            return solver.flat_ode_rhs(y, t, context)

        zc_events = system.determine_active_guards(context)
        zc_events = guard_interval_start(zc_events, context)

        context_t0 = context
        solver_state = solver.step(_func, tf, solver_state)
        context = context_t0.with_time(solver_state.t).with_continuous_state(
            solver_state.unraveled_state
        )

        zc_events = determine_triggered_guards(zc_events, context)
        if not zc_events.has_triggered:
            return StepEndReason.NothingTriggered, solver_state, context, results_data

        context, zc_events, zc_time = self._localize_zero_crossing(
            solver_state, context_t0, context, zc_events
        )

        # Sample before the reset, stamped with the estimated crossing time.
        results_data = self.save_results(results_data, context.with_time(zc_time))

        prev_mode = context.mode
        context = system.handle_zero_crossings(zc_events, context)
        if context.mode != prev_mode:
            logger.debug(
                "%s: mode %s -> %s at t=%s",
                system.name,
                prev_mode,
                context.mode,
                context.time,
            )

        # Restart from the post-reset state, reusing the last step size.
        solver_state = solver.initialize(context, dt=solver_state.dt)

        if zc_events.has_active_terminal:
            end_reason = StepEndReason.TerminalEventTriggered
        else:
            end_reason = StepEndReason.GuardTriggered
        return end_reason, solver_state, context, results_data

    def advance_to(
        self, boundary_time: float, context: LeafContext
    ) -> tuple[StepEndReason, LeafContext, ResultsData]:
        """Initialize from `context` and take major steps up to `boundary_time`.

        Stops early on a terminal event or when `max_major_steps` is reached.

        Returns:
            tuple[StepEndReason, LeafContext, ResultsData]:
                Reason the last major step ended, final context and the recorded
                samples (None if nothing is recorded).
        """
        context, results_data = self.initialize(context)
        solver_state = self.ode_solver.initialize(context)
        logger.debug("Advancing %s to t=%s", self.system.name, boundary_time)

        end_reason = StepEndReason.NothingTriggered
        num_major_steps = 0
        while context.time < boundary_time:
            if end_reason == StepEndReason.TerminalEventTriggered:
                break
            if (
                self.max_major_steps is not None
                and num_major_steps >= self.max_major_steps
            ):
                logger.debug("Stopping after %d major steps", num_major_steps)
                break

            # One sample at the start of every major step, the final one is
            # added after the loop.
            results_data = self.save_results(results_data, context)
            end_reason, solver_state, context, results_data = self._guarded_step(
                solver_state, results_data, boundary_time, context
            )
            num_major_steps += 1

        logger.debug(
            "%s reached t=%s in %d major steps",
            self.system.name,
            context.time,
            num_major_steps,
        )
        results_data = self.save_results(results_data, context)
        return end_reason, context, results_data


def _record_guard_values(
    events: EventCollection, context: LeafContext, key: str
) -> EventCollection:
    """Evaluate the guards of the active events and store them under `key`,
    "w0" for the start of an interval and "w1" for its end."""
    return events.map(
        lambda event: event.with_guard_value(key, context)
        if event.event_data.active
        else event
    )


guard_interval_start = partial(_record_guard_values, key="w0")
guard_interval_end = partial(_record_guard_values, key="w1")


def determine_triggered_guards(
    events: EventCollection, context: LeafContext
) -> EventCollection:
    """Evaluate the guards at the end of the interval at `context` and flag the
    events whose start and end values match their direction rule."""
    events = guard_interval_end(events, context)
    return events.map(lambda event: event.with_triggered())


def _bisection_step_fun(step_sol, i, carry: GuardIsolationData):
    """Halve the bracket [zc_before_time, zc_after_time] once.

    The guards are evaluated at the midpoint on the step's interpolant. If any
    triggers, the left half is kept, otherwise the right half. `carry.context`
    always holds the context at the right end, so that it is a state in which an
    event has triggered.
    """
    int_time_mid = (
        carry.zc_before_time + (carry.zc_after_time - carry.zc_before_time) // 2
    )
    time_mid = IntegerTime.as_decimal(int_time_mid)

    context_mid = carry.context.with_time(time_mid).with_continuous_state(
        step_sol.eval_interpolant(time_mid)
    )
    guards_mid = determine_triggered_guards(carry.guards, context_mid)

    if guards_mid.has_triggered:
        return GuardIsolationData(
            carry.zc_before_time, int_time_mid, guards_mid, context_mid
        )
    return GuardIsolationData(
        int_time_mid, carry.zc_after_time, carry.guards, carry.context
    )
