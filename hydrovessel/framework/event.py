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

"""Guarded events that switch the mode or reset the state of a LeafSystem.

Models declare them with `LeafSystem.declare_zero_crossing`. The simulator gathers
the active ones into an EventCollection at the start of every major step and
compares their guard values at both ends of the step.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Callable, Hashable, Iterator

import numpy as np

if TYPE_CHECKING:
    from .context import LeafContext
    from .state import LeafState

__all__ = [
    "IntegerTime",
    "ZeroCrossingEvent",
    "ZeroCrossingEventData",
    "EventCollection",
]


# One integer time unit is a picosecond.
DEFAULT_TIME_SCALE = 1e-12


class IntegerTime:
    """Fixed-point representation of simulation time.

    Bisection of event intervals is done in integer time so that the search
    terminates on a well-defined grid instead of drifting in floating point.
    """

    time_scale = DEFAULT_TIME_SCALE  # int -> float conversion factor
    inv_time_scale = 1 / time_scale  # float -> int conversion factor

    dtype = np.int64

    # Largest time value representable by IntegerTime.dtype
    max_int_time = np.iinfo(dtype).max

    # Floating point representation of max_int_time
    max_float_time = float(max_int_time) * time_scale

    @classmethod
    def set_scale(cls, time_scale: float):
        cls.time_scale = time_scale
        cls.inv_time_scale = 1 / time_scale
        cls.max_float_time = float(cls.max_int_time) * time_scale

    @classmethod
    def set_default_scale(cls):
        cls.set_scale(DEFAULT_TIME_SCALE)

    @classmethod
    def from_decimal(cls, time: float) -> int:
        """Nearest integer time, saturating at `max_int_time`."""
        time = min(float(time), cls.max_float_time)
        return int(round(time * cls.inv_time_scale))

    @classmethod
    def as_decimal(cls, time: int) -> float:
        """Seconds represented by the integer time `time`."""
        return time * cls.time_scale


@dataclasses.dataclass(frozen=True)
class ZeroCrossingEventData:
    active: bool = True
    w0: float = np.inf  # Guard value at beginning of interval
    w1: float = np.inf  # Guard value at end of interval
    triggered: bool = False


#
# Trigger functions for zero-crossing events
#
def _none_trigger(w0, w1) -> bool:
    return False


def _positive_then_nonpositive_trigger(w0, w1) -> bool:
    return (w0 > 0) & (w1 <= 0)


def _negative_then_nonnegative_trigger(w0, w1) -> bool:
    return (w0 < 0) & (w1 >= 0)


def _nonpositive_then_positive_trigger(w0, w1) -> bool:
    return (w0 <= 0) & (w1 > 0)


def _crosses_zero_trigger(w0, w1) -> bool:
    return ((w0 > 0) & (w1 <= 0)) | ((w0 < 0) & (w1 >= 0))


def _edge_detection(w0, w1) -> bool:
    return w0 != w1


_zero_crossing_trigger_functions = {
    "none": _none_trigger,
    "positive_then_non_positive": _positive_then_nonpositive_trigger,
    "negative_then_non_negative": _negative_then_nonnegative_trigger,
    "non_positive_then_positive": _nonpositive_then_positive_trigger,
    "crosses_zero": _crosses_zero_trigger,
    "edge_detection": _edge_detection,
}


@dataclasses.dataclass(frozen=True)
class ZeroCrossingEvent:
    """A guard function of the context paired with a reset map.

    The guard is sampled at the start (w0) and end (w1) of an interval, and the
    pair is tested against the direction rule:
        - "none": never
        - "positive_then_non_positive": w0 > 0 and w1 <= 0
        - "negative_then_non_negative": w0 < 0 and w1 >= 0
        - "non_positive_then_positive": w0 <= 0 and w1 > 0
        - "crosses_zero": either of the first two, so w0 must be nonzero
        - "edge_detection": w0 != w1

    On a trigger, the reset map returns the new state of the owning system. It may
    change the continuous state or the mode, or raise to abort the run. The run
    ends after the reset of a terminal event.
    """

    system_id: Hashable
    guard: Callable[[LeafContext], float]
    reset_map: Callable[[LeafContext], LeafState]
    name: str = None
    direction: str = "crosses_zero"
    is_terminal: bool = False
    event_data: ZeroCrossingEventData = ZeroCrossingEventData()

    # If not None, only monitor the guard while the system is in this mode.
    active_mode: int = None

    def __post_init__(self):
        if self.direction not in _zero_crossing_trigger_functions:
            raise ValueError(
                f"Invalid zero-crossing direction '{self.direction}'. Must be one of "
                f"{list(_zero_crossing_trigger_functions.keys())}"
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name}, {self.event_data})"

    def _should_trigger(self, w0: float, w1: float) -> bool:
        trigger_func = _zero_crossing_trigger_functions[self.direction]
        return bool(self.event_data.active & trigger_func(w0, w1))

    def should_trigger(self) -> bool:
        """Apply the direction rule to the stored w0 and w1."""
        return self._should_trigger(self.event_data.w0, self.event_data.w1)

    def _replace_data(self, **kwargs) -> ZeroCrossingEvent:
        return dataclasses.replace(
            self, event_data=dataclasses.replace(self.event_data, **kwargs)
        )

    def with_guard_value(self, key: str, context: LeafContext) -> ZeroCrossingEvent:
        """Store the guard value at the start (`w0`) or end (`w1`) of an interval."""
        return self._replace_data(**{key: float(self.guard(context))})

    def with_triggered(self) -> ZeroCrossingEvent:
        return self._replace_data(triggered=self.should_trigger())

    def mark_active(self) -> ZeroCrossingEvent:
        return self._replace_data(active=True)

    def mark_inactive(self) -> ZeroCrossingEvent:
        return self._replace_data(active=False, triggered=False)

    def handle(self, context: LeafContext) -> LeafState:
        """Apply the reset map if the event is active and triggered."""
        if self.event_data.active and self.event_data.triggered:
            return self.reset_map(context)
        return context.state


class EventCollection:
    """Immutable ordered collection of the zero-crossing events of a system."""

    def __init__(self, events: tuple[ZeroCrossingEvent, ...] = ()):
        self._events = tuple(events)

    def __iter__(self) -> Iterator[ZeroCrossingEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __getitem__(self, index: int) -> ZeroCrossingEvent:
        return self._events[index]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self._events)})"

    def map(self, fn: Callable[[ZeroCrossingEvent], ZeroCrossingEvent]):
        return EventCollection(tuple(fn(event) for event in self._events))

    @property
    def has_events(self) -> bool:
        return len(self._events) > 0

    @property
    def has_triggered(self) -> bool:
        return any(e.event_data.active and e.event_data.triggered for e in self)

    @property
    def has_active_terminal(self) -> bool:
        return any(
            e.is_terminal and e.event_data.active and e.event_data.triggered
            for e in self
        )

    @property
    def triggered_names(self) -> list[str]:
        return [e.name for e in self if e.event_data.active and e.event_data.triggered]

    def mark_all_inactive(self) -> EventCollection:
        return self.map(lambda e: e.mark_inactive())
