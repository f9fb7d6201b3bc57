"""
Schedules decide when callbacks and output writers actuate.

Every schedule is called with the model clock and the wall time elapsed since
the run started, and returns whether to actuate. Time-based schedules also
report their next actuation time so that the driver can shorten the step to
land on it exactly.
"""
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import TYPE_CHECKING

from oceanrun.config import ConfigurationError

if TYPE_CHECKING:
    from oceanrun.model.clock import Clock

# Relative tolerance when comparing the clock with an actuation time
TIME_TOLERANCE = 1e-9


class Schedule(ABC):
    """
    Abstract base class for schedules.
    """

    def initialize(self, clock: Clock, picked_up: bool = False) -> bool:
        """
        Reset the schedule to the clock and return whether to actuate immediately.

        A picked-up run resumes the schedule of the run that wrote the checkpoint:
        actuations up to the restored clock count as done.
        """
        return False

    def restart_wall_clock(self) -> None:
        """Called at the start of every run, when the elapsed wall time restarts from zero."""
        pass

    @abstractmethod
    def __call__(self, clock: Clock, wall_time: float = 0.0) -> bool:
        pass

    def next_actuation_time(self, clock: Clock) -> float:
        return math.inf


class IterationInterval(Schedule):
    """Actuates every ``interval`` iterations (on multiples of ``interval``, shifted by ``offset``)."""

    def __init__(self, interval: int, offset: int = 0) -> None:
        if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
            raise ConfigurationError(f"IterationInterval needs a positive integer interval, got {interval!r}.")
        self.interval = interval
        self.offset = int(offset)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.interval})"

    def initialize(self, clock: Clock, picked_up: bool = False) -> bool:
        return self(clock) and not picked_up

    def __call__(self, clock: Clock, wall_time: float = 0.0) -> bool:
        return (clock.iteration - self.offset) % self.interval == 0


class TimeInterval(Schedule):
    """
    Actuates every ``interval`` seconds of model time, counted from initialization.
    Picked-up runs count from t = 0, so actuations stay on the original interval boundaries.
    """

    def __init__(self, interval: float) -> None:
        if not interval > 0 or not math.isfinite(interval):
            raise ConfigurationError(f"TimeInterval needs a positive interval, got {interval!r}.")
        self.interval = float(interval)
        self.first_actuation_time = 0.0
        self.actuations = 0

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.interval})"

    def initialize(self, clock: Clock, picked_up: bool = False) -> bool:
        if not picked_up:
            self.first_actuation_time = clock.time
            self.actuations = 0
            return True
        self.first_actuation_time = 0.0
        self.actuations = max(0, math.floor(clock.time / self.interval + TIME_TOLERANCE))
        return False

    def next_actuation_time(self, clock: Clock) -> float:
        return self.first_actuation_time + (self.actuations + 1) * self.interval

    def __call__(self, clock: Clock, wall_time: float = 0.0) -> bool:
        elapsed = (clock.time - self.first_actuation_time) / self.interval
        count = math.floor(elapsed + TIME_TOLERANCE)
        if count > self.actuations:
            self.actuations = count
            return True
        return False


class SpecifiedTimes(Schedule):
    """Actuates once at each of the given model times."""

    def __init__(self, *times: float) -> None:
        if len(times) == 1 and isinstance(times[0], Iterable):
            times = tuple(times[0])
        if not times:
            raise ConfigurationError("SpecifiedTimes needs at least one time.")
        self.times = sorted(float(t) for t in times)
        self.previous_actuation = -1

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.times})"

    def _tolerance(self) -> float:
        return TIME_TOLERANCE * max(1.0, abs(self.times[-1]))

    def initialize(self, clock: Clock, picked_up: bool = False) -> bool:
        self.previous_actuation = -1
        return self(clock) and not picked_up

    def next_actuation_time(self, clock: Clock) -> float:
        following = self.previous_actuation + 1
        return self.times[following] if following < len(self.times) else math.inf

    def __call__(self, clock: Clock, wall_time: float = 0.0) -> bool:
        passed = -1
        for i, t in enumerate(self.times):
            if clock.time >= t - self._tolerance():
                passed = i
        if passed > self.previous_actuation:
            self.previous_actuation = passed
            return True
        return False


class WallTimeInterval(Schedule):
    """Actuates every ``interval`` seconds of wall-clock time."""

    def __init__(self, interval: float) -> None:
        if not interval > 0:
            raise ConfigurationError(f"WallTimeInterval needs a positive interval, got {interval!r}.")
        self.interval = float(interval)
        self.previous_actuation_wall_time = 0.0

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.interval})"

    def initialize(self, clock: Clock, picked_up: bool = False) -> bool:
        self.previous_actuation_wall_time = 0.0
        return False

    def restart_wall_clock(self) -> None:
        self.previous_actuation_wall_time = 0.0

    def __call__(self, clock: Clock, wall_time: float = 0.0) -> bool:
        if wall_time - self.previous_actuation_wall_time >= self.interval:
            self.previous_actuation_wall_time = wall_time
            return True
        return False


def build_schedule(kind: str, interval: float) -> Schedule:
    """Schedule from its configuration name."""
    if kind == "iteration_interval":
        return IterationInterval(int(interval))
    if kind == "time_interval":
        return TimeInterval(interval)
    if kind == "wall_time_interval":
        return WallTimeInterval(interval)
    raise ConfigurationError(f"Unknown schedule '{kind}'.")
