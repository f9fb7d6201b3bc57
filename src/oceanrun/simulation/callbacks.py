from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

import numpy as np

from oceanrun.config import ConfigurationError
from oceanrun.diagnostics import max_abs_velocity
from oceanrun.schedules import Schedule
from oceanrun.utils import prettytime

if TYPE_CHECKING:
    from oceanrun.simulation.simulation import Simulation

logger = logging.getLogger(__name__)


class NumericalInstabilityError(RuntimeError):
    """Raised when a field contains NaN or infinite values."""


@dataclass(frozen=True)
class CallbackContext:
    """
    Snapshot of the run passed to every callback.

    Attributes:
        iteration: Completed iterations.
        time: Model time (s).
        dt: Size of the step just taken (s).
        wall_time_start: Wall-clock time when the run started (s since the epoch).
        wall_time_elapsed: Wall-clock seconds since the run started.
    """
    iteration: int
    time: float
    dt: float
    wall_time_start: float
    wall_time_elapsed: float


class Callback:
    """
    Call ``func(simulation, context)`` whenever ``schedule`` actuates.
    """

    def __init__(
        self,
        func: Callable[[Simulation, CallbackContext], Any],
        schedule: Schedule,
        name: Optional[str] = None,
    ) -> None:
        if not callable(func):
            raise ConfigurationError(f"Callback function must be callable, got {func!r}.")
        if not isinstance(schedule, Schedule):
            raise ConfigurationError(f"Callback schedule must be a Schedule, got {schedule!r}.")
        self.func = func
        self.schedule = schedule
        self.name = name or getattr(func, "__name__", func.__class__.__name__)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r}, {self.schedule!r})"

    def __call__(self, simulation: Simulation, context: CallbackContext) -> None:
        self.func(simulation, context)


class ProgressMessenger:
    """Logs iteration, time, step size, maximum velocities and wall time."""

    def __call__(self, simulation: Simulation, context: CallbackContext) -> None:
        u, v, w = max_abs_velocity(simulation.model)
        logger.info(
            f"Iteration: {context.iteration:6d}, time: {prettytime(context.time)}, "
            f"Δt: {prettytime(context.dt)}, max|u|: ({u:.2e}, {v:.2e}, {w:.2e}) m/s, "
            f"wall time: {prettytime(context.wall_time_elapsed)}"
        )


class NaNChecker:
    """
    Raise NumericalInstabilityError when a field holds NaN or ±inf.

    Args:
        fields: Names of the fields to check; all model fields when None.
    """

    def __init__(self, fields: Optional[Sequence[str]] = None) -> None:
        self.fields = tuple(fields) if fields is not None else None

    def __call__(self, simulation: Simulation, context: CallbackContext) -> None:
        model = simulation.model
        names = self.fields if self.fields is not None else tuple(model.fields)
        for name in names:
            if not np.all(np.isfinite(model.fields[name].data)):
                raise NumericalInstabilityError(
                    f"Non-finite values in field '{name}' at iteration {context.iteration} "
                    f"(time = {prettytime(context.time)}, Δt = {prettytime(context.dt)})."
                )
