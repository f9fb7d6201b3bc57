from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from oceanrun.config import ConfigurationError
from oceanrun.diagnostics import cell_advection_timescale

if TYPE_CHECKING:
    from oceanrun.model import Model
    from oceanrun.simulation.callbacks import CallbackContext
    from oceanrun.simulation.simulation import Simulation

logger = logging.getLogger(__name__)


class TimeStepWizard:
    """
    Adapts the simulation time step to a target advective CFL number.

    The candidate step is ``cfl`` times the cell advection timescale. It is
    limited to [min_change * dt, max_change * dt] and then to [min_dt, max_dt].
    Relative changes smaller than ``threshold`` are ignored.

    Used as a callback:
        >>> simulation.add_callback(Callback(TimeStepWizard(cfl=0.5), IterationInterval(10)))
    """

    def __init__(
        self,
        cfl: float = 0.2,
        max_change: float = 1.1,
        min_change: float = 0.5,
        max_dt: float = math.inf,
        min_dt: float = 0.0,
        threshold: float = 0.0,
    ) -> None:
        if not cfl > 0:
            raise ConfigurationError(f"Target CFL must be positive, got {cfl}.")
        if max_change < 1 or not 0 < min_change <= 1:
            raise ConfigurationError("TimeStepWizard needs max_change >= 1 and 0 < min_change <= 1.")
        if min_dt < 0 or max_dt <= 0 or min_dt > max_dt:
            raise ConfigurationError(f"Invalid time step bounds [{min_dt}, {max_dt}].")
        if threshold < 0:
            raise ConfigurationError("Threshold must be non-negative.")

        self.cfl = cfl
        self.max_change = max_change
        self.min_change = min_change
        self.max_dt = max_dt
        self.min_dt = min_dt
        self.threshold = threshold

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(cfl={self.cfl}, max_change={self.max_change}, "
                f"min_change={self.min_change}, max_dt={self.max_dt}, min_dt={self.min_dt})")

    def new_time_step(self, model: Model, dt: float) -> float:
        candidate = self.cfl * cell_advection_timescale(model)

        new_dt = min(max(candidate, self.min_change * dt), self.max_change * dt)
        new_dt = min(max(new_dt, self.min_dt), self.max_dt)

        if abs(new_dt - dt) <= self.threshold * dt:
            return dt
        return new_dt

    def __call__(self, simulation: Simulation, context: CallbackContext) -> None:
        old_dt = simulation.dt
        simulation.dt = self.new_time_step(simulation.model, old_dt)
        if simulation.dt != old_dt:
            logger.debug(f"Time step changed from {old_dt:.4e} s to {simulation.dt:.4e} s.")
