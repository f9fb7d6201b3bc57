"""
Time-Stepping Driver
====================
Runs a model forward in time until a stop criterion is met.

Why is this file needed?
------------------------
1. Loop: it owns the main loop, which steps the model and then runs the
   callbacks and output writers whose schedules actuate.
2. Alignment: it shortens steps so that the clock lands exactly on the stop
   time and on time-scheduled actuations.
3. Lifecycle: it tracks the run status, picks up from checkpoints and logs a
   summary however the run ends.
"""
from __future__ import annotations

import logging
import math
import time as walltime
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from oceanrun.config import ConfigurationError
from oceanrun.output.checkpointer import Checkpointer, restore_checkpoint
from oceanrun.output.writers import OutputWriter
from oceanrun.schedules import IterationInterval, Schedule
from oceanrun.simulation.callbacks import Callback, CallbackContext, NaNChecker
from oceanrun.utils import prettytime

if TYPE_CHECKING:
    from oceanrun.model import Model

logger = logging.getLogger(__name__)

# Steps are not shortened to reach targets closer than this fraction of dt
ALIGNMENT_TOLERANCE = 1e-9


class SimulationStatus(StrEnum):
    IDLE = "idle"
    STEPPING = "stepping"
    TERMINATED = "terminated"


class Simulation:
    """
    Drives a model with a time step ``dt`` until ``stop_time``,
    ``stop_iteration`` or ``wall_time_limit`` (seconds) is reached.

    Args:
        model: The model to step.
        dt: Time step (s). Callbacks such as TimeStepWizard may change it.
        stop_time: Model time at which to stop (s).
        stop_iteration: Iteration at which to stop.
        wall_time_limit: Wall-clock seconds after which to stop.
        align_time_step: Shorten steps to land on stop_time and scheduled times.
        nan_check_interval: Iterations between NaN checks; None disables the check.
    """

    def __init__(
        self,
        model: Model,
        dt: float,
        stop_time: Optional[float] = None,
        stop_iteration: Optional[int] = None,
        wall_time_limit: Optional[float] = None,
        align_time_step: bool = True,
        nan_check_interval: Optional[int] = 100,
    ) -> None:
        self.model = model
        self.dt = dt
        self.stop_time = stop_time
        self.stop_iteration = stop_iteration
        self.wall_time_limit = wall_time_limit
        self.align_time_step = align_time_step

        self.callbacks: dict[str, Callback] = {}
        self.output_writers: dict[str, OutputWriter] = {}
        self.status = SimulationStatus.IDLE
        self.termination_reason: Optional[str] = None

        self.wall_time_start = 0.0
        self.wall_time_elapsed = 0.0

        if nan_check_interval is not None:
            self.add_callback(Callback(NaNChecker(), IterationInterval(nan_check_interval), name="nan_checker"))

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(status={self.status.value}, iteration={self.model.clock.iteration}, "
                f"time={prettytime(self.model.clock.time)}, dt={prettytime(self.dt)})")

    # ==========================================
    # REGISTRATION
    # ==========================================
    def add_callback(
        self,
        callback: Union[Callback, Callable[..., Any]],
        schedule: Optional[Schedule] = None,
        name: Optional[str] = None,
    ) -> Callback:
        """
        Register a callback. Plain callables need a schedule.

        Example:
            >>> simulation.add_callback(ProgressMessenger(), IterationInterval(100), name="progress")
        """
        if not isinstance(callback, Callback):
            if schedule is None:
                raise ConfigurationError("A schedule is required to register a plain callable as a callback.")
            callback = Callback(callback, schedule, name=name)
        elif name is not None:
            callback.name = name

        if callback.name in self.callbacks:
            raise ConfigurationError(f"A callback named '{callback.name}' is already registered.")
        self.callbacks[callback.name] = callback
        return callback

    def add_output_writer(self, name: str, writer: OutputWriter) -> None:
        if not isinstance(writer, OutputWriter):
            raise ConfigurationError(f"Expected an OutputWriter, got {writer!r}.")
        if name in self.output_writers:
            raise ConfigurationError(f"An output writer named '{name}' is already registered.")
        self.output_writers[name] = writer

    @property
    def checkpointer(self) -> Optional[Checkpointer]:
        for writer in self.output_writers.values():
            if isinstance(writer, Checkpointer):
                return writer
        return None

    # ==========================================
    # STEPPING
    # ==========================================
    def _schedules(self) -> list[Schedule]:
        schedules = [callback.schedule for callback in self.callbacks.values()]
        schedules += [writer.schedule for writer in self.output_writers.values()]
        return schedules

    def aligned_time_step(self) -> tuple[float, Optional[float]]:
        """
        Step size for the next step, shortened to reach the nearest target.

        Returns:
            (dt, target) where target is the time the step lands on, if any.
        """
        dt = self.dt
        if not self.align_time_step:
            return dt, None

        clock = self.model.clock
        targets = [s.next_actuation_time(clock) for s in self._schedules()]
        if self.stop_time is not None:
            targets.append(self.stop_time)

        landing: Optional[float] = None
        for target in targets:
            remaining = target - clock.time
            if remaining <= ALIGNMENT_TOLERANCE * self.dt:
                continue
            if remaining <= dt * (1 + ALIGNMENT_TOLERANCE):
                dt = remaining
                landing = target
        return dt, landing

    def stop_reason(self) -> Optional[str]:
        clock = self.model.clock
        if self.stop_time is not None and clock.time >= self.stop_time - ALIGNMENT_TOLERANCE * self.dt:
            return f"stop time {prettytime(self.stop_time)} reached"
        if self.stop_iteration is not None and clock.iteration >= self.stop_iteration:
            return f"stop iteration {self.stop_iteration} reached"
        if self.wall_time_limit is not None and self.wall_time_elapsed >= self.wall_time_limit:
            return f"wall time limit {prettytime(self.wall_time_limit)} reached"
        return None

    def _context(self, dt: float) -> CallbackContext:
        clock = self.model.clock
        return CallbackContext(
            iteration=clock.iteration,
            time=clock.time,
            dt=dt,
            wall_time_start=self.wall_time_start,
            wall_time_elapsed=self.wall_time_elapsed,
        )

    def time_step(self) -> None:
        """Take one step, then run the callbacks and output writers that actuate."""
        model = self.model
        clock = model.clock

        dt, landing = self.aligned_time_step()
        model.time_step(dt)
        if landing is not None:
            clock.time = landing

        self.wall_time_elapsed = walltime.time() - self.wall_time_start
        context = self._context(dt)

        for callback in self.callbacks.values():
            if callback.schedule(clock, self.wall_time_elapsed):
                callback(self, context)

        for writer in self.output_writers.values():
            if writer.schedule(clock, self.wall_time_elapsed):
                writer.write(self)

    # ==========================================
    # RUN
    # ==========================================
    def _validate(self) -> None:
        if not isinstance(self.dt, (int, float)) or not self.dt > 0 or not math.isfinite(self.dt):
            raise ConfigurationError(f"Time step must be a positive finite number, got {self.dt!r}.")
        if self.stop_time is None and self.stop_iteration is None and self.wall_time_limit is None:
            raise ConfigurationError("Set at least one of stop_time, stop_iteration or wall_time_limit.")

    def _pickup(self, pickup: Union[bool, str]) -> bool:
        if pickup is True:
            checkpointer = self.checkpointer
            if checkpointer is None:
                raise ConfigurationError("pickup=True needs a Checkpointer among the output writers.")
            path = checkpointer.latest()
            if path is None:
                logger.warning("No checkpoint found; starting from the current model state.")
                return False
        else:
            path = str(pickup)

        dt = restore_checkpoint(self.model, path)
        if dt > 0:
            self.dt = dt
        return True

    def _initialize(self, picked_up: bool) -> None:
        clock = self.model.clock
        for callback in self.callbacks.values():
            callback.schedule.initialize(clock, picked_up)
        for writer in self.output_writers.values():
            if picked_up:
                writer.rewind(clock.iteration)
            if writer.schedule.initialize(clock, picked_up):
                writer.write(self)

    def run(self, pickup: Union[bool, str] = False) -> None:
        """
        Run until a stop criterion is met.

        Args:
            pickup: False to continue from the current state, True to restore the
                latest checkpoint of the attached Checkpointer, or a checkpoint path.

        Raises:
            ConfigurationError: If dt is not positive or no stop criterion is set.
            NumericalInstabilityError: If the NaN checker finds non-finite values.
        """
        self._validate()

        picked_up = self._pickup(pickup) if pickup else False

        self.wall_time_elapsed = 0.0
        reason = self.stop_reason()
        if reason is not None:
            logger.warning(f"Nothing to run: {reason} already. Increase stop_time or stop_iteration to continue.")
            self.status = SimulationStatus.TERMINATED
            return

        first_run = self.status == SimulationStatus.IDLE or picked_up
        self.status = SimulationStatus.STEPPING
        self.termination_reason = None
        self.wall_time_start = walltime.time()
        start_iteration = self.model.clock.iteration

        logger.info(f"Running simulation: {self!r}")
        try:
            if first_run:
                self._initialize(picked_up)
            for schedule in self._schedules():
                schedule.restart_wall_clock()

            while True:
                reason = self.stop_reason()
                if reason is not None:
                    self.termination_reason = reason
                    logger.info(f"Simulation is stopping: {reason}.")
                    break
                self.time_step()

        except Exception as e:
            self.termination_reason = f"{e.__class__.__name__}: {e}"
            logger.error(f"Exception raised at iteration {self.model.clock.iteration}, triggering end of main loop.")
            raise

        finally:
            self.status = SimulationStatus.TERMINATED
            self.wall_time_elapsed = walltime.time() - self.wall_time_start
            iterations = self.model.clock.iteration - start_iteration
            logger.info(f"Iterations: {iterations} (final iteration {self.model.clock.iteration})")
            logger.info(f"Model time: {prettytime(self.model.clock.time)}")
            logger.info(f"Wall time: {prettytime(self.wall_time_elapsed)}")
            if iterations > 0:
                logger.info(f"Wall time per iteration: {prettytime(self.wall_time_elapsed / iterations)}")
