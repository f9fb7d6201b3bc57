"""
Time Steppers
=============
Explicit integrators that advance the prognostic fields of a model by one step.

Why is this file needed?
------------------------
1. Time-Stepping: it owns the stage logic (how tendencies are combined).
2. Separation: the model computes tendencies; the stepper decides when and
   with which weights to apply them, then hands back to the model to apply
   the implicit vertical diffusion and update diagnosed quantities.
3. Restart: multi-step schemes keep tendencies from the previous step, which
   the checkpointer saves and restores.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

import numpy as np

from oceanrun.config import ConfigurationError

if TYPE_CHECKING:
    import numpy.typing as npt

    from oceanrun.model.model import Model

logger = logging.getLogger(__name__)

Tendencies = dict[str, "npt.NDArray[np.float64]"]


class TimeStepper(ABC):
    """
    Abstract base class for time steppers.
    """
    NAME: str = "TimeStepper"

    def __init__(self, model: Model) -> None:
        self.model = model

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    @abstractmethod
    def step(self, dt: float) -> None:
        """
        Advance the prognostic fields by dt. Does not touch the clock.
        """
        pass

    def _apply(self, dt: float, tendencies: Tendencies, weight: float = 1.0,
               previous: Optional[Tendencies] = None, previous_weight: float = 0.0) -> None:
        for name, field in self.model.prognostic_fields.items():
            G = weight * tendencies[name]
            if previous is not None and previous_weight != 0.0:
                G = G + previous_weight * previous[name]
            field.data += dt * G

    def state(self) -> Tendencies:
        """Arrays needed to restart mid-run."""
        return {}

    def restore(self, state: Tendencies) -> None:
        pass

    def reset(self) -> None:
        """Forget tendencies of earlier steps, e.g. after the fields were overwritten."""
        pass


class ForwardEuler(TimeStepper):
    NAME = "forward_euler"

    def step(self, dt: float) -> None:
        model = self.model
        G = model.compute_tendencies(model.clock.time)
        self._apply(dt, G)
        model.implicit_step(dt)
        model.update_state()


class QuasiAdamsBashforth2(TimeStepper):
    """
    u(n+1) = u(n) + dt [(3/2 + χ) G(n) - (1/2 + χ) G(n-1)]. The first step,
    and the first step after a restart without saved tendencies, is forward Euler.
    """
    NAME = "quasi_adams_bashforth2"

    def __init__(self, model: Model, chi: float = 0.1) -> None:
        super().__init__(model)
        self.chi = chi
        self.previous: Optional[Tendencies] = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(chi={self.chi})"

    def step(self, dt: float) -> None:
        model = self.model
        G = model.compute_tendencies(model.clock.time)
        if self.previous is None:
            self._apply(dt, G)
        else:
            self._apply(dt, G, 1.5 + self.chi, self.previous, -(0.5 + self.chi))
        self.previous = G
        model.implicit_step(dt)
        model.update_state()

    def state(self) -> Tendencies:
        return dict(self.previous) if self.previous is not None else {}

    def restore(self, state: Tendencies) -> None:
        names = set(self.model.prognostic_fields)
        if not state:
            self.previous = None
        elif set(state) != names:
            logger.warning("Saved tendencies do not match the model fields; restarting with forward Euler.")
            self.previous = None
        else:
            self.previous = {name: np.array(state[name], dtype=np.float64) for name in names}

    def reset(self) -> None:
        self.previous = None


class RungeKutta3(TimeStepper):
    """
    Low-storage third-order Runge-Kutta scheme of Le & Moin (1991).
    """
    NAME = "runge_kutta3"
    GAMMA = (8 / 15, 5 / 12, 3 / 4)
    ZETA = (0.0, -17 / 60, -5 / 12)

    def step(self, dt: float) -> None:
        model = self.model
        clock = model.clock
        t0 = clock.time
        elapsed = 0.0
        previous: Optional[Tendencies] = None

        for stage, (gamma, zeta) in enumerate(zip(self.GAMMA, self.ZETA), start=1):
            clock.stage = stage
            G = model.compute_tendencies(t0 + elapsed * dt)
            self._apply(dt, G, gamma, previous, zeta)

            stage_fraction = gamma + zeta
            model.implicit_step(stage_fraction * dt)
            model.update_state()

            elapsed += stage_fraction
            previous = G

        clock.stage = 1


TIMESTEPPERS: dict[str, type[TimeStepper]] = {
    ForwardEuler.NAME: ForwardEuler,
    QuasiAdamsBashforth2.NAME: QuasiAdamsBashforth2,
    RungeKutta3.NAME: RungeKutta3,
}


def build_timestepper(name: str, model: Model) -> TimeStepper:
    try:
        return TIMESTEPPERS[name](model)
    except KeyError:
        raise ConfigurationError(
            f"Unknown timestepper '{name}'. Expected one of {sorted(TIMESTEPPERS)}."
        ) from None
