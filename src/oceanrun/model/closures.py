"""
Turbulence closures
===================
Parameterizations of unresolved mixing as diffusivities on cell faces.

Closures report a (horizontal, vertical) diffusivity pair per field. The
vertical part of a closure with ``vertically_implicit`` time discretization
is integrated implicitly by the time stepper; everything else is explicit.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Union

import numpy as np

from oceanrun.config import ConfigurationError

if TYPE_CHECKING:
    import numpy.typing as npt

    from oceanrun.model.model import Model

Diffusivity = Union[float, "npt.NDArray[np.float64]"]


class TimeDiscretization(StrEnum):
    EXPLICIT = "explicit"
    VERTICALLY_IMPLICIT = "vertically_implicit"


class Direction(StrEnum):
    ISOTROPIC = "isotropic"
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


def _time_discretization(value: str | TimeDiscretization) -> TimeDiscretization:
    try:
        return TimeDiscretization(value)
    except ValueError:
        raise ConfigurationError(
            f"Unknown time discretization '{value}'. Expected one of {[t.value for t in TimeDiscretization]}."
        ) from None


class Closure(ABC):
    """
    Abstract base class for closures.
    """
    NAME: str = "Closure"
    requires_buoyancy: bool = False

    def __init__(self, time_discretization: str | TimeDiscretization = TimeDiscretization.EXPLICIT) -> None:
        self.time_discretization = _time_discretization(time_discretization)

    @property
    def is_vertically_implicit(self) -> bool:
        return self.time_discretization == TimeDiscretization.VERTICALLY_IMPLICIT

    def update(self, model: Model) -> None:
        """Recompute state-dependent diffusivities. Called once per stage before tendencies."""
        pass

    @abstractmethod
    def diffusivities(self, name: str, is_velocity: bool) -> tuple[Diffusivity, Diffusivity]:
        """
        Get the diffusivities acting on a field.

        Args:
            name: Field name.
            is_velocity: Whether the field is a velocity component (viscosity applies).

        Returns:
            (horizontal, vertical) diffusivity, scalars or arrays on faces.
        """
        pass


class ScalarDiffusivity(Closure):
    """
    Constant viscosity ``nu`` and diffusivity ``kappa``.

    Args:
        nu: Viscosity for velocity components (m²/s).
        kappa: Tracer diffusivity (m²/s), or a mapping of tracer name to diffusivity.
        direction: "isotropic", "horizontal" or "vertical".
        time_discretization: "explicit" or "vertically_implicit".
    """
    NAME = "scalar_diffusivity"

    def __init__(
        self,
        nu: float = 0.0,
        kappa: Union[float, Dict[str, float]] = 0.0,
        direction: str | Direction = Direction.ISOTROPIC,
        time_discretization: str | TimeDiscretization = TimeDiscretization.EXPLICIT,
    ) -> None:
        super().__init__(time_discretization)
        try:
            self.direction = Direction(direction)
        except ValueError:
            raise ConfigurationError(
                f"Unknown closure direction '{direction}'. Expected one of {[d.value for d in Direction]}."
            ) from None

        values = list(kappa.values()) if isinstance(kappa, dict) else [kappa]
        if nu < 0 or any(k < 0 for k in values):
            raise ConfigurationError("Viscosity and diffusivities must be non-negative.")

        self.nu = float(nu)
        self.kappa = dict(kappa) if isinstance(kappa, dict) else float(kappa)

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(nu={self.nu}, kappa={self.kappa}, "
                f"direction={self.direction.value}, time_discretization={self.time_discretization.value})")

    def diffusivity_of(self, name: str, is_velocity: bool) -> float:
        if is_velocity:
            return self.nu
        if isinstance(self.kappa, dict):
            return float(self.kappa.get(name, 0.0))
        return self.kappa

    def diffusivities(self, name: str, is_velocity: bool) -> tuple[Diffusivity, Diffusivity]:
        value = self.diffusivity_of(name, is_velocity)
        if self.direction == Direction.HORIZONTAL:
            return value, 0.0
        if self.direction == Direction.VERTICAL:
            return 0.0, value
        return value, value


class ConvectiveAdjustment(Closure):
    """
    Vertical diffusivity that switches to ``convective_kappa`` wherever the
    stratification is unstable (∂b/∂z < 0) and to ``background_kappa`` elsewhere.
    Needs a buoyancy model.
    """
    NAME = "convective_adjustment"
    requires_buoyancy = True

    def __init__(
        self,
        convective_kappa: float = 1.0,
        background_kappa: float = 0.0,
        convective_nu: float = 0.0,
        background_nu: float = 0.0,
        time_discretization: str | TimeDiscretization = TimeDiscretization.VERTICALLY_IMPLICIT,
    ) -> None:
        super().__init__(time_discretization)
        if min(convective_kappa, background_kappa, convective_nu, background_nu) < 0:
            raise ConfigurationError("Convective adjustment diffusivities must be non-negative.")
        self.convective_kappa = float(convective_kappa)
        self.background_kappa = float(background_kappa)
        self.convective_nu = float(convective_nu)
        self.background_nu = float(background_nu)
        self._unstable: Optional[npt.NDArray[np.bool_]] = None

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(convective_kappa={self.convective_kappa}, "
                f"background_kappa={self.background_kappa}, convective_nu={self.convective_nu})")

    def update(self, model: Model) -> None:
        b = model.buoyancy_values()
        cells = model.operators.cells
        if 2 not in cells.axes:
            self._unstable = np.zeros(cells.shape, dtype=bool)
            return
        self._unstable = cells.face_difference(b, axis=2) < 0

    def diffusivities(self, name: str, is_velocity: bool) -> tuple[Diffusivity, Diffusivity]:
        if self._unstable is None:
            raise RuntimeError("ConvectiveAdjustment.update() must run before diffusivities are requested.")
        if is_velocity:
            vertical = np.where(self._unstable, self.convective_nu, self.background_nu)
        else:
            vertical = np.where(self._unstable, self.convective_kappa, self.background_kappa)
        return 0.0, vertical


def parse_closures(closure: Union[Closure, Iterable[Closure], None]) -> tuple[Closure, ...]:
    if closure is None:
        return ()
    if isinstance(closure, Closure):
        return (closure,)
    closures = tuple(closure)
    for c in closures:
        if not isinstance(c, Closure):
            raise ConfigurationError(f"Expected a Closure, got {c!r}.")
    return closures
