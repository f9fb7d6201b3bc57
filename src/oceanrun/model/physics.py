from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Mapping, Optional

import numpy as np

from oceanrun.config import ConfigurationError
from oceanrun.utils import EARTH_ROTATION_RATE, GRAVITATIONAL_ACCELERATION, coriolis_parameter

if TYPE_CHECKING:
    import numpy.typing as npt

    from oceanrun.grid import Grid


# ==========================================
# BUOYANCY
# ==========================================
class Buoyancy(ABC):
    """
    Abstract base class for buoyancy models.
    """
    required_tracers: tuple[str, ...] = ()

    @abstractmethod
    def buoyancy(self, tracers: Mapping[str, npt.NDArray[np.float64]]) -> npt.NDArray[np.float64]:
        """
        Get the buoyancy (m/s²) from the tracer arrays.
        """
        pass


class LinearEquationOfState(Buoyancy):
    """
    b = g (α T - β S), with T in °C and S in g/kg.
    """
    required_tracers = ("T", "S")

    def __init__(
        self,
        thermal_expansion: float = 1.67e-4,
        haline_contraction: float = 7.80e-4,
        gravitational_acceleration: float = GRAVITATIONAL_ACCELERATION,
    ) -> None:
        self.thermal_expansion = float(thermal_expansion)
        self.haline_contraction = float(haline_contraction)
        self.gravitational_acceleration = float(gravitational_acceleration)

    def __repr__(self) -> str:
        return (f"{self.__class__.__name__}(thermal_expansion={self.thermal_expansion}, "
                f"haline_contraction={self.haline_contraction})")

    def buoyancy(self, tracers):
        g = self.gravitational_acceleration
        return g * (self.thermal_expansion * tracers["T"] - self.haline_contraction * tracers["S"])


class BuoyancyTracer(Buoyancy):
    """Buoyancy is itself a tracer named ``b``."""
    required_tracers = ("b",)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    def buoyancy(self, tracers):
        return tracers["b"]


# ==========================================
# CORIOLIS
# ==========================================
class Coriolis(ABC):
    """
    Abstract base class for Coriolis parameterizations.
    """

    def validate(self, grid: Grid) -> None:
        pass

    @abstractmethod
    def parameter(self, grid: Grid) -> npt.NDArray[np.float64]:
        """Coriolis parameter f (1/s), broadcastable to the grid shape."""
        pass


class FPlane(Coriolis):
    """Constant f, given directly or as 2Ω sin(latitude)."""

    def __init__(
        self,
        f: Optional[float] = None,
        latitude: Optional[float] = None,
        rotation_rate: float = EARTH_ROTATION_RATE,
    ) -> None:
        if (f is None) == (latitude is None):
            raise ConfigurationError("FPlane needs exactly one of 'f' or 'latitude'.")
        self.f = float(f) if f is not None else coriolis_parameter(latitude, rotation_rate)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(f={self.f:.3e})"

    def parameter(self, grid):
        return np.full((1, 1, 1), self.f)


class BetaPlane(Coriolis):
    """f = f0 + β y on a Cartesian grid."""

    def __init__(self, f0: float, beta: float) -> None:
        self.f0 = float(f0)
        self.beta = float(beta)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(f0={self.f0:.3e}, beta={self.beta:.3e})"

    def validate(self, grid):
        if grid.is_spherical:
            raise ConfigurationError("BetaPlane requires a Cartesian grid; use SphericalCoriolis instead.")

    def parameter(self, grid):
        return self.f0 + self.beta * grid.y_centers.reshape(1, -1, 1)


class SphericalCoriolis(Coriolis):
    """f = 2Ω sin(φ) on a latitude-longitude grid."""

    def __init__(self, rotation_rate: float = EARTH_ROTATION_RATE) -> None:
        self.rotation_rate = float(rotation_rate)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(rotation_rate={self.rotation_rate:.4e})"

    def validate(self, grid):
        if not grid.is_spherical:
            raise ConfigurationError("SphericalCoriolis requires a LatitudeLongitudeGrid.")

    def parameter(self, grid):
        return 2 * self.rotation_rate * np.sin(np.deg2rad(grid.y_centers)).reshape(1, -1, 1)


# ==========================================
# FREE SURFACE
# ==========================================
class ExplicitFreeSurface:
    """
    Linear free surface η stepped explicitly: ∂η/∂t = -∇·∫u dz, with the
    barotropic pressure gradient -g∇η added to the horizontal momentum.
    The vertical coordinate stays fixed.
    """

    def __init__(self, gravitational_acceleration: float = GRAVITATIONAL_ACCELERATION) -> None:
        if not gravitational_acceleration > 0:
            raise ConfigurationError("Free surface gravitational acceleration must be positive.")
        self.gravitational_acceleration = float(gravitational_acceleration)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(gravitational_acceleration={self.gravitational_acceleration})"
