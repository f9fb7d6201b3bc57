from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Union

import numpy as np

from oceanrun.config import ConfigurationError

if TYPE_CHECKING:
    import numpy.typing as npt


class AdvectionScheme(ABC):
    """
    Abstract base class for face-value reconstructions used by flux-form advection.
    """
    NAME: str = "Advection"

    @abstractmethod
    def face_value(
        self,
        left: npt.NDArray[np.float64],
        right: npt.NDArray[np.float64],
        velocity: npt.NDArray[np.float64],
    ) -> npt.NDArray[np.float64]:
        """
        Reconstruct the advected quantity on the face between ``left`` and ``right``.

        Args:
            left: Cell values on the lower-index side of each face.
            right: Cell values on the higher-index side of each face.
            velocity: Normal velocity on each face.

        Returns:
            Face values.
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class CenteredAdvection(AdvectionScheme):
    """Second-order centered reconstruction. Non-dissipative."""
    NAME = "centered"

    def face_value(self, left, right, velocity):
        return 0.5 * (left + right)


class UpwindAdvection(AdvectionScheme):
    """First-order upwind reconstruction. Monotone but diffusive."""
    NAME = "upwind"

    def face_value(self, left, right, velocity):
        return np.where(velocity > 0, left, right)


ADVECTION_SCHEMES: dict[str, type[AdvectionScheme]] = {
    CenteredAdvection.NAME: CenteredAdvection,
    UpwindAdvection.NAME: UpwindAdvection,
}


def parse_advection(scheme: Union[str, AdvectionScheme, None]) -> Optional[AdvectionScheme]:
    if scheme is None or isinstance(scheme, AdvectionScheme):
        return scheme
    try:
        return ADVECTION_SCHEMES[str(scheme).lower()]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown advection scheme '{scheme}'. Expected one of {sorted(ADVECTION_SCHEMES)}."
        ) from None
