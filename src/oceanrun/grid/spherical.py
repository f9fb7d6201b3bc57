from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence, Union

import numpy as np

from oceanrun.config import ConfigurationError
from oceanrun.grid.base import Grid, Extent
from oceanrun.grid.topology import Topology
from oceanrun.utils import EARTH_RADIUS

if TYPE_CHECKING:
    import numpy.typing as npt


class LatitudeLongitudeGrid(Grid):
    """
    Grid on a thin spherical shell. The x axis is longitude and the y axis is
    latitude, both in degrees; z is height in meters.

    Metrics follow the thin-shell approximation: Δx = R cos(φ) Δλ, Δy = R Δφ.
    """
    is_spherical = True

    def __init__(
        self,
        size: Union[int, Sequence[int]],
        longitude: Extent = None,
        latitude: Extent = None,
        z: Extent = None,
        radius: float = EARTH_RADIUS,
        topology: Optional[Sequence[str | Topology]] = None,
    ) -> None:
        if not radius > 0:
            raise ConfigurationError(f"radius must be positive, got {radius!r}.")
        self.radius = float(radius)

        if topology is None:
            topology = (self._default_longitude_topology(longitude), Topology.BOUNDED, Topology.BOUNDED)

        super().__init__(size=size, x=longitude, y=latitude, z=z, topology=topology)

        if self.is_periodic(1):
            raise ConfigurationError("Latitude cannot be periodic.")
        if not self.is_flat(1) and (self.y_faces[0] < -90 or self.y_faces[-1] > 90):
            raise ConfigurationError(
                f"Latitude must lie within [-90, 90], got [{self.y_faces[0]}, {self.y_faces[-1]}]."
            )
        if not self.is_flat(0) and self.x_faces[-1] - self.x_faces[0] > 360 + 1e-9:
            raise ConfigurationError("Longitude cannot span more than 360 degrees.")

    @staticmethod
    def _default_longitude_topology(longitude: Extent) -> Topology:
        if longitude is None:
            return Topology.FLAT
        values = np.asarray(longitude, dtype=np.float64)
        if values.size >= 2 and np.isclose(values[-1] - values[0], 360.0):
            return Topology.PERIODIC
        return Topology.BOUNDED

    def spacings(self) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        if self.is_flat(0):
            dx = np.ones((1, 1, 1))
        else:
            cos_phi = np.cos(np.deg2rad(self.y_centers)) if not self.is_flat(1) else np.ones(1)
            dlambda = np.deg2rad(self.x_widths)
            dx = self.radius * dlambda.reshape(-1, 1, 1) * cos_phi.reshape(1, -1, 1)

        if self.is_flat(1):
            dy = np.ones((1, 1, 1))
        else:
            dy = self.radius * np.deg2rad(self.y_widths).reshape(1, -1, 1)

        return dx, dy, self.z_widths.reshape(1, 1, -1)
