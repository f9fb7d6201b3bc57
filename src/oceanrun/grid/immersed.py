"""
Immersed boundaries
===================
A grid-fitted bottom: each column is cut at ``bottom_height`` and every cell
whose center lies below it is marked immersed. Fields are held at zero in
immersed cells and no flux crosses an immersed face.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Union

import numpy as np

from oceanrun.config import ConfigurationError
from oceanrun.grid.base import Grid
from oceanrun.grid.topology import Topology

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

BottomHeight = Union[float, "npt.ArrayLike", Callable[[Any, Any], Any]]


class ImmersedBoundaryGrid:
    """
    Wraps a grid with a bottom height. Every attribute not defined here is
    looked up on ``underlying_grid``.
    """

    def __init__(self, grid: Grid, bottom_height: BottomHeight) -> None:
        if isinstance(grid, ImmersedBoundaryGrid):
            raise ConfigurationError("Cannot nest immersed boundary grids.")
        if grid.topology[2] != Topology.BOUNDED:
            raise ConfigurationError("An immersed bottom needs a bounded vertical axis.")

        self.underlying_grid = grid
        self.bottom_height = self._evaluate_bottom_height(grid, bottom_height)

        z = grid.z_centers.reshape(1, 1, -1)
        immersed = z < self.bottom_height[:, :, np.newaxis]
        immersed.flags.writeable = False
        self.immersed = immersed

        n_immersed = int(immersed.sum())
        logger.debug(f"Immersed boundary: {n_immersed} of {grid.number_of_cells} cells are immersed.")
        if n_immersed == grid.number_of_cells:
            raise ConfigurationError("The bottom height immerses every cell of the grid.")

    @staticmethod
    def _evaluate_bottom_height(grid: Grid, bottom_height: BottomHeight) -> npt.NDArray[np.float64]:
        if callable(bottom_height):
            x = grid.x_centers.reshape(-1, 1)
            y = grid.y_centers.reshape(1, -1)
            values = bottom_height(x, y)
        else:
            values = bottom_height

        try:
            height = np.broadcast_to(np.asarray(values, dtype=np.float64), (grid.Nx, grid.Ny)).copy()
        except ValueError:
            raise ConfigurationError(
                f"Bottom height of shape {np.shape(values)} does not fit the horizontal grid ({grid.Nx}, {grid.Ny})."
            ) from None

        if not np.all(np.isfinite(height)):
            raise ConfigurationError("Bottom height must be finite everywhere.")
        height.flags.writeable = False
        return height

    def __getattr__(self, name: str) -> Any:
        # Only called when normal lookup fails
        if name == "underlying_grid":
            raise AttributeError(name)
        return getattr(self.underlying_grid, name)

    @property
    def active(self) -> npt.NDArray[np.bool_]:
        return ~self.immersed

    @property
    def number_of_active_cells(self) -> int:
        return int(self.active.sum())

    def summary(self) -> str:
        return f"ImmersedBoundaryGrid on {self.underlying_grid.summary()}, {self.number_of_active_cells} active cells"

    def __repr__(self) -> str:
        return self.summary()


Grid.register(ImmersedBoundaryGrid)
