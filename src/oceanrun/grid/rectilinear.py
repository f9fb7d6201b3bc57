from __future__ import annotations

from typing import TYPE_CHECKING, Sequence, Union

from oceanrun.grid.base import Grid, Extent
from oceanrun.grid.topology import Topology

if TYPE_CHECKING:
    import numpy as np
    import numpy.typing as npt


class RectilinearGrid(Grid):
    """
    Cartesian grid with (possibly non-uniform) spacing along each axis.

    Example:
        >>> grid = RectilinearGrid(size=(32, 64), x=(0, 1e3), z=(-100, 0),
        ...                        topology=("periodic", "flat", "bounded"))
    """

    def __init__(
        self,
        size: Union[int, Sequence[int]],
        x: Extent = None,
        y: Extent = None,
        z: Extent = None,
        topology: Sequence[str | Topology] = ("periodic", "periodic", "bounded"),
    ) -> None:
        super().__init__(size=size, x=x, y=y, z=z, topology=topology)

    def spacings(self) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        return (
            self.x_widths.reshape(-1, 1, 1),
            self.y_widths.reshape(1, -1, 1),
            self.z_widths.reshape(1, 1, -1),
        )
