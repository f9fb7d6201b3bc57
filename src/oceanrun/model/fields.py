from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional, Union

import numpy as np

from oceanrun.config import ConfigurationError

if TYPE_CHECKING:
    import numpy.typing as npt

    from oceanrun.grid import Grid

FieldValue = Union[float, "npt.ArrayLike", Callable[..., Any]]


class Field:
    """
    A cell-centered array of values over a grid.

    Surface fields (e.g. the free-surface displacement) have a single vertical
    level located at the top of the domain.
    """

    def __init__(
        self,
        grid: Grid,
        name: str,
        surface: bool = False,
        data: Optional[npt.NDArray[np.float64]] = None,
    ) -> None:
        self.grid = grid
        self.name = name
        self.surface = surface

        shape = (grid.Nx, grid.Ny, 1) if surface else grid.size
        if data is None:
            self.data: npt.NDArray[np.float64] = np.zeros(shape, dtype=np.float64)
        else:
            data = np.asarray(data, dtype=np.float64)
            if data.shape != shape:
                raise ValueError(f"Field '{name}' expects data of shape {shape}, got {data.shape}.")
            self.data = data

    def __repr__(self) -> str:
        kind = "surface field" if self.surface else "field"
        return f"{self.__class__.__name__}({self.name!r}, {kind}, shape={self.data.shape})"

    @property
    def shape(self) -> tuple[int, ...]:
        return self.data.shape

    @property
    def active(self) -> npt.NDArray[np.bool_]:
        if self.surface:
            return self.grid.active.any(axis=2, keepdims=True)
        return self.grid.active

    def nodes(self) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        x, y, z = self.grid.nodes()
        if self.surface:
            z = np.full((1, 1, 1), self.grid.z_faces[-1])
        return x, y, z

    def set(self, value: FieldValue) -> None:
        """
        Set the field in place from a scalar, an array broadcastable to its
        shape, or a callable ``f(x, y, z)`` evaluated at cell centers.
        Immersed cells are zeroed afterwards.
        """
        if isinstance(value, Field):
            value = value.data

        if callable(value):
            x, y, z = self.nodes()
            value = value(x, y, z)

        try:
            self.data[...] = np.broadcast_to(np.asarray(value, dtype=np.float64), self.data.shape)
        except ValueError:
            raise ConfigurationError(
                f"Cannot set field '{self.name}' of shape {self.data.shape} from a value of shape {np.shape(value)}."
            ) from None

        self.mask_immersed()

    def mask_immersed(self) -> None:
        active = self.active
        if not active.all():
            self.data[~active] = 0.0

    def maximum_absolute(self) -> float:
        return float(np.max(np.abs(self.data))) if self.data.size else 0.0

    def mean(self) -> float:
        """Volume-weighted mean over active cells."""
        if self.surface:
            weights = self.grid.horizontal_areas[:, :, np.newaxis] * self.active
        else:
            weights = self.grid.volumes * self.active
        return float(np.sum(self.data * weights) / np.sum(weights))
