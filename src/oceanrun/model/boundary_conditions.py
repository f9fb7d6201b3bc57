from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

    from oceanrun.grid import Grid

FluxValue = Union[float, Callable[..., Any]]


class FluxBoundaryCondition:
    """
    Prescribed flux through the top or bottom of the domain.

    ``value`` is a constant or a callable ``q(x, y, t)`` (or ``q(x, y, t, p)``
    when ``parameters`` are given) evaluated at cell-center (x, y). Positive
    fluxes point upward, so a positive top flux removes the quantity from the
    domain. For example, a surface cooling of Q W/m² on temperature is
    ``FluxBoundaryCondition(Q / (rho0 * cp))``.
    """

    def __init__(self, value: FluxValue, parameters: Any = None) -> None:
        if not callable(value):
            value = float(value)
        elif parameters is None and len(inspect.signature(value).parameters) == 4:
            raise ValueError("Flux callable takes 4 arguments but no parameters were given.")
        self.value = value
        self.parameters = parameters

    def __repr__(self) -> str:
        value = getattr(self.value, "__name__", self.value)
        return f"{self.__class__.__name__}({value})"

    def evaluate(self, grid: Grid, time: float) -> npt.NDArray[np.float64] | float:
        if not callable(self.value):
            return self.value
        x = grid.x_centers.reshape(-1, 1)
        y = grid.y_centers.reshape(1, -1)
        if self.parameters is None:
            return np.asarray(self.value(x, y, time), dtype=np.float64)
        return np.asarray(self.value(x, y, time, self.parameters), dtype=np.float64)


@dataclass
class FieldBoundaryConditions:
    """Top and bottom flux conditions of one field. ``None`` means no flux."""
    top: Optional[FluxBoundaryCondition] = None
    bottom: Optional[FluxBoundaryCondition] = None

    def evaluate(self, grid: Grid, time: float) -> tuple[npt.NDArray[np.float64] | float, npt.NDArray[np.float64] | float]:
        top = self.top.evaluate(grid, time) if self.top is not None else 0.0
        bottom = self.bottom.evaluate(grid, time) if self.bottom is not None else 0.0
        return top, bottom

    @property
    def is_no_flux(self) -> bool:
        return self.top is None and self.bottom is None
