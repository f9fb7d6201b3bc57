"""
Derived quantities computed from the model state.

Each diagnostic in ``DIAGNOSTICS`` takes a model and returns an array that
an output writer can store next to the prognostic fields.
"""
from __future__ import annotations

import math
from typing import TYPE_CHECKING, Callable, Union

import numpy as np

from oceanrun.config import ConfigurationError

if TYPE_CHECKING:
    import numpy.typing as npt

    from oceanrun.model import Model


def max_abs_velocity(model: Model) -> tuple[float, float, float]:
    return tuple(model.fields[name].maximum_absolute() for name in ("u", "v", "w"))


def cell_advection_timescale(model: Model) -> float:
    """
    Shortest time for a fluid parcel to cross a cell:
    min(1 / (|u|/Δx + |v|/Δy + |w|/Δz)) over fluid cells. Flat axes are skipped.
    Returns inf when the fluid is at rest.
    """
    grid = model.grid
    spacings = grid.spacings()
    rate = np.zeros(grid.size)
    for axis, name in enumerate(("u", "v", "w")):
        if grid.is_flat(axis):
            continue
        rate += np.abs(model.fields[name].data) / spacings[axis]
    rate = rate[grid.active]
    max_rate = float(np.max(rate)) if rate.size else 0.0
    if max_rate == 0.0:
        return math.inf
    return 1.0 / max_rate


def advective_cfl(model: Model, dt: float) -> float:
    return dt / cell_advection_timescale(model)


def kinetic_energy(model: Model) -> npt.NDArray[np.float64]:
    """Kinetic energy per unit mass, ½(u² + v² + w²)."""
    u, v, w = (model.fields[name].data for name in ("u", "v", "w"))
    return 0.5 * (u ** 2 + v ** 2 + w ** 2)


def speed(model: Model) -> npt.NDArray[np.float64]:
    return np.sqrt(2 * kinetic_energy(model))


def _values(model: Model, quantity: Union[str, npt.NDArray[np.float64]]) -> npt.NDArray[np.float64]:
    if isinstance(quantity, str):
        if quantity not in model.fields:
            raise ConfigurationError(f"Unknown field '{quantity}'.")
        return model.fields[quantity].data
    return np.asarray(quantity, dtype=np.float64)


def volume_integral(model: Model, quantity: Union[str, npt.NDArray[np.float64]]) -> float:
    """∫ c dV over fluid cells."""
    grid = model.grid
    return float(np.sum(_values(model, quantity) * grid.volumes * grid.active))


def horizontal_average(model: Model, quantity: Union[str, npt.NDArray[np.float64]]) -> npt.NDArray[np.float64]:
    """Area-weighted average over each level, shape (1, 1, Nz). Levels entirely below the bottom are zero."""
    grid = model.grid
    weights = grid.volumes * grid.active
    total = np.sum(weights, axis=(0, 1), keepdims=True)
    integral = np.sum(_values(model, quantity) * weights, axis=(0, 1), keepdims=True)
    return np.divide(integral, total, out=np.zeros_like(integral), where=total > 0)


def vertical_vorticity(model: Model) -> npt.NDArray[np.float64]:
    """ζ = ∂v/∂x - ∂u/∂y at cell centers."""
    cells = model.operators.cells
    zeta = np.zeros(model.grid.size)
    if 0 in cells.axes:
        zeta += cells.center_gradient(model.fields["v"].data, 0)
    if 1 in cells.axes:
        zeta -= cells.center_gradient(model.fields["u"].data, 1)
    return zeta * model.grid.active


def buoyancy(model: Model) -> npt.NDArray[np.float64]:
    return model.buoyancy_values() * model.grid.active


def buoyancy_frequency_squared(model: Model) -> npt.NDArray[np.float64]:
    """N² = ∂b/∂z at cell centers."""
    if model.grid.is_flat(2):
        return np.zeros(model.grid.size)
    return model.operators.cells.center_gradient(model.buoyancy_values(), 2)


DIAGNOSTICS: dict[str, Callable[[Model], npt.NDArray[np.float64]]] = {
    "kinetic_energy": kinetic_energy,
    "speed": speed,
    "vertical_vorticity": vertical_vorticity,
    "buoyancy": buoyancy,
    "buoyancy_frequency_squared": buoyancy_frequency_squared,
}


def get_diagnostic(name: str) -> Callable[[Model], npt.NDArray[np.float64]]:
    try:
        return DIAGNOSTICS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown diagnostic '{name}'. Expected one of {sorted(DIAGNOSTICS)}."
        ) from None
