import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from oceanrun.grid import RectilinearGrid
from oceanrun.model import LinearEquationOfState, Model, ScalarDiffusivity


@pytest.fixture
def box_grid():
    """8 x 4 x 6 cells of 100 m x 100 m x 10 m, doubly periodic."""
    return RectilinearGrid(
        size=(8, 4, 6),
        x=(0, 800),
        y=(0, 400),
        z=(-60, 0),
        topology=("periodic", "periodic", "bounded"),
    )


@pytest.fixture
def slice_grid():
    """Two-dimensional x-z slice."""
    return RectilinearGrid(
        size=(16, 8),
        x=(0, 1600),
        z=(-80, 0),
        topology=("periodic", "flat", "bounded"),
    )


@pytest.fixture
def model(box_grid):
    return Model(
        box_grid,
        tracers=("T", "S"),
        buoyancy=LinearEquationOfState(),
        closure=ScalarDiffusivity(nu=1e-2, kappa=1e-2),
    )


@pytest.fixture
def stirred_model(box_grid):
    """Model with a random, reproducible initial state."""
    m = Model(
        box_grid,
        tracers=("T", "S"),
        buoyancy=LinearEquationOfState(),
        closure=ScalarDiffusivity(nu=1e-2, kappa=1e-2),
    )
    rng = np.random.default_rng(7)
    m.set(
        u=0.05 * rng.standard_normal(box_grid.size),
        v=0.05 * rng.standard_normal(box_grid.size),
        T=lambda x, y, z: 20 + 0.01 * z + 0.1 * np.sin(2 * np.pi * x / 800),
        S=35,
    )
    return m
