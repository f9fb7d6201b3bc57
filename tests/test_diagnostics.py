import math

import numpy as np
import pytest

from oceanrun.config import ConfigurationError
from oceanrun.diagnostics import (
    advective_cfl,
    buoyancy_frequency_squared,
    cell_advection_timescale,
    get_diagnostic,
    horizontal_average,
    kinetic_energy,
    max_abs_velocity,
    speed,
    vertical_vorticity,
    volume_integral,
)
from oceanrun.grid import ImmersedBoundaryGrid
from oceanrun.model import BuoyancyTracer, Model


def test_timescale_is_infinite_at_rest(model):
    assert cell_advection_timescale(model) == math.inf
    assert advective_cfl(model, 10.0) == 0.0


def test_timescale_and_cfl(model):
    model.set(u=1.0, v=0.5)
    # 1 / (1 / 100 + 0.5 / 100)
    assert cell_advection_timescale(model) == pytest.approx(100 / 1.5)
    assert advective_cfl(model, 10.0) == pytest.approx(0.15)
    assert max_abs_velocity(model) == pytest.approx((1.0, 0.5, 0.0))


def test_timescale_skips_flat_axes(slice_grid):
    model = Model(slice_grid, tracers=())
    model.set(u=2.0, v=100.0)
    assert cell_advection_timescale(model) == pytest.approx(50.0)


def test_energy_and_speed(model):
    model.set(u=3.0, v=4.0)
    np.testing.assert_allclose(kinetic_energy(model), 12.5)
    np.testing.assert_allclose(speed(model), 5.0)


def test_integrals_over_fluid_cells(box_grid):
    model = Model(ImmersedBoundaryGrid(box_grid, -30.0))
    model.set(T=2.0)
    assert volume_integral(model, "T") == pytest.approx(2.0 * 800 * 400 * 30)
    mean = horizontal_average(model, "T")
    assert mean.shape == (1, 1, 6)
    np.testing.assert_allclose(mean[0, 0, :], [0, 0, 0, 2, 2, 2])
    with pytest.raises(ConfigurationError):
        volume_integral(model, "q")


def test_vertical_vorticity_of_solid_body_shear(model):
    model.set(v=lambda x, y, z: 1e-3 * np.sin(2 * np.pi * x / 800) + 0 * y + 0 * z)
    zeta = vertical_vorticity(model)
    assert zeta.shape == model.grid.size
    assert np.max(np.abs(zeta)) > 0
    np.testing.assert_allclose(zeta[:, 0, 0], zeta[:, 3, 5])


def test_buoyancy_frequency(box_grid):
    model = Model(box_grid, tracers="b", buoyancy=BuoyancyTracer())
    model.set(b=lambda x, y, z: 1e-5 * z + 0 * x * y)
    N2 = buoyancy_frequency_squared(model)
    np.testing.assert_allclose(N2[:, :, 1:-1], 1e-5)


def test_registry():
    assert get_diagnostic("speed") is speed
    with pytest.raises(ConfigurationError, match="Unknown diagnostic"):
        get_diagnostic("enstrophy")
