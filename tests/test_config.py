import json
import os

import numpy as np
import pytest

from oceanrun.builder import build_grid, build_model, build_simulation, initial_condition
from oceanrun.config import (
    ASSETS_PATH,
    ConfigurationError,
    GridConfig,
    ModelConfig,
    OutputConfig,
    SimulationConfig,
)
from oceanrun.grid import ImmersedBoundaryGrid, LatitudeLongitudeGrid, RectilinearGrid
from oceanrun.model import ConvectiveAdjustment, ExplicitFreeSurface, ScalarDiffusivity
from oceanrun.output import Checkpointer, FieldTimeSeries, HDF5OutputWriter

SMALL = {
    "name": "small",
    "grid": {"size": [4, 4, 4], "x": [0, 400], "y": [0, 400], "z": [-40, 0]},
    "model": {
        "tracers": ["T", "S"],
        "closures": [{"kind": "scalar_diffusivity", "nu": 1e-3, "kappa": 1e-4}],
        "buoyancy": {"kind": "linear"},
        "coriolis": {"kind": "f_plane", "f": 1e-4},
        "boundary_fluxes": {"T": {"top": 1e-5}},
        "initial_conditions": {"T": {"kind": "linear", "value": 20, "gradient": {"z": 0.01}}, "S": 35},
    },
    "dt": 10.0,
    "stop_iteration": 4,
    "outputs": [
        {"name": "fields", "filename": "small.h5", "fields": ["T"], "diagnostics": ["speed"],
         "schedule": "iteration_interval", "interval": 2},
    ],
}


class TestValidation:
    def test_defaults(self):
        config = SimulationConfig(stop_time=10.0)
        assert config.grid.kind == "rectilinear"
        assert config.model.timestepper == "quasi_adams_bashforth2"

    @pytest.mark.parametrize("data", [
        {"stop_time": 1.0, "dtt": 1.0},
        {"stop_time": 1.0, "grid": {"sizes": [4, 4, 4]}},
        {"stop_time": 1.0, "model": {"closures": [{"kind": "scalar_diffusivity", "kapa": 1.0}]}},
        {"stop_time": 1.0, "model": {"coriolis": {"kind": "f_plane", "omega": 1.0}}},
        {"stop_time": 1.0, "checkpoint": {"intervals": 10}},
        {"stop_time": 1.0, "time_step_wizard": {"courant": 0.5}},
    ])
    def test_unknown_keys(self, data):
        with pytest.raises(ConfigurationError, match="Unknown"):
            SimulationConfig.from_dict(data)

    @pytest.mark.parametrize("data", [
        {},
        {"stop_time": 1.0, "dt": 0.0},
        {"stop_time": -1.0},
        {"stop_iteration": 10, "model": {"kind": "anelastic"}},
        {"stop_iteration": 10, "model": {"timestepper": "leapfrog"}},
        {"stop_iteration": 10, "model": {"advection": "weno"}},
        {"stop_iteration": 10, "model": {"boundary_fluxes": {"T": {"east": 1.0}}}},
        {"stop_iteration": 10, "model": {"coriolis": {"kind": "f_plane"}}},
        {"stop_iteration": 10, "grid": {"kind": "cubed_sphere"}},
        {"stop_iteration": 10, "grid": {"z": [-1, 0], "vertical_stretching": {"kind": "uniform", "depth": 1}}},
        {"stop_iteration": 10, "grid": {"vertical_stretching": {"kind": "uniform"}}},
        {"stop_iteration": 10, "outputs": [{"name": "a", "filename": "a.h5"}]},
        {"stop_iteration": 10, "outputs": [{"name": "a", "filename": "a.h5", "fields": ["T"], "schedule": "daily"}]},
        {"stop_iteration": 10, "outputs": [
            {"name": "a", "filename": "a.h5", "fields": ["T"]},
            {"name": "a", "filename": "b.h5", "fields": ["S"]},
        ]},
        {"stop_iteration": 10, "time_step_wizard": {"max_change": 0.5}},
        {"stop_iteration": 10, "grid": []},
    ])
    def test_invalid(self, data):
        with pytest.raises(ConfigurationError):
            SimulationConfig.from_dict(data)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{ not json")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            SimulationConfig.from_json(str(path))

    def test_json_round_trip(self, tmp_path):
        config = SimulationConfig.from_dict(SMALL)
        path = str(tmp_path / "small.json")
        config.to_json(path)
        assert SimulationConfig.from_json(path) == config


@pytest.mark.parametrize("name", ["mixed_layer.json", "seamount.json", "global_ocean.json"])
def test_bundled_configurations_build(name):
    config = SimulationConfig.from_json(os.path.join(ASSETS_PATH, name))
    grid = build_grid(config.grid)
    model = build_model(config.model, grid)
    assert model.grid is grid


class TestBuilder:
    def test_rectilinear_with_stretching(self):
        grid = build_grid(GridConfig(size=[4, 4, 8], x=[0, 1], y=[0, 1],
                                     vertical_stretching={"kind": "exponential", "depth": 100.0}))
        assert isinstance(grid, RectilinearGrid)
        assert grid.z_faces[0] == -100.0 and grid.z_faces[-1] == 0.0
        assert grid.z_widths[-1] < grid.z_widths[0]

    def test_bad_stretching_option(self):
        with pytest.raises(ConfigurationError, match="vertical stretching"):
            build_grid(GridConfig(size=[4, 4, 8], x=[0, 1], y=[0, 1],
                                  vertical_stretching={"kind": "uniform", "depth": 100.0, "scale": 3.0}))

    def test_latitude_longitude_with_bottom(self):
        grid = build_grid(GridConfig(kind="latitude_longitude", size=[8, 4, 4], x=[0, 360], y=[-40, 40],
                                     z=[-400, -300, -200, -100, 0], bottom_height=-200.0))
        assert isinstance(grid, ImmersedBoundaryGrid)
        assert isinstance(grid.underlying_grid, LatitudeLongitudeGrid)
        assert grid.immersed[:, :, :2].all() and not grid.immersed[:, :, 2:].any()

    def test_model_options(self):
        grid = build_grid(GridConfig(size=[4, 4, 4], x=[0, 1], y=[0, 1], z=[-1, 0]))
        config = ModelConfig.from_dict({
            "closures": [
                {"kind": "scalar_diffusivity", "kappa": 1e-3, "time_discretization": "vertically_implicit"},
                {"kind": "convective_adjustment"},
            ],
            "buoyancy": {"kind": "linear"},
            "free_surface": True,
            "timestepper": "runge_kutta3",
        })
        model = build_model(config, grid)
        assert isinstance(model.closures[0], ScalarDiffusivity) and model.closures[0].is_vertically_implicit
        assert isinstance(model.closures[1], ConvectiveAdjustment) and model.closures[1].is_vertically_implicit
        assert isinstance(model.free_surface, ExplicitFreeSurface)
        assert model.timestepper.NAME == "runge_kutta3"

    def test_initial_conditions(self):
        assert initial_condition(3.0) == 3.0
        linear = initial_condition({"kind": "linear", "value": 1.0, "gradient": {"x": 2.0, "z": 0.5}})
        assert linear(1.0, 5.0, -2.0) == pytest.approx(1.0 + 2.0 - 1.0)
        noise = initial_condition({"kind": "random", "mean": 1.0, "amplitude": 0.1, "seed": 1})
        values = noise(np.zeros((4, 1, 1)), np.zeros((1, 3, 1)), np.zeros((1, 1, 2)))
        assert values.shape == (4, 3, 2)
        with pytest.raises(ConfigurationError):
            initial_condition({"kind": "linear", "gradient": {"t": 1.0}})
        with pytest.raises(ConfigurationError):
            initial_condition({"kind": "sinusoidal"})

    def test_simulation(self, tmp_path):
        config = SimulationConfig.from_dict({
            **SMALL,
            "time_step_wizard": {"cfl": 0.5, "interval": 1},
            "checkpoint": {"interval": 2, "prefix": "small"},
            "output_directory": str(tmp_path),
        })
        simulation = build_simulation(config)
        assert set(simulation.callbacks) == {"nan_checker", "progress", "wizard"}
        assert isinstance(simulation.output_writers["fields"], HDF5OutputWriter)
        assert isinstance(simulation.checkpointer, Checkpointer)

        simulation.run()
        T = FieldTimeSeries(str(tmp_path / "small.h5"), "T")
        np.testing.assert_array_equal(T.iterations, [0, 2, 4])
        assert len(FieldTimeSeries(str(tmp_path / "small.h5"), "speed")) == 3
        assert simulation.checkpointer.latest() == simulation.checkpointer.filepath(4)

    def test_unknown_output_field(self, tmp_path):
        data = json.loads(json.dumps(SMALL))
        data["outputs"][0]["fields"] = ["eta"]
        data["output_directory"] = str(tmp_path)
        with pytest.raises(ConfigurationError, match="unknown field"):
            build_simulation(SimulationConfig.from_dict(data))

    def test_output_indices(self, tmp_path):
        data = json.loads(json.dumps(SMALL))
        data["outputs"][0]["indices"] = {"z": -1}
        data["output_directory"] = str(tmp_path)
        build_simulation(SimulationConfig.from_dict(data)).run()
        assert FieldTimeSeries(str(tmp_path / "small.h5"), "T").shape == (3, 4, 4, 1)

    def test_output_config_needs_content(self):
        with pytest.raises(ConfigurationError, match="nothing to write"):
            OutputConfig(name="empty", filename="empty.h5")
