import numpy as np
import pytest

from oceanrun.config import ConfigurationError
from oceanrun.diagnostics import volume_integral
from oceanrun.grid import ImmersedBoundaryGrid, LatitudeLongitudeGrid, RectilinearGrid
from oceanrun.model import (
    BetaPlane,
    BuoyancyTracer,
    ConvectiveAdjustment,
    ExplicitFreeSurface,
    FieldBoundaryConditions,
    FluxBoundaryCondition,
    Forcing,
    FPlane,
    LinearEquationOfState,
    Model,
    Relaxation,
    ScalarDiffusivity,
    SphericalCoriolis,
)
from oceanrun.model.clock import Clock


class TestAssembly:
    def test_field_order(self, model):
        assert list(model.fields) == ["u", "v", "w", "T", "S"]
        assert list(model.tracers) == ["T", "S"]
        assert model.eta is None

    def test_hydrostatic_w_is_not_prognostic(self, model):
        assert "w" not in model.prognostic_fields
        nonhydrostatic = Model(model.grid, kind="nonhydrostatic", tracers="c")
        assert "w" in nonhydrostatic.prognostic_fields

    def test_free_surface_adds_eta(self, box_grid):
        model = Model(box_grid, free_surface=ExplicitFreeSurface())
        assert list(model.fields)[-1] == "eta"
        assert model.eta.shape == (8, 4, 1)
        assert "eta" in model.prognostic_fields
        assert "eta" not in model.prognostic_volume_fields

    def test_summary_mentions_kind(self, model):
        assert "hydrostatic" in model.summary()

    @pytest.mark.parametrize("tracers", [("T", "T"), ("u",), ("eta",), ("",)])
    def test_invalid_tracer_names(self, box_grid, tracers):
        with pytest.raises(ConfigurationError):
            Model(box_grid, tracers=tracers)

    def test_unknown_kind(self, box_grid):
        with pytest.raises(ConfigurationError, match="model kind"):
            Model(box_grid, kind="compressible")

    def test_not_a_grid(self):
        with pytest.raises(ConfigurationError):
            Model("grid")

    def test_buoyancy_needs_its_tracers(self, box_grid):
        with pytest.raises(ConfigurationError, match="requires tracer"):
            Model(box_grid, tracers=("T",), buoyancy=LinearEquationOfState())
        with pytest.raises(ConfigurationError, match="requires tracer"):
            Model(box_grid, tracers=("T", "S"), buoyancy=BuoyancyTracer())

    def test_convective_adjustment_needs_buoyancy(self, box_grid):
        with pytest.raises(ConfigurationError, match="buoyancy"):
            Model(box_grid, closure=ConvectiveAdjustment())

    def test_hydrostatic_needs_bounded_z(self):
        grid = RectilinearGrid(size=(4, 4, 4), x=(0, 1), y=(0, 1), z=(0, 1), topology=("periodic", "periodic", "periodic"))
        with pytest.raises(ConfigurationError, match="bounded z"):
            Model(grid)
        Model(grid, kind="nonhydrostatic")

    def test_implicit_closure_rejects_periodic_z(self):
        grid = RectilinearGrid(size=(4, 4, 4), x=(0, 1), y=(0, 1), z=(0, 1), topology=("periodic", "periodic", "periodic"))
        with pytest.raises(ConfigurationError, match="implicit"):
            Model(grid, kind="nonhydrostatic",
                  closure=ScalarDiffusivity(kappa=1.0, time_discretization="vertically_implicit"))

    def test_free_surface_is_hydrostatic_only(self, box_grid):
        with pytest.raises(ConfigurationError, match="hydrostatic"):
            Model(box_grid, kind="nonhydrostatic", free_surface=ExplicitFreeSurface())

    def test_free_surface_needs_a_horizontal_axis(self):
        grid = RectilinearGrid(size=4, z=(-1, 0), topology=("flat", "flat", "bounded"))
        with pytest.raises(ConfigurationError, match="horizontal"):
            Model(grid, free_surface=ExplicitFreeSurface())

    def test_coriolis_must_match_grid(self, box_grid):
        with pytest.raises(ConfigurationError, match="LatitudeLongitudeGrid"):
            Model(box_grid, coriolis=SphericalCoriolis())
        sphere = LatitudeLongitudeGrid(size=(8, 4, 2), longitude=(0, 360), latitude=(-40, 40), z=(-100, 0))
        with pytest.raises(ConfigurationError, match="Cartesian"):
            Model(sphere, coriolis=BetaPlane(f0=1e-4, beta=1e-11))

    def test_fplane_needs_exactly_one_argument(self):
        with pytest.raises(ConfigurationError):
            FPlane()
        with pytest.raises(ConfigurationError):
            FPlane(f=1e-4, latitude=45)
        assert FPlane(latitude=30).f == pytest.approx(7.292115e-5)

    @pytest.mark.parametrize("target", ["q", "w", "eta"])
    def test_boundary_conditions_target_prognostic_volume_fields(self, box_grid, target):
        bcs = {target: FieldBoundaryConditions(top=FluxBoundaryCondition(1.0))}
        with pytest.raises(ConfigurationError):
            Model(box_grid, free_surface=ExplicitFreeSurface(), boundary_conditions=bcs)

    def test_forcing_dependencies_must_exist(self, box_grid):
        forcing = Forcing(lambda x, y, z, t, q: q, field_dependencies=("q",))
        with pytest.raises(ConfigurationError, match="unknown field"):
            Model(box_grid, forcing={"T": forcing})

    def test_unknown_timestepper(self, box_grid):
        with pytest.raises(ConfigurationError, match="timestepper"):
            Model(box_grid, timestepper="leapfrog")


class TestSet:
    def test_set_from_scalar_array_and_callable(self, model, box_grid):
        model.set(S=35, T=lambda x, y, z: 20 + 0.01 * z, u=np.ones(box_grid.size))
        assert np.all(model.fields["S"].data == 35)
        np.testing.assert_allclose(model.fields["T"].data[0, 0, :], 20 + 0.01 * box_grid.z_centers)
        assert np.all(model.fields["u"].data == 1)

    def test_unknown_field(self, model):
        with pytest.raises(ConfigurationError, match="unknown field"):
            model.set(q=1.0)

    def test_hydrostatic_w_cannot_be_set(self, model):
        with pytest.raises(ConfigurationError, match="diagnosed"):
            model.set(w=1.0)

    def test_wrong_shape(self, model):
        with pytest.raises(ConfigurationError, match="shape"):
            model.set(T=np.zeros((3, 3, 3)))

    def test_immersed_cells_are_zeroed(self, box_grid):
        model = Model(ImmersedBoundaryGrid(box_grid, -30.0))
        model.set(T=20.0, u=0.1)
        assert np.all(model.fields["T"].data[:, :, :3] == 0)
        assert np.all(model.fields["T"].data[:, :, 3:] == 20)
        assert np.all(model.fields["u"].data[:, :, :3] == 0)

    def test_set_discards_earlier_tendencies(self, stirred_model, box_grid):
        for _ in range(2):
            stirred_model.time_step(10.0)
        assert stirred_model.timestepper.previous is not None

        state = {name: stirred_model.fields[name].data.copy() for name in ("u", "v", "T", "S")}
        stirred_model.set(**state)
        assert stirred_model.timestepper.previous is None

        # The next step starts over like a freshly initialized model
        fresh = Model(
            box_grid,
            tracers=("T", "S"),
            buoyancy=LinearEquationOfState(),
            closure=ScalarDiffusivity(nu=1e-2, kappa=1e-2),
        )
        fresh.set(**state)
        stirred_model.time_step(10.0)
        fresh.time_step(10.0)
        for name in state:
            np.testing.assert_array_equal(stirred_model.fields[name].data, fresh.fields[name].data)


class TestDynamics:
    def test_uniform_flow_has_no_vertical_velocity(self, model):
        model.set(u=0.1, v=-0.2)
        np.testing.assert_allclose(model.fields["w"].data, 0.0, atol=1e-15)

    def test_convergent_flow_diagnoses_vertical_velocity(self, model):
        model.set(u=lambda x, y, z: 0.1 * np.sin(2 * np.pi * x / 800) + 0 * z)
        w = model.fields["w"].data
        assert np.max(np.abs(w)) > 0
        # Upwelling grows with height above the bottom
        column = np.abs(w[1, 0, :])
        assert np.all(np.diff(column) > 0)

    def test_tracer_is_conserved(self, stirred_model):
        before = volume_integral(stirred_model, "T")
        for _ in range(10):
            stirred_model.time_step(10.0)
        assert volume_integral(stirred_model, "T") == pytest.approx(before, rel=1e-12)
        assert stirred_model.clock.iteration == 10
        assert stirred_model.clock.time == pytest.approx(100.0)

    def test_tracer_is_conserved_over_topography(self, box_grid):
        grid = ImmersedBoundaryGrid(box_grid, lambda x, y: -60 + 40 * np.exp(-((x - 400) / 150) ** 2) + 0 * y)
        model = Model(grid, tracers="c", advection="upwind", closure=ScalarDiffusivity(kappa=1.0),
                      timestepper="runge_kutta3")
        rng = np.random.default_rng(3)
        model.set(u=0.1, c=rng.random(grid.size))
        before = volume_integral(model, "c")
        for _ in range(5):
            model.time_step(20.0)
        assert volume_integral(model, "c") == pytest.approx(before, rel=1e-12)
        assert np.all(model.fields["c"].data[grid.immersed] == 0)

    def test_inertial_oscillation(self, box_grid):
        f = 1e-4
        model = Model(box_grid, tracers=(), coriolis=FPlane(f=f), timestepper="runge_kutta3")
        model.set(u=0.1)
        for _ in range(100):
            model.time_step(100.0)
        u = model.fields["u"].data
        v = model.fields["v"].data
        angle = f * 100 * 100.0
        np.testing.assert_allclose(u, 0.1 * np.cos(angle), atol=1e-6)
        np.testing.assert_allclose(v, -0.1 * np.sin(angle), atol=1e-6)

    def test_nonhydrostatic_buoyancy_drives_w(self, box_grid):
        model = Model(box_grid, kind="nonhydrostatic", tracers="b", buoyancy=BuoyancyTracer())
        model.set(b=lambda x, y, z: 1e-3 * np.cos(2 * np.pi * x / 800) + 1e-5 * z + 0 * y)
        G = model.compute_tendencies(0.0)
        b = model.fields["b"].data
        np.testing.assert_allclose(G["w"], b - b.mean(axis=(0, 1), keepdims=True), atol=1e-15)

    def test_hydrostatic_pressure_gradient_is_antisymmetric_and_grows_with_depth(self, slice_grid):
        model = Model(slice_grid, tracers="b", buoyancy=BuoyancyTracer(), momentum_advection=None, advection=None)
        # Light column centered at x = 800 m
        model.set(b=lambda x, y, z: 1e-3 * np.exp(-((x - 800) / 200) ** 2) + 0 * z)
        Gu = model.compute_tendencies(0.0)["u"][:, 0, :]
        np.testing.assert_allclose(Gu, -Gu[::-1, :], atol=1e-12)
        assert np.all(np.abs(Gu[5, :-1]) > np.abs(Gu[5, 1:]))
        assert np.all(model.compute_tendencies(0.0)["v"] == 0)

    def test_free_surface_conserves_volume(self, box_grid):
        model = Model(box_grid, tracers=(), free_surface=ExplicitFreeSurface())
        model.set(eta=lambda x, y, z: 0.1 * np.exp(-((x - 400) / 100) ** 2) + 0 * y)
        area = box_grid.horizontal_areas
        before = np.sum(model.eta.data[:, :, 0] * area)
        for _ in range(20):
            model.time_step(0.5)
        assert np.sum(model.eta.data[:, :, 0] * area) == pytest.approx(before, rel=1e-10)
        # The bump has started to spread
        assert model.eta.data[4, 0, 0] < 0.1 * np.exp(-((450 - 400) / 100) ** 2)

    def test_surface_flux_changes_heat_content(self, box_grid):
        Q = 1e-4
        model = Model(
            box_grid,
            boundary_conditions={"T": FieldBoundaryConditions(top=FluxBoundaryCondition(Q))},
            timestepper="forward_euler",
        )
        model.set(T=10.0)
        model.time_step(100.0)
        # A positive top flux removes heat through the surface
        expected = 10.0 * 800 * 400 * 60 - Q * 100.0 * 800 * 400
        assert volume_integral(model, "T") == pytest.approx(expected, rel=1e-12)
        assert np.all(model.fields["T"].data[:, :, -1] < 10.0)
        assert np.all(model.fields["T"].data[:, :, :-1] == 10.0)

    def test_flux_callable_with_parameters(self, box_grid):
        bc = FluxBoundaryCondition(lambda x, y, t, p: p["Q"] * (x > 400) + 0 * y, parameters={"Q": 1.0})
        top = bc.evaluate(box_grid, 0.0)
        assert top.shape == (8, 4)
        assert top[0, 0] == 0.0 and top[-1, 0] == 1.0
        with pytest.raises(ValueError):
            FluxBoundaryCondition(lambda x, y, t, p: 0.0)

    def test_relaxation_restores_toward_target(self, box_grid):
        model = Model(box_grid, forcing={"T": Relaxation(rate=1e-3, target=5.0)}, timestepper="forward_euler")
        model.set(T=10.0)
        model.time_step(100.0)
        np.testing.assert_allclose(model.fields["T"].data, 10.0 - 0.1 * 5.0)

    def test_forcing_with_field_dependencies(self, box_grid):
        forcing = Forcing(lambda x, y, z, t, S: -1e-3 * S, field_dependencies=("S",))
        model = Model(box_grid, forcing={"T": forcing}, timestepper="forward_euler")
        model.set(T=0.0, S=2.0)
        model.time_step(10.0)
        np.testing.assert_allclose(model.fields["T"].data, -0.02)

    def test_time_step_must_be_positive(self, model):
        with pytest.raises(ValueError):
            model.time_step(0.0)


class TestImplicitDiffusion:
    def test_implicit_diffusion_is_stable_and_conservative(self, box_grid):
        model = Model(
            box_grid,
            tracers="c",
            closure=ScalarDiffusivity(kappa=1.0, direction="vertical", time_discretization="vertically_implicit"),
        )
        model.set(c=lambda x, y, z: (z > -30).astype(float) + 0 * x * y)
        before = volume_integral(model, "c")
        # Far beyond the explicit stability limit dz² / (2 kappa) = 50 s
        for _ in range(3):
            model.time_step(1e4)
        c = model.fields["c"].data
        assert volume_integral(model, "c") == pytest.approx(before, rel=1e-12)
        assert c.min() >= -1e-12 and c.max() <= 1 + 1e-12
        np.testing.assert_allclose(c, 0.5, atol=0.05)

    def test_implicit_and_explicit_agree_for_small_steps(self, slice_grid):
        def run(time_discretization):
            model = Model(
                slice_grid,
                tracers="c",
                closure=ScalarDiffusivity(kappa=1e-2, time_discretization=time_discretization),
                timestepper="forward_euler",
            )
            model.set(c=lambda x, y, z: np.exp(-((z + 40) / 10) ** 2) + 0 * x)
            for _ in range(20):
                model.time_step(10.0)
            return model.fields["c"].data

        np.testing.assert_allclose(run("vertically_implicit"), run("explicit"), atol=1e-4)


class TestClock:
    def test_tick(self):
        clock = Clock()
        clock.tick(2.5)
        clock.tick(0.5)
        assert clock.time == 3.0
        assert clock.iteration == 2
        assert clock.last_dt == 0.5

    def test_cannot_go_backwards(self):
        with pytest.raises(ValueError):
            Clock().tick(-1.0)
