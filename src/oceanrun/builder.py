"""
Configuration Builder
=====================
Turns a SimulationConfig into grids, models, writers and a runnable Simulation.

Why is this file needed?
------------------------
1. Single path: the CLI, run.py and the examples all build simulations from
   the same dataclass configuration, so a JSON file and a script that build
   the same configuration run the same simulation.
2. Translation: configuration names ("f_plane", "time_interval", ...) are
   mapped to the classes that implement them here, and nowhere else.
"""
from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any, Callable, Optional

import numpy as np

from oceanrun.config import (
    ClosureConfig,
    ConfigurationError,
    GridConfig,
    ModelConfig,
    SimulationConfig,
)
from oceanrun.diagnostics import get_diagnostic
from oceanrun.grid import (
    ImmersedBoundaryGrid,
    LatitudeLongitudeGrid,
    RectilinearGrid,
    exponential_z_faces,
    stretched_z_faces,
    uniform_z_faces,
)
from oceanrun.model import (
    BetaPlane,
    BuoyancyTracer,
    ConvectiveAdjustment,
    ExplicitFreeSurface,
    FieldBoundaryConditions,
    FluxBoundaryCondition,
    FPlane,
    LinearEquationOfState,
    Model,
    ScalarDiffusivity,
    SphericalCoriolis,
)
from oceanrun.output import Checkpointer, HDF5OutputWriter
from oceanrun.schedules import IterationInterval, build_schedule
from oceanrun.simulation import Callback, ProgressMessenger, Simulation, TimeStepWizard

if TYPE_CHECKING:
    from oceanrun.grid import Grid
    from oceanrun.model.closures import Closure

logger = logging.getLogger(__name__)

VERTICAL_STRETCHINGS: dict[str, Callable[..., Any]] = {
    "uniform": uniform_z_faces,
    "exponential": exponential_z_faces,
    "stretched": stretched_z_faces,
}


# ==========================================
# GRID
# ==========================================
def _vertical_faces(stretching: dict[str, Any], Nz: int):
    options = {k: v for k, v in stretching.items() if k not in ("kind", "depth")}
    kind = stretching["kind"]
    if kind == "exponential":
        options.setdefault("scale", stretching["depth"] / 5)
    try:
        return VERTICAL_STRETCHINGS[kind](Nz, stretching["depth"], **options)
    except TypeError as e:
        raise ConfigurationError(f"Invalid options for '{kind}' vertical stretching: {e}") from e


def build_grid(config: GridConfig) -> Grid:
    z = config.z
    if config.vertical_stretching is not None:
        z = _vertical_faces(config.vertical_stretching, int(config.size[-1]))

    if config.kind == "latitude_longitude":
        extra = {"radius": config.radius} if config.radius is not None else {}
        grid = LatitudeLongitudeGrid(
            size=config.size, longitude=config.x, latitude=config.y, z=z,
            topology=config.topology, **extra,
        )
    else:
        topology = config.topology or ("periodic", "periodic", "bounded")
        grid = RectilinearGrid(size=config.size, x=config.x, y=config.y, z=z, topology=topology)

    if config.bottom_height is not None:
        grid = ImmersedBoundaryGrid(grid, np.asarray(config.bottom_height, dtype=np.float64))

    logger.info(f"Built grid: {grid.summary()}")
    return grid


# ==========================================
# MODEL
# ==========================================
def build_closure(config: ClosureConfig) -> Closure:
    extra = {"time_discretization": config.time_discretization} if config.time_discretization else {}
    if config.kind == "convective_adjustment":
        return ConvectiveAdjustment(
            convective_kappa=config.convective_kappa,
            background_kappa=config.background_kappa,
            convective_nu=config.convective_nu,
            **extra,
        )
    return ScalarDiffusivity(nu=config.nu, kappa=config.kappa, direction=config.direction, **extra)


def initial_condition(value: Any) -> Any:
    """
    Interpret an initial condition from a configuration:

    - a number or nested list: used as is;
    - ``{"kind": "linear", "value": c0, "gradient": {"x": gx, "y": gy, "z": gz}}``:
      c = c0 + gx x + gy y + gz z;
    - ``{"kind": "random", "mean": m, "amplitude": a, "seed": s}``:
      normally distributed noise.
    """
    if not isinstance(value, dict):
        return value

    kind = value.get("kind")
    if kind == "linear":
        c0 = float(value.get("value", 0.0))
        gradient = value.get("gradient", {})
        unknown = set(gradient) - {"x", "y", "z"}
        if unknown:
            raise ConfigurationError(f"Unknown gradient axes {sorted(unknown)}.")
        gx, gy, gz = (float(gradient.get(axis, 0.0)) for axis in ("x", "y", "z"))
        return lambda x, y, z: c0 + gx * x + gy * y + gz * z

    if kind == "random":
        mean = float(value.get("mean", 0.0))
        amplitude = float(value.get("amplitude", 1.0))
        rng = np.random.default_rng(value.get("seed"))
        return lambda x, y, z: mean + amplitude * rng.standard_normal(np.broadcast(x, y, z).shape)

    raise ConfigurationError(f"Unknown initial condition kind '{kind}'. Expected 'linear' or 'random'.")


def build_model(config: ModelConfig, grid: Grid) -> Model:
    closures = tuple(build_closure(c) for c in config.closures)

    buoyancy = None
    if config.buoyancy is not None:
        if config.buoyancy.kind == "buoyancy_tracer":
            buoyancy = BuoyancyTracer()
        else:
            buoyancy = LinearEquationOfState(
                thermal_expansion=config.buoyancy.thermal_expansion,
                haline_contraction=config.buoyancy.haline_contraction,
                gravitational_acceleration=config.buoyancy.gravitational_acceleration,
            )

    coriolis = None
    if config.coriolis is not None:
        if config.coriolis.kind == "f_plane":
            coriolis = FPlane(f=config.coriolis.f, latitude=config.coriolis.latitude)
        elif config.coriolis.kind == "beta_plane":
            coriolis = BetaPlane(f0=config.coriolis.f0, beta=config.coriolis.beta)
        else:
            coriolis = SphericalCoriolis()

    free_surface = ExplicitFreeSurface(config.gravitational_acceleration) if config.free_surface else None

    boundary_conditions = {}
    for name, sides in config.boundary_fluxes.items():
        boundary_conditions[name] = FieldBoundaryConditions(
            top=FluxBoundaryCondition(sides["top"]) if "top" in sides else None,
            bottom=FluxBoundaryCondition(sides["bottom"]) if "bottom" in sides else None,
        )

    model = Model(
        grid,
        kind=config.kind,
        tracers=tuple(config.tracers),
        advection=config.advection,
        momentum_advection=config.momentum_advection,
        closure=closures,
        buoyancy=buoyancy,
        coriolis=coriolis,
        free_surface=free_surface,
        boundary_conditions=boundary_conditions,
        timestepper=config.timestepper,
    )

    if config.initial_conditions:
        model.set(**{name: initial_condition(v) for name, v in config.initial_conditions.items()})

    logger.info(f"Built model: {model.summary()}")
    return model


# ==========================================
# SIMULATION
# ==========================================
def build_simulation(config: SimulationConfig, model: Optional[Model] = None, pickup: bool = False) -> Simulation:
    """
    Build a Simulation with its callbacks and output writers.

    Args:
        config: Full simulation configuration.
        model: Use this model instead of building one from ``config.model``.
        pickup: The simulation will be picked up from a checkpoint. Output files
            are then appended to, never replaced.
    """
    if model is None:
        model = build_model(config.model, build_grid(config.grid))

    simulation = Simulation(
        model,
        dt=config.dt,
        stop_time=config.stop_time,
        stop_iteration=config.stop_iteration,
        wall_time_limit=config.wall_time_limit,
        align_time_step=config.align_time_step,
    )

    simulation.add_callback(ProgressMessenger(), IterationInterval(int(config.progress_interval)), name="progress")

    if config.time_step_wizard is not None:
        wizard_config = config.time_step_wizard
        wizard = TimeStepWizard(
            cfl=wizard_config.cfl,
            max_change=wizard_config.max_change,
            min_change=wizard_config.min_change,
            max_dt=wizard_config.max_dt if wizard_config.max_dt is not None else np.inf,
            min_dt=wizard_config.min_dt,
            threshold=wizard_config.threshold,
        )
        simulation.add_callback(Callback(wizard, IterationInterval(int(wizard_config.interval)), name="wizard"))

    for output in config.outputs:
        outputs: dict[str, Any] = {}
        for name in output.fields:
            if name not in model.fields:
                raise ConfigurationError(
                    f"Output '{output.name}' requests unknown field '{name}'. Known fields: {list(model.fields)}."
                )
            outputs[name] = model.fields[name]
        for name in output.diagnostics:
            outputs[name] = get_diagnostic(name)

        indices = tuple(output.indices.get(axis, slice(None)) for axis in ("x", "y", "z"))
        writer = HDF5OutputWriter(
            model,
            outputs,
            schedule=build_schedule(output.schedule, output.interval),
            filename=os.path.join(config.output_directory, output.filename),
            indices=indices,
            overwrite_existing=output.overwrite_existing and not pickup,
        )
        simulation.add_output_writer(output.name, writer)

    if config.checkpoint is not None:
        checkpointer = Checkpointer(
            model,
            schedule=build_schedule(config.checkpoint.schedule, config.checkpoint.interval),
            directory=config.output_directory,
            prefix=config.checkpoint.prefix,
            cleanup=config.checkpoint.cleanup,
        )
        simulation.add_output_writer("checkpointer", checkpointer)

    return simulation
