"""
Model Assembler
===============
Combines a grid with physics options into a steppable ocean model.

Why is this file needed?
------------------------
1. Validation: every inconsistent combination of options (free surface on a
   nonhydrostatic model, buoyancy without its tracers, forcing on a field that
   does not exist, ...) is rejected here, before any step is taken.
2. Storage: it allocates the velocity, tracer and free-surface fields.
3. Tendencies: it evaluates advection, diffusion, Coriolis, pressure
   gradients, forcing and boundary fluxes for the time stepper, and applies
   the vertically implicit diffusion and diagnosed quantities after each stage.

Notes:
    All fields are collocated at cell centers. In the hydrostatic model the
    vertical velocity is diagnosed from continuity after every stage and is
    not a prognostic variable.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Sequence, Union

import numpy as np

from oceanrun.config import ConfigurationError
from oceanrun.grid import Grid, Topology
from oceanrun.model.advection import AdvectionScheme, parse_advection
from oceanrun.model.boundary_conditions import FieldBoundaryConditions
from oceanrun.model.clock import Clock
from oceanrun.model.closures import Closure, parse_closures
from oceanrun.model.fields import Field
from oceanrun.model.forcing import AbstractForcing, Forcing, parse_forcing
from oceanrun.model.operators import FiniteVolumeOperators
from oceanrun.model.physics import Buoyancy, Coriolis, ExplicitFreeSurface
from oceanrun.model.timesteppers import build_timestepper

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

VELOCITY_NAMES = ("u", "v", "w")
FREE_SURFACE_NAME = "eta"
MODEL_KINDS = ("hydrostatic", "nonhydrostatic")


class Model:
    """
    Ocean model on a structured grid.

    Args:
        grid: Grid (optionally with an immersed bottom).
        kind: "hydrostatic" or "nonhydrostatic".
        tracers: Names of the tracers to carry.
        advection: Tracer advection scheme name, instance or None.
        momentum_advection: Momentum advection scheme name, instance or None.
        closure: None, a closure or a sequence of closures.
        buoyancy: Buoyancy model or None.
        coriolis: Coriolis parameterization or None.
        free_surface: ExplicitFreeSurface or None (rigid lid).
        boundary_conditions: Field name -> FieldBoundaryConditions.
        forcing: Field name -> callable, Forcing, Relaxation or constant.
        timestepper: "forward_euler", "quasi_adams_bashforth2" or "runge_kutta3".

    Raises:
        ConfigurationError: If the options are inconsistent.
    """

    def __init__(
        self,
        grid: Grid,
        *,
        kind: str = "hydrostatic",
        tracers: Union[str, Sequence[str]] = ("T", "S"),
        advection: Union[str, AdvectionScheme, None] = "centered",
        momentum_advection: Union[str, AdvectionScheme, None] = "centered",
        closure: Union[Closure, Iterable[Closure], None] = None,
        buoyancy: Optional[Buoyancy] = None,
        coriolis: Optional[Coriolis] = None,
        free_surface: Optional[ExplicitFreeSurface] = None,
        boundary_conditions: Optional[Mapping[str, FieldBoundaryConditions]] = None,
        forcing: Optional[Mapping[str, Any]] = None,
        timestepper: str = "quasi_adams_bashforth2",
    ) -> None:
        if not isinstance(grid, Grid):
            raise ConfigurationError(f"Expected a grid, got {type(grid).__name__}.")
        if kind not in MODEL_KINDS:
            raise ConfigurationError(f"Unknown model kind '{kind}'. Expected one of {list(MODEL_KINDS)}.")

        self.grid = grid
        self.kind = kind
        self.tracer_names = self._validate_tracers(tracers)
        self.advection = parse_advection(advection)
        self.momentum_advection = parse_advection(momentum_advection)
        self.closures = parse_closures(closure)
        self.buoyancy = buoyancy
        self.coriolis = coriolis
        self.free_surface = free_surface

        self._validate_physics()

        # --- Fields ---
        self.fields: dict[str, Field] = {name: Field(grid, name) for name in VELOCITY_NAMES}
        for name in self.tracer_names:
            self.fields[name] = Field(grid, name)
        if self.free_surface is not None:
            self.fields[FREE_SURFACE_NAME] = Field(grid, FREE_SURFACE_NAME, surface=True)

        self.boundary_conditions = self._validate_boundary_conditions(boundary_conditions or {})
        self.forcing = self._validate_forcing(forcing or {})

        self.operators = FiniteVolumeOperators(grid)
        self.clock = Clock()
        self.timestepper = build_timestepper(timestepper, self)

        self.update_state()
        logger.debug(f"Assembled {self.summary()}")

    # ==========================================
    # VALIDATION
    # ==========================================
    @staticmethod
    def _validate_tracers(tracers: Union[str, Sequence[str]]) -> tuple[str, ...]:
        names = (tracers,) if isinstance(tracers, str) else tuple(tracers)
        for name in names:
            if not isinstance(name, str) or not name:
                raise ConfigurationError(f"Tracer names must be non-empty strings, got {name!r}.")
            if name in VELOCITY_NAMES or name == FREE_SURFACE_NAME:
                raise ConfigurationError(f"Tracer name '{name}' is reserved.")
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Tracer names must be unique, got {list(names)}.")
        return names

    def _validate_physics(self) -> None:
        grid = self.grid

        if self.buoyancy is not None:
            if not isinstance(self.buoyancy, Buoyancy):
                raise ConfigurationError(f"Expected a buoyancy model, got {self.buoyancy!r}.")
            missing = [t for t in self.buoyancy.required_tracers if t not in self.tracer_names]
            if missing:
                raise ConfigurationError(f"{self.buoyancy!r} requires tracer(s) {missing}.")

        if any(c.requires_buoyancy for c in self.closures) and self.buoyancy is None:
            raise ConfigurationError("ConvectiveAdjustment requires a buoyancy model.")

        if self.coriolis is not None:
            if not isinstance(self.coriolis, Coriolis):
                raise ConfigurationError(f"Expected a Coriolis parameterization, got {self.coriolis!r}.")
            self.coriolis.validate(grid)

        if self.is_hydrostatic and grid.topology[2] != Topology.BOUNDED:
            raise ConfigurationError(
                f"A hydrostatic model needs a bounded z axis, got {grid.topology[2].value}."
            )

        if any(c.is_vertically_implicit for c in self.closures) and grid.is_periodic(2):
            raise ConfigurationError("Vertically implicit closures need a non-periodic z axis.")

        if self.free_surface is not None:
            if not isinstance(self.free_surface, ExplicitFreeSurface):
                raise ConfigurationError(f"Expected an ExplicitFreeSurface, got {self.free_surface!r}.")
            if not self.is_hydrostatic:
                raise ConfigurationError("A free surface is only available in the hydrostatic model.")
            if grid.is_flat(0) and grid.is_flat(1):
                raise ConfigurationError("A free surface needs at least one non-flat horizontal axis.")

    def _check_target(self, name: str, what: str) -> None:
        if name not in self.fields or name == FREE_SURFACE_NAME:
            raise ConfigurationError(
                f"{what} names unknown field '{name}'. Known fields: {list(self.prognostic_volume_fields)}."
            )
        if name not in self.prognostic_fields:
            raise ConfigurationError(f"{what} cannot be applied to '{name}', which is diagnosed.")

    def _validate_boundary_conditions(
        self, boundary_conditions: Mapping[str, FieldBoundaryConditions]
    ) -> dict[str, FieldBoundaryConditions]:
        validated = {}
        for name, bcs in boundary_conditions.items():
            self._check_target(name, "Boundary condition")
            if not isinstance(bcs, FieldBoundaryConditions):
                raise ConfigurationError(
                    f"Boundary conditions of '{name}' must be FieldBoundaryConditions, got {bcs!r}."
                )
            if not bcs.is_no_flux:
                validated[name] = bcs
        return validated

    def _validate_forcing(self, forcing: Mapping[str, Any]) -> dict[str, AbstractForcing]:
        validated = {}
        for name, value in forcing.items():
            self._check_target(name, "Forcing")
            parsed = parse_forcing(value)
            if isinstance(parsed, Forcing):
                unknown = [d for d in parsed.field_dependencies if d not in self.fields]
                if unknown:
                    raise ConfigurationError(f"Forcing of '{name}' depends on unknown field(s) {unknown}.")
            validated[name] = parsed
        return validated

    # ==========================================
    # ACCESSORS
    # ==========================================
    @property
    def is_hydrostatic(self) -> bool:
        return self.kind == "hydrostatic"

    @property
    def velocities(self) -> dict[str, Field]:
        return {name: self.fields[name] for name in VELOCITY_NAMES}

    @property
    def tracers(self) -> dict[str, Field]:
        return {name: self.fields[name] for name in self.tracer_names}

    @property
    def eta(self) -> Optional[Field]:
        return self.fields.get(FREE_SURFACE_NAME)

    @property
    def prognostic_fields(self) -> dict[str, Field]:
        """Fields advanced by the time stepper, in storage order."""
        return {
            name: field for name, field in self.fields.items()
            if not (name == "w" and self.is_hydrostatic)
        }

    @property
    def prognostic_volume_fields(self) -> dict[str, Field]:
        return {name: field for name, field in self.prognostic_fields.items() if not field.surface}

    def buoyancy_values(self) -> npt.NDArray[np.float64]:
        if self.buoyancy is None:
            raise ConfigurationError("This model has no buoyancy.")
        return self.buoyancy.buoyancy({name: field.data for name, field in self.tracers.items()})

    def summary(self) -> str:
        parts = [
            f"{self.kind} Model on {self.grid.summary()}",
            f"tracers: {list(self.tracer_names)}",
            f"advection: {self.advection!r}, momentum advection: {self.momentum_advection!r}",
            f"closures: {list(self.closures)}",
            f"buoyancy: {self.buoyancy!r}",
            f"coriolis: {self.coriolis!r}",
            f"free surface: {self.free_surface!r}",
            f"timestepper: {self.timestepper!r}",
        ]
        return "\n  ".join(parts)

    def __repr__(self) -> str:
        return self.summary()

    # ==========================================
    # STATE
    # ==========================================
    def set(self, **values: Any) -> None:
        """
        Set fields from scalars, arrays or callables f(x, y, z). Tendencies kept by
        the time stepper belong to the old state and are discarded.

        Example:
            >>> model.set(T=lambda x, y, z: 20 + 0.01 * z, S=35)
        """
        for name in values:
            if name not in self.fields:
                raise ConfigurationError(f"Cannot set unknown field '{name}'. Known fields: {list(self.fields)}.")
            if name == "w" and self.is_hydrostatic:
                raise ConfigurationError("The vertical velocity of a hydrostatic model is diagnosed and cannot be set.")

        for name, value in values.items():
            self.fields[name].set(value)
        self.update_state()
        self.timestepper.reset()

    def update_state(self) -> None:
        """Zero immersed cells and diagnose the hydrostatic vertical velocity."""
        for field in self.fields.values():
            field.mask_immersed()
        if self.is_hydrostatic:
            self.fields["w"].data[...] = self.operators.diagnose_vertical_velocity(
                self.fields["u"].data, self.fields["v"].data
            )

    # ==========================================
    # TENDENCIES
    # ==========================================
    def compute_tendencies(self, time: float) -> dict[str, npt.NDArray[np.float64]]:
        """
        Right-hand side of every prognostic field at ``time``, excluding the
        vertical diffusion of vertically implicit closures.
        """
        grid = self.grid
        cells = self.operators.cells
        columns = self.operators.columns

        for closure in self.closures:
            closure.update(self)

        arrays = {name: field.data for name, field in self.fields.items()}
        velocities = (arrays["u"], arrays["v"], arrays["w"])
        b = self.buoyancy_values() if self.buoyancy is not None else None

        tendencies: dict[str, npt.NDArray[np.float64]] = {}
        for name, field in self.prognostic_volume_fields.items():
            is_velocity = name in VELOCITY_NAMES
            scheme = self.momentum_advection if is_velocity else self.advection

            G = np.zeros(grid.size)
            if scheme is not None:
                G += cells.advective_tendency(field.data, velocities, scheme)

            for closure in self.closures:
                horizontal, vertical = closure.diffusivities(name, is_velocity)
                if closure.is_vertically_implicit:
                    vertical = 0.0
                G += cells.diffusive_tendency(field.data, horizontal, vertical)

            if name in self.boundary_conditions:
                top, bottom = self.boundary_conditions[name].evaluate(grid, time)
                G += self.operators.boundary_flux_tendency(top, bottom)

            if name in self.forcing:
                G += self.forcing[name](grid, time, arrays, field.data)

            tendencies[name] = G

        if self.coriolis is not None:
            f = self.coriolis.parameter(grid)
            tendencies["u"] += f * arrays["v"]
            tendencies["v"] -= f * arrays["u"]

        if b is not None:
            if self.is_hydrostatic:
                p = self.operators.hydrostatic_pressure(b)
                for axis, name in ((0, "u"), (1, "v")):
                    if axis in cells.axes:
                        tendencies[name] -= cells.center_gradient(p, axis)
            else:
                tendencies["w"] += b - self._horizontal_mean(b)

        if self.free_surface is not None:
            g = self.free_surface.gravitational_acceleration
            eta = arrays[FREE_SURFACE_NAME]
            for axis, name in ((0, "u"), (1, "v")):
                if axis in columns.axes:
                    tendencies[name] -= g * columns.center_gradient(eta, axis)

            transport = (
                self.operators.vertical_integral(arrays["u"]),
                self.operators.vertical_integral(arrays["v"]),
                None,
            )
            tendencies[FREE_SURFACE_NAME] = -columns.velocity_divergence(transport, axes=(0, 1))

        for name, G in tendencies.items():
            G *= self.fields[name].active

        return tendencies

    def _horizontal_mean(self, c: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        weights = self.grid.volumes * self.grid.active
        total = np.sum(weights, axis=(0, 1), keepdims=True)
        integral = np.sum(c * weights, axis=(0, 1), keepdims=True)
        return np.divide(integral, total, out=np.zeros_like(integral), where=total > 0)

    def implicit_step(self, dt: float) -> None:
        """Apply the vertical diffusion of vertically implicit closures over ``dt``."""
        implicit = [c for c in self.closures if c.is_vertically_implicit]
        if not implicit or self.grid.is_flat(2):
            return

        cells = self.operators.cells
        for name, field in self.prognostic_volume_fields.items():
            is_velocity = name in VELOCITY_NAMES
            kappa = sum(c.diffusivities(name, is_velocity)[1] for c in implicit)
            if np.isscalar(kappa) and kappa == 0:
                continue
            field.data[...] = cells.implicit_vertical_diffusion(field.data, kappa, dt)

    def time_step(self, dt: float) -> None:
        """Advance the model by one full step (all stages) and tick the clock."""
        if not dt > 0:
            raise ValueError(f"Time step must be positive, got {dt}.")
        self.timestepper.step(dt)
        self.clock.tick(dt)
