"""
Configuration & Path Management
===============================
This module is the central registry of recognized simulation options.

Why is this file needed?
------------------------
1. Explicit options: every component (grid, model, outputs, driver) has a
   dataclass that enumerates the options it understands. Unknown keys are
   rejected when the configuration is constructed, so a typo in a JSON file
   fails before any field storage is allocated.
2. Persistence: configurations round-trip through plain dictionaries and
   JSON files, which is how the CLI receives them.
3. Paths: it locates the bundled example configurations in ``assets/``.

Exports:
    ConfigurationError: raised for every setup-time validation failure.
    SimulationConfig: the root configuration object.
    ASSETS_PATH (str): Absolute path to the assets directory.
"""
from __future__ import annotations

import json
import logging
import math
import os
import sys
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from oceanrun.utils import GRAVITATIONAL_ACCELERATION

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised when a grid, model or simulation is configured inconsistently."""


def get_resource_path(relative_path: str) -> str:
    """
    Get absolute path to a bundled resource, works for dev and for frozen apps.
    """
    if hasattr(sys, '_MEIPASS'):
        base_path: str = getattr(sys, '_MEIPASS')
        return os.path.join(base_path, relative_path)

    # config.py is in src/oceanrun/
    project_root: Path = Path(__file__).parent.parent.parent
    return os.path.join(str(project_root), relative_path)


ASSETS_PATH: str = get_resource_path("assets")

GRID_KINDS = ("rectilinear", "latitude_longitude")
MODEL_KINDS = ("hydrostatic", "nonhydrostatic")
ADVECTION_NAMES = ("centered", "upwind")
TIMESTEPPER_NAMES = ("forward_euler", "quasi_adams_bashforth2", "runge_kutta3")
CLOSURE_KINDS = ("scalar_diffusivity", "convective_adjustment")
BUOYANCY_KINDS = ("linear", "buoyancy_tracer")
CORIOLIS_KINDS = ("f_plane", "beta_plane", "spherical")
SCHEDULE_KINDS = ("time_interval", "iteration_interval", "wall_time_interval")
AXIS_NAMES = ("x", "y", "z")


def _check_keys(cls: type, data: Any) -> None:
    """Reject anything that is not a mapping of recognized option names."""
    if not isinstance(data, dict):
        raise ConfigurationError(f"{cls.__name__} expects a mapping, got {type(data).__name__}.")
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown {cls.__name__} option(s): {sorted(unknown)}. "
            f"Recognized options: {sorted(known)}."
        )


def _require_choice(name: str, value: Optional[str], choices: tuple[str, ...], allow_none: bool = False) -> None:
    if value is None and allow_none:
        return
    if value not in choices:
        raise ConfigurationError(f"Invalid {name} '{value}'. Expected one of {list(choices)}.")


def _require_positive(name: str, value: Optional[float], allow_none: bool = True) -> None:
    if value is None:
        if allow_none:
            return
        raise ConfigurationError(f"{name} is required.")
    if not isinstance(value, (int, float)) or isinstance(value, bool) or not value > 0:
        raise ConfigurationError(f"{name} must be a positive number, got {value!r}.")


@dataclass(kw_only=True)
class GridConfig:
    """
    Grid options. For latitude-longitude grids ``x`` holds the longitude
    extent and ``y`` the latitude extent, both in degrees.
    """
    kind: str = "rectilinear"
    size: List[int] = field(default_factory=lambda: [16, 16, 16])
    x: Optional[List[float]] = None
    y: Optional[List[float]] = None
    z: Optional[List[float]] = None
    topology: Optional[List[str]] = None
    vertical_stretching: Optional[Dict[str, Any]] = None
    radius: Optional[float] = None
    bottom_height: Optional[Union[float, List[List[float]]]] = None

    def __post_init__(self) -> None:
        _require_choice("grid kind", self.kind, GRID_KINDS)
        if self.z is not None and self.vertical_stretching is not None:
            raise ConfigurationError("Specify either 'z' or 'vertical_stretching', not both.")
        if self.vertical_stretching is not None:
            kind = self.vertical_stretching.get("kind")
            _require_choice("vertical stretching kind", kind, ("uniform", "exponential", "stretched"))
            _require_positive("vertical_stretching.depth", self.vertical_stretching.get("depth"), allow_none=False)
        _require_positive("radius", self.radius)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> GridConfig:
        _check_keys(GridConfig, data)
        return GridConfig(**data)


@dataclass(kw_only=True)
class ClosureConfig:
    kind: str = "scalar_diffusivity"
    nu: float = 0.0
    kappa: Union[float, Dict[str, float]] = 0.0
    direction: str = "isotropic"
    time_discretization: Optional[str] = None
    convective_kappa: float = 1.0
    background_kappa: float = 0.0
    convective_nu: float = 0.0

    def __post_init__(self) -> None:
        _require_choice("closure kind", self.kind, CLOSURE_KINDS)
        _require_choice("closure direction", self.direction, ("isotropic", "horizontal", "vertical"))
        _require_choice("time discretization", self.time_discretization, ("explicit", "vertically_implicit"), allow_none=True)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> ClosureConfig:
        _check_keys(ClosureConfig, data)
        return ClosureConfig(**data)


@dataclass(kw_only=True)
class BuoyancyConfig:
    kind: str = "linear"
    thermal_expansion: float = 2e-4
    haline_contraction: float = 8e-4
    gravitational_acceleration: float = GRAVITATIONAL_ACCELERATION

    def __post_init__(self) -> None:
        _require_choice("buoyancy kind", self.kind, BUOYANCY_KINDS)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> BuoyancyConfig:
        _check_keys(BuoyancyConfig, data)
        return BuoyancyConfig(**data)


@dataclass(kw_only=True)
class CoriolisConfig:
    kind: str = "f_plane"
    f: Optional[float] = None
    latitude: Optional[float] = None
    f0: float = 0.0
    beta: float = 0.0

    def __post_init__(self) -> None:
        _require_choice("coriolis kind", self.kind, CORIOLIS_KINDS)
        if self.kind == "f_plane" and (self.f is None) == (self.latitude is None):
            raise ConfigurationError("An f-plane needs exactly one of 'f' or 'latitude'.")

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> CoriolisConfig:
        _check_keys(CoriolisConfig, data)
        return CoriolisConfig(**data)


@dataclass(kw_only=True)
class ModelConfig:
    kind: str = "hydrostatic"
    tracers: List[str] = field(default_factory=lambda: ["T", "S"])
    advection: Optional[str] = "centered"
    momentum_advection: Optional[str] = "centered"
    closures: List[ClosureConfig] = field(default_factory=list)
    buoyancy: Optional[BuoyancyConfig] = None
    coriolis: Optional[CoriolisConfig] = None
    free_surface: bool = False
    gravitational_acceleration: float = GRAVITATIONAL_ACCELERATION
    timestepper: str = "quasi_adams_bashforth2"
    boundary_fluxes: Dict[str, Dict[str, float]] = field(default_factory=dict)
    initial_conditions: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _require_choice("model kind", self.kind, MODEL_KINDS)
        _require_choice("advection scheme", self.advection, ADVECTION_NAMES, allow_none=True)
        _require_choice("momentum advection scheme", self.momentum_advection, ADVECTION_NAMES, allow_none=True)
        _require_choice("timestepper", self.timestepper, TIMESTEPPER_NAMES)
        for name, sides in self.boundary_fluxes.items():
            unknown = set(sides) - {"top", "bottom"}
            if unknown:
                raise ConfigurationError(f"Boundary fluxes for '{name}' use unknown side(s) {sorted(unknown)}.")

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> ModelConfig:
        _check_keys(ModelConfig, data)
        data = dict(data)
        data["closures"] = [ClosureConfig.from_dict(c) for c in data.get("closures", [])]
        if data.get("buoyancy") is not None:
            data["buoyancy"] = BuoyancyConfig.from_dict(data["buoyancy"])
        if data.get("coriolis") is not None:
            data["coriolis"] = CoriolisConfig.from_dict(data["coriolis"])
        return ModelConfig(**data)


@dataclass(kw_only=True)
class OutputConfig:
    name: str
    filename: str
    fields: List[str] = field(default_factory=list)
    diagnostics: List[str] = field(default_factory=list)
    schedule: str = "time_interval"
    interval: float = 1.0
    indices: Dict[str, int] = field(default_factory=dict)
    overwrite_existing: bool = True

    def __post_init__(self) -> None:
        _require_choice("output schedule", self.schedule, SCHEDULE_KINDS)
        _require_positive(f"interval of output '{self.name}'", self.interval, allow_none=False)
        if not self.fields and not self.diagnostics:
            raise ConfigurationError(f"Output '{self.name}' has nothing to write.")
        for axis in self.indices:
            _require_choice("index axis", axis, AXIS_NAMES)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> OutputConfig:
        _check_keys(OutputConfig, data)
        return OutputConfig(**data)


@dataclass(kw_only=True)
class CheckpointConfig:
    schedule: str = "iteration_interval"
    interval: float = 1000
    prefix: str = "checkpoint"
    cleanup: bool = False

    def __post_init__(self) -> None:
        _require_choice("checkpoint schedule", self.schedule, SCHEDULE_KINDS)
        _require_positive("checkpoint interval", self.interval, allow_none=False)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> CheckpointConfig:
        _check_keys(CheckpointConfig, data)
        return CheckpointConfig(**data)


@dataclass(kw_only=True)
class TimeStepWizardConfig:
    cfl: float = 0.2
    max_change: float = 1.1
    min_change: float = 0.5
    max_dt: Optional[float] = None
    min_dt: float = 0.0
    threshold: float = 0.0
    interval: int = 10

    def __post_init__(self) -> None:
        _require_positive("cfl", self.cfl, allow_none=False)
        _require_positive("wizard interval", self.interval, allow_none=False)
        _require_positive("max_dt", self.max_dt)
        if self.max_change < 1 or not 0 < self.min_change <= 1:
            raise ConfigurationError("Wizard needs max_change >= 1 and 0 < min_change <= 1.")

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> TimeStepWizardConfig:
        _check_keys(TimeStepWizardConfig, data)
        return TimeStepWizardConfig(**data)


@dataclass(kw_only=True)
class SimulationConfig:
    """
    Root configuration: everything needed to build and run one simulation.
    """
    name: str = "simulation"
    grid: GridConfig = field(default_factory=GridConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    dt: float = 1.0
    stop_time: Optional[float] = None
    stop_iteration: Optional[int] = None
    wall_time_limit: Optional[float] = None
    align_time_step: bool = True
    progress_interval: int = 100
    time_step_wizard: Optional[TimeStepWizardConfig] = None
    outputs: List[OutputConfig] = field(default_factory=list)
    checkpoint: Optional[CheckpointConfig] = None
    output_directory: str = "."

    def __post_init__(self) -> None:
        _require_positive("dt", self.dt, allow_none=False)
        if not math.isfinite(self.dt):
            raise ConfigurationError("dt must be finite.")
        _require_positive("stop_time", self.stop_time)
        _require_positive("stop_iteration", self.stop_iteration)
        _require_positive("wall_time_limit", self.wall_time_limit)
        _require_positive("progress_interval", self.progress_interval, allow_none=False)
        if self.stop_time is None and self.stop_iteration is None and self.wall_time_limit is None:
            raise ConfigurationError("At least one of stop_time, stop_iteration or wall_time_limit is required.")
        names = [output.name for output in self.outputs]
        if len(names) != len(set(names)):
            raise ConfigurationError(f"Output names must be unique, got {names}.")

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> SimulationConfig:
        _check_keys(SimulationConfig, data)
        data = dict(data)
        if "grid" in data:
            data["grid"] = GridConfig.from_dict(data["grid"])
        if "model" in data:
            data["model"] = ModelConfig.from_dict(data["model"])
        if data.get("time_step_wizard") is not None:
            data["time_step_wizard"] = TimeStepWizardConfig.from_dict(data["time_step_wizard"])
        data["outputs"] = [OutputConfig.from_dict(o) for o in data.get("outputs", [])]
        if data.get("checkpoint") is not None:
            data["checkpoint"] = CheckpointConfig.from_dict(data["checkpoint"])
        return SimulationConfig(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_json(filepath: str) -> SimulationConfig:
        logger.info(f"Loading configuration from: {filepath}")
        with open(filepath, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"File '{filepath}' is not valid JSON: {e}") from e
        return SimulationConfig.from_dict(data)

    def to_json(self, filepath: str) -> None:
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Configuration saved to: {filepath}")
