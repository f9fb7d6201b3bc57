"""
The MODEL layer assembles fields, physics options and a time stepper on a grid.
"""
from oceanrun.model.advection import AdvectionScheme, CenteredAdvection, UpwindAdvection
from oceanrun.model.boundary_conditions import FieldBoundaryConditions, FluxBoundaryCondition
from oceanrun.model.clock import Clock
from oceanrun.model.closures import Closure, ConvectiveAdjustment, ScalarDiffusivity
from oceanrun.model.fields import Field
from oceanrun.model.forcing import ConstantForcing, Forcing, Relaxation
from oceanrun.model.model import Model
from oceanrun.model.physics import (
    BetaPlane,
    BuoyancyTracer,
    ExplicitFreeSurface,
    FPlane,
    LinearEquationOfState,
    SphericalCoriolis,
)
from oceanrun.model.timesteppers import ForwardEuler, QuasiAdamsBashforth2, RungeKutta3

__all__ = [
    "AdvectionScheme",
    "CenteredAdvection",
    "UpwindAdvection",
    "FieldBoundaryConditions",
    "FluxBoundaryCondition",
    "Clock",
    "Closure",
    "ConvectiveAdjustment",
    "ScalarDiffusivity",
    "Field",
    "ConstantForcing",
    "Forcing",
    "Relaxation",
    "Model",
    "BetaPlane",
    "BuoyancyTracer",
    "ExplicitFreeSurface",
    "FPlane",
    "LinearEquationOfState",
    "SphericalCoriolis",
    "ForwardEuler",
    "QuasiAdamsBashforth2",
    "RungeKutta3",
]
