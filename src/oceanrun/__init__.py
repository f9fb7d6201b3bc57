"""
oceanrun: configure, run and inspect ocean simulations on structured grids.

The layers build on each other: grid -> model -> simulation -> output.
"""
from oceanrun.config import ConfigurationError, SimulationConfig
from oceanrun.grid import ImmersedBoundaryGrid, LatitudeLongitudeGrid, RectilinearGrid
from oceanrun.model import Model
from oceanrun.schedules import IterationInterval, SpecifiedTimes, TimeInterval, WallTimeInterval
from oceanrun.simulation import (
    Callback,
    NaNChecker,
    NumericalInstabilityError,
    ProgressMessenger,
    Simulation,
    TimeStepWizard,
)
from oceanrun.output import Checkpointer, FieldTimeSeries, HDF5OutputWriter
from oceanrun.utils import PACKAGE_VERSION as __version__

__all__ = [
    "ConfigurationError",
    "SimulationConfig",
    "ImmersedBoundaryGrid",
    "LatitudeLongitudeGrid",
    "RectilinearGrid",
    "Model",
    "IterationInterval",
    "SpecifiedTimes",
    "TimeInterval",
    "WallTimeInterval",
    "Callback",
    "NaNChecker",
    "NumericalInstabilityError",
    "ProgressMessenger",
    "Simulation",
    "TimeStepWizard",
    "Checkpointer",
    "FieldTimeSeries",
    "HDF5OutputWriter",
    "__version__",
]
