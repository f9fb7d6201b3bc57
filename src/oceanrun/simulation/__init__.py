"""
The SIMULATION layer drives a model through time: the main loop, callbacks,
adaptive time stepping and NaN detection.
"""
from oceanrun.simulation.callbacks import (
    Callback,
    CallbackContext,
    NaNChecker,
    NumericalInstabilityError,
    ProgressMessenger,
)
from oceanrun.simulation.wizard import TimeStepWizard
from oceanrun.simulation.simulation import Simulation, SimulationStatus

__all__ = [
    "Callback",
    "CallbackContext",
    "NaNChecker",
    "NumericalInstabilityError",
    "ProgressMessenger",
    "TimeStepWizard",
    "Simulation",
    "SimulationStatus",
]
