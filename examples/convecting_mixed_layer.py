"""
Convecting mixed layer
======================
Surface cooling and wind stress deepen a mixed layer in a two-dimensional
(x-z) slice. A sponge layer near the bottom relaxes temperature back to the
initial stratification.

Usage:
    $ python examples/convecting_mixed_layer.py
"""
import logging
import os

import numpy as np

from oceanrun.grid import RectilinearGrid, stretched_z_faces
from oceanrun.logging_config import setup_logging
from oceanrun.model import (
    ConvectiveAdjustment,
    FieldBoundaryConditions,
    FluxBoundaryCondition,
    FPlane,
    LinearEquationOfState,
    Model,
    Relaxation,
    ScalarDiffusivity,
)
from oceanrun.output import HDF5OutputWriter
from oceanrun.schedules import IterationInterval, TimeInterval
from oceanrun.simulation import Callback, ProgressMessenger, Simulation, TimeStepWizard
from oceanrun.visualization import animate_slice

OUTPUT_DIR = "convecting_mixed_layer_output"
DEPTH = 96.0
N2 = 1e-5  # initial stratification, 1/s²
ALPHA = 2e-4
G = 9.80665
DTDZ = N2 / (G * ALPHA)


def initial_temperature(x, y, z):
    return 20 + DTDZ * z


def surface_cooling(x, y, t, p):
    # Cooling ramps up over the first hour
    return p["Q"] * min(1.0, t / 3600)


def main() -> None:
    setup_logging(level=logging.INFO)

    grid = RectilinearGrid(
        size=(32, 24),
        x=(0, 512),
        z=stretched_z_faces(24, DEPTH),
        topology=("periodic", "flat", "bounded"),
    )

    sponge = Relaxation(
        rate=1 / 3600,
        target=lambda x, y, z, t: initial_temperature(x, y, z),
        mask=lambda x, y, z: np.exp(-(z + DEPTH) ** 2 / (2 * 8.0 ** 2)),
    )

    model = Model(
        grid,
        tracers=("T", "S"),
        advection="upwind",
        closure=(ScalarDiffusivity(nu=1e-4, kappa=1e-5), ConvectiveAdjustment(convective_kappa=0.5, convective_nu=0.1)),
        buoyancy=LinearEquationOfState(thermal_expansion=ALPHA, haline_contraction=8e-4),
        coriolis=FPlane(f=1e-4),
        boundary_conditions={
            "T": FieldBoundaryConditions(top=FluxBoundaryCondition(surface_cooling, parameters={"Q": 2e-5})),
            "u": FieldBoundaryConditions(top=FluxBoundaryCondition(-1e-4)),
        },
        forcing={"T": sponge},
    )

    rng = np.random.default_rng(0)
    model.set(T=initial_temperature, S=35, u=lambda x, y, z: 1e-3 * rng.standard_normal((32, 1, 24)))

    simulation = Simulation(model, dt=30.0, stop_time=2 * 86400)
    simulation.add_callback(ProgressMessenger(), IterationInterval(200), name="progress")
    simulation.add_callback(Callback(TimeStepWizard(cfl=0.3, max_dt=300.0), IterationInterval(10), name="wizard"))

    def mixed_layer_depth(model):
        # Depth of the deepest unstable interface, broadcast to one value per column
        N2_faces = model.operators.cells.face_difference(model.buoyancy_values(), axis=2)
        unstable = N2_faces < 0
        z_faces = model.grid.z_faces[1:].reshape(1, 1, -1)
        depth = -np.min(np.where(unstable, z_faces, 0.0), axis=2, keepdims=True)
        return depth

    filename = os.path.join(OUTPUT_DIR, "convecting_mixed_layer.h5")
    simulation.add_output_writer(
        "fields",
        HDF5OutputWriter(
            model,
            {"T": model.fields["T"], "w": model.fields["w"], "mixed_layer_depth": mixed_layer_depth},
            schedule=TimeInterval(1800.0),
            filename=filename,
            overwrite_existing=True,
        ),
    )

    simulation.run()

    animate_slice(filename, os.path.join(OUTPUT_DIR, "temperature.gif"), field="T", axis="y", index=0)


if __name__ == "__main__":
    main()
