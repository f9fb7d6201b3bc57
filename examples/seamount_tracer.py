"""
Flow over a seamount
====================
A uniform current in a stratified, rotating fluid passes over a Gaussian
seamount represented by an immersed bottom. A passive tracer marks the
water that is lifted over the crest.

Usage:
    $ python examples/seamount_tracer.py
"""
import logging
import os

import numpy as np

from oceanrun.grid import ImmersedBoundaryGrid, RectilinearGrid
from oceanrun.logging_config import setup_logging
from oceanrun.model import BuoyancyTracer, FPlane, Model, ScalarDiffusivity
from oceanrun.output import HDF5OutputWriter, export_to_vtu
from oceanrun.schedules import IterationInterval, TimeInterval
from oceanrun.simulation import Callback, ProgressMessenger, Simulation, TimeStepWizard
from oceanrun.visualization import plot_slice

OUTPUT_DIR = "seamount_output"
H = 1000.0       # depth, m
h0 = 600.0       # seamount height, m
L = 1000.0       # seamount width, m
U = 0.05         # background current, m/s
N2 = 1e-6        # stratification, 1/s²


def seamount(x, y):
    return -H + h0 * np.exp(-(x / L) ** 2 - (y / L) ** 2)


def main() -> None:
    setup_logging(level=logging.INFO)

    underlying = RectilinearGrid(size=(48, 24, 20), x=(-6000, 6000), y=(-3000, 3000), z=(-H, 0),
                                 topology=("periodic", "bounded", "bounded"))
    grid = ImmersedBoundaryGrid(underlying, seamount)

    model = Model(
        grid,
        tracers=("b", "c"),
        advection="upwind",
        closure=ScalarDiffusivity(nu=1e-2, kappa=1e-3, time_discretization="vertically_implicit"),
        buoyancy=BuoyancyTracer(),
        coriolis=FPlane(latitude=45.0),
        timestepper="runge_kutta3",
    )

    # Tracer marks the water initially within 200 m of the bottom
    model.set(
        b=lambda x, y, z: N2 * z,
        c=lambda x, y, z: (z < -H + 200).astype(float),
        u=U,
    )

    simulation = Simulation(model, dt=20.0, stop_time=86400.0)
    simulation.add_callback(ProgressMessenger(), IterationInterval(100), name="progress")
    simulation.add_callback(Callback(TimeStepWizard(cfl=0.5, max_dt=300.0), IterationInterval(10), name="wizard"))

    filename = os.path.join(OUTPUT_DIR, "seamount.h5")
    simulation.add_output_writer(
        "slice",
        HDF5OutputWriter(
            model,
            {name: model.fields[name] for name in ("b", "c", "u", "w")},
            schedule=TimeInterval(3600.0),
            filename=filename,
            indices=(slice(None), 12, slice(None)),
            overwrite_existing=True,
        ),
    )

    simulation.run()

    plot_slice(filename, field="c", axis="y", index=0, out=os.path.join(OUTPUT_DIR, "tracer.png"))
    export_to_vtu(filename, os.path.join(OUTPUT_DIR, "vtu"))


if __name__ == "__main__":
    main()
