"""
Global ocean spin-up
====================
Builds the bundled latitude-longitude configuration, runs it, and plots the
surface temperature and free-surface height.

Usage:
    $ python examples/global_ocean.py
    $ python examples/global_ocean.py --pickup   # continue from the latest checkpoint
"""
import logging
import os
import sys

from oceanrun.builder import build_simulation
from oceanrun.config import ASSETS_PATH, SimulationConfig
from oceanrun.logging_config import setup_logging
from oceanrun.visualization import plot_slice


def main() -> None:
    pickup = "--pickup" in sys.argv
    setup_logging(level=logging.INFO, log_file="global_ocean.log", append=pickup)

    config = SimulationConfig.from_json(os.path.join(ASSETS_PATH, "global_ocean.json"))
    simulation = build_simulation(config, pickup=pickup)
    simulation.run(pickup=pickup)

    filename = os.path.join(config.output_directory, "global_surface.h5")
    plot_slice(filename, field="T", axis="z", index=0, out=os.path.join(config.output_directory, "sst.png"))
    plot_slice(filename, field="eta", axis="z", index=0, out=os.path.join(config.output_directory, "eta.png"))


if __name__ == "__main__":
    main()
