"""
Command-Line Interface
======================
Runs configured simulations and post-processes their output.

Why is this file needed?
------------------------
It is the composition root for command-line use. It:
1. Sets up logging (console + optional file).
2. Loads a JSON configuration and builds the simulation from it.
3. Dispatches the plot and export commands to the visualization and output layers.

Usage:
    $ python -m oceanrun run assets/mixed_layer.json --log-file run.log
    $ python -m oceanrun plot mixed_layer.h5 --field T --out T.png --axis y --index 0
    $ python -m oceanrun export mixed_layer.h5 --out vtu/
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from oceanrun.config import ConfigurationError, SimulationConfig
from oceanrun.logging_config import setup_logging
from oceanrun.utils import PACKAGE_VERSION

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="oceanrun", description="Configure, run and inspect ocean simulations.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {PACKAGE_VERSION}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run a simulation from a JSON configuration.")
    run.add_argument("config", help="Path to the JSON configuration.")
    run.add_argument("--log-file", default=None, help="Also write the log to this file.")
    run.add_argument("--debug", action="store_true", help="Log debug messages.")
    run.add_argument("--pickup", action="store_true", help="Continue from the latest checkpoint.")

    plot = subparsers.add_parser("plot", help="Plot a slice of a saved output.")
    plot.add_argument("file", help="HDF5 snapshot file.")
    plot.add_argument("--field", required=True, help="Output name.")
    plot.add_argument("--out", required=True, help="Image (.png, .pdf) or animation (.gif, .mp4) path.")
    plot.add_argument("--axis", default="z", choices=("x", "y", "z"), help="Axis held fixed.")
    plot.add_argument("--index", type=int, default=-1, help="Index along the fixed axis.")
    plot.add_argument("--snapshot", type=int, default=-1, help="Snapshot to plot (images only).")

    export = subparsers.add_parser("export", help="Export saved outputs to VTU files for ParaView.")
    export.add_argument("file", help="HDF5 snapshot file.")
    export.add_argument("--out", required=True, help="Destination directory.")
    export.add_argument("--field", action="append", default=None, help="Output to export (repeatable).")

    return parser


def run_command(args: argparse.Namespace) -> None:
    from oceanrun.builder import build_simulation

    config = SimulationConfig.from_json(args.config)
    logger.info(f"Building simulation '{config.name}'")
    simulation = build_simulation(config, pickup=args.pickup)
    simulation.run(pickup=args.pickup)


def plot_command(args: argparse.Namespace) -> None:
    from oceanrun.visualization import animate_slice, plot_slice

    if args.out.lower().endswith((".gif", ".mp4")):
        animate_slice(args.file, args.out, field=args.field, axis=args.axis, index=args.index)
    else:
        plot_slice(args.file, field=args.field, axis=args.axis, index=args.index,
                   snapshot=args.snapshot, out=args.out)


def export_command(args: argparse.Namespace) -> None:
    from oceanrun.output import export_to_vtu

    export_to_vtu(args.file, args.out, names=args.field)


COMMANDS = {
    "run": run_command,
    "plot": plot_command,
    "export": export_command,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if getattr(args, "debug", False) else logging.INFO
    setup_logging(level=level, log_file=getattr(args, "log_file", None), append=bool(getattr(args, "pickup", False)))

    try:
        COMMANDS[args.command](args)
    except (ConfigurationError, FileNotFoundError, KeyError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
