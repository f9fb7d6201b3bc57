"""
Checkpoints
===========
Saves the complete model state so that a run can be picked up where it stopped.

A checkpoint file ``<prefix>_iteration<N>.h5`` holds every field, the clock,
the simulation time step and the previous-step tendencies of multi-step
time steppers.
"""
from __future__ import annotations

import glob
import logging
import os
import re
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import h5py

from oceanrun.output.writers import OutputWriter
from oceanrun.schedules import Schedule
from oceanrun.utils import PACKAGE_VERSION

if TYPE_CHECKING:
    from oceanrun.model import Model
    from oceanrun.simulation import Simulation

logger = logging.getLogger(__name__)


class Checkpointer(OutputWriter):
    """
    Writes checkpoint files on a schedule.

    Args:
        model: The model to checkpoint.
        schedule: When to write.
        directory: Where checkpoint files go.
        prefix: File name prefix.
        cleanup: Delete older checkpoints after writing a new one.
    """

    def __init__(
        self,
        model: Model,
        schedule: Schedule,
        directory: str = ".",
        prefix: str = "checkpoint",
        cleanup: bool = False,
    ) -> None:
        super().__init__(schedule)
        self.model = model
        self.directory = directory
        self.prefix = prefix
        self.cleanup = cleanup

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({os.path.join(self.directory, self.prefix)!r}, schedule={self.schedule!r})"

    def filepath(self, iteration: int) -> str:
        return os.path.join(self.directory, f"{self.prefix}_iteration{iteration}.h5")

    def checkpoint_files(self) -> list[str]:
        """Existing checkpoint files, sorted by iteration."""
        pattern = re.compile(rf"^{re.escape(self.prefix)}_iteration(\d+)\.h5$")
        found = []
        for path in glob.glob(os.path.join(self.directory, f"{self.prefix}_iteration*.h5")):
            match = pattern.match(os.path.basename(path))
            if match:
                found.append((int(match.group(1)), path))
        return [path for _, path in sorted(found)]

    def latest(self) -> Optional[str]:
        files = self.checkpoint_files()
        return files[-1] if files else None

    def write(self, simulation: Optional[Simulation] = None) -> None:
        model = self.model
        clock = model.clock
        dt = simulation.dt if simulation is not None else clock.last_dt
        path = self.filepath(clock.iteration)

        os.makedirs(self.directory, exist_ok=True)
        try:
            with h5py.File(path, "w") as f:
                f.attrs["package_version"] = PACKAGE_VERSION
                f.attrs["created"] = datetime.now().isoformat(timespec="seconds")
                f.attrs["dt"] = dt

                grp_clock = f.create_group("clock")
                grp_clock.attrs["time"] = clock.time
                grp_clock.attrs["iteration"] = clock.iteration
                grp_clock.attrs["last_dt"] = clock.last_dt

                grp_fields = f.create_group("fields")
                for name, field in model.fields.items():
                    grp_fields.create_dataset(name, data=field.data, compression="gzip")

                grp_ts = f.create_group("timestepper")
                grp_ts.attrs["name"] = model.timestepper.NAME
                for name, G in model.timestepper.state().items():
                    grp_ts.create_dataset(name, data=G, compression="gzip")

            logger.info(f"Checkpoint written at iteration {clock.iteration}: {path}")

        except Exception as e:
            logger.exception(f"Failed to write checkpoint '{path}': {e}")
            raise e

        if self.cleanup:
            for old in self.checkpoint_files():
                if old != path:
                    os.remove(old)
                    logger.debug(f"Deleted old checkpoint: {old}")


def restore_checkpoint(model: Model, filepath: str) -> float:
    """
    Load fields, clock and time-stepper state from a checkpoint into ``model``.

    Returns:
        The simulation time step stored in the checkpoint.

    Raises:
        ValueError: If the file is not a checkpoint of a model like this one.
    """
    logger.info(f"Picking up from checkpoint: {filepath}")
    if not h5py.is_hdf5(filepath):
        msg = f"File '{filepath}' is not a valid HDF5 file."
        logger.error(msg)
        raise ValueError(msg)

    try:
        with h5py.File(filepath, "r") as f:
            grp_fields = f["fields"]
            missing = [name for name in model.fields if name not in grp_fields]
            if missing:
                raise ValueError(f"Checkpoint '{filepath}' lacks field(s) {missing}.")

            data = {name: grp_fields[name][()] for name in model.fields}
            for name, values in data.items():
                if values.shape != model.fields[name].shape:
                    raise ValueError(
                        f"Field '{name}' in '{filepath}' has shape {values.shape}, "
                        f"expected {model.fields[name].shape}."
                    )

            for name, values in data.items():
                model.fields[name].data[...] = values

            grp_clock = f["clock"]
            model.clock.time = float(grp_clock.attrs["time"])
            model.clock.iteration = int(grp_clock.attrs["iteration"])
            model.clock.last_dt = float(grp_clock.attrs["last_dt"])
            model.clock.stage = 1

            grp_ts = f["timestepper"]
            if grp_ts.attrs.get("name") == model.timestepper.NAME:
                model.timestepper.restore({name: grp_ts[name][()] for name in grp_ts.keys()})
            else:
                logger.warning(
                    f"Checkpoint was written with timestepper '{grp_ts.attrs.get('name')}'; "
                    f"its saved tendencies are ignored."
                )
                model.timestepper.restore({})

            dt = float(f.attrs.get("dt", model.clock.last_dt))

    except Exception as e:
        logger.exception(f"Failed to restore checkpoint: {e}")
        raise e

    model.update_state()
    logger.info(f"Restored iteration {model.clock.iteration} at time {model.clock.time:.6g} s.")
    return dt
