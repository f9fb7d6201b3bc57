"""
Output Writers (HDF5)
=====================
Writes snapshots of fields and diagnostics to HDF5 files during a run.

File layout:
    /                   attrs: package_version, created
    /grid               attrs: kind, topology, size; datasets: x/y/z faces and centers, immersed
    /timeseries/time    (n,) float64
    /timeseries/iteration (n,) int64
    /timeseries/<name>  (n, ...) float64, gzip; attrs: x_indices, y_indices, z_indices

The first axis of every timeseries dataset is the snapshot index. Files are
opened for each write and closed immediately.
"""
from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Mapping, Optional, Sequence, Union

import h5py
import numpy as np

from oceanrun.config import ConfigurationError
from oceanrun.model.fields import Field
from oceanrun.schedules import Schedule
from oceanrun.utils import PACKAGE_VERSION

if TYPE_CHECKING:
    import numpy.typing as npt

    from oceanrun.model import Model
    from oceanrun.simulation import Simulation

logger = logging.getLogger(__name__)

Output = Union[Field, Callable[["Model"], "npt.ArrayLike"]]
Index = Union[int, slice]
RESERVED_NAMES = ("time", "iteration")


class OutputWriter(ABC):
    """
    Abstract base class for anything the driver calls on a schedule to persist state.
    """

    def __init__(self, schedule: Schedule) -> None:
        if not isinstance(schedule, Schedule):
            raise ConfigurationError(f"Output schedule must be a Schedule, got {schedule!r}.")
        self.schedule = schedule

    @abstractmethod
    def write(self, simulation: Optional[Simulation] = None) -> None:
        pass

    def rewind(self, iteration: int) -> None:
        """Forget anything persisted after ``iteration``. Called when a run picks up from a checkpoint."""
        pass


def normalize_indices(indices: Optional[Sequence[Index]]) -> tuple[slice, slice, slice]:
    """
    Turn a tuple of ints and slices into three slices. Integer indices become
    length-one slices so that written arrays keep three dimensions.
    """
    if indices is None:
        return slice(None), slice(None), slice(None)
    indices = tuple(indices)
    if len(indices) != 3:
        raise ConfigurationError(f"Output indices need one entry per axis (x, y, z), got {indices!r}.")

    normalized = []
    for index in indices:
        if isinstance(index, slice):
            normalized.append(index)
        elif isinstance(index, (int, np.integer)) and not isinstance(index, bool):
            i = int(index)
            normalized.append(slice(i, i + 1 if i != -1 else None))
        else:
            raise ConfigurationError(f"Output indices must be ints or slices, got {index!r}.")
    return tuple(normalized)


class HDF5OutputWriter(OutputWriter):
    """
    Append snapshots of fields and derived quantities to an HDF5 file.

    Args:
        model: The model whose state is written.
        outputs: Mapping of output name to a Field or a callable f(model) -> array.
        schedule: When to write.
        filename: Path of the HDF5 file.
        indices: (x, y, z) ints or slices applied to 3-D arrays before writing.
        overwrite_existing: Replace an existing file instead of appending to it.

    Raises:
        ConfigurationError: If the outputs are empty or misnamed.
        ValueError: If appending to a file whose datasets have other shapes.
    """

    def __init__(
        self,
        model: Model,
        outputs: Mapping[str, Output],
        schedule: Schedule,
        filename: str,
        indices: Optional[Sequence[Index]] = None,
        overwrite_existing: bool = False,
    ) -> None:
        super().__init__(schedule)
        if not outputs:
            raise ConfigurationError("HDF5OutputWriter needs at least one output.")
        for name, output in outputs.items():
            if name in RESERVED_NAMES:
                raise ConfigurationError(f"Output name '{name}' is reserved.")
            if not isinstance(output, Field) and not callable(output):
                raise ConfigurationError(f"Output '{name}' must be a Field or a callable, got {output!r}.")

        self.model = model
        self.outputs = dict(outputs)
        self.filename = str(filename)
        self.indices = normalize_indices(indices)
        self.overwrite_existing = overwrite_existing

        self._initialize_file()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.filename!r}, outputs={list(self.outputs)}, schedule={self.schedule!r})"

    # ==========================================
    # SNAPSHOT ASSEMBLY
    # ==========================================
    def _axis_indices(self, name: str, shape: tuple[int, ...]) -> list[npt.NDArray[np.int64]]:
        """Grid indices written along each axis of an array of ``shape``."""
        grid_size = self.model.grid.size
        indices = []
        for axis, n in enumerate(shape[:3]):
            index = self.indices[axis] if n == grid_size[axis] else slice(None)
            indices.append(np.arange(n)[index])
        output = self.outputs[name]
        if isinstance(output, Field) and output.surface:
            # Surface fields live in the top level
            indices[2] = np.array([grid_size[2] - 1])
        return indices

    def fetch(self, name: str) -> npt.NDArray[np.float64]:
        """The array written for output ``name`` at the current model state."""
        output = self.outputs[name]
        data = output.data if isinstance(output, Field) else output(self.model)
        data = np.asarray(data, dtype=np.float64)
        if data.ndim == 3:
            sliced = tuple(
                self.indices[axis] if data.shape[axis] == self.model.grid.size[axis] else slice(None)
                for axis in range(3)
            )
            data = data[sliced]
        return np.array(data, dtype=np.float64)

    # ==========================================
    # FILE HANDLING
    # ==========================================
    def _initialize_file(self) -> None:
        snapshots = {name: self.fetch(name) for name in self.outputs}

        if os.path.exists(self.filename) and not self.overwrite_existing:
            self._check_existing(snapshots)
            logger.info(f"Appending output to existing file: {self.filename}")
            return

        directory = os.path.dirname(self.filename)
        if directory:
            os.makedirs(directory, exist_ok=True)

        grid = self.model.grid
        try:
            with h5py.File(self.filename, "w") as f:
                f.attrs["package_version"] = PACKAGE_VERSION
                f.attrs["created"] = datetime.now().isoformat(timespec="seconds")

                grp_grid = f.create_group("grid")
                grp_grid.attrs["kind"] = grid.underlying_grid.__class__.__name__
                grp_grid.attrs["topology"] = ",".join(t.value for t in grid.topology)
                grp_grid.attrs["size"] = np.array(grid.size, dtype=np.int64)
                for key, values in grid.coordinates().items():
                    grp_grid.create_dataset(key, data=values)
                grp_grid.create_dataset("immersed", data=np.asarray(grid.immersed))

                grp_ts = f.create_group("timeseries")
                grp_ts.create_dataset("time", shape=(0,), maxshape=(None,), dtype="f8")
                grp_ts.create_dataset("iteration", shape=(0,), maxshape=(None,), dtype="i8")

                for name, data in snapshots.items():
                    dset = grp_ts.create_dataset(
                        name,
                        shape=(0,) + data.shape,
                        maxshape=(None,) + data.shape,
                        chunks=(1,) + data.shape if data.size else None,
                        dtype="f8",
                        compression="gzip",
                    )
                    if data.ndim == 3:
                        for axis_name, index in zip("xyz", self._axis_indices(name, data.shape)):
                            dset.attrs[f"{axis_name}_indices"] = index

            logger.info(f"Created output file: {self.filename}")

        except Exception as e:
            logger.exception(f"Failed to create output file '{self.filename}': {e}")
            raise e

    def _check_existing(self, snapshots: Mapping[str, npt.NDArray[np.float64]]) -> None:
        with h5py.File(self.filename, "r") as f:
            if "timeseries" not in f:
                raise ValueError(f"File '{self.filename}' exists but holds no timeseries group.")
            grp_ts = f["timeseries"]
            for name, data in snapshots.items():
                if name in grp_ts and grp_ts[name].shape[1:] != data.shape:
                    raise ValueError(
                        f"Output '{name}' has shape {data.shape}, but '{self.filename}' stores "
                        f"snapshots of shape {grp_ts[name].shape[1:]}. Use overwrite_existing=True."
                    )

    def write(self, simulation: Optional[Simulation] = None) -> None:
        """Append one snapshot of every output at the current model time."""
        clock = self.model.clock
        snapshots = {name: self.fetch(name) for name in self.outputs}

        try:
            with h5py.File(self.filename, "a") as f:
                grp_ts = f["timeseries"]

                for name, data in snapshots.items():
                    if name in grp_ts and grp_ts[name].shape[1:] != data.shape:
                        raise ValueError(
                            f"Output '{name}' changed shape from {grp_ts[name].shape[1:]} to {data.shape}."
                        )

                n = grp_ts["time"].shape[0]
                for name, data in snapshots.items():
                    if name not in grp_ts:
                        grp_ts.create_dataset(
                            name, shape=(n,) + data.shape, maxshape=(None,) + data.shape,
                            dtype="f8", compression="gzip",
                        )
                    dset = grp_ts[name]
                    dset.resize(n + 1, axis=0)
                    dset[n] = data

                grp_ts["time"].resize(n + 1, axis=0)
                grp_ts["time"][n] = clock.time
                grp_ts["iteration"].resize(n + 1, axis=0)
                grp_ts["iteration"][n] = clock.iteration

            logger.debug(f"Wrote snapshot {n} (iteration {clock.iteration}) to {self.filename}")

        except Exception as e:
            logger.exception(f"Failed to write snapshot to '{self.filename}': {e}")
            raise e

    def rewind(self, iteration: int) -> None:
        """
        Drop stored snapshots taken after ``iteration``. A run that picks up from
        an older checkpoint writes those iterations again, so keeping them would
        duplicate iterations in the file.
        """
        try:
            with h5py.File(self.filename, "a") as f:
                grp_ts = f["timeseries"]
                later = np.flatnonzero(grp_ts["iteration"][()] > iteration)
                if later.size == 0:
                    return
                keep = int(later[0])
                for name in grp_ts:
                    grp_ts[name].resize(min(keep, grp_ts[name].shape[0]), axis=0)

            logger.info(f"Dropped snapshots after iteration {iteration} from {self.filename} ({keep} kept)")

        except Exception as e:
            logger.exception(f"Failed to rewind '{self.filename}': {e}")
            raise e
