from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import h5py
import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


def _open_snapshot_file(filename: str) -> h5py.File:
    if not h5py.is_hdf5(filename):
        msg = f"File '{filename}' is not a valid HDF5 file."
        logger.error(msg)
        raise ValueError(msg)
    f = h5py.File(filename, "r")
    if "timeseries" not in f or "grid" not in f:
        f.close()
        raise ValueError(f"File '{filename}' is not an oceanrun output file.")
    return f


def list_outputs(filename: str) -> list[str]:
    """Names of the outputs stored in a snapshot file."""
    with _open_snapshot_file(filename) as f:
        return [name for name in f["timeseries"].keys() if name not in ("time", "iteration")]


def read_grid(filename: str) -> dict[str, Any]:
    """Grid metadata and coordinate arrays of a snapshot file."""
    with _open_snapshot_file(filename) as f:
        grp_grid = f["grid"]
        grid: dict[str, Any] = {key: grp_grid[key][()] for key in grp_grid.keys()}
        grid["kind"] = str(grp_grid.attrs["kind"])
        grid["topology"] = tuple(str(grp_grid.attrs["topology"]).split(","))
        grid["size"] = tuple(int(n) for n in grp_grid.attrs["size"])
    return grid


class FieldTimeSeries:
    """
    All snapshots of one output, loaded into memory.

    Attributes:
        times: Snapshot times (s).
        iterations: Snapshot iterations.
        data: Array of shape (n_snapshots, ...).
        x, y, z: Cell-center coordinates of the written region (3-D outputs only).
    """

    def __init__(self, filename: str, name: str) -> None:
        self.filename = filename
        self.name = name

        with _open_snapshot_file(filename) as f:
            grp_ts = f["timeseries"]
            if name not in grp_ts or name in ("time", "iteration"):
                available = [k for k in grp_ts.keys() if k not in ("time", "iteration")]
                raise KeyError(f"Output '{name}' not found in '{filename}'. Available: {available}.")

            self.times: npt.NDArray[np.float64] = grp_ts["time"][()]
            self.iterations: npt.NDArray[np.int64] = grp_ts["iteration"][()]
            dset = grp_ts[name]
            self.data: npt.NDArray[np.float64] = dset[()]

            grp_grid = f["grid"]
            self.topology = tuple(str(grp_grid.attrs["topology"]).split(","))
            self.indices = None
            self.x = self.y = self.z = None
            if all(f"{axis}_indices" in dset.attrs for axis in "xyz"):
                self.indices = tuple(np.asarray(dset.attrs[f"{axis}_indices"], dtype=np.int64) for axis in "xyz")
                self.x, self.y, self.z = (
                    grp_grid[f"{axis}_centers"][()][index] for axis, index in zip("xyz", self.indices)
                )

        logger.debug(f"Loaded {len(self)} snapshots of '{name}' from {filename}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r}, snapshots={len(self)}, shape={self.data.shape[1:]})"

    def __len__(self) -> int:
        return self.data.shape[0]

    def __getitem__(self, n: int) -> npt.NDArray[np.float64]:
        return self.data[n]

    @property
    def shape(self) -> tuple[int, ...]:
        return self.data.shape

    def index_at(self, time: float) -> int:
        """Index of the snapshot closest to ``time``."""
        if len(self) == 0:
            raise IndexError(f"Output '{self.name}' has no snapshots.")
        return int(np.argmin(np.abs(self.times - time)))

    def at_time(self, time: float) -> npt.NDArray[np.float64]:
        return self.data[self.index_at(time)]
