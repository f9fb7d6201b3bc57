"""
Grid Base Class
===============
Shared construction and metric logic for structured grids.

Why is this file needed?
------------------------
1. Validation: every grid checks its resolution and extents the same way and
   raises ConfigurationError before anything is allocated.
2. Coordinates: each axis carries faces (N + 1), centers (N) and spacings (N).
   Flat axes always have a single unit-width cell centered at zero.
3. Immutability: coordinate arrays are read-only; models, writers and plots
   share one grid.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from functools import cached_property
from numbers import Integral
from typing import TYPE_CHECKING, Sequence, Union

import numpy as np

from oceanrun.config import ConfigurationError
from oceanrun.grid.topology import Topology, parse_topology

if TYPE_CHECKING:
    import numpy.typing as npt

Extent = Union[Sequence[float], "npt.NDArray[np.float64]", None]

AXES = ("x", "y", "z")


def _read_only(array: npt.ArrayLike) -> npt.NDArray[np.float64]:
    out = np.array(array, dtype=np.float64)
    out.flags.writeable = False
    return out


def parse_size(size: Union[int, Sequence[int]], topology: tuple[Topology, Topology, Topology]) -> tuple[int, int, int]:
    """
    Expand ``size`` into a full (Nx, Ny, Nz) triple.

    ``size`` may list one entry per non-flat axis, or a full triple in which
    entries of flat axes are ignored.
    """
    if isinstance(size, Integral) and not isinstance(size, bool):
        size = (size,)
    size = tuple(size)

    active = [i for i, t in enumerate(topology) if t != Topology.FLAT]
    for n in size:
        if isinstance(n, bool) or not isinstance(n, Integral):
            raise ConfigurationError(f"Grid size entries must be integers, got {size!r}.")

    if len(size) == 3:
        full = list(size)
    elif len(size) == len(active):
        full = [1, 1, 1]
        for i, n in zip(active, size):
            full[i] = n
    else:
        raise ConfigurationError(
            f"Grid size {size!r} does not match topology {tuple(t.value for t in topology)}: "
            f"expected {len(active)} or 3 entries."
        )

    for i in range(3):
        if topology[i] == Topology.FLAT:
            full[i] = 1
        elif full[i] <= 0:
            raise ConfigurationError(f"Resolution along {AXES[i]} must be positive, got {full[i]}.")
    return int(full[0]), int(full[1]), int(full[2])


def axis_faces(name: str, n: int, extent: Extent, topology: Topology) -> npt.NDArray[np.float64]:
    """
    Build the face coordinates of one axis from an (start, stop) pair or explicit faces.
    """
    if topology == Topology.FLAT:
        return np.array([-0.5, 0.5])

    if extent is None:
        raise ConfigurationError(f"Axis {name} is not flat, so its extent or faces must be given.")

    values = np.asarray(extent, dtype=np.float64)
    if values.ndim != 1:
        raise ConfigurationError(f"Extent of axis {name} must be one-dimensional.")
    if not np.all(np.isfinite(values)):
        raise ConfigurationError(f"Extent of axis {name} must be finite.")

    if values.size == 2 and n != 1:
        start, stop = values
        if not stop > start:
            raise ConfigurationError(f"Extent of axis {name} is degenerate: ({start}, {stop}).")
        return np.linspace(start, stop, n + 1)

    if values.size != n + 1:
        raise ConfigurationError(
            f"Axis {name} has {n} cells, so it needs {n + 1} faces (or a (start, stop) pair); got {values.size}."
        )
    if np.any(np.diff(values) <= 0):
        raise ConfigurationError(f"Faces of axis {name} must be strictly increasing.")
    return values


class Grid(ABC):
    """
    Abstract structured grid with cell-centered storage.

    Attributes:
        size: (Nx, Ny, Nz).
        topology: Topology of each axis.
        x_faces, y_faces, z_faces: Face coordinates, N + 1 per axis.
        x_centers, y_centers, z_centers: Cell-center coordinates, N per axis.
    """
    is_spherical: bool = False

    def __init__(
        self,
        size: Union[int, Sequence[int]],
        x: Extent,
        y: Extent,
        z: Extent,
        topology: Sequence[str | Topology],
    ) -> None:
        self.topology = parse_topology(topology)
        self.Nx, self.Ny, self.Nz = parse_size(size, self.topology)

        faces = [
            axis_faces(name, n, extent, t)
            for name, n, extent, t in zip(AXES, self.size, (x, y, z), self.topology)
        ]
        self.x_faces, self.y_faces, self.z_faces = (_read_only(f) for f in faces)
        self.x_centers, self.y_centers, self.z_centers = (
            _read_only(0.5 * (f[:-1] + f[1:])) for f in faces
        )
        # Flat axes have center 0 by construction of their faces
        self.x_widths, self.y_widths, self.z_widths = (_read_only(np.diff(f)) for f in faces)

    @property
    def size(self) -> tuple[int, int, int]:
        return self.Nx, self.Ny, self.Nz

    @property
    def shape(self) -> tuple[int, int, int]:
        return self.size

    @property
    def number_of_cells(self) -> int:
        return self.Nx * self.Ny * self.Nz

    @property
    def extent(self) -> tuple[tuple[float, float], ...]:
        return tuple(
            (float(f[0]), float(f[-1])) for f in (self.x_faces, self.y_faces, self.z_faces)
        )

    @property
    def depth(self) -> float:
        return float(self.z_faces[-1] - self.z_faces[0])

    def is_flat(self, axis: int) -> bool:
        return self.topology[axis] == Topology.FLAT

    def is_periodic(self, axis: int) -> bool:
        return self.topology[axis] == Topology.PERIODIC

    def nodes(self) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Cell-center coordinates shaped to broadcast against (Nx, Ny, Nz) arrays."""
        return (
            self.x_centers.reshape(-1, 1, 1),
            self.y_centers.reshape(1, -1, 1),
            self.z_centers.reshape(1, 1, -1),
        )

    @abstractmethod
    def spacings(self) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Physical cell spacings (Δx, Δy, Δz) in meters, broadcastable to (Nx, Ny, Nz)."""
        pass

    @cached_property
    def volumes(self) -> npt.NDArray[np.float64]:
        dx, dy, dz = self.spacings()
        return _read_only(np.broadcast_to(dx * dy * dz, self.size))

    @cached_property
    def horizontal_areas(self) -> npt.NDArray[np.float64]:
        """Area of the top face of each column, shape (Nx, Ny)."""
        dx, dy, _ = self.spacings()
        return _read_only(np.broadcast_to(dx * dy, (self.Nx, self.Ny, 1))[:, :, 0])

    @cached_property
    def immersed(self) -> npt.NDArray[np.bool_]:
        """Mask of cells inside solid topography. Plain grids have none."""
        mask = np.zeros(self.size, dtype=bool)
        mask.flags.writeable = False
        return mask

    @property
    def active(self) -> npt.NDArray[np.bool_]:
        return ~self.immersed

    @property
    def underlying_grid(self) -> Grid:
        return self

    def summary(self) -> str:
        axes = []
        for name, t, (start, stop) in zip(AXES, self.topology, self.extent):
            if t == Topology.FLAT:
                axes.append(f"{name}: flat")
            else:
                axes.append(f"{name}: {t.value} [{start:g}, {stop:g}]")
        return f"{self.__class__.__name__} {self.Nx}×{self.Ny}×{self.Nz} ({', '.join(axes)})"

    def __repr__(self) -> str:
        return self.summary()

    def coordinates(self) -> dict[str, npt.NDArray[np.float64]]:
        """All coordinate arrays keyed by name, as stored in output files."""
        return {
            "x_faces": self.x_faces, "y_faces": self.y_faces, "z_faces": self.z_faces,
            "x_centers": self.x_centers, "y_centers": self.y_centers, "z_centers": self.z_centers,
        }

