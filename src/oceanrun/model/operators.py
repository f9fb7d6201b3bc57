"""
Finite-Volume Operators
=======================
Flux-form differencing on a collocated (cell-centered) grid.

Why is this file needed?
------------------------
1. Geometry: face areas, center-to-center distances and face masks are
   computed once per grid and reused every time step.
2. Conservation: every tendency is written as the divergence of face fluxes,
   so whatever leaves one cell enters its neighbour. Faces on bounded walls
   and faces touching immersed cells carry no flux.
3. Implicit solves: vertical diffusion can be integrated implicitly with a
   single banded solve over all columns.

Face ``i`` along an axis sits between cells ``i`` and ``i + 1``; on periodic
axes the last face wraps around to the first cell.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Sequence, Union

import numpy as np
import scipy as sp

from oceanrun.grid.topology import Topology

if TYPE_CHECKING:
    import numpy.typing as npt

    from oceanrun.grid import Grid
    from oceanrun.model.advection import AdvectionScheme

Diffusivity = Union[float, "npt.NDArray[np.float64]"]


class Stencil:
    """
    Precomputed geometry for flux divergences over an array of cells.

    Args:
        active: Boolean mask of cells that hold fluid.
        volumes: Cell volumes (or areas, for column arrays).
        spacings: Cell widths along each axis, broadcastable to ``active``.
        topology: Topology of each axis; flat axes are skipped.
    """

    def __init__(
        self,
        active: npt.NDArray[np.bool_],
        volumes: npt.NDArray[np.float64],
        spacings: Sequence[npt.NDArray[np.float64]],
        topology: Sequence[Topology],
    ) -> None:
        shape = active.shape
        self.shape = shape
        self.active = active
        self.volumes = np.broadcast_to(volumes, shape)
        self.axes = tuple(a for a in range(3) if topology[a] != Topology.FLAT)

        self.face_mask: dict[int, npt.NDArray[np.bool_]] = {}
        self.face_area: dict[int, npt.NDArray[np.float64]] = {}
        self.face_distance: dict[int, npt.NDArray[np.float64]] = {}

        for axis in self.axes:
            spacing = np.broadcast_to(spacings[axis], shape)

            mask = active & np.roll(active, -1, axis=axis)
            if topology[axis] != Topology.PERIODIC:
                wall = [slice(None)] * 3
                wall[axis] = -1
                mask[tuple(wall)] = False

            area = self.volumes / spacing
            self.face_mask[axis] = mask
            self.face_area[axis] = 0.5 * (area + np.roll(area, -1, axis=axis))
            self.face_distance[axis] = 0.5 * (spacing + np.roll(spacing, -1, axis=axis))

    @staticmethod
    def right(c: npt.NDArray[np.float64], axis: int) -> npt.NDArray[np.float64]:
        return np.roll(c, -1, axis=axis)

    def face_average(self, c: npt.NDArray[np.float64], axis: int) -> npt.NDArray[np.float64]:
        return 0.5 * (c + self.right(c, axis))

    def face_difference(self, c: npt.NDArray[np.float64], axis: int) -> npt.NDArray[np.float64]:
        """Gradient across each face, zero on walls and immersed faces."""
        return (self.right(c, axis) - c) / self.face_distance[axis] * self.face_mask[axis]

    def divergence(self, flux: npt.NDArray[np.float64], axis: int) -> npt.NDArray[np.float64]:
        """Divergence along ``axis`` of a flux (per unit area) defined on faces."""
        transport = flux * self.face_area[axis] * self.face_mask[axis]
        return (transport - np.roll(transport, 1, axis=axis)) / self.volumes

    def center_gradient(self, c: npt.NDArray[np.float64], axis: int) -> npt.NDArray[np.float64]:
        """Gradient at cell centers as the mean of the gradients on the two adjacent faces."""
        g = self.face_difference(c, axis)
        return 0.5 * (g + np.roll(g, 1, axis=axis))

    def advective_tendency(
        self,
        c: npt.NDArray[np.float64],
        velocities: Sequence[npt.NDArray[np.float64]],
        scheme: AdvectionScheme,
    ) -> npt.NDArray[np.float64]:
        """-∇·(u c) with face values reconstructed by ``scheme``."""
        tendency = np.zeros(self.shape)
        for axis in self.axes:
            u_face = self.face_average(velocities[axis], axis)
            c_face = scheme.face_value(c, self.right(c, axis), u_face)
            tendency -= self.divergence(u_face * c_face, axis)
        return tendency

    def diffusive_tendency(
        self,
        c: npt.NDArray[np.float64],
        horizontal: Diffusivity,
        vertical: Diffusivity,
    ) -> npt.NDArray[np.float64]:
        """∇·(κ ∇c) with separate horizontal and vertical diffusivities defined on faces."""
        tendency = np.zeros(self.shape)
        for axis in self.axes:
            kappa = vertical if axis == 2 else horizontal
            if np.isscalar(kappa) and kappa == 0:
                continue
            tendency += self.divergence(kappa * self.face_difference(c, axis), axis)
        return tendency

    def velocity_divergence(
        self,
        velocities: Sequence[npt.NDArray[np.float64]],
        axes: Sequence[int],
    ) -> npt.NDArray[np.float64]:
        divergence = np.zeros(self.shape)
        for axis in axes:
            if axis in self.axes:
                divergence += self.divergence(self.face_average(velocities[axis], axis), axis)
        return divergence

    def implicit_vertical_diffusion(
        self,
        c: npt.NDArray[np.float64],
        kappa: Diffusivity,
        dt: float,
    ) -> npt.NDArray[np.float64]:
        """
        Solve (I - dt ∂z κ ∂z) c_new = c for every column at once.

        Columns are stacked into one tridiagonal system; the wall and immersed
        faces have zero coupling, so the columns stay independent.
        """
        if 2 not in self.axes:
            return c

        # Transmissibility of each vertical face, including the time step
        T = dt * np.broadcast_to(kappa, self.shape) * self.face_area[2] * self.face_mask[2] / self.face_distance[2]
        upper = T / self.volumes
        lower = np.roll(T, 1, axis=2) / self.volumes

        a = upper.ravel()
        b = lower.ravel()
        n = a.size

        ab = np.zeros((3, n))
        ab[0, 1:] = -a[:-1]
        ab[1, :] = 1.0 + a + b
        ab[2, :-1] = -b[1:]

        solution = sp.linalg.solve_banded((1, 1), ab, c.ravel())
        return solution.reshape(self.shape)


class FiniteVolumeOperators:
    """
    Cell stencil plus column stencil (for vertically integrated quantities) of a grid.
    """

    def __init__(self, grid: Grid) -> None:
        self.grid = grid
        active = np.asarray(grid.active)
        dx, dy, dz = grid.spacings()

        self.cells = Stencil(active, grid.volumes, (dx, dy, dz), grid.topology)

        column_active = active.any(axis=2, keepdims=True)
        column_spacings = (
            np.broadcast_to(dx, (grid.Nx, grid.Ny, 1)),
            np.broadcast_to(dy, (grid.Nx, grid.Ny, 1)),
            np.ones((1, 1, 1)),
        )
        column_topology = (grid.topology[0], grid.topology[1], Topology.FLAT)
        self.columns = Stencil(
            column_active,
            grid.horizontal_areas[:, :, np.newaxis],
            column_spacings,
            column_topology,
        )

        self.dz = np.broadcast_to(dz, grid.size)

        # Top and bottom fluid cell of every column
        below = np.concatenate([np.zeros((grid.Nx, grid.Ny, 1), dtype=bool), active[:, :, :-1]], axis=2)
        self.bottom_cells = active & ~below
        self.top_cells = np.zeros(grid.size, dtype=bool)
        self.top_cells[:, :, -1] = active[:, :, -1]
        self.surface_area_over_volume = grid.horizontal_areas[:, :, np.newaxis] / self.cells.volumes

    def vertical_integral(self, c: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """∫ c dz over fluid cells, shape (Nx, Ny, 1)."""
        return np.sum(c * self.dz * self.cells.active, axis=2, keepdims=True)

    def boundary_flux_tendency(
        self,
        top_flux: npt.NDArray[np.float64] | float,
        bottom_flux: npt.NDArray[np.float64] | float,
    ) -> npt.NDArray[np.float64]:
        """
        Tendency from fluxes through the top and bottom of each column.
        Positive fluxes point upward: out of the top cell, into the bottom cell.
        """
        top = np.broadcast_to(np.asarray(top_flux, dtype=np.float64), (self.grid.Nx, self.grid.Ny))[:, :, np.newaxis]
        bottom = np.broadcast_to(np.asarray(bottom_flux, dtype=np.float64), (self.grid.Nx, self.grid.Ny))[:, :, np.newaxis]
        return (bottom * self.bottom_cells - top * self.top_cells) * self.surface_area_over_volume

    def diagnose_vertical_velocity(
        self,
        u: npt.NDArray[np.float64],
        v: npt.NDArray[np.float64],
    ) -> npt.NDArray[np.float64]:
        """
        Vertical velocity at cell centers from continuity, integrating the
        horizontal divergence upward from a no-flux bottom.
        """
        divergence = self.cells.velocity_divergence((u, v, None), axes=(0, 1))
        w_top = -np.cumsum(divergence * self.dz * self.cells.active, axis=2)
        w_bottom = np.concatenate([np.zeros((self.grid.Nx, self.grid.Ny, 1)), w_top[:, :, :-1]], axis=2)
        return 0.5 * (w_top + w_bottom) * self.cells.active

    def hydrostatic_pressure(self, b: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        """
        Kinematic pressure p with ∂p/∂z = b and p = 0 at the surface, at cell centers.
        """
        layer = b * self.dz * self.cells.active
        # Integral of b from the top of each cell to the surface
        above = np.cumsum(layer[:, :, ::-1], axis=2)[:, :, ::-1] - layer
        return -(above + 0.5 * layer)
