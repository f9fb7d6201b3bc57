"""
The GRID layer builds immutable spatial discretizations: Cartesian and
latitude-longitude grids, vertical coordinates and immersed bottoms.
"""
from oceanrun.grid.topology import Topology
from oceanrun.grid.base import Grid
from oceanrun.grid.rectilinear import RectilinearGrid
from oceanrun.grid.spherical import LatitudeLongitudeGrid
from oceanrun.grid.immersed import ImmersedBoundaryGrid
from oceanrun.grid.vertical import uniform_z_faces, exponential_z_faces, stretched_z_faces

__all__ = [
    "Topology",
    "Grid",
    "RectilinearGrid",
    "LatitudeLongitudeGrid",
    "ImmersedBoundaryGrid",
    "uniform_z_faces",
    "exponential_z_faces",
    "stretched_z_faces",
]
