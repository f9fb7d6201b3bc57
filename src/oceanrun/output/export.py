from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Optional, Sequence

import meshio
import numpy as np

from oceanrun.output.reader import FieldTimeSeries, list_outputs, read_grid

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


def _hexahedra(
    size: tuple[int, int, int],
    x_indices: npt.NDArray[np.int64],
    y_indices: npt.NDArray[np.int64],
    z_indices: npt.NDArray[np.int64],
) -> npt.NDArray[np.int64]:
    """Connectivity of the selected cells, in VTK hexahedron node order."""
    _, ny, nz = (n + 1 for n in size)
    I, J, K = (a.ravel() for a in np.meshgrid(x_indices, y_indices, z_indices, indexing="ij"))

    def node(i, j, k):
        return (i * ny + j) * nz + k

    return np.stack([
        node(I, J, K), node(I + 1, J, K), node(I + 1, J + 1, K), node(I, J + 1, K),
        node(I, J, K + 1), node(I + 1, J, K + 1), node(I + 1, J + 1, K + 1), node(I, J + 1, K + 1),
    ], axis=1)


def export_to_vtu(filename: str, output_dir: str, names: Optional[Sequence[str]] = None) -> str:
    """
    Exports the snapshots of a snapshot file as a series of .vtu files and a .pvd linker file.
    Files are named: <stem>_<snapshot>.vtu

    Args:
        filename: HDF5 snapshot file written by HDF5OutputWriter.
        output_dir: Destination directory (created if needed).
        names: Outputs to export; all 3-D outputs when None.

    Returns:
        Path of the .pvd file.
    """
    grid = read_grid(filename)
    names = list(names) if names is not None else list_outputs(filename)

    series = {}
    for name in names:
        ts = FieldTimeSeries(filename, name)
        if ts.x is None:
            logger.warning(f"Skipping output '{name}': it is not a 3-D field.")
            continue
        series[name] = ts
    if not series:
        raise ValueError(f"No 3-D outputs to export from '{filename}'.")

    # Cells are defined by the index sets of the first output; others must match
    xi, yi, zi = next(iter(series.values())).indices
    for name in list(series):
        if any(not np.array_equal(a, b) for a, b in zip(series[name].indices, (xi, yi, zi))):
            logger.warning(f"Skipping output '{name}': its region differs from the other outputs.")
            del series[name]

    os.makedirs(output_dir, exist_ok=True)
    stem = os.path.splitext(os.path.basename(filename))[0]
    first = next(iter(series.values()))
    logger.info(f"Exporting {len(first)} snapshots of {list(series)} to {output_dir}...")

    x, y, z = np.meshgrid(grid["x_faces"], grid["y_faces"], grid["z_faces"], indexing="ij")
    points = np.column_stack([x.ravel(), y.ravel(), z.ravel()])
    cells = [("hexahedron", _hexahedra(grid["size"], xi, yi, zi))]

    # PVD Header
    pvd_lines = [
        '<?xml version="1.0"?>',
        '<VTKFile type="Collection" version="0.1" byte_order="LittleEndian">',
        '  <Collection>'
    ]

    for n, t in enumerate(first.times):
        vtu_name = f"{stem}_{n:05d}.vtu"
        cell_data = {name: [ts.data[n].ravel()] for name, ts in series.items()}
        mesh = meshio.Mesh(points, cells, cell_data=cell_data)
        meshio.write(os.path.join(output_dir, vtu_name), mesh)
        pvd_lines.append(f'    <DataSet timestep="{t}" group="" part="0" file="{vtu_name}"/>')

    # Close PVD
    pvd_lines.append('  </Collection>')
    pvd_lines.append('</VTKFile>')

    pvd_path = os.path.join(output_dir, f"{stem}.pvd")
    with open(pvd_path, "w") as f:
        f.write("\n".join(pvd_lines))

    logger.info(f"Export complete. Load '{pvd_path}' in ParaView.")
    return pvd_path
