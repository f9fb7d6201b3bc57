"""
Plots and animations of saved snapshots.

Slices are taken through a 3-D output by fixing one axis (``"x"``, ``"y"`` or
``"z"``) at an index of the written region. When the remaining slice is one
cell wide the data are drawn as a profile instead of a colour map.
"""
from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Optional, Union

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.animation import FFMpegWriter, FuncAnimation, PillowWriter

from oceanrun.config import ConfigurationError
from oceanrun.output.reader import FieldTimeSeries
from oceanrun.utils import prettytime

if TYPE_CHECKING:
    import numpy.typing as npt
    from matplotlib.figure import Figure

logger = logging.getLogger(__name__)

AXES = ("x", "y", "z")


def _series(source: Union[str, FieldTimeSeries], field: Optional[str]) -> FieldTimeSeries:
    if isinstance(source, FieldTimeSeries):
        return source
    if field is None:
        raise ConfigurationError("A field name is needed to read a snapshot file.")
    return FieldTimeSeries(source, field)


def _slice(
    series: FieldTimeSeries, snapshot: int, axis: str, index: int
) -> tuple[npt.NDArray[np.float64], list[tuple[str, npt.NDArray[np.float64]]]]:
    if axis not in AXES:
        raise ConfigurationError(f"Slice axis must be one of {AXES}, got '{axis}'.")
    if series.x is None:
        raise ConfigurationError(f"Output '{series.name}' is not a 3-D field and cannot be sliced.")

    a = AXES.index(axis)
    data = np.take(series[snapshot], index, axis=a)
    coordinates = [(name, c) for name, c in zip(AXES, (series.x, series.y, series.z)) if name != axis]
    return data, coordinates


def _draw(ax, data, coordinates, vmin=None, vmax=None, cmap="viridis"):
    (name1, c1), (name2, c2) = coordinates
    if len(c1) > 1 and len(c2) > 1:
        mesh = ax.pcolormesh(c1, c2, data.T, shading="nearest", vmin=vmin, vmax=vmax, cmap=cmap)
        ax.set_xlabel(name1)
        ax.set_ylabel(name2)
        return mesh

    # One cell wide: draw a profile along the longer direction
    if len(c1) >= len(c2):
        line, = ax.plot(c1, data.ravel(), 'r', lw=2)
        ax.set_xlabel(name1)
    else:
        line, = ax.plot(data.ravel(), c2, 'r', lw=2)
        ax.set_ylabel(name2)
    if vmin is not None and vmax is not None and vmin < vmax:
        if len(c1) >= len(c2):
            ax.set_ylim(vmin, vmax)
        else:
            ax.set_xlim(vmin, vmax)
    ax.grid(visible=True, which='major', axis='both', linestyle='-', color='gray', lw=0.5)
    return line


def plot_slice(
    source: Union[str, FieldTimeSeries],
    field: Optional[str] = None,
    axis: str = "z",
    index: int = -1,
    snapshot: int = -1,
    out: Optional[str] = None,
    cmap: str = "viridis",
) -> Figure:
    """
    Plot one slice of one snapshot.

    Args:
        source: Snapshot file path or a loaded FieldTimeSeries.
        field: Output name (needed when ``source`` is a path).
        axis: Axis held fixed.
        index: Index along ``axis`` within the written region.
        snapshot: Snapshot index.
        out: Image path to save to (format from the extension).
        cmap: Matplotlib colour map.

    Returns:
        The figure.
    """
    series = _series(source, field)
    data, coordinates = _slice(series, snapshot, axis, index)

    plt.rcParams["figure.constrained_layout.use"] = True
    fig, ax = plt.subplots(figsize=(7, 5))
    artist = _draw(ax, data, coordinates, cmap=cmap)
    if coordinates[0][1].size > 1 and coordinates[1][1].size > 1:
        fig.colorbar(artist, ax=ax, label=series.name, shrink=0.8)
    ax.set_title(f"{series.name}, {axis} index {index}, t = {prettytime(float(series.times[snapshot]))}")

    if out is not None:
        directory = os.path.dirname(out)
        if directory:
            os.makedirs(directory, exist_ok=True)
        fig.savefig(out, dpi=150)
        logger.info(f"Saved plot to: {out}")
    return fig


def animate_slice(
    source: Union[str, FieldTimeSeries],
    out: str,
    field: Optional[str] = None,
    axis: str = "z",
    index: int = -1,
    fps: int = 8,
    cmap: str = "viridis",
) -> str:
    """
    Animate a slice over all snapshots. ``.gif`` files are written with Pillow,
    ``.mp4`` files with ffmpeg. The colour range is fixed over the animation.

    Returns:
        The path written.
    """
    series = _series(source, field)
    if len(series) == 0:
        raise ConfigurationError(f"Output '{series.name}' has no snapshots to animate.")

    extension = os.path.splitext(out)[1].lower()
    if extension == ".gif":
        writer = PillowWriter(fps=fps)
    elif extension == ".mp4":
        writer = FFMpegWriter(fps=fps)
    else:
        raise ConfigurationError(f"Animations are written as .gif or .mp4, got '{out}'.")

    frames = [_slice(series, n, axis, index)[0] for n in range(len(series))]
    _, coordinates = _slice(series, 0, axis, index)
    vmin = float(min(np.min(f) for f in frames))
    vmax = float(max(np.max(f) for f in frames))

    plt.rcParams["figure.constrained_layout.use"] = True
    fig, ax = plt.subplots(figsize=(7, 5))
    artist = _draw(ax, frames[0], coordinates, vmin=vmin, vmax=vmax, cmap=cmap)
    is_map = coordinates[0][1].size > 1 and coordinates[1][1].size > 1
    if is_map:
        fig.colorbar(artist, ax=ax, label=series.name, shrink=0.8)
    title = ax.set_title("")

    def update(n: int):
        if is_map:
            artist.set_array(frames[n].T)
        elif coordinates[0][1].size >= coordinates[1][1].size:
            artist.set_ydata(frames[n].ravel())
        else:
            artist.set_xdata(frames[n].ravel())
        title.set_text(f"{series.name}, t = {prettytime(float(series.times[n]))}")
        return artist, title

    directory = os.path.dirname(out)
    if directory:
        os.makedirs(directory, exist_ok=True)

    animation = FuncAnimation(fig, update, frames=len(frames), blit=False)
    animation.save(out, writer=writer)
    plt.close(fig)

    logger.info(f"Saved animation ({len(frames)} frames) to: {out}")
    return out
